from __future__ import annotations

import json
from typing import List, Optional

import httpx
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from diet_agent.config import Settings
from diet_agent.core.models import ChatMessage, DietFormData, MealPlanOptionsResponse
from .exceptions import LLMError

CHAT_MAX_TOKENS = 500
CHAT_TEMPERATURE = 0.7
OPTIONS_MAX_TOKENS = 4000
OPTIONS_TEMPERATURE = 0.7


class ChatResponder(BaseModel):
    """
    Interface-like base for free-text assistant replies.
    """
    async def reply(self, message: str, history: Optional[List[ChatMessage]] = None) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class MealPlanOptionsGenerator(BaseModel):
    async def generate(self, form: DietFormData) -> MealPlanOptionsResponse:  # pragma: no cover
        raise NotImplementedError


def _client(settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> AsyncOpenAI:
    try:
        return AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            http_client=http_client,
        )
    except Exception as e:
        raise LLMError("Could not initialize OpenAI client") from e


class OpenAIChatResponder(ChatResponder):
    _client: AsyncOpenAI
    _model: str

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__()
        self._client = _client(settings, http_client)
        self._model = settings.openai_model_chat

    async def reply(self, message: str, history: Optional[List[ChatMessage]] = None) -> str:
        prompt = (
            f'You are a helpful nutrition assistant. The user has sent the following message: "{message}"\n\n'
            "Based on their message, provide a helpful response about nutrition, diet planning, or meal suggestions.\n"
            "If they're asking about meal plans, suggest some options but don't create a full plan - "
            "that will be handled separately.\n\n"
            "Response format: A helpful, friendly response addressing their query about nutrition or diet."
        )
        # earlier turns give context; the current message is carried by the prompt
        earlier = [{"role": m.role, "content": m.content} for m in (history or [])[-10:]]
        try:
            resp = await self._client.chat.completions.create(
                model=self._model,
                messages=[*earlier, {"role": "user", "content": prompt}],
                max_tokens=CHAT_MAX_TOKENS,
                temperature=CHAT_TEMPERATURE,
            )
            content = (resp.choices[0].message.content or "").strip()
        except Exception as e:
            raise LLMError(f"OpenAI chat failed: {e}") from e
        if not content:
            raise LLMError("OpenAI chat returned an empty reply")
        return content


def options_prompt(form: DietFormData) -> str:
    per = f"amount for {form.people} people"
    return (
        "You are a professional nutritionist and meal planning assistant. Based on the user's requirements, "
        "create exactly 3 distinct meal plan options.\n\n"
        "User Requirements:\n"
        f"- Duration: {form.days} days\n"
        f"- People: {form.people} people\n"
        f"- Daily calories per person: {form.calories} kcal\n"
        f"- Daily protein per person: {form.protein}g\n"
        f"- Preferred supermarket: {form.supermarket}\n\n"
        "Instructions:\n"
        "1. Create 3 different meal plan options with distinct themes (e.g., Mediterranean, High-Protein, Balanced)\n"
        f"2. Each option should have meals for all {form.days} days\n"
        f"3. Scale ingredient quantities for {form.people} people\n"
        "4. Ensure each daily plan meets the calorie and protein targets\n"
        "5. Consolidate all unique ingredients into a shopping list for each option\n"
        f"6. Use common ingredients available at {form.supermarket}\n\n"
        "Your response MUST be only a JSON object matching this exact structure:\n"
        '{"mealPlanOptions": [{"optionId": 1, "title": "Plan Name", '
        '"description": "Brief description of the plan\'s focus and benefits", '
        '"dailyPlan": [{"day": 1, "meals": {'
        f'"breakfast": {{"name": "Meal Name", "ingredients": [{{"item": "ingredient name", "quantity": "{per}"}}]}}, '
        f'"lunch": {{"name": "Meal Name", "ingredients": [{{"item": "ingredient name", "quantity": "{per}"}}]}}, '
        f'"dinner": {{"name": "Meal Name", "ingredients": [{{"item": "ingredient name", "quantity": "{per}"}}]}}'
        "}}], "
        '"shoppingList": [{"item": "consolidated ingredient", "quantity": "total amount needed"}]}]}\n\n'
        "Do not include any text before or after the JSON object. Ensure the JSON is valid and complete."
    )


def parse_options(content: str) -> MealPlanOptionsResponse:
    try:
        data = json.loads(content.strip())
    except ValueError as e:
        raise LLMError("Failed to parse meal plan response. Please try again.") from e
    options = data.get("mealPlanOptions") if isinstance(data, dict) else None
    if not isinstance(options, list):
        raise LLMError("Invalid meal plan format received from AI")
    if len(options) != 3:
        raise LLMError("Expected 3 meal plan options but received a different number")
    try:
        return MealPlanOptionsResponse.model_validate(data)
    except ValidationError as e:
        raise LLMError(f"Invalid meal plan format received from AI ({e.error_count()} problems)") from e


class OpenAIMealPlanOptionsGenerator(MealPlanOptionsGenerator):
    _client: AsyncOpenAI
    _model: str

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__()
        self._client = _client(settings, http_client)
        self._model = settings.openai_model_plans

    async def generate(self, form: DietFormData) -> MealPlanOptionsResponse:
        try:
            resp = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": options_prompt(form)}],
                max_tokens=OPTIONS_MAX_TOKENS,
                temperature=OPTIONS_TEMPERATURE,
            )
            content = resp.choices[0].message.content
        except Exception as e:
            raise LLMError(f"OpenAI meal plan options failed: {e}") from e
        if not content:
            raise LLMError("Invalid response format from the LLM provider")
        return parse_options(content)
