# diet_agent/core/task_requests.py
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .models import MealPlanTaskInput, Preferences, ShoppingCartTaskInput, TaskKind
from .schemas import MEAL_PLAN_SCHEMA, SCHEMA_VERSION, SHOPPING_CART_SCHEMA

MEAL_PLAN_MAX_STEPS = 25
MEAL_PLAN_MAX_LLM_TOKENS = 4000
SHOPPING_CART_MAX_STEPS = 35


class TaskRequest(BaseModel):
    """Everything about a task submission except transport details and the timestamp."""
    kind: TaskKind
    instruction: str
    output_schema: Dict[str, Any]
    max_steps: int = Field(..., ge=1)
    max_llm_tokens: Optional[int] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


def render_preferences(preferences: Optional[Preferences]) -> List[str]:
    """One line per preference that is present; absent fields are left out."""
    if preferences is None:
        return []
    lines: List[str] = []
    if preferences.days is not None:
        lines.append(f"- Days: {preferences.days}")
    if preferences.people is not None:
        lines.append(f"- People: {preferences.people}")
    if preferences.calories is not None:
        lines.append(f"- Target Calories: {preferences.calories}")
    if preferences.country:
        lines.append(f"- Country: {preferences.country}")
    if preferences.dietary_restrictions:
        lines.append(f"- Dietary Restrictions: {', '.join(preferences.dietary_restrictions)}")
    if preferences.budget is not None:
        lines.append(f"- Budget: ${preferences.budget}")
    return lines


def build_meal_plan_request(data: MealPlanTaskInput) -> TaskRequest:
    pref_lines = render_preferences(data.preferences)
    pref_block = ""
    if pref_lines:
        pref_block = "Additional Preferences:\n" + "\n".join(pref_lines) + "\n\n"

    instruction = (
        "You are an expert nutritionist and meal planner. "
        "Create a comprehensive meal plan based on the user's request.\n\n"
        f"User Request: \"{data.prompt}\"\n\n"
        f"{pref_block}"
        "Please create a detailed meal plan that includes:\n\n"
        "1. **Meal Plan Overview**: Title, description, nutritional summary\n"
        "2. **Daily Meals**: Breakfast, lunch, dinner for each day with detailed recipes\n"
        "3. **Ingredients**: Complete shopping list with quantities and estimated prices\n"
        "4. **Nutrition**: Calorie and macronutrient breakdown per meal and daily totals\n\n"
        "Focus on creating healthy, balanced meals with practical recipes. "
        "Use common ingredients that are widely available. "
        "Provide realistic cost estimates based on typical market prices.\n\n"
        "Output Format: Provide a complete JSON structure following the specified schema.\n"
        "Be thorough but practical in your meal planning approach.\n"
    )
    preferences = data.preferences.model_dump(exclude_none=True) if data.preferences else {}
    return TaskRequest(
        kind=TaskKind.MEAL_PLAN,
        instruction=instruction,
        output_schema=MEAL_PLAN_SCHEMA,
        max_steps=MEAL_PLAN_MAX_STEPS,
        max_llm_tokens=MEAL_PLAN_MAX_LLM_TOKENS,
        metadata={
            "preferences": json.dumps(preferences, sort_keys=True),
            "schemaVersion": SCHEMA_VERSION,
        },
    )


def build_shopping_cart_request(data: ShoppingCartTaskInput) -> TaskRequest:
    plan = data.meal_plan
    store, country = data.supermarket, data.country
    instruction = (
        "You are an expert grocery shopper. Create a detailed shopping cart for this meal plan.\n\n"
        f"Meal Plan: \"{plan.title}\"\n"
        f"Supermarket: {store}\n"
        f"Country: {country}\n\n"
        "Instructions:\n"
        f"1. Visit the {store} website in {country}\n"
        "2. Search for each ingredient from the meal plan\n"
        "3. Find the best matching products with current prices\n"
        "4. Create a comprehensive shopping cart with:\n"
        "   - Exact product matches\n"
        "   - Current prices\n"
        "   - Product images\n"
        "   - Direct purchase links\n"
        "   - Nutritional information when available\n"
        f"   - Proper quantities for {plan.people} people for {plan.days} days\n\n"
        "Research Requirements:\n"
        f"- Use the actual {store} website\n"
        "- Find real products currently available\n"
        "- Include high-quality product images\n"
        "- Get accurate current prices\n"
        "- Create direct links to product pages\n"
        "- Calculate totals and delivery fees\n\n"
        "Be thorough and create a complete, realistic shopping cart "
        "that the user can immediately use to purchase items.\n"
    )
    return TaskRequest(
        kind=TaskKind.SHOPPING_CART,
        instruction=instruction,
        output_schema=SHOPPING_CART_SCHEMA,
        max_steps=SHOPPING_CART_MAX_STEPS,
        metadata={
            "mealPlanId": plan.id,
            "supermarket": store,
            "country": country,
            "schemaVersion": SCHEMA_VERSION,
        },
    )


def build_task_request(kind: TaskKind, payload: Any) -> TaskRequest:
    if kind == TaskKind.MEAL_PLAN:
        if not isinstance(payload, MealPlanTaskInput):
            raise TypeError("meal plan tasks take a MealPlanTaskInput")
        return build_meal_plan_request(payload)
    if kind == TaskKind.SHOPPING_CART:
        if not isinstance(payload, ShoppingCartTaskInput):
            raise TypeError("shopping cart tasks take a ShoppingCartTaskInput")
        return build_shopping_cart_request(payload)
    raise ValueError(f"Unsupported task kind: {kind}")
