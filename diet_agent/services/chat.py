from __future__ import annotations

from typing import List, Optional

from loguru import logger

from diet_agent.core.models import ChatHints, ChatMessage, ChatResponse, PlanSuggestion
from diet_agent.core.preferences import (
    detect_budget_level,
    detect_diet_flags,
    detect_supermarket,
    extract_preferences,
    wants_suggestions,
)
from .exceptions import LLMError
from .llm import ChatResponder

BASIC_SUGGESTIONS = [
    PlanSuggestion(
        title="Personalized Meal Plan",
        description="Customized to your specific needs and preferences",
        features=["Tailored nutrition", "Personalized portions", "Preference-based"],
        difficulty="Medium",
        sample_meals=["Based on your preferences", "Customized recipes", "Personalized meals"],
    ),
    PlanSuggestion(
        title="Quick & Healthy",
        description="30-minute meals for busy lifestyles with real-time pricing",
        features=["Fast preparation", "Current market prices", "Healthy ingredients"],
        difficulty="Easy",
        sample_meals=["Quick protein options", "Simple healthy sides", "Fast nutritious meals"],
    ),
    PlanSuggestion(
        title="Budget-Friendly Plan",
        description="Cost-effective meals with current supermarket pricing",
        features=["Real-time pricing", "Budget optimization", "Affordable nutrition"],
        difficulty="Easy",
        sample_meals=["Cost-effective proteins", "Budget-friendly meals", "Affordable options"],
    ),
]

PLANT_BASED = PlanSuggestion(
    title="Plant-Based Power",
    description="Delicious vegetarian/vegan meals packed with nutrition",
    features=["High protein plants", "Colorful vegetables", "Satisfying portions"],
    difficulty="Easy",
    sample_meals=["Lentil Shepherd's Pie", "Black Bean Burgers", "Tofu Scramble"],
)
HIGH_PROTEIN = PlanSuggestion(
    title="High-Protein Focus",
    description="Protein-rich meals for active lifestyles",
    features=["Lean meats & fish", "Low carb options", "Muscle-building nutrition"],
    difficulty="Medium",
    sample_meals=["Steak & Asparagus", "Grilled Chicken Salad", "Egg White Omelet"],
)
BUDGET_NUTRITION = PlanSuggestion(
    title="Budget-Friendly Nutrition",
    description="Maximum nutrition for your dollar",
    features=["Bulk ingredients", "Meal prep friendly", "Cost-effective proteins"],
    difficulty="Easy",
    sample_meals=["Chicken & Rice", "Bean Chili", "Oatmeal & Fruit"],
)
CUSTOM_BALANCED = PlanSuggestion(
    title="Custom Balanced Plan",
    description="Tailored to your specific preferences and needs",
    features=["Personalized portions", "Preferred ingredients", "Flexible scheduling"],
    difficulty="Medium",
    sample_meals=["Grilled Salmon", "Turkey Meatballs", "Vegetable Curry"],
)

MAX_SUGGESTIONS = 3
# the responder only ever sees the last 10 turns
MAX_HISTORY = 40


class DietChatService:
    """
    One conversation with the nutrition assistant.

    Each message updates the accumulated ChatHints. A configured responder
    writes the reply text; when it is missing or fails, a rule-based reply is
    produced from the hints instead, so the chat always answers.
    """

    def __init__(self, responder: Optional[ChatResponder] = None):
        self.responder = responder
        self.history: List[ChatMessage] = []
        self.hints = ChatHints()

    async def send_message(self, text: str) -> ChatResponse:
        self.record("user", text)
        self._absorb(text)

        response: Optional[ChatResponse] = None
        if self.responder is not None:
            try:
                reply = await self.responder.reply(text, self.history[:-1])
                response = ChatResponse(
                    message=reply,
                    suggestions=self.personalized_suggestions() if wants_suggestions(text) else None,
                    needs_more_info=not self.has_basic_info(),
                )
            except LLMError as e:
                logger.warning("Chat responder failed, using local reply: {}", e)

        if response is None:
            response = self._local_response(text)
        self.record("assistant", response.message)
        return response

    def record(self, role: str, content: str) -> None:
        self.history.append(ChatMessage(role=role, content=content))
        del self.history[:-MAX_HISTORY]

    def _absorb(self, text: str) -> None:
        prefs = extract_preferences(text)
        if prefs.people:
            self.hints.people = prefs.people
        if prefs.days:
            self.hints.days = prefs.days
        for flag in detect_diet_flags(text):
            if flag not in self.hints.diet_flags:
                self.hints.diet_flags.append(flag)
        level = detect_budget_level(text)
        if level:
            self.hints.budget_level = level
        market = detect_supermarket(text)
        if market:
            self.hints.supermarket = market

    # ---- Rule-based replies --------------------------------------------------

    def _local_response(self, text: str) -> ChatResponse:
        lowered = text.lower()
        if len(self.history) <= 2 or "diet" in lowered or "meal plan" in lowered:
            return self._initial_response()
        if self.has_basic_info():
            return ChatResponse(
                message=(
                    "Perfect! Based on your preferences, I've created 3 tailored meal plan options for you. "
                    "Each one is designed to meet your specific needs:"
                ),
                suggestions=self.personalized_suggestions(),
                needs_more_info=False,
            )
        return ChatResponse(
            message="I'd love to create the perfect meal plan for you! Could you tell me a bit more about your preferences?",
            needs_more_info=True,
            next_questions=self.next_questions(),
        )

    def _initial_response(self) -> ChatResponse:
        people = f"{self.hints.people} people" if self.hints.people else "your family"
        days = f"{self.hints.days} days" if self.hints.days else "several days"
        return ChatResponse(
            message=(
                f"Great! I understand you want a meal plan for {people} for {days}. "
                "Let me create some personalized options for you based on what you've told me."
            ),
            suggestions=[s.model_copy() for s in BASIC_SUGGESTIONS],
            needs_more_info=not self.has_basic_info(),
            next_questions=self.next_questions(),
        )

    def personalized_suggestions(self) -> List[PlanSuggestion]:
        flags = set(self.hints.diet_flags)
        picks: List[PlanSuggestion] = []
        if flags & {"vegetarian", "vegan"}:
            picks.append(PLANT_BASED)
        if flags & {"keto", "high_protein"}:
            picks.append(HIGH_PROTEIN)
        if self.hints.budget_level == "low":
            picks.append(BUDGET_NUTRITION)
        picks.append(CUSTOM_BALANCED)
        return [p.model_copy() for p in picks[:MAX_SUGGESTIONS]]

    def has_basic_info(self) -> bool:
        return bool(self.hints.people or self.hints.days)

    def next_questions(self) -> List[str]:
        questions: List[str] = []
        if not self.hints.people:
            questions.append("How many people are you planning meals for?")
        if not self.hints.days:
            questions.append("How many days would you like the meal plan to cover?")
        if not self.hints.supermarket:
            questions.append("Do you have a preferred supermarket for shopping?")
        if self.hints.known_count() < 3:
            questions.append("Any dietary restrictions or preferences? (vegetarian, keto, etc.)")
        return questions

    def reset(self) -> None:
        self.history = []
        self.hints = ChatHints()
