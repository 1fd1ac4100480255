# diet_agent/core/models.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Literal, Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Shapes exchanged with the remote agent and the web client use camelCase keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


# ---------- Remote tasks ----------

class TaskStatus(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"
    STOPPED = "stopped"
    PAUSED = "paused"


TERMINAL_STATUSES = frozenset({TaskStatus.FINISHED, TaskStatus.FAILED, TaskStatus.STOPPED})


class TaskKind(str, Enum):
    MEAL_PLAN = "meal_plan_generation"
    SHOPPING_CART = "shopping_cart_generation"


class Task(BaseModel):
    """One unit of remote work as reported by the task API. Never mutated locally."""
    model_config = ConfigDict(extra="allow")

    id: str
    # creation responses may carry only the id
    status: TaskStatus = TaskStatus.CREATED
    task: Optional[str] = None
    output: Optional[str] = None
    steps: Optional[List[Any]] = None
    created_at: Optional[str] = None
    finished_at: Optional[str] = None
    error: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    screenshots: Optional[List[str]] = None
    gif_url: Optional[str] = None
    media_urls: Optional[List[str]] = None

    @field_validator("status", mode="before")
    def _normalize_status(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            return "running" if v == "started" else v
        return v

    @property
    def step_count(self) -> int:
        return len(self.steps or [])

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def succeeded(self) -> bool:
        return self.status == TaskStatus.FINISHED


class Preferences(BaseModel):
    """Sparse intent extracted from free text. Absent means unspecified."""
    people: Optional[int] = Field(None, ge=0)
    days: Optional[int] = Field(None, ge=0)
    calories: Optional[int] = Field(None, ge=0)
    country: Optional[str] = None
    dietary_restrictions: Optional[List[str]] = None
    budget: Optional[int] = Field(None, ge=0)

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class ApiKeyValidation(BaseModel):
    valid: bool
    error: Optional[str] = None
    credits: Optional[float] = None


class ErrorCategory(str, Enum):
    CREDENTIAL = "credential"
    NETWORK = "network"
    SERVICE = "service"
    DATA_FORMAT = "data_format"


# ---------- Meal plans (remote structured output) ----------

class SupermarketLink(CamelModel):
    supermarket: str = ""
    url: str = ""
    price: float = 0
    image_url: Optional[str] = None


class MealIngredient(CamelModel):
    name: str
    quantity: str = ""
    unit: str = ""
    estimated_price: float = 0
    supermarket_links: List[SupermarketLink] = Field(default_factory=list)


class Meal(CamelModel):
    name: str
    description: str = ""
    prep_time: float = 0   # minutes
    cook_time: float = 0   # minutes
    servings: float = 0
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0
    ingredients: List[MealIngredient] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class DayMeals(CamelModel):
    day: int
    breakfast: Optional[Meal] = None
    lunch: Optional[Meal] = None
    dinner: Optional[Meal] = None

    def all_meals(self) -> List[Meal]:
        return [m for m in (self.breakfast, self.lunch, self.dinner) if m is not None]


class EstimatedCost(CamelModel):
    min: float = 0
    max: float = 0
    currency: str = "USD"


class Supermarket(CamelModel):
    name: str
    country: str = ""
    website: str = ""
    delivery_fee: float = 0


class NutritionalSummary(CamelModel):
    daily_calories: float = 0
    daily_protein: float = 0
    daily_carbs: float = 0
    daily_fat: float = 0


class MealPlan(CamelModel):
    id: str
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    days: int = Field(..., ge=1)
    people: int = Field(..., ge=1)
    total_calories: Optional[float] = None
    total_protein: Optional[float] = None
    total_carbs: Optional[float] = None
    total_fat: Optional[float] = None
    difficulty: Optional[Literal["Easy", "Medium", "Hard"]] = None
    meals: List[DayMeals] = Field(..., min_length=1)
    estimated_cost: EstimatedCost
    supermarkets: List[Supermarket]
    nutritional_summary: NutritionalSummary

    @field_validator("difficulty", mode="before")
    def _normalize_difficulty(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().capitalize()
            return v or None
        return v

    def ingredients(self) -> List[MealIngredient]:
        return [ing for day in self.meals for meal in day.all_meals() for ing in meal.ingredients]


# ---------- Shopping carts (remote structured output) ----------

class CartNutrition(CamelModel):
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0


class CartItem(CamelModel):
    id: str
    name: str
    quantity: str
    unit: str = ""
    price: float = Field(..., ge=0)
    total_price: Optional[float] = None
    image_url: Optional[str] = None
    product_url: str
    category: str
    nutritional_info: Optional[CartNutrition] = None


class ShoppingCart(CamelModel):
    id: str
    meal_plan_id: str
    total_items: int = Field(..., ge=0)
    total_cost: float = Field(..., ge=0)
    currency: str
    supermarket: str
    country: str
    items: List[CartItem]
    delivery_fee: float = 0
    estimated_delivery_time: str = ""
    subtotal: float
    tax: float = 0
    grand_total: float
    screenshots: List[str] = Field(default_factory=list)
    created_at: str


# ---------- Task inputs ----------

class MealPlanTaskInput(BaseModel):
    prompt: str = Field(..., min_length=1)
    preferences: Optional[Preferences] = None

    @field_validator("prompt")
    def _prompt_not_blank(cls, v: str) -> str:
        # kept verbatim; only whitespace-only text is rejected
        if not v.strip():
            raise ValueError("prompt cannot be blank")
        return v


class ShoppingCartTaskInput(BaseModel):
    meal_plan: MealPlan
    supermarket: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


# ---------- Chat ----------

class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class PlanSuggestion(CamelModel):
    title: str
    description: str
    features: List[str] = Field(default_factory=list)
    difficulty: Literal["Easy", "Medium", "Hard"] = "Medium"
    sample_meals: List[str] = Field(default_factory=list)


class ChatResponse(CamelModel):
    message: str
    suggestions: Optional[List[PlanSuggestion]] = None
    needs_more_info: bool = False
    next_questions: Optional[List[str]] = None


class ChatHints(BaseModel):
    """What a conversation has revealed so far; accumulates across turns."""
    people: Optional[int] = None
    days: Optional[int] = None
    supermarket: Optional[str] = None
    budget_level: Optional[Literal["low", "high"]] = None
    diet_flags: List[str] = Field(default_factory=list)

    def known_count(self) -> int:
        data = self.model_dump(exclude_none=True)
        if not data.get("diet_flags"):
            data.pop("diet_flags", None)
        return len(data)


# ---------- Diet form (three-option planner) ----------

class DietFormData(BaseModel):
    days: int = Field(..., ge=1, le=31)
    people: int = Field(..., ge=1, le=20)
    calories: int = Field(..., ge=0)
    protein: int = Field(..., ge=0)
    supermarket: str = Field(..., min_length=1)


class FormIngredient(BaseModel):
    item: str
    quantity: str  # e.g., "200g", "3", "1 cup"


class FormMeal(BaseModel):
    name: str
    ingredients: List[FormIngredient] = Field(default_factory=list)


class FormDayMeals(BaseModel):
    breakfast: FormMeal
    lunch: FormMeal
    dinner: FormMeal


class DailyPlan(BaseModel):
    day: int
    meals: FormDayMeals


class MealPlanOption(CamelModel):
    option_id: int
    title: str
    description: str
    daily_plan: List[DailyPlan]
    shopping_list: List[FormIngredient]


class MealPlanOptionsResponse(CamelModel):
    meal_plan_options: List[MealPlanOption] = Field(..., min_length=3, max_length=3)


# ---------- History ----------

class ChatHistoryItem(BaseModel):
    id: str
    date: str  # YYYY-MM-DD
    query: str
    plan: str
    messages: List[ChatMessage] = Field(default_factory=list)


class RecipeHistoryItem(BaseModel):
    id: str
    title: str
    saved_date: str
    difficulty: str
    cooking_time: str
    rating: Optional[float] = Field(None, ge=0, le=5)
    tags: List[str] = Field(default_factory=list)
    plan_id: Optional[str] = None
    ingredients: List[FormIngredient] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)


class PurchaseHistoryItem(BaseModel):
    id: str
    date: str
    plan: str
    items: int = Field(..., ge=0)
    total: float = Field(..., ge=0)
    supermarket: Optional[str] = None
    status: Literal["completed", "pending", "failed"]
