from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import Field

from diet_agent.api.deps import get_metrics, get_settings, get_task_runner
from diet_agent.config import Settings
from diet_agent.core.models import (
    CamelModel,
    DietFormData,
    ErrorCategory,
    MealPlan,
    MealPlanOptionsResponse,
    Preferences,
    ShoppingCart,
)
from diet_agent.services.exceptions import LLMError, RepoError
from diet_agent.services.llm import OpenAIMealPlanOptionsGenerator
from diet_agent.services.metrics import MetricsLogger
from diet_agent.services.planning import (
    CartResult,
    MealPlanResult,
    MealPlanService,
    ShoppingCartService,
    render_meal_plan_message,
)
from diet_agent.services.repo.json_repo import JSONHistoryStore
from diet_agent.services.task_runner import TaskRunner

router = APIRouter(tags=["meal-plans"])


# ---- DI helpers --------------------------------------------------------------

def get_options_generator(settings: Settings = Depends(get_settings)) -> OpenAIMealPlanOptionsGenerator:
    if not settings.openai_api_key:
        raise HTTPException(
            status_code=503,
            detail="OpenAI API key not configured. Please add OPENAI_API_KEY to your environment variables.",
        )
    try:
        return OpenAIMealPlanOptionsGenerator(settings)
    except LLMError as e:
        raise HTTPException(status_code=503, detail=str(e))


# ---- Models ------------------------------------------------------------------

class MealPlanRequest(CamelModel):
    prompt: str = Field(..., min_length=1)


class RunInfo(CamelModel):
    source: str
    attempts: int = 0
    task_id: Optional[str] = None
    error_category: Optional[ErrorCategory] = None
    error_message: Optional[str] = None
    progress: List[str] = Field(default_factory=list)


class MealPlanReply(RunInfo):
    meal_plan: MealPlan
    preferences: Preferences
    message: str


class ShoppingCartRequest(CamelModel):
    meal_plan: MealPlan
    supermarket: str = Field(..., min_length=1)
    country: str = "United States"


class ShoppingCartReply(RunInfo):
    cart: ShoppingCart


def _run_info(result) -> dict:
    outcome = result.outcome
    if outcome is None:
        return {"source": result.source}
    return {
        "source": result.source,
        "attempts": outcome.attempts,
        "task_id": outcome.task.id if outcome.task else None,
        "error_category": outcome.error_category,
        "error_message": outcome.user_message,
        "progress": outcome.progress,
    }


# ---- Routes ------------------------------------------------------------------

@router.post("/api/v1/meal-plans", response_model=MealPlanReply)
async def create_meal_plan(
    body: MealPlanRequest,
    runner: Optional[TaskRunner] = Depends(get_task_runner),
    metrics: MetricsLogger = Depends(get_metrics),
):
    if not body.prompt.strip():
        raise HTTPException(status_code=422, detail="prompt cannot be blank")
    result: MealPlanResult = await MealPlanService(runner, metrics).generate(body.prompt)
    return MealPlanReply(
        meal_plan=result.meal_plan,
        preferences=result.preferences,
        message=render_meal_plan_message(result),
        **_run_info(result),
    )


@router.post("/api/v1/meal-plans/options", response_model=MealPlanOptionsResponse)
async def create_meal_plan_options(
    form: DietFormData,
    generator: OpenAIMealPlanOptionsGenerator = Depends(get_options_generator),
):
    try:
        return await generator.generate(form)
    except LLMError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/api/v1/shopping-cart", response_model=ShoppingCartReply)
async def create_shopping_cart(
    body: ShoppingCartRequest,
    runner: Optional[TaskRunner] = Depends(get_task_runner),
    metrics: MetricsLogger = Depends(get_metrics),
    settings: Settings = Depends(get_settings),
):
    result: CartResult = await ShoppingCartService(runner, metrics).generate(
        body.meal_plan, body.supermarket, body.country
    )
    cart = result.cart

    # Record the purchase (best-effort; if it fails, still return the cart)
    try:
        JSONHistoryStore(settings).add_purchase(
            plan=body.meal_plan.title,
            items=cart.total_items,
            total=cart.grand_total,
            supermarket=cart.supermarket,
            status="completed" if result.source == "ai" else "pending",
        )
    except RepoError as e:
        logger.warning("Could not save purchase history: {}", e)

    return ShoppingCartReply(cart=cart, **_run_info(result))
