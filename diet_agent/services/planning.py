from __future__ import annotations

from contextlib import nullcontext
from typing import Literal, Optional

from loguru import logger
from pydantic import BaseModel

from diet_agent.core.models import (
    MealPlan,
    MealPlanTaskInput,
    Preferences,
    ShoppingCart,
    ShoppingCartTaskInput,
    TaskKind,
)
from diet_agent.core.preferences import extract_preferences
from .demo import DemoCartBuilder, DemoMealPlanner
from .metrics import MetricsLogger
from .task_runner import (
    MessageCallback,
    TaskOutcome,
    TaskRunner,
    parse_meal_plan_output,
    parse_shopping_cart_output,
)

PlanSource = Literal["ai", "demo"]


class MealPlanResult(BaseModel):
    meal_plan: MealPlan
    source: PlanSource
    preferences: Preferences
    outcome: Optional[TaskOutcome] = None


class CartResult(BaseModel):
    cart: ShoppingCart
    source: PlanSource
    outcome: Optional[TaskOutcome] = None


def _tracker(metrics: Optional[MetricsLogger], name: str):
    return metrics.track(name) if metrics is not None else nullcontext({})


class MealPlanService:
    """
    Turns a free-text request into a MealPlan.

    Without a runner (no Browser-Use credential) or when the remote task
    fails after its retries, the demo planner supplies the plan; the
    failed outcome stays on the result so callers can show why.
    """

    def __init__(
        self,
        runner: Optional[TaskRunner] = None,
        metrics: Optional[MetricsLogger] = None,
        planner: Optional[DemoMealPlanner] = None,
    ):
        self.runner = runner
        self.metrics = metrics
        self.planner = planner or DemoMealPlanner()

    async def generate(self, prompt: str, on_progress: Optional[MessageCallback] = None) -> MealPlanResult:
        prefs = extract_preferences(prompt)
        payload = MealPlanTaskInput(prompt=prompt, preferences=None if prefs.is_empty() else prefs)

        if self.runner is None:
            logger.info("No Browser-Use credential configured; using demo meal plan")
            return MealPlanResult(meal_plan=self.planner.plan(prefs), source="demo", preferences=prefs)

        with _tracker(self.metrics, "meal_plan_task") as fields:
            outcome = await self.runner.run(
                TaskKind.MEAL_PLAN, payload, parse_meal_plan_output, on_progress=on_progress, subject="meal plan"
            )
            fields.update(attempts=outcome.attempts, ok=outcome.ok)

        if outcome.ok and outcome.value is not None:
            return MealPlanResult(meal_plan=outcome.value, source="ai", preferences=prefs, outcome=outcome)
        logger.warning("Meal plan task failed ({}), falling back to demo plan", outcome.error_category)
        return MealPlanResult(meal_plan=self.planner.plan(prefs), source="demo", preferences=prefs, outcome=outcome)


class ShoppingCartService:
    """Same flow as MealPlanService for turning a plan into a priced cart."""

    def __init__(
        self,
        runner: Optional[TaskRunner] = None,
        metrics: Optional[MetricsLogger] = None,
        builder: Optional[DemoCartBuilder] = None,
    ):
        self.runner = runner
        self.metrics = metrics
        self.builder = builder or DemoCartBuilder()

    async def generate(
        self,
        meal_plan: MealPlan,
        supermarket: str,
        country: str,
        on_progress: Optional[MessageCallback] = None,
    ) -> CartResult:
        payload = ShoppingCartTaskInput(meal_plan=meal_plan, supermarket=supermarket, country=country)

        if self.runner is None:
            return CartResult(cart=self.builder.build(meal_plan, supermarket, country), source="demo")

        with _tracker(self.metrics, "shopping_cart_task") as fields:
            outcome = await self.runner.run(
                TaskKind.SHOPPING_CART,
                payload,
                parse_shopping_cart_output,
                on_progress=on_progress,
                subject="shopping cart",
            )
            fields.update(attempts=outcome.attempts, ok=outcome.ok)

        if outcome.ok and outcome.value is not None:
            return CartResult(cart=outcome.value, source="ai", outcome=outcome)
        logger.warning("Shopping cart task failed ({}), falling back to demo cart", outcome.error_category)
        return CartResult(cart=self.builder.build(meal_plan, supermarket, country), source="demo", outcome=outcome)


# ---- Assistant text ----------------------------------------------------------

def _money(v: float) -> str:
    return f"{v:.0f}" if float(v).is_integer() else f"{v:.2f}"


def render_meal_plan_message(result: MealPlanResult) -> str:
    plan = result.meal_plan
    summary = (
        f"**{plan.title}**\n{plan.description}\n\n"
        f"• {plan.days} days for {plan.people} people\n"
        f"• Estimated cost: ${_money(plan.estimated_cost.min)} - ${_money(plan.estimated_cost.max)}\n"
        f"• Difficulty: {plan.difficulty or 'Medium'}"
    )
    if result.source == "ai":
        return (
            "I've created a personalized meal plan for you using real-time market research! "
            f"Here's what I found:\n\n{summary}\n\n"
            f"The AI agent researched current prices from {len(plan.supermarkets)} different supermarkets "
            "to give you accurate cost estimates."
        )
    lead = "Here's a sample meal plan based on your request:"
    if result.outcome is not None and result.outcome.user_message:
        lead = f"{result.outcome.user_message}\n\nIn the meantime, here's a sample meal plan you can use:"
    return f"{lead}\n\n{summary}"
