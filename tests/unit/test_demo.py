from diet_agent.core.models import MealPlan, Preferences, ShoppingCart
from diet_agent.core.preferences import extract_preferences
from diet_agent.services.demo import DemoCartBuilder, DemoMealPlanner


def test_plan_follows_preferences():
    plan = DemoMealPlanner().plan(Preferences(days=3, people=2, dietary_restrictions=["vegan"]))
    assert plan.days == 3
    assert plan.people == 2
    assert len(plan.meals) == 3
    assert plan.title == "Plant-Based Power"
    assert plan.id == "demo-plant_based-3x2"


def test_plan_defaults_and_is_deterministic():
    a = DemoMealPlanner().plan()
    b = DemoMealPlanner().plan(Preferences())
    assert a == b
    assert (a.days, a.people) == (7, 4)


def test_huge_counts_are_clamped():
    plan = DemoMealPlanner().plan(extract_preferences("meal plan for 900 people for 20000 days"))
    assert (plan.days, plan.people) == (31, 20)
    assert len(plan.meals) == 31


def test_budget_caps_estimated_cost():
    plan = DemoMealPlanner().plan(Preferences(days=7, people=4, budget=50))
    assert plan.estimated_cost.min == 50


def test_plan_round_trips_through_camel_case_json():
    plan = DemoMealPlanner().plan(Preferences(days=1, people=1))
    assert MealPlan.model_validate_json(plan.model_dump_json(by_alias=True)) == plan


def test_cart_totals_add_up(meal_plan):
    cart = DemoCartBuilder().build(meal_plan, "Walmart", "United States")
    assert isinstance(cart, ShoppingCart)
    assert cart.meal_plan_id == meal_plan.id
    assert cart.total_items == len(cart.items)
    assert len({i.name for i in cart.items}) == len(cart.items)
    assert cart.grand_total == round(cart.subtotal + cart.tax + cart.delivery_fee, 2)
