from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from diet_agent.core.models import (
    CartItem,
    DayMeals,
    EstimatedCost,
    Meal,
    MealIngredient,
    MealPlan,
    NutritionalSummary,
    Preferences,
    ShoppingCart,
    Supermarket,
)

DEFAULT_DAYS = 7
DEFAULT_PEOPLE = 4
# same bounds as the diet form
MAX_DAYS = 31
MAX_PEOPLE = 20
DEFAULT_COUNTRY = "United States"
COST_PER_PERSON_DAY = 4.5

# name -> (calories, protein, carbs, fat, ingredients)
_MealSpec = Tuple[int, int, int, int, List[Tuple[str, str, str]]]

_MEALS: Dict[str, _MealSpec] = {
    "Greek Yogurt with Honey & Berries": (310, 18, 42, 8, [("Greek yogurt", "1", "cup"), ("Honey", "1", "tbsp"), ("Mixed berries", "1/2", "cup")]),
    "Oatmeal with Nuts & Berries": (350, 11, 52, 12, [("Rolled oats", "1/2", "cup"), ("Walnuts", "2", "tbsp"), ("Mixed berries", "1/2", "cup")]),
    "Avocado & Egg Toast": (380, 17, 30, 21, [("Whole grain bread", "2", "slices"), ("Avocado", "1/2", "piece"), ("Eggs", "2", "piece")]),
    "Tofu Scramble": (290, 21, 12, 17, [("Firm tofu", "150", "g"), ("Spinach", "1", "cup"), ("Turmeric", "1/2", "tsp")]),
    "Egg White Omelet": (240, 26, 6, 11, [("Egg whites", "5", "piece"), ("Spinach", "1", "cup"), ("Feta cheese", "30", "g")]),
    "Mediterranean Quinoa Salad": (450, 14, 58, 18, [("Quinoa", "1/2", "cup"), ("Cucumber", "1/2", "piece"), ("Cherry tomatoes", "1", "cup"), ("Olive oil", "1", "tbsp")]),
    "Chickpea & Vegetable Soup": (390, 16, 55, 10, [("Chickpeas", "1", "can"), ("Carrots", "2", "piece"), ("Vegetable broth", "2", "cup")]),
    "Lentil Soup with Bread": (420, 22, 64, 7, [("Red lentils", "1/2", "cup"), ("Onion", "1", "piece"), ("Whole grain bread", "1", "slices")]),
    "Grilled Chicken Salad": (430, 42, 14, 22, [("Chicken breast", "200", "g"), ("Mixed greens", "2", "cup"), ("Olive oil", "1", "tbsp")]),
    "Grilled Salmon with Lemon & Herbs": (520, 38, 8, 34, [("Salmon fillets", "180", "g"), ("Lemon", "1", "piece"), ("Fresh dill", "2", "tbsp"), ("Garlic", "2", "cloves")]),
    "Herb-Crusted Chicken with Roasted Vegetables": (560, 45, 32, 24, [("Chicken breast", "200", "g"), ("Zucchini", "1", "piece"), ("Bell pepper", "1", "piece")]),
    "Black Bean Burgers": (510, 24, 68, 14, [("Black beans", "1", "can"), ("Whole grain buns", "2", "piece"), ("Red onion", "1/2", "piece")]),
    "Lentil Shepherd's Pie": (540, 23, 78, 13, [("Green lentils", "1", "cup"), ("Potatoes", "3", "piece"), ("Carrots", "2", "piece")]),
    "Steak & Asparagus": (610, 52, 10, 38, [("Sirloin steak", "220", "g"), ("Asparagus", "1", "bunch"), ("Butter", "1", "tbsp")]),
}

# theme -> (title, description, difficulty, breakfasts, lunches, dinners)
_THEMES: Dict[str, Tuple[str, str, str, List[str], List[str], List[str]]] = {
    "mediterranean": (
        "Mediterranean Delight",
        "Fresh, healthy meals inspired by Mediterranean cuisine with plenty of vegetables, fish, and olive oil.",
        "Medium",
        ["Greek Yogurt with Honey & Berries", "Oatmeal with Nuts & Berries", "Avocado & Egg Toast"],
        ["Mediterranean Quinoa Salad", "Chickpea & Vegetable Soup", "Lentil Soup with Bread"],
        ["Grilled Salmon with Lemon & Herbs", "Herb-Crusted Chicken with Roasted Vegetables"],
    ),
    "plant_based": (
        "Plant-Based Power",
        "Delicious vegetarian meals packed with plant protein and colorful vegetables.",
        "Easy",
        ["Tofu Scramble", "Oatmeal with Nuts & Berries"],
        ["Chickpea & Vegetable Soup", "Mediterranean Quinoa Salad", "Lentil Soup with Bread"],
        ["Black Bean Burgers", "Lentil Shepherd's Pie"],
    ),
    "high_protein": (
        "High-Protein Power",
        "Protein-rich, lower-carb meals for active lifestyles.",
        "Medium",
        ["Egg White Omelet", "Avocado & Egg Toast"],
        ["Grilled Chicken Salad"],
        ["Steak & Asparagus", "Grilled Salmon with Lemon & Herbs"],
    ),
}

_PRICES = {
    "salmon": 12.99, "steak": 14.99, "chicken": 8.49, "yogurt": 5.49, "tofu": 2.99,
    "lentils": 2.49, "beans": 1.29, "chickpeas": 1.29, "quinoa": 4.99, "oats": 3.49,
    "eggs": 3.99, "egg whites": 4.49, "olive oil": 8.99, "feta": 4.29, "bread": 3.49,
    "buns": 3.29, "walnuts": 5.99, "berries": 4.99, "avocado": 1.49,
}

_CATEGORIES = (
    (("salmon",), "Seafood"),
    (("steak", "chicken"), "Meat & Poultry"),
    (("yogurt", "feta", "butter"), "Dairy"),
    (("eggs", "egg whites"), "Eggs"),
    (("lentils", "beans", "chickpeas", "tofu"), "Legumes & Pulses"),
    (("quinoa", "oats", "bread", "buns"), "Grains & Cereals"),
    (("olive oil",), "Oils & Fats"),
    (("walnuts",), "Nuts & Seeds"),
    (("dill", "turmeric", "garlic"), "Herbs & Spices"),
)


def _theme_for(preferences: Preferences) -> str:
    tags = set(preferences.dietary_restrictions or [])
    if tags & {"vegetarian", "vegan"}:
        return "plant_based"
    if tags & {"keto", "low-carb", "high-protein", "paleo"}:
        return "high_protein"
    return "mediterranean"


def _make_meal(name: str, people: int) -> Meal:
    calories, protein, carbs, fat, ingredients = _MEALS[name]
    return Meal(
        name=name,
        description=f"{name}, scaled for {people}.",
        prep_time=15,
        cook_time=20,
        servings=people,
        calories=calories,
        protein=protein,
        carbs=carbs,
        fat=fat,
        ingredients=[
            MealIngredient(name=n, quantity=q, unit=u, estimated_price=_price_of(n)) for n, q, u in ingredients
        ],
        instructions=[
            "Prep ingredients (wash, chop as needed).",
            "Cook the main component until done to your liking.",
            "Season to taste and serve warm.",
        ],
        tags=["demo"],
    )


def _price_of(name: str) -> float:
    lowered = name.lower()
    for key, price in _PRICES.items():
        if key in lowered:
            return price
    return 2.99


def _category_of(name: str) -> str:
    lowered = name.lower()
    for keys, category in _CATEGORIES:
        if any(k in lowered for k in keys):
            return category
    return "Produce"


class DemoMealPlanner:
    """Offline fallback planner that builds a deterministic plan from Preferences.

    Used when the remote agent is unavailable or keeps failing, so a meal-plan
    request always ends with a usable plan instead of a spinner.
    """

    def plan(self, preferences: Optional[Preferences] = None) -> MealPlan:
        prefs = preferences or Preferences()
        days = min(prefs.days or DEFAULT_DAYS, MAX_DAYS)
        people = min(prefs.people or DEFAULT_PEOPLE, MAX_PEOPLE)
        country = prefs.country or DEFAULT_COUNTRY
        theme = _theme_for(prefs)
        title, description, difficulty, breakfasts, lunches, dinners = _THEMES[theme]

        schedule: List[DayMeals] = []
        for i in range(days):
            schedule.append(DayMeals(
                day=i + 1,
                breakfast=_make_meal(breakfasts[i % len(breakfasts)], people),
                lunch=_make_meal(lunches[i % len(lunches)], people),
                dinner=_make_meal(dinners[i % len(dinners)], people),
            ))

        daily = [sum(m.calories for m in d.all_meals()) for d in schedule]
        daily_protein = [sum(m.protein for m in d.all_meals()) for d in schedule]
        daily_carbs = [sum(m.carbs for m in d.all_meals()) for d in schedule]
        daily_fat = [sum(m.fat for m in d.all_meals()) for d in schedule]

        base_cost = round(COST_PER_PERSON_DAY * days * people, 2)
        if prefs.budget is not None:
            base_cost = min(base_cost, float(prefs.budget))

        return MealPlan(
            id=f"demo-{theme}-{days}x{people}",
            title=title,
            description=description,
            days=days,
            people=people,
            total_calories=sum(daily),
            total_protein=sum(daily_protein),
            total_carbs=sum(daily_carbs),
            total_fat=sum(daily_fat),
            difficulty=difficulty,
            meals=schedule,
            estimated_cost=EstimatedCost(min=base_cost, max=round(base_cost * 1.25, 2), currency="USD"),
            supermarkets=[
                Supermarket(name="Whole Foods", country=country, website="https://www.wholefoodsmarket.com", delivery_fee=5.99),
                Supermarket(name="Walmart", country=country, website="https://www.walmart.com", delivery_fee=0),
            ],
            nutritional_summary=NutritionalSummary(
                daily_calories=round(sum(daily) / days),
                daily_protein=round(sum(daily_protein) / days),
                daily_carbs=round(sum(daily_carbs) / days),
                daily_fat=round(sum(daily_fat) / days),
            ),
        )


class DemoCartBuilder:
    """Offline fallback cart: one line per distinct ingredient, priced from a fixed table."""

    def build(self, meal_plan: MealPlan, supermarket: str, country: str) -> ShoppingCart:
        counts: Dict[str, int] = {}
        for ing in meal_plan.ingredients():
            counts[ing.name] = counts.get(ing.name, 0) + 1

        items: List[CartItem] = []
        for idx, name in enumerate(sorted(counts, key=str.lower), start=1):
            price = _price_of(name)
            # one pack covers roughly two servings of four people
            packs = max(1, -(-counts[name] * meal_plan.people // 8))
            items.append(CartItem(
                id=f"demo-item-{idx}",
                name=name,
                quantity=str(packs),
                unit="pack",
                price=price,
                total_price=round(price * packs, 2),
                product_url="#",
                category=_category_of(name),
            ))

        subtotal = round(sum(i.total_price or 0 for i in items), 2)
        delivery_fee = 5.99
        tax = round(subtotal * 0.08, 2)
        return ShoppingCart(
            id=f"demo-cart-{meal_plan.id}",
            meal_plan_id=meal_plan.id,
            total_items=len(items),
            total_cost=subtotal,
            currency="USD",
            supermarket=supermarket,
            country=country,
            items=items,
            delivery_fee=delivery_fee,
            estimated_delivery_time="2-3 hours",
            subtotal=subtotal,
            tax=tax,
            grand_total=round(subtotal + tax + delivery_fee, 2),
            created_at=datetime.utcnow().isoformat(),
        )
