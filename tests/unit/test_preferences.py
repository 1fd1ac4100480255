import pytest

from diet_agent.core.preferences import (
    detect_budget_level,
    detect_diet_flags,
    detect_supermarket,
    extract_preferences,
    is_meal_plan_request,
    is_recipe_request,
    wants_suggestions,
)


def test_extracts_people_days_and_calories():
    prefs = extract_preferences("Make a meal plan for 3 people for 5 days at 2000 kcal")
    assert prefs.people == 3
    assert prefs.days == 5
    assert prefs.calories == 2000


def test_weeks_become_days():
    assert extract_preferences("plan 2 weeks of dinners").days == 14


@pytest.mark.parametrize(
    "text, budget",
    [("under $100 please", 100), ("a 80 dollars budget", 80), ("150 budget", 150), ("no money talk", None)],
)
def test_budget(text, budget):
    assert extract_preferences(text).budget == budget


def test_country_is_whole_word_and_first_hit_wins():
    assert extract_preferences("plus some snacks").country is None
    assert extract_preferences("shopping in the UK").country == "United Kingdom"
    assert extract_preferences("usa or canada").country == "United States"


def test_pronoun_us_is_not_a_country():
    assert extract_preferences("Make a meal plan for us, 4 people").country is None
    assert extract_preferences("shopping in the US").country == "United States"


def test_dietary_restrictions_keep_keyword_order():
    prefs = extract_preferences("High-Protein and VEGAN, maybe gluten-free")
    assert prefs.dietary_restrictions == ["vegan", "gluten-free", "high-protein"]


def test_nothing_found_is_empty():
    prefs = extract_preferences("hello there")
    assert prefs.is_empty()


def test_chat_detectors():
    assert detect_supermarket("walmart or maybe Whole Foods") == "whole foods"
    assert detect_supermarket("the corner shop") is None
    assert detect_budget_level("something cheap") == "low"
    assert detect_budget_level("cheap but gourmet") == "high"
    assert detect_diet_flags("vegan, low carb") == ["vegan", "keto"]


def test_intent_detectors():
    assert is_meal_plan_request("Can you make a meal plan?")
    assert not is_meal_plan_request("What is protein?")
    assert is_recipe_request("how to make lentil soup")
    assert wants_suggestions("any recommendation?")
