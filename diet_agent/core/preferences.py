# diet_agent/core/preferences.py
"""Keyword/regex extraction of planning intent from free text.

Every recognised pattern is listed in this module. Counts use numeric-prefix
matching ("4 people", "7 days"); tags use substring membership in fixed keyword
sets. Nothing here touches the network or any stored state.
"""
from __future__ import annotations

import re
from typing import List, Optional, Tuple

from .models import Preferences

PEOPLE_RE = re.compile(r"(\d+)\s*(?:people|persons?|ppl|family members?|members?)\b", re.I)
DAYS_RE = re.compile(r"(\d+)\s*days?\b", re.I)
WEEKS_RE = re.compile(r"(\d+)\s*weeks?\b", re.I)
CALORIES_RE = re.compile(r"(\d+)\s*(?:calories?|kcal)\b", re.I)
BUDGET_RES = (
    re.compile(r"\$\s*(\d+)"),
    re.compile(r"(\d+)\s*(?:dollars?|budget)\b", re.I),
)

# (keyword, canonical name); first match in this order wins.
# All-caps keywords are case-sensitive so the pronoun "us" is not a country.
COUNTRY_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("united states", "United States"),
    ("usa", "United States"),
    ("US", "United States"),
    ("united kingdom", "United Kingdom"),
    ("uk", "United Kingdom"),
    ("canada", "Canada"),
    ("australia", "Australia"),
    ("germany", "Germany"),
    ("france", "France"),
)

DIETARY_KEYWORDS: Tuple[str, ...] = (
    "vegetarian", "vegan", "keto", "paleo", "gluten-free",
    "dairy-free", "low-carb", "high-protein",
)

# chat-level diet flags (looser spellings than DIETARY_KEYWORDS)
DIET_FLAG_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("vegetarian", ("vegetarian",)),
    ("vegan", ("vegan",)),
    ("keto", ("keto", "low carb")),
    ("high_protein", ("high protein",)),
    ("gluten_free", ("gluten free",)),
)

SUPERMARKETS: Tuple[str, ...] = (
    "walmart", "tesco", "carrefour", "kroger", "target", "whole foods", "trader joe",
)

LOW_BUDGET_WORDS = ("budget", "cheap", "affordable")
HIGH_BUDGET_WORDS = ("premium", "gourmet")

MEAL_PLAN_KEYWORDS = ("meal plan", "meal planning", "diet plan", "weekly meal", "meal ideas", "plan for")
RECIPE_KEYWORDS = ("recipe", "show me", "view recipe", "cooking instructions", "how to make", "prepare")
SUGGESTION_KEYWORDS = ("meal plan", "diet plan", "food plan", "nutrition plan", "suggest", "recommendation")


def _first_int(pattern: re.Pattern, text: str) -> Optional[int]:
    m = pattern.search(text)
    return int(m.group(1)) if m else None


def _extract_days(text: str) -> Optional[int]:
    days = _first_int(DAYS_RE, text)
    if days is not None:
        return days
    weeks = _first_int(WEEKS_RE, text)
    return weeks * 7 if weeks is not None else None


def _extract_country(text: str) -> Optional[str]:
    for keyword, name in COUNTRY_KEYWORDS:
        flags = 0 if keyword.isupper() else re.I
        if re.search(rf"\b{re.escape(keyword)}\b", text, flags):
            return name
    return None


def _extract_budget(text: str) -> Optional[int]:
    for pattern in BUDGET_RES:
        value = _first_int(pattern, text)
        if value is not None:
            return value
    return None


def extract_preferences(text: str) -> Preferences:
    """Build a fresh Preferences from one message. Unmatched fields stay None."""
    lowered = text.lower()
    restrictions = [kw for kw in DIETARY_KEYWORDS if kw in lowered]
    return Preferences(
        people=_first_int(PEOPLE_RE, text),
        days=_extract_days(text),
        calories=_first_int(CALORIES_RE, text),
        country=_extract_country(text),
        dietary_restrictions=restrictions or None,
        budget=_extract_budget(text),
    )


def detect_supermarket(text: str) -> Optional[str]:
    """Last listed supermarket mentioned in the text."""
    lowered = text.lower()
    found = None
    for market in SUPERMARKETS:
        if market in lowered:
            found = market
    return found


def detect_budget_level(text: str) -> Optional[str]:
    lowered = text.lower()
    level = None
    if any(w in lowered for w in LOW_BUDGET_WORDS):
        level = "low"
    if any(w in lowered for w in HIGH_BUDGET_WORDS):
        level = "high"
    return level


def detect_diet_flags(text: str) -> List[str]:
    lowered = text.lower()
    return [flag for flag, words in DIET_FLAG_KEYWORDS if any(w in lowered for w in words)]


def _contains_any(text: str, keywords: Tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(k in lowered for k in keywords)


def is_meal_plan_request(text: str) -> bool:
    return _contains_any(text, MEAL_PLAN_KEYWORDS)


def is_recipe_request(text: str) -> bool:
    return _contains_any(text, RECIPE_KEYWORDS)


def wants_suggestions(text: str) -> bool:
    return _contains_any(text, SUGGESTION_KEYWORDS)
