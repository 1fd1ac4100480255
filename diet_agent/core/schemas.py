# diet_agent/core/schemas.py
"""JSON Schemas sent as `structuredOutput` with each task.

These are static per task kind. Bump SCHEMA_VERSION whenever either shape changes
so task metadata tells old and new payloads apart.
"""
from __future__ import annotations

from typing import Any, Dict

SCHEMA_VERSION = 1

_NUMBER = {"type": "number"}
_STRING = {"type": "string"}
_STRING_LIST = {"type": "array", "items": _STRING}

_MEAL = {
    "type": "object",
    "properties": {
        "name": _STRING,
        "description": _STRING,
        "prepTime": _NUMBER,
        "cookTime": _NUMBER,
        "servings": _NUMBER,
        "calories": _NUMBER,
        "protein": _NUMBER,
        "carbs": _NUMBER,
        "fat": _NUMBER,
        "ingredients": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": _STRING,
                    "quantity": _STRING,
                    "unit": _STRING,
                    "estimatedPrice": _NUMBER,
                    "supermarketLinks": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "supermarket": _STRING,
                                "url": _STRING,
                                "price": _NUMBER,
                                "imageUrl": _STRING,
                            },
                        },
                    },
                },
            },
        },
        "instructions": _STRING_LIST,
        "tips": _STRING_LIST,
        "imageUrl": _STRING,
        "tags": _STRING_LIST,
    },
}

MEAL_PLAN_SCHEMA: Dict[str, Any] = {
    "$id": f"diet-agent/meal-plan/v{SCHEMA_VERSION}",
    "type": "object",
    "properties": {
        "id": _STRING,
        "title": _STRING,
        "description": _STRING,
        "days": _NUMBER,
        "people": _NUMBER,
        "totalCalories": _NUMBER,
        "totalProtein": _NUMBER,
        "totalCarbs": _NUMBER,
        "totalFat": _NUMBER,
        "difficulty": {"type": "string", "enum": ["Easy", "Medium", "Hard"]},
        "meals": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "day": _NUMBER,
                    "breakfast": {"$ref": "#/$defs/meal"},
                    "lunch": {"$ref": "#/$defs/meal"},
                    "dinner": {"$ref": "#/$defs/meal"},
                },
            },
        },
        "estimatedCost": {
            "type": "object",
            "properties": {"min": _NUMBER, "max": _NUMBER, "currency": _STRING},
        },
        "supermarkets": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": _STRING,
                    "country": _STRING,
                    "website": _STRING,
                    "deliveryFee": _NUMBER,
                },
            },
        },
        "nutritionalSummary": {
            "type": "object",
            "properties": {
                "dailyCalories": _NUMBER,
                "dailyProtein": _NUMBER,
                "dailyCarbs": _NUMBER,
                "dailyFat": _NUMBER,
            },
        },
    },
    "$defs": {"meal": _MEAL},
    "required": [
        "id", "title", "description", "days", "people", "meals",
        "estimatedCost", "supermarkets", "nutritionalSummary",
    ],
}

SHOPPING_CART_SCHEMA: Dict[str, Any] = {
    "$id": f"diet-agent/shopping-cart/v{SCHEMA_VERSION}",
    "type": "object",
    "properties": {
        "id": _STRING,
        "mealPlanId": _STRING,
        "totalItems": _NUMBER,
        "totalCost": _NUMBER,
        "currency": _STRING,
        "supermarket": _STRING,
        "country": _STRING,
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": _STRING,
                    "name": _STRING,
                    "quantity": _STRING,
                    "unit": _STRING,
                    "price": _NUMBER,
                    "totalPrice": _NUMBER,
                    "imageUrl": _STRING,
                    "productUrl": _STRING,
                    "category": _STRING,
                    "nutritionalInfo": {
                        "type": "object",
                        "properties": {
                            "calories": _NUMBER,
                            "protein": _NUMBER,
                            "carbs": _NUMBER,
                            "fat": _NUMBER,
                        },
                    },
                },
                "required": ["id", "name", "quantity", "price", "productUrl", "category"],
            },
        },
        "deliveryFee": _NUMBER,
        "estimatedDeliveryTime": _STRING,
        "subtotal": _NUMBER,
        "tax": _NUMBER,
        "grandTotal": _NUMBER,
        "screenshots": _STRING_LIST,
        "createdAt": _STRING,
    },
    "required": [
        "id", "mealPlanId", "totalItems", "totalCost", "currency", "supermarket",
        "country", "items", "subtotal", "grandTotal", "createdAt",
    ],
}
