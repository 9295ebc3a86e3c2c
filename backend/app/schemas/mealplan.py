"""Pydantic v2 schemas for meal-plan generation."""

from typing import Any

from pydantic import Field

from app.schemas.billing import CamelModel


class MealPlanRequest(CamelModel):
    """Preferences for a 7-day meal plan."""

    diet_type: str = Field(min_length=1, max_length=100)
    calories: int = Field(gt=0, le=10000)
    allergies: str | None = Field(default=None, max_length=500)
    cuisine: str | None = Field(default=None, max_length=100)
    snacks: bool = False


class MealPlanResponse(CamelModel):
    """Generated plan keyed by day, then by meal slot."""

    meal_plan: dict[str, Any]
