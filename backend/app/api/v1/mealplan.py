"""Meal-plan endpoint — AI-generated weekly plans for subscribers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import require_paid_access
from app.mealplan.generator import MealPlanFormatError, MealPlanGenerationError, generate_meal_plan
from app.models.profile import Profile
from app.schemas.mealplan import MealPlanRequest, MealPlanResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/mealplan", tags=["mealplan"])


@router.post("", response_model=MealPlanResponse)
async def create_meal_plan(
    body: MealPlanRequest,
    profile: Profile = Depends(require_paid_access),
) -> MealPlanResponse:
    """Generate a 7-day meal plan (requires an active subscription)."""
    try:
        plan = await generate_meal_plan(
            diet_type=body.diet_type,
            calories=body.calories,
            allergies=body.allergies,
            cuisine=body.cuisine,
            snacks=body.snacks,
        )
    except MealPlanFormatError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to parse meal plan. Please try again.",
        ) from e
    except MealPlanGenerationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate meal plan. Please try again later.",
        ) from e

    logger.info("Generated meal plan for user %s (%d days)", profile.user_id, len(plan))
    return MealPlanResponse(meal_plan=plan)
