"""Weekly meal-plan generation through LiteLLM.

One completion call per request, no retries. The model is asked for a bare JSON
object keyed by day; a Markdown code fence around it is tolerated and stripped.
"""

import json
import logging
from typing import Any

from litellm import acompletion

from app.config import settings
from app.mealplan.prompts import MEAL_PLAN_PROMPT

logger = logging.getLogger(__name__)


class MealPlanFormatError(ValueError):
    """The model's reply was not a JSON object."""


class MealPlanGenerationError(RuntimeError):
    """The LLM provider call failed."""


def build_prompt(
    diet_type: str,
    calories: int,
    allergies: str | None = None,
    cuisine: str | None = None,
    snacks: bool = False,
) -> str:
    """Render the nutritionist prompt for one request."""
    return MEAL_PLAN_PROMPT.format(
        diet_type=diet_type,
        calories=calories,
        allergies=allergies or "none",
        cuisine=cuisine or "no preference",
        snacks_answer="yes" if snacks else "no",
        snacks_line="- Snacks\n" if snacks else "",
        meal_keys="Breakfast, Lunch, Dinner, Snacks" if snacks else "Breakfast, Lunch, Dinner",
        snacks_example=',\n    "Snacks": "Greek yogurt - 150 calories"' if snacks else "",
        snacks_example_2=',\n    "Snacks": "Almonds - 200 calories"' if snacks else "",
    )


def strip_code_fence(content: str) -> str:
    """Remove a leading ``` / ```json fence and its closing ``` if present."""
    text = content.strip()
    if not text.startswith("```"):
        return text

    first_newline = text.find("\n")
    text = text[first_newline + 1 :] if first_newline != -1 else ""
    if text.rstrip().endswith("```"):
        text = text.rstrip()[:-3]
    return text.strip()


def parse_meal_plan(content: str) -> dict[str, Any]:
    """Parse the model's reply into a day -> meals mapping.

    Raises:
        MealPlanFormatError: If the reply is not valid JSON or not an object.
    """
    try:
        parsed = json.loads(strip_code_fence(content))
    except json.JSONDecodeError as e:
        raise MealPlanFormatError(f"Reply is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise MealPlanFormatError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


async def generate_meal_plan(
    diet_type: str,
    calories: int,
    allergies: str | None = None,
    cuisine: str | None = None,
    snacks: bool = False,
) -> dict[str, Any]:
    """Ask the configured model for a 7-day plan and return it parsed.

    Raises:
        MealPlanGenerationError: If the completion call fails.
        MealPlanFormatError: If the reply cannot be parsed.
    """
    params: dict[str, Any] = {
        "model": settings.mealplan_llm_model,
        "messages": [
            {
                "role": "user",
                "content": build_prompt(diet_type, calories, allergies, cuisine, snacks),
            }
        ],
        "temperature": settings.mealplan_llm_temperature,
        "max_tokens": settings.mealplan_llm_max_tokens,
    }
    if settings.mealplan_llm_api_key:
        params["api_key"] = settings.mealplan_llm_api_key

    try:
        response = await acompletion(**params)
    except Exception as e:
        logger.exception("Meal plan completion failed (model=%s)", settings.mealplan_llm_model)
        raise MealPlanGenerationError(str(e)) from e

    content = response.choices[0].message.content or ""
    try:
        return parse_meal_plan(content)
    except MealPlanFormatError:
        logger.warning("Could not parse meal plan reply: %.200s", content)
        raise
