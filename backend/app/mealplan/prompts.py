"""Prompt template for the weekly meal-plan generator."""

MEAL_PLAN_PROMPT = """You are a professional nutritionist. Create a 7-day meal plan for an \
individual following a {diet_type} diet aiming for {calories} calories per day.

Allergies or restrictions: {allergies}.
Preferred cuisine: {cuisine}.
Snacks included: {snacks_answer}.

For each day, provide:
- Breakfast
- Lunch
- Dinner
{snacks_line}
Use simple ingredients and provide brief instructions. Include approximate calorie counts \
for each meal.

Structure the response as a JSON object where each day is a key, and each meal \
({meal_keys}) is a sub-key. Example:

{{
  "Monday": {{
    "Breakfast": "Oatmeal with fruits - 350 calories",
    "Lunch": "Grilled chicken salad - 500 calories",
    "Dinner": "Steamed vegetables with quinoa - 600 calories"{snacks_example}
  }},
  "Tuesday": {{
    "Breakfast": "Smoothie bowl - 300 calories",
    "Lunch": "Turkey sandwich - 450 calories",
    "Dinner": "Baked salmon with asparagus - 700 calories"{snacks_example_2}
  }}
}}

Return just the JSON with no extra commentary and no backticks.
"""
