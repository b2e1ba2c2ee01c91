"""Prompt texts sent to the generative oracles."""

_NUTRIENT_FIELDS_TEXT = (
    "- calories (total kcal), protein (grams), carbs (grams), fat (grams)\n"
    "- fiber (grams), sodium (milligrams), sugar (grams), cholesterol (milligrams)\n"
    "- vitaminA (mcg RAE), vitaminC (mg), vitaminD (mcg), vitaminE (mg), "
    "vitaminK (mcg)\n"
    "- vitaminB1 (mg), vitaminB2 (mg), vitaminB3 (mg), vitaminB6 (mg), "
    "vitaminB12 (mcg)\n"
    "- folate (mcg DFE), calcium (mg), iron (mg), magnesium (mg), zinc (mg), "
    "potassium (mg)\n"
)

ESTIMATE_SYSTEM_PROMPT = (
    "You are a nutrition expert. When given a food description, provide "
    "comprehensive nutritional information for the whole described serving.\n"
    "Always respond with a valid JSON object containing:\n"
    + _NUTRIENT_FIELDS_TEXT
    + "Use realistic USDA estimates. Use null for nutrients you cannot estimate. "
    "Format as JSON only."
)

CORRECTION_SYSTEM_PROMPT = (
    "You are a nutrition expert. Provide CORRECTED comprehensive nutritional "
    "information.\nRespond with a valid JSON object containing:\n"
    + _NUTRIENT_FIELDS_TEXT
    + "Ensure calories ≈ protein*4 + carbs*4 + fat*9. All values must be within "
    "normal food ranges. JSON only."
)

SEARCH_TERM_SYSTEM_PROMPT = (
    "You are a USDA nutrition database expert. Convert food descriptions into "
    "optimized USDA FoodData Central search queries.\n\n"
    "Respond ONLY with a valid JSON object, no prose, no markdown:\n"
    "{\n"
    '  "searchQuery": "primary USDA search query (2-5 words, USDA naming format)"\n'
    "}\n\n"
    "USDA naming conventions:\n"
    '- Use comma-separated descriptors: "Chicken, breast, cooked, grilled"\n'
    '- For generic foods: "Apple, raw" not "fresh apple"\n'
    "- Omit quantity/serving info from searchQuery"
)

DECOMPOSE_SYSTEM_PROMPT = (
    "You are a food decomposition expert. Given a dish/meal name and serving "
    "size, break it down into its individual ingredient components with "
    "estimated quantities.\n\n"
    "Respond ONLY with a valid JSON object:\n"
    '{"isComplex": true/false, "ingredients": [{"name": "ingredient name '
    '(USDA-searchable)", "estimatedServing": "amount unit"}, ...]}\n\n'
    "Set isComplex to false if this is already a simple, single ingredient "
    '(e.g., "apple", "chicken breast", "white rice").\n'
    'Set isComplex to true for mixed dishes (e.g., "pasta carbonara", '
    '"chicken stir fry", "Caesar salad").\n\n'
    "For complex dishes, list 2-8 main ingredients with realistic quantities "
    "that add up to the total serving.\n"
    "Use common USDA-searchable names for each ingredient."
)

FOOD_DETECTION_PROMPT = (
    "You are a food identification expert. Analyze this food photo and identify "
    "EVERY distinct food item visible.\n\n"
    "For each food item, provide:\n"
    '- "name": A clear, common food name suitable for searching a nutrition '
    'database (e.g., "grilled chicken breast", "white rice", "steamed broccoli")\n'
    '- "estimatedServing": The estimated serving size with a unit (e.g., "6 oz", '
    '"1 cup", "150g", "2 slices")\n'
    '- "isComplex": true if this is a mixed/composite dish with multiple '
    "ingredients (e.g., salad, stir fry, pasta dish, sandwich), false if it's a "
    "simple single food\n\n"
    "Respond ONLY with a valid JSON object:\n"
    '{"foods": [{"name": "food name", "estimatedServing": "amount unit", '
    '"isComplex": false}, ...]}\n\n'
    "If no food is visible in the image, respond with: "
    '{"foods": [], "error": "No food detected in image"}\n'
    "Be specific with food names. Identify ALL distinct items, up to 25 foods."
)


def estimate_prompt(description: str) -> str:
    """User prompt for a full nutrient estimate."""
    return f"Nutritional content of: {description}? JSON format."


def search_term_prompt(description: str, serving: str) -> str:
    """User prompt asking for a better reference-database query."""
    return f'Food: "{description}" | Serving: {serving}'


def decompose_prompt(name: str, serving: str) -> str:
    """User prompt asking for a dish's ingredients."""
    return f"Decompose: {serving} of {name}"
