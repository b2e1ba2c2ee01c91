"""Serving-size normalization."""

import re

from nutrition_estimator.domain.nutrition import ServingSpec

PHOTO_DEFAULT_GRAMS = 150.0
TEXT_DEFAULT_GRAMS = 100.0
DEFAULT_SERVING = "1 serving"

GRAMS_PER_UNIT: dict[str, float] = {
    "g": 1,
    "gram": 1,
    "grams": 1,
    "oz": 28.35,
    "ounce": 28.35,
    "ounces": 28.35,
    "cup": 240,
    "cups": 240,
    "tbsp": 15,
    "tablespoon": 15,
    "tablespoons": 15,
    "tsp": 5,
    "teaspoon": 5,
    "teaspoons": 5,
    "lb": 453.6,
    "lbs": 453.6,
    "pound": 453.6,
    "pounds": 453.6,
    "kg": 1000,
    "kilogram": 1000,
    "kilograms": 1000,
    "ml": 1,
    "milliliter": 1,
    "milliliters": 1,
    "l": 1000,
    "liter": 1000,
    "liters": 1000,
    "slice": 30,
    "slices": 30,
    "piece": 100,
    "pieces": 100,
    "serving": 150,
    "servings": 150,
    "medium": 150,
    "large": 200,
    "small": 100,
}

_SERVING_PATTERN = re.compile(r"^(\d+(?:\.\d+)?(?:\s*/\s*\d+(?:\.\d+)?)?)\s*(.*)$")


def normalize_serving(
    text: str | None, default_grams: float = PHOTO_DEFAULT_GRAMS
) -> ServingSpec:
    """Convert a serving expression such as ``"2 tbsp"`` or ``"150g"`` into grams.

    Unknown units and unparsable input fall back to ``default_grams`` instead of
    failing; serving sizes are estimates and should never block resolution.
    """
    serving_text = (text or "").strip() or DEFAULT_SERVING
    amount, unit = _split_serving(serving_text)
    factor = GRAMS_PER_UNIT.get(unit) if unit is not None else None
    if amount is None or factor is None or amount <= 0:
        return ServingSpec(text=serving_text, grams=default_grams, defaulted=True)
    return ServingSpec(text=serving_text, grams=float(round(amount * factor)))


def _split_serving(text: str) -> tuple[float | None, str | None]:
    match = _SERVING_PATTERN.match(text.lower())
    if not match:
        return None, None
    amount = _parse_amount(match.group(1))
    unit = match.group(2).strip().rstrip(".")
    return amount, unit


def _parse_amount(raw: str) -> float | None:
    numerator, _, denominator = raw.partition("/")
    try:
        value = float(numerator)
        if denominator:
            divisor = float(denominator)
            if divisor == 0:
                return None
            value /= divisor
    except ValueError:
        return None
    return value
