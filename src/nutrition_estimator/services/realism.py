"""Realism validation for per-serving nutrition values.

Every profile, whether it came from the reference database or an oracle
estimate, is checked before it is accepted:

1. calories are present and within a per-serving range,
2. macros agree with calories (protein*4 + carbs*4 + fat*9),
3. each nutrient is inside an absolute per-serving band,
4. calories are not reported without any macronutrients.

An invalid estimate gets exactly one correction round-trip through the oracle.
"""

import logging
from dataclasses import dataclass

from nutrition_estimator.domain.nutrition import NutritionProfile
from nutrition_estimator.domain.validation import ValidationResult
from nutrition_estimator.services import prompts
from nutrition_estimator.services.oracle import Oracle


@dataclass(frozen=True)
class ServingLimit:
    """Absolute bounds for a single serving of any food."""

    min: float
    max: float


SERVING_LIMITS: dict[str, ServingLimit] = {
    "calories": ServingLimit(1, 3000),
    "protein": ServingLimit(0, 200),
    "carbs": ServingLimit(0, 500),
    "fat": ServingLimit(0, 250),
    "fiber": ServingLimit(0, 80),
    "sodium": ServingLimit(0, 8000),
    "sugar": ServingLimit(0, 300),
    "cholesterol": ServingLimit(0, 2000),
    "vitamin_a": ServingLimit(0, 15000),
    "vitamin_c": ServingLimit(0, 3000),
    "vitamin_d": ServingLimit(0, 250),
    "vitamin_e": ServingLimit(0, 200),
    "vitamin_k": ServingLimit(0, 1500),
    "vitamin_b1": ServingLimit(0, 15),
    "vitamin_b2": ServingLimit(0, 15),
    "vitamin_b3": ServingLimit(0, 100),
    "vitamin_b6": ServingLimit(0, 25),
    "vitamin_b12": ServingLimit(0, 500),
    "folate": ServingLimit(0, 2000),
    "calcium": ServingLimit(0, 3000),
    "iron": ServingLimit(0, 50),
    "magnesium": ServingLimit(0, 800),
    "zinc": ServingLimit(0, 80),
    "potassium": ServingLimit(0, 5000),
}

CALORIE_CONSISTENCY_TOLERANCE = 0.40

_logger = logging.getLogger(__name__)


def validate_nutrition_realism(nutrition: NutritionProfile | None) -> ValidationResult:
    """Check a profile against physiological bounds and macro consistency."""
    if nutrition is None:
        return ValidationResult(issues=("No nutrition data provided",))

    issues: list[str] = []
    calories = nutrition.calories
    calorie_limit = SERVING_LIMITS["calories"]
    if calories is None:
        issues.append("Missing calorie value")
    elif calories < calorie_limit.min:
        issues.append(f"Calories too low ({_fmt(calories)} kcal) for a real food serving")
    elif calories > calorie_limit.max:
        issues.append(
            f"Calories unrealistically high ({_fmt(calories)} kcal) for a single serving"
        )

    computed = nutrition.macro_calories()
    if calories is not None and calories > 0 and computed > 0:
        ratio = abs(computed - calories) / calories
        if ratio > CALORIE_CONSISTENCY_TOLERANCE:
            issues.append(
                f"Macro-calorie mismatch: macros suggest {round(computed)} kcal "
                f"but reported {_fmt(calories)} kcal ({round(ratio * 100)}% off)"
            )

    for field_name, limit in SERVING_LIMITS.items():
        if field_name == "calories":
            continue
        value = nutrition.get(field_name)
        if value is None:
            continue
        if value < limit.min:
            issues.append(f"{field_name} below minimum ({_fmt(value)} < {_fmt(limit.min)})")
        if value > limit.max:
            issues.append(f"{field_name} exceeds maximum ({_fmt(value)} > {_fmt(limit.max)})")

    if (
        calories is not None
        and calories > 10
        and not nutrition.protein
        and not nutrition.carbs
        and not nutrition.fat
    ):
        issues.append("Calories reported but all macros are zero")

    return ValidationResult(issues=tuple(issues))


def build_correction_prompt(food_description: str, issues: tuple[str, ...]) -> str:
    """Describe what was wrong with an estimate so the retry has specific guidance."""
    numbered = "\n".join(f"{index}. {issue}" for index, issue in enumerate(issues, 1))
    return (
        f'Your previous nutrition estimate for "{food_description}" had the '
        f"following problems:\n{numbered}\n\n"
        "Please provide CORRECTED nutrition values that are realistic and "
        "consistent. Ensure: calories ≈ protein*4 + carbs*4 + fat*9, all values "
        "are within normal food ranges, and micronutrients are plausible for this "
        "food.\nRespond with corrected JSON only."
    )


@dataclass(frozen=True)
class RealismOutcome:
    """Validated profile, possibly replaced by a single correction attempt."""

    nutrition: NutritionProfile
    validation: ValidationResult
    corrected: bool = False


@dataclass
class RealismService:
    """Validates profiles and drives the single correction retry."""

    oracle: Oracle

    async def validate_with_correction(
        self, nutrition: NutritionProfile, food_description: str
    ) -> RealismOutcome:
        """Validate and, on failure, ask the oracle once for corrected values.

        When the oracle answers, its profile is kept whether or not it passes;
        the original is only kept when the correction call yields nothing.
        """
        validation = validate_nutrition_realism(nutrition)
        if validation.valid:
            return RealismOutcome(nutrition=nutrition, validation=validation)

        _logger.info(
            'Realism failed for "%s": %s', food_description, "; ".join(validation.issues)
        )
        payload = await self.oracle.ask_json(
            build_correction_prompt(food_description, validation.issues),
            system_prompt=prompts.CORRECTION_SYSTEM_PROMPT,
            temperature=0.1,
            action="correction",
        )
        if payload is None:
            return RealismOutcome(nutrition=nutrition, validation=validation)

        retry_nutrition = NutritionProfile.from_mapping(payload)
        retry_validation = validate_nutrition_realism(retry_nutrition)
        if retry_validation.valid:
            _logger.info('Realism retry succeeded for "%s"', food_description)
        else:
            _logger.warning(
                'Realism retry also failed for "%s": %s',
                food_description,
                "; ".join(retry_validation.issues),
            )
        return RealismOutcome(
            nutrition=retry_nutrition, validation=retry_validation, corrected=True
        )


def _fmt(value: float) -> str:
    """Format a number without a trailing ``.0``."""
    return str(int(value)) if float(value).is_integer() else str(round(value, 2))
