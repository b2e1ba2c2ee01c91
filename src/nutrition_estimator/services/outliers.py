"""Micronutrient outlier detection and auto-correction.

Runs after realism validation. Three passes:

1. per-nutrient: values far above a typical serving maximum are flagged, and
   the extreme ones clamped;
2. cross-nutrient: contradictions between related nutrients (sugar above total
   carbs, protein with no calories, ...) are reported and, where unambiguous,
   corrected on top of the first pass;
3. meal-level: totals across all foods are compared with daily reference
   intakes. This pass is advisory and never corrects anything.

Severity levels: ``auto_correct`` (obviously wrong, clamped), ``warning``
(unusual, surfaced) and ``info`` (slightly elevated, logged only).
"""

import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace

from nutrition_estimator.domain.nutrition import (
    NutritionProfile,
    round_nutrient,
    wire_name,
)
from nutrition_estimator.domain.validation import (
    AutoCorrection,
    CrossNutrientIssue,
    FlaggedNutrient,
    FlaggedTotal,
    MealAggregate,
    OutlierReport,
    Severity,
)
from nutrition_estimator.services.realism import SERVING_LIMITS

# Tighter than SERVING_LIMITS; exceeding these starts an outlier investigation.
TYPICAL_SERVING_MAX: dict[str, float] = {
    "calories": 1200,
    "protein": 80,
    "carbs": 200,
    "fat": 80,
    "fiber": 30,
    "sodium": 3000,
    "sugar": 100,
    "cholesterol": 800,
    "vitamin_a": 5000,
    "vitamin_c": 500,
    "vitamin_d": 50,
    "vitamin_e": 30,
    "vitamin_k": 600,
    "vitamin_b1": 5,
    "vitamin_b2": 5,
    "vitamin_b3": 40,
    "vitamin_b6": 10,
    "vitamin_b12": 100,
    "folate": 800,
    "calcium": 1500,
    "iron": 25,
    "magnesium": 400,
    "zinc": 30,
    "potassium": 2000,
}

# Adult daily reference intakes, used only for the meal-level pass.
DAILY_REFERENCE_INTAKE: dict[str, float] = {
    "calories": 2000,
    "protein": 50,
    "carbs": 275,
    "fat": 78,
    "fiber": 28,
    "sodium": 2300,
    "sugar": 50,
    "cholesterol": 300,
    "vitamin_a": 900,
    "vitamin_c": 90,
    "vitamin_d": 20,
    "vitamin_e": 15,
    "vitamin_k": 120,
    "vitamin_b1": 1.2,
    "vitamin_b2": 1.3,
    "vitamin_b3": 16,
    "vitamin_b6": 1.7,
    "vitamin_b12": 2.4,
    "folate": 400,
    "calcium": 1000,
    "iron": 18,
    "magnesium": 420,
    "zinc": 11,
    "potassium": 4700,
}

AUTO_CORRECT_RATIO = 5.0
WARNING_RATIO = 3.0
INFO_RATIO = 2.0
MEAL_DRI_THRESHOLD = 2.0

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NutrientRelationship:
    """A rule relating two or more nutrients."""

    name: str
    message: str
    severity: Severity
    check: Callable[[NutritionProfile], bool]
    correct: Callable[[NutritionProfile], dict[str, float]] | None = None


def _above(value: float | None, threshold: float) -> bool:
    return value is not None and value > threshold


def _below(value: float | None, threshold: float) -> bool:
    return value is not None and value < threshold


def _negligible(value: float | None, threshold: float) -> bool:
    return value is None or value < threshold


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _calories_from_macros(nutrition: NutritionProfile) -> dict[str, float]:
    return {"calories": float(_round_half_up(nutrition.macro_calories()))}


def _exceeds_carbs(field_name: str) -> Callable[[NutritionProfile], bool]:
    def check(nutrition: NutritionProfile) -> bool:
        value = nutrition.get(field_name)
        carbs = nutrition.carbs
        return value is not None and carbs is not None and value > carbs * 1.1

    return check


def _cap_at_carbs(field_name: str) -> Callable[[NutritionProfile], dict[str, float]]:
    def correct(nutrition: NutritionProfile) -> dict[str, float]:
        return {field_name: math.floor((nutrition.carbs or 0.0) * 10) / 10}

    return correct


NUTRIENT_RELATIONSHIPS: tuple[NutrientRelationship, ...] = (
    NutrientRelationship(
        name="High protein but zero calories",
        message="Protein is high but calories are near zero, likely a data error",
        severity="auto_correct",
        check=lambda n: _above(n.protein, 20) and (n.calories or 0.0) < 10,
        correct=_calories_from_macros,
    ),
    NutrientRelationship(
        name="High fat but zero calories",
        message="Fat is high but calories are near zero, likely a data error",
        severity="auto_correct",
        check=lambda n: _above(n.fat, 10) and (n.calories or 0.0) < 10,
        correct=_calories_from_macros,
    ),
    NutrientRelationship(
        name="Extreme vitamin A without other fat-soluble vitamins",
        message=(
            "Extremely high Vitamin A with negligible other fat-soluble vitamins, "
            "an unusual combination"
        ),
        severity="warning",
        check=lambda n: _above(n.vitamin_a, 3000)
        and _negligible(n.vitamin_d, 1)
        and _negligible(n.vitamin_e, 0.5)
        and _negligible(n.vitamin_k, 5),
    ),
    NutrientRelationship(
        name="High iron without protein",
        message="Very high iron with virtually no protein, unusual for most foods",
        severity="warning",
        check=lambda n: _above(n.iron, 15) and _below(n.protein, 2),
    ),
    NutrientRelationship(
        name="Sugar exceeds total carbs",
        message="Sugar exceeds total carbohydrates; sugar is a subset of carbs",
        severity="auto_correct",
        check=_exceeds_carbs("sugar"),
        correct=_cap_at_carbs("sugar"),
    ),
    NutrientRelationship(
        name="Fiber exceeds total carbs",
        message="Fiber exceeds total carbohydrates; fiber is a subset of carbs",
        severity="auto_correct",
        check=_exceeds_carbs("fiber"),
        correct=_cap_at_carbs("fiber"),
    ),
)


def classify_outlier_severity(
    nutrient: str, value: float | None
) -> tuple[Severity | None, float]:
    """Classify how extreme ``value`` is relative to the nutrient's typical max."""
    typical_max = TYPICAL_SERVING_MAX.get(nutrient)
    if not typical_max or value is None or math.isnan(value):
        return None, 0.0

    ratio = value / typical_max
    if ratio > AUTO_CORRECT_RATIO:
        return "auto_correct", ratio
    if ratio > WARNING_RATIO:
        return "warning", ratio
    if ratio > INFO_RATIO:
        return "info", ratio
    limit = SERVING_LIMITS.get(nutrient)
    if limit and value > limit.max:
        return "auto_correct", value / limit.max
    return None, ratio


def get_corrected_value(nutrient: str, value: float) -> float:
    """Clamp an extreme value to the typical max, or to the absolute max."""
    typical_max = TYPICAL_SERVING_MAX.get(nutrient)
    if not typical_max:
        return value
    if value > typical_max * AUTO_CORRECT_RATIO:
        return typical_max
    limit = SERVING_LIMITS.get(nutrient)
    if limit and value > limit.max:
        return limit.max
    return value


def detect_food_outliers(
    nutrition: NutritionProfile, food_name: str, *, auto_correct: bool = True
) -> OutlierReport:
    """Scan one food's profile; ``info`` flags are included."""
    flagged: list[FlaggedNutrient] = []
    corrections: dict[str, AutoCorrection] = {}
    corrected = nutrition

    for nutrient, typical_max in TYPICAL_SERVING_MAX.items():
        value = nutrition.get(nutrient)
        if value is None or value <= 0:
            continue
        severity, ratio = classify_outlier_severity(nutrient, value)
        if severity is None:
            continue
        flagged.append(
            FlaggedNutrient(
                nutrient=nutrient,
                value=value,
                typical_max=typical_max,
                severity=severity,
                ratio=round(ratio, 1),
                message=(
                    f"{wire_name(nutrient)} = {value:g} is {ratio:.1f}x the typical "
                    f"maximum ({typical_max:g})"
                ),
            )
        )
        if severity == "auto_correct" and auto_correct:
            new_value = get_corrected_value(nutrient, value)
            _record_correction(
                corrections,
                nutrient,
                value,
                new_value,
                f"Value {value:g} exceeded {ratio:.1f}x typical maximum; "
                f"clamped to {new_value:g}",
            )
            corrected = corrected.with_values(**{nutrient: new_value})

    issues: list[CrossNutrientIssue] = []
    for relationship in NUTRIENT_RELATIONSHIPS:
        if not relationship.check(corrected):
            continue
        issues.append(
            CrossNutrientIssue(
                name=relationship.name,
                message=relationship.message,
                severity=relationship.severity,
            )
        )
        if (
            relationship.severity != "auto_correct"
            or relationship.correct is None
            or not auto_correct
        ):
            continue
        for field_name, new_value in relationship.correct(corrected).items():
            old_value = corrected.get(field_name)
            if old_value == new_value:
                continue
            _record_correction(
                corrections, field_name, old_value, new_value, relationship.message
            )
            corrected = corrected.with_values(**{field_name: new_value})

    detected = bool(flagged or issues)
    if detected:
        _logger.info(
            "Outliers for %s: %s flagged nutrients, %s cross-nutrient issues, "
            "%s auto-corrections",
            food_name,
            len(flagged),
            len(issues),
            len(corrections),
        )
    return OutlierReport(
        detected=detected,
        flagged_nutrients=flagged,
        cross_nutrient_issues=issues,
        auto_corrections=corrections,
        corrected_nutrition=corrected,
        total_flagged=len(flagged),
    )


def run_outlier_detection(
    nutrition: NutritionProfile, food_name: str, *, auto_correct: bool = True
) -> OutlierReport:
    """Scan one food and drop ``info`` flags from the caller-facing report."""
    report = detect_food_outliers(nutrition, food_name, auto_correct=auto_correct)
    return replace(
        report,
        flagged_nutrients=[
            item for item in report.flagged_nutrients if item.severity != "info"
        ],
    )


def detect_meal_outliers(
    profiles: Iterable[NutritionProfile | None],
) -> MealAggregate:
    """Sum a meal's profiles and flag totals above 200% of daily intake."""
    totals: dict[str, float] = {}
    for nutrition in profiles:
        if nutrition is None:
            continue
        for nutrient in DAILY_REFERENCE_INTAKE:
            value = nutrition.get(nutrient)
            if value is not None:
                totals[nutrient] = totals.get(nutrient, 0.0) + value
    if not totals:
        return MealAggregate(has_aggregate_outliers=False)

    flagged: list[FlaggedTotal] = []
    for nutrient, total in totals.items():
        daily_reference = DAILY_REFERENCE_INTAKE[nutrient]
        if total <= 0:
            continue
        share = total / daily_reference
        if share > MEAL_DRI_THRESHOLD:
            percent = _round_half_up(share * 100)
            flagged.append(
                FlaggedTotal(
                    nutrient=nutrient,
                    total=round(total, 1),
                    daily_reference=daily_reference,
                    percent_dri=percent,
                    message=(
                        f"{wire_name(nutrient)} total ({_round_half_up(total)}) is "
                        f"{percent}% of daily reference intake in a "
                        "single meal"
                    ),
                )
            )

    summary = ""
    if flagged:
        names = ", ".join(wire_name(item.nutrient) for item in flagged)
        summary = (
            f"This meal's {names} content is unusually high. "
            "Values have been checked for accuracy."
        )
        _logger.info(
            "Meal aggregate: %s nutrients exceed 200%% DRI: %s", len(flagged), names
        )
    return MealAggregate(
        has_aggregate_outliers=bool(flagged),
        meal_totals=NutritionProfile(
            **{key: round_nutrient(key, value) for key, value in totals.items()}
        ),
        flagged_totals=flagged,
        summary=summary,
    )


@dataclass
class OutlierService:
    """Applies the configured outlier passes."""

    enabled: bool = True
    auto_correct: bool = True

    def scan_food(
        self, nutrition: NutritionProfile, food_name: str
    ) -> OutlierReport | None:
        """Return the caller-facing report for one food, or ``None`` when disabled."""
        if not self.enabled:
            return None
        return run_outlier_detection(
            nutrition, food_name, auto_correct=self.auto_correct
        )

    def scan_meal(
        self, profiles: Iterable[NutritionProfile | None]
    ) -> MealAggregate | None:
        """Return the meal aggregate, or ``None`` when disabled."""
        if not self.enabled:
            return None
        return detect_meal_outliers(profiles)


def _record_correction(
    corrections: dict[str, AutoCorrection],
    field_name: str,
    original: float | None,
    corrected: float,
    reason: str,
) -> None:
    """Record a correction, keeping the first original when a field is adjusted twice."""
    previous = corrections.get(field_name)
    if previous is None:
        corrections[field_name] = AutoCorrection(
            original=original, corrected=corrected, reason=reason
        )
        return
    corrections[field_name] = AutoCorrection(
        original=previous.original,
        corrected=corrected,
        reason=f"{previous.reason}; {reason}",
    )
