"""Domain models for resolved foods and meal analyses."""

from dataclasses import dataclass, field
from typing import Literal

from nutrition_estimator.domain.detection import MultiModelValidation
from nutrition_estimator.domain.nutrition import (
    FoodCandidate,
    NutritionProfile,
    ServingSpec,
)
from nutrition_estimator.domain.validation import (
    MealAggregate,
    OutlierReport,
    ValidationResult,
)

Source = Literal[
    "reference", "reference_assisted", "estimate", "estimate_corrected", "failed"
]


@dataclass(frozen=True)
class Resolution:
    """Winning strategy output of the nutrition resolver."""

    nutrition: NutritionProfile | None
    source: Source
    candidates: list[FoodCandidate] = field(default_factory=list)
    search_term: str | None = None
    reference_description: str | None = None


@dataclass(frozen=True)
class ResolvedIngredient:
    """An ingredient of a decomposed dish."""

    name: str
    serving: ServingSpec
    nutrition: NutritionProfile
    source: Source
    candidates: list[FoodCandidate]
    realism_validation: ValidationResult


@dataclass(frozen=True)
class DishBreakdown:
    """Ingredients of a complex dish and their aggregated total."""

    ingredients: list[ResolvedIngredient]
    nutrition: NutritionProfile
    validation: ValidationResult


@dataclass(frozen=True)
class ResolvedFood:
    """Final per-food result handed back to the caller."""

    name: str
    serving: ServingSpec
    nutrition: NutritionProfile | None
    source: Source
    candidates: list[FoodCandidate]
    realism_validation: ValidationResult
    outlier_detection: OutlierReport | None = None
    ingredients: list[ResolvedIngredient] | None = None
    ingredient_nutrition: NutritionProfile | None = None
    ingredient_validation: ValidationResult | None = None
    reference_description: str | None = None
    search_term: str | None = None
    correction_attempted: bool = False
    detection: MultiModelValidation | None = None


@dataclass(frozen=True)
class MealAnalysis:
    """Resolved foods for one request plus the meal-level check."""

    foods: list[ResolvedFood]
    failed_foods: list[ResolvedFood] = field(default_factory=list)
    total_identified: int = 0
    meal_outliers: MealAggregate | None = None
    detection_summary: dict[str, object] | None = None
    message: str | None = None
