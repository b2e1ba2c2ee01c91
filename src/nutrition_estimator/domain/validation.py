"""Domain models for realism validation and outlier detection."""

from dataclasses import dataclass, field
from typing import Literal

from nutrition_estimator.domain.nutrition import NutritionProfile

Severity = Literal["info", "warning", "auto_correct"]


@dataclass(frozen=True)
class ValidationResult:
    """Realism check outcome; valid exactly when there are no issues."""

    issues: tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        """Return whether no issues were found."""
        return not self.issues


@dataclass(frozen=True)
class FlaggedNutrient:
    """A single nutrient that exceeds its typical serving maximum."""

    nutrient: str
    value: float
    typical_max: float
    severity: Severity
    ratio: float
    message: str


@dataclass(frozen=True)
class CrossNutrientIssue:
    """A contradiction between related nutrients."""

    name: str
    message: str
    severity: Severity


@dataclass(frozen=True)
class AutoCorrection:
    """Record of an automatically adjusted nutrient."""

    original: float | None
    corrected: float
    reason: str


@dataclass(frozen=True)
class OutlierReport:
    """Per-food outlier scan result."""

    detected: bool
    flagged_nutrients: list[FlaggedNutrient]
    cross_nutrient_issues: list[CrossNutrientIssue]
    auto_corrections: dict[str, AutoCorrection]
    corrected_nutrition: NutritionProfile
    total_flagged: int = 0

    @property
    def total_corrected(self) -> int:
        """Number of nutrients that were auto-corrected."""
        return len(self.auto_corrections)


@dataclass(frozen=True)
class FlaggedTotal:
    """A meal total that exceeds the daily reference threshold."""

    nutrient: str
    total: float
    daily_reference: float
    percent_dri: int
    message: str


@dataclass(frozen=True)
class MealAggregate:
    """Meal-level totals checked against daily reference intakes."""

    has_aggregate_outliers: bool
    meal_totals: NutritionProfile = field(default_factory=NutritionProfile)
    flagged_totals: list[FlaggedTotal] = field(default_factory=list)
    summary: str = ""
