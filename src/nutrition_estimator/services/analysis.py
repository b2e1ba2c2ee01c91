"""Request pipeline: detections in, validated per-food nutrition out."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from nutrition_estimator.domain.detection import FoodDetection
from nutrition_estimator.domain.foods import MealAnalysis, ResolvedFood
from nutrition_estimator.domain.nutrition import FoodCandidate
from nutrition_estimator.domain.validation import ValidationResult
from nutrition_estimator.errors import AllFoodsFailedRealismError, MissingInputError
from nutrition_estimator.services.decomposition import DishDecomposer
from nutrition_estimator.services.detection import DetectionService
from nutrition_estimator.services.nutrition import NutritionService
from nutrition_estimator.services.outliers import OutlierService
from nutrition_estimator.services.realism import RealismService
from nutrition_estimator.services.resolver import NutritionResolver
from nutrition_estimator.services.servings import (
    PHOTO_DEFAULT_GRAMS,
    TEXT_DEFAULT_GRAMS,
    normalize_serving,
)

MAX_DESCRIPTION_LENGTH = 200
MIN_FOODS_FOR_MEAL_CHECK = 2

_logger = logging.getLogger(__name__)


@dataclass
class FoodAnalysisService:
    """Coordinates resolution, validation, outlier checks and decomposition."""

    nutrition_service: NutritionService
    resolver: NutritionResolver
    realism: RealismService
    outliers: OutlierService
    decomposer: DishDecomposer
    detection: DetectionService
    max_foods: int = 25

    async def analyze_food(
        self,
        detection: FoodDetection,
        *,
        assisted: bool = False,
        default_grams: float = PHOTO_DEFAULT_GRAMS,
    ) -> ResolvedFood:
        """Resolve one detection into a validated, outlier-checked result."""
        serving = normalize_serving(detection.serving, default_grams)
        resolution = await self.resolver.resolve(
            detection.name, serving, assisted=assisted
        )
        nutrition = resolution.nutrition
        source = resolution.source
        correction_attempted = False
        outlier_report = None

        if nutrition is None:
            validation = ValidationResult(issues=("No nutrition data available",))
        else:
            outcome = await self.realism.validate_with_correction(
                nutrition, f"{serving.text} of {detection.name}"
            )
            nutrition, validation = outcome.nutrition, outcome.validation
            if outcome.corrected:
                source = "estimate_corrected"
                correction_attempted = True

            outlier_report = self.outliers.scan_food(nutrition, detection.name)
            if outlier_report is not None and outlier_report.total_corrected:
                _logger.info(
                    'Auto-corrected %s nutrients for "%s"',
                    outlier_report.total_corrected,
                    detection.name,
                )
                nutrition = outlier_report.corrected_nutrition

        breakdown = None
        if detection.is_complex:
            breakdown = await self.decomposer.breakdown(detection)

        return ResolvedFood(
            name=detection.name,
            serving=serving,
            nutrition=nutrition,
            source=source,
            candidates=resolution.candidates,
            realism_validation=validation,
            outlier_detection=outlier_report,
            ingredients=breakdown.ingredients if breakdown else None,
            ingredient_nutrition=breakdown.nutrition if breakdown else None,
            ingredient_validation=breakdown.validation if breakdown else None,
            reference_description=resolution.reference_description,
            search_term=resolution.search_term,
            correction_attempted=correction_attempted,
            detection=detection.validation,
        )

    async def analyze_detections(
        self,
        detections: Sequence[FoodDetection],
        *,
        assisted: bool = False,
        default_grams: float = PHOTO_DEFAULT_GRAMS,
        detection_summary: dict[str, object] | None = None,
    ) -> MealAnalysis:
        """Resolve all detections concurrently and run the meal-level check.

        Raises ``AllFoodsFailedRealismError`` when every food that produced a
        profile still fails realism validation.
        """
        capped = list(detections)[: self.max_foods]
        results = await asyncio.gather(
            *(
                self.analyze_food(
                    detection, assisted=assisted, default_grams=default_grams
                )
                for detection in capped
            )
        )
        foods = [food for food in results if food.nutrition is not None]
        failed = [food for food in results if food.nutrition is None]

        meal_outliers = None
        if len(foods) >= MIN_FOODS_FOR_MEAL_CHECK:
            meal_outliers = self.outliers.scan_meal(food.nutrition for food in foods)

        analysis = MealAnalysis(
            foods=foods,
            failed_foods=failed,
            total_identified=len(capped),
            meal_outliers=meal_outliers,
            detection_summary=detection_summary,
        )
        if foods and all(not food.realism_validation.valid for food in foods):
            _logger.error(
                "All %s foods failed realism validation after retry", len(foods)
            )
            raise AllFoodsFailedRealismError(analysis)
        return analysis

    async def analyze_photo(self, image_bytes: bytes) -> MealAnalysis:
        """Identify the foods in a photo and analyze each of them."""
        if not image_bytes:
            raise MissingInputError("No image provided")
        result = await self.detection.detect(image_bytes)
        if not result.detections:
            return MealAnalysis(
                foods=[],
                detection_summary=result.summary,
                message=result.message or "No food detected in image",
            )
        return await self.analyze_detections(
            result.detections, detection_summary=result.summary
        )

    async def analyze_text(
        self, description: str | None, serving: str | None = None
    ) -> ResolvedFood:
        """Estimate nutrition for a typed description."""
        text = (description or "").strip()
        if not text:
            raise MissingInputError("Food description is required")
        if len(text) > MAX_DESCRIPTION_LENGTH:
            raise MissingInputError(
                f"Food description must be at most {MAX_DESCRIPTION_LENGTH} characters"
            )
        return await self.analyze_food(
            FoodDetection(name=text, serving=serving),
            assisted=True,
            default_grams=TEXT_DEFAULT_GRAMS,
        )

    async def search_reference(
        self, query: str | None, serving: str | None = None
    ) -> list[FoodCandidate]:
        """Return reference candidates for a query scaled to a serving."""
        text = (query or "").strip()
        if not text:
            raise MissingInputError("Search query is required")
        spec = normalize_serving(serving, TEXT_DEFAULT_GRAMS)
        return await self.nutrition_service.search_candidates(text, spec.grams)
