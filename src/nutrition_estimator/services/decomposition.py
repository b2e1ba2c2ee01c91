"""Ingredient breakdown for composite dishes."""

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from pydantic import ValidationError

from nutrition_estimator.domain.detection import DetectedFood, FoodDetection
from nutrition_estimator.domain.foods import DishBreakdown, ResolvedIngredient
from nutrition_estimator.domain.nutrition import (
    NUTRIENT_FIELDS,
    NutritionProfile,
    round_nutrient,
)
from nutrition_estimator.services import prompts
from nutrition_estimator.services.oracle import Oracle
from nutrition_estimator.services.realism import validate_nutrition_realism
from nutrition_estimator.services.resolver import NutritionResolver
from nutrition_estimator.services.servings import (
    DEFAULT_SERVING,
    PHOTO_DEFAULT_GRAMS,
    normalize_serving,
)

MAX_INGREDIENTS = 8

_logger = logging.getLogger(__name__)


def aggregate_profiles(profiles: Iterable[NutritionProfile]) -> NutritionProfile:
    """Sum profiles field by field; a field unknown everywhere stays unknown."""
    totals: dict[str, float | None] = dict.fromkeys(NUTRIENT_FIELDS)
    for nutrition in profiles:
        for field_name in NUTRIENT_FIELDS:
            value = nutrition.get(field_name)
            if value is None:
                continue
            totals[field_name] = (totals[field_name] or 0.0) + value
    return NutritionProfile(
        **{
            key: round_nutrient(key, value) if value is not None else None
            for key, value in totals.items()
        }
    )


@dataclass
class DishDecomposer:
    """Breaks complex dishes into resolved ingredients."""

    oracle: Oracle
    resolver: NutritionResolver
    max_ingredients: int = MAX_INGREDIENTS

    async def decompose(self, detection: FoodDetection) -> list[DetectedFood] | None:
        """Ask the oracle for the dish's ingredients; ``None`` means keep it whole."""
        payload = await self.oracle.ask_json(
            prompts.decompose_prompt(detection.name, detection.serving or DEFAULT_SERVING),
            system_prompt=prompts.DECOMPOSE_SYSTEM_PROMPT,
            temperature=0.2,
            max_tokens=800,
            action="decomposition",
        )
        if payload is None or payload.get("isComplex") is False:
            return None
        raw_ingredients = payload.get("ingredients")
        if not isinstance(raw_ingredients, list):
            return None

        ingredients: list[DetectedFood] = []
        for raw in raw_ingredients:
            try:
                item = DetectedFood.model_validate(raw)
            except ValidationError:
                continue
            if item.name.strip():
                ingredients.append(item)
        if not ingredients:
            return None
        return ingredients[: self.max_ingredients]

    async def process_ingredients(
        self, ingredients: Sequence[DetectedFood]
    ) -> list[ResolvedIngredient]:
        """Resolve and validate every ingredient concurrently, dropping failures."""
        results = await asyncio.gather(
            *(self._resolve_ingredient(item) for item in ingredients)
        )
        return [result for result in results if result is not None]

    async def breakdown(self, detection: FoodDetection) -> DishBreakdown | None:
        """Decompose a dish and total its ingredients as an alternative figure."""
        ingredients = await self.decompose(detection)
        if not ingredients:
            return None
        resolved = await self.process_ingredients(ingredients)
        if not resolved:
            _logger.warning('No ingredient of "%s" could be resolved', detection.name)
            return None

        nutrition = aggregate_profiles(item.nutrition for item in resolved)
        validation = validate_nutrition_realism(nutrition)
        _logger.info(
            'Decomposed "%s" into %s ingredients (%s resolved)',
            detection.name,
            len(ingredients),
            len(resolved),
        )
        if not validation.valid:
            _logger.warning(
                'Ingredient total for "%s" failed realism: %s',
                detection.name,
                "; ".join(validation.issues),
            )
        return DishBreakdown(
            ingredients=resolved, nutrition=nutrition, validation=validation
        )

    async def _resolve_ingredient(self, item: DetectedFood) -> ResolvedIngredient | None:
        name = item.name.strip()
        serving = normalize_serving(item.estimated_serving, PHOTO_DEFAULT_GRAMS)
        resolution = await self.resolver.resolve(name, serving, assisted=False)
        if resolution.nutrition is None:
            return None
        validation = validate_nutrition_realism(resolution.nutrition)
        if not validation.valid:
            _logger.warning(
                'Ingredient "%s" failed realism: %s', name, "; ".join(validation.issues)
            )
        return ResolvedIngredient(
            name=name,
            serving=serving,
            nutrition=resolution.nutrition,
            source=resolution.source,
            candidates=resolution.candidates,
            realism_validation=validation,
        )
