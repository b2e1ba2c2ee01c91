"""Reference nutrition lookups against USDA FDC."""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass

import httpx

from nutrition_estimator.adapters.fdc_client import FdcClient
from nutrition_estimator.domain.nutrition import FoodCandidate, NutritionProfile

_NUTRIENT_IDS: dict[int, str] = {
    1008: "calories",
    1003: "protein",
    1005: "carbs",
    1004: "fat",
    1079: "fiber",
    1093: "sodium",
    2000: "sugar",
    1253: "cholesterol",
    1106: "vitamin_a",
    1162: "vitamin_c",
    1114: "vitamin_d",
    1109: "vitamin_e",
    1185: "vitamin_k",
    1165: "vitamin_b1",
    1166: "vitamin_b2",
    1167: "vitamin_b3",
    1175: "vitamin_b6",
    1178: "vitamin_b12",
    1177: "folate",
    1087: "calcium",
    1089: "iron",
    1090: "magnesium",
    1095: "zinc",
    1092: "potassium",
}

# Atwater energy values, used when a record has no plain energy (1008) entry.
_ENERGY_FALLBACK_IDS = (2047, 2048)

MAX_CANDIDATES = 5

_logger = logging.getLogger(__name__)


@dataclass
class NutritionService:
    """Service for reference-database lookups scaled to a serving."""

    fdc_client: FdcClient | None
    timeout_seconds: float = 15.0
    debug: bool = False

    async def search_candidates(
        self, query: str, grams: float, limit: int = MAX_CANDIDATES
    ) -> list[FoodCandidate]:
        """Return ranked candidates with calories > 0 scaled to ``grams``.

        Upstream failures are logged and reported as no candidates.
        """
        if self.fdc_client is None or not query.strip():
            return []
        try:
            payload = await asyncio.wait_for(
                self.fdc_client.search_foods(query, page_size=limit),
                timeout=self.timeout_seconds,
            )
        except (httpx.HTTPError, TimeoutError, ValueError) as exc:
            _logger.warning(
                "Reference search failed (query=%s, status=%s): %s",
                query,
                _status_code_from_exception(exc),
                str(exc) or type(exc).__name__,
            )
            return []

        candidates: list[FoodCandidate] = []
        for food in list(payload.get("foods") or [])[:limit]:
            if not isinstance(food, Mapping) or not food.get("foodNutrients"):
                continue
            nutrition = extract_profile(food["foodNutrients"], grams)
            if nutrition.calories is None or nutrition.calories <= 0:
                continue
            candidates.append(
                FoodCandidate(
                    fdc_id=int(food.get("fdcId", 0)),
                    description=str(food.get("description", "")),
                    data_type=food.get("dataType"),
                    nutrition=nutrition,
                    rank=len(candidates) + 1,
                )
            )
        if self.debug:
            _logger.info(
                "Reference search: query=%s candidates=%s", query, len(candidates)
            )
        return candidates


def _status_code_from_exception(exc: Exception) -> str:
    """Extract HTTP status code from an exception, if available."""
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return str(status_code)
    return "n/a"


def extract_profile(
    food_nutrients: list[Mapping[str, object]], grams: float
) -> NutritionProfile:
    """Map FDC nutrient records (per 100 g) onto a profile for ``grams``."""
    scale = grams / 100.0
    values: dict[str, object] = {}
    fallback_energy: object = None
    for nutrient in food_nutrients:
        nutrient_info = nutrient.get("nutrient") or {}
        nutrient_id = nutrient.get("nutrientId") or nutrient_info.get("id")
        amount = nutrient.get("value", nutrient.get("amount"))
        if not isinstance(amount, int | float) or isinstance(amount, bool):
            continue
        try:
            nutrient_id = int(nutrient_id)
        except (TypeError, ValueError):
            continue
        field_name = _NUTRIENT_IDS.get(nutrient_id)
        if field_name:
            values[field_name] = amount * scale
        elif nutrient_id in _ENERGY_FALLBACK_IDS and fallback_energy is None:
            fallback_energy = amount * scale
    if "calories" not in values and fallback_energy is not None:
        values["calories"] = fallback_energy
    return NutritionProfile.from_mapping(values)
