"""Strategy chain that turns a food mention into a nutrition profile."""

import logging
from dataclasses import dataclass

from nutrition_estimator.domain.foods import Resolution
from nutrition_estimator.domain.nutrition import NutritionProfile, ServingSpec
from nutrition_estimator.services import prompts
from nutrition_estimator.services.nutrition import NutritionService
from nutrition_estimator.services.oracle import Oracle

_logger = logging.getLogger(__name__)


@dataclass
class NutritionResolver:
    """Reference lookup first, then an assisted lookup, then an oracle estimate."""

    nutrition_service: NutritionService
    oracle: Oracle

    async def resolve(
        self, name: str, serving: ServingSpec, *, assisted: bool = False
    ) -> Resolution:
        """Return the first successful strategy's profile, or a failed resolution.

        ``assisted`` enables the oracle-suggested search term, used for typed
        descriptions where the wording rarely matches reference names.
        """
        candidates = await self.nutrition_service.search_candidates(name, serving.grams)
        if candidates:
            _logger.info(
                'Resolved "%s" from reference data: %s', name, candidates[0].description
            )
            return Resolution(
                nutrition=candidates[0].nutrition,
                source="reference",
                candidates=candidates,
                search_term=name,
                reference_description=candidates[0].description,
            )

        search_term = None
        if assisted and self.nutrition_service.fdc_client is not None:
            search_term = await self.suggest_search_term(name, serving.text)
            if search_term and search_term.casefold() != name.strip().casefold():
                candidates = await self.nutrition_service.search_candidates(
                    search_term, serving.grams
                )
                if candidates:
                    _logger.info(
                        'Resolved "%s" via search term "%s": %s',
                        name,
                        search_term,
                        candidates[0].description,
                    )
                    return Resolution(
                        nutrition=candidates[0].nutrition,
                        source="reference_assisted",
                        candidates=candidates,
                        search_term=search_term,
                        reference_description=candidates[0].description,
                    )

        nutrition = await self.estimate(name, serving.text)
        if nutrition is not None:
            _logger.info('Resolved "%s" from an oracle estimate', name)
            return Resolution(
                nutrition=nutrition, source="estimate", search_term=search_term
            )

        _logger.warning('No nutrition data for "%s"', name)
        return Resolution(nutrition=None, source="failed", search_term=search_term)

    async def suggest_search_term(self, description: str, serving_text: str) -> str | None:
        """Ask the oracle for a reference-database style query."""
        payload = await self.oracle.ask_json(
            prompts.search_term_prompt(description, serving_text),
            system_prompt=prompts.SEARCH_TERM_SYSTEM_PROMPT,
            temperature=0.1,
            max_tokens=200,
            action="search term",
        )
        if payload is None:
            return None
        query = payload.get("searchQuery")
        if not isinstance(query, str) or not query.strip():
            return None
        return query.strip()

    async def estimate(self, name: str, serving_text: str) -> NutritionProfile | None:
        """Ask the oracle for the full nutrient payload of a serving."""
        payload = await self.oracle.ask_json(
            prompts.estimate_prompt(f"{serving_text} of {name}"),
            system_prompt=prompts.ESTIMATE_SYSTEM_PROMPT,
            temperature=0.2,
            max_tokens=600,
            action="estimate",
        )
        if payload is None:
            return None
        nutrition = NutritionProfile.from_mapping(payload)
        if all(value is None for value in nutrition.as_dict().values()):
            _logger.warning('Oracle estimate for "%s" contained no nutrients', name)
            return None
        return nutrition
