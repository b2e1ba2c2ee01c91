"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from nutrition_estimator.adapters.fdc_client import HttpxFdcClient
from nutrition_estimator.adapters.openai_oracle_client import OpenAIOracleClient
from nutrition_estimator.config import Settings
from nutrition_estimator.services.analysis import FoodAnalysisService
from nutrition_estimator.services.decomposition import DishDecomposer
from nutrition_estimator.services.detection import DetectionService
from nutrition_estimator.services.nutrition import NutritionService
from nutrition_estimator.services.oracle import Oracle
from nutrition_estimator.services.outliers import OutlierService
from nutrition_estimator.services.rate_limit import InMemoryRateLimiter, RateLimiter
from nutrition_estimator.services.realism import RealismService
from nutrition_estimator.services.resolver import NutritionResolver


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    nutrition_service: NutritionService
    resolver: NutritionResolver
    detection_service: DetectionService
    analysis_service: FoodAnalysisService
    rate_limiter: RateLimiter
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    oracle_client = OpenAIOracleClient.create(
        api_key=resolved_settings.openai_api_key,
        base_url=resolved_settings.openai_base_url,
    )
    text_oracle = Oracle(
        client=oracle_client,
        model=resolved_settings.text_model,
        timeout_seconds=resolved_settings.text_timeout_seconds,
    )
    primary_vision = Oracle(
        client=oracle_client,
        model=resolved_settings.primary_vision_model,
        timeout_seconds=resolved_settings.primary_vision_timeout_seconds,
    )
    secondary_vision = Oracle(
        client=oracle_client,
        model=resolved_settings.secondary_vision_model,
        timeout_seconds=resolved_settings.secondary_vision_timeout_seconds,
    )

    fdc_client = None
    if resolved_settings.fdc_api_key:
        fdc_client = HttpxFdcClient.create(
            api_key=resolved_settings.fdc_api_key,
            base_url=resolved_settings.fdc_base_url,
            timeout_seconds=resolved_settings.fdc_timeout_seconds,
        )
    nutrition_service = NutritionService(
        fdc_client=fdc_client,
        timeout_seconds=resolved_settings.fdc_timeout_seconds,
    )
    resolver = NutritionResolver(nutrition_service=nutrition_service, oracle=text_oracle)
    detection_service = DetectionService(
        primary=primary_vision,
        secondary=secondary_vision,
        multi_model_enabled=resolved_settings.multi_model_enabled,
        max_foods=resolved_settings.max_foods_per_image,
    )
    analysis_service = FoodAnalysisService(
        nutrition_service=nutrition_service,
        resolver=resolver,
        realism=RealismService(oracle=text_oracle),
        outliers=OutlierService(
            enabled=resolved_settings.outlier_detection_enabled,
            auto_correct=resolved_settings.outlier_auto_correct,
        ),
        decomposer=DishDecomposer(oracle=text_oracle, resolver=resolver),
        detection=detection_service,
        max_foods=resolved_settings.max_foods_per_image,
    )
    rate_limiter = InMemoryRateLimiter(
        max_requests=resolved_settings.rate_limit_max_requests,
        window_seconds=resolved_settings.rate_limit_window_seconds,
    )

    async def close_resources() -> None:
        if fdc_client is not None:
            await fdc_client.close()
        await oracle_client.close()

    return AppContainer(
        settings=resolved_settings,
        nutrition_service=nutrition_service,
        resolver=resolver,
        detection_service=detection_service,
        analysis_service=analysis_service,
        rate_limiter=rate_limiter,
        close_resources=close_resources,
    )
