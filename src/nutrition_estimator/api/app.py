"""FastAPI application factory."""

import base64
import binascii
import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from nutrition_estimator.api.models import (
    AnalyzeFoodsRequest,
    EstimateNutritionRequest,
    IdentifyPhotoRequest,
    ReferenceSearchRequest,
)
from nutrition_estimator.api.serializers import (
    serialize_analysis,
    serialize_candidate,
    serialize_food,
)
from nutrition_estimator.app_logging import configure_logging
from nutrition_estimator.config import parse_client_ip
from nutrition_estimator.containers import AppContainer
from nutrition_estimator.domain.detection import FoodDetection
from nutrition_estimator.errors import (
    AllFoodsFailedRealismError,
    DetectionTimeoutError,
    ImageTooLargeError,
    MissingInputError,
    NutritionEstimatorError,
    RateLimitedError,
    UpstreamUnavailableError,
)

MAX_IMAGE_BASE64_LENGTH = 4 * 1024 * 1024

_DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")

_STATUS_CODES: dict[type[NutritionEstimatorError], int] = {
    MissingInputError: 400,
    RateLimitedError: 429,
    AllFoodsFailedRealismError: 422,
    DetectionTimeoutError: 504,
    UpstreamUnavailableError: 502,
}


async def enforce_rate_limit(request: Request, response: Response) -> None:
    """Count the request against the client's allowance."""
    container: AppContainer = request.app.state.container
    client_ip = parse_client_ip(
        request.headers.get("x-forwarded-for"),
        request.client.host if request.client else None,
    )
    decision = container.rate_limiter.check(client_ip)
    response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
    if not decision.allowed:
        raise RateLimitedError(decision.retry_after_seconds)


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(NutritionEstimatorError)
    async def handle_estimator_error(
        request: Request, exc: NutritionEstimatorError
    ) -> JSONResponse:
        status_code = _status_code_for(exc)
        body: dict[str, object] = {"error": str(exc), "code": exc.code}
        headers: dict[str, str] = {}
        if isinstance(exc, RateLimitedError):
            body["retryAfter"] = exc.retry_after_seconds
            headers["Retry-After"] = str(exc.retry_after_seconds)
        elif isinstance(exc, AllFoodsFailedRealismError):
            body.update(serialize_analysis(exc.analysis))
        if status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content=body, headers=headers)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/api/estimate-nutrition", dependencies=[Depends(enforce_rate_limit)])
    async def estimate_nutrition(
        body: EstimateNutritionRequest, request: Request
    ) -> dict[str, object]:
        """Estimate nutrition for a typed food description."""
        state_container: AppContainer = request.app.state.container
        food = await state_container.analysis_service.analyze_text(
            body.food_description, body.serving
        )
        return serialize_food(food)

    @app.post("/api/identify-food-photo", dependencies=[Depends(enforce_rate_limit)])
    async def identify_food_photo(
        body: IdentifyPhotoRequest, request: Request
    ) -> dict[str, object]:
        """Identify and analyze every food in a photo."""
        state_container: AppContainer = request.app.state.container
        image_bytes = _decode_image(body.image)
        analysis = await state_container.analysis_service.analyze_photo(image_bytes)
        return serialize_analysis(analysis)

    @app.post("/api/analyze-foods", dependencies=[Depends(enforce_rate_limit)])
    async def analyze_foods(
        body: AnalyzeFoodsRequest, request: Request
    ) -> dict[str, object]:
        """Analyze foods the caller has already identified."""
        state_container: AppContainer = request.app.state.container
        detections = [
            FoodDetection.from_detected(item) for item in body.foods if item.name.strip()
        ]
        if not detections:
            raise MissingInputError("At least one food is required")
        analysis = await state_container.analysis_service.analyze_detections(
            detections
        )
        return serialize_analysis(analysis)

    @app.post("/api/reference-search", dependencies=[Depends(enforce_rate_limit)])
    async def reference_search(
        body: ReferenceSearchRequest, request: Request
    ) -> dict[str, object]:
        """Return reference candidates for a query."""
        state_container: AppContainer = request.app.state.container
        candidates = await state_container.analysis_service.search_reference(
            body.query, body.serving
        )
        return {
            "query": (body.query or "").strip(),
            "candidates": [serialize_candidate(item) for item in candidates],
        }

    return app


def _status_code_for(exc: NutritionEstimatorError) -> int:
    for error_type in type(exc).__mro__:
        status_code = _STATUS_CODES.get(error_type)
        if status_code is not None:
            return status_code
    return 500


def _decode_image(image: str | None) -> bytes:
    """Decode a base64 image or data URL, enforcing the size limit."""
    if not image or not image.strip():
        raise MissingInputError("Image data is required (base64 JPEG)")
    encoded = _DATA_URL_PREFIX.sub("", image.strip())
    if len(encoded) > MAX_IMAGE_BASE64_LENGTH:
        raise ImageTooLargeError("Image too large (max 4MB)")
    try:
        image_bytes = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MissingInputError("Image data is not valid base64") from exc
    if not image_bytes:
        raise MissingInputError("Image data is required (base64 JPEG)")
    return image_bytes
