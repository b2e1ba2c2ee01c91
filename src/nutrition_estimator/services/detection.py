"""Photo food identification with optional two-model cross-validation."""

import asyncio
import base64
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from pydantic import ValidationError

from nutrition_estimator.domain.detection import (
    DetectedFood,
    DetectionPayload,
    DetectionResult,
    FoodDetection,
    MultiModelValidation,
    OracleDetections,
)
from nutrition_estimator.errors import DetectionTimeoutError, UpstreamUnavailableError
from nutrition_estimator.services import prompts
from nutrition_estimator.services.oracle import Oracle, extract_json_object

MATCH_THRESHOLD = 0.5
MATCHED_BASE_CONFIDENCE = 0.85
MATCHED_SIMILARITY_WEIGHT = 0.10
PRIMARY_ONLY_CONFIDENCE = 0.6
SECONDARY_ONLY_CONFIDENCE = 0.5
PRIMARY_FALLBACK_CONFIDENCE = 0.7
SECONDARY_FALLBACK_CONFIDENCE = 0.6

_NAME_ADJECTIVES = re.compile(
    r"\b(?:grilled|fried|baked|steamed|roasted|fresh|raw|cooked|boiled|sauteed|"
    r"pan-fried|scrambled|poached|dried|frozen|canned|whole|sliced|diced|chopped|"
    r"minced|mashed|large|small|medium)\b"
)
_WHITESPACE = re.compile(r"\s+")

_logger = logging.getLogger(__name__)


def normalize_food_name(name: str) -> str:
    """Lowercase and strip cooking-method and size adjectives."""
    stripped = _NAME_ADJECTIVES.sub(" ", name.lower())
    return _WHITESPACE.sub(" ", stripped).strip()


def food_name_similarity(first: str, second: str) -> float:
    """Jaccard similarity of the normalized token sets."""
    first_tokens = set(normalize_food_name(first).split())
    second_tokens = set(normalize_food_name(second).split())
    if not first_tokens and not second_tokens:
        return 1.0
    if not first_tokens or not second_tokens:
        return 0.0
    return len(first_tokens & second_tokens) / len(first_tokens | second_tokens)


def merge_food_detections(
    primary: Sequence[DetectedFood],
    secondary: Sequence[DetectedFood],
    primary_source: str = "primary",
    secondary_source: str = "secondary",
) -> list[FoodDetection]:
    """Cross-validate two detection lists and score each food by agreement.

    Each primary item claims its best unclaimed secondary match; the primary
    name is kept. Unmatched items from either side are kept at lower confidence.
    """
    claimed: set[int] = set()
    merged: list[FoodDetection] = []

    for item in primary:
        best_index: int | None = None
        best_score = 0.0
        for index, candidate in enumerate(secondary):
            if index in claimed:
                continue
            score = food_name_similarity(item.name, candidate.name)
            if score > best_score:
                best_index, best_score = index, score

        if best_index is not None and best_score >= MATCH_THRESHOLD:
            claimed.add(best_index)
            match = secondary[best_index]
            merged.append(
                FoodDetection(
                    name=item.name.strip(),
                    serving=item.estimated_serving or match.estimated_serving,
                    is_complex=item.is_complex or match.is_complex,
                    validation=MultiModelValidation(
                        confidence=MATCHED_BASE_CONFIDENCE
                        + best_score * MATCHED_SIMILARITY_WEIGHT,
                        agreed_models=(primary_source, secondary_source),
                        name_similarity=round(best_score, 2),
                        primary_name=item.name,
                        secondary_name=match.name,
                        primary_serving=item.estimated_serving,
                        secondary_serving=match.estimated_serving,
                    ),
                )
            )
        else:
            merged.append(
                FoodDetection.from_detected(
                    item,
                    MultiModelValidation(
                        confidence=PRIMARY_ONLY_CONFIDENCE,
                        agreed_models=(primary_source,),
                        primary_name=item.name,
                        primary_serving=item.estimated_serving,
                    ),
                )
            )

    for index, candidate in enumerate(secondary):
        if index in claimed:
            continue
        merged.append(
            FoodDetection.from_detected(
                candidate,
                MultiModelValidation(
                    confidence=SECONDARY_ONLY_CONFIDENCE,
                    agreed_models=(secondary_source,),
                    secondary_name=candidate.name,
                    secondary_serving=candidate.estimated_serving,
                ),
            )
        )

    merged.sort(key=_confidence, reverse=True)
    _logger.info(
        "Merged detections: %s primary, %s secondary, %s matched, %s total",
        len(primary),
        len(secondary),
        len(claimed),
        len(merged),
    )
    return merged


def parse_detection_payload(payload: dict[str, object]) -> DetectionPayload:
    """Validate an identification payload item by item, dropping malformed foods."""
    foods: list[DetectedFood] = []
    raw_foods = payload.get("foods")
    if isinstance(raw_foods, list):
        for raw in raw_foods:
            try:
                item = DetectedFood.model_validate(raw)
            except ValidationError:
                _logger.debug("Skipping malformed detection item: %r", raw)
                continue
            if item.name.strip():
                foods.append(item)
    error = payload.get("error")
    return DetectionPayload(foods=foods, error=error if isinstance(error, str) else None)


@dataclass
class DetectionService:
    """Identifies foods in a photo with one or two vision oracles."""

    primary: Oracle
    secondary: Oracle | None = None
    multi_model_enabled: bool = False
    max_foods: int = 25

    async def detect(self, image_bytes: bytes) -> DetectionResult:
        """Return the foods visible in ``image_bytes``.

        In multi-model mode both oracles run concurrently and their answers are
        merged; if neither produces anything the single-model path runs, where
        a timeout or upstream failure is raised to the caller.
        """
        image_data_url = _to_data_url(image_bytes)
        if self.multi_model_enabled and self.secondary is not None:
            result = await self._detect_multi(image_data_url, self.secondary)
            if result is not None:
                return result
        return await self._detect_single(image_data_url)

    async def _detect_multi(
        self, image_data_url: str, secondary: Oracle
    ) -> DetectionResult | None:
        primary_outcome, secondary_outcome = await asyncio.gather(
            self._identify(self.primary, image_data_url),
            self._identify(secondary, image_data_url),
        )
        summary: dict[str, object] = {
            "primary_model": primary_outcome.source,
            "primary_succeeded": primary_outcome.succeeded,
            "primary_food_count": len(primary_outcome.foods),
            "primary_error": primary_outcome.error,
            "secondary_model": secondary_outcome.source,
            "secondary_succeeded": secondary_outcome.succeeded,
            "secondary_food_count": len(secondary_outcome.foods),
            "secondary_error": secondary_outcome.error,
        }

        if primary_outcome.succeeded and secondary_outcome.succeeded:
            detections = merge_food_detections(
                primary_outcome.foods,
                secondary_outcome.foods,
                primary_outcome.source,
                secondary_outcome.source,
            )
        elif primary_outcome.succeeded:
            _logger.info(
                "Secondary oracle %s produced nothing (%s); using primary only",
                secondary_outcome.source,
                secondary_outcome.error or "no foods",
            )
            detections = [
                FoodDetection.from_detected(
                    item,
                    MultiModelValidation(
                        confidence=PRIMARY_FALLBACK_CONFIDENCE,
                        agreed_models=(primary_outcome.source,),
                        primary_name=item.name,
                        primary_serving=item.estimated_serving,
                        secondary_error=secondary_outcome.error or "No foods detected",
                    ),
                )
                for item in primary_outcome.foods
            ]
        elif secondary_outcome.succeeded:
            _logger.info(
                "Primary oracle %s produced nothing (%s); using secondary only",
                primary_outcome.source,
                primary_outcome.error or "no foods",
            )
            detections = [
                FoodDetection.from_detected(
                    item,
                    MultiModelValidation(
                        confidence=SECONDARY_FALLBACK_CONFIDENCE,
                        agreed_models=(secondary_outcome.source,),
                        secondary_name=item.name,
                        secondary_serving=item.estimated_serving,
                    ),
                )
                for item in secondary_outcome.foods
            ]
        else:
            _logger.warning(
                "Both vision oracles produced nothing; falling back to single model"
            )
            return None

        detections = detections[: self.max_foods]
        summary["final_food_count"] = len(detections)
        return DetectionResult(
            detections=detections, multi_model_used=True, summary=summary
        )

    async def _detect_single(self, image_data_url: str) -> DetectionResult:
        try:
            payload = await self._request(self.primary, image_data_url)
        except TimeoutError as exc:
            raise DetectionTimeoutError(
                f"Food identification timed out after "
                f"{self.primary.timeout_seconds}s"
            ) from exc

        detections = [
            FoodDetection.from_detected(item) for item in payload.foods
        ][: self.max_foods]
        message = None
        if not detections:
            message = payload.error or "No food detected in image"
        return DetectionResult(
            detections=detections,
            multi_model_used=False,
            summary={
                "primary_model": self.primary.name,
                "primary_food_count": len(payload.foods),
                "final_food_count": len(detections),
            },
            message=message,
        )

    async def _identify(self, oracle: Oracle, image_data_url: str) -> OracleDetections:
        """Soft identification call used in multi-model mode."""
        try:
            payload = await self._request(oracle, image_data_url)
        except TimeoutError:
            return OracleDetections(source=oracle.name, error="timeout")
        except UpstreamUnavailableError as exc:
            _logger.warning("Vision oracle %s failed: %s", oracle.name, exc)
            return OracleDetections(source=oracle.name, error=str(exc))
        return OracleDetections(
            source=oracle.name, foods=payload.foods, error=payload.error
        )

    async def _request(self, oracle: Oracle, image_data_url: str) -> DetectionPayload:
        text = await oracle.ask(
            prompts.FOOD_DETECTION_PROMPT,
            image_data_url=image_data_url,
            temperature=0.1,
            max_tokens=1500,
        )
        payload = extract_json_object(text)
        if payload is None:
            raise UpstreamUnavailableError(
                f"{oracle.name} returned no JSON object for food identification"
            )
        return parse_detection_payload(payload)


def _confidence(detection: FoodDetection) -> float:
    return detection.validation.confidence if detection.validation else 0.0


def _to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return "image/jpeg"
