"""Shared test fixtures."""

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass, field

import pytest

from nutrition_estimator.adapters.fdc_client import DEFAULT_DATA_TYPES, FdcClient
from nutrition_estimator.config import Settings
from nutrition_estimator.containers import AppContainer
from nutrition_estimator.errors import UpstreamUnavailableError
from nutrition_estimator.services import prompts
from nutrition_estimator.services.analysis import FoodAnalysisService
from nutrition_estimator.services.decomposition import DishDecomposer
from nutrition_estimator.services.detection import DetectionService
from nutrition_estimator.services.nutrition import NutritionService
from nutrition_estimator.services.oracle import Oracle, OracleClient
from nutrition_estimator.services.outliers import OutlierService
from nutrition_estimator.services.rate_limit import InMemoryRateLimiter
from nutrition_estimator.services.realism import RealismService
from nutrition_estimator.services.resolver import NutritionResolver

TEXT_MODEL = "text-model"
PRIMARY_MODEL = "primary-vision"
SECONDARY_MODEL = "secondary-vision"

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"

_FDC_IDS = {
    "calories": 1008,
    "protein": 1003,
    "carbs": 1005,
    "fat": 1004,
    "fiber": 1079,
    "sodium": 1093,
    "sugar": 2000,
    "iron": 1089,
    "vitamin_c": 1162,
}

_SYSTEM_PROMPT_KINDS = {
    prompts.ESTIMATE_SYSTEM_PROMPT: "estimate",
    prompts.CORRECTION_SYSTEM_PROMPT: "correction",
    prompts.SEARCH_TERM_SYSTEM_PROMPT: "search_term",
    prompts.DECOMPOSE_SYSTEM_PROMPT: "decompose",
}


def request_kind(system_prompt: str | None, image_data_url: str | None) -> str | None:
    """Classify an oracle request by its system prompt, or as an image detection."""
    if image_data_url:
        return "detect"
    return _SYSTEM_PROMPT_KINDS.get(system_prompt or "")


def fdc_food(fdc_id: int, description: str, **per_100g: float) -> dict[str, object]:
    """Build a search result record in the FDC search shape."""
    return {
        "fdcId": fdc_id,
        "description": description,
        "dataType": "SR Legacy",
        "foodNutrients": [
            {"nutrientId": _FDC_IDS[name], "value": value}
            for name, value in per_100g.items()
        ],
    }


@dataclass
class FakeFdcClient(FdcClient):
    """Fake FDC client with in-memory results keyed by lowercased query."""

    foods_by_query: dict[str, list[dict[str, object]]] = field(default_factory=dict)
    queries: list[str] = field(default_factory=list)
    error: Exception | None = None

    async def search_foods(
        self,
        query: str,
        page_size: int = 5,
        data_types: tuple[str, ...] = DEFAULT_DATA_TYPES,
    ) -> dict[str, object]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return {"foods": self.foods_by_query.get(query.lower(), [])[:page_size]}


Reply = str | Exception | Callable[[str], str]


@dataclass
class ScriptedOracleClient(OracleClient):
    """Oracle client replaying scripted replies per request kind.

    Kinds are ``estimate``, ``correction``, ``search_term``, ``decompose`` and
    ``detect``; a ``"<kind>:<model>"`` key takes precedence over the bare kind.
    Replies are consumed in order and the last one repeats.
    """

    replies: dict[str, list[Reply]] = field(default_factory=dict)
    calls: list[dict[str, object]] = field(default_factory=list)

    async def complete(  # noqa: PLR0913
        self,
        *,
        model: str,
        prompt: str,
        system_prompt: str | None = None,
        image_data_url: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 500,
    ) -> str:
        kind = request_kind(system_prompt, image_data_url)
        self.calls.append(
            {
                "kind": kind,
                "model": model,
                "prompt": prompt,
                "image_data_url": image_data_url,
                "temperature": temperature,
            }
        )
        queue = self.replies.get(f"{kind}:{model}") or self.replies.get(kind or "")
        if not queue:
            raise UpstreamUnavailableError(f"no scripted reply for {kind}")
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(prompt)
        return reply

    def kinds(self) -> list[object]:
        return [call["kind"] for call in self.calls]


@dataclass
class TrackingOracleClient(OracleClient):
    """Wraps a scripted client and records how its calls overlap.

    With ``gate`` set, every call waits until that many calls are in flight at
    once; callers that await one call before starting the next therefore time
    out instead of getting a reply. ``delays`` adds a sleep per model.
    """

    inner: ScriptedOracleClient
    gate: int = 0
    delays: dict[str, float] = field(default_factory=dict)
    events: list[tuple[str, object]] = field(default_factory=list)
    in_flight: int = 0
    max_in_flight: int = 0
    _gate_open: asyncio.Event | None = None

    async def complete(  # noqa: PLR0913
        self,
        *,
        model: str,
        prompt: str,
        system_prompt: str | None = None,
        image_data_url: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 500,
    ) -> str:
        kind = request_kind(system_prompt, image_data_url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.events.append(("start", kind))
        try:
            if self.gate:
                if self._gate_open is None:
                    self._gate_open = asyncio.Event()
                if self.in_flight >= self.gate:
                    self._gate_open.set()
                await self._gate_open.wait()
            if model in self.delays:
                await asyncio.sleep(self.delays[model])
            return await self.inner.complete(
                model=model,
                prompt=prompt,
                system_prompt=system_prompt,
                image_data_url=image_data_url,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        finally:
            self.in_flight -= 1
            self.events.append(("end", kind))


def as_json(payload: dict[str, object]) -> str:
    """Render an oracle reply wrapped in prose, the way models often answer."""
    return f"Here you go:\n```json\n{json.dumps(payload)}\n```"


def build_analysis_service(
    fdc_client: FdcClient | None,
    oracle_client: OracleClient,
    *,
    multi_model_enabled: bool = False,
    outlier_detection_enabled: bool = True,
    outlier_auto_correct: bool = True,
) -> FoodAnalysisService:
    nutrition_service = NutritionService(fdc_client=fdc_client, timeout_seconds=1.0)
    text_oracle = Oracle(client=oracle_client, model=TEXT_MODEL, timeout_seconds=1.0)
    resolver = NutritionResolver(nutrition_service=nutrition_service, oracle=text_oracle)
    detection_service = DetectionService(
        primary=Oracle(client=oracle_client, model=PRIMARY_MODEL, timeout_seconds=1.0),
        secondary=Oracle(
            client=oracle_client, model=SECONDARY_MODEL, timeout_seconds=1.0
        ),
        multi_model_enabled=multi_model_enabled,
    )
    return FoodAnalysisService(
        nutrition_service=nutrition_service,
        resolver=resolver,
        realism=RealismService(oracle=text_oracle),
        outliers=OutlierService(
            enabled=outlier_detection_enabled, auto_correct=outlier_auto_correct
        ),
        decomposer=DishDecomposer(oracle=text_oracle, resolver=resolver),
        detection=detection_service,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="openai-key",
        fdc_api_key="fdc-key",
    )


@pytest.fixture
def fdc_client() -> FakeFdcClient:
    return FakeFdcClient()


@pytest.fixture
def oracle_client() -> ScriptedOracleClient:
    return ScriptedOracleClient()


@pytest.fixture
def analysis_service(
    fdc_client: FakeFdcClient, oracle_client: ScriptedOracleClient
) -> FoodAnalysisService:
    return build_analysis_service(fdc_client, oracle_client)


@pytest.fixture
def container(
    settings: Settings, analysis_service: FoodAnalysisService
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        nutrition_service=analysis_service.nutrition_service,
        resolver=analysis_service.resolver,
        detection_service=analysis_service.detection,
        analysis_service=analysis_service,
        rate_limiter=InMemoryRateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        ),
        close_resources=close_resources,
    )
