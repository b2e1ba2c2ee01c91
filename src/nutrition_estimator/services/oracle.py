"""Generative oracle access with tolerant JSON extraction."""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Protocol

from nutrition_estimator.errors import UpstreamUnavailableError

_logger = logging.getLogger(__name__)
_decoder = json.JSONDecoder()


class OracleClient(Protocol):
    """Interface for LLM text and vision completions."""

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
        """Return the raw completion text."""


def extract_json_object(text: str | None) -> dict[str, object] | None:
    """Return the first well-formed JSON object embedded in ``text``."""
    if not text:
        return None
    start = text.find("{")
    while start != -1:
        try:
            parsed, _ = _decoder.raw_decode(text, start)
        except (ValueError, RecursionError):
            start = text.find("{", start + 1)
            continue
        if isinstance(parsed, dict):
            return parsed
        start = text.find("{", start + 1)
    return None


@dataclass
class Oracle:
    """A configured model behind an oracle client, with a per-call timeout."""

    client: OracleClient
    model: str
    timeout_seconds: float
    label: str | None = None

    @property
    def name(self) -> str:
        """Label used when reporting which oracle produced a result."""
        return self.label or self.model

    async def ask(  # noqa: PLR0913
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        image_data_url: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 500,
    ) -> str:
        """Return completion text.

        Raises ``TimeoutError`` when the call exceeds the timeout and
        ``UpstreamUnavailableError`` for any other failure.
        """
        try:
            return await asyncio.wait_for(
                self.client.complete(
                    model=self.model,
                    prompt=prompt,
                    system_prompt=system_prompt,
                    image_data_url=image_data_url,
                    temperature=temperature,
                    max_tokens=max_tokens,
                ),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            _logger.warning(
                "Oracle %s timed out after %ss", self.name, self.timeout_seconds
            )
            raise

    async def ask_json(  # noqa: PLR0913
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        image_data_url: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 500,
        action: str = "request",
    ) -> dict[str, object] | None:
        """Return the first JSON object in the reply, or ``None`` on any failure."""
        try:
            text = await self.ask(
                prompt,
                system_prompt=system_prompt,
                image_data_url=image_data_url,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except (TimeoutError, UpstreamUnavailableError) as exc:
            _logger.warning(
                "Oracle %s %s failed: %s",
                self.name,
                action,
                str(exc) or type(exc).__name__,
            )
            return None
        parsed = extract_json_object(text)
        if parsed is None:
            _logger.warning("Oracle %s %s returned no JSON object", self.name, action)
        return parsed
