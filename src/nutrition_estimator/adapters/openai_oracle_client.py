"""OpenAI-compatible chat completions client for oracle requests."""

from dataclasses import dataclass

from openai import APITimeoutError, AsyncOpenAI, OpenAIError

from nutrition_estimator.errors import UpstreamUnavailableError
from nutrition_estimator.services.oracle import OracleClient


@dataclass
class OpenAIOracleClient(OracleClient):
    """Oracle client backed by the Chat Completions API.

    Works against OpenAI directly or any compatible proxy (set ``base_url``),
    which is how non-OpenAI vision models are reached.
    """

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str, base_url: str | None = None) -> "OpenAIOracleClient":
        """Create an oracle client."""
        return cls(client=AsyncOpenAI(api_key=api_key, base_url=base_url))

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
        """Call the chat completions endpoint and return the message text."""
        messages: list[dict[str, object]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        if image_data_url:
            messages.append(
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": image_data_url}},
                    ],
                }
            )
        else:
            messages.append({"role": "user", "content": prompt})

        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except APITimeoutError as exc:
            raise TimeoutError(f"{model} timed out") from exc
        except OpenAIError as exc:
            raise UpstreamUnavailableError(f"{model} request failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise UpstreamUnavailableError(f"{model} returned an empty response")
        return content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
