"""LLM access for extraction and briefings.

Extraction and narration depend on the ``LLMClient`` protocol, never on a
provider. ``GroqLLMClient`` is the Groq-backed implementation.

Example:
    from groq import AsyncGroq
    from grove.llm_client import GroqLLMClient

    groq = AsyncGroq(api_key="...")
    llm = GroqLLMClient(groq, model="llama-3.3-70b-versatile")
    text = await llm.complete("Extract facts from ...", system="...")
"""

import time
from dataclasses import dataclass
from typing import Any, Protocol

from groq import AsyncGroq

from .logging import JSONLLogger


@dataclass(frozen=True)
class ImageData:
    """A base64-encoded image and its MIME type."""

    base64: str
    mime_type: str

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


class LLMClient(Protocol):
    """Protocol for completing a prompt with an LLM."""

    @property
    def model(self) -> str:
        """Model identifier used for completions."""
        ...

    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        image: ImageData | None = None,
        json_mode: bool = False,
    ) -> str:
        """Complete a prompt and return the text response."""
        ...


class GroqLLMClient:
    """LLMClient implementation that wraps AsyncGroq."""

    def __init__(
        self,
        client: AsyncGroq,
        model: str = "llama-3.3-70b-versatile",
        temperature: float | None = None,
        usage_logger: JSONLLogger | None = None,
    ) -> None:
        """Initialize the Groq LLM client wrapper.

        Args:
            client: The AsyncGroq client instance to wrap.
            model: The model to use for completions.
            temperature: Sampling temperature, provider default if None.
            usage_logger: Where to record token usage, skipped if None.
        """
        self._client = client
        self._model = model
        self._temperature = temperature
        self._usage_logger = usage_logger

    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        image: ImageData | None = None,
        json_mode: bool = False,
    ) -> str:
        """Complete a prompt and return the text response.

        Args:
            prompt: The user prompt to complete.
            system: Optional system prompt to set context.
            image: Optional image sent alongside the prompt.
            json_mode: Ask the model for a JSON object response.

        Returns:
            The LLM's text response.
        """
        messages: list[dict[str, Any]] = []

        if system:
            messages.append({"role": "system", "content": system})

        if image is not None:
            messages.append(
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": image.data_url}},
                    ],
                }
            )
        else:
            messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = {"model": self._model, "messages": messages}
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        start = time.monotonic()
        response = await self._client.chat.completions.create(**kwargs)
        duration_ms = (time.monotonic() - start) * 1000

        if self._usage_logger is not None:
            usage = getattr(response, "usage", None)
            self._usage_logger.log_ai_usage(
                "complete",
                self._model,
                getattr(usage, "prompt_tokens", None),
                getattr(usage, "completion_tokens", None),
                duration_ms=duration_ms,
            )

        return response.choices[0].message.content or ""

    @property
    def model(self) -> str:
        """Return the model being used."""
        return self._model
