"""OpenRouter-backed text summarizer via the OpenAI-compatible SDK."""
from __future__ import annotations

import time
from typing import Any, Protocol

from doctor_reputation.config import settings
from doctor_reputation.errors import SummarizationFailed
from doctor_reputation.services import logger as log_service


class TextSummarizer(Protocol):
    async def complete(self, prompt: str, max_tokens: int, temperature: float) -> str: ...


class OpenRouterSummarizer:
    def __init__(self, openai_client: Any, model: str):
        self._client = openai_client
        self.model = model

    @staticmethod
    def _temperature_for_model(model: str, temperature: float) -> float:
        # Some OpenAI GPT-5-compatible gateways only accept the default temperature.
        if "gpt-5" in (model or "").lower():
            return 1
        return temperature

    async def complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        t0 = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens,
                temperature=self._temperature_for_model(self.model, temperature),
            )
        except Exception as exc:
            log_service.log_llm_call(
                model=self.model,
                caller="report_synthesizer",
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=str(exc),
            )
            raise SummarizationFailed(f"Summarizer request failed: {exc}") from exc

        usage = getattr(response, "usage", None)
        log_service.log_llm_call(
            model=self.model,
            caller="report_synthesizer",
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )

        choices = getattr(response, "choices", None) or []
        text = getattr(choices[0].message, "content", None) if choices else None
        if not isinstance(text, str) or not text.strip():
            raise SummarizationFailed("Summarizer returned an empty response")
        return text


def get_client() -> Any:
    """Get an AsyncOpenAI client pointed at OpenRouter."""
    from openai import AsyncOpenAI

    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    return AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=base_url,
    )


def get_model() -> str:
    """Get the active OpenRouter model id."""
    if settings.openrouter_model:
        return settings.openrouter_model
    return settings.default_model


_summarizer: OpenRouterSummarizer | None = None


def summarizer() -> OpenRouterSummarizer:
    """Get or create the shared summarizer."""
    global _summarizer
    if _summarizer is None:
        _summarizer = OpenRouterSummarizer(get_client(), get_model())
    return _summarizer
