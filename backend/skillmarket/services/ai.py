from __future__ import annotations

import logging

import httpx

from skillmarket.core.config import Settings, settings as default_settings
from skillmarket.core.errors import GenerativeSynthesisFailure

logger = logging.getLogger(__name__)

SUPPORTED_LLM_PROVIDERS = {"groq", "openai"}
SYSTEM_PROMPT = (
    "You are an expert freelance market analyst. "
    "Answer with a single JSON object and no surrounding prose."
)


def _normalize_provider(config: Settings) -> str:
    provider = (config.llm_provider or "groq").strip().lower()
    if provider not in SUPPORTED_LLM_PROVIDERS:
        return "groq"
    return provider


def _provider_config(config: Settings) -> tuple[str, str | None, str, str]:
    provider = _normalize_provider(config)
    if provider == "openai":
        return (
            provider,
            config.openai_api_key,
            config.openai_model,
            config.openai_api_base.rstrip("/"),
        )
    return (
        "groq",
        config.groq_api_key,
        config.groq_model,
        config.groq_api_base.rstrip("/"),
    )


def ai_is_configured(config: Settings | None = None) -> bool:
    config = config or default_settings
    _, api_key, model, _ = _provider_config(config)
    return bool(config.ai_enabled and api_key and model)


def get_active_ai_provider(config: Settings | None = None) -> str:
    return _provider_config(config or default_settings)[0]


def get_active_ai_model(config: Settings | None = None) -> str:
    return _provider_config(config or default_settings)[2]


class LLMClient:
    """Chat-completions client for OpenAI-compatible providers (groq, openai)."""

    def __init__(self, config: Settings | None = None, *, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config or default_settings
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return ai_is_configured(self.config)

    @property
    def provider(self) -> str:
        return get_active_ai_provider(self.config)

    @property
    def model(self) -> str:
        return get_active_ai_model(self.config)

    async def complete(self, prompt: str, *, expect_json: bool = True) -> str:
        provider, api_key, model, api_base = _provider_config(self.config)
        if not self.config.ai_enabled:
            raise GenerativeSynthesisFailure("AI is disabled")
        if not api_key:
            raise GenerativeSynthesisFailure(f"{provider} API key is not configured")
        if not model:
            raise GenerativeSynthesisFailure(f"No model configured for provider '{provider}'")

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        body = {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.config.llm_temperature,
            "max_tokens": self.config.llm_max_tokens,
        }
        if provider == "openai" and expect_json:
            body["response_format"] = {"type": "json_object"}

        try:
            async with httpx.AsyncClient(
                timeout=self.config.llm_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    f"{api_base}/chat/completions",
                    headers=headers,
                    json=body,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            raise GenerativeSynthesisFailure(
                f"LLM API error ({exc.response.status_code}): {exc.response.text[:500]}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise GenerativeSynthesisFailure(f"LLM call failed: {exc}") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise GenerativeSynthesisFailure("Unexpected LLM response structure") from exc
        if not isinstance(content, str) or not content.strip():
            raise GenerativeSynthesisFailure("LLM returned an empty completion")
        logger.debug("LLM completion received (%s chars) from %s", len(content), provider)
        return content
