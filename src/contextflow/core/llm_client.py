"""Provider-agnostic LLM client entrypoint."""

from __future__ import annotations

import os
from typing import Any

import structlog

from .config_loader import get_model_config, get_provider_config, load_config
from .providers import OPENROUTER_CHAT_URL, call_openrouter

DEFAULT_TIMEOUT_SEC = 60
API_KEY_ENV = "OPENROUTER_API_KEY"

log = structlog.get_logger(__name__)


def _error_result(*, provider: str | None, model: str | None, error: str) -> dict[str, Any]:
    return {
        "ok": False,
        "provider": provider,
        "model": model,
        "text": None,
        "finish_reason": None,
        "usage": None,
        "raw": None,
        "error": error,
    }


def call_llm(
    *,
    messages: list[dict[str, Any]],
    model: str | None = None,
    temperature: float | None = None,
    max_output_tokens: int | None = None,
    response_format: dict[str, Any] | None = None,
    timeout_sec: int | None = None,
) -> dict[str, Any]:
    """Resolve model/provider from config and execute one model call.

    Failures come back as `{"ok": False, "error": ...}`; nothing is retried.
    """
    try:
        payload = load_config()
        model_id, model_cfg = get_model_config(model, payload)
    except (FileNotFoundError, ValueError) as exc:
        return _error_result(provider=None, model=model, error=str(exc))

    provider_name = model_cfg.get("provider")
    if not isinstance(provider_name, str) or not provider_name:
        return _error_result(provider=None, model=model_id, error=f"Model '{model_id}' missing provider.")

    endpoint = model_cfg.get("endpoint")
    if not isinstance(endpoint, str) or not endpoint:
        return _error_result(provider=provider_name, model=model_id, error=f"Model '{model_id}' missing endpoint.")

    if provider_name != "openrouter":
        return _error_result(
            provider=provider_name,
            model=model_id,
            error=f"Unsupported provider '{provider_name}'.",
        )

    try:
        provider_cfg = get_provider_config(provider_name, payload)
    except ValueError as exc:
        return _error_result(provider=provider_name, model=model_id, error=str(exc))

    api_key = provider_cfg.get("apikey") or os.getenv(API_KEY_ENV)
    if not isinstance(api_key, str) or not api_key:
        return _error_result(provider=provider_name, model=model_id, error="OpenRouter API key missing.")

    provider_timeout = timeout_sec
    if provider_timeout is None:
        configured = provider_cfg.get("timeout_sec")
        provider_timeout = int(configured) if configured is not None else DEFAULT_TIMEOUT_SEC

    max_tokens = max_output_tokens if max_output_tokens is not None else model_cfg.get("max_output_tokens")

    try:
        return call_openrouter(
            api_key=api_key,
            model=endpoint,
            messages=messages,
            max_output_tokens=max_tokens if isinstance(max_tokens, int) else None,
            temperature=temperature,
            response_format=response_format,
            timeout_sec=provider_timeout,
            base_url=provider_cfg.get("base_url") or OPENROUTER_CHAT_URL,
            referer=provider_cfg.get("referer"),
            app_title=provider_cfg.get("app_title"),
        )
    except Exception as exc:
        log.warning("llm_call_failed", provider=provider_name, model=model_id, error=str(exc))
        return _error_result(provider=provider_name, model=model_id, error=str(exc))
