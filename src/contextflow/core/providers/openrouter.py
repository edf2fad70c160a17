"""OpenRouter chat-completions adapter."""

from __future__ import annotations

import json
from typing import Any
from urllib.error import HTTPError
from urllib.request import Request, urlopen

OPENROUTER_CHAT_URL = "https://openrouter.ai/api/v1/chat/completions"


def _describe_error(err: Any) -> str | None:
    """Flatten an OpenRouter error object to `message [code]`.

    Some upstreams signal context overflow only through the code
    (`context_length_exceeded`).
    """
    if isinstance(err, str):
        return err or None
    if not isinstance(err, dict):
        return None
    message = err.get("message")
    code = err.get("code")
    message = message.strip() if isinstance(message, str) else ""
    code = str(code).strip() if code not in (None, "") else ""
    metadata = err.get("metadata")
    raw_upstream = metadata.get("raw") if isinstance(metadata, dict) else None
    if isinstance(raw_upstream, str) and raw_upstream.strip() and raw_upstream.strip() not in message:
        message = f"{message}: {raw_upstream.strip()}" if message else raw_upstream.strip()
    if message and code and code not in message:
        return f"{message} [{code}]"
    return message or code or None


def _error_detail(body: str, fallback: str) -> str:
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        return body.strip() or fallback
    if isinstance(parsed, dict):
        described = _describe_error(parsed.get("error"))
        if described:
            return described
        if isinstance(parsed.get("message"), str):
            return parsed["message"]
    return body.strip() or fallback


def _message_text(content: Any) -> str | None:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [part.get("text") for part in content if isinstance(part, dict)]
        joined = "".join(text for text in parts if isinstance(text, str))
        return joined or None
    return None


def _post_json(url: str, headers: dict[str, str], payload: dict[str, Any], timeout_sec: int) -> dict[str, Any]:
    req = Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers=headers,
        method="POST",
    )
    try:
        with urlopen(req, timeout=timeout_sec) as response:
            body = response.read().decode("utf-8")
    except HTTPError as exc:
        body = exc.read().decode("utf-8", errors="replace")
        raise RuntimeError(f"HTTP {exc.code}: {_error_detail(body, str(exc))}") from exc
    parsed = json.loads(body)
    if not isinstance(parsed, dict):
        raise ValueError("Provider response must be a JSON object.")
    return parsed


def call_openrouter(
    *,
    api_key: str,
    model: str,
    messages: list[dict[str, Any]],
    max_output_tokens: int | None = None,
    temperature: float | None = None,
    response_format: dict[str, Any] | None = None,
    timeout_sec: int = 60,
    base_url: str = OPENROUTER_CHAT_URL,
    referer: str | None = None,
    app_title: str | None = None,
) -> dict[str, Any]:
    """Call OpenRouter and normalize completion output."""
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    if referer:
        headers["HTTP-Referer"] = referer
    if app_title:
        headers["X-Title"] = app_title

    payload: dict[str, Any] = {
        "model": model,
        "messages": messages,
    }
    if max_output_tokens is not None:
        payload["max_tokens"] = int(max_output_tokens)
    if temperature is not None:
        payload["temperature"] = float(temperature)
    if response_format:
        payload["response_format"] = response_format

    raw = _post_json(base_url, headers=headers, payload=payload, timeout_sec=timeout_sec)
    # OpenRouter reports some upstream failures inside a 200 response.
    body_error = _describe_error(raw.get("error"))
    if body_error:
        raise RuntimeError(f"Provider error: {body_error}")

    choices = raw.get("choices", [])
    first = choices[0] if isinstance(choices, list) and choices else {}
    if not isinstance(first, dict):
        first = {}
    choice_error = _describe_error(first.get("error"))
    if choice_error:
        raise RuntimeError(f"Provider error: {choice_error}")
    message = first.get("message")
    if not isinstance(message, dict):
        message = {}

    return {
        "ok": True,
        "provider": "openrouter",
        "model": model,
        "text": _message_text(message.get("content")),
        "finish_reason": first.get("finish_reason"),
        "usage": raw.get("usage"),
        "raw": raw,
        "error": None,
    }
