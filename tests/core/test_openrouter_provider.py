import io
import json
from urllib.error import HTTPError

import pytest

import src.contextflow.core.providers.openrouter as openrouter
from src.contextflow.core.providers.openrouter import call_openrouter


def test_call_openrouter_normalizes_first_choice(monkeypatch):
    seen = {}

    def fake_post_json(url, headers, payload, timeout_sec):
        seen.update({"url": url, "headers": headers, "payload": payload, "timeout": timeout_sec})
        return {
            "choices": [{"message": {"content": "{\"text\": \"hi\"}"}, "finish_reason": "stop"}],
            "usage": {"total_tokens": 5},
        }

    monkeypatch.setattr(openrouter, "_post_json", fake_post_json)
    out = call_openrouter(
        api_key="K",
        model="google/gemini-2.5-pro",
        messages=[{"role": "user", "content": "x"}],
        temperature=0.1,
        response_format={"type": "json_object"},
        app_title="ContextFlow",
    )

    assert out["ok"] is True
    assert out["text"] == "{\"text\": \"hi\"}"
    assert out["finish_reason"] == "stop"
    assert seen["headers"]["Authorization"] == "Bearer K"
    assert seen["headers"]["X-Title"] == "ContextFlow"
    assert seen["payload"]["response_format"] == {"type": "json_object"}
    assert seen["payload"]["temperature"] == pytest.approx(0.1)


def test_call_openrouter_handles_missing_choices(monkeypatch):
    monkeypatch.setattr(openrouter, "_post_json", lambda *args, **kwargs: {"choices": []})
    out = call_openrouter(api_key="K", model="m", messages=[])
    assert out["ok"] is True
    assert out["text"] is None


def test_post_json_surfaces_provider_error_message(monkeypatch):
    body = json.dumps({"error": {"message": "token count exceeds limit"}}).encode("utf-8")

    def fake_urlopen(req, timeout):
        raise HTTPError(req.full_url, 400, "Bad Request", hdrs=None, fp=io.BytesIO(body))

    monkeypatch.setattr(openrouter, "urlopen", fake_urlopen)
    with pytest.raises(RuntimeError, match="HTTP 400: token count exceeds limit"):
        openrouter._post_json("https://example.invalid", {}, {}, 5)


def test_post_json_keeps_error_code_next_to_message(monkeypatch):
    body = json.dumps(
        {"error": {"message": "Upstream rejected the request", "code": "context_length_exceeded"}}
    ).encode("utf-8")

    def fake_urlopen(req, timeout):
        raise HTTPError(req.full_url, 400, "Bad Request", hdrs=None, fp=io.BytesIO(body))

    monkeypatch.setattr(openrouter, "urlopen", fake_urlopen)
    with pytest.raises(RuntimeError) as excinfo:
        openrouter._post_json("https://example.invalid", {}, {}, 5)
    assert str(excinfo.value) == "HTTP 400: Upstream rejected the request [context_length_exceeded]"


def test_call_openrouter_raises_on_error_inside_ok_response(monkeypatch):
    monkeypatch.setattr(
        openrouter,
        "_post_json",
        lambda *args, **kwargs: {"error": {"code": 502, "message": "Provider returned error"}},
    )
    with pytest.raises(RuntimeError, match=r"Provider error: Provider returned error \[502\]"):
        call_openrouter(api_key="K", model="m", messages=[])


def test_call_openrouter_raises_on_choice_error(monkeypatch):
    monkeypatch.setattr(
        openrouter,
        "_post_json",
        lambda *args, **kwargs: {"choices": [{"error": {"code": "context_length_exceeded"}, "message": {}}]},
    )
    with pytest.raises(RuntimeError, match="context_length_exceeded"):
        call_openrouter(api_key="K", model="m", messages=[])


def test_call_openrouter_joins_content_parts(monkeypatch):
    monkeypatch.setattr(
        openrouter,
        "_post_json",
        lambda *args, **kwargs: {
            "choices": [{"message": {"content": [{"type": "text", "text": "{\"text\":"}, {"type": "text", "text": " \"hi\"}"}]}}]
        },
    )
    assert call_openrouter(api_key="K", model="m", messages=[])["text"] == "{\"text\": \"hi\"}"
