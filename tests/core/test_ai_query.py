import json

import pytest

import src.contextflow.core.ai_query as ai_query
from src.contextflow.core.ai_query import (
    COMMUNICATION_ERROR_TEXT,
    CONTEXT_TOO_LARGE_TEXT,
    DEFAULT_TEXT,
    INVALID_FORMAT_TEXT,
    build_model_messages,
    interpret_response,
    query_ai,
)


def _ok(text):
    return {"ok": True, "provider": "openrouter", "model": "m", "text": text, "error": None}


def test_build_model_messages_keeps_last_ten_turns_then_prompt():
    history = [{"role": "user" if i % 2 == 0 else "assistant", "content": f"turn-{i}"} for i in range(14)]
    messages = build_model_messages("new question", "CTX-BLOB", history)

    assert messages[0]["role"] == "system"
    assert "CTX-BLOB" in messages[0]["content"]
    assert '"detectedAction"' in messages[0]["content"]
    turns = messages[1:-1]
    assert [m["content"] for m in turns] == [f"turn-{i}" for i in range(4, 14)]
    assert messages[-1] == {"role": "user", "content": "new question"}


def test_build_model_messages_maps_non_user_roles_to_assistant():
    messages = build_model_messages("q", "ctx", [{"role": "model", "content": "prior"}])
    assert messages[1] == {"role": "assistant", "content": "prior"}


def test_query_ai_requests_json_object(monkeypatch):
    seen = {}

    def fake_call_llm(**kwargs):
        seen.update(kwargs)
        return _ok(json.dumps({"text": "hello"}))

    monkeypatch.setattr(ai_query, "call_llm", fake_call_llm)
    result = query_ai("hi", "ctx", [])
    assert result.text == "hello"
    assert seen["response_format"] == {"type": "json_object"}
    assert seen["temperature"] == pytest.approx(0.1)


def test_query_ai_parses_full_structured_reply(monkeypatch):
    payload = {
        "text": "Sales rose in Q3.",
        "detectedAction": "generate_report",
        "actionData": {"title": "Q3 report", "dueDate": "2026-03-01T09:00:00Z"},
        "visualization": {
            "type": "bar",
            "title": "Sales",
            "data": [{"name": "Q1", "value": 3}, {"name": "Q2", "value": 5}],
            "xAxisKey": "name",
            "yAxisKey": "value",
        },
        "sourceUsed": "sales.csv",
    }
    monkeypatch.setattr(ai_query, "call_llm", lambda **kwargs: _ok(json.dumps(payload)))

    result = query_ai("summarize", "ctx", [])
    assert result.text == "Sales rose in Q3."
    assert result.detected_action == "generate_report"
    assert result.action_data == {"title": "Q3 report", "dueDate": "2026-03-01T09:00:00Z"}
    assert result.visualization is not None
    assert result.visualization.type == "bar"
    assert len(result.visualization.data) == 2
    assert result.source_used == "sales.csv"


def test_query_ai_missing_text_defaults(monkeypatch):
    monkeypatch.setattr(ai_query, "call_llm", lambda **kwargs: _ok(json.dumps({"text": ""})))
    result = query_ai("hi", "ctx", [])
    assert result.text == DEFAULT_TEXT
    assert result.detected_action is None
    assert result.action_data is None
    assert result.visualization is None
    assert result.source_used is None


def test_query_ai_empty_reply_is_treated_as_empty_object(monkeypatch):
    monkeypatch.setattr(ai_query, "call_llm", lambda **kwargs: _ok(None))
    assert query_ai("hi", "ctx", []).text == DEFAULT_TEXT


def test_query_ai_long_non_json_returns_raw_text(monkeypatch):
    raw = "This is plain prose from the model rather than the JSON object we asked for."
    monkeypatch.setattr(ai_query, "call_llm", lambda **kwargs: _ok(raw))
    result = query_ai("hi", "ctx", [])
    assert result.text == raw


def test_query_ai_short_non_json_returns_invalid_format(monkeypatch):
    monkeypatch.setattr(ai_query, "call_llm", lambda **kwargs: _ok("not json"))
    assert query_ai("hi", "ctx", []).text == INVALID_FORMAT_TEXT


def test_interpret_response_rejects_non_object_json():
    assert interpret_response("[1, 2, 3]").text == INVALID_FORMAT_TEXT


def test_interpret_response_drops_invalid_optional_fields():
    raw = json.dumps(
        {
            "text": "ok",
            "detectedAction": "launch_rockets",
            "actionData": "nope",
            "visualization": {"type": "radar", "data": []},
            "sourceUsed": 42,
        }
    )
    result = interpret_response(raw)
    assert result.text == "ok"
    assert result.detected_action is None
    assert result.action_data is None
    assert result.visualization is None
    assert result.source_used is None


def test_query_ai_context_too_large_error(monkeypatch):
    monkeypatch.setattr(
        ai_query,
        "call_llm",
        lambda **kwargs: {"ok": False, "error": "HTTP 400: input token count exceeds the maximum"},
    )
    assert query_ai("hi", "ctx", []).text == CONTEXT_TOO_LARGE_TEXT


def test_query_ai_generic_error(monkeypatch):
    monkeypatch.setattr(ai_query, "call_llm", lambda **kwargs: {"ok": False, "error": "HTTP 503: busy"})
    assert query_ai("hi", "ctx", []).text == COMMUNICATION_ERROR_TEXT


def test_query_ai_never_raises_on_client_exception(monkeypatch):
    def boom(**kwargs):
        raise RuntimeError("socket closed")

    monkeypatch.setattr(ai_query, "call_llm", boom)
    assert query_ai("hi", "ctx", []).text == COMMUNICATION_ERROR_TEXT
