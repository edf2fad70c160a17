import json
import logging

import pytest
import structlog

from src.contextflow.core.observability import add_service_context, setup_logging


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def _renderer():
    return structlog.get_config()["processors"][-1]


def test_logging_section_selects_json_renderer(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"logging": {"level": "DEBUG", "format": "json"}}), encoding="utf-8")
    setup_logging()
    assert isinstance(_renderer(), structlog.processors.JSONRenderer)


def test_explicit_format_overrides_logging_section(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"logging": {"format": "json"}}), encoding="utf-8")
    setup_logging(log_format="console")
    assert isinstance(_renderer(), structlog.dev.ConsoleRenderer)


def test_console_renderer_without_config():
    setup_logging()
    assert isinstance(_renderer(), structlog.dev.ConsoleRenderer)
    bound = structlog.contextvars.get_contextvars()
    assert bound["service"] == "contextflow"


def test_service_context_copies_bound_username():
    structlog.contextvars.bind_contextvars(username="ada")
    out = add_service_context(logging.getLogger("t"), "info", {"event": "file_uploaded"})
    assert out["username"] == "ada"
    kept = add_service_context(logging.getLogger("t"), "info", {"event": "x", "username": "bob"})
    assert kept["username"] == "bob"
