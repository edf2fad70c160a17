from __future__ import annotations

import sys

import pytest

from src.contextflow.daemon.main import main, run_server


class _FakeRuntime:
    def __init__(self) -> None:
        self.starts: list[dict] = []
        self.stops: list[dict] = []

    def start(self, **kwargs):
        self.starts.append(kwargs)
        return {"ok": True}

    def stop(self, **kwargs):
        self.stops.append(kwargs)
        return {"ok": True}


def _patch(monkeypatch, fake):
    calls: list[dict] = []

    class _FakeUvicorn:
        @staticmethod
        def run(*args, **kwargs):
            calls.append({"args": args, **kwargs})
            return None

    monkeypatch.setattr("src.contextflow.daemon.main.get_runtime_service", lambda: fake)
    monkeypatch.setattr("src.contextflow.daemon.main.setup_logging", lambda *args, **kwargs: None)
    monkeypatch.setitem(sys.modules, "uvicorn", _FakeUvicorn)
    return calls


def test_run_server_starts_runtime_and_invokes_uvicorn(monkeypatch):
    fake = _FakeRuntime()
    calls = _patch(monkeypatch, fake)

    out = run_server(host="127.0.0.1", port=9000)
    assert out == 0
    assert len(calls) == 1
    assert calls[0]["args"] == ("app.main:app",)
    assert calls[0]["port"] == 9000
    assert fake.starts == [{"source": "daemon"}]
    assert fake.stops == [{"source": "daemon"}]


def test_run_server_stops_runtime_when_server_fails(monkeypatch):
    fake = _FakeRuntime()

    class _BrokenUvicorn:
        @staticmethod
        def run(*args, **kwargs):
            raise OSError("address in use")

    monkeypatch.setattr("src.contextflow.daemon.main.get_runtime_service", lambda: fake)
    monkeypatch.setattr("src.contextflow.daemon.main.setup_logging", lambda *args, **kwargs: None)
    monkeypatch.setitem(sys.modules, "uvicorn", _BrokenUvicorn)

    with pytest.raises(OSError, match="address in use"):
        run_server()
    assert len(fake.stops) == 1


def test_main_parses_args(monkeypatch):
    seen = {}
    monkeypatch.setattr("src.contextflow.daemon.main.run_server", lambda **kwargs: seen.update(kwargs) or 0)

    out = main(["--host", "0.0.0.0", "--port", "8123", "--log-level", "DEBUG", "--log-format", "json"])
    assert out == 0
    assert seen == {"host": "0.0.0.0", "port": 8123, "log_level": "DEBUG", "log_format": "json"}
