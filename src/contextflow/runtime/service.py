"""Shared runtime ownership facade for daemon/app entrypoints."""

from __future__ import annotations

from importlib import import_module
from pathlib import Path
from threading import RLock
from typing import Any

import structlog

from src.contextflow.core.backend import Backend
from src.contextflow.core.models import UserProfile
from src.contextflow.core.record_store import RecordStore
from src.contextflow.core.session_state import SessionState

log = structlog.get_logger(__name__)


class RuntimeService:
    """Single owner of the record store lifecycle and the chat shell."""

    def __init__(self, *, db_path: str | Path | None = None, session_path: str | Path | None = None) -> None:
        self._lock = RLock()
        self._db_path = db_path
        self._session_path = session_path
        self._store: RecordStore | None = None
        self._shell: Any = None
        self._last_start_source: str | None = None

    @staticmethod
    def _chat_logic_module() -> Any:
        return import_module("app.chat_logic")

    def start(self, *, source: str = "runtime") -> dict[str, Any]:
        with self._lock:
            already_started = self._store is not None
            if not already_started:
                store = RecordStore(self._db_path).open()
                shell_cls = self._chat_logic_module().ChatShell
                self._shell = shell_cls(Backend(store), SessionState(self._session_path))
                self._store = store
                self._shell.boot()
                log.info("runtime_started", source=source, db_path=str(store.db_path))
            self._last_start_source = source
        return {
            "ok": True,
            "source": "runtime_service",
            "already_started": already_started,
            "started": True,
            "start_source": source,
        }

    def stop(self, *, source: str = "runtime") -> dict[str, Any]:
        with self._lock:
            store = self._store
            self._store = None
            self._shell = None
        if store is not None:
            store.close()
            log.info("runtime_stopped", source=source)
        return {"ok": True, "source": "runtime_service", "stopped": True, "stop_source": source}

    def _chat_shell(self) -> Any:
        with self._lock:
            if self._shell is None:
                self.start(source="lazy")
            return self._shell

    def health(self) -> dict[str, Any]:
        store = self._store
        return {
            "ok": True,
            "source": "runtime_service",
            "runtime": {
                "started": store is not None,
                "last_start_source": self._last_start_source,
                "db_path": str(store.db_path) if store is not None else None,
            },
        }

    def session(self) -> dict[str, Any]:
        return self._chat_shell().snapshot()

    def register(self, *, name: str, username: str, password: str) -> dict[str, Any]:
        return self._chat_shell().register(name=name, username=username, password=password)

    def login(self, *, username: str, password: str) -> dict[str, Any]:
        return self._chat_shell().login(username=username, password=password)

    def logout(self) -> dict[str, Any]:
        return self._chat_shell().logout()

    def get_profile(self) -> dict[str, Any]:
        return self._chat_shell().get_profile()

    def update_profile(self, *, name: str, role: str, preferences: str, avatar: str | None = None) -> dict[str, Any]:
        profile = UserProfile(name=name, role=role, preferences=preferences, avatar=avatar)
        return self._chat_shell().update_profile(profile)

    def list_files(self) -> dict[str, Any]:
        return self._chat_shell().list_files()

    def upload_file(
        self,
        *,
        name: str,
        raw: bytes,
        mime_type: str | None = None,
        auto_summarize: bool | None = None,
    ) -> dict[str, Any]:
        return self._chat_shell().upload_file(name, raw, mime_type, auto_summarize=auto_summarize)

    def delete_file(self, *, file_id: str) -> dict[str, Any]:
        return self._chat_shell().delete_file(file_id)

    def query_file(self, *, file_name: str) -> dict[str, Any]:
        return self._chat_shell().query_file(file_name)

    def visualize_file(self, *, file_name: str) -> dict[str, Any]:
        return self._chat_shell().visualize_file(file_name)

    def chat(self, *, message: str) -> dict[str, Any]:
        return self._chat_shell().send_message(message)

    def new_chat(self) -> dict[str, Any]:
        return self._chat_shell().new_chat()

    def list_messages(self) -> dict[str, Any]:
        return self._chat_shell().list_messages()

    def list_tasks(self) -> dict[str, Any]:
        return self._chat_shell().list_tasks()


_RUNTIME_SERVICE: RuntimeService | None = None


def get_runtime_service() -> RuntimeService:
    global _RUNTIME_SERVICE
    if _RUNTIME_SERVICE is None:
        _RUNTIME_SERVICE = RuntimeService()
    return _RUNTIME_SERVICE
