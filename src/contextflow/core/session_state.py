"""Persisted logged-in username (the session boundary)."""

from __future__ import annotations

import json
from pathlib import Path

from .config_loader import get_storage_config, repo_root

DEFAULT_SESSION_PATH = "memory/session.json"


def session_file_path(path: str | Path | None = None, *, root: Path | None = None) -> Path:
    raw = path
    if raw is None:
        configured = get_storage_config().get("session_path")
        raw = configured if isinstance(configured, str) and configured.strip() else DEFAULT_SESSION_PATH
    candidate = Path(raw)
    if not candidate.is_absolute():
        candidate = (root or repo_root()) / candidate
    return candidate


class SessionState:
    def __init__(self, path: str | Path | None = None, *, root: Path | None = None) -> None:
        self._path = session_file_path(path, root=root)

    @property
    def path(self) -> Path:
        return self._path

    def load_username(self) -> str | None:
        if not self._path.exists():
            return None
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
        username = payload.get("username") if isinstance(payload, dict) else None
        return username if isinstance(username, str) and username else None

    def save_username(self, username: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps({"username": username}) + "\n", encoding="utf-8")

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
