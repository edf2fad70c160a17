"""Application shell: wires user actions to context assembly, the model and persistence."""

from __future__ import annotations

from threading import Lock
from typing import Any, Callable

import structlog

from src.contextflow.core import app_state
from src.contextflow.core.actions import task_from_response
from src.contextflow.core.ai_query import query_ai
from src.contextflow.core.app_state import AppState
from src.contextflow.core.backend import AuthenticationError, Backend, RegistrationError
from src.contextflow.core.config_loader import get_chat_config, get_context_limits
from src.contextflow.core.context_assembler import build_context
from src.contextflow.core.file_intake import FileValidationError, build_uploaded_file
from src.contextflow.core.models import Message, UploadedFile, UserProfile, utc_now_iso
from src.contextflow.core.session_state import SessionState

LOAD_FAILED_ERROR = "Failed to load local database."
NOT_LOGGED_IN = {"ok": False, "route": "auth", "error": "Not logged in."}
UPLOAD_SUMMARY_PROMPT = 'I\'ve just uploaded "{name}". Summarize the trends and provide a chart.'
QUERY_FILE_PROMPT = 'Analyze the file "{name}" and provide a summary of its primary content and key trends.'
VISUALIZE_FILE_PROMPT = (
    'Analyze "{name}" and generate a data visualization (chart) showing the primary metrics '
    "or distributions found in the file."
)

log = structlog.get_logger(__name__)


def _auto_summarize_default() -> bool:
    value = get_chat_config().get("auto_summarize_uploads")
    return value if isinstance(value, bool) else True


class ChatShell:
    """Owns the explicit `AppState` for one interactive session.

    State only changes through the pure transitions in `app_state`; a single
    in-flight flag refuses overlapping model turns.
    """

    def __init__(self, backend: Backend, session: SessionState) -> None:
        self._backend = backend
        self._session = session
        self._state = AppState()
        self._state_lock = Lock()
        self._in_flight = False

    @property
    def state(self) -> AppState:
        return self._state

    def _apply(self, transition: Callable[..., AppState], *args: Any, **kwargs: Any) -> AppState:
        with self._state_lock:
            self._state = transition(self._state, *args, **kwargs)
            return self._state

    def snapshot(self) -> dict[str, Any]:
        return {"ok": True, "state": self._state.to_dict()}

    def _load_authenticated(self, username: str) -> None:
        profile = self._backend.get_profile(username)
        self._apply(
            app_state.authenticated,
            username=username,
            profile=profile,
            messages=self._backend.get_messages(),
            files=self._backend.get_files(),
            tasks=self._backend.get_tasks(),
        )
        structlog.contextvars.bind_contextvars(username=username)

    # session

    def boot(self) -> dict[str, Any]:
        username = self._session.load_username()
        if not username:
            self._apply(app_state.loading, False)
            return {"ok": True, "authenticated": False}
        self._apply(app_state.loading, True)
        try:
            self._load_authenticated(username)
        except Exception:
            log.exception("boot_load_failed", username=username)
            self._apply(app_state.load_failed, LOAD_FAILED_ERROR)
            return {"ok": False, "authenticated": False, "error": LOAD_FAILED_ERROR}
        log.info("session_restored", username=username)
        return {"ok": True, "authenticated": True, "username": username}

    def login(self, *, username: str, password: str) -> dict[str, Any]:
        try:
            user = self._backend.login(username=username, password=password)
        except AuthenticationError as exc:
            return {"ok": False, "route": "auth", "error": str(exc)}
        self._session.save_username(user.username)
        self._load_authenticated(user.username)
        return {"ok": True, "username": user.username, "profile": self._state.profile.to_dict()}

    def register(self, *, name: str, username: str, password: str) -> dict[str, Any]:
        if not username.strip() or not password:
            return {"ok": False, "route": "validation", "error": "Username and password are required."}
        try:
            self._backend.register(username=username, password=password, name=name)
        except RegistrationError as exc:
            return {"ok": False, "route": "auth", "error": str(exc)}
        return {"ok": True, "username": username, "message": "Account created! You can now log in."}

    def logout(self) -> dict[str, Any]:
        self._session.clear()
        self._apply(app_state.logged_out)
        structlog.contextvars.unbind_contextvars("username")
        return {"ok": True, "authenticated": False}

    def update_profile(self, profile: UserProfile) -> dict[str, Any]:
        username = self._state.username
        if username is None:
            return dict(NOT_LOGGED_IN)
        self._backend.save_profile(profile, username)
        self._apply(app_state.with_profile, profile)
        return {"ok": True, "profile": profile.to_dict(), "message": "Profile updated successfully"}

    # chat

    def send_message(self, prompt: str, *, files_override: list[UploadedFile] | None = None) -> dict[str, Any]:
        if not isinstance(prompt, str) or not prompt.strip():
            return {"ok": False, "route": "validation", "error": "Message is empty."}
        if not self._state.is_authenticated:
            return dict(NOT_LOGGED_IN)

        with self._state_lock:
            if self._in_flight:
                return {"ok": False, "route": "busy", "error": "A request is already in progress."}
            self._in_flight = True
            self._state = app_state.loading(self._state, True)

        try:
            return self._run_turn(prompt, files_override)
        finally:
            with self._state_lock:
                self._in_flight = False
                self._state = app_state.loading(self._state, False)

    def _run_turn(self, prompt: str, files_override: list[UploadedFile] | None) -> dict[str, Any]:
        prior = self._state.messages
        user_message = Message.create(role="user", content=prompt)
        self._backend.save_message(user_message)
        state = self._apply(app_state.with_message, user_message)

        files = list(files_override) if files_override is not None else list(state.files)
        context = build_context(state.profile, state.messages, files, **get_context_limits())
        history = [{"role": msg.role, "content": msg.content} for msg in prior]
        response = query_ai(prompt, context, history)

        # Log order must stay non-decreasing even if the wall clock steps back.
        assistant_message = Message.create(
            role="assistant",
            content=response.text,
            data_source=response.source_used,
            visualization=response.visualization,
            timestamp=max(utc_now_iso(), user_message.timestamp),
        )
        self._backend.save_message(assistant_message)

        task = task_from_response(response)
        if task is not None:
            self._backend.save_task(task)
            self._apply(app_state.with_task, task)
            log.info("task_created", task_id=task.id, task_type=task.type)

        self._apply(app_state.with_message, assistant_message)
        return {
            "ok": True,
            "route": "llm.context_engine",
            "reply": response.text,
            "data": {
                "message": assistant_message.to_dict(),
                "detected_action": response.detected_action,
                "task": task.to_dict() if task is not None else None,
                "context_debug": {
                    "context_chars": len(context),
                    "file_count": len(files),
                    "history_turns": len(history),
                },
            },
        }

    def new_chat(self) -> dict[str, Any]:
        if not self._state.is_authenticated:
            return dict(NOT_LOGGED_IN)
        removed = self._backend.clear_memory()
        self._apply(app_state.messages_cleared)
        return {"ok": True, "cleared": removed}

    # files

    def upload_file(
        self,
        name: str,
        raw: bytes,
        mime_type: str | None = None,
        *,
        auto_summarize: bool | None = None,
    ) -> dict[str, Any]:
        if not self._state.is_authenticated:
            return dict(NOT_LOGGED_IN)
        try:
            uploaded = build_uploaded_file(name, raw, mime_type)
        except FileValidationError as exc:
            log.info("upload_rejected", file_name=name, reason=str(exc))
            return {"ok": False, "route": "validation", "error": str(exc)}

        self._backend.save_file(uploaded)
        state = self._apply(app_state.with_file, uploaded)
        log.info("file_uploaded", file_id=uploaded.id, file_name=uploaded.name, size=uploaded.size)

        out: dict[str, Any] = {"ok": True, "file": uploaded.to_dict(include_content=False), "analysis": None}
        should_summarize = _auto_summarize_default() if auto_summarize is None else auto_summarize
        if should_summarize:
            out["analysis"] = self.send_message(
                UPLOAD_SUMMARY_PROMPT.format(name=uploaded.name),
                files_override=list(state.files),
            )
        return out

    def delete_file(self, file_id: str) -> dict[str, Any]:
        if not self._state.is_authenticated:
            return dict(NOT_LOGGED_IN)
        deleted = self._backend.delete_file(file_id)
        self._apply(app_state.without_file, file_id)
        return {"ok": True, "file_id": file_id, "deleted": deleted}

    def query_file(self, file_name: str) -> dict[str, Any]:
        return self.send_message(QUERY_FILE_PROMPT.format(name=file_name))

    def visualize_file(self, file_name: str) -> dict[str, Any]:
        return self.send_message(VISUALIZE_FILE_PROMPT.format(name=file_name))

    # reads

    def list_messages(self) -> dict[str, Any]:
        if not self._state.is_authenticated:
            return dict(NOT_LOGGED_IN)
        return {"ok": True, "messages": [msg.to_dict() for msg in self._backend.get_messages()]}

    def list_files(self) -> dict[str, Any]:
        if not self._state.is_authenticated:
            return dict(NOT_LOGGED_IN)
        return {"ok": True, "files": [f.to_dict(include_content=False) for f in self._backend.get_files()]}

    def list_tasks(self) -> dict[str, Any]:
        if not self._state.is_authenticated:
            return dict(NOT_LOGGED_IN)
        return {"ok": True, "tasks": [task.to_dict() for task in self._backend.get_tasks()]}

    def get_profile(self) -> dict[str, Any]:
        return {"ok": True, "profile": self._backend.get_profile(self._state.username).to_dict()}
