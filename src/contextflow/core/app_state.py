"""Shell-owned application state and its pure transitions.

Every transition returns a new `AppState`; nothing is mutated in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable

from .models import Message, ScheduledTask, UploadedFile, UserProfile


@dataclass(frozen=True, slots=True)
class AppState:
    profile: UserProfile = field(default_factory=lambda: UserProfile(name="", role="", preferences=""))
    messages: tuple[Message, ...] = ()
    files: tuple[UploadedFile, ...] = ()
    tasks: tuple[ScheduledTask, ...] = ()
    username: str | None = None
    is_loading: bool = False
    error: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.username is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile": self.profile.to_dict(),
            "messages": [msg.to_dict() for msg in self.messages],
            "files": [file.to_dict(include_content=False) for file in self.files],
            "tasks": [task.to_dict() for task in self.tasks],
            "username": self.username,
            "is_authenticated": self.is_authenticated,
            "is_loading": self.is_loading,
            "error": self.error,
        }


def authenticated(
    state: AppState,
    *,
    username: str,
    profile: UserProfile,
    messages: Iterable[Message] | None = None,
    files: Iterable[UploadedFile] | None = None,
    tasks: Iterable[ScheduledTask] | None = None,
) -> AppState:
    return replace(
        state,
        username=username,
        profile=profile,
        messages=tuple(messages) if messages is not None else state.messages,
        files=tuple(files) if files is not None else state.files,
        tasks=tuple(tasks) if tasks is not None else state.tasks,
        is_loading=False,
        error=None,
    )


def logged_out(state: AppState) -> AppState:
    return replace(state, username=None)


def load_failed(state: AppState, error: str) -> AppState:
    return replace(state, is_loading=False, error=error)


def loading(state: AppState, value: bool) -> AppState:
    return replace(state, is_loading=value)


def with_profile(state: AppState, profile: UserProfile) -> AppState:
    return replace(state, profile=profile)


def with_message(state: AppState, message: Message) -> AppState:
    return replace(state, messages=(*state.messages, message))


def messages_cleared(state: AppState) -> AppState:
    return replace(state, messages=())


def with_file(state: AppState, file: UploadedFile) -> AppState:
    return replace(state, files=(*state.files, file))


def without_file(state: AppState, file_id: str) -> AppState:
    return replace(state, files=tuple(f for f in state.files if f.id != file_id))


def with_task(state: AppState, task: ScheduledTask) -> AppState:
    # Newest task first, matching the task panel order.
    return replace(state, tasks=(task, *state.tasks))
