"""Typed persistence operations built on the record store."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from .models import Message, ScheduledTask, UploadedFile, UserProfile, UserRecord
from .record_store import RecordStore

GUEST_PROFILE = UserProfile(name="Guest", role="Visitor", preferences="")
DEMO_PROFILE = UserProfile(
    name="Alex Rivera",
    role="Operations Manager",
    preferences="Professional, concise, values data visualization.",
    avatar="https://picsum.photos/seed/alex/200",
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

log = structlog.get_logger(__name__)


class AuthenticationError(Exception):
    """Unknown username or wrong password."""


class RegistrationError(Exception):
    """Username is already taken."""


def _parse_iso(value: str | None) -> datetime:
    if not value:
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def default_avatar(username: str) -> str:
    return f"https://picsum.photos/seed/{username}/200"


class Backend:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    @property
    def store(self) -> RecordStore:
        return self._store

    # auth

    def register(self, *, username: str, password: str, name: str = "") -> UserRecord:
        if self._store.get("users", username) is not None:
            raise RegistrationError("Username already taken.")
        user = UserRecord(username=username, password=password, name=name)
        self._store.put("users", user.to_dict())
        seeded = UserProfile(
            name=name,
            role="New Member",
            preferences="Professional and concise.",
            avatar=default_avatar(username),
        )
        self.save_profile(seeded, username)
        log.info("user_registered", username=username)
        return user

    def login(self, *, username: str, password: str) -> UserRecord:
        payload = self._store.get("users", username)
        if payload is None or payload.get("password") != password:
            log.info("login_rejected", username=username)
            raise AuthenticationError("Invalid username or access token.")
        return UserRecord.from_dict(payload)

    # profile

    def get_profile(self, username: str | None = None) -> UserProfile:
        if not username:
            return UserProfile.from_dict(GUEST_PROFILE.to_dict())
        payload = self._store.get("profile", username)
        if payload is not None:
            return UserProfile.from_dict(payload)
        return UserProfile.from_dict(DEMO_PROFILE.to_dict())

    def save_profile(self, profile: UserProfile, username: str) -> None:
        self._store.put("profile", {**profile.to_dict(), "id": username})

    # files

    def get_files(self) -> list[UploadedFile]:
        return [UploadedFile.from_dict(item) for item in self._store.get_all("files")]

    def save_file(self, file: UploadedFile) -> None:
        self._store.put("files", file.to_dict())

    def delete_file(self, file_id: str) -> bool:
        return self._store.delete("files", file_id)

    # tasks

    def get_tasks(self) -> list[ScheduledTask]:
        """Tasks ordered by due date, latest first."""
        tasks = [ScheduledTask.from_dict(item) for item in self._store.get_all("tasks")]
        return sorted(tasks, key=lambda task: _parse_iso(task.due_date), reverse=True)

    def save_task(self, task: ScheduledTask) -> None:
        self._store.put("tasks", task.to_dict())

    # messages

    def get_messages(self) -> list[Message]:
        """Conversation log ordered by timestamp, oldest first."""
        messages = [Message.from_dict(item) for item in self._store.get_all("messages")]
        return sorted(messages, key=lambda msg: _parse_iso(msg.timestamp))

    def save_message(self, message: Message) -> None:
        self._store.put("messages", message.to_dict())

    def clear_memory(self) -> int:
        return self._store.clear("messages")
