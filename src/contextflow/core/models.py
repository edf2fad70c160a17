"""Record types persisted by the backend and exchanged with the UI."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

MessageRole = Literal["user", "assistant"]
ChartKind = Literal["bar", "line", "pie"]
TaskStatus = Literal["pending", "in-progress", "completed", "failed"]
TaskType = Literal["automation", "reminder", "report"]
DetectedAction = Literal["create_task", "generate_report"]

CHART_KINDS = frozenset({"bar", "line", "pie"})
DETECTED_ACTIONS = frozenset({"create_task", "generate_report"})


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex}"


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


@dataclass(slots=True)
class UserProfile:
    name: str
    role: str
    preferences: str
    avatar: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "role": self.role,
            "preferences": self.preferences,
            "avatar": self.avatar,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "UserProfile":
        return cls(
            name=str(payload.get("name") or ""),
            role=str(payload.get("role") or ""),
            preferences=str(payload.get("preferences") or ""),
            avatar=_str_or_none(payload.get("avatar")),
        )


@dataclass(slots=True)
class UserRecord:
    username: str
    password: str
    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"username": self.username, "password": self.password, "name": self.name}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "UserRecord":
        return cls(
            username=str(payload.get("username") or ""),
            password=str(payload.get("password") or ""),
            name=str(payload.get("name") or ""),
        )


@dataclass(slots=True)
class VisualizationData:
    """Chart descriptor attached to an assistant message."""

    type: ChartKind
    title: str
    data: list[dict[str, Any]] = field(default_factory=list)
    x_axis_key: str = "name"
    y_axis_key: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "title": self.title,
            "data": [dict(point) for point in self.data],
            "xAxisKey": self.x_axis_key,
            "yAxisKey": self.y_axis_key,
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "VisualizationData | None":
        """Validate an untrusted chart payload; return None when it is unusable."""
        if not isinstance(payload, dict):
            return None
        kind = payload.get("type")
        if kind not in CHART_KINDS:
            return None
        points = payload.get("data")
        if not isinstance(points, list):
            return None
        x_key = payload.get("xAxisKey")
        y_key = payload.get("yAxisKey")
        title = payload.get("title")
        return cls(
            type=kind,
            title=title if isinstance(title, str) else "",
            data=[dict(point) for point in points if isinstance(point, dict)],
            x_axis_key=x_key if isinstance(x_key, str) and x_key else "name",
            y_axis_key=y_key if isinstance(y_key, str) and y_key else None,
        )


@dataclass(slots=True)
class Message:
    id: str
    role: MessageRole
    content: str
    timestamp: str = field(default_factory=utc_now_iso)
    data_source: str | None = None
    visualization: VisualizationData | None = None

    @classmethod
    def create(
        cls,
        *,
        role: MessageRole,
        content: str,
        data_source: str | None = None,
        visualization: VisualizationData | None = None,
        timestamp: str | None = None,
    ) -> "Message":
        return cls(
            id=new_id("msg"),
            role=role,
            content=content,
            timestamp=timestamp or utc_now_iso(),
            data_source=data_source,
            visualization=visualization,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
            "data_source": self.data_source,
            "visualization": self.visualization.to_dict() if self.visualization else None,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Message":
        role = payload.get("role")
        return cls(
            id=str(payload.get("id") or ""),
            role="assistant" if role == "assistant" else "user",
            content=str(payload.get("content") or ""),
            timestamp=str(payload.get("timestamp") or ""),
            data_source=_str_or_none(payload.get("data_source")),
            visualization=VisualizationData.from_dict(payload.get("visualization")),
        )


@dataclass(slots=True)
class UploadedFile:
    id: str
    name: str
    type: str
    size: int
    content: str
    upload_date: str = field(default_factory=utc_now_iso)
    is_indexed: bool = True

    def to_dict(self, *, include_content: bool = True) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "size": self.size,
            "upload_date": self.upload_date,
            "is_indexed": self.is_indexed,
        }
        if include_content:
            out["content"] = self.content
        return out

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "UploadedFile":
        size = payload.get("size")
        return cls(
            id=str(payload.get("id") or ""),
            name=str(payload.get("name") or ""),
            type=str(payload.get("type") or "text/plain"),
            size=int(size) if isinstance(size, int) else 0,
            content=str(payload.get("content") or ""),
            upload_date=str(payload.get("upload_date") or ""),
            is_indexed=bool(payload.get("is_indexed", True)),
        )


@dataclass(slots=True)
class ScheduledTask:
    id: str
    title: str
    description: str
    due_date: str
    status: TaskStatus = "pending"
    type: TaskType = "automation"
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "due_date": self.due_date,
            "status": self.status,
            "type": self.type,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ScheduledTask":
        metadata = payload.get("metadata")
        return cls(
            id=str(payload.get("id") or ""),
            title=str(payload.get("title") or ""),
            description=str(payload.get("description") or ""),
            due_date=str(payload.get("due_date") or ""),
            status=payload.get("status") or "pending",
            type=payload.get("type") or "automation",
            metadata=metadata if isinstance(metadata, dict) else None,
        )


@dataclass(slots=True)
class AIResponse:
    """Typed result of one model turn; always well-formed."""

    text: str
    detected_action: DetectedAction | None = None
    action_data: dict[str, Any] | None = None
    visualization: VisualizationData | None = None
    source_used: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "detected_action": self.detected_action,
            "action_data": self.action_data,
            "visualization": self.visualization.to_dict() if self.visualization else None,
            "source_used": self.source_used,
        }
