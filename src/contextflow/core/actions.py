"""Turn a detected action in a model reply into a scheduled task."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from .models import AIResponse, ScheduledTask, new_id

DEFAULT_DUE_DELAY = timedelta(hours=1)
DEFAULT_DESCRIPTION = "Context-driven action triggered from files"


def _due_date(raw: object, now: datetime) -> str:
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
        except ValueError:
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc).isoformat()
    return (now + DEFAULT_DUE_DELAY).isoformat()


def task_from_response(response: AIResponse, *, now: datetime | None = None) -> ScheduledTask | None:
    """Return the task implied by `response`, or None when no action was detected.

    Reports are recorded as already completed; everything else is a pending
    automation.
    """
    if response.detected_action not in {"create_task", "generate_report"}:
        return None

    is_report = response.detected_action == "generate_report"
    data = response.action_data or {}
    reference = now or datetime.now(timezone.utc)
    title = data.get("title")
    description = data.get("description")
    return ScheduledTask(
        id=new_id("task"),
        title=title if isinstance(title, str) and title else ("Data Summary Report" if is_report else "Automated Task"),
        description=description if isinstance(description, str) and description else DEFAULT_DESCRIPTION,
        due_date=_due_date(data.get("dueDate"), reference),
        status="completed" if is_report else "pending",
        type="report" if is_report else "automation",
        metadata=response.action_data,
    )
