"""Assemble the bounded-size grounding text sent with every model turn."""

from __future__ import annotations

from typing import Sequence

from .models import Message, UploadedFile, UserProfile

# ~400k chars is roughly 100k tokens.
MAX_TOTAL_CHARS = 400_000
MAX_FILE_CHARS = 100_000

HISTORY_SUMMARY_MESSAGES = 5
HISTORY_SNIPPET_CHARS = 100

FILE_TRUNCATED_MARKER = "\n[... Content truncated due to size ...]"
GLOBAL_TRUNCATED_MARKER = "\n[... Global context limit reached, file truncated ...]"
FILE_END = "\n--- END FILE ---\n"
NO_FILES_LINE = "No private files currently uploaded.\n"

# Slack reserved for the global marker + end line when cutting the last file.
_GLOBAL_CUT_RESERVE = 50
_MIN_GLOBAL_SNIPPET = 100


def _history_summary(messages: Sequence[Message]) -> str:
    recent = list(messages)[-HISTORY_SUMMARY_MESSAGES:]
    return " -> ".join(f"[{msg.role}: {msg.content[:HISTORY_SNIPPET_CHARS]}...]" for msg in recent)


def _header(profile: UserProfile, messages: Sequence[Message]) -> str:
    return (
        "--- USER IDENTITY ---\n"
        f"Name: {profile.name}\n"
        f"Role: {profile.role}\n"
        f"Instruction: {profile.preferences}\n"
        "\n"
        "--- CONVERSATION STATE ---\n"
        f"History Summary: {_history_summary(messages)}\n"
        "\n"
        "--- PRIVATE KNOWLEDGE BASE ---\n"
    )


def build_context(
    profile: UserProfile,
    messages: Sequence[Message],
    files: Sequence[UploadedFile],
    *,
    max_total_chars: int = MAX_TOTAL_CHARS,
    max_file_chars: int = MAX_FILE_CHARS,
) -> str:
    """Return identity, history summary and knowledge base as one string.

    Files are added in order. Once a file is cut to fit the global budget the
    budget counts as spent and every later file is left out entirely. A file
    that does not fit and leaves no more than 100 chars of room is skipped
    without spending the budget.
    """
    parts = [_header(profile, messages)]
    used = len(parts[0])

    if not files:
        parts.append(NO_FILES_LINE)
        return "".join(parts)

    for index, file in enumerate(files, start=1):
        if used > max_total_chars:
            continue

        label = f"\nFILE [{index}]: {file.name}\nTYPE: {file.type}\nCONTENT:\n"
        content = file.content
        if len(content) > max_file_chars:
            content = content[:max_file_chars] + FILE_TRUNCATED_MARKER

        entry = label + content + FILE_END
        if used + len(entry) < max_total_chars:
            parts.append(entry)
            used += len(entry)
            continue

        remaining = max_total_chars - used - len(label) - _GLOBAL_CUT_RESERVE
        if remaining > _MIN_GLOBAL_SNIPPET:
            parts.append(label + content[:remaining] + GLOBAL_TRUNCATED_MARKER + FILE_END)
            used = max_total_chars

    return "".join(parts)
