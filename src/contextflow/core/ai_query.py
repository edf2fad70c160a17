"""Single-shot classify-and-respond call against the hosted model."""

from __future__ import annotations

import json
from typing import Any, Sequence

import structlog

from .llm_client import call_llm
from .models import DETECTED_ACTIONS, AIResponse, VisualizationData

MAX_HISTORY_TURNS = 10
RAW_TEXT_FALLBACK_MIN_CHARS = 50
RESPONSE_TEMPERATURE = 0.1

DEFAULT_TEXT = "Analysis complete."
INVALID_FORMAT_TEXT = "The AI returned an invalid response format."
CONTEXT_TOO_LARGE_TEXT = "The dataset is too large. Truncating context further."
COMMUNICATION_ERROR_TEXT = "Error communicating with Context Engine."

CONTEXT_TOO_LARGE_MARKERS = (
    "token count exceeds",
    "maximum context length",
    "context_length_exceeded",
)

SYSTEM_INSTRUCTION_TEMPLATE = """You are ContextFlow AI Assistant, a retrieval-augmented assistant grounded in the user's private files.

The CURRENT CONTEXT section below holds the user's profile, a summary of the conversation and their PRIVATE KNOWLEDGE BASE.
Answer from those files whenever they contain the answer.

RULES:
1. If the answer is in the private knowledge base, use it.
2. When you use a file, set "sourceUsed" to its filename.
3. When the files do not cover the question, answer from general knowledge and say so.
4. Reply with one JSON object and nothing else:
   {{
     "text": "markdown reply",
     "detectedAction": "create_task" | "generate_report" | null,
     "actionData": {{"title": "...", "description": "...", "dueDate": "ISO timestamp"}},
     "visualization": {{
       "type": "bar" | "line" | "pie",
       "title": "Chart title",
       "data": [{{"name": "A", "value": 10}}],
       "xAxisKey": "name",
       "yAxisKey": "value"
     }},
     "sourceUsed": "filename.csv"
   }}

CHARTS:
- Summaries of CSV or numeric data must include a "visualization" object.
- Keep charts small (10-15 points at most).
- Pie chart values must be parts of a whole.

ACTIONS:
- "generate_report" when the user wants a summary or table.
- "create_task" when the user wants to schedule or remember something.

CURRENT CONTEXT (USER DATA & FILES):
{context}
"""

log = structlog.get_logger(__name__)


def build_system_instruction(context: str) -> str:
    return SYSTEM_INSTRUCTION_TEMPLATE.format(context=context)


def build_model_messages(
    prompt: str,
    context: str,
    history: Sequence[dict[str, str]],
) -> list[dict[str, str]]:
    """System instruction, the last 10 turns oldest-first, then the new prompt."""
    messages = [{"role": "system", "content": build_system_instruction(context)}]
    for turn in list(history)[-MAX_HISTORY_TURNS:]:
        role = "user" if turn.get("role") == "user" else "assistant"
        messages.append({"role": role, "content": str(turn.get("content") or "")})
    messages.append({"role": "user", "content": prompt})
    return messages


def _is_context_too_large(error: str) -> bool:
    low = error.lower()
    return any(marker in low for marker in CONTEXT_TOO_LARGE_MARKERS)


def _failure_response(error: str) -> AIResponse:
    if _is_context_too_large(error):
        return AIResponse(text=CONTEXT_TOO_LARGE_TEXT)
    return AIResponse(text=COMMUNICATION_ERROR_TEXT)


def interpret_response(raw_text: str | None) -> AIResponse:
    """Coerce untrusted model output into an AIResponse. Never raises."""
    raw = raw_text or "{}"
    try:
        parsed: Any = json.loads(raw)
    except (ValueError, RecursionError):
        parsed = None
    if not isinstance(parsed, dict):
        log.warning("ai_response_not_json_object", raw_chars=len(raw))
        return AIResponse(text=raw if len(raw) > RAW_TEXT_FALLBACK_MIN_CHARS else INVALID_FORMAT_TEXT)

    text = parsed.get("text")
    action = parsed.get("detectedAction")
    action_data = parsed.get("actionData")
    source = parsed.get("sourceUsed")
    return AIResponse(
        text=text if isinstance(text, str) and text else DEFAULT_TEXT,
        detected_action=action if action in DETECTED_ACTIONS else None,
        action_data=action_data if isinstance(action_data, dict) else None,
        visualization=VisualizationData.from_dict(parsed.get("visualization")),
        source_used=source if isinstance(source, str) and source else None,
    )


def query_ai(
    prompt: str,
    context: str,
    history: Sequence[dict[str, str]],
    *,
    model: str | None = None,
) -> AIResponse:
    """Send one turn to the model and interpret the structured reply.

    The caller always receives a well-formed AIResponse: transport failures
    and malformed replies become fallback text.
    """
    try:
        result = call_llm(
            messages=build_model_messages(prompt, context, history),
            model=model,
            temperature=RESPONSE_TEMPERATURE,
            response_format={"type": "json_object"},
        )
    except Exception as exc:
        log.error("ai_query_failed", error=str(exc))
        return _failure_response(str(exc))

    if not result.get("ok"):
        error = str(result.get("error") or "")
        log.error("ai_query_failed", error=error)
        return _failure_response(error)

    text = result.get("text")
    return interpret_response(text if isinstance(text, str) else None)
