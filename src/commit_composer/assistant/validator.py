"""Interpretation of the assistant's terminal record."""

from __future__ import annotations

from commit_composer.errors import PipelineProtocolError
from commit_composer.models import AssistantEvent

NO_RESPONSE_MESSAGE = "No response received from assistant"


def capture_result(last_line: str | None) -> str:
    """Return the ``result`` text of a successful terminal record, else ``""``."""
    if not last_line:
        return ""
    try:
        event = AssistantEvent.from_line(last_line)
    except ValueError:
        return ""
    if event.is_success and event.result:
        return event.result
    return ""


def validate_result(last_line: str | None) -> AssistantEvent:
    """Require a successful terminal record; raise ``PipelineProtocolError`` otherwise."""
    if not last_line:
        raise PipelineProtocolError(NO_RESPONSE_MESSAGE)
    try:
        event = AssistantEvent.from_line(last_line)
    except ValueError as exc:
        msg = f"Invalid response format from assistant: {exc}\nLast line: {last_line}"
        raise PipelineProtocolError(msg) from exc
    if not event.is_success:
        msg = (
            "Assistant returned an error result"
            f" (type={event.type!r}, subtype={event.subtype!r})"
        )
        detail = event.error_message
        if detail:
            msg = f"{msg}: {detail}"
        raise PipelineProtocolError(msg)
    return event
