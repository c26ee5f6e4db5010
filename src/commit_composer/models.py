"""Data models shared across the runner, ledger and assistant pipeline."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Literal

UntrackedFileSet = tuple[str, ...]
CommitWordAction = Literal["use", "regenerate", "cancel"]


@dataclass(frozen=True, slots=True)
class ShellResult:
    """Result of a shell command run to completion."""

    exit_code: int
    stdout: str
    stderr: str
    command: str = ""
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True, slots=True)
class AssistantEvent:
    """One parsed record from the assistant's JSON event stream."""

    type: str
    subtype: str | None = None
    result: str | None = None
    raw: dict[str, object] = field(default_factory=dict)

    @classmethod
    def from_line(cls, line: str) -> AssistantEvent:
        """Parse a JSON line; raises ``ValueError`` for anything but an object."""
        parsed = json.loads(line)
        if not isinstance(parsed, dict):
            msg = f"expected a JSON object, got {type(parsed).__name__}"
            raise ValueError(msg)
        return cls(
            type=_as_text(parsed.get("type")) or "",
            subtype=_as_text(parsed.get("subtype")),
            result=_as_text(parsed.get("result")),
            raw=parsed,
        )

    @property
    def is_success(self) -> bool:
        return self.type == "result" and self.subtype == "success"

    @property
    def error_message(self) -> str | None:
        for key in ("result", "error", "message"):
            value = self.raw.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None


@dataclass(slots=True)
class SweepReport:
    """Files removed by a cleanup sweep, plus the ones that could not be."""

    deleted: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class PipelineOutcome:
    """Everything observed from one composer/assistant invocation."""

    exit_code: int
    last_line: str | None = None
    line_count: int = 0
    captured_text: str = ""
    composer_stderr: str = ""
    assistant_stderr: str = ""
    sweep: SweepReport = field(default_factory=SweepReport)

    @property
    def last_event(self) -> AssistantEvent | None:
        if self.last_line is None:
            return None
        try:
            return AssistantEvent.from_line(self.last_line)
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class NotificationResult:
    """Outcome of a best-effort desktop notification."""

    sent: bool
    skipped_reason: str | None = None
    error: str | None = None


def _as_text(value: object) -> str | None:
    if isinstance(value, str):
        return value
    return None
