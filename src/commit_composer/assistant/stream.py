"""Incremental newline-delimited JSON collector for the assistant's stdout."""

from __future__ import annotations

import json
from collections.abc import Callable

LineEcho = Callable[[str], None]


class EventStreamCollector:
    """Splits a chunked byte stream into lines and keeps the last one.

    A record split across two chunks is reassembled through the carry-over
    buffer before it is counted.
    """

    def __init__(self, echo: LineEcho | None = None) -> None:
        self.echo = echo
        self.last_line: str | None = None
        self.line_count = 0
        self._buffer = b""

    def feed(self, chunk: bytes) -> None:
        self._buffer += chunk
        *complete, self._buffer = self._buffer.split(b"\n")
        for raw in complete:
            self._accept(raw)

    def close(self) -> None:
        """Flush a trailing line that arrived without a newline."""
        if self._buffer:
            raw, self._buffer = self._buffer, b""
            self._accept(raw)

    def _accept(self, raw: bytes) -> None:
        line = raw.decode("utf-8", errors="replace").strip()
        if not line:
            return
        self.line_count += 1
        self.last_line = line
        if self.echo is not None:
            self.echo(format_for_echo(line))


def format_for_echo(line: str) -> str:
    """Pretty-print a JSON line, or return it unchanged when it is not JSON."""
    try:
        parsed = json.loads(line)
    except ValueError:
        return line
    return json.dumps(parsed, indent=2)
