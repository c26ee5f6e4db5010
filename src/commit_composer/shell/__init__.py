"""Shell command execution."""

from .runner import (
    CommandRunner,
    drain_stream,
    normalize_exit_code,
    read_chunks,
    sanitize_command,
)

__all__ = [
    "CommandRunner",
    "drain_stream",
    "normalize_exit_code",
    "read_chunks",
    "sanitize_command",
]
