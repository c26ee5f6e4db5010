"""Shell command runner used for git, tree and package-manager calls."""

from __future__ import annotations

import codecs
import locale
import logging
import re
import shutil
import subprocess
import sys
import threading
import time
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import IO

from commit_composer.errors import SpawnError
from commit_composer.models import ShellResult

LOGGER = logging.getLogger(__name__)

OutputCallback = Callable[[str], None]

STREAM_CHUNK_SIZE = 64 * 1024

_SECRET_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"(--?(?:password|token|secret|api[-_]?key)\s+)([^\s]+)",
        r"((?:password|token|secret|api[-_]?key)\s*=\s*)([^\s]+)",
    )
]


class CommandRunner:
    """Runs commands through ``bash -c`` (or ``sh``) in a fixed directory."""

    def __init__(
        self,
        *,
        cwd: str | Path | None = None,
        executable: str | None = None,
        fallback_to_sh: bool = True,
    ) -> None:
        self.cwd = str(cwd) if cwd is not None else None
        self.executable = executable or _default_executable(fallback_to_sh=fallback_to_sh)

    def run(self, command: str) -> ShellResult:
        """Run ``command`` to completion; a non-zero exit is reported, not raised."""
        self._log_request(command)
        started = time.monotonic()
        try:
            process = subprocess.run(
                [self.executable, "-c", command],
                capture_output=True,
                cwd=self.cwd,
                check=False,
                text=False,
            )
        except FileNotFoundError:
            result = ShellResult(
                exit_code=127,
                stdout="",
                stderr=f"shell executable not found: {self.executable}",
                command=command,
            )
            self._log_result(result)
            return result

        result = ShellResult(
            exit_code=process.returncode,
            stdout=_normalize_output(process.stdout).rstrip(),
            stderr=_normalize_output(process.stderr).rstrip(),
            command=command,
            duration_seconds=time.monotonic() - started,
        )
        self._log_result(result)
        return result

    def run_streaming(
        self,
        command: str,
        args: Sequence[str],
        on_output: OutputCallback,
        on_error: OutputCallback | None = None,
    ) -> int:
        """Spawn ``command`` without a shell and stream its output to callbacks.

        Stderr chunks go to ``on_error`` when given, otherwise to this
        process's stderr. Returns the exit code, or 0 when the process
        reports none (terminated by a signal).
        """
        argv = [command, *args]
        self._log_request(" ".join(argv))
        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self.cwd,
            )
        except OSError as exc:
            LOGGER.error("command_spawn_failed", extra={"command": command, "error": str(exc)})
            raise SpawnError(exc.errno, f"failed to start {command}: {exc.strerror or exc}") from exc

        error_sink = on_error or _write_stderr
        stderr_thread = threading.Thread(
            target=drain_stream, args=(process.stderr, error_sink), daemon=True
        )
        stderr_thread.start()
        drain_stream(process.stdout, on_output)
        returncode = process.wait()
        stderr_thread.join()

        exit_code = normalize_exit_code(returncode)
        LOGGER.info("command_streamed", extra={"command": command, "returncode": exit_code})
        return exit_code

    def exists(self, name: str) -> bool:
        """Return true when ``name`` resolves to an executable on ``PATH``."""
        return shutil.which(name) is not None

    def _log_request(self, command: str) -> None:
        LOGGER.info(
            "command_request",
            extra={"command": sanitize_command(command), "cwd": self.cwd},
        )

    def _log_result(self, result: ShellResult) -> None:
        LOGGER.info(
            "command_result",
            extra={
                "returncode": result.exit_code,
                "duration_seconds": round(result.duration_seconds, 4),
                "stdout_length": len(result.stdout),
                "stderr_length": len(result.stderr),
            },
        )


def normalize_exit_code(returncode: int | None) -> int:
    """Map a missing or signal (negative) return code to 0."""
    if returncode is None or returncode < 0:
        return 0
    return returncode


def sanitize_command(command: str) -> str:
    sanitized = command
    for pattern in _SECRET_PATTERNS:
        sanitized = pattern.sub(r"\1***", sanitized)
    return sanitized


def read_chunks(stream: IO[bytes] | None) -> Iterator[bytes]:
    """Yield raw chunks as soon as they arrive; closes ``stream`` at EOF."""
    if stream is None:
        return
    with stream:
        while True:
            chunk = stream.read1(STREAM_CHUNK_SIZE)  # type: ignore[attr-defined]
            if not chunk:
                return
            yield chunk


def drain_stream(stream: IO[bytes] | None, callback: OutputCallback) -> None:
    """Decode ``stream`` as UTF-8 into ``callback``; split characters are rejoined."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    for chunk in read_chunks(stream):
        text = decoder.decode(chunk)
        if text:
            callback(text)
    tail = decoder.decode(b"", final=True)
    if tail:
        callback(tail)


def _write_stderr(text: str) -> None:
    sys.stderr.write(text)
    sys.stderr.flush()


def _default_executable(*, fallback_to_sh: bool) -> str:
    if shutil.which("bash"):
        return "bash"
    if fallback_to_sh and shutil.which("sh"):
        return "sh"
    return "bash"


def _normalize_output(payload: bytes | str | None) -> str:
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload

    for encoding in ("utf-8", "utf-8-sig", locale.getpreferredencoding(False), "cp1252"):
        try:
            return payload.decode(encoding)
        except (LookupError, UnicodeDecodeError):
            continue
    return payload.decode("utf-8", errors="replace")
