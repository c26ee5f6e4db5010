"""Composer -> assistant subprocess pipeline.

The composer expands a prompt template on its stdout; every chunk is pumped
into the assistant's stdin and the stdin is closed when the composer is done.
The assistant answers with newline-delimited JSON events on stdout, of which
only the last line is kept. Untracked files created while the processes run
are swept before the outcome is interpreted.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import threading
from collections.abc import Callable, Iterable, Iterator, Sequence
from pathlib import Path
from typing import IO

from commit_composer.assistant.prompts import resolve_prompt_template
from commit_composer.assistant.stream import EventStreamCollector
from commit_composer.assistant.validator import capture_result, validate_result
from commit_composer.config import ALLOWED_TOOLS, DISALLOWED_TOOLS, MARKER_FILES
from commit_composer.errors import PipelineProtocolError, PipelineSpawnError
from commit_composer.ledger import UntrackedFileLedger
from commit_composer.models import PipelineOutcome
from commit_composer.shell import drain_stream, normalize_exit_code, read_chunks

LOGGER = logging.getLogger(__name__)

PROMPT_RULER = "-----"

Echo = Callable[[str], None]
PopenFactory = Callable[..., subprocess.Popen]


def _echo_stderr(text: str) -> None:
    print(text, file=sys.stderr)


class AssistantPipeline:
    """Runs one composer/assistant invocation at a time."""

    def __init__(
        self,
        *,
        assistant_command: Sequence[str],
        composer_command: Sequence[str],
        ledger: UntrackedFileLedger,
        model: str,
        scratch_dir: str,
        cwd: str | Path | None = None,
        allowed_tools: Iterable[str] = ALLOWED_TOOLS,
        disallowed_tools: Iterable[str] = DISALLOWED_TOOLS,
        verbose_output: bool = False,
        verbose_prompt: bool = False,
        echo: Echo = _echo_stderr,
        popen: PopenFactory = subprocess.Popen,
    ) -> None:
        self.assistant_command = list(assistant_command)
        self.composer_command = list(composer_command)
        self.ledger = ledger
        self.model = model
        self.scratch_dir = scratch_dir
        self.cwd = str(cwd) if cwd is not None else os.getcwd()
        self.allowed_tools = tuple(allowed_tools)
        self.disallowed_tools = tuple(disallowed_tools)
        self.verbose_output = verbose_output
        self.verbose_prompt = verbose_prompt
        self.echo = echo
        self.popen = popen

    def assistant_args(self) -> list[str]:
        args = [
            *self.assistant_command,
            "--print",
            "--verbose",
            "--output-format",
            "stream-json",
            "--model",
            self.model,
            "--add-dir",
            self.scratch_dir,
            "--add-dir",
            self.cwd,
        ]
        for tool in self.allowed_tools:
            args.extend(["--allowedTools", tool])
        for tool in self.disallowed_tools:
            args.extend(["--disallowedTools", tool])
        return args

    def run_template(
        self,
        template_name: str,
        *,
        validate: bool = False,
        capture: bool = False,
        allow_markers: bool = False,
        search_paths: Sequence[Path] | None = None,
    ) -> PipelineOutcome:
        """Expand ``template_name`` through the composer and feed it to the assistant."""
        template = resolve_prompt_template(template_name, search_paths)
        composer_args = [*self.composer_command, str(template)]
        return self._invoke(
            composer_args=composer_args,
            prompt=None,
            validate=validate,
            capture=capture,
            allow_markers=allow_markers,
        )

    def run_prompt(
        self,
        prompt: str,
        *,
        validate: bool = False,
        capture: bool = False,
        allow_markers: bool = False,
    ) -> PipelineOutcome:
        """Feed a literal prompt to the assistant without a composer."""
        if self.verbose_prompt:
            self.echo(f"{PROMPT_RULER}\n{prompt}\n{PROMPT_RULER}")
        return self._invoke(
            composer_args=None,
            prompt=prompt,
            validate=validate,
            capture=capture,
            allow_markers=allow_markers,
        )

    def _invoke(
        self,
        *,
        composer_args: list[str] | None,
        prompt: str | None,
        validate: bool,
        capture: bool,
        allow_markers: bool,
    ) -> PipelineOutcome:
        before = self.ledger.snapshot()
        allow_list = MARKER_FILES if allow_markers else frozenset()
        try:
            outcome = self._execute(composer_args, prompt)
        finally:
            sweep = self.ledger.sweep(before, allow_list)
        outcome.sweep = sweep

        if outcome.exit_code != 0:
            raise PipelineProtocolError(_failure_message(outcome))
        if validate:
            validate_result(outcome.last_line)
        if capture:
            outcome.captured_text = capture_result(outcome.last_line)
        return outcome

    def _execute(self, composer_args: list[str] | None, prompt: str | None) -> PipelineOutcome:
        composer: subprocess.Popen | None = None
        if composer_args is not None:
            composer = self._spawn("composer", composer_args, stdin=subprocess.DEVNULL)

        assistant_args = self.assistant_args()
        try:
            assistant = self._spawn("assistant", assistant_args, stdin=subprocess.PIPE)
        except PipelineSpawnError:
            _terminate(composer)
            raise

        LOGGER.info(
            "assistant_pipeline_started",
            extra={"composer": composer_args is not None, "model": self.model},
        )

        composer_stderr: list[str] = []
        assistant_stderr: list[str] = []
        collector = EventStreamCollector(echo=self.echo if self.verbose_output else None)
        threads: list[threading.Thread] = []
        finished = False
        try:
            threads.append(_start_thread(drain_stream, assistant.stderr, assistant_stderr.append))
            if composer is not None:
                threads.append(
                    _start_thread(drain_stream, composer.stderr, composer_stderr.append)
                )
                source = read_chunks(composer.stdout)
            else:
                source = iter([(prompt or "").encode("utf-8")])
            prompt_echo = self.echo if self.verbose_prompt and composer is not None else None
            threads.append(_start_thread(_pump, source, assistant.stdin, prompt_echo))

            for chunk in read_chunks(assistant.stdout):
                collector.feed(chunk)
            collector.close()

            exit_code = normalize_exit_code(assistant.wait())
            if composer is not None:
                composer.wait()
            for thread in threads:
                thread.join()
            finished = True
        finally:
            if not finished:
                LOGGER.warning("assistant_pipeline_interrupted")
                _terminate(assistant, composer)

        LOGGER.info(
            "assistant_pipeline_finished",
            extra={"returncode": exit_code, "lines": collector.line_count},
        )
        return PipelineOutcome(
            exit_code=exit_code,
            last_line=collector.last_line,
            line_count=collector.line_count,
            composer_stderr="".join(composer_stderr).strip(),
            assistant_stderr="".join(assistant_stderr).strip(),
        )

    def _spawn(self, role: str, args: list[str], *, stdin: int) -> subprocess.Popen:
        try:
            return self.popen(
                args,
                stdin=stdin,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self.cwd,
            )
        except OSError as exc:
            LOGGER.error("assistant_pipeline_spawn_failed", extra={"role": role, "error": str(exc)})
            raise PipelineSpawnError(role, args[0], exc.strerror or str(exc)) from exc


def _failure_message(outcome: PipelineOutcome) -> str:
    parts = [f"Assistant command failed with exit code {outcome.exit_code}"]
    if outcome.assistant_stderr:
        parts.append(f"Assistant stderr:\n{outcome.assistant_stderr}")
    if outcome.composer_stderr:
        parts.append(f"Composer stderr:\n{outcome.composer_stderr}")
    if outcome.last_line:
        parts.append(f"Last output line:\n{outcome.last_line}")
    return "\n".join(parts)


def _start_thread(target: Callable[..., None], *args: object) -> threading.Thread:
    thread = threading.Thread(target=target, args=args, daemon=True)
    thread.start()
    return thread


def _pump(source: Iterator[bytes], target: IO[bytes] | None, echo: Echo | None) -> None:
    """Copy ``source`` into ``target`` and close it to signal end of input."""
    if target is None:
        return
    if echo is not None:
        echo(PROMPT_RULER)
    try:
        for chunk in source:
            if echo is not None:
                echo(chunk.decode("utf-8", errors="replace").rstrip("\n"))
            target.write(chunk)
            target.flush()
    except BrokenPipeError:
        LOGGER.warning("assistant_stdin_closed_early")
        for _ in source:
            pass
    finally:
        if echo is not None:
            echo(PROMPT_RULER)
        try:
            target.close()
        except BrokenPipeError:
            pass


def _terminate(*processes: subprocess.Popen | None) -> None:
    """Kill and reap whichever children are still running."""
    for process in processes:
        if process is None or process.poll() is not None:
            continue
        process.kill()
        process.wait()
