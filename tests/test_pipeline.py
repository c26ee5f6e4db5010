from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

from commit_composer.assistant import AssistantPipeline
from commit_composer.config import MARKER_FILES, SECURITY_CHECK_SUCCESS_FILE
from commit_composer.errors import (
    PipelineProtocolError,
    PipelineSpawnError,
    PromptNotFoundError,
)
from commit_composer.models import SweepReport

ECHO_COMPOSER = "import sys; sys.stdout.write(open(sys.argv[1]).read())"

SUCCESS_ASSISTANT = """
import json, sys
prompt = sys.stdin.read()
print(json.dumps({"type": "progress"}))
print(json.dumps({"type": "result", "subtype": "success", "result": "fix bug"}))
"""

ECHO_PROMPT_ASSISTANT = """
import json, sys
prompt = sys.stdin.read()
print(json.dumps({"type": "result", "subtype": "success", "result": prompt}))
"""

ARGV_ASSISTANT = """
import json, sys
sys.stdin.read()
print(json.dumps({"type": "result", "subtype": "success", "result": " ".join(sys.argv[1:])}))
"""

FAILING_ASSISTANT = """
import subprocess
import sys
sys.stdin.read()
sys.stderr.write("boom")
sys.exit(1)
"""

ERROR_RESULT_ASSISTANT = """
import json, sys
sys.stdin.read()
print(json.dumps({"type": "result", "subtype": "error", "result": "overloaded"}))
"""

SILENT_ASSISTANT = "import sys; sys.stdin.read()"

HANGING_ASSISTANT = """
import json, sys, time
sys.stdin.read()
print(json.dumps({"type": "progress"}), flush=True)
time.sleep(60)
"""

MARKER_ASSISTANT = f"""
import json, sys
sys.stdin.read()
open({SECURITY_CHECK_SUCCESS_FILE!r}, "w").write("all good")
print(json.dumps({{"type": "result", "subtype": "success"}}))
"""


class FakeLedger:
    def __init__(self, before: tuple[str, ...] = ()) -> None:
        self.before = before
        self.sweeps: list[tuple[tuple[str, ...], frozenset[str]]] = []

    def snapshot(self) -> tuple[str, ...]:
        return self.before

    def sweep(self, before, allow_list=()) -> SweepReport:
        self.sweeps.append((tuple(before), frozenset(allow_list)))
        return SweepReport()


@pytest.fixture
def template_dir(tmp_path: Path) -> Path:
    prompts = tmp_path / "prompts"
    prompts.mkdir()
    (prompts / "commit-message.md").write_text("hello", encoding="utf-8")
    return prompts


def _pipeline(
    tmp_path: Path,
    assistant_script: str,
    *,
    ledger: FakeLedger | None = None,
    composer: list[str] | None = None,
    **kwargs: object,
) -> AssistantPipeline:
    return AssistantPipeline(
        assistant_command=[sys.executable, "-c", assistant_script],
        composer_command=composer or [sys.executable, "-c", ECHO_COMPOSER],
        ledger=ledger or FakeLedger(),
        model="sonnet",
        scratch_dir="/tmp",
        cwd=tmp_path,
        **kwargs,
    )


def test_template_run_captures_final_result(tmp_path: Path, template_dir: Path) -> None:
    ledger = FakeLedger()
    pipeline = _pipeline(tmp_path, SUCCESS_ASSISTANT, ledger=ledger)

    outcome = pipeline.run_template(
        "commit-message.md", validate=True, capture=True, search_paths=[template_dir]
    )

    assert outcome.exit_code == 0
    assert outcome.captured_text == "fix bug"
    assert outcome.line_count == 2
    assert ledger.sweeps == [((), frozenset())]


def test_composer_output_is_piped_to_assistant(tmp_path: Path, template_dir: Path) -> None:
    pipeline = _pipeline(tmp_path, ECHO_PROMPT_ASSISTANT)

    outcome = pipeline.run_template("commit-message.md", capture=True, search_paths=[template_dir])

    assert outcome.captured_text == "hello"


def test_large_prompt_is_streamed_through(tmp_path: Path, template_dir: Path) -> None:
    body = "x" * 300_000
    (template_dir / "big.md").write_text(body, encoding="utf-8")
    pipeline = _pipeline(tmp_path, ECHO_PROMPT_ASSISTANT)

    outcome = pipeline.run_template("big.md", capture=True, search_paths=[template_dir])

    assert outcome.captured_text == body


def test_literal_prompt_run(tmp_path: Path) -> None:
    pipeline = _pipeline(tmp_path, ECHO_PROMPT_ASSISTANT)

    outcome = pipeline.run_prompt("review this", capture=True)

    assert outcome.captured_text == "review this"


def test_assistant_receives_fixed_flags(tmp_path: Path) -> None:
    pipeline = _pipeline(tmp_path, ARGV_ASSISTANT)

    flags = pipeline.run_prompt("x", capture=True).captured_text.split(" ")

    assert flags[:5] == ["--print", "--verbose", "--output-format", "stream-json", "--model"]
    assert flags[flags.index("--allowedTools") + 1] == "Write"
    assert flags.count("--allowedTools") == 1
    assert flags.count("--add-dir") == 2
    assert str(tmp_path) in flags
    denied = [flags[i + 1] for i, flag in enumerate(flags) if flag == "--disallowedTools"]
    assert {"Read", "Bash", "WebFetch", "TodoWrite"} <= set(denied)


def test_non_zero_exit_reports_code_and_stderr(tmp_path: Path) -> None:
    ledger = FakeLedger()
    pipeline = _pipeline(tmp_path, FAILING_ASSISTANT, ledger=ledger)

    with pytest.raises(PipelineProtocolError) as excinfo:
        pipeline.run_prompt("x", validate=True)

    message = str(excinfo.value)
    assert "exit code 1" in message
    assert "boom" in message
    assert len(ledger.sweeps) == 1


def test_composer_stderr_is_surfaced_on_failure(tmp_path: Path, template_dir: Path) -> None:
    composer = [sys.executable, "-c", "import sys; sys.stderr.write('template error')"]
    pipeline = _pipeline(tmp_path, FAILING_ASSISTANT, composer=composer)

    with pytest.raises(PipelineProtocolError, match="template error"):
        pipeline.run_template("commit-message.md", search_paths=[template_dir])


def test_validation_failure_still_sweeps(tmp_path: Path) -> None:
    ledger = FakeLedger(before=("existing.txt",))
    pipeline = _pipeline(tmp_path, ERROR_RESULT_ASSISTANT, ledger=ledger)

    with pytest.raises(PipelineProtocolError, match="overloaded"):
        pipeline.run_prompt("x", validate=True)

    assert ledger.sweeps == [(("existing.txt",), frozenset())]


def test_no_output_fails_validation_with_no_response(tmp_path: Path) -> None:
    pipeline = _pipeline(tmp_path, SILENT_ASSISTANT)

    with pytest.raises(PipelineProtocolError, match="No response received"):
        pipeline.run_prompt("x", validate=True)


def test_no_output_without_validation_captures_nothing(tmp_path: Path) -> None:
    outcome = _pipeline(tmp_path, SILENT_ASSISTANT).run_prompt("x", capture=True)

    assert outcome.captured_text == ""
    assert outcome.last_event is None


def test_assistant_spawn_failure_names_process_and_sweeps(tmp_path: Path) -> None:
    ledger = FakeLedger()
    pipeline = AssistantPipeline(
        assistant_command=[str(tmp_path / "missing-claude")],
        composer_command=[sys.executable, "-c", ECHO_COMPOSER],
        ledger=ledger,
        model="sonnet",
        scratch_dir="/tmp",
        cwd=tmp_path,
    )

    with pytest.raises(PipelineSpawnError) as excinfo:
        pipeline.run_prompt("x")

    assert excinfo.value.process == "assistant"
    assert "assistant" in str(excinfo.value)
    assert len(ledger.sweeps) == 1


def test_composer_spawn_failure_names_process(tmp_path: Path, template_dir: Path) -> None:
    ledger = FakeLedger()
    pipeline = _pipeline(
        tmp_path,
        SUCCESS_ASSISTANT,
        ledger=ledger,
        composer=[str(tmp_path / "missing-composer")],
    )

    with pytest.raises(PipelineSpawnError) as excinfo:
        pipeline.run_template("commit-message.md", search_paths=[template_dir])

    assert excinfo.value.process == "composer"
    assert len(ledger.sweeps) == 1


def test_missing_template_fails_fast(tmp_path: Path) -> None:
    ledger = FakeLedger()
    pipeline = _pipeline(tmp_path, SUCCESS_ASSISTANT, ledger=ledger)

    with pytest.raises(PromptNotFoundError, match="nope.md"):
        pipeline.run_template("nope.md", search_paths=[tmp_path])

    assert ledger.sweeps == []


def test_markers_allow_listed_only_on_request(tmp_path: Path) -> None:
    ledger = FakeLedger()
    pipeline = _pipeline(tmp_path, MARKER_ASSISTANT, ledger=ledger)

    pipeline.run_prompt("check", validate=True, allow_markers=True)
    pipeline.run_prompt("check", validate=True)

    assert ledger.sweeps[0][1] == MARKER_FILES
    assert ledger.sweeps[1][1] == frozenset()
    assert (tmp_path / SECURITY_CHECK_SUCCESS_FILE).read_text(encoding="utf-8") == "all good"


def test_verbose_output_echoes_every_line(tmp_path: Path) -> None:
    echoed: list[str] = []
    pipeline = _pipeline(tmp_path, SUCCESS_ASSISTANT, verbose_output=True, echo=echoed.append)

    pipeline.run_prompt("x")

    assert len(echoed) == 2
    assert '"type": "progress"' in echoed[0]


def test_verbose_prompt_echoes_literal_prompt(tmp_path: Path) -> None:
    echoed: list[str] = []
    pipeline = _pipeline(tmp_path, SUCCESS_ASSISTANT, verbose_prompt=True, echo=echoed.append)

    pipeline.run_prompt("secret prompt")

    assert echoed == ["-----\nsecret prompt\n-----"]


def test_children_are_killed_when_reading_output_fails(tmp_path: Path) -> None:
    spawned: list[subprocess.Popen] = []

    def recording_popen(*args: object, **kwargs: object) -> subprocess.Popen:
        process = subprocess.Popen(*args, **kwargs)
        spawned.append(process)
        return process

    def broken_echo(_text: str) -> None:
        raise RuntimeError("terminal went away")

    ledger = FakeLedger()
    pipeline = _pipeline(
        tmp_path,
        HANGING_ASSISTANT,
        ledger=ledger,
        verbose_output=True,
        echo=broken_echo,
        popen=recording_popen,
    )

    with pytest.raises(RuntimeError, match="terminal went away"):
        pipeline.run_prompt("hi")

    assert len(spawned) == 1
    assert spawned[0].poll() is not None
    assert len(ledger.sweeps) == 1
