"""Quality gates run through the project's package manager scripts."""

from __future__ import annotations

import json
import sys
from pathlib import Path

from commit_composer.errors import QualityGateError
from commit_composer.shell import CommandRunner

QUALITY_GATES = (
    ("format", "Formatting", "Code formatting failed"),
    ("lint", "Linting", "Code linting failed"),
    ("typecheck", "Type checking", "Type checking failed"),
)


def _say(message: str) -> None:
    print(message, file=sys.stderr)


class PackageScripts:
    def __init__(
        self,
        runner: CommandRunner,
        workdir: str | Path,
        *,
        package_manager: str = "pnpm",
    ) -> None:
        self.runner = runner
        self.package_json = Path(workdir) / "package.json"
        self.package_manager = package_manager

    def has_script(self, name: str) -> bool:
        if not self.package_json.is_file():
            return False
        try:
            parsed = json.loads(self.package_json.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return False
        scripts = parsed.get("scripts") if isinstance(parsed, dict) else None
        return isinstance(scripts, dict) and bool(scripts.get(name))

    def format_and_lint(self) -> None:
        if not self.package_json.is_file():
            _say("No package.json found - skipping code quality checks")
            return
        for script, label, failure in QUALITY_GATES:
            self._run_script(script, f"{label} with {self.package_manager}...", failure)

    def run_tests(self) -> None:
        if not self.package_json.is_file():
            _say("No package.json found - skipping tests")
            return
        self._run_script(
            "test", f"Running tests with {self.package_manager} test...", "Tests failed"
        )

    def _run_script(self, script: str, banner: str, failure: str) -> None:
        if not self.has_script(script):
            _say(f"No {script} script found in package.json")
            return
        _say(banner)
        result = self.runner.run(f"{self.package_manager} run {script}")
        if not result.ok:
            detail = result.stderr or result.stdout
            raise QualityGateError(f"{failure}\n{detail}" if detail else failure)
