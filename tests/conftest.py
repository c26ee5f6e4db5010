from __future__ import annotations

from collections.abc import Iterable

import pytest

from commit_composer.models import ShellResult


class FakeRunner:
    """Records shell commands and answers them from a response table."""

    def __init__(
        self,
        responses: dict[str, ShellResult | list[ShellResult]] | None = None,
        executables: Iterable[str] = ("git", "tree", "gh", "notify-send", "context-composer"),
    ) -> None:
        self.responses = dict(responses or {})
        self.executables = set(executables)
        self.commands: list[str] = []

    def run(self, command: str) -> ShellResult:
        self.commands.append(command)
        response = self.responses.get(command)
        if isinstance(response, list):
            return response.pop(0) if len(response) > 1 else response[0]
        if response is not None:
            return response
        return ShellResult(exit_code=0, stdout="", stderr="", command=command)

    def exists(self, name: str) -> bool:
        return name in self.executables


def ok(stdout: str = "") -> ShellResult:
    return ShellResult(exit_code=0, stdout=stdout, stderr="")


def failed(stderr: str = "", exit_code: int = 1) -> ShellResult:
    return ShellResult(exit_code=exit_code, stdout="", stderr=stderr)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()
