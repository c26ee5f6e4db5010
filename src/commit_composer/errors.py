"""Exception hierarchy for terminal failures."""

from __future__ import annotations


class CommitComposerError(Exception):
    """Base class for every failure that ends a run with exit code 1."""


class PrerequisiteError(CommitComposerError):
    """A required executable or repository precondition is missing."""


class PromptNotFoundError(CommitComposerError):
    """No prompt template exists under any search path."""


class PipelineSpawnError(CommitComposerError):
    """One of the pipeline processes could not be started."""

    def __init__(self, process: str, command: str, reason: str) -> None:
        super().__init__(f"Failed to start {process} process ({command}): {reason}")
        self.process = process
        self.command = command
        self.reason = reason


class PipelineProtocolError(CommitComposerError):
    """The assistant exited badly or its final record is unusable."""


class CommitCancelledError(CommitComposerError):
    """The user cancelled from the interactive chooser."""


class SecurityCheckError(CommitComposerError):
    """The security review reported problems or did not finish."""


class QualityGateError(CommitComposerError):
    """A format, lint, typecheck or test script failed."""


class GitOperationError(CommitComposerError):
    """A version-control command failed."""


class CommitError(GitOperationError):
    """``git commit`` failed; nothing was recorded."""


class PushError(GitOperationError):
    """The commit exists locally but could not be pushed."""

    NOT_PUSHED = "Commit was created successfully but not pushed."

    def __init__(self, message: str) -> None:
        super().__init__(f"{message}\n{self.NOT_PUSHED}")


class SpawnError(OSError):
    """Raised by the streaming runner when the executable cannot start."""
