"""AI security review of the staged changes."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from commit_composer.assistant import AssistantPipeline, build_security_prompt
from commit_composer.config import SECURITY_CHECK_FAILURE_FILE, SECURITY_CHECK_SUCCESS_FILE
from commit_composer.errors import SecurityCheckError
from commit_composer.git import GitRepository

LOGGER = logging.getLogger(__name__)


def remove_marker(path: Path) -> bool:
    """Delete a marker file if present; returns False when it could not be removed."""
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        LOGGER.warning("marker_cleanup_failed", extra={"path": str(path), "error": str(exc)})
        return False
    return True


def run_security_check(pipeline: AssistantPipeline, git: GitRepository) -> None:
    print("Running security check...", file=sys.stderr)
    success_marker = git.workdir / SECURITY_CHECK_SUCCESS_FILE
    failure_marker = git.workdir / SECURITY_CHECK_FAILURE_FILE
    remove_marker(success_marker)
    remove_marker(failure_marker)

    prompt = build_security_prompt(git.tree_output(), git.diff_cached(), git.status())
    try:
        pipeline.run_prompt(prompt, validate=True, allow_markers=True)
    except BaseException:
        remove_marker(failure_marker)
        remove_marker(success_marker)
        raise

    if failure_marker.exists():
        findings = failure_marker.read_text(encoding="utf-8", errors="replace")
        print("Error: Security check failed!", file=sys.stderr)
        print("Security issues found:", file=sys.stderr)
        print(findings, file=sys.stderr)
        remove_marker(failure_marker)
        remove_marker(success_marker)
        raise SecurityCheckError("Security check failed! Check the security issues above.")

    if not success_marker.exists():
        raise SecurityCheckError(
            "Security check did not complete successfully!"
            f" Missing ./{SECURITY_CHECK_SUCCESS_FILE} file"
        )

    remove_marker(success_marker)
    print("Security check passed.", file=sys.stderr)
