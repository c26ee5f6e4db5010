"""Best-effort desktop notifications."""

from __future__ import annotations

import logging
import shlex

from commit_composer.models import NotificationResult
from commit_composer.shell import CommandRunner

LOGGER = logging.getLogger(__name__)

NOTIFY_COMMAND = "notify-send"
EXPIRE_MILLISECONDS = 12000


class Notifier:
    """Sends ``notify-send`` notifications; never raises."""

    def __init__(self, runner: CommandRunner, *, enabled: bool = True) -> None:
        self.runner = runner
        self.enabled = enabled

    def send(self, title: str, message: str) -> NotificationResult:
        if not self.enabled:
            return NotificationResult(sent=False, skipped_reason="disabled")
        if not self.runner.exists(NOTIFY_COMMAND):
            return NotificationResult(sent=False, skipped_reason=f"{NOTIFY_COMMAND} not found")

        command = " ".join(
            [
                NOTIFY_COMMAND,
                shlex.quote(title),
                shlex.quote(message),
                "--urgency=critical",
                f"--expire-time={EXPIRE_MILLISECONDS}",
            ]
        )
        try:
            result = self.runner.run(command)
        except OSError as exc:
            LOGGER.warning("notification_failed", extra={"error": str(exc)})
            return NotificationResult(sent=False, error=str(exc))
        if not result.ok:
            LOGGER.warning("notification_failed", extra={"stderr": result.stderr})
            return NotificationResult(sent=False, error=result.stderr or f"exit code {result.exit_code}")
        return NotificationResult(sent=True)
