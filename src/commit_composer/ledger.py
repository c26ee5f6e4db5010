"""Untracked-file ledger: undo files an assistant run left behind."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable

from commit_composer.git import GitRepository
from commit_composer.models import SweepReport, UntrackedFileSet

LOGGER = logging.getLogger(__name__)


class UntrackedFileLedger:
    """Snapshots untracked, non-ignored paths and deletes new ones on sweep."""

    def __init__(self, git: GitRepository) -> None:
        self.git = git

    def snapshot(self) -> UntrackedFileSet:
        return tuple(self.git.untracked_files())

    def sweep(self, before: Iterable[str], allow_list: Iterable[str] = ()) -> SweepReport:
        """Delete every path created since ``before`` that is not allow-listed.

        Deletion failures are recorded in the report and never raised.
        """
        known = set(before)
        allowed = set(allow_list)
        report = SweepReport()
        for path in self.snapshot():
            if path in known or path in allowed:
                continue
            print(f"Cleaning up created file: {path}", file=sys.stderr)
            try:
                (self.git.workdir / path).unlink(missing_ok=True)
            except OSError as exc:
                report.failed[path] = str(exc)
                LOGGER.warning("cleanup_failed", extra={"path": path, "error": str(exc)})
                continue
            report.deleted.append(path)

        LOGGER.debug(
            "cleanup_sweep_finished",
            extra={"deleted": len(report.deleted), "failed": len(report.failed)},
        )
        return report
