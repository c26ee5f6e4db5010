"""Command-line interface for commit-composer."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable
from typing import cast

from commit_composer import __version__
from commit_composer.config import MARKER_FILES, AppConfig
from commit_composer.errors import CommitComposerError
from commit_composer.models import CommitWordAction
from commit_composer.notify import Notifier
from commit_composer.security import remove_marker
from commit_composer.shell import CommandRunner
from commit_composer.workflow import RunContext, RunOptions, run_commit_composer

LOGGER = logging.getLogger(__name__)

FAILURE_TITLE = "Error: Commit Not Created"

COMMIT_WORD_CHOICES: dict[str, CommitWordAction] = {
    "": "use",
    "u": "use",
    "use": "use",
    "r": "regenerate",
    "regenerate": "regenerate",
    "c": "cancel",
    "cancel": "cancel",
}


class CLIArgs(argparse.Namespace):
    dangerously_skip_security_check: bool
    verbose_claude_output: bool
    verbose_prompt_output: bool
    debug: bool


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="commit-composer",
        description="Automatically create commits with AI-generated messages",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--dangerously-skip-security-check",
        action="store_true",
        help="Skip security check (use with caution!)",
    )
    parser.add_argument(
        "--verbose-claude-output",
        action="store_true",
        help="Show verbose Claude output (JSON stream)",
    )
    parser.add_argument(
        "--verbose-prompt-output",
        action="store_true",
        help="Show the full prompt sent to Claude",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging on stderr")
    return parser


def setup_logging(debug: bool = False) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(logging.DEBUG if debug else logging.WARNING)


def run_guarded(
    build_context: Callable[[], RunContext], action: Callable[[RunContext], None]
) -> int:
    """Build the context and run ``action``; report any failure once as exit code 1."""
    context: RunContext | None = None
    try:
        context = build_context()
        action(context)
    except CommitComposerError as exc:
        message = str(exc) or "Unknown error"
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("unexpected_failure")
        message = str(exc) or type(exc).__name__
    else:
        return 0
    finally:
        if context is not None:
            for marker in MARKER_FILES:
                remove_marker(context.git.workdir / marker)

    print(f"Error: {message}", file=sys.stderr)
    if context is not None:
        notifier, project = context.notifier, context.project_name
    else:
        notifier, project = Notifier(CommandRunner()), "unknown"
    notification = notifier.send(FAILURE_TITLE, f"Project: {project}\n{message}")
    LOGGER.debug(
        "failure_notification",
        extra={"sent": notification.sent, "error": notification.error},
    )
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = cast(CLIArgs, parser.parse_args(argv))
    setup_logging(args.debug)

    options = RunOptions(
        dangerously_skip_security_check=args.dangerously_skip_security_check,
        verbose_claude_output=args.verbose_claude_output,
        verbose_prompt_output=args.verbose_prompt_output,
    )
    return run_guarded(
        lambda: RunContext.build(AppConfig.from_env(), options),
        lambda context: run_commit_composer(
            context, options, choose_action=_choose_commit_word_action
        ),
    )


def _choose_commit_word_action(message: str) -> CommitWordAction:
    print("What would you like to do?", file=sys.stderr)
    print("  [u] Use this message anyway", file=sys.stderr)
    print("  [r] Generate a new message", file=sys.stderr)
    print("  [c] Cancel", file=sys.stderr)
    while True:
        print("Choice [U/r/c]: ", end="", file=sys.stderr, flush=True)
        try:
            choice = input().strip().lower()
        except EOFError:
            return "cancel"
        action = COMMIT_WORD_CHOICES.get(choice)
        if action is not None:
            return action
        print(f"Unrecognized choice: {choice}", file=sys.stderr)


if __name__ == "__main__":
    raise SystemExit(main())
