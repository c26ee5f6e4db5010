"""Commit message generation with automatic and interactive regeneration."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable

from commit_composer.assistant import COMMIT_MESSAGE_TEMPLATE, AssistantPipeline
from commit_composer.errors import CommitCancelledError, PipelineProtocolError
from commit_composer.models import CommitWordAction
from commit_composer.notify import Notifier

LOGGER = logging.getLogger(__name__)

INITIAL_COMMIT_PREFIX = "Initial commit: "
PROBLEMATIC_STRINGS_FOR_AUTO_RETRY = ("The commit message is:",)

ChooseCommitWordAction = Callable[[str], CommitWordAction]


def strip_initial_commit_prefix(message: str) -> str:
    if message.startswith(INITIAL_COMMIT_PREFIX):
        return message[len(INITIAL_COMMIT_PREFIX) :]
    return message


def contains_problematic_string(message: str) -> bool:
    return any(problem in message for problem in PROBLEMATIC_STRINGS_FOR_AUTO_RETRY)


def mentions_commit(message: str) -> bool:
    return "commit" in message.lower()


def generate_commit_message(
    pipeline: AssistantPipeline,
    *,
    choose_action: ChooseCommitWordAction,
    notifier: Notifier | None = None,
) -> str:
    """Generate a message, regenerating until it passes or the user accepts it.

    There is no attempt cap: a message with a problematic preamble is retried
    automatically, one that mentions "commit" goes to ``choose_action``.
    """
    attempt = 0
    while True:
        attempt += 1
        print("Generating commit message...", file=sys.stderr)
        outcome = pipeline.run_template(COMMIT_MESSAGE_TEMPLATE, validate=True, capture=True)
        if not outcome.captured_text:
            raise PipelineProtocolError("No commit message was generated!")

        message = strip_initial_commit_prefix(outcome.captured_text)
        LOGGER.debug("commit_message_candidate", extra={"attempt": attempt, "length": len(message)})

        if contains_problematic_string(message):
            print(
                "\nGenerated message contains problematic string, regenerating...",
                file=sys.stderr,
            )
            continue

        if mentions_commit(message):
            print('\nGenerated message contains the word "commit":', file=sys.stderr)
            print(f"\n{message}\n", file=sys.stderr)
            if notifier is not None:
                notifier.send(
                    "Commit Composer",
                    "Generated message contains the word 'commit'. Please review.",
                )
            action = choose_action(message)
            if action == "use":
                print("\nUsing the generated message.", file=sys.stderr)
            elif action == "regenerate":
                print("\nRegenerating commit message...", file=sys.stderr)
                continue
            else:
                raise CommitCancelledError("Commit cancelled by user.")

        print("Creating commit with message:", file=sys.stderr)
        print(message, file=sys.stderr)
        return message
