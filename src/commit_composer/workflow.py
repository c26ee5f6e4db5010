"""End-to-end run: gates, security review, message, commit, push."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

from commit_composer.assistant import AssistantPipeline
from commit_composer.commit_message import ChooseCommitWordAction, generate_commit_message
from commit_composer.config import AppConfig
from commit_composer.errors import PrerequisiteError
from commit_composer.git import GitRepository
from commit_composer.ledger import UntrackedFileLedger
from commit_composer.notify import Notifier
from commit_composer.package_scripts import PackageScripts
from commit_composer.security import run_security_check
from commit_composer.shell import CommandRunner

LOGGER = logging.getLogger(__name__)

REQUIRED_EXECUTABLES = (
    ("git", "Git is required for version control operations"),
    ("tree", "tree is required for displaying project structure"),
)


@dataclass(slots=True)
class RunOptions:
    dangerously_skip_security_check: bool = False
    verbose_claude_output: bool = False
    verbose_prompt_output: bool = False


@dataclass(slots=True)
class RunContext:
    """Collaborators for one run, built once and passed down explicitly."""

    config: AppConfig
    runner: CommandRunner
    git: GitRepository
    ledger: UntrackedFileLedger
    pipeline: AssistantPipeline
    scripts: PackageScripts
    notifier: Notifier

    @property
    def project_name(self) -> str:
        return self.git.project_name

    @classmethod
    def build(
        cls,
        config: AppConfig,
        options: RunOptions,
        workdir: str | Path | None = None,
    ) -> RunContext:
        cwd = Path(workdir) if workdir is not None else Path.cwd()
        runner = CommandRunner(cwd=cwd)
        git = GitRepository(runner, cwd)
        ledger = UntrackedFileLedger(git)
        pipeline = AssistantPipeline(
            assistant_command=[config.claude_path],
            composer_command=[config.composer],
            ledger=ledger,
            model=config.model,
            scratch_dir=config.scratch_dir,
            cwd=cwd,
            verbose_output=options.verbose_claude_output or config.verbose_claude_output,
            verbose_prompt=options.verbose_prompt_output or config.verbose_prompt_output,
        )
        return cls(
            config=config,
            runner=runner,
            git=git,
            ledger=ledger,
            pipeline=pipeline,
            scripts=PackageScripts(runner, cwd, package_manager=config.package_manager),
            notifier=Notifier(runner, enabled=config.notifications_enabled),
        )


def check_prerequisites(context: RunContext) -> None:
    """Fail before any mutation when a tool or the repository is missing."""
    required = [*REQUIRED_EXECUTABLES, (context.config.composer, "the prompt composer is required")]
    missing = [
        f"  - {name}: {reason}" for name, reason in required if not context.runner.exists(name)
    ]
    if missing:
        raise PrerequisiteError(
            "Required executables are missing:\n"
            + "\n".join(missing)
            + "\nPlease install the missing executables before running this script."
        )

    claude_path = context.config.claude_path
    if not os.path.isfile(claude_path) or not os.access(claude_path, os.X_OK):
        raise PrerequisiteError(
            f"Claude CLI not found at {claude_path}. Please ensure Claude CLI is installed."
        )

    context.git.ensure_repository()


def _first_line(message: str) -> str:
    return message.split("\n", 1)[0]


def run_commit_composer(
    context: RunContext,
    options: RunOptions,
    *,
    choose_action: ChooseCommitWordAction,
) -> None:
    project = context.project_name
    check_prerequisites(context)
    context.scripts.format_and_lint()

    if not context.git.stage_all_changes():
        print("No changes to commit. Ensuring repository is pushed to git repo...", file=sys.stderr)
        if context.git.is_in_worktree():
            print("Skipping sync - detected git worktree", file=sys.stderr)
            return
        context.git.setup_remote_and_push()
        context.notifier.send(
            "Repository Synced",
            f"Project: {project}\nRepository synced with git repo (no new changes)",
        )
        return

    context.scripts.run_tests()

    if options.dangerously_skip_security_check:
        print(
            "WARNING: Security check is being skipped!"
            " (--dangerously-skip-security-check flag is set)",
            file=sys.stderr,
        )
        print(
            "WARNING: This is potentially dangerous - ensure you've reviewed all changes manually!",
            file=sys.stderr,
        )
    else:
        run_security_check(context.pipeline, context.git)

    message = generate_commit_message(
        context.pipeline,
        choose_action=choose_action,
        notifier=context.notifier,
    )
    context.git.create_commit(message)

    if context.git.is_in_worktree():
        print("Skipping push - detected git worktree", file=sys.stderr)
        title = "Commit Created (Worktree)"
    else:
        context.git.setup_remote_and_push()
        title = "Commit Created"
    context.notifier.send(title, f"Project: {project}\n{_first_line(message)}")
    LOGGER.info("commit_composer_finished", extra={"project": project})

    context.git.show_commit_summary()
