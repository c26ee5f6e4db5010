"""Git and GitHub CLI operations, invoked as shell commands."""

from __future__ import annotations

import logging
import shlex
import sys
from pathlib import Path

from commit_composer.errors import CommitError, PrerequisiteError, PushError
from commit_composer.shell import CommandRunner

LOGGER = logging.getLogger(__name__)

NOT_PUSHED = PushError.NOT_PUSHED

UNTRACKED_FILES_COMMAND = "git ls-files -z --others --exclude-standard"


def _say(message: str) -> None:
    print(message, file=sys.stderr)


def _lines(text: str) -> list[str]:
    return [line for line in text.split("\n") if line]


def _entries(text: str) -> list[str]:
    """Split NUL-terminated ``-z`` output; names there are never quoted."""
    return [entry for entry in text.split("\0") if entry]


class GitRepository:
    """Version-control operations against the repository in ``workdir``."""

    def __init__(self, runner: CommandRunner, workdir: str | Path) -> None:
        self.runner = runner
        self.workdir = Path(workdir)

    @property
    def project_name(self) -> str:
        return self.workdir.resolve().name or "repo"

    def ensure_repository(self) -> None:
        if not self.runner.run("git rev-parse --git-dir").ok:
            raise PrerequisiteError("Not in a git repository")

    def is_in_worktree(self) -> bool:
        """A linked worktree has a ``.git`` file pointing at the main gitdir."""
        git_path = self.workdir / ".git"
        if not git_path.is_file():
            return False
        try:
            return "gitdir:" in git_path.read_text(encoding="utf-8")
        except OSError:
            return False

    def staged_files(self) -> list[str]:
        return _lines(self.runner.run("git diff --cached --name-only").stdout)

    def untracked_files(self) -> list[str]:
        return _entries(self.runner.run(UNTRACKED_FILES_COMMAND).stdout)

    def stage_all_changes(self) -> bool:
        """Stage everything; return False (and say so on stdout) if nothing is staged."""
        _say("Adding all files to git...")
        self.runner.run("git add .")
        if not self.staged_files():
            print("There is nothing to commit.")
            return False
        return True

    def tree_output(self) -> str:
        result = self.runner.run("tree --gitignore")
        return result.stdout if result.ok else "tree command failed"

    def diff_cached(self) -> str:
        result = self.runner.run("git --no-pager diff --cached")
        return result.stdout if result.ok else "git diff failed"

    def status(self) -> str:
        result = self.runner.run("git status --porcelain")
        return result.stdout if result.ok else "git status failed"

    def create_commit(self, message: str) -> None:
        result = self.runner.run(f"git commit -m {shlex.quote(message)}")
        if not result.ok:
            LOGGER.error("git_commit_failed", extra={"stderr": result.stderr})
            raise CommitError("Failed to create commit!")
        _say("Commit created successfully!")
        _say("")

    def show_commit_summary(self) -> bool:
        """Print the last commit's stat summary; failures are ignored."""
        result = self.runner.run("git --no-pager show --stat")
        if not result.ok:
            LOGGER.debug("commit_summary_unavailable", extra={"stderr": result.stderr})
            return False
        _say(result.stdout)
        return True

    def current_branch(self) -> str:
        return self.runner.run("git rev-parse --abbrev-ref HEAD").stdout

    def has_remote_origin(self) -> bool:
        return self.runner.run("git remote get-url origin").ok

    def push_to_remote(self) -> None:
        branch = self.current_branch()
        _say("Pushing to origin...")
        if not self.runner.run(f"git push -u origin {shlex.quote(branch)}").ok:
            raise PushError("Failed to push to origin.")
        _say("Pushed successfully!")

    def setup_remote_and_push(self) -> bool:
        """Push to origin, creating a private GitHub repository when there is none.

        Returns False when the push was skipped because ``gh`` is missing.
        """
        if self.has_remote_origin():
            self.push_to_remote()
            return True

        _say("No origin remote found. Creating git repository...")
        repo_name = self.project_name

        if not self.runner.exists("gh"):
            _say("GitHub CLI (gh) is not installed. Please install it to create a remote repository.")
            _say(NOT_PUSHED)
            return False

        if not self.runner.run("gh auth status").ok:
            raise PushError("GitHub CLI is not authenticated. Please run 'gh auth login' first.")

        _say(f"Creating private git repository: {repo_name}")
        quoted_name = shlex.quote(repo_name)
        created = self.runner.run(
            f"gh repo create {quoted_name} --private --source=. --remote=origin --push"
        )
        if created.ok:
            _say("Repository created and pushed successfully!")
            return True

        _say("Repository creation failed. Attempting to use existing repository...")
        github_user = self.runner.run("gh api user --jq .login").stdout
        if not github_user:
            raise PushError("Failed to determine GitHub username.")

        remote_url = f"https://github.com/{github_user}/{repo_name}.git"
        _say(f"Setting up remote for existing repository: {remote_url}")
        self.runner.run(f"git remote add origin {shlex.quote(remote_url)}")
        _say("Remote added successfully")

        branch = shlex.quote(self.current_branch())
        _say("Attempting to push to existing repository...")
        if self.runner.run(f"git push -u origin {branch}").ok:
            _say("Pushed successfully to existing repository!")
            return True
        if self.runner.run(f"git push -u origin {branch} --force").ok:
            _say("Force pushed successfully to existing repository!")
            return True

        raise PushError(
            "Failed to push to repository. The repository might not exist"
            " or you might not have access."
        )
