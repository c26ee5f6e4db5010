"""Prompt templates and the inline security-review prompt."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from commit_composer.config import SECURITY_CHECK_FAILURE_FILE, SECURITY_CHECK_SUCCESS_FILE
from commit_composer.errors import PromptNotFoundError

PACKAGE_DIR = Path(__file__).resolve().parents[1]

COMMIT_MESSAGE_TEMPLATE = "commit-message.md"


def default_search_paths() -> list[Path]:
    """Development checkout first, then the installed package data."""
    return [
        PACKAGE_DIR.parents[1] / "prompts",
        PACKAGE_DIR / "prompts",
    ]


def resolve_prompt_template(name: str, search_paths: Sequence[Path] | None = None) -> Path:
    paths = list(search_paths) if search_paths is not None else default_search_paths()
    for directory in paths:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    searched = ", ".join(str(directory / name) for directory in paths)
    raise PromptNotFoundError(f"Prompt template {name!r} not found (searched: {searched})")


def _command_block(description: str, command: str, output: str) -> str:
    return "\n".join(
        [
            "<Command>",
            "<CommandDescription>",
            description,
            "</CommandDescription>",
            "<CommandInput>",
            command,
            "</CommandInput>",
            "<CommandOutput>",
            output,
            "</CommandOutput>",
            "</Command>",
        ]
    )


def build_security_prompt(tree_output: str, diff_output: str, status_output: str) -> str:
    context = "\n\n".join(
        [
            _command_block(
                "A tree of all repository files and directories",
                "tree --gitignore",
                tree_output,
            ),
            _command_block("All staged changes", "git --no-pager diff --cached", diff_output),
            _command_block("Status of repo changes", "git status --porcelain", status_output),
        ]
    )
    instructions = "\n".join(
        [
            "All changes are in the working tree and all context for the review is in the conversation.",
            "Follow these instructions step-by-step:",
            "- Perform a safety and security check of the current repo changes",
            "- Look for the following unsafe scenarios:",
            "  - Suspicious files or changes",
            "  - Any credentials are present",
            "  - Files are committed that should be ignored",
            "  - Binaries are committed",
            "  - Secrets accidentally embedded in code (e.g., API keys, tokens)",
            "  - Executable scripts without shebang or unexpected permissions",
            "  - Unexpected changes to configuration or dependency files"
            " (e.g., package-lock.json, requirements.txt)",
            "- When complete save a file with the contents of the security check",
            "  - If no unsafe scenarios are present, save the summary as"
            f" {SECURITY_CHECK_SUCCESS_FILE} in the current directory",
            "  - If unsafe scenarios are present, save the summary as"
            f" {SECURITY_CHECK_FAILURE_FILE} in the current directory",
            "- If you need scratch files, use the /tmp directory",
        ]
    )
    return (
        "<Role>\n"
        "You are an engineer who is an expert at performing software security checks.\n"
        "</Role>\n\n"
        f"<Context>\n{context}\n</Context>\n\n"
        f"<Instructions>\n{instructions}\n</Instructions>"
    )
