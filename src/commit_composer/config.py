"""Environment-backed application configuration."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

SECURITY_CHECK_SUCCESS_FILE = "SUCCEEDED-SECURITY-CHECK.txt"
SECURITY_CHECK_FAILURE_FILE = "FAILED-SECURITY-CHECK.txt"
MARKER_FILES = frozenset({SECURITY_CHECK_SUCCESS_FILE, SECURITY_CHECK_FAILURE_FILE})

DEFAULT_MODEL = "sonnet"
DEFAULT_COMPOSER = "context-composer"
DEFAULT_PACKAGE_MANAGER = "pnpm"

ALLOWED_TOOLS = ("Write",)
DISALLOWED_TOOLS = (
    "Read",
    "Bash",
    "Task",
    "Glob",
    "Grep",
    "LS",
    "Edit",
    "MultiEdit",
    "NotebookRead",
    "NotebookEdit",
    "WebFetch",
    "WebSearch",
    "TodoRead",
    "TodoWrite",
)


def default_claude_path() -> str:
    return str(Path.home() / ".claude" / "local" / "claude")


def _to_bool(value: str | None, default: bool = False) -> bool:
    """Convert common env var truthy/falsy values into booleans."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


@dataclass(slots=True)
class AppConfig:
    """Runtime settings loaded from environment variables and config files."""

    claude_path: str
    model: str
    composer: str
    scratch_dir: str
    package_manager: str
    notifications_enabled: bool
    verbose_claude_output: bool
    verbose_prompt_output: bool

    @classmethod
    def from_env(cls) -> AppConfig:
        file_config = _load_preferred_file_config()

        return cls(
            claude_path=str(
                Path(
                    os.getenv("COMMIT_COMPOSER_CLAUDE_PATH")
                    or _to_optional_string(file_config.get("claude_path"))
                    or default_claude_path()
                ).expanduser()
            ),
            model=(
                os.getenv("COMMIT_COMPOSER_MODEL")
                or _to_optional_string(file_config.get("model"))
                or DEFAULT_MODEL
            ),
            composer=(
                os.getenv("COMMIT_COMPOSER_COMPOSER")
                or _to_optional_string(file_config.get("composer"))
                or DEFAULT_COMPOSER
            ),
            scratch_dir=(
                os.getenv("COMMIT_COMPOSER_SCRATCH_DIR")
                or _to_optional_string(file_config.get("scratch_dir"))
                or tempfile.gettempdir()
            ),
            package_manager=(
                os.getenv("COMMIT_COMPOSER_PACKAGE_MANAGER")
                or _to_optional_string(file_config.get("package_manager"))
                or DEFAULT_PACKAGE_MANAGER
            ),
            notifications_enabled=_to_bool(
                os.getenv("COMMIT_COMPOSER_NOTIFICATIONS"),
                default=bool(file_config.get("notifications_enabled", True)),
            ),
            verbose_claude_output=_to_bool(
                os.getenv("COMMIT_COMPOSER_VERBOSE_CLAUDE_OUTPUT")
                or os.getenv("VERBOSE_CLAUDE_OUTPUT"),
                default=bool(file_config.get("verbose_claude_output", False)),
            ),
            verbose_prompt_output=_to_bool(
                os.getenv("COMMIT_COMPOSER_VERBOSE_PROMPT_OUTPUT"),
                default=bool(file_config.get("verbose_prompt_output", False)),
            ),
        )


def _to_optional_string(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _load_file_config(path_value: str) -> dict[str, object]:
    path = Path(path_value)
    if not path.exists() or not path.is_file():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            parsed = json.load(fh)
    except (OSError, json.JSONDecodeError):
        return {}
    if isinstance(parsed, dict):
        return parsed
    return {}


def _load_preferred_file_config() -> dict[str, object]:
    explicit_path = os.getenv("COMMIT_COMPOSER_CONFIG_FILE")
    if explicit_path:
        return _load_file_config(explicit_path)

    shared_config = _load_file_config("commit-composer.config.json")
    local_override = _load_file_config("commit-composer.config.local.json")
    return {**shared_config, **local_override}
