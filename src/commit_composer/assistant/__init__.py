"""Assistant CLI integration: pipeline, stream parsing and validation."""

from .pipeline import AssistantPipeline
from .prompts import COMMIT_MESSAGE_TEMPLATE, build_security_prompt, resolve_prompt_template
from .stream import EventStreamCollector
from .validator import capture_result, validate_result

__all__ = [
    "COMMIT_MESSAGE_TEMPLATE",
    "AssistantPipeline",
    "EventStreamCollector",
    "build_security_prompt",
    "capture_result",
    "resolve_prompt_template",
    "validate_result",
]
