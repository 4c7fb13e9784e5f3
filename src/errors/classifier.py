"""Classification of raw Drive/agent errors into AgentError values.

Pure and stateless: lower-cases the error text and walks the ordered
rule tables in ``src.errors.registry``. First matching rule wins.

Example:
    error = classify_drive_error(exc, "share the file")
    if error.retryable:
        ...
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from src.errors.registry import (
    AGENT_ERROR_RULES,
    DRIVE_ERROR_RULES,
    SHORT_MESSAGES,
    UNKNOWN_AGENT_RULE,
    UNKNOWN_DRIVE_RULE,
    AgentErrorType,
    ErrorRule,
)

logger = logging.getLogger(__name__)


@dataclass
class AgentError:
    """User-facing classified error. Never persisted, only surfaced.

    Attributes:
        type: Error kind.
        message: Human-readable message for the user.
        details: Raw error text.
        suggestions: Recovery suggestions.
        retryable: Whether retrying without user action can help.
    """

    type: AgentErrorType
    message: str
    details: str | None = None
    suggestions: list[str] = field(default_factory=list)
    retryable: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        data = asdict(self)
        data["type"] = self.type.value
        return data


def error_text(raw_error: Any) -> str:
    """Extract the message text from an exception, dict, or arbitrary value."""
    if raw_error is None:
        return "Unknown error"
    if isinstance(raw_error, str):
        return raw_error or "Unknown error"
    if isinstance(raw_error, dict):
        message = raw_error.get("message")
        if message:
            return str(message)
    message = getattr(raw_error, "message", None)
    if isinstance(message, str) and message:
        return message
    text = str(raw_error)
    return text or "Unknown error"


def _apply(rule: ErrorRule, text: str, operation: str) -> AgentError:
    return AgentError(
        type=rule.type,
        message=rule.message_template.format(operation=operation),
        details=text,
        suggestions=list(rule.suggestions),
        retryable=rule.retryable,
    )


def classify_drive_error(raw_error: Any, operation: str) -> AgentError:
    """Map a Drive capability error to an AgentError.

    Args:
        raw_error: Exception, error dict or string from the Drive capability.
        operation: Human description of the attempted operation, used in
            messages such as "I don't have permission to {operation}".

    Returns:
        Classified AgentError.
    """
    text = error_text(raw_error)
    lowered = text.lower()
    for rule in DRIVE_ERROR_RULES:
        if rule.matches(lowered):
            return _apply(rule, text, operation)
    return _apply(UNKNOWN_DRIVE_RULE, text, operation)


def classify_agent_error(raw_error: Any, context: str = "") -> AgentError:
    """Map an agent-internal failure (parsing, parameters, timeouts) to an AgentError."""
    text = error_text(raw_error)
    lowered = text.lower()
    for rule in AGENT_ERROR_RULES:
        if rule.matches(lowered):
            return _apply(rule, text, context)
    return _apply(UNKNOWN_AGENT_RULE, text, context)


def generate_error_message(error: AgentError, operation: str | None = None) -> str:
    """Return the short user message for an error kind."""
    template = SHORT_MESSAGES.get(error.type, SHORT_MESSAGES[AgentErrorType.unknown])
    if error.type == AgentErrorType.permission:
        return template.format(operation=operation or "access that file")
    if error.type == AgentErrorType.validation:
        return template.format(operation=operation or "complete that action")
    return template


def log_agent_error(error: AgentError, context: str, user_id: str | None = None) -> None:
    """Log a classified error with its context."""
    logger.error(
        "Agent error type=%s retryable=%s context=%s user=%s message=%s details=%s",
        error.type.value,
        error.retryable,
        context,
        user_id,
        error.message,
        error.details,
    )
