"""Error rule registry for Drive agent failures.

This module defines the ordered keyword groups used to classify raw
provider/agent errors into user-facing error kinds:
- authentication: token missing, expired or rejected
- permission: caller lacks access to the file or folder
- not_found: file or folder does not exist
- quota: Drive storage is full
- network: connectivity problems and timeouts (retryable)
- validation: malformed or incomplete requests
- unknown: anything else (retryable)

Rules are evaluated in declaration order and the first match wins, because
provider error strings often contain several keywords at once.
"""

from dataclasses import dataclass, field
from enum import Enum


class AgentErrorType(str, Enum):
    """User-facing error kinds surfaced by the agent."""

    authentication = "authentication"
    permission = "permission"
    not_found = "not_found"
    quota = "quota"
    network = "network"
    validation = "validation"
    unknown = "unknown"


@dataclass(frozen=True)
class ErrorRule:
    """Definition of one classification branch.

    Attributes:
        type: Error kind produced when the rule matches.
        keywords: Lower-case substrings; any one matching selects the rule.
        message_template: User message with optional {operation} placeholder.
        suggestions: Canned recovery suggestions.
        retryable: Whether the operation can be retried without user action.
    """

    type: AgentErrorType
    keywords: tuple[str, ...]
    message_template: str
    suggestions: tuple[str, ...] = field(default_factory=tuple)
    retryable: bool = False

    def matches(self, lowered: str) -> bool:
        """True when any keyword occurs in the lower-cased error text."""
        return any(keyword in lowered for keyword in self.keywords)


# Drive API errors, in priority order.
DRIVE_ERROR_RULES: tuple[ErrorRule, ...] = (
    ErrorRule(
        type=AgentErrorType.authentication,
        keywords=(
            "unauthorized",
            "invalid credentials",
            "unauthenticated",
            "invalid_grant",
            "token expired",
        ),
        message_template="I need to reconnect to your Google Drive. Please sign in again.",
        suggestions=(
            "Sign in to Google Drive again",
            "Check your Google account permissions",
        ),
    ),
    ErrorRule(
        type=AgentErrorType.permission,
        keywords=("forbidden", "permission denied"),
        message_template=(
            "I don't have permission to {operation}. Please check the file permissions."
        ),
        suggestions=(
            "Check file sharing settings",
            "Make sure you own the file",
            "Try a different file",
        ),
    ),
    ErrorRule(
        type=AgentErrorType.not_found,
        keywords=("not found", "file not found"),
        message_template=(
            "The file or folder you're looking for doesn't exist or has been moved."
        ),
        suggestions=(
            "Check the file name",
            "Search for the file",
            "List your files to see what's available",
        ),
    ),
    ErrorRule(
        type=AgentErrorType.quota,
        keywords=("quota", "storage full"),
        message_template=(
            "Your Google Drive storage is full. I cannot create or upload files."
        ),
        suggestions=(
            "Free up space in Google Drive",
            "Delete unnecessary files",
            "Upgrade your storage plan",
        ),
    ),
    ErrorRule(
        type=AgentErrorType.network,
        keywords=(
            "network",
            "timeout",
            "timed out",
            "timedout",
            "connection",
            "econnreset",
            "econnrefused",
            "rate limit",
        ),
        message_template=(
            "I had trouble connecting to Google Drive. "
            "Please check your internet connection."
        ),
        suggestions=(
            "Check your internet connection",
            "Try again in a moment",
            "Restart the voice call",
        ),
        retryable=True,
    ),
    ErrorRule(
        type=AgentErrorType.validation,
        keywords=("invalid", "bad request"),
        message_template="I couldn't {operation} because the request was invalid.",
        suggestions=(
            "Try rephrasing your request",
            "Provide more specific details",
            "Check file names for special characters",
        ),
    ),
)

UNKNOWN_DRIVE_RULE = ErrorRule(
    type=AgentErrorType.unknown,
    keywords=(),
    message_template="I encountered an unexpected error while trying to {operation}.",
    suggestions=(
        "Try again",
        "Rephrase your request",
        "Contact support if the problem persists",
    ),
    retryable=True,
)

# Agent-internal errors (intent parsing, parameters, timeouts).
AGENT_ERROR_RULES: tuple[ErrorRule, ...] = (
    ErrorRule(
        type=AgentErrorType.validation,
        keywords=("unsupported provider",),
        message_template="That chat provider isn't supported. Please pick another one.",
        suggestions=(
            "Choose OpenAI, Anthropic or Mistral",
            "Check your provider settings",
        ),
    ),
    ErrorRule(
        type=AgentErrorType.validation,
        keywords=("intent", "parse"),
        message_template=(
            "I didn't understand what you wanted me to do. "
            "Could you please rephrase that?"
        ),
        suggestions=(
            "Try saying it differently",
            "Be more specific about what you want",
            "Use simpler language",
        ),
    ),
    ErrorRule(
        type=AgentErrorType.validation,
        keywords=("parameter", "missing"),
        message_template=(
            "I need more information to help you. Could you provide more details?"
        ),
        suggestions=(
            "Specify file names",
            "Provide email addresses for sharing",
            "Mention which folder you want to work with",
        ),
    ),
    ErrorRule(
        type=AgentErrorType.network,
        keywords=("timeout", "timed out"),
        message_template="The operation took too long to complete. Please try again.",
        suggestions=(
            "Try a simpler request",
            "Wait a moment and try again",
            "Break your request into smaller parts",
        ),
        retryable=True,
    ),
)

UNKNOWN_AGENT_RULE = ErrorRule(
    type=AgentErrorType.unknown,
    keywords=(),
    message_template="I encountered an error while processing your request.",
    suggestions=(
        "Try again",
        "Rephrase your request",
        "Start a new voice call",
    ),
    retryable=True,
)

# Short per-type messages used when only the error kind is known.
SHORT_MESSAGES: dict[AgentErrorType, str] = {
    AgentErrorType.authentication: (
        "I need to reconnect to your Google Drive. Please sign in again in the app."
    ),
    AgentErrorType.permission: (
        "I don't have permission to {operation}. Please check the file's sharing settings."
    ),
    AgentErrorType.not_found: (
        "The file or folder you mentioned doesn't exist or has been moved."
    ),
    AgentErrorType.quota: (
        "Your Google Drive storage is full. I cannot create or upload files right now."
    ),
    AgentErrorType.network: (
        "I had trouble connecting to Google Drive. "
        "Please check your internet connection and try again."
    ),
    AgentErrorType.validation: (
        "I couldn't {operation} because I need more information."
    ),
    AgentErrorType.unknown: (
        "I encountered an unexpected error. Please try again or rephrase your request."
    ),
}


def get_rule(error_type: AgentErrorType) -> ErrorRule:
    """Return the Drive rule for an error type (unknown rule as fallback)."""
    for rule in DRIVE_ERROR_RULES:
        if rule.type == error_type:
            return rule
    return UNKNOWN_DRIVE_RULE
