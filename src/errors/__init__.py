"""Error handling framework for DriveChat.

This package provides:
- Ordered error rule registry (authentication → permission → not_found →
  quota → network → validation → unknown)
- Classification of Drive and agent errors into AgentError values
- Typed domain exceptions for API error mapping
"""

from src.errors.classifier import (
    AgentError,
    classify_agent_error,
    classify_drive_error,
    generate_error_message,
    log_agent_error,
)
from src.errors.domain import (
    DomainError,
    DriveAPIError,
    NotFoundError,
    UnsupportedProviderError,
    ValidationError,
)
from src.errors.registry import (
    AGENT_ERROR_RULES,
    DRIVE_ERROR_RULES,
    AgentErrorType,
    ErrorRule,
    get_rule,
)

__all__ = [
    # Registry
    "AgentErrorType",
    "ErrorRule",
    "DRIVE_ERROR_RULES",
    "AGENT_ERROR_RULES",
    "get_rule",
    # Classifier
    "AgentError",
    "classify_drive_error",
    "classify_agent_error",
    "generate_error_message",
    "log_agent_error",
    # Domain
    "DomainError",
    "DriveAPIError",
    "NotFoundError",
    "UnsupportedProviderError",
    "ValidationError",
]
