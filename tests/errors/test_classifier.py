"""Unit tests for src/errors/classifier.py.

Tests verify:
- Drive errors map to the first matching rule in priority order
- Agent-internal errors use their own rule table
- Raw error values of any shape yield usable text
"""

import pytest

from src.errors.classifier import (
    AgentError,
    classify_agent_error,
    classify_drive_error,
    error_text,
    generate_error_message,
)
from src.errors.domain import DriveAPIError
from src.errors.registry import AgentErrorType


class TestClassifyDriveError:
    """Tests for classify_drive_error."""

    def test_forbidden_is_permission(self):
        """403 text maps to a non-retryable permission error."""
        error = classify_drive_error(
            Exception("403 Forbidden: insufficient permission"), "share the file"
        )
        assert error.type == AgentErrorType.permission
        assert error.retryable is False
        assert "share the file" in error.message

    def test_etimedout_is_retryable_network(self):
        error = classify_drive_error(Exception("ETIMEDOUT"), "list files")
        assert error.type == AgentErrorType.network
        assert error.retryable is True

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("401 Unauthorized: Invalid Credentials", AgentErrorType.authentication),
            ("invalid_grant: Token has been expired or revoked", AgentErrorType.authentication),
            ("Permission denied for file abc", AgentErrorType.permission),
            ("404 Not Found: File not found: xyz", AgentErrorType.not_found),
            ("403 Forbidden: The user's Drive storage quota has been exceeded", AgentErrorType.permission),
            ("storageQuotaExceeded: quota", AgentErrorType.quota),
            ("ECONNRESET while reading response", AgentErrorType.network),
            ("403 Rate Limit Exceeded: User rate limit exceeded.", AgentErrorType.network),
            ("403 Storage Quota Exceeded: The user's Drive storage quota has been exceeded", AgentErrorType.quota),
            ("400 Bad Request: Invalid value for field", AgentErrorType.validation),
            ("something odd happened", AgentErrorType.unknown),
        ],
    )
    def test_rule_priority(self, text, expected):
        """First matching rule wins when text contains several keywords."""
        assert classify_drive_error(text, "do that").type == expected

    def test_unknown_is_retryable(self):
        error = classify_drive_error("boom", "do that")
        assert error.type == AgentErrorType.unknown
        assert error.retryable is True
        assert error.details == "boom"

    def test_drive_api_error_message_is_used(self):
        """DriveAPIError text carries status and reason for matching."""
        exc = DriveAPIError(401, "Unauthorized", "User not authenticated with Google Drive")
        error = classify_drive_error(exc, "list files")
        assert error.type == AgentErrorType.authentication
        assert error.details.startswith("401 Unauthorized")

    def test_suggestions_are_copied(self):
        first = classify_drive_error("forbidden", "x")
        first.suggestions.append("mutated")
        second = classify_drive_error("forbidden", "x")
        assert "mutated" not in second.suggestions


class TestClassifyAgentError:
    """Tests for classify_agent_error."""

    def test_parse_failure_is_validation(self):
        error = classify_agent_error(ValueError("could not parse intent"))
        assert error.type == AgentErrorType.validation
        assert error.retryable is False

    def test_missing_parameter_is_validation(self):
        error = classify_agent_error("missing parameter fileName")
        assert error.type == AgentErrorType.validation
        assert "more information" in error.message

    def test_timeout_is_retryable_network(self):
        error = classify_agent_error(TimeoutError("operation timed out"))
        assert error.type == AgentErrorType.network
        assert error.retryable is True

    def test_unsupported_provider(self):
        error = classify_agent_error("Unsupported provider: cohere")
        assert error.type == AgentErrorType.validation
        assert "provider" in error.message

    def test_unknown(self):
        error = classify_agent_error(RuntimeError("kaboom"))
        assert error.type == AgentErrorType.unknown
        assert error.retryable is True


class TestErrorText:
    """Tests for error_text extraction."""

    def test_none(self):
        assert error_text(None) == "Unknown error"

    def test_dict_message(self):
        assert error_text({"message": "quota exceeded"}) == "quota exceeded"

    def test_object_with_message_attribute(self):
        exc = DriveAPIError(404, "Not Found")
        assert error_text(exc) == "404 Not Found"

    def test_empty_exception(self):
        assert error_text(Exception()) == "Unknown error"


class TestGenerateErrorMessage:
    """Tests for the short per-type messages."""

    def test_permission_uses_operation(self):
        error = AgentError(type=AgentErrorType.permission, message="")
        assert "delete that file" in generate_error_message(error, "delete that file")

    def test_permission_default_operation(self):
        error = AgentError(type=AgentErrorType.permission, message="")
        assert "access that file" in generate_error_message(error)

    def test_to_dict_serializes_type(self):
        error = classify_drive_error("forbidden", "x")
        data = error.to_dict()
        assert data["type"] == "permission"
        assert data["retryable"] is False
