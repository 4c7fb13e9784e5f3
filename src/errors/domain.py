"""Typed domain exceptions for API error mapping.

These exceptions provide stronger API contract guarantees than
string-based error message matching. Routes can catch specific
exception types to return appropriate HTTP status codes.

Usage:
    # In service layer
    raise NotFoundError("Thread", thread_id)

    # In route handler
    try:
        thread = await store.get_thread(thread_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class NotFoundError(DomainError):
    """Resource was not found. Maps to HTTP 404."""

    def __init__(self, resource_type: str, identifier: str) -> None:
        super().__init__(f"{resource_type} '{identifier}' not found")
        self.resource_type = resource_type
        self.identifier = identifier


class ValidationError(DomainError):
    """Validation failure. Maps to HTTP 400."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class UnsupportedProviderError(ValidationError):
    """Chat provider is not one of the known variants. Maps to HTTP 400."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Unsupported provider: {provider}")
        self.provider = provider


class DriveAPIError(DomainError):
    """Error returned by the Google Drive/Docs REST APIs.

    The string form is ``"<status> <reason>: <message>"`` so the error
    classifier's keyword groups can match it.
    """

    def __init__(self, status_code: int | None, reason: str, message: str = "") -> None:
        prefix = f"{status_code} {reason}" if status_code else reason
        text = f"{prefix}: {message}" if message else prefix
        super().__init__(text)
        self.status_code = status_code
        self.reason = reason
        self.message = text
