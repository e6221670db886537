"""Errors that end a relay invocation before any target is contacted.

Exception Hierarchy:
    RelayError (base)
    ├── MethodNotAllowedError - inbound method is not the deployed variant
    ├── NoTargetsConfiguredError - target list resolved to nothing
    └── InvalidPayloadError - POST body is not valid UTF-8 JSON

Per-target delivery failures are not exceptions; they become outcomes.
"""

from typing import Any


class RelayError(Exception):
    """Base exception for relay invocation failures.

    Attributes:
        message: Human-readable error message for logs.
        details: Additional error details.
        status_code: HTTP status returned to the caller.
        response_body: Plain-text body returned to the caller.
    """

    status_code: int = 500
    response_body: str = "Internal Server Error"

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.response_body
        super().__init__(self.message)
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code,
        }


class MethodNotAllowedError(RelayError):
    """Inbound method does not match the deployed relay variant."""

    status_code = 405
    response_body = "Method Not Allowed"

    def __init__(self, method: str, allowed: str) -> None:
        super().__init__(
            f"Method {method} not allowed, expected {allowed}",
            details={"method": method, "allowed": allowed},
        )
        self.method = method
        self.allowed = allowed


class NoTargetsConfiguredError(RelayError):
    """WEBHOOK_TARGETS is unset or holds no usable entries."""

    status_code = 500
    response_body = "No webhook targets configured"


class InvalidPayloadError(RelayError):
    """POST body could not be decoded as UTF-8 JSON."""

    status_code = 400
    response_body = "Invalid JSON payload"
