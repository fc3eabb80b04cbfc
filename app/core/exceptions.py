"""
Base exception classes for application-wide error handling.

Every domain error carries a human-readable message, a machine-readable
error code and an optional details dict, so API views can turn any of
them into the same JSON error shape.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input or business rule violations (400)
    ├── NotFoundError - Resource not found (404)
    ├── ConflictError - State conflicts, duplicates (409)
    └── ExternalServiceError - Third-party service failures (502)

Usage:
    from core.exceptions import BaseApplicationError, NotFoundError

    raise NotFoundError("Plan not found", details={"plan_id": "pro-monthly"})

    # In a DRF view
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context
        http_status: Status code API views should respond with
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Plan not found",
                "error_code": "NOT_FOUND",
                "details": {"plan_id": "pro-monthly"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """Raised when input or a business rule check fails."""

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Use for single-resource lookups where existence is expected. List
    queries should return empty results instead.
    """

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Duplicate entries (unique constraint violations)
    - Invalid state transitions
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class ExternalServiceError(BaseApplicationError):
    """Raised when a call to a third-party service fails."""

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = 502
