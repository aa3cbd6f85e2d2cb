"""
Custom exception hierarchy for structured error handling.

WHY: Custom exceptions provide:
1. Consistent error handling across the API
2. HTTP status code mapping for FastAPI
3. Structured error responses with contextual data (quote id, states, totals)
4. No sensitive data leaks in error messages (share tokens are filtered)

IMPORTANT: NEVER use base Exception class. Always use custom exceptions.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    WHY: Centralizing exception handling in a base class ensures consistent
    error responses, HTTP status code mapping, and prevents sensitive data
    leaks in error messages.

    All custom exceptions should inherit from this class.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        """
        Initialize exception with message and context.

        WHY: Context parameters allow including debugging information
        (quote_id, current_state, totals) without leaking secrets such as
        share tokens.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (overrides class default)
            **context: Additional context for debugging (filtered in to_dict)
        """
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize exception to dictionary for JSON response.

        Returns:
            Dictionary with error details (sensitive fields filtered out)
        """
        sensitive_fields = {"password", "token", "share_token", "secret", "key", "api_key"}
        filtered_context = {
            k: v for k, v in self.context.items() if k.lower() not in sensitive_fields
        }

        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": filtered_context if filtered_context else None,
        }


# ============================================================================
# Validation & Input Exceptions
# ============================================================================


class ValidationError(AppException):
    """
    Raised when input validation fails.

    WHY: Malformed line items (negative quantity, unknown line item type),
    a validity date before creation, or caller-supplied totals that disagree
    with the derived totals are client mistakes: 400 Bad Request with details.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Validation failed"


class DuplicateQuoteNumberError(ValidationError):
    """
    Raised when a manually supplied quote number is already taken.

    WHY: Imports may carry their own quote numbers; numbers are unique
    across the repository so a clash is rejected before insert.

    HTTP Status: 400 Bad Request
    """

    default_message = "Quote number already exists"


# ============================================================================
# Resource Exceptions
# ============================================================================


class ResourceNotFoundError(AppException):
    """
    Raised when a requested resource doesn't exist.

    WHY: 404 Not Found is the standard HTTP status for missing resources.
    Including resource type and ID in context helps debugging.

    HTTP Status: 404 Not Found
    """

    status_code = 404
    default_message = "Resource not found"


class QuoteNotFoundError(ResourceNotFoundError):
    """Raised when a quote doesn't exist (or was deleted)."""

    default_message = "Quote not found"


class TemplateNotFoundError(ResourceNotFoundError):
    """Raised when a quote template doesn't exist."""

    default_message = "Quote template not found"


class LineItemNotFoundError(ResourceNotFoundError):
    """Raised when a line item id is not present on the quote."""

    default_message = "Line item not found"


# ============================================================================
# Business Logic Exceptions
# ============================================================================


class BusinessRuleViolation(AppException):
    """
    Raised when a business rule is violated.

    WHY: Business rules are different from validation errors. 422
    Unprocessable Entity indicates the request was well-formed but
    semantically incorrect.

    HTTP Status: 422 Unprocessable Entity
    """

    status_code = 422
    default_message = "Business rule violation"


class InvalidStateTransitionError(BusinessRuleViolation):
    """
    Raised when an invalid quote state transition is attempted.

    WHY: The quote lifecycle only allows the moves in its transition
    table (e.g. a draft cannot be accepted). The error carries
    ``current_state`` and ``requested_state`` so clients can explain
    what happened. Editing a quote that is no longer editable is
    reported the same way with ``requested_state="edit"``.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Invalid state transition"


class ComputationFault(BusinessRuleViolation):
    """
    Raised when quote totals cannot be computed to a valid value.

    WHY: A negative or non-finite total means a data-entry fault (credit
    lines larger than the quote, corrupted prices). The mutation that
    produced it is rejected and the clamped totals are returned in the
    error context so the UI can show what went wrong.

    HTTP Status: 422 Unprocessable Entity
    """

    default_message = "Quote totals could not be computed"


# ============================================================================
# Export Exceptions
# ============================================================================


class ExportError(AppException):
    """
    Raised when a quote document cannot be rendered.

    HTTP Status: 500 Internal Server Error
    """

    status_code = 500
    default_message = "Failed to export quote"
