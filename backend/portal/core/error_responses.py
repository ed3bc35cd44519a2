"""
Standardized error response messages and builders.

This module keeps user-facing error messages for the assessment API in one
place and provides small HTTPException builders so every endpoint reports
errors the same way.

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Include relevant IDs in parentheses when helpful for debugging: "(ID: abc)"
- Use "Please try again later." for transient server errors

Usage:
    from portal.core.error_responses import ErrorMessages, raise_not_found

    raise_not_found(ErrorMessages.SESSION_NOT_FOUND)
    raise_conflict(ErrorMessages.item_not_pending(item_id, pending_id))
"""

from typing import NoReturn, Optional

from fastapi import HTTPException, status


class ErrorMessages:
    """Centralized error message constants and templates.

    Naming Convention:
    - Constants: SCREAMING_SNAKE_CASE for static messages
    - Methods: snake_case for templates that accept parameters
    """

    # ==========================================================================
    # Authentication Errors (401)
    # ==========================================================================
    MISSING_USER_ID = "Missing authenticated user identity."

    # ==========================================================================
    # Authorization Errors (403)
    # ==========================================================================
    SESSION_ACCESS_DENIED = "Not authorized to access this assessment session."

    # ==========================================================================
    # Not Found Errors (404)
    # ==========================================================================
    SESSION_NOT_FOUND = "Assessment session not found."
    ITEM_NOT_FOUND = "Assessment item not found."

    # ==========================================================================
    # Conflict Errors (409)
    # ==========================================================================
    SESSION_ALREADY_COMPLETE = (
        "Assessment session is already complete. No further responses are accepted."
    )
    NO_ITEM_PENDING = "No item is awaiting a response. Request the next item first."
    RESULT_NOT_READY = "Assessment is not complete yet."

    # ==========================================================================
    # Server Errors (500)
    # ==========================================================================
    INTERNAL_ERROR = "An unexpected error occurred. Please try again later."
    ASSESSMENT_NOT_CONFIGURED = "Assessment engine is not configured on server."

    # ==========================================================================
    # Template Methods for Dynamic Messages
    # ==========================================================================
    @staticmethod
    def item_not_pending(item_id: str, pending_item_id: Optional[str]) -> str:
        """Message when a response targets an item other than the pending one."""
        return (
            f"Item {item_id} is not awaiting a response "
            f"(pending item: {pending_item_id or 'none'})."
        )

    @staticmethod
    def invalid_response_value(low: int, high: int) -> str:
        """Message when a selected value is off the response scale."""
        return f"Selected value must be an integer between {low} and {high}."


# ==============================================================================
# HTTPException Builder Functions
# ==============================================================================


def raise_bad_request(detail: str) -> NoReturn:
    """Raise a 400 Bad Request exception.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 400 Bad Request
    """
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )


def raise_unauthorized(detail: str) -> NoReturn:
    """Raise a 401 Unauthorized exception.

    Use when the upstream identity service did not supply a user id.

    Raises:
        HTTPException: 401 Unauthorized
    """
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
    )


def raise_forbidden(detail: str) -> NoReturn:
    """Raise a 403 Forbidden exception.

    Use for authorization failures (a known caller acting on someone else's
    session).

    Raises:
        HTTPException: 403 Forbidden
    """
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=detail,
    )


def raise_not_found(detail: str) -> NoReturn:
    """Raise a 404 Not Found exception.

    Raises:
        HTTPException: 404 Not Found
    """
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail,
    )


def raise_conflict(detail: str) -> NoReturn:
    """Raise a 409 Conflict exception.

    Use when the request conflicts with the session's current state.

    Raises:
        HTTPException: 409 Conflict
    """
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=detail,
    )


def raise_server_error(
    detail: str,
    error_id: Optional[str] = None,
) -> NoReturn:
    """Raise a 500 Internal Server Error exception.

    Args:
        detail: User-facing error message (should be generic and friendly)
        error_id: Optional error tracking ID to include in response

    Raises:
        HTTPException: 500 Internal Server Error
    """
    if error_id:
        detail = f"{detail} (Error ID: {error_id})"

    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )
