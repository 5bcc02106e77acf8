"""Custom HTTP exception classes module.

Provides pre-configured HTTPException subclasses for common error patterns.
Each class carries a machine-readable ``code`` that the application's
exception handlers place in the ``error`` field of the response envelope.

Usage:
    from app.utils.exceptions import NotFoundError, DuplicateError
    raise NotFoundError("Venue not found")
    raise DuplicateError("Email already registered")
"""

from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """404 Not Found exception.

    Raised when a requested resource (venue, reservation, payment, etc.) does not exist.

    Args:
        detail: Error message (default: "Resource not found")
    """

    code: str = "NOT_FOUND"

    def __init__(self, detail: str = "Resource not found") -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class DuplicateError(HTTPException):
    """409 Conflict exception.

    Raised when a request collides with existing state
    (e.g. duplicate email, a service already fully booked for the dates).

    Args:
        detail: Error message (default: "Resource already exists")
    """

    code: str = "CONFLICT"

    def __init__(self, detail: str = "Resource already exists") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ForbiddenError(HTTPException):
    """403 Forbidden exception.

    Raised when the authenticated user lacks the required role level,
    permission, or ownership of the resource.

    Args:
        detail: Error message (default: "Insufficient permissions")
    """

    code: str = "FORBIDDEN"

    def __init__(self, detail: str = "Insufficient permissions") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class UnauthorizedError(HTTPException):
    """401 Unauthorized exception.

    Raised when authentication is missing, invalid, or expired.

    Args:
        detail: Error message (default: "Authentication required")
    """

    code: str = "UNAUTHORIZED"

    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class BadRequestError(HTTPException):
    """400 Bad Request exception.

    Raised when the request data is invalid beyond what Pydantic validation catches
    (e.g. check-out before check-in, invalid status transitions).

    Args:
        detail: Error message (default: "Bad request")
    """

    code: str = "BAD_REQUEST"

    def __init__(self, detail: str = "Bad request") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class PaymentGatewayError(HTTPException):
    """502 Bad Gateway exception.

    Raised when the payment gateway rejects or fails a call.

    Args:
        detail: Error message (default: "Payment gateway error")
    """

    code: str = "PAYMENT_GATEWAY_ERROR"

    def __init__(self, detail: str = "Payment gateway error") -> None:
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)
