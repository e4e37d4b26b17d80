# backend/fitpass/core/exceptions.py
"""
Domain-specific exceptions for the FitPass payouts service.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when request input fails business validation."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class TransferError(ServiceException):
    """
    Raised when the payment rail rejects or cannot execute a club transfer.

    Per-club and non-fatal to a batch: the executor records it on the
    payout row and moves on to the next club.
    """

    def __init__(
        self,
        message: str,
        *,
        stripe_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = dict(details or {})
        if stripe_code:
            merged["stripe_code"] = stripe_code
        super().__init__(message=message, code="TRANSFER_FAILED", details=merged)
        self.stripe_code = stripe_code


class InvalidPeriodException(ValidationException):
    """Raised when a payout period is not a YYYY-MM-01 date."""

    def __init__(self, raw_value: object):
        super().__init__(
            message=f"Invalid payout period {raw_value!r}; expected YYYY-MM-01",
            code="INVALID_PERIOD",
            details={"period": str(raw_value)},
        )


class InsufficientCreditsException(BusinessRuleException):
    """Raised when a member lacks the credits a club charges per visit."""

    def __init__(self, required: int, available: int):
        super().__init__(
            message="Insufficient credits",
            code="INSUFFICIENT_CREDITS",
            details={"required": required, "available": available},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
