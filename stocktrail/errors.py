"""
Error taxonomy for StockTrail.

Every business failure raised by the services derives from
StockTrailException and carries the HTTP status the API layer answers with.
"""

from typing import Optional


class StockTrailException(Exception):
    """Base exception for StockTrail errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        detail: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class ValidationError(StockTrailException):
    """Missing or malformed input."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            detail=detail,
        )


class AuthenticationError(StockTrailException):
    """Credentials or token rejected."""

    def __init__(self, message: str = "Invalid credentials", detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="UNAUTHORIZED",
            status_code=401,
            detail=detail,
        )


class ForbiddenError(StockTrailException):
    """Role check failed."""

    def __init__(self, message: str = "Access Denied.", detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="FORBIDDEN",
            status_code=403,
            detail=detail,
        )


class NotFoundError(StockTrailException):
    """Resource not found."""

    def __init__(self, resource: str, identifier):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            status_code=404,
            detail=f"No {resource} with identifier '{identifier}' exists",
        )


class ConflictError(StockTrailException):
    """Business rule violation (insufficient stock, active borrow, referenced definition)."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="CONFLICT",
            status_code=400,
            detail=detail,
        )


class InsufficientStockError(ConflictError):
    """Requested quantity exceeds what is available."""

    def __init__(self, available: int):
        self.available = available
        super().__init__(message=f"Only {available} units available.")


class StateConflictError(StockTrailException):
    """Operation not allowed from the record's current state."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="CONFLICT",
            status_code=409,
            detail=detail,
        )


class StoreError(StockTrailException):
    """Unexpected persistence failure."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            message="Database error",
            code="STORE_ERROR",
            status_code=500,
            detail=detail,
        )
