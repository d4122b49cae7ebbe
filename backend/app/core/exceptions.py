"""Custom exception classes"""

from typing import Any, Optional


class BoardChampionsException(Exception):
    """Base exception for Board Champions"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str = "internal_error",
        details: Optional[dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(BoardChampionsException):
    """Exception for invalid input"""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, status_code=400, code="invalid_input", details=details)


class AuthenticationException(BoardChampionsException):
    """Exception for a request without a usable identity"""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status_code=401, code="unauthenticated")


class AuthorizationException(BoardChampionsException):
    """Exception for role or ownership violations"""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403, code="forbidden")


class NotFoundException(BoardChampionsException):
    """Exception for resource not found errors"""

    def __init__(self, message: str):
        super().__init__(message, status_code=404, code="not_found")


class InsufficientCreditsException(BoardChampionsException):
    """Raised when a deduction exceeds the available balance"""

    def __init__(self, balance: int, requested: int):
        super().__init__(
            f"Insufficient credits: balance {balance}, requested {requested}",
            status_code=400,
            code="insufficient_credits",
            details={"balance": balance, "requested": requested},
        )


class InvalidStateTransitionException(BoardChampionsException):
    """Raised when a lifecycle action is not allowed from the current state"""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, status_code=409, code="invalid_state", details=details)


class ConflictException(BoardChampionsException):
    """Exception for resource conflict errors"""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, status_code=409, code="conflict", details=details)


class StoreUnavailableException(BoardChampionsException):
    """Underlying store failed unexpectedly; safe for the client to retry"""

    def __init__(self, message: str = "The data store is temporarily unavailable"):
        super().__init__(message, status_code=500, code="store_unavailable")


class RateLimitException(BoardChampionsException):
    """Exception for rate limit errors"""

    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(message, status_code=429, code="rate_limited")
