"""Custom exceptions for one-time link error handling."""

from __future__ import annotations

from typing import Optional, Dict, Any


class OneTimeLinkException(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class InvalidInputError(OneTimeLinkException):
    """Raised when arguments are rejected before the store is touched."""

    def __init__(self, message: str = "invalid_input", *, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, error_code="INVALID_INPUT", details=details, status_code=422)


class ConflictError(OneTimeLinkException):
    """Raised when a request conflicts with current state."""

    def __init__(self, message: str = "conflict", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="CONFLICT", details=details, status_code=409)


# ===== STORE EXCEPTIONS =====


class StoreException(OneTimeLinkException):
    """Base exception for link store errors."""


class DuplicateTokenError(StoreException):
    """Raised when an inserted token collides with a stored one."""

    def __init__(self, message: str = "duplicate_token"):
        super().__init__(message, error_code="DUPLICATE_TOKEN", status_code=409)


class StoreUnavailableError(StoreException):
    """Raised when the link store cannot complete an operation."""

    def __init__(self, message: str = "store_unavailable", *, operation: Optional[str] = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message, error_code="STORE_UNAVAILABLE", details=details, status_code=503)


# ===== TOKEN EXCEPTIONS =====


class InvalidOrExpiredTokenError(OneTimeLinkException):
    """Raised by HTTP handlers for a token that cannot be used.

    Deliberately carries no detail about whether the token was unknown,
    already used or expired.
    """

    def __init__(self, message: str = "invalid_or_expired_token"):
        super().__init__(message, error_code="INVALID_OR_EXPIRED_TOKEN", status_code=400)
