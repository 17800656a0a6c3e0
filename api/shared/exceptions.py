"""Shared exceptions for the conversation store API."""
from typing import Any, Dict, Optional


class ChatStoreException(Exception):
    """Base exception for the conversation store."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ChatStoreException):
    """Raised when input validation fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VALIDATION_ERROR", details)


class NotFoundError(ChatStoreException):
    """Raised when a resource is not found."""

    def __init__(self, resource: str, identifier: str):
        message = f"{resource} with identifier '{identifier}' not found"
        super().__init__(message, "NOT_FOUND", {"resource": resource, "identifier": identifier})


class InvalidStateError(ChatStoreException):
    """Raised when a resource is in the wrong lifecycle state for an operation."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "INVALID_STATE", details)


class StoreUnavailableError(ChatStoreException):
    """Raised when the persistence layer cannot be reached."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "STORE_UNAVAILABLE", details)


class UpstreamUnavailableError(ChatStoreException):
    """Raised when the completion upstream failed every attempt."""

    def __init__(self, provider: str, attempts: int, last_error: Optional[BaseException] = None):
        if last_error is None:
            reason = "unknown error"
        else:
            reason = str(last_error) or last_error.__class__.__name__
        message = f"{provider} upstream unavailable after {attempts} attempt(s): {reason}"
        super().__init__(
            message,
            "UPSTREAM_UNAVAILABLE",
            {"provider": provider, "attempts": attempts, "last_error": reason},
        )
        self.provider = provider
        self.attempts = attempts
        self.last_error = last_error
