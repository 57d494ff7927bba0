"""
Exception taxonomy for the readiness engine.

Remote failures flow up as DirectoryError (optionally tagged with a structured
ErrorKind). The resilient executor turns unrecoverable auth failures into one
of the two FatalError subclasses; everything else propagates unchanged.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Structured failure class a directory client may attach to an error."""
    AUTH = "auth"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    THROTTLED = "throttled"
    NETWORK = "network"
    OTHER = "other"


class ReadinessError(Exception):
    """Base class for all engine errors."""
    pass


class AuthenticationError(ReadinessError):
    """Raised when token acquisition fails."""
    pass


class DirectoryError(ReadinessError):
    """Raised by a directory client when a remote call fails."""

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.kind = kind
        self.status_code = status_code
        super().__init__(message)


class FatalError(ReadinessError):
    """An auth failure the executor could not recover from."""
    pass


class RefreshFailedError(FatalError):
    """Reconnection failed while recovering from an auth failure."""

    def __init__(self, original: BaseException):
        self.original = original
        super().__init__(f"Session refresh failed after auth error: {original}")


class RetriesExhaustedError(FatalError):
    """Auth failures persisted after every allowed retry."""

    def __init__(self, last_error: BaseException, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(
            f"Exhausted retries after {attempts} attempt(s): {last_error}"
        )
