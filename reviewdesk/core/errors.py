"""Error kinds raised by the review-queue engine.

Every failure the engine reports belongs to one ``ErrorKind``:

VALIDATION        : bad input to an action (e.g. empty answer text)
AUTHORIZATION     : the access policy denied the reviewer
CONFLICT          : transition attempted on a terminal / already-reviewed record
TRANSIENT_NETWORK : network or timeout failure; retryable on the read path
TERMINAL_NETWORK  : explicit rejection from the store (e.g. 4xx); not retryable

Only ``TRANSIENT_NETWORK`` is ever retried, and only by the refresh path.
Write actions surface every error to the caller immediately.
"""
from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    CONFLICT = "conflict"
    TRANSIENT_NETWORK = "transient_network"
    TERMINAL_NETWORK = "terminal_network"


class QueueError(Exception):
    """Base class for all engine errors; carries its ``ErrorKind``."""

    kind: ErrorKind

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(QueueError, ValueError):
    kind = ErrorKind.VALIDATION


class AuthorizationError(QueueError, PermissionError):
    kind = ErrorKind.AUTHORIZATION


class ConflictError(QueueError):
    kind = ErrorKind.CONFLICT


class TransientNetworkError(QueueError, ConnectionError):
    kind = ErrorKind.TRANSIENT_NETWORK


class TerminalNetworkError(QueueError):
    kind = ErrorKind.TERMINAL_NETWORK


def is_retryable(error: BaseException) -> bool:
    """Return ``True`` only for errors the refresh path may retry."""
    return isinstance(error, TransientNetworkError)
