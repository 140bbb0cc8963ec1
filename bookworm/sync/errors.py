"""
Error taxonomy for the sync engine.

Every failure the engine sees is reduced to one of four kinds. Background
sync paths turn them into outcome values; direct user actions raise them.
"""

import json
from enum import Enum
from typing import Optional

import requests
from pydantic import ValidationError

from bookworm.api.base import APIError


class ErrorKind(str, Enum):
    """Retry taxonomy consumed by the sync engine."""
    TRANSIENT = "transient"
    MALFORMED = "malformed"
    NOT_FOUND = "not_found"
    INVALID = "invalid"

    @property
    def retryable(self) -> bool:
        """True if the next sync cycle may succeed where this one failed."""
        return self is ErrorKind.TRANSIENT


class SyncError(Exception):
    """Base class for classified sync errors."""

    kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(self, message: str, isbn: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.isbn = isbn

    def __str__(self) -> str:
        if self.isbn:
            return f"{self.message} (ISBN {self.isbn})"
        return self.message


class TransientError(SyncError):
    """Network or server failure; safe to retry on the next cycle."""
    kind = ErrorKind.TRANSIENT


class MalformedRecordError(SyncError):
    """A stored or received record could not be decoded."""
    kind = ErrorKind.MALFORMED


class BookNotFoundError(SyncError):
    """The requested ISBN is not in the local cache."""
    kind = ErrorKind.NOT_FOUND


class InvalidIsbnError(SyncError):
    """The identity failed format validation."""
    kind = ErrorKind.INVALID


def classify(exc: BaseException) -> ErrorKind:
    """
    Map an exception raised by a collaborator onto the retry taxonomy.

    Args:
        exc: Exception caught by the engine

    Returns:
        The ErrorKind for the exception. Anything unrecognised is
        treated as transient so that it is retried on the next cycle.
    """
    if isinstance(exc, SyncError):
        return exc.kind

    if isinstance(exc, (ValidationError, json.JSONDecodeError, UnicodeDecodeError)):
        return ErrorKind.MALFORMED

    if isinstance(exc, (APIError, requests.exceptions.RequestException, OSError)):
        return ErrorKind.TRANSIENT

    if isinstance(exc, ValueError):
        return ErrorKind.MALFORMED

    return ErrorKind.TRANSIENT
