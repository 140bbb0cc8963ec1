"""Tests for the error taxonomy."""

import json

import pytest
import requests
from pydantic import ValidationError

from bookworm.api.base import APIError
from bookworm.sync.errors import (
    BookNotFoundError,
    ErrorKind,
    InvalidIsbnError,
    MalformedRecordError,
    TransientError,
    classify,
)
from bookworm.sync.models import Book


def validation_error() -> ValidationError:
    try:
        Book.model_validate({"isbn": "abc"})
    except ValidationError as e:
        return e


@pytest.mark.parametrize("exc, kind", [
    (TransientError("timeout"), ErrorKind.TRANSIENT),
    (MalformedRecordError("bad"), ErrorKind.MALFORMED),
    (BookNotFoundError("missing"), ErrorKind.NOT_FOUND),
    (InvalidIsbnError("abc"), ErrorKind.INVALID),
    (APIError("Service unavailable", status_code=503), ErrorKind.TRANSIENT),
    (requests.exceptions.Timeout("slow"), ErrorKind.TRANSIENT),
    (OSError("disk full"), ErrorKind.TRANSIENT),
    (json.JSONDecodeError("Expecting value", "", 0), ErrorKind.MALFORMED),
    (ValueError("bad value"), ErrorKind.MALFORMED),
    (RuntimeError("unknown"), ErrorKind.TRANSIENT),
])
def test_classify(exc, kind):
    assert classify(exc) == kind


def test_classify_validation_error():
    assert classify(validation_error()) == ErrorKind.MALFORMED


def test_only_transient_is_retryable():
    assert ErrorKind.TRANSIENT.retryable
    assert not ErrorKind.MALFORMED.retryable
    assert not ErrorKind.NOT_FOUND.retryable
    assert not ErrorKind.INVALID.retryable


def test_message_names_isbn():
    assert str(BookNotFoundError("Book not found", isbn="9780143107712")) == (
        "Book not found (ISBN 9780143107712)"
    )
