"""Shared fixtures for the Bookworm Sync tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from bookworm.api.google_books import GoogleBooksClient
from bookworm.api.remote import RemoteBookStore
from bookworm.store.cache import MemoryCacheStore
from bookworm.sync.engine import SyncEngine
from bookworm.sync.library import BookLibrary
from bookworm.sync.models import Book, Owner

ISBN = "9780143107712"
OTHER_ISBN = "9780441172719"

T0 = datetime(2024, 9, 1, 12, 0, tzinfo=timezone.utc)
NOW = T0 + timedelta(days=30)


def at(minutes: int) -> datetime:
    """A timestamp `minutes` after T0."""
    return T0 + timedelta(minutes=minutes)


@pytest.fixture
def owner():
    return Owner(id_token="token-abc", owner_id="owner-1", email="reader@example.com")


@pytest.fixture
def cache():
    return MemoryCacheStore()


@pytest.fixture
def remote():
    """Remote store with async methods replaced by AsyncMocks."""
    mock = MagicMock(spec=RemoteBookStore)
    mock.list.return_value = []
    return mock


@pytest.fixture
def metadata():
    return MagicMock(spec=GoogleBooksClient)


@pytest.fixture
def engine(cache, remote):
    return SyncEngine(cache=cache, remote=remote, clock=lambda: NOW)


@pytest.fixture
def library(engine, metadata):
    return BookLibrary(engine, metadata)


@pytest.fixture
def store_book(cache):
    """Write a book straight into the cache."""
    def _store(book: Book) -> Book:
        cache.set(book.isbn, book.to_bytes())
        return book
    return _store
