"""
Data models for sync operations.

A Book is the unit of sync. It is stored as JSON under its ISBN in both the
local cache and the remote store. Transitions never mutate a Book in place;
they return an updated copy.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bookworm.sync.errors import InvalidIsbnError


def utc_now() -> datetime:
    """Current time as a tz-aware UTC datetime."""
    return datetime.now(timezone.utc)


def is_valid_isbn(value: str) -> bool:
    """
    A naive ISBN check: 10 digits, or 13 digits with the 97 prefix.

    Check digits are not verified.
    """
    if not value or not value.isdigit():
        return False
    return len(value) == 10 or (len(value) == 13 and value.startswith("97"))


def validate_isbn(value) -> str:
    """
    Normalise and validate an ISBN.

    Raises:
        InvalidIsbnError: If the value is not a valid ISBN
    """
    isbn = str(value).strip() if value is not None else ""
    if not is_valid_isbn(isbn):
        raise InvalidIsbnError("Invalid ISBN", isbn=isbn or None)
    return isbn


class ReadStatus(str, Enum):
    """Where the reader is with the book."""
    TO_READ = "ToRead"
    READ = "Read"
    LIKED = "Liked"


@dataclass(frozen=True)
class Metadata:
    """Book details returned by the metadata lookup."""
    title: Optional[str] = None
    authors: Optional[List[str]] = None
    cover: Optional[str] = None


@dataclass(frozen=True)
class Owner:
    """
    The signed-in user on whose behalf remote calls are made.

    The ID token is an opaque bearer credential verified by the remote
    store, never by this package.
    """
    id_token: str
    owner_id: Optional[str] = None
    email: Optional[str] = None


class PushOutcome(str, Enum):
    """Result of pushing a single book to the remote store."""
    SKIPPED = "skipped"
    SYNCED = "synced"
    FAILED_WILL_RETRY = "failed_will_retry"


class Book(BaseModel):
    """A scanned book as stored in the local cache and the remote store."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    isbn: str
    updated_at: datetime = Field(alias="timestampUpdate")
    synced_at: Optional[datetime] = Field(default=None, alias="timestampSync")
    read_status: Optional[ReadStatus] = Field(default=None, alias="readStatus")
    title: Optional[str] = None
    authors: Optional[List[str]] = None
    # display-only, never sent to the remote store
    cover: Optional[str] = None
    # photo IDs in chronological order
    photos: Optional[List[str]] = None
    share_id: Optional[int] = Field(default=None, alias="shareId")

    @field_validator("isbn", mode="before")
    @classmethod
    def _check_isbn(cls, value):
        isbn = str(value).strip() if value is not None else ""
        if not is_valid_isbn(isbn):
            raise ValueError(f"invalid ISBN: {value!r}")
        return isbn

    @field_validator("updated_at", "synced_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def create(cls, isbn, now: Optional[datetime] = None) -> "Book":
        """
        Create a new book record with nothing but its identity.

        Args:
            isbn: ISBN of the book
            now: Mutation timestamp, defaults to the current time

        Raises:
            InvalidIsbnError: If the ISBN fails validation
        """
        return cls(isbn=validate_isbn(isbn), updated_at=now or utc_now())

    @classmethod
    def from_bytes(cls, data: bytes) -> "Book":
        return cls.model_validate_json(data)

    def to_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")

    def mark_synced(self, now: datetime) -> "Book":
        """Record a confirmed push at `now`. `updated_at` is left alone."""
        if self.synced_at == now:
            return self
        return self.model_copy(update={"synced_at": now})

    def mark_unsynced(self) -> "Book":
        """Clear the sync timestamp so the next cycle pushes the book again."""
        if self.synced_at is None:
            return self
        return self.model_copy(update={"synced_at": None})

    def _touched(self, now: datetime) -> datetime:
        return max(self.updated_at, now)

    def with_read_status(self, status: Optional[ReadStatus], now: datetime) -> "Book":
        return self.model_copy(update={
            "read_status": status,
            "updated_at": self._touched(now),
        })

    def with_metadata(self, metadata: Metadata, now: datetime) -> "Book":
        """
        Fill in title, authors and cover where they are missing.

        Values that are already set are never replaced. Returns the same
        instance if there was nothing to fill.
        """
        update = {}
        if self.title is None and metadata.title:
            update["title"] = metadata.title
        if self.authors is None and metadata.authors:
            update["authors"] = list(metadata.authors)
        if self.cover is None and metadata.cover:
            update["cover"] = metadata.cover

        if not update:
            return self

        update["updated_at"] = self._touched(now)
        return self.model_copy(update=update)

    def with_new_photo(self, photo_id: str, now: datetime) -> "Book":
        """
        Add an uploaded photo to the list.

        Photo IDs are timestamps, so sorting keeps them chronological. The
        share ID is taken from the first numeric photo ID and never changes
        after that.
        """
        photos = sorted([*(self.photos or []), photo_id])

        share_id = self.share_id
        if share_id is None and photo_id.isdigit():
            share_id = int(photo_id)

        return self.model_copy(update={
            "photos": photos,
            "share_id": share_id,
            "updated_at": self._touched(now),
        })

    def needs_enhancing(self) -> bool:
        return self.title is None or self.authors is None

    def photo_urls(self, base_url: str, owner_id: str) -> List[str]:
        """
        Build display URLs for the photo IDs of this book.

        e.g. https://bookwormfood.com/photos/<owner>-9780143107712-23520065.jpg
        """
        prefix = f"{base_url.rstrip('/')}/photos/{owner_id}-{self.isbn}-"
        return [f"{prefix}{photo_id}.jpg" for photo_id in self.photos or []]


@dataclass
class BookList:
    """A collection of books. Display order is newest update first."""
    books: List[Book] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.books)

    def __iter__(self):
        return iter(self.books)

    def sorted(self) -> "BookList":
        return BookList(books=sorted(self.books, key=lambda b: b.updated_at, reverse=True))

    def by_isbn(self) -> Dict[str, Book]:
        return {book.isbn: book for book in self.books}

    def isbns(self) -> List[str]:
        return [book.isbn for book in self.books]

    def lean_copy(self) -> "BookList":
        """A copy without the fields a list view does not need."""
        return BookList(books=[
            book.model_copy(update={"photos": None, "cover": None, "synced_at": None})
            for book in self.books
        ])


@dataclass
class SyncRunResult:
    """Result of a complete sync run."""
    run_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None

    # Push counts
    books_pushed: int = 0
    books_skipped: int = 0
    books_failed: int = 0

    # Pull counts
    books_pulled: int = 0

    # Status
    success: bool = True
    error_message: Optional[str] = None

    # Individual push results
    outcomes: Dict[str, PushOutcome] = field(default_factory=dict)
