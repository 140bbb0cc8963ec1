"""
User actions on the book library.

These are the operations a user triggers directly: scanning a book,
changing its status, attaching a photo, deleting it and refreshing the
list. Each one updates the local cache first and then hands the book to the
sync engine. Errors in the local part are raised; sync failures are not.
"""

from datetime import datetime
from typing import Callable, Optional
from urllib.parse import urlsplit

from bookworm.api.google_books import GoogleBooksClient
from bookworm.api.remote import RemoteBookStore
from bookworm.store.cache import SqlCacheStore
from bookworm.sync.engine import SyncEngine
from bookworm.sync.errors import BookNotFoundError, MalformedRecordError, classify
from bookworm.sync.models import (
    Book,
    BookList,
    Owner,
    ReadStatus,
    validate_isbn,
)
from bookworm.utils.logging import get_logger

logger = get_logger(__name__)


def photo_id_from_upload_url(url: str) -> str:
    """
    Extract the photo ID from a presigned upload URL.

    e.g. https://s3.../photos/<owner>-9780143107712-1727129470.jpg?X-Amz-...
    gives 1727129470.

    Raises:
        MalformedRecordError: If the URL does not name a photo
    """
    path = urlsplit(url).path

    if not path.endswith(".jpg"):
        raise MalformedRecordError("Invalid upload URL: missing .jpg")

    name = path[:-len(".jpg")]
    if "-" not in name:
        raise MalformedRecordError("Invalid upload URL: missing -")

    photo_id = name.rsplit("-", 1)[1]
    if not photo_id:
        raise MalformedRecordError("Invalid upload URL: empty photo ID")

    return photo_id


class BookLibrary:
    """The user's scanned books."""

    def __init__(
        self,
        engine: SyncEngine,
        metadata: Optional[GoogleBooksClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.engine = engine
        self.metadata = metadata
        self.clock = clock or engine.clock

    def _require(self, isbn: str) -> Book:
        book = self.engine.load(isbn)
        if book is None:
            raise BookNotFoundError("Book not found", isbn=isbn)
        return book

    async def _push_quietly(self, owner: Optional[Owner], isbn: str) -> None:
        outcome = await self.engine.push(owner, isbn)
        logger.debug("Background push finished", isbn=isbn, outcome=outcome.value)

    async def get_book(self, owner: Optional[Owner], isbn: str) -> Book:
        """
        Get a book from the cache, or look it up and add it.

        Raises:
            InvalidIsbnError: If the ISBN fails validation
            BookNotFoundError: If the book is unknown to the metadata lookup
        """
        isbn = validate_isbn(isbn)

        book = self.engine.load(isbn)
        if book is not None:
            return book

        if self.metadata is None:
            raise BookNotFoundError("Book not found", isbn=isbn)

        try:
            metadata = await self.metadata.lookup(isbn)
        except Exception as e:
            logger.warning("Metadata lookup failed", isbn=isbn, error=str(e))
            raise BookNotFoundError("Cannot get book data", isbn=isbn) from e

        if metadata is None:
            raise BookNotFoundError("Nothing found for ISBN", isbn=isbn)

        now = self.clock()
        book = Book.create(isbn, now).with_metadata(metadata, now)
        self.engine.persist(book)
        logger.info("Book added", isbn=isbn, title=book.title)

        await self._push_quietly(owner, isbn)
        return self.engine.load(isbn) or book

    def list_books(self) -> BookList:
        """
        All cached books, newest first.

        Records without a title are skipped; they are left over from
        failed lookups and carry nothing to show.
        """
        books = [book for book in self.engine.load_all() if book.title]
        return BookList(books=books).sorted()

    async def update_status(
        self,
        owner: Optional[Owner],
        isbn: str,
        status: Optional[ReadStatus],
    ) -> Book:
        """
        Change the read status of a cached book and push it.

        Raises:
            InvalidIsbnError: If the ISBN fails validation
            BookNotFoundError: If the book is not cached
        """
        book = self._require(isbn)

        if book.read_status == status:
            logger.debug("Status unchanged", isbn=book.isbn)
            return book

        book = book.with_read_status(status, self.clock()).mark_unsynced()
        self.engine.persist(book)
        logger.info("Book status updated", isbn=book.isbn, status=status.value if status else None)

        await self._push_quietly(owner, book.isbn)
        return self.engine.load(book.isbn) or book

    def add_photo(self, isbn: str, photo_id: str) -> Book:
        """
        Record a photo that was uploaded for a cached book.

        Raises:
            InvalidIsbnError: If the ISBN fails validation
            BookNotFoundError: If the book is not cached
        """
        book = self._require(isbn)

        book = book.with_new_photo(photo_id, self.clock()).mark_unsynced()
        self.engine.persist(book)
        logger.info("Photo added", isbn=book.isbn, photo_id=photo_id, share_id=book.share_id)
        return book

    async def enrich(self, isbn: str) -> Book:
        """
        Fill in missing title, authors and cover from the metadata lookup.

        Lookup failures leave the book as it is.

        Raises:
            InvalidIsbnError: If the ISBN fails validation
            BookNotFoundError: If the book is not cached
        """
        book = self._require(isbn)

        if self.metadata is None or not (book.needs_enhancing() or book.cover is None):
            return book

        try:
            metadata = await self.metadata.lookup(book.isbn)
        except Exception as e:
            logger.warning(
                "Metadata lookup failed",
                isbn=book.isbn,
                kind=classify(e).value,
                error=str(e),
            )
            return book

        if metadata is None:
            return book

        enriched = book.with_metadata(metadata, self.clock())
        if enriched is book:
            return book

        enriched = enriched.mark_unsynced()
        self.engine.persist(enriched)
        logger.info("Book enriched", isbn=book.isbn, title=enriched.title)
        return enriched

    async def delete_book(self, owner: Optional[Owner], isbn: str) -> bool:
        """Delete a book. Returns True if the remote store confirmed it."""
        return await self.engine.delete(owner, isbn)

    def close(self) -> None:
        """Close the HTTP clients."""
        self.engine.remote.close()
        if self.metadata:
            self.metadata.close()

    async def refresh(self, owner: Optional[Owner]) -> Optional[BookList]:
        """Merge the remote list into the cache; None if nothing changed."""
        merged = await self.engine.pull_and_merge(owner, self.engine.load_all())
        if merged is None:
            return None
        return BookList(books=[book for book in merged if book.title])


def create_library_from_config(config) -> BookLibrary:
    """
    Build a library on the SQL cache, the remote store and Google Books.

    Args:
        config: SyncConfig
    """
    from bookworm.db.database import get_session_factory

    engine = SyncEngine(
        cache=SqlCacheStore(get_session_factory()),
        remote=RemoteBookStore(config.sync_url, timeout=config.request_timeout),
    )
    metadata = GoogleBooksClient(config.google_books_url, timeout=config.request_timeout)

    return BookLibrary(engine, metadata)
