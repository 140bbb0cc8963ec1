"""
Main sync engine for Bookworm Sync.

Keeps the local cache and the remote store consistent:

- push: send one locally changed book to the remote store
- pull_and_merge: fetch the owner's remote list and merge it into the cache
- delete: remove a book locally, then best-effort from the remote store

Network calls are awaited; cache access is synchronous. Sync failures are
logged and reported as outcome values so the next cycle can retry them.
"""

import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from bookworm.api.remote import RemoteBookStore
from bookworm.store.cache import CacheStore
from bookworm.sync.errors import BookNotFoundError, ErrorKind, classify
from bookworm.sync.models import (
    Book,
    BookList,
    Owner,
    PushOutcome,
    SyncRunResult,
    is_valid_isbn,
    utc_now,
    validate_isbn,
)
from bookworm.sync.policy import (
    has_local_changes,
    merge,
    needs_push,
    sync_projection,
)
from bookworm.utils.logging import get_logger, SyncLogger

logger = get_logger(__name__)


class SyncEngine:
    """
    Coordinates the local cache and the remote store.

    There is no locking: two operations on the same ISBN interleaving at a
    network call can lose an update, which the next pull repairs.
    """

    def __init__(
        self,
        cache: CacheStore,
        remote: RemoteBookStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize sync engine.

        Args:
            cache: Local cache store
            remote: Remote store client
            clock: Source of the current time
        """
        self.cache = cache
        self.remote = remote
        self.clock = clock

    # ---------------------------------------------------------------- cache

    def load(self, isbn: str) -> Optional[Book]:
        """
        Read a book from the local cache.

        Returns:
            The book, or None if it is missing, cannot be decoded or is
            stored under another key

        Raises:
            InvalidIsbnError: If the ISBN fails validation
        """
        isbn = validate_isbn(isbn)
        data = self.cache.get(isbn)

        if data is None:
            return None

        try:
            book = Book.from_bytes(data)
        except ValueError as e:
            logger.warning(
                "Failed to parse cached book record",
                isbn=isbn,
                kind=classify(e).value,
                error=str(e),
            )
            return None

        if book.isbn != isbn:
            logger.warning(
                "Cached record ISBN differs from its key",
                key=isbn,
                isbn=book.isbn,
                kind=ErrorKind.MALFORMED.value,
            )
            return None

        return book

    def load_all(self) -> BookList:
        """Read every book in the local cache. Non-ISBN keys are ignored."""
        books = []

        for key in self.cache.list_keys():
            if not is_valid_isbn(key):
                logger.debug("Non-ISBN cache key ignored", key=key)
                continue

            book = self.load(key)
            if book is not None:
                books.append(book)

        return BookList(books=books).sorted()

    def persist(self, book: Book) -> None:
        """
        Write a book to the local cache.

        The record is serialized before the cache is touched, so a failure
        leaves the stored value as it was.
        """
        data = book.to_bytes()
        self.cache.set(book.isbn, data)

    # ----------------------------------------------------------------- push

    async def push(self, owner: Optional[Owner], isbn: str) -> PushOutcome:
        """
        Push a locally changed book to the remote store.

        Args:
            owner: Signed-in user, or None to skip the push
            isbn: ISBN of the cached book

        Returns:
            SKIPPED if there is nothing to push, SYNCED on success,
            FAILED_WILL_RETRY if the next cycle should try again

        Raises:
            InvalidIsbnError: If the ISBN fails validation
            BookNotFoundError: If the book is not in the local cache
        """
        book = self.load(isbn)
        if book is None:
            raise BookNotFoundError("Book not found in local cache", isbn=isbn)

        if owner is None:
            logger.debug("Not signed in, push skipped", isbn=book.isbn)
            return PushOutcome.SKIPPED

        if not needs_push(book):
            logger.debug("Book sync is current", isbn=book.isbn)
            return PushOutcome.SKIPPED

        try:
            await self.remote.upsert(owner, sync_projection(book))
        except Exception as e:
            logger.warning(
                "Failed to push book to remote store",
                isbn=book.isbn,
                kind=classify(e).value,
                error=str(e),
            )
            book = book.mark_unsynced()
            outcome = PushOutcome.FAILED_WILL_RETRY
        else:
            book = book.mark_synced(self.clock())
            outcome = PushOutcome.SYNCED

        try:
            self.persist(book)
        except Exception as e:
            logger.error("Failed to save sync status", isbn=book.isbn, error=str(e))
            return PushOutcome.FAILED_WILL_RETRY

        logger.info("Book pushed", isbn=book.isbn, outcome=outcome.value, synced_at=book.synced_at)
        return outcome

    async def push_dirty(self, owner: Optional[Owner]) -> Dict[str, PushOutcome]:
        """Push every cached book with unconfirmed local changes."""
        if owner is None:
            return {}

        outcomes = {}
        for book in self.load_all():
            if needs_push(book):
                outcomes[book.isbn] = await self.push(owner, book.isbn)

        return outcomes

    # ----------------------------------------------------------------- pull

    def _reconcile(
        self,
        books: BookList,
        remote_books: List[Book],
        now: datetime,
    ) -> Tuple[Dict[str, Book], List[Book], int]:
        """
        Merge remote books into the local list.

        Returns:
            Merged index by ISBN, books to write back, number of books
            whose content changed
        """
        index = books.by_isbn()
        to_persist: Dict[str, Book] = {}
        changed = 0

        for remote in remote_books:
            local = index.get(remote.isbn)

            if local is None:
                logger.debug("Remote book not in local cache", isbn=remote.isbn)
                adopted = remote.mark_synced(now)
                index[remote.isbn] = adopted
                to_persist[remote.isbn] = adopted
                changed += 1
                continue

            merged = merge(local, remote).mark_synced(now)

            if merged != local:
                index[remote.isbn] = merged
                to_persist[remote.isbn] = merged

            if has_local_changes(local, merged):
                logger.debug("Local book updated from remote store", isbn=remote.isbn)
                changed += 1

        return index, list(to_persist.values()), changed

    async def _pull(self, owner: Owner, books: BookList) -> Tuple[Optional[BookList], int]:
        remote_books = await self.remote.list(owner)

        logger.info("Pulled remote books", remote=len(remote_books), local=len(books))

        index, to_persist, changed = self._reconcile(books, remote_books, self.clock())

        for book in to_persist:
            try:
                self.persist(book)
            except Exception as e:
                logger.error("Failed to save merged book", isbn=book.isbn, error=str(e))
                index[book.isbn] = book.mark_unsynced()

        if not changed:
            logger.info("No new books to add or update")
            return None, 0

        return BookList(books=list(index.values())).sorted(), changed

    async def pull_and_merge(
        self,
        owner: Optional[Owner],
        books: BookList,
    ) -> Optional[BookList]:
        """
        Fetch the owner's remote books and merge them into the local cache.

        Local books missing from the remote store are left as they are.

        Args:
            owner: Signed-in user, or None to skip the pull
            books: Current local books

        Returns:
            The updated, sorted list, or None if nothing changed or the
            remote store could not be read
        """
        if owner is None:
            logger.debug("Not signed in, pull skipped")
            return None

        try:
            result, _ = await self._pull(owner, books)
        except Exception as e:
            logger.warning(
                "Failed to get books from remote store",
                kind=classify(e).value,
                error=str(e),
            )
            return None

        return result

    # --------------------------------------------------------------- delete

    async def delete(self, owner: Optional[Owner], isbn: str) -> bool:
        """
        Delete a book locally, then from the remote store.

        A failed remote delete is logged and not retried; the book comes
        back on the next pull if the remote record survived.

        Returns:
            True if the remote store confirmed the delete

        Raises:
            InvalidIsbnError: If the ISBN fails validation
        """
        isbn = validate_isbn(isbn)

        self.cache.delete(isbn)
        logger.info("Book removed from local cache", isbn=isbn)

        if owner is None:
            return False

        try:
            await self.remote.delete(owner, isbn)
        except Exception as e:
            logger.warning(
                "Failed to delete book from remote store",
                isbn=isbn,
                kind=classify(e).value,
                error=str(e),
            )
            return False

        logger.info("Book deleted from remote store", isbn=isbn)
        return True

    # ----------------------------------------------------------------- sync

    async def sync(self, owner: Owner, run_id: Optional[str] = None) -> SyncRunResult:
        """
        Run a full sync: push dirty books, then pull and merge.

        Args:
            owner: Signed-in user
            run_id: Optional run ID (auto-generated if not provided)

        Returns:
            SyncRunResult with sync details
        """
        run_id = run_id or str(uuid.uuid4())[:8]
        result = SyncRunResult(run_id=run_id, started_at=self.clock())

        with SyncLogger(run_id) as sync_logger:
            sync_logger.info("Starting sync run")

            result.outcomes = await self.push_dirty(owner)
            for outcome in result.outcomes.values():
                if outcome is PushOutcome.SYNCED:
                    result.books_pushed += 1
                elif outcome is PushOutcome.SKIPPED:
                    result.books_skipped += 1
                else:
                    result.books_failed += 1

            try:
                _, result.books_pulled = await self._pull(owner, self.load_all())
            except Exception as e:
                sync_logger.warning("Pull failed", kind=classify(e).value, error=str(e))
                result.success = False
                result.error_message = str(e)

            if result.books_failed:
                result.success = False
                result.error_message = result.error_message or "Some books failed to push"

            result.completed_at = self.clock()
            sync_logger.info(
                "Sync run completed",
                pushed=result.books_pushed,
                skipped=result.books_skipped,
                failed=result.books_failed,
                pulled=result.books_pulled,
            )

        return result
