"""
Remote store client for Bookworm Sync.

The remote store keeps one record per (owner, ISBN). The owner is derived
server-side from the ID token sent with every request.

    GET    <sync_url>             -> {"books": [Book, ...]}
    POST   <sync_url>             <- Book (sync projection)
    DELETE <sync_url>?isbn=<isbn>
"""

import json
from typing import List

from pydantic import ValidationError

from bookworm.api.base import BaseClient
from bookworm.sync.errors import MalformedRecordError
from bookworm.sync.models import Book, Owner
from bookworm.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SYNC_URL = "https://bookwormfood.com/sync.html"

# Header carrying the owner's ID token
AUTH_HEADER = "x-books-authorization"

# Query parameter naming the ISBN on delete
ISBN_URL_PARAM_NAME = "isbn"


class RemoteBookStore(BaseClient):
    """
    Client for the remote book store.

    Transport retries are disabled: a failed call is retried by the next
    sync cycle, not by this client.
    """

    def __init__(self, sync_url: str = DEFAULT_SYNC_URL, timeout: int = 30):
        """
        Initialize remote store client.

        Args:
            sync_url: URL of the sync endpoint
            timeout: Request timeout in seconds
        """
        super().__init__(sync_url, timeout=timeout, max_retries=0)

    @staticmethod
    def _auth_headers(owner: Owner) -> dict:
        return {AUTH_HEADER: owner.id_token}

    async def upsert(self, owner: Owner, book: Book) -> None:
        """
        Create or replace the owner's record for a book.

        Raises:
            APIError: If the request fails
        """
        headers = self._auth_headers(owner)
        headers["Content-Type"] = "application/json"

        await self.apost("", data=book.to_bytes(), headers=headers)
        logger.debug("Book upserted in remote store", isbn=book.isbn)

    async def list(self, owner: Owner) -> List[Book]:
        """
        Get all books the remote store holds for the owner.

        Records that fail to parse are logged and skipped.

        Raises:
            APIError: If the request fails
            MalformedRecordError: If the response is not a book list
        """
        response = await self.aget("", headers=self._auth_headers(owner))

        if not isinstance(response, dict):
            raise MalformedRecordError("Unexpected remote store response")

        if "books" not in response:
            # 204 or an empty body means there is nothing stored yet
            if not response.get("data"):
                return []
            raise MalformedRecordError("Unexpected remote store response")

        items = response["books"]
        if not isinstance(items, list):
            raise MalformedRecordError("Remote book list is not a list")

        books = []
        for item in items:
            try:
                books.append(Book.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    "Skipping malformed remote record",
                    record=json.dumps(item, default=str)[:200],
                    error=str(e),
                )

        logger.info("Retrieved books from remote store", total=len(items), valid=len(books))
        return books

    async def delete(self, owner: Owner, isbn: str) -> None:
        """
        Delete the owner's record for a book.

        Raises:
            APIError: If the request fails
        """
        await self.adelete(
            "",
            params={ISBN_URL_PARAM_NAME: isbn},
            headers=self._auth_headers(owner),
        )
        logger.debug("Book deleted from remote store", isbn=isbn)
