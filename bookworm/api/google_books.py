"""
Google Books API client for Bookworm Sync.

Documentation: https://developers.google.com/books/docs/v1/reference/volumes

Volume search by ISBN:
    https://www.googleapis.com/books/v1/volumes?q=isbn:9781761186769
"""

from typing import Optional, Dict, Any

from bookworm.api.base import BaseClient
from bookworm.sync.models import Metadata
from bookworm.utils.logging import get_logger

logger = get_logger(__name__)

GOOGLE_BOOKS_API_URL = "https://www.googleapis.com/books/v1"

# Image sizes from largest to smallest
IMAGE_LINK_SIZES = (
    "extraLarge",
    "large",
    "medium",
    "small",
    "thumbnail",
    "smallThumbnail",
)


def largest_thumbnail(image_links: Optional[Dict[str, Any]]) -> Optional[str]:
    """Return the largest image URL available in a volume's imageLinks."""
    if not image_links:
        return None

    for size in IMAGE_LINK_SIZES:
        if image_links.get(size):
            return image_links[size]

    return None


class GoogleBooksClient(BaseClient):
    """
    Client for the Google Books volumes API.

    Used to fill in title, authors and cover for scanned ISBNs.
    """

    def __init__(self, base_url: str = GOOGLE_BOOKS_API_URL, timeout: int = 30):
        super().__init__(base_url, timeout=timeout)

    def parse_volume(self, volume: Dict[str, Any]) -> Optional[Metadata]:
        """
        Parse a Google Books volume into Metadata.

        Args:
            volume: Raw volume data

        Returns:
            Metadata or None if the volume has no title
        """
        info = volume.get("volumeInfo") or {}
        title = info.get("title")

        if not title:
            return None

        return Metadata(
            title=title,
            authors=list(info.get("authors") or []) or None,
            cover=largest_thumbnail(info.get("imageLinks")),
        )

    async def lookup(self, isbn: str) -> Optional[Metadata]:
        """
        Look up book details by ISBN.

        Args:
            isbn: ISBN to search for

        Returns:
            Metadata if found, None otherwise

        Raises:
            APIError: If the request fails
        """
        logger.debug("Querying Google Books", isbn=isbn)

        response = await self.aget("/volumes", params={"q": f"isbn:{isbn}"})
        items = response.get("items") or []

        for volume in items:
            metadata = self.parse_volume(volume)
            if metadata:
                return metadata

        logger.info("Nothing in Google Books for ISBN", isbn=isbn)
        return None
