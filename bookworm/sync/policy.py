"""
Reconciliation policy for Bookworm Sync.

Pure functions deciding whether a book needs pushing and how a local and a
remote copy of the same book are merged. Merging is done per field:

- title, authors: local if present, otherwise remote
- read status, cover: always local
- photos: always remote (uploads land in the remote store first)
- share ID: remote if present, otherwise local
- updated_at: the later of the two
"""

from typing import Dict, Any

from bookworm.sync.models import Book

# Fields the remote store accepts from a push
PUSHED_FIELDS = {"isbn", "updated_at", "read_status", "title", "authors"}


def needs_push(book: Book) -> bool:
    """True if the book has local changes not yet confirmed by the remote store."""
    return book.synced_at is None or book.synced_at < book.updated_at


def merge(local: Book, remote: Book) -> Book:
    """
    Merge a remote copy of a book into the local copy.

    Args:
        local: Book from the local cache
        remote: Book with the same ISBN from the remote store

    Returns:
        The merged local copy. `synced_at` is carried over from `local`;
        the caller decides the sync state of the result.
    """
    share_id = remote.share_id if remote.share_id is not None else local.share_id

    return local.model_copy(update={
        "updated_at": max(local.updated_at, remote.updated_at),
        "title": local.title if local.title is not None else remote.title,
        "authors": local.authors if local.authors is not None else remote.authors,
        "photos": list(remote.photos) if remote.photos is not None else None,
        "share_id": share_id,
    })


def sync_projection(book: Book) -> Book:
    """
    The part of a book that is pushed to the remote store.

    Display-only fields and fields owned by the remote store are dropped.
    """
    return Book(**book.model_dump(include=PUSHED_FIELDS))


def _content(book: Book) -> Dict[str, Any]:
    data = book.model_dump()
    data.pop("synced_at")
    return data


def has_local_changes(before: Book, after: Book) -> bool:
    """True if anything other than the sync timestamp differs."""
    return _content(before) != _content(after)

