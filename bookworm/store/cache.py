"""
Local cache store for Bookworm Sync.

A synchronous key-value store of serialized records keyed by ISBN. Writes
are last-write-wins and there are no transactions across keys.
"""

from typing import Dict, List, Optional, Protocol

from sqlalchemy.orm import sessionmaker

from bookworm.db.models import CacheEntry


class CacheStore(Protocol):
    """The contract the sync engine expects from the local cache."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def list_keys(self) -> List[str]:
        ...


class MemoryCacheStore:
    """Cache store held in a dict. Contents are lost with the process."""

    def __init__(self, entries: Optional[Dict[str, bytes]] = None):
        self._entries: Dict[str, bytes] = dict(entries or {})

    def get(self, key: str) -> Optional[bytes]:
        return self._entries.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._entries[key] = bytes(value)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def list_keys(self) -> List[str]:
        return list(self._entries)


class SqlCacheStore:
    """
    Cache store backed by the cache_entry table.

    Every call runs in its own short session so a failed write never
    leaves a partial record behind.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[bytes]:
        with self.session_factory() as session:
            entry = session.get(CacheEntry, key)
            return entry.value if entry else None

    def set(self, key: str, value: bytes) -> None:
        with self.session_factory.begin() as session:
            entry = session.get(CacheEntry, key)
            if entry:
                entry.value = value
            else:
                session.add(CacheEntry(key=key, value=value))

    def delete(self, key: str) -> None:
        with self.session_factory.begin() as session:
            entry = session.get(CacheEntry, key)
            if entry:
                session.delete(entry)

    def list_keys(self) -> List[str]:
        with self.session_factory() as session:
            return [row[0] for row in session.query(CacheEntry.key).all()]
