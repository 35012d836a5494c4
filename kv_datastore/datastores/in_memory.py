"""In-memory datastore implementation."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, override

from kv_datastore.exceptions import BatchCommittedError, NotFoundError
from kv_datastore.key import key_string
from kv_datastore.query import Entry, Query, Results, apply_query

from ._values import as_bytes, ttl_milliseconds
from .protocol import Batch, TTLDatastore


if TYPE_CHECKING:
    from kv_datastore.key import Key


@dataclass
class _StoredValue:
    value: bytes
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


def _deadline(ttl: timedelta) -> float:
    return time.time() + ttl_milliseconds(ttl) / 1000


class InMemoryBatch(Batch):
    """Batch buffering operations until they are applied under the store lock."""

    def __init__(self, datastore: InMemoryDatastore) -> None:
        super().__init__()
        self._datastore = datastore
        self._operations: list[tuple[str, bytes | None]] = []
        self._committed = False

    def _ensure_open(self) -> None:
        if self._committed:
            msg = "batch has already been committed"
            raise BatchCommittedError(msg)

    @override
    async def put(self, key: Key | str, value: bytes) -> None:
        """Queue a write of ``value`` at ``key``."""
        self._ensure_open()
        self._operations.append((key_string(key), as_bytes(value)))

    @override
    async def delete(self, key: Key | str) -> None:
        """Queue removal of ``key``."""
        self._ensure_open()
        self._operations.append((key_string(key), None))

    @override
    async def commit(self) -> None:
        """Apply the queued operations atomically under the store lock."""
        self._ensure_open()
        self._committed = True
        await self._datastore._apply(self._operations)


class InMemoryDatastore(TTLDatastore):
    """Simple in-memory datastore for local development and tests.

    Data is lost when the process exits. Expired keys are dropped lazily.
    """

    def __init__(self) -> None:
        super().__init__()
        self._store: dict[str, _StoredValue] = {}
        self._lock = asyncio.Lock()

    def _live(self, name: str) -> _StoredValue | None:
        stored = self._store.get(name)
        if stored is None:
            return None
        if stored.is_expired(time.time()):
            del self._store[name]
            return None
        return stored

    async def _apply(self, operations: list[tuple[str, bytes | None]]) -> None:
        async with self._lock:
            for name, value in operations:
                if value is None:
                    _ = self._store.pop(name, None)
                else:
                    self._store[name] = _StoredValue(value)

    @override
    async def get(self, key: Key | str) -> bytes:
        """Return the value at ``key``."""
        name = key_string(key)
        async with self._lock:
            stored = self._live(name)
        if stored is None:
            raise NotFoundError(name)
        return stored.value

    @override
    async def has(self, key: Key | str) -> bool:
        """Return True when ``key`` exists and has not expired."""
        name = key_string(key)
        async with self._lock:
            return self._live(name) is not None

    @override
    async def get_size(self, key: Key | str) -> int:
        """Return the value length at ``key``."""
        return len(await self.get(key))

    @override
    async def query(self, query: Query) -> Results:
        """Return entries whose key starts with ``query.prefix``, in key order."""
        async with self._lock:
            matching = sorted(name for name in self._store if name.startswith(query.prefix))
            live = [(name, self._live(name)) for name in matching]

        entries = []
        for name, stored in live:
            if stored is None:
                continue
            if query.keys_only:
                entries.append(Entry(key=name))
                continue
            expiration = None
            if stored.expires_at is not None:
                expiration = datetime.fromtimestamp(stored.expires_at, tz=UTC)
            entries.append(Entry(key=name, value=stored.value, size=len(stored.value), expiration=expiration))
        return apply_query(query, entries)

    @override
    async def put(self, key: Key | str, value: bytes) -> None:
        """Store ``value`` at ``key`` without expiry."""
        name = key_string(key)
        data = as_bytes(value)
        async with self._lock:
            self._store[name] = _StoredValue(data)

    @override
    async def delete(self, key: Key | str) -> None:
        """Delete ``key`` if present."""
        name = key_string(key)
        async with self._lock:
            _ = self._store.pop(name, None)

    @override
    async def sync(self, prefix: Key | str) -> None:
        """Nothing to flush for an in-memory store."""
        return

    @override
    async def close(self) -> None:
        """Release datastore resources."""
        return

    @override
    async def batch(self) -> InMemoryBatch:
        """Return a new batch bound to this datastore."""
        return InMemoryBatch(self)

    @override
    async def put_with_ttl(self, key: Key | str, value: bytes, ttl: timedelta) -> None:
        """Store ``value`` at ``key`` and expire it after ``ttl``."""
        name = key_string(key)
        data = as_bytes(value)
        expires_at = _deadline(ttl)
        async with self._lock:
            self._store[name] = _StoredValue(data, expires_at)

    @override
    async def set_ttl(self, key: Key | str, ttl: timedelta) -> None:
        """Expire an existing ``key`` after ``ttl``."""
        name = key_string(key)
        expires_at = _deadline(ttl)
        async with self._lock:
            stored = self._live(name)
            if stored is None:
                raise NotFoundError(name)
            stored.expires_at = expires_at

    @override
    async def get_expiration(self, key: Key | str) -> datetime | None:
        """Return when ``key`` expires, or ``None`` if it never does."""
        name = key_string(key)
        async with self._lock:
            stored = self._live(name)
        if stored is None:
            raise NotFoundError(name)
        if stored.expires_at is None:
            return None
        return datetime.fromtimestamp(stored.expires_at, tz=UTC)
