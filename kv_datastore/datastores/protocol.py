"""Datastore interface definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Self


if TYPE_CHECKING:
    from datetime import datetime, timedelta
    from types import TracebackType

    from kv_datastore.key import Key
    from kv_datastore.query import Query, Results


class Batch(ABC):
    """Buffered group of writes applied together on commit."""

    @abstractmethod
    async def put(self, key: Key | str, value: bytes) -> None:
        """Queue a write of ``value`` at ``key``."""

    @abstractmethod
    async def delete(self, key: Key | str) -> None:
        """Queue removal of ``key``."""

    @abstractmethod
    async def commit(self) -> None:
        """Apply every queued operation. The batch cannot be reused afterwards."""


class Datastore(ABC):
    """Async key/value datastore interface."""

    @abstractmethod
    async def get(self, key: Key | str) -> bytes:
        """Return the value at ``key``; raise ``NotFoundError`` when missing."""

    @abstractmethod
    async def has(self, key: Key | str) -> bool:
        """Return True when ``key`` exists."""

    @abstractmethod
    async def get_size(self, key: Key | str) -> int:
        """Return the value length at ``key``; raise ``NotFoundError`` when missing."""

    @abstractmethod
    async def query(self, query: Query) -> Results:
        """Return entries whose key starts with ``query.prefix``."""

    @abstractmethod
    async def put(self, key: Key | str, value: bytes) -> None:
        """Store ``value`` at ``key``, replacing any previous value."""

    @abstractmethod
    async def delete(self, key: Key | str) -> None:
        """Remove ``key``. Deleting a missing key is not an error."""

    @abstractmethod
    async def sync(self, prefix: Key | str) -> None:
        """Flush writes under ``prefix`` to durable storage."""

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def batch(self) -> Batch:
        """Return a new, empty batch bound to this datastore."""

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.close()


class TTLDatastore(Datastore):
    """Datastore able to expire keys."""

    @abstractmethod
    async def put_with_ttl(self, key: Key | str, value: bytes, ttl: timedelta) -> None:
        """Store ``value`` at ``key`` and expire it after ``ttl``."""

    @abstractmethod
    async def set_ttl(self, key: Key | str, ttl: timedelta) -> None:
        """Expire an existing ``key`` after ``ttl``."""

    @abstractmethod
    async def get_expiration(self, key: Key | str) -> datetime | None:
        """Return when ``key`` expires, or ``None`` if it never does."""
