"""Redis-compatible datastore implementation."""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta
from inspect import isawaitable
from typing import TYPE_CHECKING, Any, override

import redis.asyncio as redis_async
from loguru import logger
from redis.exceptions import RedisError

from kv_datastore.exceptions import (
    BackendUnavailableError,
    BatchCommitError,
    BatchCommittedError,
    NotFoundError,
)
from kv_datastore.key import key_string
from kv_datastore.query import Entry, Query, Results, apply_query

from ._values import as_bytes, ttl_milliseconds
from .protocol import Batch, TTLDatastore


if TYPE_CHECKING:
    from kv_datastore.key import Key


_GLOB_SPECIAL = re.compile(r"([\\*?\[\]])")

# PTTL replies for a missing key and for a key without expiry.
_PTTL_MISSING = -2
_PTTL_PERSISTENT = -1


def _normalize_key(value: str | bytes) -> str | None:
    if not isinstance(value, bytes):
        return value
    try:
        return value.decode()
    except UnicodeDecodeError:
        logger.debug("skipping non-UTF-8 key {!r} during query", value)
        return None


def _match_pattern(prefix: str) -> str:
    """Build a SCAN MATCH pattern matching ``prefix`` literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", prefix) + "*"


def _unavailable(action: str, key: str, error: RedisError) -> BackendUnavailableError:
    return BackendUnavailableError(f"redis {action} failed for {key!r}: {error}")


class RedisBatch(Batch):
    """Batch queuing writes on a client pipeline until commit.

    Commit sends the queued commands in one round-trip. Redis does not roll
    back commands that fail inside the group, so a failed commit may still
    have applied some of them.
    """

    def __init__(self, pipeline: Any) -> None:
        super().__init__()
        self._pipeline = pipeline
        self._queued = 0
        self._committed = False

    def _ensure_open(self) -> None:
        if self._committed:
            msg = "batch has already been committed"
            raise BatchCommittedError(msg)

    @override
    async def put(self, key: Key | str, value: bytes) -> None:
        """Queue a SET of ``value`` at ``key``."""
        self._ensure_open()
        data = as_bytes(value)
        _ = self._pipeline.set(key_string(key), data)
        self._queued += 1

    @override
    async def delete(self, key: Key | str) -> None:
        """Queue a DEL of ``key``."""
        self._ensure_open()
        _ = self._pipeline.delete(key_string(key))
        self._queued += 1

    @override
    async def commit(self) -> None:
        """Send all queued commands and wait for their replies."""
        self._ensure_open()
        self._committed = True
        total = self._queued
        try:
            replies = await self._pipeline.execute(raise_on_error=False)
        except RedisError as error:
            logger.warning("redis batch of {} operations failed: {}", total, error)
            msg = f"batch commit of {total} operations failed: {error}"
            raise BatchCommitError(msg, failed=None, total=total) from error

        failures = [reply for reply in replies if isinstance(reply, Exception)]
        if failures:
            logger.warning("redis batch committed with {} of {} operations failed", len(failures), total)
            msg = f"{len(failures)} of {total} batched operations failed: {failures[0]}"
            raise BatchCommitError(msg, failed=len(failures), total=total)
        logger.debug("redis batch committed {} operations", total)


class RedisDatastore(TTLDatastore):
    """Datastore over a ``redis.asyncio`` client.

    Keys are stored under their cleaned string form; there is no secondary
    index, so queries scan the keyspace for the prefix.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        *,
        client: Any | None = None,
        transaction: bool = True,
        conflate_get_errors: bool = False,
        scan_count: int | None = None,
    ) -> None:
        """Create a datastore from URL or an injected async client.

        Parameters
        ----------
        url
            Redis connection URL used when ``client`` is not provided.
        client
            Optional injected client with the ``redis.asyncio.Redis`` API. It must
            return raw bytes, so do not build it with ``decode_responses=True``.
            It is closed by :meth:`close` like a client created from ``url``.
        transaction
            Wrap batch pipelines in MULTI/EXEC. Defaults to True.
        conflate_get_errors
            Report every failure on the get path, including transport errors,
            as ``NotFoundError``. Defaults to False, which raises
            ``BackendUnavailableError`` for backend failures.
        scan_count
            Optional COUNT hint for the SCAN calls used by :meth:`query`.
        """
        super().__init__()
        self._url = url
        self._transaction = transaction
        self._conflate_get_errors = conflate_get_errors
        self._scan_count = scan_count
        if client is not None:
            self._client = client
            return

        logger.debug("creating redis client for {}", url)
        self._client = redis_async.from_url(url)

    @override
    async def get(self, key: Key | str) -> bytes:
        """Return the value at ``key``."""
        name = key_string(key)
        try:
            value = await self._client.get(name)
        except RedisError as error:
            if self._conflate_get_errors:
                raise NotFoundError(name) from None
            raise _unavailable("GET", name, error) from error

        if value is None:
            raise NotFoundError(name)
        return as_bytes(value)

    @override
    async def has(self, key: Key | str) -> bool:
        """Return True when EXISTS reports the key."""
        name = key_string(key)
        try:
            count = await self._client.exists(name)
        except RedisError as error:
            raise _unavailable("EXISTS", name, error) from error
        return count > 0

    @override
    async def get_size(self, key: Key | str) -> int:
        """Return the value length at ``key``.

        Redis has no primitive reporting the stored value length that suits
        every value encoding, so the value is fetched in full.
        """
        return len(await self.get(key))

    @override
    async def query(self, query: Query) -> Results:
        """Scan keys by literal prefix and post-process the entries.

        Expirations are computed as the local time plus the remaining TTL
        Redis reports, so they drift by the round-trip and processing time.
        Per-key fetch failures are ignored: such keys are reported with an
        empty value and size 0. Keys that are not valid UTF-8 are skipped.
        """
        keys = await self._list_keys(query.prefix)
        if query.keys_only:
            entries = [Entry(key=key) for key in keys]
        else:
            entries = [await self._fetch_entry(key) for key in keys]
        return apply_query(query, entries)

    async def _list_keys(self, prefix: str) -> list[str]:
        pattern = _match_pattern(prefix)
        try:
            keys = [
                _normalize_key(key)
                async for key in self._client.scan_iter(match=pattern, count=self._scan_count)
            ]
        except RedisError as error:
            raise _unavailable("SCAN", prefix, error) from error
        return sorted({key for key in keys if key is not None})

    async def _fetch_entry(self, key: str) -> Entry:
        value = b""
        expiration = None
        try:
            raw = await self._client.get(key)
            if raw is not None:
                value = as_bytes(raw)
            expiration = await self._expiration(key)
        except RedisError as error:
            logger.debug("ignoring redis error while fetching {!r} for query: {}", key, error)
        return Entry(key=key, value=value, size=len(value), expiration=expiration)

    async def _expiration(self, key: str) -> datetime | None:
        millis = await self._client.pttl(key)
        if millis < 0:
            return None
        return datetime.now(tz=UTC) + timedelta(milliseconds=millis)

    @override
    async def put(self, key: Key | str, value: bytes) -> None:
        """Store ``value`` at ``key`` without expiry."""
        name = key_string(key)
        data = as_bytes(value)
        try:
            await self._client.set(name, data)
        except RedisError as error:
            raise _unavailable("SET", name, error) from error

    @override
    async def delete(self, key: Key | str) -> None:
        """Delete ``key`` if present."""
        name = key_string(key)
        try:
            await self._client.delete(name)
        except RedisError as error:
            raise _unavailable("DEL", name, error) from error

    @override
    async def sync(self, prefix: Key | str) -> None:
        """Redis handles its own durability; there is nothing to flush."""
        return

    @override
    async def close(self) -> None:
        """Release the client connection."""
        close_method = getattr(self._client, "aclose", None)
        if close_method is None:
            close_method = getattr(self._client, "close", None)
        if close_method is None:
            return

        maybe_awaitable = close_method()
        if isawaitable(maybe_awaitable):
            await maybe_awaitable
        logger.debug("closed redis datastore client")

    @override
    async def batch(self) -> RedisBatch:
        """Return a batch on a fresh pipeline of the shared client."""
        return RedisBatch(self._client.pipeline(transaction=self._transaction))

    @override
    async def put_with_ttl(self, key: Key | str, value: bytes, ttl: timedelta) -> None:
        """Store ``value`` at ``key`` with a millisecond-precision expiry."""
        name = key_string(key)
        data = as_bytes(value)
        millis = ttl_milliseconds(ttl)
        try:
            await self._client.set(name, data, px=millis)
        except RedisError as error:
            raise _unavailable("SET", name, error) from error

    @override
    async def set_ttl(self, key: Key | str, ttl: timedelta) -> None:
        """Expire an existing ``key`` after ``ttl``."""
        name = key_string(key)
        millis = ttl_milliseconds(ttl)
        try:
            applied = await self._client.pexpire(name, millis)
        except RedisError as error:
            raise _unavailable("PEXPIRE", name, error) from error
        if not applied:
            raise NotFoundError(name)

    @override
    async def get_expiration(self, key: Key | str) -> datetime | None:
        """Return the approximate expiry time of ``key``."""
        name = key_string(key)
        try:
            millis = await self._client.pttl(name)
        except RedisError as error:
            raise _unavailable("PTTL", name, error) from error
        if millis == _PTTL_MISSING:
            raise NotFoundError(name)
        if millis == _PTTL_PERSISTENT:
            return None
        return datetime.now(tz=UTC) + timedelta(milliseconds=millis)
