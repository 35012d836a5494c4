"""Value and TTL coercion shared by datastore implementations."""

from __future__ import annotations

from datetime import timedelta


def as_bytes(value: bytes | bytearray | memoryview) -> bytes:
    """Return ``value`` as immutable bytes, rejecting non-binary input."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, bytearray | memoryview):
        return bytes(value)
    msg = f"value must be bytes, not {type(value).__name__}"
    raise TypeError(msg)


def ttl_milliseconds(ttl: timedelta) -> int:
    """Convert a positive TTL to whole milliseconds."""
    if not isinstance(ttl, timedelta):
        msg = f"ttl must be a timedelta, not {type(ttl).__name__}"
        raise TypeError(msg)
    millis = ttl // timedelta(milliseconds=1)
    if millis <= 0:
        msg = "ttl must be at least one millisecond"
        raise ValueError(msg)
    return millis
