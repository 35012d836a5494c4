"""Hierarchical datastore keys."""

from __future__ import annotations

import posixpath
from functools import total_ordering
from typing import override


SEPARATOR = "/"


def _clean(raw: str) -> str:
    # A single leading separator keeps normpath from preserving "//".
    return posixpath.normpath(SEPARATOR + raw.lstrip(SEPARATOR))


@total_ordering
class Key:
    """Path-like key such as ``/blocks/abc``.

    The cleaned string form is the literal key sent to a backend, so two keys
    are equal exactly when their string forms are equal.
    """

    __slots__ = ("_path",)

    def __init__(self, raw: str | Key = SEPARATOR) -> None:
        super().__init__()
        if isinstance(raw, Key):
            self._path = raw._path
            return
        if not isinstance(raw, str):
            msg = f"key must be a string or Key, not {type(raw).__name__}"
            raise TypeError(msg)
        self._path = _clean(raw)

    @classmethod
    def from_namespaces(cls, *namespaces: str) -> Key:
        """Build a key from individual path segments."""
        for namespace in namespaces:
            if not namespace:
                msg = "key namespaces must not be empty"
                raise ValueError(msg)
            if SEPARATOR in namespace:
                msg = "key namespaces must not contain separator"
                raise ValueError(msg)
        return cls(SEPARATOR + SEPARATOR.join(namespaces))

    @property
    def namespaces(self) -> tuple[str, ...]:
        """Path segments, empty for the root key."""
        if self._path == SEPARATOR:
            return ()
        return tuple(self._path[1:].split(SEPARATOR))

    @property
    def name(self) -> str:
        """Last path segment, empty for the root key."""
        namespaces = self.namespaces
        return namespaces[-1] if namespaces else ""

    @property
    def parent(self) -> Key:
        """Key one level up; the root is its own parent."""
        return Key(posixpath.dirname(self._path))

    def child(self, other: str | Key) -> Key:
        """Append ``other`` below this key."""
        return Key(f"{self._path}{SEPARATOR}{Key(other)._path}")

    def is_ancestor_of(self, other: Key) -> bool:
        if self._path == SEPARATOR:
            return other._path != SEPARATOR
        return other._path.startswith(self._path + SEPARATOR)

    def is_descendant_of(self, other: Key) -> bool:
        return other.is_ancestor_of(self)

    def is_top_level(self) -> bool:
        return len(self.namespaces) == 1

    @override
    def __str__(self) -> str:
        return self._path

    @override
    def __repr__(self) -> str:
        return f"Key({self._path!r})"

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Key):
            return NotImplemented
        return self._path == other._path

    def __lt__(self, other: Key) -> bool:
        if not isinstance(other, Key):
            return NotImplemented
        return self.namespaces < other.namespaces

    @override
    def __hash__(self) -> int:
        return hash(self._path)


def key_string(key: str | Key) -> str:
    """Return the backend string for a key or raw key string."""
    return str(Key(key))
