"""Query descriptors, result entries and the in-process query post-processor."""

from __future__ import annotations

import operator
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum
from functools import cmp_to_key
from typing import TYPE_CHECKING, Any, override


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator
    from datetime import datetime


@dataclass(frozen=True, slots=True)
class Entry:
    """A single query result.

    ``size`` is -1 and ``value`` empty for key-only queries. ``expiration`` is
    ``None`` when the key has no expiry or it was not fetched.
    """

    key: str
    value: bytes = b""
    size: int = -1
    expiration: datetime | None = None


class Op(StrEnum):
    """Comparison operators understood by compare filters."""

    EQUAL = "=="
    NOT_EQUAL = "!="
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL = ">="
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL = "<="


_OPERATORS: dict[Op, Callable[[Any, Any], bool]] = {
    Op.EQUAL: operator.eq,
    Op.NOT_EQUAL: operator.ne,
    Op.GREATER_THAN: operator.gt,
    Op.GREATER_THAN_OR_EQUAL: operator.ge,
    Op.LESS_THAN: operator.lt,
    Op.LESS_THAN_OR_EQUAL: operator.le,
}


class Filter(ABC):
    """Predicate applied to every entry of a raw result set."""

    @abstractmethod
    def matches(self, entry: Entry) -> bool:
        """Return True to keep ``entry``."""


@dataclass(frozen=True)
class FilterKeyCompare(Filter):
    op: Op
    key: str

    @override
    def matches(self, entry: Entry) -> bool:
        return _OPERATORS[Op(self.op)](entry.key, self.key)


@dataclass(frozen=True)
class FilterValueCompare(Filter):
    op: Op
    value: bytes

    @override
    def matches(self, entry: Entry) -> bool:
        return _OPERATORS[Op(self.op)](entry.value, self.value)


@dataclass(frozen=True)
class FilterKeyPrefix(Filter):
    prefix: str

    @override
    def matches(self, entry: Entry) -> bool:
        return entry.key.startswith(self.prefix)


class Order(ABC):
    """Comparison used to sort a raw result set."""

    @abstractmethod
    def compare(self, left: Entry, right: Entry) -> int:
        """Return a negative, zero or positive number like ``cmp``."""


def _cmp(left: Any, right: Any) -> int:
    return (left > right) - (left < right)


class OrderByKey(Order):
    @override
    def compare(self, left: Entry, right: Entry) -> int:
        return _cmp(left.key, right.key)


class OrderByKeyDescending(Order):
    @override
    def compare(self, left: Entry, right: Entry) -> int:
        return _cmp(right.key, left.key)


class OrderByValue(Order):
    @override
    def compare(self, left: Entry, right: Entry) -> int:
        return _cmp(left.value, right.value)


class OrderByValueDescending(Order):
    @override
    def compare(self, left: Entry, right: Entry) -> int:
        return _cmp(right.value, left.value)


@dataclass(frozen=True)
class OrderByFunction(Order):
    function: Callable[[Entry, Entry], int]

    @override
    def compare(self, left: Entry, right: Entry) -> int:
        return self.function(left, right)


@dataclass(frozen=True)
class Query:
    """Query descriptor.

    Datastores only read ``prefix`` and ``keys_only`` themselves; filters,
    orders, offset and limit are applied afterwards by :func:`apply_query`.
    A ``limit`` of 0 means no limit.
    """

    prefix: str = ""
    keys_only: bool = False
    filters: tuple[Filter, ...] = field(default_factory=tuple)
    orders: tuple[Order, ...] = field(default_factory=tuple)
    offset: int = 0
    limit: int = 0

    def __post_init__(self) -> None:
        if self.offset < 0:
            msg = "offset must not be negative"
            raise ValueError(msg)
        if self.limit < 0:
            msg = "limit must not be negative"
            raise ValueError(msg)
        # Accept lists from callers while keeping the descriptor hashable.
        object.__setattr__(self, "filters", tuple(self.filters))
        object.__setattr__(self, "orders", tuple(self.orders))


class Results:
    """Materialized result set of a query."""

    def __init__(self, query: Query, entries: Iterable[Entry]) -> None:
        super().__init__()
        self.query = query
        self._entries = list(entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def rest(self) -> list[Entry]:
        """Return all entries as a list."""
        return list(self._entries)

    def keys(self) -> list[str]:
        return [entry.key for entry in self._entries]

    @override
    def __repr__(self) -> str:
        return f"Results(query={self.query!r}, entries={len(self._entries)})"


def apply_query(query: Query, entries: Iterable[Entry]) -> Results:
    """Filter, sort and paginate a raw result set according to ``query``.

    Orders compare lexicographically, the first order deciding first. Sorting
    is stable, so entries keep their listing order when no order applies.
    """
    selected = [entry for entry in entries if all(f.matches(entry) for f in query.filters)]

    if query.orders:

        def compare(left: Entry, right: Entry) -> int:
            for order in query.orders:
                result = order.compare(left, right)
                if result:
                    return result
            return 0

        selected.sort(key=cmp_to_key(compare))

    selected = selected[query.offset :]
    if query.limit:
        selected = selected[: query.limit]
    return Results(query, selected)
