from datetime import UTC, datetime

import pytest
from hypothesis import given
from hypothesis import strategies as st

from kv_datastore.key import Key, key_string
from kv_datastore.query import (
    Entry,
    FilterKeyCompare,
    FilterKeyPrefix,
    FilterValueCompare,
    Op,
    OrderByFunction,
    OrderByKey,
    OrderByValue,
    OrderByValueDescending,
    Query,
    apply_query,
)


def test_key_cleans_path() -> None:
    assert str(Key("a/b")) == "/a/b"
    assert str(Key("//a///b/")) == "/a/b"
    assert str(Key("/a/./b/../c")) == "/a/c"
    assert str(Key("")) == "/"
    assert str(Key("/..")) == "/"
    assert key_string("x") == "/x"


def test_key_navigation() -> None:
    key = Key("/blocks/abc/def")
    assert key.namespaces == ("blocks", "abc", "def")
    assert key.name == "def"
    assert key.parent == Key("/blocks/abc")
    assert Key("/").parent == Key("/")
    assert Key("/blocks").child("abc") == Key("/blocks/abc")
    assert Key("/").child(Key("/a")) == Key("/a")
    assert Key("/blocks").is_ancestor_of(key)
    assert key.is_descendant_of(Key("/"))
    assert not Key("/block").is_ancestor_of(Key("/blocks/abc"))
    assert Key("/blocks").is_top_level()
    assert not key.is_top_level()


def test_key_equality_hash_and_ordering() -> None:
    assert Key("a") == Key("/a/")
    assert len({Key("a"), Key("/a"), Key("/b")}) == 2
    assert Key("/a/b") < Key("/a/c")
    assert Key("/a") < Key("/a/b")
    assert Key("/a") != "/a"
    assert repr(Key("a")) == "Key('/a')"


def test_key_rejects_invalid_input() -> None:
    with pytest.raises(TypeError, match="key must be a string or Key"):
        _ = Key(42)  # type: ignore[arg-type]
    with pytest.raises(ValueError, match="key namespaces must not be empty"):
        _ = Key.from_namespaces("a", "")
    with pytest.raises(ValueError, match="key namespaces must not contain separator"):
        _ = Key.from_namespaces("a/b")


@given(raw=st.text(max_size=40))
def test_key_cleaning_is_idempotent(raw: str) -> None:
    key = Key(raw)
    assert Key(str(key)) == key
    assert str(key).startswith("/")


def _entries() -> list[Entry]:
    return [
        Entry(key="/a/2", value=b"b", size=1),
        Entry(key="/a/1", value=b"c", size=1),
        Entry(key="/a/3", value=b"a", size=1, expiration=datetime(2030, 1, 1, tzinfo=UTC)),
    ]


def test_query_rejects_negative_offset_and_limit() -> None:
    with pytest.raises(ValueError, match="offset must not be negative"):
        _ = Query(offset=-1)
    with pytest.raises(ValueError, match="limit must not be negative"):
        _ = Query(limit=-1)


def test_apply_query_keeps_listing_order_without_orders() -> None:
    results = apply_query(Query(), _entries())
    assert results.keys() == ["/a/2", "/a/1", "/a/3"]
    assert len(results) == 3


def test_apply_query_filters() -> None:
    entries = _entries()
    assert apply_query(Query(filters=(FilterKeyCompare(Op.NOT_EQUAL, "/a/1"),)), entries).keys() == ["/a/2", "/a/3"]
    assert apply_query(Query(filters=(FilterValueCompare(Op.LESS_THAN_OR_EQUAL, b"b"),)), entries).keys() == [
        "/a/2",
        "/a/3",
    ]
    assert apply_query(Query(filters=[FilterKeyPrefix("/a/3")]), entries).keys() == ["/a/3"]


def test_apply_query_orders_offset_limit() -> None:
    entries = _entries()
    assert apply_query(Query(orders=(OrderByKey(),)), entries).keys() == ["/a/1", "/a/2", "/a/3"]
    assert apply_query(Query(orders=(OrderByValue(),)), entries).keys() == ["/a/3", "/a/2", "/a/1"]
    assert apply_query(Query(orders=(OrderByValueDescending(),), offset=1), entries).keys() == ["/a/2", "/a/3"]
    assert apply_query(Query(orders=(OrderByKey(),), limit=1), entries).keys() == ["/a/1"]


def test_apply_query_orders_chain_in_priority() -> None:
    entries = [
        Entry(key="/b", value=b"same"),
        Entry(key="/a", value=b"same"),
        Entry(key="/c", value=b"first"),
    ]
    by_size_then_key = Query(orders=(OrderByFunction(lambda left, right: len(left.value) - len(right.value)), OrderByKey()))

    assert apply_query(by_size_then_key, entries).keys() == ["/a", "/b", "/c"]


def test_results_rest_returns_copy() -> None:
    results = apply_query(Query(), _entries())
    rest = results.rest()
    rest.clear()
    assert len(results.rest()) == 3
