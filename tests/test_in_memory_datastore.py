import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from kv_datastore.datastores.in_memory import InMemoryDatastore
from kv_datastore.exceptions import BatchCommittedError, NotFoundError
from kv_datastore.key import Key
from kv_datastore.query import FilterValueCompare, Op, Query


@pytest.mark.asyncio
async def test_put_get_roundtrip() -> None:
    datastore = InMemoryDatastore()
    await datastore.put(Key("/user/alice"), b'{"age": 30}')
    assert await datastore.get("/user/alice") == b'{"age": 30}'


@pytest.mark.asyncio
async def test_get_missing_raises_not_found() -> None:
    datastore = InMemoryDatastore()
    with pytest.raises(NotFoundError, match="key not found: /missing"):
        _ = await datastore.get("missing")


@pytest.mark.asyncio
async def test_delete_existing_and_missing() -> None:
    datastore = InMemoryDatastore()
    await datastore.put("/a", b"A")
    await datastore.delete("/a")
    assert await datastore.has("/a") is False

    await datastore.delete("/a")
    assert await datastore.has("/a") is False


@pytest.mark.asyncio
async def test_get_size() -> None:
    datastore = InMemoryDatastore()
    await datastore.put("/a", b"abc")
    assert await datastore.get_size("/a") == 3
    with pytest.raises(NotFoundError):
        _ = await datastore.get_size("/b")


@pytest.mark.asyncio
async def test_query_filters_by_prefix_and_sorts() -> None:
    datastore = InMemoryDatastore()
    await datastore.put("/a/z", b"1")
    await datastore.put("/a/b", b"2")
    await datastore.put("/b/x", b"3")

    results = await datastore.query(Query(prefix="/a"))

    assert results.keys() == ["/a/b", "/a/z"]
    assert [entry.size for entry in results] == [1, 1]
    assert (await datastore.query(Query(prefix="/missing"))).keys() == []


@pytest.mark.asyncio
async def test_query_keys_only_and_filters() -> None:
    datastore = InMemoryDatastore()
    await datastore.put("/a/1", b"low")
    await datastore.put("/a/2", b"zzz")

    keys_only = await datastore.query(Query(prefix="/a", keys_only=True))
    assert [(entry.value, entry.size) for entry in keys_only] == [(b"", -1), (b"", -1)]

    filtered = await datastore.query(Query(prefix="/a", filters=(FilterValueCompare(Op.GREATER_THAN, b"m"),)))
    assert filtered.keys() == ["/a/2"]


@pytest.mark.asyncio
async def test_batch_applies_on_commit_only() -> None:
    datastore = InMemoryDatastore()
    await datastore.put("/old", b"stale")
    batch = await datastore.batch()
    await batch.put("/x", b"v")
    await batch.delete("/old")

    assert await datastore.has("/x") is False
    assert await datastore.has("/old") is True

    await batch.commit()

    assert await datastore.get("/x") == b"v"
    assert await datastore.has("/old") is False
    with pytest.raises(BatchCommittedError):
        await batch.put("/y", b"v")


@pytest.mark.asyncio
async def test_ttl_expires_entries() -> None:
    datastore = InMemoryDatastore()
    await datastore.put_with_ttl("/short", b"v", timedelta(milliseconds=20))
    await datastore.put("/long", b"v")

    expiration = await datastore.get_expiration("/short")
    assert expiration is not None
    assert expiration <= datetime.now(tz=UTC) + timedelta(milliseconds=20)
    assert await datastore.get_expiration("/long") is None

    await asyncio.sleep(0.05)

    assert await datastore.has("/short") is False
    assert (await datastore.query(Query(prefix="/"))).keys() == ["/long"]


@pytest.mark.asyncio
async def test_set_ttl_on_missing_key_raises() -> None:
    datastore = InMemoryDatastore()
    with pytest.raises(NotFoundError):
        await datastore.set_ttl("/missing", timedelta(seconds=1))

    await datastore.put("/a", b"v")
    await datastore.set_ttl("/a", timedelta(seconds=30))
    entry = (await datastore.query(Query(prefix="/a"))).rest()[0]
    assert entry.expiration is not None


@pytest.mark.asyncio
async def test_close_is_noop() -> None:
    datastore = InMemoryDatastore()
    await datastore.put("/k", b"v")
    await datastore.close()
    await datastore.sync("/")
    assert await datastore.get("/k") == b"v"
