"""Minimal example for RedisDatastore against a Redis-compatible server."""

import asyncio

from kv_datastore.datastores.redis import RedisDatastore
from kv_datastore.key import Key
from kv_datastore.query import OrderByKey, Query


async def main() -> None:
    """Run a put/get/query/batch flow against Redis/Dragonfly."""
    async with RedisDatastore(url="redis://redis:6379/0") as datastore:
        await datastore.put(Key("/blocks/a"), b"alpha")
        print("get:", await datastore.get("/blocks/a"))
        print("size:", await datastore.get_size("/blocks/a"))

        batch = await datastore.batch()
        await batch.put("/blocks/b", b"beta")
        await batch.put("/blocks/c", b"gamma")
        await batch.delete("/blocks/a")
        await batch.commit()

        results = await datastore.query(Query(prefix="/blocks", orders=(OrderByKey(),)))
        for entry in results:
            print(entry.key, entry.value, entry.size, entry.expiration)


if __name__ == "__main__":
    asyncio.run(main())
