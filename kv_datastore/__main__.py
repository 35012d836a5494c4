"""Interface for ``python -m kv_datastore``."""

from __future__ import annotations

import asyncio
from argparse import ArgumentParser
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Sequence

from ._version import version
from .datastores import RedisDatastore
from .query import Query


__all__ = ["main"]


async def _list_keys(url: str, prefix: str) -> list[str]:
    async with RedisDatastore(url=url) as datastore:
        results = await datastore.query(Query(prefix=prefix, keys_only=True))
    return results.keys()


def main(args: Sequence[str] | None = None) -> None:
    """List datastore keys under a prefix."""
    parser = ArgumentParser(prog="kv_datastore")
    _ = parser.add_argument("-v", "--version", action="version", version=version)
    _ = parser.add_argument("--url", default="redis://localhost:6379/0", help="Redis connection URL")
    _ = parser.add_argument("--prefix", default="", help="literal key prefix to list")
    parsed = parser.parse_args(args)

    for key in asyncio.run(_list_keys(parsed.url, parsed.prefix)):
        print(key)  # noqa: T201


if __name__ == "__main__":
    main()
