"""Synchronous facade over an async datastore."""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING, Any, Self, TypeVar


if TYPE_CHECKING:
    from collections.abc import Coroutine
    from concurrent.futures import Future
    from types import TracebackType

    from kv_datastore.datastores import Batch, Datastore
    from kv_datastore.key import Key
    from kv_datastore.query import Query, Results


_T = TypeVar("_T")


class _AsyncLoopBridge:
    """Bridge sync calls to async datastore operations on a dedicated loop."""

    def __init__(self) -> None:
        super().__init__()
        self._loop_ready = threading.Event()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread = threading.Thread(target=self._run, name="kv-datastore-blocking", daemon=True)
        self._thread.start()
        _ = self._loop_ready.wait()

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._loop_ready.set()
        try:
            loop.run_forever()
        finally:
            loop.close()

    def run(self, coroutine: Coroutine[Any, Any, _T]) -> _T:
        if self._loop is None or not self._thread.is_alive():
            coroutine.close()
            msg = "blocking datastore loop is not running"
            raise RuntimeError(msg)
        future: Future[_T] = asyncio.run_coroutine_threadsafe(coroutine, self._loop)
        return future.result()

    def close(self) -> None:
        if self._loop is None:
            return
        _ = self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)


class BlockingBatch:
    """Blocking view of an async batch."""

    def __init__(self, batch: Batch, bridge: _AsyncLoopBridge) -> None:
        super().__init__()
        self._batch = batch
        self._bridge = bridge

    def put(self, key: Key | str, value: bytes) -> None:
        self._bridge.run(self._batch.put(key, value))

    def delete(self, key: Key | str) -> None:
        self._bridge.run(self._batch.delete(key))

    def commit(self) -> None:
        self._bridge.run(self._batch.commit())


class BlockingDatastore:
    """Blocking API over any async :class:`Datastore`.

    Calls run on a private event loop thread, so the wrapped datastore and
    its client must only be used through this facade.
    """

    def __init__(self, datastore: Datastore) -> None:
        super().__init__()
        self._datastore = datastore
        self._bridge = _AsyncLoopBridge()

    def get(self, key: Key | str) -> bytes:
        return self._bridge.run(self._datastore.get(key))

    def has(self, key: Key | str) -> bool:
        return self._bridge.run(self._datastore.has(key))

    def get_size(self, key: Key | str) -> int:
        return self._bridge.run(self._datastore.get_size(key))

    def query(self, query: Query) -> Results:
        return self._bridge.run(self._datastore.query(query))

    def put(self, key: Key | str, value: bytes) -> None:
        self._bridge.run(self._datastore.put(key, value))

    def delete(self, key: Key | str) -> None:
        self._bridge.run(self._datastore.delete(key))

    def sync(self, prefix: Key | str) -> None:
        self._bridge.run(self._datastore.sync(prefix))

    def batch(self) -> BlockingBatch:
        return BlockingBatch(self._bridge.run(self._datastore.batch()), self._bridge)

    def close(self) -> None:
        """Close the wrapped datastore, then stop the loop thread."""
        try:
            self._bridge.run(self._datastore.close())
        finally:
            self._bridge.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()
