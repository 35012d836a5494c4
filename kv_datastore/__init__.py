"""kv-datastore - generic async datastore contract backed by Redis."""

from ._version import version as __version__
from .blocking import BlockingBatch, BlockingDatastore
from .datastores import Batch, Datastore, InMemoryDatastore, RedisBatch, RedisDatastore, TTLDatastore
from .exceptions import (
    BackendUnavailableError,
    BatchCommitError,
    BatchCommittedError,
    DatastoreError,
    NotFoundError,
)
from .key import Key
from .query import Entry, Query, Results


__all__ = [
    "BackendUnavailableError",
    "Batch",
    "BatchCommitError",
    "BatchCommittedError",
    "BlockingBatch",
    "BlockingDatastore",
    "Datastore",
    "DatastoreError",
    "Entry",
    "InMemoryDatastore",
    "Key",
    "NotFoundError",
    "Query",
    "RedisBatch",
    "RedisDatastore",
    "Results",
    "TTLDatastore",
    "__version__",
]
