"""Datastore contracts and implementations."""

from .in_memory import InMemoryBatch, InMemoryDatastore
from .protocol import Batch, Datastore, TTLDatastore
from .redis import RedisBatch, RedisDatastore


__all__ = [
    "Batch",
    "Datastore",
    "InMemoryBatch",
    "InMemoryDatastore",
    "RedisBatch",
    "RedisDatastore",
    "TTLDatastore",
]
