"""Datastore exceptions."""

from __future__ import annotations


class DatastoreError(Exception):
    """Base exception for kv-datastore."""


class NotFoundError(DatastoreError):
    """Key not found in the datastore."""

    def __init__(self, key: str) -> None:
        super().__init__(f"key not found: {key}")
        self.key = key


class BackendUnavailableError(DatastoreError):
    """The backing store could not be reached or rejected a command."""


class BatchCommitError(DatastoreError):
    """One or more queued batch operations failed during commit.

    Only aggregate counts are reported. ``failed`` is ``None`` when the grouped
    request itself failed and no per-command results came back.
    """

    def __init__(self, msg: str, *, failed: int | None, total: int) -> None:
        super().__init__(msg)
        self.failed = failed
        self.total = total


class BatchCommittedError(DatastoreError):
    """Batch was used after commit."""
