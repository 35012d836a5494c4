"""Minimal example for the blocking facade over the in-memory datastore."""

from kv_datastore.blocking import BlockingDatastore
from kv_datastore.datastores.in_memory import InMemoryDatastore
from kv_datastore.query import Query


def main() -> None:
    """Run a basic put/query flow without an event loop."""
    with BlockingDatastore(InMemoryDatastore()) as datastore:
        datastore.put("/user/alice", b'{"age": 30}')
        datastore.put("/user/bob", b'{"age": 42}')
        print("users:", datastore.query(Query(prefix="/user/", keys_only=True)).keys())


if __name__ == "__main__":
    main()
