"""Database connection module for learnpath."""

from learnpath.core.database.async_cassandra import (
    AsyncCassandraConnection,
    get_async_cassandra_session,
    init_async_cassandra,
    shutdown_async_cassandra,
)
from learnpath.core.database.batch import build_batch, execute_batch


__all__ = [
    "AsyncCassandraConnection",
    "build_batch",
    "execute_batch",
    "get_async_cassandra_session",
    "init_async_cassandra",
    "shutdown_async_cassandra",
]
