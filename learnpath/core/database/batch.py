"""Batch execution helpers.

Cassandra has no multi-partition transactions. Mutations that must land
together are grouped into one batch:

- LOGGED batches are all-or-nothing across partitions.
- Conditional batches (containing ``IF`` clauses) must target a single
  partition of a single table; the result carries ``was_applied``.
"""

from collections.abc import Sequence
from typing import Any

from cassandra.query import BatchStatement, BatchType


# (prepared statement, bind parameters)
BatchEntry = tuple[Any, Sequence[Any]]


def build_batch(
    entries: Sequence[BatchEntry],
    batch_type: BatchType = BatchType.LOGGED,
) -> BatchStatement:
    """Build a batch from prepared statements and their parameters."""
    batch = BatchStatement(batch_type=batch_type)
    for statement, params in entries:
        batch.add(statement, params)
    return batch


async def execute_batch(
    session: Any,
    entries: Sequence[BatchEntry],
    batch_type: BatchType = BatchType.LOGGED,
) -> Any:
    """Execute entries as one batch and return the result set.

    Raises:
        ValueError: If entries is empty
    """
    if not entries:
        msg = "Cannot execute an empty batch"
        raise ValueError(msg)
    return await session.aexecute(build_batch(entries, batch_type))
