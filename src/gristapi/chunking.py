"""Splitting of record lists into request-sized batches.

Inserts only need to be bounded in size. Updates additionally need every
batch to share one exact column set: on the wire a column that is present
gets written for every row of the call, so mixing records with different
columns would overwrite fields with None.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Sequence
from typing import TypeVar

from gristapi.codec import to_table_data
from gristapi.exceptions import InvalidRecordError
from gristapi.types import Record, TableData

T = TypeVar("T")

DEFAULT_CHUNK_SIZE = 500


def chunk(items: Sequence[T], size: float = DEFAULT_CHUNK_SIZE) -> Iterator[list[T]]:
    """Yield consecutive slices of items, each at most size long.

    A size of math.inf yields the whole (non-empty) input as one chunk.
    """
    if size < 1:
        raise ValueError(f"chunk size must be positive, got {size}")
    if math.isinf(size):
        if items:
            yield list(items)
        return
    step = int(size)
    for start in range(0, len(items), step):
        yield list(items[start : start + step])


def chunk_for_insert(
    records: Sequence[Record], chunk_size: float = DEFAULT_CHUNK_SIZE
) -> list[TableData]:
    """Split records for insertion, one table data object per call."""
    return [to_table_data(recs) for recs in chunk(records, chunk_size)]


def has_valid_row_id(record: Record) -> bool:
    """Check that a record carries a usable numeric row id."""
    row_id = record.get("id")
    if not isinstance(row_id, (int, float)) or isinstance(row_id, bool):
        return False
    return bool(row_id) and math.isfinite(row_id)


def group_by_columns(records: Sequence[Record]) -> list[list[Record]]:
    """Partition records by their exact set of columns.

    Groups come out in order of the first record having each column set;
    records keep their relative order within a group.
    """
    groups: dict[tuple[str, ...], list[Record]] = {}
    for rec in records:
        groups.setdefault(tuple(sorted(rec)), []).append(rec)
    return list(groups.values())


def group_for_update(
    records: Sequence[Record], chunk_size: float = DEFAULT_CHUNK_SIZE
) -> list[TableData]:
    """Split records for updating, one table data object per call.

    All chunks of the first column-set group come first, then all chunks of
    the second group, and so on.

    Raises:
        InvalidRecordError: If any record lacks a numeric "id". Nothing is
            returned in that case, so no call gets made.
    """
    for rec in records:
        if not has_valid_row_id(rec):
            raise InvalidRecordError(rec)

    call_data: list[TableData] = []
    for group in group_by_columns(records):
        call_data.extend(to_table_data(recs) for recs in chunk(group, chunk_size))
    return call_data
