"""Conversion between column-oriented table data and lists of records.

Grist's data endpoints exchange tables column-wise: a JSON object mapping
each column id to a list of values, one per row. The rest of the library
works with records, one dict per row.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from gristapi.exceptions import MalformedResponseError
from gristapi.types import Record, TableData


def to_records(data: dict[str, Any], table_name: str = "") -> list[Record]:
    """Convert column-oriented table data into a list of records.

    Args:
        data: Mapping of column id to a list of values. Must include "id".
        table_name: Used in the error message only.

    Returns:
        One record per row, with columns in the order they appear in data.

    Raises:
        MalformedResponseError: If data is not a mapping, its "id" column
            is missing or not a list, or any column's length differs from it.
    """
    if not isinstance(data, dict) or not isinstance(data.get("id"), list):
        raise MalformedResponseError(
            f"fetch_table {table_name} returned bad response: id column is not an array"
        )
    num_rows = len(data["id"])
    for col_id, values in data.items():
        if not isinstance(values, list) or len(values) != num_rows:
            raise MalformedResponseError(
                f"fetch_table {table_name} returned bad response: column {col_id} "
                f"is not an array of {num_rows} values"
            )
    return [
        {col_id: values[index] for col_id, values in data.items()}
        for index in range(num_rows)
    ]


def to_table_data(records: Sequence[Record]) -> TableData:
    """Convert records into column-oriented table data.

    Columns are the union of all record keys in first-seen order. A record
    lacking a column contributes None for it.
    """
    all_keys: dict[str, None] = {}
    for rec in records:
        for key in rec:
            all_keys.setdefault(key, None)
    return {key: [rec.get(key) for rec in records] for key in all_keys}


def describe_table_data(data: TableData) -> str:
    """Return a short summary like '3 rows, cols (Name, Qty, id)'."""
    keys = list(data)
    num_rows = len(data[keys[0]]) if keys else 0
    return f"{num_rows} rows, cols ({', '.join(sorted(keys))})"
