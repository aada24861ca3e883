"""Diff engine for reconciling records with an existing Grist table.

plan_sync() matches new records against fetched rows by key columns and
works out which rows need updating and which records are new. It makes no
calls itself; GristDocAPI.sync_table() fetches the rows and applies the plan.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from gristapi.exceptions import PreconditionError
from gristapi.types import CellValue, FilterSpec, Record

logger = logging.getLogger(__name__)

KeyTuple = tuple[tuple[str, Any], ...]


@dataclass
class SyncPlan:
    """Changes needed to bring a table in line with new records."""

    updates: list[Record] = field(default_factory=list)
    additions: list[Record] = field(default_factory=list)
    existing_count: int = 0
    data_count: int = 0
    filtered_out: int = 0

    @property
    def has_changes(self) -> bool:
        return bool(self.updates or self.additions)


@dataclass
class SyncResult:
    """Result of a sync_table call."""

    table_name: str
    existing_count: int
    data_count: int
    filtered_out: int
    updated: int
    added: int
    added_row_ids: list[int] = field(default_factory=list)


def check_filter_columns(key_col_ids: Sequence[str], filters: FilterSpec | None) -> None:
    """Raise PreconditionError unless every filter column is a key column."""
    if filters and not all(col_id in key_col_ids for col_id in filters):
        missing = sorted(col_id for col_id in filters if col_id not in key_col_ids)
        raise PreconditionError(
            f"key columns must be a superset of filter columns (missing: {', '.join(missing)})"
        )


def _is_compound(value: object) -> bool:
    return isinstance(value, (list, tuple, dict))


def _type_tag(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "text"
    return "compound"


def cell_key(value: CellValue) -> tuple[str, Any]:
    """Hashable, type-tagged form of a cell value.

    Values of different kinds never compare equal, so 1, "1" and True are
    three distinct keys, while 1 and 1.0 are the same number.
    """
    tag = _type_tag(value)
    if tag == "compound":
        return tag, json.dumps(value, sort_keys=True, default=str)
    return tag, value


def make_key(record: Record, key_col_ids: Sequence[str]) -> KeyTuple:
    """Project a record onto the key columns. A missing column acts as None."""
    return tuple(cell_key(record.get(col_id)) for col_id in key_col_ids)


def cell_equal(a: CellValue, b: CellValue) -> bool:
    """Strict equality of two cell values.

    Compound values are never considered equal, even to themselves.
    """
    if _is_compound(a) or _is_compound(b):
        return False
    return _type_tag(a) == _type_tag(b) and a == b


def filter_matches(record: Record, filters: FilterSpec) -> bool:
    """Check if a record matches a set of filters.

    A record lacking a filtered column never matches it.
    """
    for col_id, allowed in filters.items():
        if col_id not in record:
            return False
        value = record[col_id]
        if not any(cell_equal(value, option) for option in allowed):
            return False
    return True


def changed_columns(new_rec: Record, old_rec: Record) -> list[str]:
    """Columns of new_rec whose value differs from old_rec's."""
    return [
        col_id
        for col_id, value in new_rec.items()
        if col_id not in old_rec or not cell_equal(value, old_rec[col_id])
    ]


def plan_sync(
    existing: Iterable[Record],
    records: Sequence[Record],
    key_col_ids: Sequence[str],
    filters: FilterSpec | None = None,
    table_name: str = "",
) -> SyncPlan:
    """Compute the updates and additions that sync records into a table.

    Args:
        existing: Rows currently in the table (already restricted to filters).
        records: New data, one dict per row, keyed by column id.
        key_col_ids: Columns identifying a row; must be present in records.
        filters: If given, records not matching them are ignored. All filter
            columns must be among key_col_ids.
        table_name: Used in log messages only.

    Returns:
        SyncPlan with updates (changed columns plus "id") and additions (full
        records), in input order.

    Raises:
        PreconditionError: If filters uses a column not in key_col_ids.
    """
    check_filter_columns(key_col_ids, filters)

    # Maps unique keys to existing rows; a repeated key keeps the last row.
    grist_rows: dict[KeyTuple, Record] = {}
    for old_rec in existing:
        key = make_key(old_rec, key_col_ids)
        if key in grist_rows:
            logger.debug("sync_table %s: duplicate key %s in existing rows", table_name, key)
        grist_rows[key] = old_rec

    plan = SyncPlan(existing_count=len(grist_rows))
    for new_rec in records:
        if filters and not filter_matches(new_rec, filters):
            plan.filtered_out += 1
            continue
        plan.data_count += 1

        key = make_key(new_rec, key_col_ids)
        old_rec = grist_rows.get(key)
        if old_rec is None:
            logger.debug("sync_table %s: %s not in grist", table_name, key)
            plan.additions.append(new_rec)
            continue

        changed = changed_columns(new_rec, old_rec)
        if changed:
            logger.debug(
                "sync_table %s: #%s %s needs updates %s",
                table_name,
                old_rec.get("id"),
                key,
                [(col_id, old_rec.get(col_id), new_rec[col_id]) for col_id in changed],
            )
            update: Record = {col_id: new_rec[col_id] for col_id in changed}
            update["id"] = old_rec["id"]
            plan.updates.append(update)

    return plan
