"""Type aliases for Grist cell values, records and table data."""

from __future__ import annotations

from typing import Any, TypeAlias

# Value stored in a single cell. Compound values are lists led by a type tag,
# e.g. ["d", 1561507200] for a date or ["L", 1, 2] for a reference list.
CellValue: TypeAlias = int | float | str | bool | None | list[Any]

# One row, mapping column id to cell value. "id" holds the numeric row id.
Record: TypeAlias = dict[str, CellValue]

# Column-oriented form used on the wire: column id -> parallel list of values.
TableData: TypeAlias = dict[str, list[CellValue]]

# Column id -> values to include. The lists need not be parallel.
FilterSpec: TypeAlias = dict[str, list[CellValue]]
