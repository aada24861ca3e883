"""In-memory Grist document speaking the REST protocol used by GristDocAPI.

MockGristDoc is a Transport, so it can be handed to GristDocAPI in place of
HttpxTransport. It keeps tables as lists of rows, records every request for
later inspection, and can be told to fail a given request to exercise
partial-failure behavior.
"""

from __future__ import annotations

import copy
import json
import re
import urllib.parse
from dataclasses import dataclass, field
from typing import Any

from gristapi.codec import to_table_data
from gristapi.exceptions import NotFoundError, RemoteError
from gristapi.sync import filter_matches
from gristapi.transport import FileSpec, Transport
from gristapi.types import CellValue, Record

# Matched anywhere in the path, so servers with a prefix like /o/<org> work.
_DOC_PATH_RE = re.compile(r"/api/docs/(?P<doc_id>[^/]+)/(?P<rest>.*)$")
_TABLE_DATA_RE = re.compile(r"^tables/(?P<table>[^/]+)/data$")


@dataclass
class RecordedRequest:
    """A request received by MockGristDoc."""

    method: str
    url: str
    path: str
    query: dict[str, str]
    json: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    files: list[str] = field(default_factory=list)


class MockGristDoc(Transport):
    """Mock implementation of a Grist document's data endpoints.

    Supports:
    - GET tables/{table}/data, with optional ?filter=
    - POST tables/{table}/data (add rows, returns new row ids)
    - PATCH tables/{table}/data (update rows by id)
    - POST apply with BulkRemoveRecord actions
    - POST attach (returns new attachment ids)

    Args:
        tables: Initial data, table name -> list of records. Each record
            may carry an "id"; rows without one are numbered automatically.
        doc_id: If set, requests for any other doc id get a 404.
        fail_at: Index (0-based, over all requests) of a request to reject
            with a 500 error instead of handling.
    """

    def __init__(
        self,
        tables: dict[str, list[Record]] | None = None,
        doc_id: str | None = None,
        fail_at: int | None = None,
    ) -> None:
        self.doc_id = doc_id
        self.fail_at = fail_at
        self.requests: list[RecordedRequest] = []
        self.attachments: list[str] = []
        self._tables: dict[str, dict[int, Record]] = {}
        self._columns: dict[str, list[str]] = {}
        for name, rows in (tables or {}).items():
            self.add_table(name, rows)

    def add_table(self, name: str, rows: list[Record]) -> None:
        """Create (or replace) a table with the given rows."""
        columns: list[str] = []
        for rec in rows:
            columns.extend(col for col in rec if col != "id" and col not in columns)
        self._columns[name] = columns
        self._tables[name] = {}
        for rec in rows:
            self._insert(name, rec)

    def rows(self, table_name: str) -> list[Record]:
        """Current rows of a table, ordered by id, including the id column."""
        table = self._tables[table_name]
        return [copy.deepcopy(table[row_id]) for row_id in sorted(table)]

    @property
    def mutations(self) -> list[RecordedRequest]:
        """Requests other than GET."""
        return [r for r in self.requests if r.method != "GET"]

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        files: list[tuple[str, FileSpec]] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        parts = urllib.parse.urlsplit(url)
        query = dict(urllib.parse.parse_qsl(parts.query))
        method = method.upper()
        recorded = RecordedRequest(
            method=method,
            url=url,
            path=parts.path,
            query=query,
            json=copy.deepcopy(json),
            headers=dict(headers or {}),
            files=[name for _, (name, _, _) in files] if files else [],
        )
        index = len(self.requests)
        self.requests.append(recorded)

        if self.fail_at is not None and index == self.fail_at:
            raise _error(500, method, url, "simulated failure")

        match = _DOC_PATH_RE.search(parts.path)
        if not match or (self.doc_id is not None and match["doc_id"] != self.doc_id):
            raise _error(404, method, url, "document not found")
        return self._dispatch(method, url, match["rest"], query, json, recorded.files)

    def _dispatch(
        self,
        method: str,
        url: str,
        rest: str,
        query: dict[str, str],
        body: Any,
        files: list[str],
    ) -> Any:
        table_match = _TABLE_DATA_RE.match(rest)
        if table_match:
            table_name = table_match["table"]
            if table_name not in self._tables:
                raise _error(404, method, url, f"Table not found \"{table_name}\"")
            if method == "GET":
                return self._fetch(table_name, query.get("filter"))
            if method == "POST":
                return self._add(table_name, body)
            if method == "PATCH":
                self._update(method, url, table_name, body)
                return None
        elif rest == "apply" and method == "POST":
            self._apply(method, url, body)
            return None
        elif rest == "attach" and method == "POST":
            start = len(self.attachments) + 1
            self.attachments.extend(files)
            return list(range(start, start + len(files)))
        raise _error(404, method, url, f"no handler for {method} {rest}")

    def _fetch(self, table_name: str, filter_param: str | None) -> dict[str, list[CellValue]]:
        filters: dict[str, list[CellValue]] = json.loads(filter_param) if filter_param else {}
        columns = self._columns[table_name]
        all_rows = [
            {"id": rec["id"], **{col: rec.get(col) for col in columns}}
            for rec in self.rows(table_name)
        ]
        rows = [rec for rec in all_rows if filter_matches(rec, filters)]
        if not rows:
            return {"id": [], **{col: [] for col in columns}}
        return to_table_data(rows)

    def _add(self, table_name: str, body: dict[str, list[CellValue]]) -> list[int]:
        return [self._insert(table_name, rec) for rec in _body_records(body)]

    def _update(
        self, method: str, url: str, table_name: str, body: dict[str, list[CellValue]]
    ) -> None:
        table = self._tables[table_name]
        records = _body_records(body)
        for rec in records:
            if rec.get("id") not in table:
                raise _error(400, method, url, f"Invalid row id {rec.get('id')}")
        for rec in records:
            table[rec["id"]].update(  # type: ignore[index]
                {col: value for col, value in rec.items() if col != "id"}
            )

    def _apply(self, method: str, url: str, actions: list[list[Any]]) -> None:
        for action in actions:
            if action[0] != "BulkRemoveRecord":
                raise _error(400, method, url, f"Unsupported action {action[0]}")
            _, table_name, row_ids = action
            for row_id in row_ids:
                self._tables[table_name].pop(row_id, None)

    def _insert(self, table_name: str, rec: Record) -> int:
        table = self._tables[table_name]
        row_id = int(rec.get("id") or max(table, default=0) + 1)  # type: ignore[arg-type]
        for col in rec:
            if col != "id" and col not in self._columns[table_name]:
                self._columns[table_name].append(col)
        table[row_id] = {**rec, "id": row_id}
        return row_id


def _body_records(body: dict[str, list[CellValue]]) -> list[Record]:
    columns = list(body)
    num_rows = len(body[columns[0]]) if columns else 0
    return [{col: body[col][i] for col in columns} for i in range(num_rows)]


def _error(status: int, method: str, url: str, error: str) -> RemoteError:
    """Build the error HttpxTransport would raise for a Grist error response."""
    message = f"{method} {url} failed with status code {status} / Grist: {error}"
    if status == 404:
        return NotFoundError(message, status, {"error": error})
    return RemoteError(message, status, {"error": error})
