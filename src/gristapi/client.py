"""GristDocAPI - main interface for reading and writing a Grist document."""

from __future__ import annotations

import json
import logging
import urllib.parse
from collections.abc import Sequence
from pathlib import Path
from types import TracebackType
from typing import Any, BinaryIO, TypeAlias

from gristapi.chunking import chunk, chunk_for_insert, group_for_update
from gristapi.codec import describe_table_data, to_records
from gristapi.config import GristCallConfig, parse_doc_url
from gristapi.credentials import ApiKey
from gristapi.exceptions import AuthenticationError
from gristapi.sync import SyncResult, check_filter_columns, plan_sync
from gristapi.transport import FileSpec, HttpxTransport, Transport
from gristapi.types import FilterSpec, Record

logger = logging.getLogger(__name__)

# File to upload: a path, or (filename, bytes or binary file, content type).
Attachment: TypeAlias = str | Path | tuple[str, bytes | BinaryIO, str]


class GristDocAPI:
    """Client for the tables of one Grist document.

    Calls are made one at a time, in order, and each is awaited before the
    next is sent. A failing call stops the sequence; calls that already
    succeeded are not undone.

    Example:
        async with GristDocAPI("https://docs.getgrist.com/doc/abc123") as api:
            rows = await api.fetch_table("Items", {"Kind": ["food"]})
            await api.sync_table("Items", new_rows, ["Name"])
    """

    def __init__(
        self,
        doc_url_or_id: str,
        config: GristCallConfig | None = None,
        *,
        transport: Transport | None = None,
        key_path: Path | None = None,
        **options: Any,
    ) -> None:
        """Create a client for a document.

        Args:
            doc_url_or_id: A doc URL, or just the doc id (the part of the URL
                after "/doc/"). A URL overrides the server option.
            config: Options; alternatively pass them as keyword arguments
                (api_key, server, dryrun, chunk_size).
            transport: Transport to use. Defaults to a new HttpxTransport.
            key_path: API key file to use instead of ~/.grist-api-key.
        """
        if config is None:
            config = GristCallConfig(**options)
        elif options:
            # Keyword options override the given config.
            config = GristCallConfig(**{**config.model_dump(), **options})

        server, doc_id = parse_doc_url(doc_url_or_id)
        self._config = config
        self._server = server or config.server
        self._doc_id = doc_id
        self._api_key = ApiKey(config.api_key, key_path)
        self._transport = transport or HttpxTransport()

    @classmethod
    async def create(cls, doc_url_or_id: str, **kwargs: Any) -> GristDocAPI:
        """Create a client and resolve its API key right away."""
        api = cls(doc_url_or_id, **kwargs)
        await api._api_key.resolve()
        return api

    @property
    def doc_id(self) -> str:
        """The doc id identifying the document in API calls."""
        return self._doc_id

    @property
    def server(self) -> str:
        return self._server

    @property
    def config(self) -> GristCallConfig:
        return self._config

    async def fetch_table(self, table_name: str, filters: FilterSpec | None = None) -> list[Record]:
        """Fetch all data in a table, as a list of records keyed by column id.

        Args:
            table_name: The table to fetch.
            filters: If given, maps column ids to lists of values, to fetch
                only the records that match.

        Raises:
            MalformedResponseError: If the response lacks an "id" column.
        """
        query = ""
        if filters:
            encoded = json.dumps(filters, separators=(",", ":"))
            query = "?filter=" + urllib.parse.quote(encoded, safe="")
        data = await self.doc_call(f"tables/{table_name}/data{query}", method="GET")
        records = to_records(data, table_name)
        logger.debug("fetch_table %s returned %s rows", table_name, len(records))
        return records

    async def add_records(self, table_name: str, records: Sequence[Record]) -> list[int]:
        """Add new records to a table, returning the list of added row ids.

        Records may have different sets of columns; missing values are sent
        as None.
        """
        if not records:
            return []

        results: list[int] = []
        for data in chunk_for_insert(records, self._config.chunk_size):
            logger.debug("add_records %s %s", table_name, describe_table_data(data))
            resp = await self.doc_call(f"tables/{table_name}/data", data, "POST")
            results.extend(resp or [])
        return results

    async def delete_records(self, table_name: str, record_ids: Sequence[int]) -> None:
        """Delete records from a table, given their row ids."""
        # There is no data endpoint for deleting; the "apply" endpoint does it.
        for rec_ids in chunk(record_ids, self._config.chunk_size):
            logger.debug("delete_records %s %s records", table_name, len(rec_ids))
            data = [["BulkRemoveRecord", table_name, rec_ids]]
            await self.doc_call("apply", data, "POST")

    async def update_records(self, table_name: str, records: Sequence[Record]) -> None:
        """Update existing records in a table.

        Each record must contain the key "id" with the row id to update.
        Only the columns present in a record are changed. Records that don't
        all have the same set of columns are sent in separate calls.

        Raises:
            InvalidRecordError: If a record has no numeric "id". Raised before
                any call is made.
        """
        for data in group_for_update(records, self._config.chunk_size):
            logger.debug("update_records %s %s", table_name, describe_table_data(data))
            await self.doc_call(f"tables/{table_name}/data", data, "PATCH")

    async def sync_table(
        self,
        table_name: str,
        records: Sequence[Record],
        key_col_ids: Sequence[str],
        *,
        filters: FilterSpec | None = None,
    ) -> SyncResult:
        """Update a table with new data, updating changed rows and adding new ones.

        Rows are matched on the given key columns, which must be present in
        the records. Rows are never removed.

        Args:
            table_name: The table to sync.
            records: New data, one dict per row.
            key_col_ids: Primary-key columns used to match rows.
            filters: If given, maps column ids (which must be among
                key_col_ids) to allowed values. Only existing rows matching
                the filters are candidates for updating, and new records not
                matching them are ignored.

        Returns:
            SyncResult with counts and the ids of added rows.

        Raises:
            PreconditionError: If filters uses a column not in key_col_ids.
        """
        check_filter_columns(key_col_ids, filters)

        existing = await self.fetch_table(table_name, filters)
        plan = plan_sync(existing, records, key_col_ids, filters, table_name)

        logger.debug(
            "sync_table %s (%s) with %s records (%s filtered out): %s updates, %s new",
            table_name,
            plan.existing_count,
            plan.data_count,
            plan.filtered_out,
            len(plan.updates),
            len(plan.additions),
        )
        # Without transactions, an error here can leave a partial sync behind.
        await self.update_records(table_name, plan.updates)
        added_row_ids = await self.add_records(table_name, plan.additions)

        return SyncResult(
            table_name=table_name,
            existing_count=plan.existing_count,
            data_count=plan.data_count,
            filtered_out=plan.filtered_out,
            updated=len(plan.updates),
            added=len(plan.additions),
            added_row_ids=added_row_ids,
        )

    async def attach(self, files: Sequence[Attachment]) -> list[int]:
        """Upload files as attachments, returning their attachment ids."""
        form: list[tuple[str, FileSpec]] = []
        for item in files:
            if isinstance(item, (str, Path)):
                path = Path(item)
                form.append(("upload", (path.name, path.read_bytes(), "application/octet-stream")))
            else:
                form.append(("upload", item))
        result = await self.doc_call("attach", method="POST", files=form)
        return result or []

    async def doc_call(
        self,
        doc_rel_url: str,
        data: Any = None,
        method: str | None = None,
        *,
        files: list[tuple[str, FileSpec]] | None = None,
    ) -> Any:
        """Make a REST call relative to this document's API URL."""
        return await self.call(f"/api/docs/{self._doc_id}/{doc_rel_url}", data, method, files=files)

    async def call(
        self,
        url: str,
        data: Any = None,
        method: str | None = None,
        *,
        files: list[tuple[str, FileSpec]] | None = None,
    ) -> Any:
        """Make a REST call to a server-relative URL.

        The method defaults to POST when there is a body, GET otherwise. In
        dryrun mode, anything but GET is logged and not sent, returning None.

        Raises:
            RemoteError: If the server responds with an error status.
            TransportError: On network failure.
        """
        full_url = f"{self._server}{url}"
        method = (method or ("POST" if data is not None or files else "GET")).upper()
        if self._config.dryrun and method != "GET":
            logger.info("DRYRUN NOT sending %s request to %s", method, full_url)
            return None

        await self._api_key.resolve()
        logger.debug("Sending %s request to %s", method, full_url)
        try:
            return await self._transport.request(
                method,
                full_url,
                json=data,
                files=files,
                headers=self._api_key.auth_headers(),
            )
        except AuthenticationError as e:
            if e.status_code == 403 and self._api_key.missing_message:
                raise AuthenticationError(
                    f"{e} / {self._api_key.missing_message}", e.status_code, e.body
                ) from e
            raise

    async def close(self) -> None:
        """Close the underlying transport."""
        await self._transport.close()

    async def __aenter__(self) -> GristDocAPI:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
