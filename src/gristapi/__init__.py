"""gristapi - async client for reading, writing and syncing Grist tables."""

__version__ = "0.1.0"

from gristapi.client import GristDocAPI
from gristapi.codec import to_records, to_table_data
from gristapi.config import GristCallConfig, parse_doc_url
from gristapi.credentials import get_api_key
from gristapi.exceptions import (
    AuthenticationError,
    CredentialNotFoundError,
    GristAPIError,
    InvalidRecordError,
    MalformedResponseError,
    NotFoundError,
    PreconditionError,
    RemoteError,
    TransportError,
)
from gristapi.mock import MockGristDoc
from gristapi.sync import SyncPlan, SyncResult, plan_sync
from gristapi.transport import HttpxTransport, Transport
from gristapi.types import CellValue, FilterSpec, Record, TableData

__all__ = [
    # Client
    "GristDocAPI",
    "GristCallConfig",
    "SyncPlan",
    "SyncResult",
    "plan_sync",
    "parse_doc_url",
    "get_api_key",
    # Transport
    "Transport",
    "HttpxTransport",
    "MockGristDoc",
    # Data
    "CellValue",
    "FilterSpec",
    "Record",
    "TableData",
    "to_records",
    "to_table_data",
    # Exceptions
    "GristAPIError",
    "PreconditionError",
    "InvalidRecordError",
    "MalformedResponseError",
    "CredentialNotFoundError",
    "TransportError",
    "RemoteError",
    "AuthenticationError",
    "NotFoundError",
    "__version__",
]
