"""Custom exceptions for gristapi."""

from __future__ import annotations

from typing import Any


class GristAPIError(Exception):
    """Base exception for all gristapi errors."""

    pass


class PreconditionError(GristAPIError, ValueError):
    """Raised when arguments violate a structural contract.

    Always raised before any network call is made.
    """

    pass


class InvalidRecordError(PreconditionError):
    """Raised when a record lacks the numeric 'id' an update requires."""

    def __init__(self, record: dict[str, Any]) -> None:
        self.record = record
        super().__init__("update_records requires numeric 'id' attribute in each record")


class MalformedResponseError(GristAPIError):
    """Raised when the server returns data not matching the expected shape."""

    pass


class CredentialNotFoundError(GristAPIError):
    """Raised when no API key is given or found."""

    pass


class TransportError(GristAPIError):
    """Base exception for transport-related errors."""

    pass


class RemoteError(TransportError):
    """Raised when the server responds with a non-success status."""

    def __init__(self, message: str, status_code: int, body: Any = None) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class AuthenticationError(RemoteError):
    """Raised when authentication fails (401/403)."""

    pass


class NotFoundError(RemoteError):
    """Raised when a document or table is not found (404)."""

    pass
