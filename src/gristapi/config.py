"""Client options and document URL parsing."""

from __future__ import annotations

import math
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from gristapi.chunking import DEFAULT_CHUNK_SIZE

DEFAULT_SERVER = "https://api.getgrist.com"

# scheme://host[/o/org]/doc/<id>, or scheme://host[/o/org]/<id> for ids of 12+ chars.
_DOC_URL_RE = re.compile(r"^(https?://[^/]+(?:/o/[^/]+)?)/(?:doc/([^/?#]+)|([^/?#]{12,}))")


class GristCallConfig(BaseModel):
    """Options for a GristDocAPI.

    Attributes:
        api_key: The API key, available in Grist from Profile Settings. If
            None, it is taken from GRIST_API_KEY or ~/.grist-api-key on first
            use. An empty string means no key is sent at all (public docs).
        server: Server URL, ignored when the document is given as a URL.
        dryrun: If set, only read calls are sent; changes are logged instead.
        chunk_size: Split large requests into calls of at most this many
            rows. math.inf disables chunking. Grist may reject requests that
            are too large.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_key: str | None = None
    server: str = DEFAULT_SERVER
    dryrun: bool = False
    chunk_size: int | float = DEFAULT_CHUNK_SIZE

    @field_validator("server", mode="before")
    @classmethod
    def _default_server(cls, v: str | None) -> str:
        return v or DEFAULT_SERVER

    @field_validator("chunk_size", mode="before")
    @classmethod
    def _normalize_chunk_size(cls, v: Any) -> int | float:
        if v is not None and (not isinstance(v, (int, float)) or isinstance(v, bool)):
            raise ValueError("chunk_size must be a positive integer or math.inf")
        # 0 and None mean "use the default"
        if not v:
            return DEFAULT_CHUNK_SIZE
        if v < 0 or math.isnan(v):
            raise ValueError("chunk_size must be a positive integer or math.inf")
        if math.isinf(v):
            return v
        if int(v) != v:
            raise ValueError("chunk_size must be a positive integer or math.inf")
        return int(v)


def parse_doc_url(doc_url_or_id: str) -> tuple[str | None, str]:
    """Split a document URL into (server, doc_id).

    Returns (None, doc_url_or_id) when the argument is not a URL, in which
    case it is taken to be the doc id itself.
    """
    match = _DOC_URL_RE.match(doc_url_or_id)
    if not match:
        return None, doc_url_or_id
    return match.group(1), match.group(2) or match.group(3)
