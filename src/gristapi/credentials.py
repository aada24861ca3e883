"""API key resolution for Grist.

Precedence order:
1. api_key passed to the client (an empty string means "no key")
2. GRIST_API_KEY environment variable
3. ~/.grist-api-key file

The key is resolved lazily, on the first call that actually goes out, since
reading it may touch the filesystem.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import os
from pathlib import Path

from gristapi.exceptions import CredentialNotFoundError

logger = logging.getLogger(__name__)

API_KEY_ENV_VAR = "GRIST_API_KEY"
API_KEY_FILENAME = ".grist-api-key"


def default_key_path() -> Path:
    """Return the per-user API key file path."""
    return Path.home() / API_KEY_FILENAME


def get_api_key(key_path: Path | None = None) -> str:
    """Find the Grist API key in the environment or the per-user key file.

    Args:
        key_path: File to read instead of ~/.grist-api-key.

    Returns:
        The API key, stripped of surrounding whitespace when read from file.

    Raises:
        CredentialNotFoundError: If neither source provides a key.
    """
    env_key = os.environ.get(API_KEY_ENV_VAR)
    if env_key is not None:
        return env_key

    path = key_path or default_key_path()
    if path.exists():
        return path.read_text(encoding="utf-8").strip()

    raise CredentialNotFoundError(
        f"Grist API key not given, or found in {API_KEY_ENV_VAR} env, or in {path}"
    )


class ApiKeyState(enum.Enum):
    """Resolution state of a client's API key."""

    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    KNOWN_ABSENT = "known_absent"


class ApiKey:
    """One-shot holder for the API key used by a client.

    Starts RESOLVED when a key (even an empty one) is given explicitly,
    otherwise UNRESOLVED. The first resolve() moves it to RESOLVED or
    KNOWN_ABSENT and it never changes after that.
    """

    def __init__(self, explicit: str | None = None, key_path: Path | None = None) -> None:
        self._key_path = key_path
        self._lock = asyncio.Lock()
        self._value = explicit or ""
        self._missing_message: str | None = None
        if explicit is None:
            self._state = ApiKeyState.UNRESOLVED
        elif explicit:
            self._state = ApiKeyState.RESOLVED
        else:
            self._state = ApiKeyState.KNOWN_ABSENT

    @property
    def state(self) -> ApiKeyState:
        return self._state

    @property
    def value(self) -> str:
        """The key, or '' when absent or not yet resolved."""
        return self._value

    @property
    def missing_message(self) -> str | None:
        """Why resolution failed, if it did. None for an explicitly empty key."""
        return self._missing_message

    async def resolve(self) -> str:
        """Resolve the key on first use and return it ('' if there is none)."""
        if self._state is not ApiKeyState.UNRESOLVED:
            return self._value
        async with self._lock:
            if self._state is ApiKeyState.UNRESOLVED:
                try:
                    self._value = get_api_key(self._key_path)
                    self._state = ApiKeyState.RESOLVED
                except CredentialNotFoundError as e:
                    # Don't try to fetch it any more; let the server decide.
                    logger.debug("Proceeding without API key: %s", e)
                    self._missing_message = str(e)
                    self._state = ApiKeyState.KNOWN_ABSENT
        return self._value

    def auth_headers(self) -> dict[str, str]:
        """Authorization header for the resolved key, or {} without one."""
        if self._value:
            return {"Authorization": f"Bearer {self._value}"}
        return {}
