"""Durable holder for the session's credential pair.

The pair lives under two string keys of a key-value storage backend. Both keys
are always written in a single `save`, which is the unit of atomicity.
"""
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Protocol

from panel_client.logging_conf import get_logger
from panel_client.types import Session

__all__ = [
    "ACCESS_TOKEN_KEY",
    "REFRESH_TOKEN_KEY",
    "Storage",
    "MemoryStorage",
    "FileStorage",
    "TokenStore",
]

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"

logger = get_logger("panel_client.store")


class Storage(Protocol):
    def load(self) -> dict[str, str]: ...

    def save(self, entries: dict[str, str]) -> None: ...


class MemoryStorage:
    """Process-local storage; lost when the process exits."""

    def __init__(self, entries: dict[str, str] | None = None) -> None:
        self._entries = dict(entries or {})

    def load(self) -> dict[str, str]:
        return dict(self._entries)

    def save(self, entries: dict[str, str]) -> None:
        self._entries = dict(entries)


class FileStorage:
    """JSON file storage that survives restarts.

    - Writes go to a temp file in the same directory, then `os.replace`
    - A missing file is an empty store
    - A corrupt file is also an empty store (logged); it is overwritten on next save
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(
                "store.corrupt", extra={"event": "store_corrupt", "path": str(self.path)}
            )
            return {}
        if not isinstance(data, dict):
            logger.warning(
                "store.corrupt", extra={"event": "store_corrupt", "path": str(self.path)}
            )
            return {}
        return {k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)}

    def save(self, entries: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".session-", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(entries, fh)
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise


class TokenStore:
    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def read(self) -> Session:
        entries = self._storage.load()
        return Session(
            access_token=entries.get(ACCESS_TOKEN_KEY) or None,
            refresh_token=entries.get(REFRESH_TOKEN_KEY) or None,
        )

    def write(self, session: Session) -> None:
        """Replace both tokens at once. A half-populated session is rejected."""
        if not session.access_token or not session.refresh_token:
            raise ValueError("both access_token and refresh_token are required")
        entries = self._storage.load()
        entries[ACCESS_TOKEN_KEY] = session.access_token
        entries[REFRESH_TOKEN_KEY] = session.refresh_token
        self._storage.save(entries)

    def clear(self) -> None:
        entries = self._storage.load()
        entries.pop(ACCESS_TOKEN_KEY, None)
        entries.pop(REFRESH_TOKEN_KEY, None)
        self._storage.save(entries)
