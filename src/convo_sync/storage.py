"""
Credential store — keeps the serialized session across process restarts.

The backing key-value store is injected so tests and embedders can swap
the default JSON file for their own storage.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Protocol, Union

from pydantic import ValidationError

from convo_sync.errors import StorageError
from convo_sync.models.session import Session

logger = logging.getLogger(__name__)

SESSION_STORAGE_KEY = "convo_session"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileStore:
    """All keys live in one JSON object on disk."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        try:
            data = json.loads(self._path.read_bytes().decode("utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.debug("Ignoring unreadable store file %s: %s", self._path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, indent=2))
        except OSError as e:
            raise StorageError(f"Could not write {self._path}: {e}")

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)


class CredentialStore:
    def __init__(self, kv: KeyValueStore, key: str = SESSION_STORAGE_KEY):
        self._kv = kv
        self._key = key

    def read(self) -> Optional[Session]:
        """Decode the stored record. Raises StorageError when it is corrupted."""
        raw = self._kv.get(self._key)
        if raw is None:
            return None
        try:
            return Session.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"Stored session is unreadable: {e.error_count()} validation error(s)")

    def load(self) -> Optional[Session]:
        try:
            return self.read()
        except StorageError as e:
            logger.debug("Ignoring persisted session: %s", e)
            return None

    def save(self, session: Session) -> None:
        self._kv.set(self._key, session.to_storage())

    def clear(self) -> None:
        self._kv.delete(self._key)
