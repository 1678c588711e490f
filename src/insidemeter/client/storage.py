"""Key-value stores used by the client runtime.

``JsonFileStore`` is the durable store (survives restarts, like the native
preferences store); ``MemoryStore`` is the less durable fallback and the
stand-in for browser local storage.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)

APP_VERSION_KEY = "appVersion"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryStore:
    """Process-local store; contents are lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()


class JsonFileStore:
    """Durable store backed by a single JSON object on disk.

    Every write replaces the file atomically, so a crash never leaves a half-written
    file behind. Reads go to disk each time; there is no in-process cache.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Store file {self.path} does not contain a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def _dump(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


def ensure_storage_version(store: KeyValueStore, version: str) -> bool:
    """Wipe the store when it was written by a different app version.

    Returns True if the store was cleared.
    """
    stored = store.get(APP_VERSION_KEY)
    if stored == version:
        return False
    store.clear()
    store.set(APP_VERSION_KEY, version)
    logger.info("local_storage_reset", previous_version=stored, version=version)
    return True
