"""Storage - key/value backends for persisted chat state"""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from mermaidq.config import STORAGE_PATH
from mermaidq.observability.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """String-keyed, string-valued store (browser localStorage semantics)."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryStore:
    """Process-local store. Used by tests and the API's default session."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class JsonFileStore:
    """
    All keys in one JSON object on disk.

    Writes go to a temp file first and are swapped in with os.replace, so a
    crash mid-write leaves the previous file intact.
    """

    def __init__(self, path: str | Path = STORAGE_PATH) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.path} does not hold a JSON object")
        return data

    def _read_for_update(self) -> dict[str, str]:
        """Current contents, or {} when the file is unreadable so the next write replaces it."""
        try:
            return self._read_all()
        except ValueError as e:
            logger.warning("Discarding unreadable storage file %s: %s", self.path, e)
            return {}

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_for_update()
            data[key] = value
            self._write_all(data)

    def delete(self, key: str) -> None:
        with self._lock:
            if not self.path.exists():
                return
            data = self._read_for_update()
            data.pop(key, None)
            self._write_all(data)


__all__ = ["InMemoryStore", "JsonFileStore", "KeyValueStore"]
