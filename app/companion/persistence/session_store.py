"""
Purpose: Key-value blob storage for transcripts and document analyses.
Why: Reopen persona chats across runs; browse and clear saved histories.

What is inside:
- InMemoryKeyValueStore: dict-backed, optional byte quota (mirrors browser
  storage limits; exceeding it raises StorageQuotaError).
- JsonFileKeyValueStore: one JSON object on disk, replaced atomically on
  every write. Last writer wins, no merge.
- NamespacedStore / PersonaSlot: `store.for_persona(name)` keyed access so
  callers never concatenate storage keys themselves.

Testing:
In-memory: simple state tests.
JSON file: tmp_path fixture; reload from a second instance.
"""

from __future__ import annotations
import json
import logging
import os
import tempfile
from pathlib import Path
from threading import RLock
from typing import Optional

from ..errors import PersistenceError, StorageQuotaError
from ..interfaces import KeyValueStore
from ..models import persona_key

logger = logging.getLogger(__name__)

CHAT_PREFIX = "mindful-companion-chat-"
DOCUMENTS_KEY = "mindful-companion-documents"


class InMemoryKeyValueStore:
    def __init__(self, *, quota_bytes: Optional[int] = None) -> None:
        self._data: dict[str, str] = {}
        self._quota = quota_bytes
        self._lock = RLock()

    def _usage_with(self, key: str, value: str) -> int:
        total = len(key) + len(value)
        for k, v in self._data.items():
            if k != key:
                total += len(k) + len(v)
        return total

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            if self._quota is not None and self._usage_with(key, value) > self._quota:
                raise StorageQuotaError(
                    f"Storing {key!r} would exceed the {self._quota} byte quota"
                )
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def list_keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


class JsonFileKeyValueStore:
    """
    Structure: a single JSON object mapping key -> string value.
    Thread-safe with a coarse RLock; one process, one owner per key.
    """

    def __init__(self, file_path: str | os.PathLike) -> None:
        self._lock = RLock()
        self._path = Path(file_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Could not read {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"{self._path} does not hold a JSON object")
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: dict[str, str]) -> None:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._path.parent), prefix=self._path.name, suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False)
            os.replace(tmp_path, self._path)
        except OSError as exc:
            try:
                os.remove(tmp_path)
            except OSError:
                pass
            raise PersistenceError(f"Could not write {self._path}: {exc}") from exc

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)

    def list_keys(self) -> list[str]:
        with self._lock:
            return list(self._read())


class PersonaSlot:
    def __init__(self, store: KeyValueStore, key: str, persona: str) -> None:
        self._store = store
        self.key = key
        self.persona = persona

    def load(self) -> Optional[str]:
        return self._store.get(self.key)

    def save(self, value: str) -> None:
        self._store.set(self.key, value)

    def delete(self) -> None:
        self._store.delete(self.key)


class NamespacedStore:
    def __init__(self, store: KeyValueStore, prefix: str = CHAT_PREFIX) -> None:
        if not prefix:
            raise ValueError("Namespace prefix must be non-empty.")
        self.store = store
        self.prefix = prefix

    def for_persona(self, name: str) -> PersonaSlot:
        name = persona_key(name)
        if not name:
            raise ValueError("Persona name must be non-empty.")
        return PersonaSlot(self.store, f"{self.prefix}{name}", name)

    def personas(self) -> list[str]:
        return sorted(
            key[len(self.prefix):]
            for key in self.store.list_keys()
            if key.startswith(self.prefix) and len(key) > len(self.prefix)
        )


def open_store(path: Optional[str]) -> KeyValueStore:
    """File-backed store when a path is configured, else in-memory."""
    if not path:
        return InMemoryKeyValueStore()
    logger.info("kv_store_opened", extra={"path": str(path)})
    return JsonFileKeyValueStore(path)
