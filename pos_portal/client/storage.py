from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol

from pos_portal.errors import StorageUnavailable

_KEY_PATTERN = re.compile(r'^[A-Za-z0-9_.-]+$')


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Non-durable store; values are JSON round-tripped so they behave like persisted ones."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def get(self, key: str) -> Any | None:
        raw = self._values.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = json.dumps(value)

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class FileKeyValueStore:
    """One JSON file per key under a directory, replaced atomically on every write."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f'Cannot create local storage at {self.directory}: {exc}') from exc

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f'Invalid storage key: {key!r}')
        return self.directory / f'{key}.json'

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        try:
            raw = path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageUnavailable(f'Cannot read {path}: {exc}') from exc
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageUnavailable(f'Corrupt local storage file {path}') from exc

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f'.{key}.', suffix='.tmp', dir=self.directory)
            with os.fdopen(fd, 'w', encoding='utf-8') as handle:
                json.dump(value, handle)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except OSError as exc:
            raise StorageUnavailable(f'Cannot write {path}: {exc}') from exc

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f'Cannot remove {path}: {exc}') from exc


def open_local_storage(directory: str | Path | None) -> KeyValueStore | None:
    """Durable storage for a till, or None where there is none (server-side code)."""
    if not directory:
        return None
    return FileKeyValueStore(directory)
