"""PersistenceStore — opaque JSON key/value store.

Stands in for the controller's non-volatile memory: the simulator hands it
the pending reboot reason and the health counters and reads them back on
the next boot.  File-backed stores rewrite the whole file atomically on
every change; without a path the store lives in memory only.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
from typing import Any


_log = logging.getLogger(__name__)


def atomic_write_json(path: Path, payload: dict) -> None:
    """Write *payload* as JSON to *path* via a temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f"{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with open(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
            handle.write("\n")
        Path(tmp_name).replace(path)
    finally:
        tmp_path = Path(tmp_name)
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


class PersistenceStore:
    """Key/value store with JSON-serialisable values.

    Args:
        path: JSON file backing the store, or ``None`` for in-memory.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._data: dict[str, Any] = {}
        if self._path is not None and self._path.is_file():
            try:
                self._data = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                _log.error("Failed to read persisted state from %s: %s", self._path, exc)
                self._data = {}

    @property
    def path(self) -> Path | None:
        return self._path

    def get_item(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set_item(self, key: str, value: Any) -> None:
        """Store *value* under *key*; ``None`` removes the key."""
        if value is None:
            if key not in self._data:
                return
            del self._data[key]
        else:
            self._data[key] = value
        self._flush()

    def keys(self, prefix: str = "") -> list[str]:
        return [k for k in self._data if k.startswith(prefix)]

    def _flush(self) -> None:
        if self._path is None:
            return
        try:
            atomic_write_json(self._path, self._data)
        except OSError as exc:
            _log.error("Failed to persist state to %s: %s", self._path, exc)
