from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from typing import Any

from .base import KeyValueStorage

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


class JsonStorage(KeyValueStorage):
    """Stores each key as ``<directory>/<key>.json``, replaced atomically on write."""

    _path_locks: dict[str, threading.RLock] = {}
    _path_locks_guard = threading.Lock()

    def __init__(self, directory: str) -> None:
        self._directory = directory
        abs_path = os.path.abspath(directory)
        with self._path_locks_guard:
            if abs_path not in self._path_locks:
                self._path_locks[abs_path] = threading.RLock()
            self._lock = self._path_locks[abs_path]

    @property
    def directory(self) -> str:
        return self._directory

    def _path(self, key: str) -> str:
        if not _KEY_PATTERN.fullmatch(key or ""):
            raise ValueError(f"Invalid storage key: {key!r}")
        return os.path.join(self._directory, f"{key}.json")

    def read(self, key: str) -> Any | None:
        path = self._path(key)
        with self._lock:
            try:
                with open(path, encoding="utf-8") as f:
                    return json.load(f)
            except FileNotFoundError:
                return None
            except (json.JSONDecodeError, UnicodeDecodeError):
                logger.warning("Failed to decode JSON data from %s, ignoring stored value", path)
                return None

    def write(self, key: str, value: Any) -> None:
        path = self._path(key)
        with self._lock:
            os.makedirs(self._directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=f".{key}_", suffix=".json", dir=self._directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(value, f, indent=2, ensure_ascii=False)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, path)
            finally:
                try:
                    if os.path.exists(tmp_path):
                        os.remove(tmp_path)
                except OSError:
                    logger.exception("Failed to cleanup temporary file during save: %s", tmp_path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        with self._lock:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
