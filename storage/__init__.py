from .base import Backend, DocumentStorage, KeyValueStorage, LocalBackend, RemoteBackend
from .json_storage import JsonStorage
from .sqlite_storage import SQLiteStorage

__all__ = [
    "Backend",
    "DocumentStorage",
    "KeyValueStorage",
    "LocalBackend",
    "RemoteBackend",
    "JsonStorage",
    "SQLiteStorage",
]
