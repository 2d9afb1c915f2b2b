from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

import config
from app.sync_manager import SessionMode, SyncManager
from domain.errors import ConfigurationMissing, DomainError
from infrastructure.identity import IdentityProvider, LocalSessionIdentity
from storage.base import Backend, LocalBackend, RemoteBackend
from storage.json_storage import JsonStorage
from storage.sqlite_storage import SQLiteStorage

logger = logging.getLogger(__name__)


def open_remote_storage(remote_path: str, schema_path: str | None = None) -> SQLiteStorage:
    if not remote_path:
        raise ConfigurationMissing("Remote storage path is not set (BUDGET_REMOTE_DB)")
    try:
        Path(remote_path).parent.mkdir(parents=True, exist_ok=True)
        return SQLiteStorage(remote_path, schema_path=schema_path)
    except (OSError, sqlite3.Error) as exc:
        raise ConfigurationMissing(f"Remote storage is unavailable: {exc}") from exc


def resolve_backend(
    data_dir: str | None = None,
    remote_path: str | None = None,
    schema_path: str | None = None,
) -> Backend:
    """Pick the backend variant once; an unusable remote store means local-only."""
    local = JsonStorage(data_dir or config.DATA_DIR)
    remote_path = config.REMOTE_DB_PATH if remote_path is None else remote_path
    try:
        remote = open_remote_storage(remote_path, schema_path or config.SCHEMA_PATH)
    except ConfigurationMissing as exc:
        logger.warning("%s; cloud features disabled", exc)
        return LocalBackend(local=local)
    logger.info("Remote storage selected: %s", remote_path)
    return RemoteBackend(local=local, remote=remote)


def bootstrap_session(
    backend: Backend | None = None,
    identity: IdentityProvider | None = None,
) -> tuple[SyncManager, IdentityProvider]:
    backend = backend or resolve_backend()
    identity = identity or LocalSessionIdentity(backend.local)
    session = SyncManager(backend)
    session.start()
    if session.mode is SessionMode.AUTH_RESOLVING:
        try:
            session.resolve_auth(identity.current_user())
        except DomainError as exc:
            # resolve_auth has already fallen back to guest mode
            logger.warning("Could not restore cloud session, continuing as guest: %s", exc)
    return session, identity


def close_backend(backend: Backend) -> None:
    if isinstance(backend, RemoteBackend) and isinstance(backend.remote, SQLiteStorage):
        backend.remote.close()
        logger.debug("Remote storage closed")
