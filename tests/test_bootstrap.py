import sqlite3

import pytest

from app.sync_manager import SessionMode
from bootstrap import bootstrap_session, close_backend, resolve_backend
from domain.errors import RemoteWriteFailure
from infrastructure.identity import LocalSessionIdentity
from storage.base import LocalBackend, RemoteBackend
from storage.json_storage import JsonStorage
from storage.sqlite_storage import SQLiteStorage


class UnreachableStorage(SQLiteStorage):
    def subscribe(self, account_id, channel):
        raise sqlite3.OperationalError("network unreachable")


@pytest.fixture
def local(tmp_path):
    return JsonStorage(str(tmp_path / "device"))


def test_without_remote_path_backend_is_local(tmp_path):
    backend = resolve_backend(data_dir=str(tmp_path), remote_path="")
    assert isinstance(backend, LocalBackend)


def test_with_remote_path_backend_is_remote(tmp_path):
    backend = resolve_backend(data_dir=str(tmp_path), remote_path=str(tmp_path / "r" / "remote.db"))
    assert isinstance(backend, RemoteBackend)
    close_backend(backend)


def test_saved_user_resumes_cloud_session(local, tmp_path):
    remote = SQLiteStorage(str(tmp_path / "remote.db"))
    identity = LocalSessionIdentity(local)
    identity.sign_in("Alice")
    session, _ = bootstrap_session(RemoteBackend(local=local, remote=remote), identity)
    assert session.mode is SessionMode.CLOUD
    assert session.profile.name == "Alice"
    session.close()
    remote.close()


def test_unreachable_remote_at_startup_falls_back_to_guest(local, tmp_path):
    remote = UnreachableStorage(str(tmp_path / "remote.db"))
    identity = LocalSessionIdentity(local)
    identity.sign_in("Alice")

    session, returned_identity = bootstrap_session(
        RemoteBackend(local=local, remote=remote), identity
    )

    assert returned_identity is identity
    assert session.mode is SessionMode.GUEST
    assert len(session.transactions) == 6
    assert isinstance(session.last_error, RemoteWriteFailure)
    assert "network unreachable" in str(session.last_error)
    session.close()
    remote.close()


def test_close_backend_closes_remote_store(local, tmp_path):
    remote = SQLiteStorage(str(tmp_path / "remote.db"))
    close_backend(RemoteBackend(local=local, remote=remote))
    with pytest.raises(sqlite3.ProgrammingError):
        remote.list_transactions("anyone")


def test_close_backend_ignores_local_only(local):
    close_backend(LocalBackend(local=local))
