import pytest

from domain.errors import AuthFailure
from infrastructure.identity import SESSION_KEY, LocalSessionIdentity
from storage.json_storage import JsonStorage


@pytest.fixture
def storage(tmp_path):
    return JsonStorage(str(tmp_path))


def test_nobody_signed_in_by_default(storage):
    assert LocalSessionIdentity(storage).current_user() is None


def test_sign_in_is_remembered(storage):
    profile = LocalSessionIdentity(storage).sign_in("  Alice ")
    assert profile.name == "Alice"
    assert LocalSessionIdentity(storage).current_user() == profile


def test_same_name_maps_to_same_account(storage):
    identity = LocalSessionIdentity(storage)
    first = identity.sign_in("Alice")
    second = identity.sign_in("alice")
    assert first.id == second.id
    assert identity.sign_in("Bob").id != first.id


def test_cancelled_sign_in(storage):
    identity = LocalSessionIdentity(storage)
    assert identity.sign_in(None) is None
    assert identity.current_user() is None


def test_empty_name_is_rejected(storage):
    with pytest.raises(AuthFailure):
        LocalSessionIdentity(storage).sign_in("   ")


def test_sign_out_forgets_profile(storage):
    identity = LocalSessionIdentity(storage)
    identity.sign_in("Alice")
    identity.sign_out()
    assert identity.current_user() is None
    assert storage.read(SESSION_KEY) is None
    identity.sign_out()


def test_corrupt_session_is_treated_as_guest(storage):
    storage.write(SESSION_KEY, {"name": "no id"})
    assert LocalSessionIdentity(storage).current_user() is None
