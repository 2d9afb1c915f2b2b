from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol
from uuid import NAMESPACE_URL, uuid5

from domain.errors import AuthFailure
from domain.settings import UserProfile
from storage.base import KeyValueStorage

logger = logging.getLogger(__name__)

SESSION_KEY = "session"


class IdentityProvider(Protocol):
    def current_user(self) -> UserProfile | None:
        """Profile of the signed-in user, or None for a guest."""
        ...

    def sign_in(self, name: str) -> UserProfile | None:
        """Returns None when the user cancels; raises AuthFailure when rejected."""
        ...

    def sign_out(self) -> None:
        ...


class LocalSessionIdentity(IdentityProvider):
    """Remembers the signed-in profile on the device.

    Account ids are derived from the display name so the same name always
    resolves to the same remote account.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    def current_user(self) -> UserProfile | None:
        data = self._storage.read(SESSION_KEY)
        if not isinstance(data, dict) or not data.get("id"):
            return None
        return UserProfile.from_dict(data)

    def sign_in(self, name: str) -> UserProfile | None:
        if name is None:
            logger.info("Sign-in cancelled")
            return None
        normalized = str(name).strip()
        if not normalized:
            raise AuthFailure("Sign-in rejected: name is required")
        profile = UserProfile(
            id=uuid5(NAMESPACE_URL, f"budget-ledger:{normalized.lower()}").hex,
            name=normalized,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._storage.write(SESSION_KEY, profile.to_dict())
        logger.info("Signed in account_id=%s", profile.id)
        return profile

    def sign_out(self) -> None:
        self._storage.delete(SESSION_KEY)
        logger.info("Signed out")
