from __future__ import annotations

from dataclasses import dataclass, field
from queue import Queue
from typing import Any, Protocol, Union


class KeyValueStorage(Protocol):
    """Device-local storage: independently keyed JSON-serializable blobs."""

    def read(self, key: str) -> Any | None:
        ...

    def write(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


@dataclass(frozen=True)
class SettingsChanged:
    """Full settings document of an account; ``document`` is None when it does not exist."""

    account_id: str
    document: dict | None


@dataclass(frozen=True)
class TransactionsChanged:
    """Full transaction collection of an account as ``(id, body)`` pairs in arrival order."""

    account_id: str
    documents: list[tuple[str, dict]] = field(default_factory=list)


Notification = Union[SettingsChanged, TransactionsChanged]


class Subscription(Protocol):
    def close(self) -> None:
        ...


class DocumentStorage(Protocol):
    """Remote per-account document store with live change notifications."""

    def get_settings(self, account_id: str) -> dict | None:
        ...

    def merge_settings(self, account_id: str, fields: dict) -> None:
        ...

    def create_transaction(self, account_id: str, document: dict) -> str:
        ...

    def delete_transaction(self, account_id: str, transaction_id: str) -> None:
        ...

    def list_transactions(self, account_id: str) -> list[tuple[str, dict]]:
        ...

    def subscribe(self, account_id: str, channel: "Queue[Notification]") -> Subscription:
        ...


@dataclass(frozen=True)
class LocalBackend:
    """Only device storage is usable; the session can never leave Guest mode."""

    local: KeyValueStorage


@dataclass(frozen=True)
class RemoteBackend:
    """Device storage for Guest mode plus a remote store for signed-in accounts."""

    local: KeyValueStorage
    remote: DocumentStorage


Backend = Union[LocalBackend, RemoteBackend]
