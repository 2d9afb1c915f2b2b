from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from queue import Queue
from uuid import uuid4

from .base import DocumentStorage, Notification, SettingsChanged, TransactionsChanged

logger = logging.getLogger(__name__)


class _Subscription:
    def __init__(self, storage: "SQLiteStorage", account_id: str, channel: "Queue[Notification]"):
        self._storage = storage
        self.account_id = account_id
        self.channel = channel
        self.active = True

    def close(self) -> None:
        if self.active:
            self.active = False
            self._storage._unsubscribe(self)


class SQLiteStorage(DocumentStorage):
    """Per-account document store on SQLite.

    Every committed write publishes the full affected document set to the
    channels subscribed to that account.
    """

    def __init__(self, db_path: str = "remote.db", schema_path: str | None = None) -> None:
        self._db_path = db_path
        self._lock = threading.RLock()
        self._subscriptions: list[_Subscription] = []
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode = WAL;")
        self.initialize_schema(schema_path)

    def close(self) -> None:
        with self._lock:
            for subscription in list(self._subscriptions):
                subscription.active = False
            self._subscriptions.clear()
            self._conn.close()

    def initialize_schema(self, schema_path: str | None = None) -> None:
        if schema_path is None:
            schema_path = str(Path(__file__).resolve().parents[1] / "db" / "schema.sql")
        schema = Path(schema_path).read_text(encoding="utf-8")
        with self._lock:
            self._conn.executescript(schema)
            self._conn.commit()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def get_settings(self, account_id: str) -> dict | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT document FROM settings WHERE account_id = ?", (account_id,)
            ).fetchone()
        if row is None:
            return None
        return json.loads(row["document"])

    def merge_settings(self, account_id: str, fields: dict) -> None:
        with self._lock:
            current = self.get_settings(account_id) or {}
            current.update(fields)
            self._conn.execute(
                """
                INSERT INTO settings (account_id, document, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(account_id) DO UPDATE SET
                    document = excluded.document,
                    updated_at = excluded.updated_at
                """,
                (account_id, json.dumps(current, ensure_ascii=False), self._now()),
            )
            self._conn.commit()
            logger.debug("Settings merged account_id=%s fields=%s", account_id, sorted(fields))
            self._publish(SettingsChanged(account_id, dict(current)))

    def create_transaction(self, account_id: str, document: dict) -> str:
        transaction_id = uuid4().hex
        body = {key: value for key, value in document.items() if key != "id"}
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO transactions (id, account_id, document, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (transaction_id, account_id, json.dumps(body, ensure_ascii=False), self._now()),
            )
            self._conn.commit()
            logger.debug("Transaction document created account_id=%s id=%s", account_id, transaction_id)
            self._publish(TransactionsChanged(account_id, self.list_transactions(account_id)))
        return transaction_id

    def delete_transaction(self, account_id: str, transaction_id: str) -> None:
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM transactions WHERE account_id = ? AND id = ?",
                (account_id, transaction_id),
            )
            self._conn.commit()
            if cursor.rowcount:
                logger.debug(
                    "Transaction document deleted account_id=%s id=%s", account_id, transaction_id
                )
                self._publish(TransactionsChanged(account_id, self.list_transactions(account_id)))

    def list_transactions(self, account_id: str) -> list[tuple[str, dict]]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, document FROM transactions WHERE account_id = ? ORDER BY seq",
                (account_id,),
            ).fetchall()
        return [(str(row["id"]), json.loads(row["document"])) for row in rows]

    def subscribe(self, account_id: str, channel: "Queue[Notification]") -> _Subscription:
        """Register ``channel`` and immediately deliver the current state of the account."""
        subscription = _Subscription(self, account_id, channel)
        with self._lock:
            self._subscriptions.append(subscription)
            channel.put(SettingsChanged(account_id, self.get_settings(account_id)))
            channel.put(TransactionsChanged(account_id, self.list_transactions(account_id)))
        return subscription

    def _unsubscribe(self, subscription: _Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _publish(self, notification: Notification) -> None:
        for subscription in list(self._subscriptions):
            if subscription.active and subscription.account_id == notification.account_id:
                subscription.channel.put(notification)
