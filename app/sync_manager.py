from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from enum import Enum
from queue import Empty, Queue

import config
from domain.currency import RateTable
from domain.errors import (
    AuthFailure,
    ConfigurationMissing,
    DomainError,
    InvalidRates,
    PartialImportFailure,
    RemoteWriteFailure,
    SessionNotReady,
    SessionStateError,
)
from domain.ledger import Ledger, sort_newest_first
from domain.records import Transaction, new_transaction_id
from domain.reports import Report
from domain.settings import DEFAULT_RATES, CalculatorSettings, UserProfile, seed_transactions
from storage.base import (
    Backend,
    Notification,
    RemoteBackend,
    SettingsChanged,
    Subscription,
    TransactionsChanged,
)

from .services import CurrencyService

logger = logging.getLogger(__name__)

TRANSACTIONS_KEY = "transactions"
RATES_KEY = "rates"
CALCULATOR_KEY = "calculator"
THEME_KEY = "theme"


class SessionMode(str, Enum):
    UNINITIALIZED = "uninitialized"
    AUTH_RESOLVING = "auth_resolving"
    GUEST = "guest"
    CLOUD = "cloud"


def _completed(result=None) -> Future:
    future: Future = Future()
    future.set_result(result)
    return future


class SyncManager:
    """Owns the in-memory ledger, rates and calculator settings of one session.

    The manager is the only writer of that state. In Cloud mode the remote
    store reports changes through a queue that is drained by :meth:`pump` and
    by the write paths while they wait for confirmation.
    """

    def __init__(
        self,
        backend: Backend,
        *,
        remote_timeout: float | None = None,
        auth_timeout: float | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        self._backend = backend
        self._remote_timeout = config.REMOTE_TIMEOUT if remote_timeout is None else remote_timeout
        self._auth_timeout = config.AUTH_RESOLVE_TIMEOUT if auth_timeout is None else auth_timeout
        self._on_error = on_error
        self.last_error: Exception | None = None

        self._mode = SessionMode.UNINITIALIZED
        self._ready = threading.Event()
        self._lock = threading.RLock()
        self._remote_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="remote-call")
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="settings-writer")

        self._channel: Queue[Notification] = Queue()
        self._subscription: Subscription | None = None
        self._settings_bootstrapped = False
        # Settings fields with an unconfirmed local write, and the last document seen.
        self._pending_writes: dict[str, int] = {}
        self._seen_settings: dict = {}
        self._profile: UserProfile | None = None
        self._ledger = Ledger()
        self._rates = DEFAULT_RATES
        self._calculator = CalculatorSettings.defaults()

    # -- state machine -------------------------------------------------

    @property
    def mode(self) -> SessionMode:
        return self._mode

    @property
    def remote_configured(self) -> bool:
        return isinstance(self._backend, RemoteBackend)

    def _set_mode(self, mode: SessionMode) -> None:
        logger.info("Session mode changed %s -> %s", self._mode.value, mode.value)
        self._mode = mode
        if mode in (SessionMode.GUEST, SessionMode.CLOUD):
            self._ready.set()
        else:
            self._ready.clear()

    def start(self) -> None:
        if self._mode is not SessionMode.UNINITIALIZED:
            raise SessionStateError(f"Session already started (mode={self._mode.value})")
        self._set_mode(SessionMode.AUTH_RESOLVING)
        if not self.remote_configured:
            logger.warning("Remote storage is not configured, running in guest mode")
            self._enter_guest()

    def resolve_auth(self, profile: UserProfile | None) -> None:
        """Finish startup once the identity collaborator knows who is signed in."""
        if self._mode is not SessionMode.AUTH_RESOLVING:
            raise SessionStateError(f"Cannot resolve auth in mode {self._mode.value}")
        if profile is None:
            self._enter_guest()
            return
        try:
            self._enter_cloud(profile)
        except DomainError as exc:
            self._enter_guest()
            self._report_error(exc)
            raise

    def sign_in(self, profile: UserProfile | None) -> None:
        if self._mode is not SessionMode.GUEST:
            raise SessionStateError(f"Cannot sign in from mode {self._mode.value}")
        if profile is None:
            logger.info("Sign-in cancelled, staying in guest mode")
            return
        if not self.remote_configured:
            raise ConfigurationMissing("Remote storage is not configured")
        self._set_mode(SessionMode.AUTH_RESOLVING)
        try:
            self._enter_cloud(profile)
        except DomainError as exc:
            self._enter_guest()
            raise AuthFailure(f"Sign-in failed: {exc}") from exc

    def sign_out(self) -> None:
        if self._mode is not SessionMode.CLOUD:
            raise SessionStateError(f"Cannot sign out from mode {self._mode.value}")
        self._enter_guest()

    def close(self) -> None:
        with self._lock:
            self._drop_subscription()
        self._writer.shutdown(wait=True)
        self._remote_pool.shutdown(wait=False)

    def _drop_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        self._channel = Queue()

    def _reset(self) -> None:
        self._drop_subscription()
        self._settings_bootstrapped = False
        self._pending_writes = {}
        self._seen_settings = {}
        self._profile = None
        self._ledger = Ledger()
        self._rates = DEFAULT_RATES
        self._calculator = CalculatorSettings.defaults()

    def _enter_guest(self) -> None:
        with self._lock:
            self._reset()
            local = self._backend.local
            self._rates = self._load_local_rates(local.read(RATES_KEY))
            self._calculator = self._load_local_calculator(local.read(CALCULATOR_KEY))
            self._ledger = self._load_local_ledger(local.read(TRANSACTIONS_KEY))
            self._set_mode(SessionMode.GUEST)
        logger.info("Guest session loaded transactions=%s", len(self._ledger))

    def _enter_cloud(self, profile: UserProfile) -> None:
        remote = self._remote()
        with self._lock:
            self._reset()
            self._profile = profile
            self._subscription = self._call_remote(remote.subscribe, profile.id, self._channel)
            self.pump()
            self._set_mode(SessionMode.CLOUD)
        logger.info(
            "Cloud session loaded account_id=%s transactions=%s", profile.id, len(self._ledger)
        )

    # -- local loading ---------------------------------------------------

    @staticmethod
    def _load_local_rates(data) -> RateTable:
        if data is None:
            return DEFAULT_RATES
        try:
            return RateTable.from_dict(data)
        except InvalidRates as exc:
            logger.warning("Stored rates are invalid, using defaults: %s", exc)
            return DEFAULT_RATES

    @staticmethod
    def _load_local_calculator(data) -> CalculatorSettings:
        if data is None:
            return CalculatorSettings.defaults()
        try:
            return CalculatorSettings(data)
        except (TypeError, ValueError) as exc:
            logger.warning("Stored calculator settings are invalid, using defaults: %s", exc)
            return CalculatorSettings.defaults()

    @staticmethod
    def _parse_transactions(items: Iterable[tuple[str | None, dict]]) -> list[Transaction]:
        parsed: list[Transaction] = []
        for index, (record_id, body) in enumerate(items):
            try:
                parsed.append(Transaction.from_dict(body, record_id=record_id))
            except (DomainError, ValueError) as exc:
                logger.warning("Skipping invalid transaction at index %s: %s", index, exc)
        return parsed

    def _load_local_ledger(self, data) -> Ledger:
        if data is None:
            return Ledger(seed_transactions())
        if not isinstance(data, list):
            logger.warning("Stored transactions are not a list, using empty ledger")
            return Ledger()
        ledger = Ledger()
        for transaction in self._parse_transactions((None, item) for item in data):
            if transaction.id in ledger:
                transaction = transaction.with_id(new_transaction_id())
            ledger.append(transaction)
        return ledger

    def _persist_local_ledger(self) -> None:
        self._backend.local.write(TRANSACTIONS_KEY, [t.to_dict() for t in self._ledger])

    # -- remote plumbing -------------------------------------------------

    def _remote(self):
        if not isinstance(self._backend, RemoteBackend):
            raise ConfigurationMissing("Remote storage is not configured")
        return self._backend.remote

    def _call_remote(self, fn, *args):
        name = getattr(fn, "__name__", repr(fn))
        future = self._remote_pool.submit(fn, *args)
        try:
            return future.result(timeout=self._remote_timeout)
        except FutureTimeout as exc:
            raise RemoteWriteFailure(
                f"Remote operation {name} timed out after {self._remote_timeout}s",
                retryable=True,
            ) from exc
        except DomainError:
            raise
        except Exception as exc:
            raise RemoteWriteFailure(f"Remote operation {name} failed: {exc}") from exc

    def _report_error(self, exc: Exception) -> None:
        self.last_error = exc
        if self._on_error is not None:
            self._on_error(exc)

    def pump(self, timeout: float = 0.0) -> int:
        """Apply pending change notifications; waits up to ``timeout`` for the first one."""
        applied = 0
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            try:
                if applied == 0 and remaining > 0:
                    notification = self._channel.get(timeout=remaining)
                else:
                    notification = self._channel.get_nowait()
            except Empty:
                return applied
            self._apply(notification)
            applied += 1

    def _await(self, condition: Callable[[], bool], what: str) -> None:
        deadline = time.monotonic() + self._remote_timeout
        while not condition():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise RemoteWriteFailure(
                    f"Timed out waiting for remote confirmation of {what}", retryable=True
                )
            try:
                notification = self._channel.get(timeout=remaining)
            except Empty:
                continue
            self._apply(notification)

    def _apply(self, notification: Notification) -> None:
        with self._lock:
            if self._profile is None or notification.account_id != self._profile.id:
                logger.debug("Ignoring notification for inactive account %s", notification.account_id)
                return
            if isinstance(notification, SettingsChanged):
                self._apply_settings(notification.document)
            elif isinstance(notification, TransactionsChanged):
                parsed = self._parse_transactions(notification.documents)
                self._ledger = Ledger(sort_newest_first(parsed))

    def _apply_settings(self, document: dict | None) -> None:
        if document is None:
            if self._settings_bootstrapped:
                return
            self._settings_bootstrapped = True
            self._rates = DEFAULT_RATES
            self._calculator = CalculatorSettings.defaults()
            logger.info("Creating default settings for account_id=%s", self._profile.id)
            try:
                self._call_remote(
                    self._remote().merge_settings,
                    self._profile.id,
                    {"rates": DEFAULT_RATES.to_dict(), "calculator": self._calculator.to_dict()},
                )
            except RemoteWriteFailure as exc:
                logger.error("Failed to create default settings: %s", exc)
                self._report_error(exc)
            return
        self._settings_bootstrapped = True
        previous, self._seen_settings = self._seen_settings, dict(document)
        if self._should_apply(RATES_KEY, document, previous):
            try:
                self._rates = RateTable.from_dict(document[RATES_KEY])
            except InvalidRates as exc:
                logger.warning("Remote rates are invalid, keeping current rates: %s", exc)
        if self._should_apply(CALCULATOR_KEY, document, previous):
            try:
                self._calculator = CalculatorSettings(document[CALCULATOR_KEY])
            except (TypeError, ValueError) as exc:
                logger.warning("Remote calculator settings are invalid, keeping current: %s", exc)

    def _should_apply(self, field: str, document: dict, previous: dict) -> bool:
        """A field is taken from the store only when it changed there and no local write is pending.

        Echoes of a write to one field must not overwrite an unconfirmed or
        failed optimistic value of the other.
        """
        if field not in document:
            return False
        if self._pending_writes.get(field, 0) > 0:
            logger.debug("Skipping remote %s while a local write is pending", field)
            return False
        return field not in previous or previous[field] != document[field]

    # -- reads -----------------------------------------------------------

    def _wait_ready(self) -> None:
        if self._mode is SessionMode.UNINITIALIZED:
            raise SessionStateError("Session has not been started")
        if not self._ready.wait(self._auth_timeout):
            raise SessionNotReady("Timed out waiting for authentication to resolve")

    @property
    def profile(self) -> UserProfile | None:
        self._wait_ready()
        return self._profile

    @property
    def transactions(self) -> list[Transaction]:
        self._wait_ready()
        with self._lock:
            return self._ledger.items()

    @property
    def rates(self) -> RateTable:
        self._wait_ready()
        return self._rates

    @property
    def calculator(self) -> CalculatorSettings:
        self._wait_ready()
        return self._calculator

    def report(self) -> Report:
        self._wait_ready()
        with self._lock:
            return Report(self._ledger.items(), self._rates)

    def currency(self) -> CurrencyService:
        return CurrencyService(self.rates)

    # -- writes ----------------------------------------------------------

    def add_transaction(self, transaction: Transaction) -> Transaction:
        self._wait_ready()
        if self._mode is SessionMode.GUEST:
            with self._lock:
                if transaction.id in self._ledger:
                    transaction = transaction.with_id(new_transaction_id())
                self._ledger.append(transaction)
                self._persist_local_ledger()
            logger.info(
                "Transaction created id=%s date=%s type=%s amount=%s currency=%s",
                transaction.id,
                transaction.date,
                transaction.type.value,
                transaction.amount,
                transaction.currency,
            )
            return transaction

        account_id = self._profile.id
        new_id = self._call_remote(
            self._remote().create_transaction, account_id, transaction.to_document()
        )
        self._await(lambda: new_id in self._ledger, f"transaction {new_id}")
        logger.info("Transaction created id=%s account_id=%s", new_id, account_id)
        return self._ledger.get(new_id)

    def delete_transaction(self, transaction_id: str) -> bool:
        """Remove a transaction. Unknown ids are ignored and return False."""
        self._wait_ready()
        if transaction_id not in self._ledger:
            logger.info("Delete skipped, transaction not found id=%s", transaction_id)
            return False
        if self._mode is SessionMode.GUEST:
            with self._lock:
                self._ledger.remove(transaction_id)
                self._persist_local_ledger()
        else:
            self._call_remote(self._remote().delete_transaction, self._profile.id, transaction_id)
            self._await(lambda: transaction_id not in self._ledger, f"deletion of {transaction_id}")
        logger.info("Transaction deleted id=%s", transaction_id)
        return True

    def update_rates(self, rates: RateTable) -> Future:
        """Apply new rates immediately and persist them in the background."""
        self._wait_ready()
        with self._lock:
            self._rates = rates
        return self._persist_setting(RATES_KEY, rates.to_dict())

    def update_calculator_settings(self, settings: CalculatorSettings) -> Future:
        self._wait_ready()
        with self._lock:
            self._calculator = settings
        return self._persist_setting(CALCULATOR_KEY, settings.to_dict())

    def _persist_setting(self, field: str, value: dict) -> Future:
        if self._mode is SessionMode.GUEST:
            self._backend.local.write(field, value)
            logger.info("Setting saved locally field=%s", field)
            return _completed()

        account_id = self._profile.id
        with self._lock:
            self._pending_writes[field] = self._pending_writes.get(field, 0) + 1
        future = self._writer.submit(
            self._call_remote, self._remote().merge_settings, account_id, {field: value}
        )

        def _done(done: Future) -> None:
            with self._lock:
                self._pending_writes[field] = max(self._pending_writes.get(field, 0) - 1, 0)
            exc = done.exception()
            if exc is None:
                logger.info("Setting saved remotely field=%s account_id=%s", field, account_id)
                return
            # In-memory value is kept; the store may now lag behind it.
            logger.error("Failed to save setting field=%s: %s", field, exc)
            self._report_error(exc)

        future.add_done_callback(_done)
        return future

    def replace_all(
        self,
        transactions: list[Transaction],
        rates: RateTable,
        calculator: CalculatorSettings,
    ) -> int:
        """Overwrite the whole dataset of the session. Returns the number of imported transactions.

        In Cloud mode transactions are created one by one; a failure part way
        raises PartialImportFailure and leaves the already created ones in place.
        """
        self._wait_ready()
        if self._mode is SessionMode.GUEST:
            with self._lock:
                ledger = Ledger()
                for transaction in transactions:
                    if transaction.id in ledger:
                        transaction = transaction.with_id(new_transaction_id())
                    ledger.append(transaction)
                self._ledger = ledger
                self._rates = rates
                self._calculator = calculator
                local = self._backend.local
                local.write(RATES_KEY, rates.to_dict())
                local.write(CALCULATOR_KEY, calculator.to_dict())
                self._persist_local_ledger()
            logger.info("Guest dataset replaced transactions=%s", len(transactions))
            return len(transactions)

        remote = self._remote()
        account_id = self._profile.id
        with self._lock:
            self._rates = rates
            self._calculator = calculator
        self._call_remote(
            remote.merge_settings,
            account_id,
            {"rates": rates.to_dict(), "calculator": calculator.to_dict()},
        )
        created: list[str] = []
        total = len(transactions)
        for existing in self._ledger.items():
            try:
                self._call_remote(remote.delete_transaction, account_id, existing.id)
            except RemoteWriteFailure as exc:
                self.pump()
                failure = PartialImportFailure(0, total, exc)
                logger.error("%s while removing existing transactions", failure)
                self._report_error(failure)
                raise failure from exc

        for transaction in transactions:
            try:
                created.append(
                    self._call_remote(
                        remote.create_transaction, account_id, transaction.to_document()
                    )
                )
            except RemoteWriteFailure as exc:
                self.pump()
                failure = PartialImportFailure(len(created), total, exc)
                logger.error("%s", failure)
                self._report_error(failure)
                raise failure from exc
        self._await(
            lambda: all(record_id in self._ledger for record_id in created),
            f"{total} imported transactions",
        )
        logger.info("Cloud dataset replaced account_id=%s transactions=%s", account_id, total)
        return total

    # -- device preferences ----------------------------------------------

    def is_dark_theme(self) -> bool:
        data = self._backend.local.read(THEME_KEY)
        return bool(data.get("dark", False)) if isinstance(data, dict) else False

    def set_theme(self, dark: bool) -> None:
        self._backend.local.write(THEME_KEY, {"dark": bool(dark)})
