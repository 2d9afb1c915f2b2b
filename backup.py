from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date as dt_date

import config
from app.sync_manager import SyncManager
from domain.currency import RateTable
from domain.errors import DomainError, InvalidBackup, InvalidRates
from domain.records import Transaction
from domain.settings import CalculatorSettings, UserProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedBackup:
    profile: UserProfile | None
    transactions: list[Transaction]
    rates: RateTable
    calculator: CalculatorSettings
    version: str


@dataclass(frozen=True)
class ImportResult:
    imported: int
    total: int


def export_snapshot(session: SyncManager) -> dict:
    """Build the portable snapshot of the session's current state."""
    profile = session.profile or UserProfile.guest()
    return {
        "profile": profile.to_dict(),
        "transactions": [t.to_dict() for t in session.transactions],
        "rates": session.rates.to_dict(),
        "calculator": session.calculator.to_dict(),
        "version": config.BACKUP_VERSION,
    }


def backup_filename(profile: dict | UserProfile | None, today: dt_date | None = None) -> str:
    if isinstance(profile, UserProfile):
        name = profile.name
    elif isinstance(profile, dict):
        name = str(profile.get("name", "") or "")
    else:
        name = ""
    safe_name = re.sub(r"[^A-Za-z0-9_-]+", "_", name).strip("_") or "budget"
    stamp = (today or dt_date.today()).isoformat()
    return f"{safe_name}_backup_{stamp}.json"


def write_backup(snapshot: dict, directory: str, today: dt_date | None = None) -> str:
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, backup_filename(snapshot.get("profile"), today))
    with open(path, "w", encoding="utf-8") as fp:
        json.dump(snapshot, fp, ensure_ascii=False, indent=2)
    logger.info(
        "Backup exported file=%s transactions=%s", path, len(snapshot.get("transactions", []))
    )
    return path


def read_backup(filepath: str) -> dict:
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Backup file not found: {filepath}")
    try:
        with open(filepath, encoding="utf-8") as fp:
            data = json.load(fp)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidBackup(f"Backup file is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise InvalidBackup("Invalid backup structure: root must be an object")
    return data


def parse_snapshot(data: dict) -> ParsedBackup:
    """Validate a snapshot without touching any state."""
    if not isinstance(data, dict):
        raise InvalidBackup("Invalid backup structure: root must be an object")
    raw_transactions = data.get("transactions")
    raw_rates = data.get("rates")
    if not isinstance(raw_transactions, list):
        raise InvalidBackup("Invalid backup structure: transactions must be an array")
    if not isinstance(raw_rates, dict):
        raise InvalidBackup("Invalid backup structure: rates must be an object")

    try:
        rates = RateTable.from_dict(raw_rates)
    except InvalidRates as exc:
        raise InvalidBackup(f"Invalid rates: {exc}") from exc

    raw_calculator = data.get("calculator")
    try:
        calculator = (
            CalculatorSettings(raw_calculator)
            if isinstance(raw_calculator, dict)
            else CalculatorSettings.defaults()
        )
    except ValueError as exc:
        raise InvalidBackup(f"Invalid calculator settings: {exc}") from exc

    transactions: list[Transaction] = []
    for idx, item in enumerate(raw_transactions, start=1):
        try:
            transactions.append(Transaction.from_dict(item))
        except (ValueError, DomainError) as exc:
            raise InvalidBackup(f"transactions[{idx}]: invalid transaction ({exc})") from exc

    raw_profile = data.get("profile")
    profile = UserProfile.from_dict(raw_profile) if isinstance(raw_profile, dict) else None
    return ParsedBackup(
        profile=profile,
        transactions=transactions,
        rates=rates,
        calculator=calculator,
        version=str(data.get("version", "") or ""),
    )


def import_snapshot(
    session: SyncManager,
    data: dict,
    confirm: Callable[[ParsedBackup], bool],
) -> ImportResult | None:
    """Replace the session's data with the snapshot once ``confirm`` agrees.

    Returns None when the user declines.
    """
    parsed = parse_snapshot(data)
    if parsed.version and parsed.version != config.BACKUP_VERSION:
        logger.warning(
            "Importing backup version %s with reader version %s",
            parsed.version,
            config.BACKUP_VERSION,
        )
    if not confirm(parsed):
        logger.info("Backup import cancelled by user")
        return None
    imported = session.replace_all(parsed.transactions, parsed.rates, parsed.calculator)
    logger.info(
        "Backup import completed: imported=%s total=%s", imported, len(parsed.transactions)
    )
    return ImportResult(imported=imported, total=len(parsed.transactions))
