from __future__ import annotations

import argparse
import logging
import sys

import config
from app.sync_manager import SessionMode, SyncManager
from app.use_cases import (
    CreateTransaction,
    DeleteTransaction,
    ExportBackup,
    GenerateSummary,
    GetAvailableYears,
    ImportBackup,
    UpdateCalculatorSettings,
    UpdateRates,
)
from backup import ParsedBackup
from bootstrap import bootstrap_session, close_backend, resolve_backend
from domain.currency import BASE_CURRENCY, SUPPORTED_CURRENCIES
from domain.errors import DomainError
from domain.records import TransactionType
from domain.validation import TIMEFRAMES
from infrastructure.identity import IdentityProvider


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Multi-currency budget ledger (guest or cloud synchronized)."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show session mode and dashboard totals")
    sub.add_parser("list", help="List transactions")

    add = sub.add_parser("add", help="Record a transaction")
    add.add_argument("type", choices=[t.value.lower() for t in TransactionType])
    add.add_argument("amount", type=float)
    add.add_argument("--currency", default=BASE_CURRENCY, choices=SUPPORTED_CURRENCIES)
    add.add_argument("--date", required=True, help="YYYY-MM-DD")
    add.add_argument("--category", default="General")
    add.add_argument("--description", default="")

    delete = sub.add_parser("delete", help="Delete a transaction by id")
    delete.add_argument("id")

    rates = sub.add_parser("rates", help="Show or change exchange rates")
    for code in ("THB", "USD", "SGD", "Gold"):
        rates.add_argument(f"--{code.lower()}", type=float, dest=code)

    calc = sub.add_parser("calculator", help="Show or change calculator settings")
    calc.add_argument("values", nargs="*", metavar="KEY=VALUE")

    report = sub.add_parser("report", help="Time series and category breakdown")
    report.add_argument("--timeframe", default="monthly", choices=TIMEFRAMES)
    report.add_argument("--year", type=int)

    sub.add_parser("years", help="Years available for reports")

    export = sub.add_parser("export", help="Write a JSON backup")
    export.add_argument("--dir", default=config.DATA_DIR)

    restore = sub.add_parser("import", help="Replace all data from a JSON backup")
    restore.add_argument("path")
    restore.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    login = sub.add_parser("login", help="Sign in and switch to cloud storage")
    login.add_argument("name")
    sub.add_parser("logout", help="Sign out and switch to guest storage")

    theme = sub.add_parser("theme", help="Show or set the colour theme")
    theme.add_argument("value", nargs="?", choices=["dark", "light"])

    return parser.parse_args(argv)


def _fmt(value: float) -> str:
    return f"{value:,.2f} {BASE_CURRENCY}"


def _print_status(session: SyncManager) -> None:
    profile = session.profile
    who = f" ({profile.name})" if profile else ""
    print(f"Mode: {session.mode.value}{who}")
    summary = GenerateSummary(session).execute()
    print(f"Balance:  {_fmt(summary.balance)}")
    print(f"Income:   {_fmt(summary.income)}")
    print(f"Expenses: {_fmt(summary.expense)}")
    print(f"Savings:  {_fmt(summary.saving)}")


def _parse_key_values(items: list[str]) -> dict[str, float]:
    changes: dict[str, float] = {}
    for item in items:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected KEY=VALUE, got {item!r}")
        changes[key] = float(raw)
    return changes


def _confirm_import(parsed: ParsedBackup) -> bool:
    answer = input(
        f"Replace current data with {len(parsed.transactions)} transactions from backup? [y/N] "
    )
    return answer.strip().lower() in ("y", "yes")


def run(args: argparse.Namespace, session: SyncManager, identity: IdentityProvider) -> int:
    command = args.command
    if command == "status":
        _print_status(session)
    elif command == "list":
        for t in session.transactions:
            print(
                f"{t.id}  {t.date.isoformat()}  {t.type.value:<7}  {t.amount:>14,.2f} {t.currency}"
                f"  {t.category}  {t.description}"
            )
    elif command == "add":
        created = CreateTransaction(session).execute(
            date=args.date,
            amount=args.amount,
            type=args.type,
            currency=args.currency,
            category=args.category,
            description=args.description,
        )
        print(f"Added {created.id}")
    elif command == "delete":
        if DeleteTransaction(session).execute(args.id):
            print(f"Deleted {args.id}")
        else:
            print(f"No transaction with id {args.id}")
    elif command == "rates":
        changes = {code: getattr(args, code) for code in ("THB", "USD", "SGD", "Gold")}
        changes = {code: value for code, value in changes.items() if value is not None}
        if changes:
            UpdateRates(session).execute(**changes).result()
        for code, value in session.rates.to_dict().items():
            print(f"{code}: {value:,.2f} {BASE_CURRENCY}")
    elif command == "calculator":
        changes = _parse_key_values(args.values)
        if changes:
            UpdateCalculatorSettings(session).execute(**changes).result()
        for key, value in session.calculator.items():
            print(f"{key}: {value}")
    elif command == "report":
        report = session.report()
        print(report.time_series_table(args.timeframe, args.year))
        print(report.category_table(args.timeframe, args.year))
    elif command == "years":
        print(", ".join(str(year) for year in GetAvailableYears(session).execute()))
    elif command == "export":
        print(f"Backup written to {ExportBackup(session).execute(args.dir)}")
    elif command == "import":
        confirm = (lambda parsed: True) if args.yes else _confirm_import
        result = ImportBackup(session).execute(args.path, confirm)
        if result is None:
            print("Import cancelled")
        else:
            print(f"Imported {result.imported} of {result.total} transactions")
    elif command == "login":
        if session.mode is SessionMode.CLOUD:
            session.sign_out()
        profile = identity.sign_in(args.name)
        try:
            session.sign_in(profile)
        except DomainError:
            identity.sign_out()
            raise
        print(f"Signed in as {profile.name}" if profile else "Sign-in cancelled")
    elif command == "logout":
        identity.sign_out()
        if session.mode is SessionMode.CLOUD:
            session.sign_out()
        print("Signed out, using guest storage")
    elif command == "theme":
        if args.value:
            session.set_theme(args.value == "dark")
        print("dark" if session.is_dark_theme() else "light")
    return 0


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = parse_args(argv)
    backend = resolve_backend()
    try:
        session, identity = bootstrap_session(backend)
    except DomainError as exc:
        close_backend(backend)
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    try:
        return run(args, session, identity)
    except (DomainError, ValueError, FileNotFoundError) as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    finally:
        session.close()
        close_backend(backend)


if __name__ == "__main__":
    sys.exit(main())
