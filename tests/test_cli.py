import json

import pytest

import config
import main


@pytest.fixture
def guest_env(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setattr(config, "REMOTE_DB_PATH", "")
    return tmp_path


@pytest.fixture
def cloud_env(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setattr(config, "REMOTE_DB_PATH", str(tmp_path / "remote" / "ledger.db"))
    return tmp_path


def test_status_in_guest_mode(guest_env, capsys):
    assert main.main(["status"]) == 0
    out = capsys.readouterr().out
    assert "Mode: guest" in out
    assert "Income:   4,464,000.00 MMK" in out


def test_add_list_delete(guest_env, capsys):
    assert main.main(["add", "expense", "2500", "--date", "2025-01-03", "--category", "Food"]) == 0
    created_id = capsys.readouterr().out.split()[-1]

    main.main(["list"])
    assert created_id in capsys.readouterr().out

    assert main.main(["delete", created_id]) == 0
    assert f"Deleted {created_id}" in capsys.readouterr().out
    assert main.main(["delete", created_id]) == 0
    assert "No transaction" in capsys.readouterr().out


def test_invalid_input_reports_error(guest_env, capsys):
    assert main.main(["add", "income", "10", "--date", "2025-13-01"]) == 1
    assert "[error] Invalid month" in capsys.readouterr().err


def test_rates_and_calculator(guest_env, capsys):
    assert main.main(["rates", "--thb", "130"]) == 0
    assert "THB: 130.00 MMK" in capsys.readouterr().out
    assert main.main(["calculator", "years=9"]) == 0
    assert "years: 9.0" in capsys.readouterr().out
    assert main.main(["calculator", "years"]) == 1


def test_report_and_years(guest_env, capsys):
    assert main.main(["report", "--year", "2024"]) == 0
    out = capsys.readouterr().out
    assert "2024-09" in out
    assert "Housing" in out
    main.main(["years"])
    assert "2024" in capsys.readouterr().out


def test_export_and_import(guest_env, capsys):
    export_dir = guest_env / "backups"
    assert main.main(["export", "--dir", str(export_dir)]) == 0
    (backup,) = export_dir.iterdir()
    data = json.loads(backup.read_text(encoding="utf-8"))
    data["transactions"] = data["transactions"][:2]
    backup.write_text(json.dumps(data), encoding="utf-8")
    capsys.readouterr()

    assert main.main(["import", str(backup), "--yes"]) == 0
    assert "Imported 2 of 2" in capsys.readouterr().out


def test_import_missing_file(guest_env, capsys):
    assert main.main(["import", str(guest_env / "missing.json"), "--yes"]) == 1
    assert "not found" in capsys.readouterr().err


def test_login_without_remote_fails(guest_env, capsys):
    assert main.main(["login", "Alice"]) == 1
    assert "not configured" in capsys.readouterr().err
    main.main(["status"])
    assert "Mode: guest" in capsys.readouterr().out


def test_cloud_session_survives_restart(cloud_env, capsys):
    assert main.main(["login", "Alice"]) == 0
    assert "Signed in as Alice" in capsys.readouterr().out

    main.main(["add", "income", "100", "--currency", "USD", "--date", "2025-04-01"])
    capsys.readouterr()

    main.main(["status"])
    out = capsys.readouterr().out
    assert "Mode: cloud (Alice)" in out
    assert "Income:   450,000.00 MMK" in out

    main.main(["logout"])
    capsys.readouterr()
    main.main(["status"])
    assert "Mode: guest" in capsys.readouterr().out


def test_theme(guest_env, capsys):
    main.main(["theme", "dark"])
    assert capsys.readouterr().out.strip() == "dark"
    main.main(["theme"])
    assert capsys.readouterr().out.strip() == "dark"
