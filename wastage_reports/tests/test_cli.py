from datetime import datetime, timezone

import pytest
from click.testing import CliRunner

from wastage_reports import scheduler
from wastage_reports.cli import cli
from wastage_reports.config import get_settings
from wastage_reports.db import add_entry, add_item, add_outlet, add_recipient, init_db

NOW = datetime(2024, 3, 5, 8, 0, 20, tzinfo=timezone.utc)


@pytest.fixture
def env(tmp_path, monkeypatch):
    db_file = tmp_path / "wastage.db"
    monkeypatch.setenv("WASTAGE_DB", str(db_file))
    monkeypatch.setenv("REPORTS_DIR", str(tmp_path / "reports"))
    monkeypatch.setenv("EXPORT_DIR", str(tmp_path / "csv"))
    monkeypatch.setenv("LOG_FILE", "")
    for name in ("SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASS", "SMTP_FROM"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


@pytest.fixture
def seeded(env):
    db_path = str(env / "wastage.db")
    init_db(db_path)
    outlet = add_outlet("OUTLET001", db_path=db_path)
    item = add_item("FRIES", "French Fries", unit="kg", color="#FFD700", db_path=db_path)
    add_entry(outlet, item, 3, NOW.replace(hour=7), db_path=db_path)
    return db_path


def test_init_db(env):
    result = CliRunner().invoke(cli, ["init-db"])
    assert result.exit_code == 0, result.output
    assert (env / "wastage.db").exists()


def test_export_saves_to_export_dir(env):
    result = CliRunner().invoke(cli, ["export", "WEEKLY"])
    assert result.exit_code == 0, result.output
    path = result.output.strip().splitlines()[-1]
    assert path.startswith(str(env / "csv"))
    assert "food-wastage-weekly-report-" in path


def test_export_to_folder(env):
    target = env / "custom"
    result = CliRunner().invoke(cli, ["export", "monthly", "--folder", str(target)])
    assert result.exit_code == 0, result.output
    assert len(list(target.glob("food-wastage-monthly-report-*.csv"))) == 1


def test_export_stdout(env):
    result = CliRunner().invoke(cli, ["export", "--stdout"])
    assert result.exit_code == 0, result.output
    assert "outlet,item_code,item_label,unit,total,color" in result.output


def test_export_rejects_invalid_period(env):
    result = CliRunner().invoke(cli, ["export", "yearly"])
    assert result.exit_code == 2
    assert "Invalid period" in result.output


def test_worker_once_persists_even_when_mail_is_unconfigured(seeded, env, monkeypatch):
    add_recipient("manager@test.com", "daily", "08:00", db_path=seeded)
    monkeypatch.setattr(scheduler, "utc_now", lambda: NOW)

    result = CliRunner().invoke(cli, ["worker", "--once"])

    assert result.exit_code == 0, result.output
    (report,) = (env / "reports").glob("*.csv")
    assert report.read_text(encoding="utf-8").splitlines()[1] == (
        "OUTLET001,FRIES,French Fries,kg,3,#FFD700"
    )
