from __future__ import annotations

import pytest
import structlog
from typer.testing import CliRunner

from sqlmigrate.cli import app
from sqlmigrate.config import get_settings

runner = CliRunner()


@pytest.fixture
def db_url(tmp_path, monkeypatch):
    monkeypatch.setenv("SQLMIGRATE_LOG_LEVEL", "WARNING")
    get_settings.cache_clear()
    yield f"sqlite:///{tmp_path / 'cli.sqlite'}"
    get_settings.cache_clear()
    # the CLI binds log output to the runner's streams
    structlog.reset_defaults()


def _invoke(db_url: str, *args: str):
    return runner.invoke(app, ["--database-url", db_url, *args])


def test_version_on_fresh_database(db_url):
    result = _invoke(db_url, "version")

    assert result.exit_code == 0, result.output
    assert "no migration has been applied" in result.output


def test_apply_then_version(db_url, tmp_path):
    migration = tmp_path / "1_create_users.sql"
    migration.write_text("CREATE TABLE users (id INTEGER PRIMARY KEY);\n")

    result = _invoke(db_url, "apply", str(migration))
    assert result.exit_code == 0, result.output
    assert "Applied" in result.output

    result = _invoke(db_url, "version")
    assert result.exit_code == 0, result.output
    assert "1" in result.output
    assert "dirty" not in result.output


def test_failed_apply_marks_dirty_and_force_clears_it(db_url, tmp_path):
    migration = tmp_path / "2_broken.sql"
    migration.write_text("INSERT INTO nope VALUES (1);\n")

    result = _invoke(db_url, "apply", str(migration))
    assert result.exit_code == 1
    assert "migration failed" in result.output

    result = _invoke(db_url, "version")
    assert "(dirty)" in result.output

    result = _invoke(db_url, "force", "2")
    assert result.exit_code == 0, result.output

    result = _invoke(db_url, "version")
    assert "2" in result.output
    assert "dirty" not in result.output


def test_history_and_delete_version(db_url):
    assert _invoke(db_url, "force", "1").exit_code == 0
    assert _invoke(db_url, "force", "5").exit_code == 0

    result = _invoke(db_url, "delete-version", "5")
    assert result.exit_code == 0, result.output

    result = _invoke(db_url, "history")
    assert result.exit_code == 0, result.output
    assert "1" in result.output
    assert "5" not in result.output


def test_drop_requires_confirmation(db_url):
    result = _invoke(db_url, "drop")

    assert result.exit_code == 1
    assert "--yes" in result.output
    assert _invoke(db_url, "drop", "--yes").exit_code == 0


def test_split_prints_statements(db_url, tmp_path):
    source = tmp_path / "3_seed.sql"
    source.write_text("INSERT INTO t VALUES ('a;b');\nINSERT INTO t VALUES ('c');\n")

    result = _invoke(db_url, "split", str(source))

    assert result.exit_code == 0, result.output
    assert "statement 0" in result.output
    assert "statement 1" in result.output
    assert "'a;b'" in result.output
