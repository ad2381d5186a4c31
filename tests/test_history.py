from __future__ import annotations

import pytest

from sqlmigrate.errors import AmbiguousEmptyResultError, DatabaseError
from sqlmigrate.history import NIL_VERSION, VersionHistory, VersionRecord


class FakeDriverError(Exception):
    """Mimics a DBAPI error whose first argument is the vendor error number."""


def _table_names(history: VersionHistory) -> set[str]:
    return set(history.dialect.list_tables())


def test_ensure_table_is_idempotent(history):
    history.set_version(1, False)
    history.ensure_table()

    assert history.versions() == [VersionRecord(1, False)]


def test_empty_history_reports_nil_version(history):
    current = history.current_version()

    assert current.version == NIL_VERSION
    assert current.dirty is False
    assert not current.found


def test_set_version_then_find(history):
    history.set_version(5, True)
    assert history.find_version(5) == VersionRecord(5, True)

    history.set_version(5, False)
    assert history.find_version(5) == VersionRecord(5, False)
    assert history.versions() == [VersionRecord(5, False)]


def test_current_version_is_highest_recorded(history):
    for version in (1, 3, 2):
        history.set_version(version, False)

    assert history.current_version() == VersionRecord(3, False)
    assert [record.version for record in history.versions()] == [1, 2, 3]


def test_current_version_reports_dirty_flag(history):
    history.set_version(1, False)
    history.set_version(2, True)

    assert history.current_version() == VersionRecord(2, True)


def test_find_missing_version_is_distinguishable(history):
    record = history.find_version(42)

    assert not record.found
    assert record.version == NIL_VERSION
    assert record != VersionRecord(NIL_VERSION, False)


def test_negative_version_is_not_persisted(history):
    history.set_version(NIL_VERSION, True)

    assert history.versions() == []


def test_delete_missing_version_succeeds(history):
    history.delete_version(9)

    assert not history.find_version(9).found


def test_delete_version_removes_only_that_row(history):
    history.set_version(1, False)
    history.set_version(2, True)

    history.delete_version(2)

    assert history.versions() == [VersionRecord(1, False)]
    assert history.current_version() == VersionRecord(1, False)


def test_set_version_rolls_back_on_failure(history, monkeypatch):
    history.set_version(1, True)
    original_find = history.find_version

    def find_then_fail(version):
        record = original_find(version)
        history.database.execute(
            'UPDATE "schema_migrations" SET dirty = :dirty WHERE version = 1', {"dirty": False}
        )
        raise DatabaseError(FakeDriverError(2013, "lost connection"), query="SELECT ...")

    monkeypatch.setattr(history, "find_version", find_then_fail)
    with pytest.raises(DatabaseError):
        history.set_version(2, False)

    monkeypatch.undo()
    assert history.versions() == [VersionRecord(1, True)]


def test_custom_table_name_is_quoted(database):
    from sqlmigrate.dialects import SQLiteDialect

    store = VersionHistory(database, SQLiteDialect(database), "my-migrations")
    store.ensure_table()
    store.set_version(7, True)

    assert store.current_version() == VersionRecord(7, True)
    assert "my-migrations" in _table_names(store)


def test_drop_removes_tables_and_recreates_history(history):
    history.database.execute("CREATE TABLE users (id INTEGER PRIMARY KEY)")
    history.set_version(3, False)

    history.drop()

    assert _table_names(history) == {"schema_migrations"}
    assert history.versions() == []


def test_drop_on_empty_database_creates_nothing(database):
    from sqlmigrate.dialects import SQLiteDialect

    store = VersionHistory(database, SQLiteDialect(database))
    store.drop()

    assert _table_names(store) == set()


def test_drop_continues_past_failures(history, monkeypatch):
    history.database.execute("CREATE TABLE a (id INTEGER)")
    history.database.execute("CREATE TABLE b (id INTEGER)")
    original_drop = history.dialect.drop_table

    def drop_table(table):
        if table == "a":
            raise DatabaseError(FakeDriverError(1217, "foreign key"), query=f"DROP TABLE {table}")
        original_drop(table)

    monkeypatch.setattr(history.dialect, "drop_table", drop_table)
    with pytest.raises(DatabaseError) as excinfo:
        history.drop()

    assert excinfo.value.error_code == 1217
    assert _table_names(history) == {"a"}


def test_ambiguous_error_maps_to_nil_version(history, monkeypatch):
    history.dialect.ambiguous_empty_error_codes = frozenset({0})

    def query_row(query, params=None):
        raise DatabaseError(FakeDriverError(0, "invalid connection"), query=query)

    monkeypatch.setattr(history.database, "query_row", query_row)

    assert history.current_version() == VersionRecord.missing()


def test_ambiguous_error_raises_in_strict_mode(history, monkeypatch):
    history.dialect.ambiguous_empty_error_codes = frozenset({0})
    history.strict_empty_result = True

    def query_row(query, params=None):
        raise DatabaseError(FakeDriverError(0, "invalid connection"), query=query)

    monkeypatch.setattr(history.database, "query_row", query_row)

    with pytest.raises(AmbiguousEmptyResultError) as excinfo:
        history.current_version()
    assert b"ORDER BY version DESC" in excinfo.value.query


def test_other_errors_are_not_mapped_to_nil_version(history, monkeypatch):
    history.dialect.ambiguous_empty_error_codes = frozenset({0})

    def query_row(query, params=None):
        raise DatabaseError(FakeDriverError(2013, "lost connection"), query=query)

    monkeypatch.setattr(history.database, "query_row", query_row)

    with pytest.raises(DatabaseError) as excinfo:
        history.current_version()
    assert excinfo.value.error_code == 2013
