from __future__ import annotations

from pathlib import Path

import pytest

from sqlmigrate.driver import Driver, DriverConfig
from sqlmigrate.errors import DatabaseError, DirtyDatabaseError, LockedError, MigrationError
from sqlmigrate.history import VersionRecord
from sqlmigrate.migrations import Migration, apply_migration


@pytest.fixture
def driver(database):
    return Driver.with_instance(database, DriverConfig())


def test_apply_records_clean_version(driver):
    apply_migration(driver, Migration(version=1, body=b"CREATE TABLE users (id INTEGER);"))

    assert driver.version() == VersionRecord(1, False)
    assert driver.dialect.table_exists("users")
    assert not driver.locker.locked


def test_failed_apply_leaves_version_dirty(driver):
    with pytest.raises(MigrationError):
        apply_migration(driver, Migration(version=2, body=b"INSERT INTO nope VALUES (1);"))

    assert driver.version() == VersionRecord(2, True)
    assert not driver.locker.locked


def test_dirty_version_blocks_next_apply(driver):
    driver.set_version(3, True)

    with pytest.raises(DirtyDatabaseError) as excinfo:
        apply_migration(driver, Migration(version=4, body=b"CREATE TABLE t (id INTEGER);"))

    assert excinfo.value.version == 3
    assert not driver.find_version(4).found
    assert not driver.locker.locked


def test_failed_unlock_does_not_hide_migration_error(driver, monkeypatch):
    def broken_release(lock_id):
        raise DatabaseError(RuntimeError("connection reset"), "release lock failed")

    monkeypatch.setattr(driver.dialect, "release_lock", broken_release)

    with pytest.raises(MigrationError) as excinfo:
        apply_migration(driver, Migration(version=5, body=b"INSERT INTO nope VALUES (1);"))

    assert excinfo.value.phase == "migration failed"
    assert driver.version() == VersionRecord(5, True)
    assert driver.locker.locked


def test_apply_refuses_when_lock_is_held(driver):
    driver.lock()

    with pytest.raises(LockedError):
        apply_migration(driver, Migration(version=1, body=b"CREATE TABLE t (id INTEGER);"))

    assert not driver.find_version(1).found


def test_migration_from_path(tmp_path: Path):
    path = tmp_path / "0007_add_users.up.sql"
    path.write_bytes(b"CREATE TABLE users (id INTEGER);")

    migration = Migration.from_path(path)

    assert migration.version == 7
    assert migration.name == "add_users"
    assert migration.body == b"CREATE TABLE users (id INTEGER);"


def test_migration_from_path_requires_version(tmp_path: Path):
    path = tmp_path / "add_users.sql"
    path.write_bytes(b"SELECT 1;")

    with pytest.raises(ValueError):
        Migration.from_path(path)

    assert Migration.from_path(path, version=9).version == 9
