"""Backend specific SQL used by the version history and the lock."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy.engine import URL

from .db import Database
from .errors import MigrateError


class Dialect(ABC):
    """SQL for one database backend, bound to an open :class:`Database`."""

    name = "generic"
    drop_suffix = ""
    # Vendor error numbers that a driver may raise instead of returning an
    # empty result set.
    ambiguous_empty_error_codes: frozenset[int] = frozenset()

    current_database_sql = ""
    table_exists_sql = ""
    list_tables_sql = ""

    def __init__(self, database: Database) -> None:
        self.database = database

    def quote(self, identifier: str) -> str:
        preparer = self.database.connection.dialect.identifier_preparer
        return preparer.quote_identifier(identifier)

    def current_database(self) -> str | None:
        row = self.database.query_row(self.current_database_sql)
        if row is None or row[0] is None:
            return None
        return str(row[0])

    def table_exists(self, table: str) -> bool:
        return self.database.query_row(self.table_exists_sql, {"table": table}) is not None

    def list_tables(self) -> list[str]:
        rows = self.database.query_all(self.list_tables_sql)
        return [str(row[0]) for row in rows if row[0]]

    def drop_table(self, table: str) -> None:
        self.database.execute(f"DROP TABLE IF EXISTS {self.quote(table)}{self.drop_suffix}")

    def create_version_table(self, table: str) -> None:
        self.database.execute(
            f"CREATE TABLE {self.quote(table)} "
            "(version BIGINT NOT NULL PRIMARY KEY, dirty BOOLEAN NOT NULL)"
        )

    def run_script(self, cursor: Any, script: str) -> None:
        """Execute a multi-statement ``script`` on a DBAPI ``cursor``."""

        cursor.execute(script)

    @abstractmethod
    def try_lock(self, lock_id: str, timeout: int) -> bool:
        ...

    @abstractmethod
    def release_lock(self, lock_id: str) -> None:
        ...


class MySQLDialect(Dialect):
    name = "mysql"
    drop_suffix = " CASCADE"
    ambiguous_empty_error_codes = frozenset({0})

    current_database_sql = "SELECT DATABASE()"
    table_exists_sql = (
        "SELECT table_name FROM information_schema.tables "
        "WHERE table_schema = DATABASE() AND table_name = :table"
    )
    list_tables_sql = "SHOW TABLES"

    def run_script(self, cursor: Any, script: str) -> None:
        cursor.execute(script)
        # errors of later statements only surface while reading their results
        while cursor.nextset():
            pass

    def try_lock(self, lock_id: str, timeout: int) -> bool:
        row = self.database.query_row(
            "SELECT GET_LOCK(:lock_id, :timeout)", {"lock_id": lock_id, "timeout": timeout}
        )
        # GET_LOCK yields NULL on server side errors such as a killed thread
        return row is not None and row[0] == 1

    def release_lock(self, lock_id: str) -> None:
        self.database.query_row("SELECT RELEASE_LOCK(:lock_id)", {"lock_id": lock_id})


class PostgresDialect(Dialect):
    name = "postgresql"
    drop_suffix = " CASCADE"

    current_database_sql = "SELECT current_database()"
    table_exists_sql = (
        "SELECT tablename FROM pg_catalog.pg_tables "
        "WHERE schemaname = current_schema() AND tablename = :table"
    )
    list_tables_sql = (
        "SELECT tablename FROM pg_catalog.pg_tables WHERE schemaname = current_schema()"
    )

    def try_lock(self, lock_id: str, timeout: int) -> bool:
        # pg_try_advisory_lock never waits, so the timeout is not used
        row = self.database.query_row(
            "SELECT pg_try_advisory_lock(:lock_id)", {"lock_id": int(lock_id)}
        )
        return row is not None and bool(row[0])

    def release_lock(self, lock_id: str) -> None:
        self.database.query_row("SELECT pg_advisory_unlock(:lock_id)", {"lock_id": int(lock_id)})


class SQLiteDialect(Dialect):
    """SQLite has no named locks; only the in-process guard applies."""

    name = "sqlite"

    current_database_sql = "SELECT name FROM pragma_database_list WHERE seq = 0"
    table_exists_sql = "SELECT name FROM sqlite_master WHERE type = 'table' AND name = :table"
    list_tables_sql = (
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%'"
    )

    def run_script(self, cursor: Any, script: str) -> None:
        cursor.executescript(script)

    def try_lock(self, lock_id: str, timeout: int) -> bool:
        return True

    def release_lock(self, lock_id: str) -> None:
        return None


DIALECTS: dict[str, type[Dialect]] = {
    "mysql": MySQLDialect,
    "mariadb": MySQLDialect,
    "postgresql": PostgresDialect,
    "sqlite": SQLiteDialect,
}


def get_dialect(database: Database, registry: dict[str, type[Dialect]] | None = None) -> Dialect:
    """Resolve the dialect for ``database`` from ``registry`` (default :data:`DIALECTS`)."""

    registry = DIALECTS if registry is None else registry
    try:
        factory = registry[database.dialect]
    except KeyError:
        raise MigrateError(f"unsupported database dialect: {database.dialect}") from None
    return factory(database)


def enable_multi_statements(url: URL) -> URL:
    """Return ``url`` with multi-statement batches switched on where the driver needs it.

    PyMySQL refuses several statements in one ``execute`` unless the
    client flag is set at connect time. Other drivers are left alone.
    """

    if url.get_backend_name() not in ("mysql", "mariadb") or url.get_driver_name() != "pymysql":
        return url

    from pymysql.constants import CLIENT

    flags = int(url.query.get("client_flag", 0)) | CLIENT.MULTI_STATEMENTS
    return url.update_query_dict({"client_flag": str(flags)})


__all__ = [
    "DIALECTS",
    "Dialect",
    "MySQLDialect",
    "PostgresDialect",
    "SQLiteDialect",
    "enable_multi_statements",
    "get_dialect",
]
