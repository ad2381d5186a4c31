"""Migration driver: version bookkeeping, locking and statement execution."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import IO, Any

import structlog
from sqlalchemy.engine import Connection, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from .db import Database
from .dialects import Dialect, enable_multi_statements, get_dialect
from .errors import DatabaseError, MigrationError, NilConfigError, NoDatabaseNameError
from .history import DEFAULT_MIGRATIONS_TABLE, VersionHistory, VersionRecord
from .lock import LockCoordinator, ServerLock

logger = structlog.get_logger(__name__)

MIGRATIONS_TABLE_PARAM = "x-migrations-table"
LOCK_TIMEOUT_PARAM = "x-lock-timeout"
CUSTOM_PARAM_PREFIX = "x-"

MigrationSource = bytes | str | IO[bytes] | IO[str]


@dataclass
class DriverConfig:
    migrations_table: str = ""
    database_name: str = ""
    lock_timeout: int = 1
    strict_empty_result: bool = False


class Driver:
    """Apply migration bodies and track their versions on one connection."""

    def __init__(self, database: Database, dialect: Dialect, config: DriverConfig) -> None:
        self.database = database
        self.dialect = dialect
        self.config = config
        self.history = VersionHistory(
            database,
            dialect,
            config.migrations_table,
            strict_empty_result=config.strict_empty_result,
        )
        self.locker = LockCoordinator(
            ServerLock(dialect, timeout=config.lock_timeout), config.database_name
        )

    # Construction ---------------------------------------------------------
    @classmethod
    def with_instance(
        cls, instance: Connection | Database, config: DriverConfig | None
    ) -> "Driver":
        """Wrap an already open connection.

        Connects to nothing itself; the caller keeps ownership of
        ``instance`` unless it was handed over through :meth:`open`.
        """

        if config is None:
            raise NilConfigError()

        database = instance if isinstance(instance, Database) else Database(instance)
        database.ping()

        dialect = get_dialect(database)
        database_name = dialect.current_database()
        if not database_name:
            raise NoDatabaseNameError()

        config.database_name = database_name
        if not config.migrations_table:
            config.migrations_table = DEFAULT_MIGRATIONS_TABLE

        driver = cls(database, dialect, config)
        driver.history.ensure_table()
        logger.debug(
            "driver_ready",
            dialect=dialect.name,
            database=database_name,
            table=config.migrations_table,
        )
        return driver

    @classmethod
    def open(cls, url: str, config: DriverConfig | None = None, **engine_kwargs: Any) -> "Driver":
        """Connect to ``url`` and build a driver that owns the connection.

        ``x-`` query parameters override ``config`` and never reach the
        DBAPI driver.
        """

        try:
            parsed = make_url(url)
        except ArgumentError as exc:
            raise DatabaseError(exc, "invalid database url") from exc

        config = replace(config) if config is not None else DriverConfig()
        query = dict(parsed.query)
        if query.get(MIGRATIONS_TABLE_PARAM):
            config.migrations_table = str(query[MIGRATIONS_TABLE_PARAM])
        if query.get(LOCK_TIMEOUT_PARAM):
            config.lock_timeout = int(query[LOCK_TIMEOUT_PARAM])
        filtered = parsed.difference_update_query(
            [key for key in query if key.startswith(CUSTOM_PARAM_PREFIX)]
        )

        database = Database.from_url(enable_multi_statements(filtered), **engine_kwargs)
        try:
            return cls.with_instance(database, config)
        except BaseException:
            database.close()
            raise

    def close(self) -> None:
        try:
            self.unlock()
        finally:
            self.database.close()

    # Locking --------------------------------------------------------------
    def lock(self) -> None:
        self.locker.acquire()

    def unlock(self) -> None:
        self.locker.release()

    # Execution ------------------------------------------------------------
    def run(self, migration: MigrationSource) -> None:
        """Execute ``migration`` as one batch on the connection.

        The whole body is handed to the DBAPI driver at once, so comments
        and quoting are left to the server. A failure raises
        :class:`MigrationError` carrying the full body. Version bookkeeping
        is left to the caller.
        """

        body = migration if isinstance(migration, (bytes, str)) else migration.read()
        if isinstance(body, str):
            body = body.encode("utf-8")
        if not body.strip():
            logger.debug("migration_empty")
            return

        try:
            self.database.execute_batch(body.decode("utf-8"), self.dialect.run_script)
        except SQLAlchemyError as exc:
            logger.error("migration_failed", size=len(body), error=str(exc))
            raise MigrationError(exc, "migration failed", body) from exc
        logger.info("migration_executed", size=len(body))

    # Version history ------------------------------------------------------
    def set_version(self, version: int, dirty: bool) -> None:
        self.history.set_version(version, dirty)

    def version(self) -> VersionRecord:
        return self.history.current_version()

    def find_version(self, version: int) -> VersionRecord:
        return self.history.find_version(version)

    def delete_version(self, version: int) -> None:
        self.history.delete_version(version)

    def versions(self) -> list[VersionRecord]:
        return self.history.versions()

    def drop(self) -> None:
        self.history.drop()


__all__ = ["Driver", "DriverConfig", "MigrationSource"]
