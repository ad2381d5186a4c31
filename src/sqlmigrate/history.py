"""Per-version migration history kept in the migrations table."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from .db import Database
from .dialects import Dialect
from .errors import AmbiguousEmptyResultError, DatabaseError

logger = structlog.get_logger(__name__)

NIL_VERSION = -1
DEFAULT_MIGRATIONS_TABLE = "schema_migrations"


@dataclass(frozen=True)
class VersionRecord:
    """A history row, or the result of looking one up.

    ``found`` is False when a lookup matched nothing or the history is
    empty; such records carry :data:`NIL_VERSION`.
    """

    version: int
    dirty: bool
    found: bool = True

    @classmethod
    def missing(cls) -> "VersionRecord":
        return cls(version=NIL_VERSION, dirty=False, found=False)


class VersionHistory:
    """Store one ``(version, dirty)`` row for every version ever attempted.

    The current version is always derived as the highest recorded version,
    so there is no separate pointer that could disagree with the rows.
    """

    def __init__(
        self,
        database: Database,
        dialect: Dialect,
        table: str = DEFAULT_MIGRATIONS_TABLE,
        *,
        strict_empty_result: bool = False,
    ) -> None:
        self.database = database
        self.dialect = dialect
        self.table = table
        self.strict_empty_result = strict_empty_result

    @property
    def _quoted_table(self) -> str:
        return self.dialect.quote(self.table)

    def ensure_table(self) -> None:
        """Create the migrations table unless it already exists."""

        with self.database.transaction():
            if self.dialect.table_exists(self.table):
                return
            self.dialect.create_version_table(self.table)
        logger.info("version_table_created", table=self.table)

    def current_version(self) -> VersionRecord:
        """Return the highest recorded version or NIL_VERSION when empty."""

        query = f"SELECT version, dirty FROM {self._quoted_table} ORDER BY version DESC LIMIT 1"
        try:
            row = self.database.query_row(query)
        except DatabaseError as exc:
            if exc.error_code not in self.dialect.ambiguous_empty_error_codes:
                raise
            if self.strict_empty_result:
                raise AmbiguousEmptyResultError(exc.orig_err, "ambiguous empty result", query) from exc
            logger.warning(
                "ambiguous_empty_version_result",
                table=self.table,
                error_code=exc.error_code,
                error=str(exc.orig_err),
            )
            return VersionRecord.missing()
        if row is None:
            return VersionRecord.missing()
        return VersionRecord(version=int(row[0]), dirty=bool(row[1]))

    def find_version(self, version: int) -> VersionRecord:
        query = f"SELECT version, dirty FROM {self._quoted_table} WHERE version = :version LIMIT 1"
        row = self.database.query_row(query, {"version": version})
        if row is None:
            return VersionRecord.missing()
        return VersionRecord(version=int(row[0]), dirty=bool(row[1]))

    def versions(self) -> list[VersionRecord]:
        """Return every recorded version in ascending order."""

        rows = self.database.query_all(
            f"SELECT version, dirty FROM {self._quoted_table} ORDER BY version ASC"
        )
        return [VersionRecord(version=int(row[0]), dirty=bool(row[1])) for row in rows]

    def set_version(self, version: int, dirty: bool) -> None:
        """Insert or update the row for ``version`` in a single transaction.

        Negative versions are not persisted.
        """

        with self.database.transaction():
            if version < 0:
                return
            if self.find_version(version).found:
                self.database.execute(
                    f"UPDATE {self._quoted_table} SET dirty = :dirty WHERE version = :version",
                    {"dirty": dirty, "version": version},
                )
            else:
                self.database.execute(
                    f"INSERT INTO {self._quoted_table} (version, dirty) VALUES (:version, :dirty)",
                    {"version": version, "dirty": dirty},
                )
        logger.info("version_set", table=self.table, version=version, dirty=dirty)

    def delete_version(self, version: int) -> None:
        self.database.execute(
            f"DELETE FROM {self._quoted_table} WHERE version = :version", {"version": version}
        )
        logger.info("version_deleted", table=self.table, version=version)

    def drop(self) -> None:
        """Drop every table in the current database, one at a time.

        A failing drop does not stop the pass; the first error is raised
        once every table has been tried. The empty migrations table is
        recreated only when all drops succeeded.
        """

        tables = self.dialect.list_tables()
        first_error: DatabaseError | None = None
        for table in tables:
            try:
                with self.database.transaction():
                    self.dialect.drop_table(table)
            except DatabaseError as exc:
                logger.error("drop_table_failed", table=table, error=str(exc))
                if first_error is None:
                    first_error = exc
                continue
            logger.info("table_dropped", table=table)

        if first_error is not None:
            raise first_error
        if tables:
            self.ensure_table()


__all__ = ["DEFAULT_MIGRATIONS_TABLE", "NIL_VERSION", "VersionHistory", "VersionRecord"]
