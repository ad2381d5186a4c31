"""Database access for sqlmigrate built around a single SQLAlchemy connection."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator, Mapping

import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Connection, Engine, Row
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from .errors import DatabaseError

logger = structlog.get_logger(__name__)

Params = Mapping[str, Any]


class Database:
    """Lightweight wrapper exposing the few SQL features the driver relies on.

    Every statement runs on the same connection so that session-scoped
    state such as advisory locks stays with it. Statements are always
    executed inside :meth:`transaction`; nested calls join the outer one.
    """

    def __init__(self, connection: Connection, engine: Engine | None = None) -> None:
        self.connection = connection
        self.engine = engine
        self.dialect = connection.dialect.name
        self._depth = 0

    @classmethod
    def from_url(cls, url: str | URL, **engine_kwargs: Any) -> "Database":
        """Open a dedicated engine and connection for ``url``."""

        try:
            engine = create_engine(url, **engine_kwargs)
        except SQLAlchemyError as exc:
            raise DatabaseError(exc, "invalid database url") from exc
        try:
            connection = engine.connect()
        except SQLAlchemyError as exc:
            engine.dispose()
            raise DatabaseError(exc, "connection failed") from exc
        return cls(connection, engine=engine)

    # Transactions ---------------------------------------------------------
    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        if self._depth:
            self._depth += 1
            try:
                yield self.connection
            finally:
                self._depth -= 1
            return

        if self.connection.in_transaction():
            # work left pending on a caller supplied connection is settled first
            try:
                self.connection.commit()
            except SQLAlchemyError as exc:
                raise DatabaseError(exc, "transaction start failed") from exc
            logger.debug("pending_transaction_committed")

        try:
            trans = self.connection.begin()
        except SQLAlchemyError as exc:
            raise DatabaseError(exc, "transaction start failed") from exc

        self._depth = 1
        try:
            yield self.connection
        except BaseException:
            self._depth = 0
            try:
                trans.rollback()
            except SQLAlchemyError as rollback_exc:
                logger.warning("rollback_failed", error=str(rollback_exc))
            raise
        self._depth = 0
        try:
            trans.commit()
        except SQLAlchemyError as exc:
            raise DatabaseError(exc, "transaction commit failed") from exc

    # Statement helpers ----------------------------------------------------
    def execute(self, query: str, params: Params | None = None) -> int:
        """Run a parameterised statement and return the affected row count."""

        with self.transaction() as conn:
            try:
                result = conn.execute(text(query), dict(params or {}))
            except SQLAlchemyError as exc:
                raise DatabaseError(exc, query=query) from exc
            return result.rowcount

    def query_row(self, query: str, params: Params | None = None) -> Row | None:
        with self.transaction() as conn:
            try:
                return conn.execute(text(query), dict(params or {})).first()
            except SQLAlchemyError as exc:
                raise DatabaseError(exc, query=query) from exc

    def query_all(self, query: str, params: Params | None = None) -> list[Row]:
        with self.transaction() as conn:
            try:
                return list(conn.execute(text(query), dict(params or {})).all())
            except SQLAlchemyError as exc:
                raise DatabaseError(exc, query=query) from exc

    def execute_batch(self, script: str, run: Callable[[Any, str], None]) -> None:
        """Hand ``script`` to a raw DBAPI cursor as a single batch.

        ``run`` receives the cursor and the script and decides how the
        driver executes several statements at once. DBAPI errors are
        re-raised as :class:`sqlalchemy.exc.DBAPIError` subclasses so they
        look like any other statement failure.
        """

        with self.transaction() as conn:
            dbapi_error = conn.dialect.loaded_dbapi.Error
            cursor = conn.connection.cursor()
            try:
                run(cursor, script)
            except dbapi_error as exc:
                raise DBAPIError.instance(
                    script, None, exc, dbapi_error, dialect=conn.dialect
                ) from exc
            finally:
                cursor.close()

    def ping(self) -> None:
        self.query_row("SELECT 1")

    def close(self) -> None:
        try:
            self.connection.close()
        finally:
            if self.engine is not None:
                self.engine.dispose()


__all__ = ["Database", "Params"]
