"""Exception types raised by sqlmigrate."""

from __future__ import annotations


class MigrateError(Exception):
    """Base class for every error sqlmigrate raises on purpose."""


class DatabaseError(MigrateError):
    """A database call failed.

    Carries the underlying exception, an optional phase label such as
    ``"migration failed"`` and the offending query so callers can see what
    failed without parsing the message.
    """

    def __init__(
        self,
        orig_err: BaseException | None = None,
        phase: str | None = None,
        query: bytes | str | None = None,
    ) -> None:
        if isinstance(query, str):
            query = query.encode("utf-8")
        self.orig_err = orig_err
        self.phase = phase
        self.query = query
        super().__init__(self._render())

    @property
    def error_code(self) -> int | None:
        """Vendor error number reported by the DBAPI driver, if any."""

        dbapi_err = getattr(self.orig_err, "orig", None) or self.orig_err
        args = getattr(dbapi_err, "args", ())
        if args and isinstance(args[0], int) and not isinstance(args[0], bool):
            return args[0]
        return None

    def _render(self) -> str:
        parts = []
        if self.phase:
            parts.append(self.phase)
        if self.orig_err is not None:
            parts.append(str(self.orig_err))
        message = ": ".join(parts) or "database error"
        if self.query:
            message += f"\nquery: {self.query.decode('utf-8', errors='replace')}"
        return message


class MigrationError(DatabaseError):
    """A statement of a migration body failed to execute."""


class AmbiguousEmptyResultError(DatabaseError):
    """The driver reported an error that may just mean "no rows"."""


class LockedError(MigrateError):
    def __init__(self) -> None:
        super().__init__("can't acquire lock")


class DirtyDatabaseError(MigrateError):
    """The current version is dirty and needs an operator to resolve it."""

    def __init__(self, version: int) -> None:
        self.version = version
        super().__init__(f"database is dirty at version {version}")


class NilConfigError(MigrateError):
    def __init__(self) -> None:
        super().__init__("no config")


class NoDatabaseNameError(MigrateError):
    def __init__(self) -> None:
        super().__init__("no database name")


__all__ = [
    "AmbiguousEmptyResultError",
    "DatabaseError",
    "DirtyDatabaseError",
    "LockedError",
    "MigrateError",
    "MigrationError",
    "NilConfigError",
    "NoDatabaseNameError",
]
