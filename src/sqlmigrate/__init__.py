"""sqlmigrate package exports."""

from .config import get_settings
from .driver import Driver, DriverConfig
from .errors import (
    AmbiguousEmptyResultError,
    DatabaseError,
    DirtyDatabaseError,
    LockedError,
    MigrateError,
    MigrationError,
    NilConfigError,
    NoDatabaseNameError,
)
from .history import NIL_VERSION, VersionHistory, VersionRecord
from .lock import LockCoordinator, LockState
from .migrations import Migration, apply_migration
from .splitter import StatementRange, split_query, split_ranges
from .util.lock_id import generate_advisory_lock_id

__all__ = [
    "AmbiguousEmptyResultError",
    "DatabaseError",
    "DirtyDatabaseError",
    "Driver",
    "DriverConfig",
    "LockCoordinator",
    "LockState",
    "LockedError",
    "MigrateError",
    "Migration",
    "MigrationError",
    "NIL_VERSION",
    "NilConfigError",
    "NoDatabaseNameError",
    "StatementRange",
    "VersionHistory",
    "VersionRecord",
    "apply_migration",
    "generate_advisory_lock_id",
    "get_settings",
    "split_query",
    "split_ranges",
]
