"""Apply one versioned migration with dirty-flag bookkeeping."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

import structlog

from .driver import Driver
from .errors import DirtyDatabaseError

logger = structlog.get_logger(__name__)

_FILENAME_REGEX = re.compile(r"^(?P<version>\d+)(?:_(?P<name>[^.]*))?(?:\.[^.]+)*\.sql$")


@dataclass(frozen=True)
class Migration:
    """A SQL migration body tagged with the version it brings the schema to."""

    version: int
    body: bytes
    name: str = ""

    @classmethod
    def from_path(cls, path: Path, version: int | None = None) -> "Migration":
        """Load ``path``; the version comes from a ``<version>_<name>.sql`` filename."""

        match = _FILENAME_REGEX.match(path.name)
        if version is None:
            if match is None:
                msg = f"cannot parse a version from {path.name!r}; expected <version>_<name>.sql"
                raise ValueError(msg)
            version = int(match.group("version"))
        name = (match.group("name") or "") if match else path.stem
        return cls(version=version, body=path.read_bytes(), name=name)


def apply_migration(driver: Driver, migration: Migration) -> None:
    """Run ``migration`` under the advisory lock.

    The version is recorded dirty before the body runs and cleared only
    after it succeeded, so a failed run leaves it dirty for an operator.
    """

    with driver.locker:
        current = driver.version()
        if current.dirty:
            raise DirtyDatabaseError(current.version)

        logger.info("migration_started", version=migration.version, name=migration.name)
        driver.set_version(migration.version, True)
        driver.run(migration.body)
        driver.set_version(migration.version, False)
        logger.info("migration_applied", version=migration.version, name=migration.name)


__all__ = ["Migration", "apply_migration"]
