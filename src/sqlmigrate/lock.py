"""Advisory locking around migration runs."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Protocol

import structlog

from .dialects import Dialect
from .errors import DatabaseError, LockedError, MigrateError
from .util.lock_id import generate_advisory_lock_id

logger = structlog.get_logger(__name__)


class AdvisoryLockBackend(Protocol):
    def try_lock(self, lock_id: str) -> bool:
        ...

    def release_lock(self, lock_id: str) -> None:
        ...


@dataclass(slots=True)
class ServerLock:
    """Named lock held by the database session of ``dialect``."""

    dialect: Dialect
    timeout: int = 1

    def try_lock(self, lock_id: str) -> bool:
        try:
            return self.dialect.try_lock(lock_id, self.timeout)
        except DatabaseError as exc:
            raise DatabaseError(exc.orig_err, "try lock failed", exc.query) from exc

    def release_lock(self, lock_id: str) -> None:
        self.dialect.release_lock(lock_id)


class LockState(enum.Enum):
    UNLOCKED = "unlocked"
    LOCKED = "locked"


class LockCoordinator:
    """Two-state guard in front of a server-side advisory lock.

    The local state only stops one instance from acquiring twice; exclusion
    between processes comes from the server lock, which the server drops on
    its own when the session dies.
    """

    def __init__(self, backend: AdvisoryLockBackend, database_name: str) -> None:
        self.backend = backend
        self.database_name = database_name
        self.state = LockState.UNLOCKED

    @property
    def locked(self) -> bool:
        return self.state is LockState.LOCKED

    def acquire(self) -> None:
        if self.locked:
            raise LockedError()

        lock_id = generate_advisory_lock_id(self.database_name)
        if not self.backend.try_lock(lock_id):
            logger.info("lock_busy", database=self.database_name, lock_id=lock_id)
            raise LockedError()

        self.state = LockState.LOCKED
        logger.debug("lock_acquired", database=self.database_name, lock_id=lock_id)

    def release(self) -> None:
        if not self.locked:
            return

        lock_id = generate_advisory_lock_id(self.database_name)
        # stays LOCKED when the unlock call itself fails
        self.backend.release_lock(lock_id)
        self.state = LockState.UNLOCKED
        logger.debug("lock_released", database=self.database_name, lock_id=lock_id)

    def __enter__(self) -> "LockCoordinator":
        self.acquire()
        return self

    def __exit__(self, exc_type: type[BaseException] | None, *exc_info: object) -> None:
        if exc_type is None:
            self.release()
            return
        # the error that ended the block wins over a failed release
        try:
            self.release()
        except MigrateError as release_exc:
            logger.error(
                "lock_release_failed", database=self.database_name, error=str(release_exc)
            )


__all__ = ["AdvisoryLockBackend", "LockCoordinator", "LockState", "ServerLock"]
