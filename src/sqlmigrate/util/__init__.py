"""Utility helpers shared across sqlmigrate modules."""

from .lock_id import ADVISORY_LOCK_ID_SALT, generate_advisory_lock_id  # noqa: F401

__all__ = ["ADVISORY_LOCK_ID_SALT", "generate_advisory_lock_id"]
