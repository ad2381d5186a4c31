"""Deterministic advisory lock identifiers."""

from __future__ import annotations

import zlib

ADVISORY_LOCK_ID_SALT = 1486364155

_UINT32_MASK = 0xFFFFFFFF


def generate_advisory_lock_id(database_name: str) -> str:
    """Return the lock token shared by every migrator of ``database_name``.

    CRC-32 of the name times a fixed salt, truncated to 32 bits, as a decimal
    string. Different names may collide; they then share one lock.
    """

    checksum = zlib.crc32(database_name.encode("utf-8")) & _UINT32_MASK
    return str((checksum * ADVISORY_LOCK_ID_SALT) & _UINT32_MASK)


__all__ = ["ADVISORY_LOCK_ID_SALT", "generate_advisory_lock_id"]
