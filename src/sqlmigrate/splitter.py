"""Split migration bodies into individually executable statements."""

from __future__ import annotations

from dataclasses import dataclass

_SEPARATOR = ord(";")
_BACKSLASH = ord("\\")
_QUOTES = b"'\""
_LEADING_BLANKS = b" \n"


@dataclass(frozen=True)
class StatementRange:
    """One statement of a migration body with its byte offsets."""

    index: int
    start: int
    end: int
    content: bytes


def split_ranges(buf: bytes | str) -> list[StatementRange]:
    """Split ``buf`` on semicolons that are neither quoted nor escaped.

    Spaces and newlines directly at the start of a statement are skipped;
    everything else, including trailing whitespace, is kept verbatim.
    Adjacent separators produce an empty statement.
    """

    if isinstance(buf, str):
        buf = buf.encode("utf-8")

    ranges: list[StatementRange] = []
    size = len(buf)
    last = 0
    escaped = quoted = False
    quote = 0
    for i in range(size + 1):
        if i == last and (i == size or buf[i] in _LEADING_BLANKS):
            last = i + 1
            continue
        if i == size or (buf[i] == _SEPARATOR and not escaped and not quoted):
            ranges.append(StatementRange(index=len(ranges), start=last, end=i, content=buf[last:i]))
            last = i + 1
            continue

        byte = buf[i]
        if escaped:
            escaped = False
            continue
        escaped = byte == _BACKSLASH
        if quoted:
            if byte == quote:
                quoted = False
        elif byte in _QUOTES:
            quoted = True
            quote = byte
    return ranges


def split_query(buf: bytes | str) -> list[bytes]:
    """Return only the statement contents of :func:`split_ranges`."""

    return [statement.content for statement in split_ranges(buf)]


__all__ = ["StatementRange", "split_query", "split_ranges"]
