from __future__ import annotations

from contextlib import contextmanager
from typing import BinaryIO, Iterator

from .errors import FormatError


_NAME_READ_SIZE = 64


def read_exact(f: BinaryIO, n: int, what: str = "data") -> bytes:
    b = f.read(n)
    if len(b) != n:
        raise FormatError(f"Unexpected EOF while reading {what} ({len(b)}/{n} bytes)")
    return b


def read_until_zero(f: BinaryIO) -> bytes:
    """Read bytes up to a NUL terminator and leave the cursor just past it."""
    start = f.tell()
    buf = bytearray()
    while True:
        chunk = f.read(_NAME_READ_SIZE)
        if not chunk:
            raise FormatError(f"Missing NUL terminator for string at offset {start}")
        idx = chunk.find(b"\x00")
        if idx >= 0:
            buf += chunk[:idx]
            f.seek(start + len(buf) + 1)
            return bytes(buf)
        buf += chunk


@contextmanager
def peek(f: BinaryIO, offset: int) -> Iterator[BinaryIO]:
    """Temporarily move the cursor to ``offset``; the previous position is
    restored on every exit path."""
    pos = f.tell()
    try:
        f.seek(offset)
    except (OverflowError, ValueError) as exc:
        raise FormatError(f"Offset out of range: {offset}") from exc
    try:
        yield f
    finally:
        f.seek(pos)
