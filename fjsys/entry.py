from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class Entry:
    name: bytes
    data: Optional[bytes] = None
    # Filled in while reading the table or while writing data blocks
    data_size: int = 0
    data_origin: int = 0
    name_origin: int = 0

    def display_name(self, encoding: str) -> str:
        return self.name.decode(encoding, errors="replace")


def check_name(name: bytes) -> bytes:
    if b"\x00" in name:
        raise ValueError(f"Entry name may not contain NUL: {name!r}")
    return name
