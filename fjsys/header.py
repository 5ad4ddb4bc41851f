from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO

from .constants import ARCHIVE_MAGIC, HEADER_SIZE, RESERVED_SIZE, file_names_start
from .errors import FormatError
from .stream import read_exact


# Header record following the magic (fixed 76 bytes)
# struct: <I I I 64x
#  - header_size u32 (table + name blob end, absolute)
#  - file_names_size u32
#  - file_count u32
#  - reserved[64] (zero on write, ignored on read)
_HEADER_STRUCT = struct.Struct(f"<III{RESERVED_SIZE}x")
_TABLE_RECORD_STRUCT = struct.Struct("<IIQ")

assert _HEADER_STRUCT.size == HEADER_SIZE


@dataclass
class ArchiveHeader:
    header_size: int
    file_names_size: int
    file_count: int

    @classmethod
    def for_names(cls, names) -> "ArchiveHeader":
        count = len(names)
        names_size = sum(len(n) + 1 for n in names)
        return cls(
            header_size=names_size + file_names_start(count),
            file_names_size=names_size,
            file_count=count,
        )

    @property
    def file_names_start(self) -> int:
        return self.header_size - self.file_names_size

    def is_consistent(self) -> bool:
        """True when the name blob starts right after the table."""
        return self.file_names_start == file_names_start(self.file_count)

    def pack(self) -> bytes:
        return _HEADER_STRUCT.pack(self.header_size, self.file_names_size, self.file_count)


@dataclass
class TableRecord:
    name_origin: int
    data_size: int
    data_origin: int

    SIZE = _TABLE_RECORD_STRUCT.size

    def pack(self) -> bytes:
        return _TABLE_RECORD_STRUCT.pack(self.name_origin, self.data_size, self.data_origin)

    @classmethod
    def unpack(cls, raw: bytes) -> "TableRecord":
        name_origin, data_size, data_origin = _TABLE_RECORD_STRUCT.unpack(raw)
        return cls(name_origin=name_origin, data_size=data_size, data_origin=data_origin)


def read_magic(f: BinaryIO) -> None:
    magic = f.read(len(ARCHIVE_MAGIC))
    if magic != ARCHIVE_MAGIC:
        raise FormatError("Not a FJSYS archive")


def read_header(f: BinaryIO) -> ArchiveHeader:
    """Read and check the magic, then parse the fixed header record."""
    read_magic(f)
    raw = read_exact(f, _HEADER_STRUCT.size, "header")
    header_size, file_names_size, file_count = _HEADER_STRUCT.unpack(raw)
    if file_names_size > header_size:
        raise FormatError("Name blob larger than header region")
    return ArchiveHeader(header_size=header_size, file_names_size=file_names_size, file_count=file_count)


def read_table_record(f: BinaryIO) -> TableRecord:
    return TableRecord.unpack(read_exact(f, TableRecord.SIZE, "table record"))


def write_header(f: BinaryIO, header: ArchiveHeader) -> None:
    f.write(ARCHIVE_MAGIC)
    f.write(header.pack())
