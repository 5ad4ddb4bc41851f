from __future__ import annotations

import concurrent.futures as _fut
from typing import BinaryIO, Iterator, List, Optional, Tuple

from .codec import decode_entry
from .entry import Entry
from .errors import FjsysError
from .header import ArchiveHeader, read_header, read_table_record
from .options import DEFAULT_OPTIONS, Options
from .stream import peek, read_exact, read_until_zero


def iter_entries(f: BinaryIO, header: ArchiveHeader, *, with_data: bool = True) -> Iterator[Entry]:
    """Walk the file table in order, resolving names (and raw data) through
    nested peeks so the cursor always ends up after the last table record read.
    """
    names_start = header.file_names_start
    for _ in range(header.file_count):
        rec = read_table_record(f)
        with peek(f, names_start + rec.name_origin):
            name = read_until_zero(f)
        data = None
        if with_data:
            with peek(f, rec.data_origin):
                data = read_exact(f, rec.data_size, f"data of {name!r}")
        yield Entry(
            name=name,
            data=data,
            data_size=rec.data_size,
            data_origin=rec.data_origin,
            name_origin=rec.name_origin,
        )


def read_table(f: BinaryIO, header: ArchiveHeader) -> List[Entry]:
    return list(iter_entries(f, header, with_data=False))


def _decode_lazy(f: BinaryIO, header: ArchiveHeader, options: Options) -> Iterator[Tuple[bytes, bytes]]:
    for e in iter_entries(f, header):
        yield e.name, decode_entry(e.name, e.data, options)


def _decode_parallel(f: BinaryIO, header: ArchiveHeader, options: Options) -> Iterator[Tuple[bytes, bytes]]:
    # All reads happen on this thread; workers only see in-memory buffers
    entries = list(iter_entries(f, header))
    with _fut.ThreadPoolExecutor(max_workers=options.workers) as ex:
        decoded = ex.map(lambda e: decode_entry(e.name, e.data, options), entries)
        for e, data in zip(entries, decoded):
            yield e.name, data


def unpack(source: BinaryIO, options: Optional[Options] = None) -> Iterator[Tuple[bytes, bytes]]:
    """Unpack an archive into ``(name, data)`` pairs in table order.

    The magic and header are checked before this returns; the entries
    themselves are read and decoded as the returned iterator is consumed.
    The iterator is forward-only: call ``unpack`` again to start over.

    Raises:
        FormatError: bad magic, truncated structures or a missing NUL.
        CodecError: an embedded asset failed to decode.
    """
    options = options or DEFAULT_OPTIONS
    header = read_header(source)
    if options.workers > 1:
        return _decode_parallel(source, header, options)
    return _decode_lazy(source, header, options)


class ArchiveReader:
    def __init__(self, path: str, options: Optional[Options] = None):
        self.path = path
        self.options = options or DEFAULT_OPTIONS
        self.f: Optional[BinaryIO] = None
        self.header: Optional[ArchiveHeader] = None
        self.entries: List[Entry] = []

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.f is not None:
            return
        self.f = open(self.path, "rb")
        try:
            self.header = read_header(self.f)
            self.entries = read_table(self.f, self.header)
        except (FjsysError, OSError) as exc:
            self.close()
            raise exc

    def close(self):
        if self.f is not None:
            self.f.close()
            self.f = None

    def list(self) -> List[Entry]:
        return self.entries

    def read_raw(self, entry: Entry) -> bytes:
        if self.f is None:
            raise RuntimeError("Archive not open")
        with peek(self.f, entry.data_origin):
            return read_exact(self.f, entry.data_size, f"data of {entry.name!r}")

    def read(self, entry: Entry) -> bytes:
        return decode_entry(entry.name, self.read_raw(entry), self.options)

    def unpack(self) -> Iterator[Tuple[bytes, bytes]]:
        if self.f is None:
            raise RuntimeError("Archive not open")
        self.f.seek(0)
        return unpack(self.f, self.options)
