from __future__ import annotations

import concurrent.futures as _fut
import io
import os
from typing import BinaryIO, Iterable, Iterator, List, Optional, Tuple, Union

from .codec import encode_entry
from .constants import TABLE_OFFSET
from .entry import Entry, check_name
from .header import ArchiveHeader, TableRecord, write_header
from .options import DEFAULT_OPTIONS, Options


Name = Union[str, bytes]

_U32_MAX = 0xFFFFFFFF


def _normalize(entries: Iterable[Tuple[Name, bytes]], encoding: str) -> List[Tuple[bytes, bytes]]:
    items: List[Tuple[bytes, bytes]] = []
    for name, data in entries:
        if isinstance(name, str):
            name = name.encode(encoding)
        items.append((check_name(bytes(name)), bytes(data)))
    return items


def _encode_stream(items: List[Tuple[bytes, bytes]], options: Options) -> Iterator[bytes]:
    if options.workers > 1:
        with _fut.ThreadPoolExecutor(max_workers=options.workers) as ex:
            yield from ex.map(lambda it: encode_entry(it[0], it[1], options), items)
    else:
        for name, data in items:
            yield encode_entry(name, data, options)


def pack(dest: BinaryIO, entries: Iterable[Tuple[Name, bytes]], options: Optional[Options] = None) -> List[Entry]:
    """Write an archive holding ``entries`` to a fresh seekable stream.

    Data blocks are laid out in input order. The table and name blob are
    written last, in collation order, into the region reserved right after
    the header. Returns the entries in final table order (without data).

    Raises:
        ValueError: a name contains NUL or a size does not fit its field.
        CodecError: an asset failed to encode.
    """
    options = options or DEFAULT_OPTIONS
    items = _normalize(entries, options.encoding)
    header = ArchiveHeader.for_names([name for name, _ in items])
    if header.header_size > _U32_MAX:
        raise ValueError("File table too large")

    write_header(dest, header)
    # Reserve table + name blob; back-patched below
    dest.write(b"\x00" * (header.header_size - dest.tell()))

    records: List[Entry] = []
    for (name, _), data in zip(items, _encode_stream(items, options)):
        if len(data) > _U32_MAX:
            raise ValueError(f"Entry too large: {name!r}")
        records.append(Entry(name=name, data_size=len(data), data_origin=dest.tell()))
        dest.write(data)

    ordered = options.collation.sort(records)

    names_start = header.file_names_start
    dest.seek(names_start)
    for e in ordered:
        e.name_origin = dest.tell() - names_start
        dest.write(e.name)
        dest.write(b"\x00")

    dest.seek(TABLE_OFFSET)
    for e in ordered:
        dest.write(TableRecord(e.name_origin, e.data_size, e.data_origin).pack())

    dest.seek(0, io.SEEK_END)
    return ordered


def pack_bytes(entries: Iterable[Tuple[Name, bytes]], options: Optional[Options] = None) -> bytes:
    buf = io.BytesIO()
    pack(buf, entries, options)
    return buf.getvalue()


class ArchiveWriter:
    def __init__(self, path: str, options: Optional[Options] = None):
        self.path = path
        self.options = options or DEFAULT_OPTIONS
        self._items: List[Tuple[Name, bytes]] = []
        self.entries: List[Entry] = []
        self._finalized = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None and not self._finalized:
            self.finalize()

    def add_bytes(self, name: Name, data: bytes):
        if self._finalized:
            raise RuntimeError("Archive already finalized")
        self._items.append((name, data))

    def add_file(self, name: Name, fs_path: str):
        with open(fs_path, "rb") as rf:
            self.add_bytes(name, rf.read())

    def finalize(self) -> List[Entry]:
        if self._finalized:
            return self.entries
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        with open(self.path, "wb") as f:
            self.entries = pack(f, self._items, self.options)
        self._finalized = True
        self._items = []
        return self.entries
