from __future__ import annotations

import io
import itertools
import os
import struct
import tempfile
import unittest
import zlib
from pathlib import Path

from fjsys.collation import LowercaseCollation, canonical_key
from fjsys.constants import ARCHIVE_MAGIC, TABLE_OFFSET
from fjsys.errors import CodecError, FormatError
from fjsys.header import ArchiveHeader, read_header
from fjsys.mgd import PNG_SIGNATURE
from fjsys.mgd import encode as mgd_encode
from fjsys.options import Options
from fjsys.reader import ArchiveReader, read_table, unpack
from fjsys.stream import peek, read_until_zero
from fjsys.writer import ArchiveWriter, pack, pack_bytes


def _png(width: int = 4, height: int = 3) -> bytes:
    def chunk(kind: bytes, body: bytes) -> bytes:
        return struct.pack(">I", len(body)) + kind + body + struct.pack(">I", zlib.crc32(kind + body) & 0xFFFFFFFF)

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
    return PNG_SIGNATURE + chunk(b"IHDR", ihdr) + chunk(b"IEND", b"")


def _table_names(archive: bytes):
    f = io.BytesIO(archive)
    header = read_header(f)
    return [e.name for e in read_table(f, header)]


def _unpack_bytes(archive: bytes, options=None):
    return list(unpack(io.BytesIO(archive), options))


class _CountingIO(io.BytesIO):
    def __init__(self, data: bytes):
        super().__init__(data)
        self.reads = 0

    def read(self, n=-1):
        self.reads += 1
        return super().read(n)


SAMPLE = [
    (b"bg_01.png", b"background one"),
    (b"BG02.png", b"background two"),
    (b"sys.txt", b"system text\n" * 10),
    (b"voice/v_0001.ogg", os.urandom(777)),
    (b"empty.bin", b""),
]


class HeaderTests(unittest.TestCase):
    def test_header_arithmetic(self):
        archive = pack_bytes(SAMPLE)
        header = read_header(io.BytesIO(archive))
        self.assertEqual(header.file_count, len(SAMPLE))
        self.assertEqual(header.file_names_size, sum(len(n) + 1 for n, _ in SAMPLE))
        self.assertEqual(header.header_size - header.file_names_size, header.file_count * 16 + 84)
        self.assertTrue(header.is_consistent())

    def test_reserved_bytes_zero(self):
        archive = pack_bytes(SAMPLE)
        self.assertEqual(archive[:8], ARCHIVE_MAGIC)
        self.assertEqual(archive[20:84], b"\x00" * 64)

    def test_empty_archive(self):
        archive = pack_bytes([])
        self.assertEqual(len(archive), 84)
        self.assertEqual(struct.unpack_from("<III", archive, 8), (84, 0, 0))
        self.assertEqual(_unpack_bytes(archive), [])

    def test_for_names(self):
        h = ArchiveHeader.for_names([b"a", b"bc"])
        self.assertEqual(h.file_names_size, 5)
        self.assertEqual(h.file_names_start, 2 * 16 + TABLE_OFFSET)
        self.assertEqual(h.header_size, 5 + 116)


class CollationTests(unittest.TestCase):
    def test_canonical_key(self):
        self.assertEqual(canonical_key(b"A_B.TXT"), b"a/b.txt")

    def test_documented_example_any_input_order(self):
        names = [b"a.txt", b"a_b.txt", b"a0.txt"]
        for perm in itertools.permutations(names):
            archive = pack_bytes([(n, n) for n in perm])
            self.assertEqual(_table_names(archive), [b"a.txt", b"a_b.txt", b"a0.txt"])

    def test_case_insensitive(self):
        archive = pack_bytes([(b"b.txt", b""), (b"A.txt", b""), (b"C.txt", b"")])
        self.assertEqual(_table_names(archive), [b"A.txt", b"b.txt", b"C.txt"])

    def test_stable_for_equal_keys(self):
        archive = pack_bytes([(b"X.txt", b"1"), (b"x.txt", b"2")])
        self.assertEqual(_table_names(archive), [b"X.txt", b"x.txt"])
        archive = pack_bytes([(b"x.txt", b"2"), (b"X.txt", b"1")])
        self.assertEqual(_table_names(archive), [b"x.txt", b"X.txt"])

    def test_replaceable_strategy(self):
        names = [b"a0.txt", b"a_b.txt", b"a.txt"]
        archive = pack_bytes([(n, b"") for n in names], Options(collation=LowercaseCollation()))
        # '_' (0x5F) sorts after digits under a plain lowercase sort
        self.assertEqual(_table_names(archive), [b"a.txt", b"a0.txt", b"a_b.txt"])

    def test_table_order_independent_of_input_order(self):
        forward = pack_bytes(SAMPLE)
        backward = pack_bytes(list(reversed(SAMPLE)))
        self.assertEqual(_table_names(forward), _table_names(backward))

    def test_repack_of_unpacked_archive_uses_collation_order(self):
        original = pack_bytes(SAMPLE)
        pairs = _unpack_bytes(original)
        shuffled = pairs[2:] + pairs[:2]
        repacked = pack_bytes(shuffled)
        expected = sorted((n for n, _ in SAMPLE), key=canonical_key)
        self.assertEqual(_table_names(repacked), expected)


class RoundTripTests(unittest.TestCase):
    def test_roundtrip_pairs(self):
        archive = pack_bytes(SAMPLE)
        self.assertEqual(set(_unpack_bytes(archive)), set(SAMPLE))

    def test_data_laid_out_in_input_order(self):
        out = io.BytesIO()
        ordered = pack(out, SAMPLE)
        origins = {e.name: e.data_origin for e in ordered}
        header_size = read_header(io.BytesIO(out.getvalue())).header_size
        pos = header_size
        for name, data in SAMPLE:
            self.assertEqual(origins[name], pos)
            pos += len(data)
        self.assertEqual(len(out.getvalue()), pos)

    def test_name_origins_follow_table_order(self):
        out = io.BytesIO()
        ordered = pack(out, SAMPLE)
        origin = 0
        for e in ordered:
            self.assertEqual(e.name_origin, origin)
            origin += len(e.name) + 1

    def test_str_names_encoded(self):
        archive = pack_bytes([("テスト.txt", b"x")])
        self.assertEqual(_unpack_bytes(archive), [("テスト.txt".encode("cp932"), b"x")])

    def test_name_with_nul_rejected(self):
        with self.assertRaises(ValueError):
            pack_bytes([(b"bad\x00name", b"")])

    def test_workers_match_sequential(self):
        key = b"secret"
        entries = SAMPLE + [(b"scene.msd", b"script body " * 40), (b"cg.mgd", _png())]
        seq = pack_bytes(entries, Options(msd_key=key))
        par = pack_bytes(entries, Options(msd_key=key, workers=4))
        self.assertEqual(seq, par)
        self.assertEqual(
            _unpack_bytes(seq, Options(msd_key=key)),
            _unpack_bytes(seq, Options(msd_key=key, workers=4)),
        )

    def test_duplicate_names_kept(self):
        archive = pack_bytes([(b"a.txt", b"1"), (b"a.txt", b"2")])
        self.assertEqual(_unpack_bytes(archive), [(b"a.txt", b"1"), (b"a.txt", b"2")])


class CodecDispatchTests(unittest.TestCase):
    def test_mgd_roundtrip_through_archive(self):
        png = _png(16, 9)
        archive = pack_bytes([(b"cg01.MGD", png)])
        raw = read_header(io.BytesIO(archive))
        self.assertIn(b"MGD ", archive[raw.header_size:raw.header_size + 4])
        self.assertEqual(_unpack_bytes(archive), [(b"cg01.MGD", png)])

    def test_msd_with_key(self):
        body = b"#script\nshow cg01\n" * 5
        archive = pack_bytes([(b"main.MSD", body)], Options(msd_key=b"k"))
        self.assertNotIn(body, archive)
        self.assertEqual(_unpack_bytes(archive, Options(msd_key=b"k")), [(b"main.MSD", body)])
        # Without a key the stored bytes come back untouched
        (_, stored), = _unpack_bytes(archive)
        self.assertNotEqual(stored, body)
        self.assertEqual(len(stored), len(body))

    def test_msd_without_key_passes_through(self):
        body = b"plain script"
        archive = pack_bytes([(b"main.msd", body)])
        self.assertEqual(_unpack_bytes(archive), [(b"main.msd", body)])

    def test_signature_beats_script_extension(self):
        png = _png()
        mgd = mgd_encode(png)
        # Stored under a script name; encode passes it through untouched
        archive = pack_bytes([(b"odd.msd", mgd)])
        self.assertEqual(_unpack_bytes(archive, Options(msd_key=b"k")), [(b"odd.msd", png)])

    def test_other_names_pass_through(self):
        data = b"MGX not an image"
        archive = pack_bytes([(b"readme.txt", data)])
        self.assertEqual(_unpack_bytes(archive), [(b"readme.txt", data)])

    def test_codec_error_propagates(self):
        with self.assertRaises(CodecError):
            pack_bytes([(b"broken.mgd", b"not a png")])
        bogus = b"MGD " + b"\x00" * 4
        archive = pack_bytes([(b"x.bin", bogus)])
        with self.assertRaises(CodecError):
            _unpack_bytes(archive)


class FormatErrorTests(unittest.TestCase):
    def test_magic_mismatch_reads_nothing_more(self):
        src = _CountingIO(b"NOTFJSYS" + b"\x00" * 200)
        with self.assertRaises(FormatError):
            unpack(src)
        self.assertEqual(src.reads, 1)
        self.assertEqual(src.tell(), 8)

    def test_truncated_header(self):
        archive = pack_bytes(SAMPLE)
        with self.assertRaises(FormatError):
            unpack(io.BytesIO(archive[:50]))

    def test_names_size_exceeds_header(self):
        archive = bytearray(pack_bytes(SAMPLE))
        header_size = struct.unpack_from("<I", archive, 8)[0]
        struct.pack_into("<I", archive, 12, header_size + 1)
        with self.assertRaises(FormatError):
            unpack(io.BytesIO(bytes(archive)))

    def test_truncated_table(self):
        archive = pack_bytes(SAMPLE)
        with self.assertRaises(FormatError):
            _unpack_bytes(archive[:TABLE_OFFSET + 20])

    def test_truncated_data(self):
        archive = pack_bytes([(b"a.bin", b"x" * 100)])
        with self.assertRaises(FormatError):
            _unpack_bytes(archive[:-10])

    def test_data_origin_out_of_range(self):
        archive = bytearray(pack_bytes([(b"a.bin", b"abc")]))
        # data_origin of the only table record
        struct.pack_into("<Q", archive, TABLE_OFFSET + 8, 2**63 + 5)
        with self.assertRaises(FormatError):
            _unpack_bytes(bytes(archive))

    def test_data_origin_past_end(self):
        archive = bytearray(pack_bytes([(b"a.bin", b"abc")]))
        struct.pack_into("<Q", archive, TABLE_OFFSET + 8, len(archive) + 100)
        with self.assertRaises(FormatError):
            _unpack_bytes(bytes(archive))

    def test_missing_nul(self):
        archive = bytearray(pack_bytes([(b"abc", b"")]))
        # Overwrite the terminator and cut the stream right after the name
        header = read_header(io.BytesIO(bytes(archive)))
        end = header.header_size
        archive[end - 1] = ord("d")
        with self.assertRaises(FormatError):
            _unpack_bytes(bytes(archive[:end]))

    def test_entries_before_error_are_valid(self):
        archive = pack_bytes([(b"a.bin", b"first"), (b"b.bin", b"second")])
        it = unpack(io.BytesIO(archive[:-3]))
        self.assertEqual(next(it), (b"a.bin", b"first"))
        with self.assertRaises(FormatError):
            next(it)


class StreamTests(unittest.TestCase):
    def test_peek_rejects_huge_offset(self):
        f = io.BytesIO(b"abc")
        f.seek(1)
        with self.assertRaises(FormatError):
            with peek(f, 2**64):
                pass
        self.assertEqual(f.tell(), 1)

    def test_peek_restores_on_error(self):
        f = io.BytesIO(b"abc\x00def")
        f.seek(2)
        with self.assertRaises(RuntimeError):
            with peek(f, 0):
                raise RuntimeError("boom")
        self.assertEqual(f.tell(), 2)

    def test_read_until_zero_positions_cursor(self):
        f = io.BytesIO(b"name\x00rest")
        self.assertEqual(read_until_zero(f), b"name")
        self.assertEqual(f.read(), b"rest")


class ArchiveFileTests(unittest.TestCase):
    def run_with_tmpdir(self, func):
        with tempfile.TemporaryDirectory() as tmp:
            func(Path(tmp))

    def test_writer_and_reader_files(self):
        def scenario(tmp_path: Path):
            src = tmp_path / "sys.txt"
            src.write_bytes(b"from disk")
            archive_path = tmp_path / "out" / "data.fjsys"
            with ArchiveWriter(str(archive_path)) as w:
                w.add_bytes(b"z.txt", b"zzz")
                w.add_file(b"sys.txt", str(src))
            with ArchiveReader(str(archive_path)) as r:
                self.assertEqual([e.name for e in r.list()], [b"sys.txt", b"z.txt"])
                self.assertEqual([r.read(e) for e in r.list()], [b"from disk", b"zzz"])
                self.assertEqual(list(r.unpack()), [(b"sys.txt", b"from disk"), (b"z.txt", b"zzz")])

        self.run_with_tmpdir(scenario)

    def test_reader_rejects_bad_file(self):
        def scenario(tmp_path: Path):
            bad = tmp_path / "bad.fjsys"
            bad.write_bytes(b"garbage!" * 4)
            r = ArchiveReader(str(bad))
            with self.assertRaises(FormatError):
                r.open()
            self.assertIsNone(r.f)

        self.run_with_tmpdir(scenario)


if __name__ == "__main__":
    unittest.main()
