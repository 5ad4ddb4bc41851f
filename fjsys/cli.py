from __future__ import annotations

import os
import sys
import time
import argparse

from typing import List, Optional, Tuple

from fjsys.collation import COLLATIONS, DEFAULT_COLLATION, get_collation
from fjsys.constants import DEFAULT_NAME_ENCODING, file_names_start
from fjsys.errors import FjsysError, FormatError, CodecError
from fjsys.msd import COMMON_KEYS, RAW_KEY_PREFIX, load_key_registry, resolve_key
from fjsys.options import Options
from fjsys.pathutil import name_to_path, path_to_name
from fjsys.reader import ArchiveReader
from fjsys.writer import ArchiveWriter


_CODEC_HINTS = {
    "mgd": "the image asset uses an MGD variant that cannot be converted (only PNG-backed MGD is supported).",
    "msd": "pass the right MSD key with --key/--raw-key.",
    "": "check the asset named in the error.",
}


def _next_nonconflicting_path(path: str) -> str:
    if not os.path.exists(path) and not os.path.lexists(path):
        return path
    base_dir = os.path.dirname(path)
    name = os.path.basename(path)
    root, ext = os.path.splitext(name)
    i = 1
    while True:
        candidate = os.path.join(base_dir, f"{root} ({i}){ext}")
        if not os.path.exists(candidate) and not os.path.lexists(candidate):
            return candidate
        i += 1


def build_options(
    *,
    key: Optional[str] = None,
    raw_key: Optional[str] = None,
    key_file: Optional[str] = None,
    jobs: int = 1,
    encoding: str = DEFAULT_NAME_ENCODING,
    collation: str = DEFAULT_COLLATION.name,
) -> Options:
    """Turn command-line settings into reader/writer options.

    Args:
        key: Name of a registered MSD key, or ``raw:<material>``.
        raw_key: MSD key material given directly; wins over ``key``.
        key_file: JSON file with additional named keys.
        jobs: Codec worker threads.
        encoding: Encoding of entry names on disk.
        collation: Name of the table ordering strategy.
    """
    msd_key = None
    if raw_key is not None:
        msd_key = raw_key.encode("utf-8")
    elif key is not None:
        msd_key = resolve_key(key, load_key_registry(key_file))
    return Options(
        msd_key=msd_key,
        workers=max(1, int(jobs)),
        encoding=encoding,
        collation=get_collation(collation),
    )


def _collect_inputs(inputs: List[str], encoding: str) -> List[Tuple[bytes, str, int]]:
    """Expand files and directories into (archive name, path, size) triples."""
    files: List[Tuple[bytes, str, int]] = []
    for p in inputs:
        if os.path.isdir(p):
            for root, dirnames, filenames in os.walk(p):
                dirnames.sort()
                for fn in sorted(filenames):
                    full = os.path.join(root, fn)
                    rel = os.path.relpath(full, start=p)
                    files.append((path_to_name(rel, encoding), full, os.path.getsize(full)))
        elif os.path.isfile(p):
            files.append((path_to_name(os.path.basename(p), encoding), p, os.path.getsize(p)))
        else:
            raise FileNotFoundError(f"No such file or directory: {p}")
    return files


def cmd_pack(output: str, inputs: List[str], *, options: Optional[Options] = None, quiet: bool = False) -> bool:
    """Pack files and directories into a new archive.

    The archive is written next to ``output`` under a temporary name and moved
    into place once complete.
    """
    options = options or Options()
    files = _collect_inputs(inputs, options.encoding)

    seen = set()
    for name, full, _size in files:
        if name in seen:
            print(f"Warning: duplicate entry name {name.decode(options.encoding, 'replace')} ({full})", file=sys.stderr)
        seen.add(name)

    t0 = time.time()
    total_bytes = sum(sz for _, _, sz in files) or 1
    processed = 0
    tmp = output + ".tmp"
    try:
        with ArchiveWriter(tmp, options=options) as w:
            for name, full, size in files:
                w.add_file(name, full)
                processed += size
                if not quiet:
                    pct = processed * 100.0 / total_bytes
                    print(f" {pct:6.2f}% packing: {name.decode(options.encoding, 'replace')}")
            w.finalize()
        os.replace(tmp, output)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise

    dt = max(0.000001, time.time() - t0)
    mib = processed / (1024.0 * 1024.0)
    print(f"Done: {len(files)} files; {mib:.2f} MiB in {dt:.1f}s; {mib / dt:.2f} MiB/s")
    return True


def cmd_unpack(
    archive: str,
    *,
    outdir: str = ".",
    options: Optional[Options] = None,
    exists: str = "rename",
    quiet: bool = False,
) -> bool:
    """Unpack every entry of an archive into a directory, decoding known assets."""
    options = options or Options()
    t0 = time.time()
    processed_bytes = 0
    renamed_entries = 0
    skipped_entries = 0
    with ArchiveReader(archive, options=options) as r:
        total = len(r.entries)
        for i, (name, data) in enumerate(r.unpack(), start=1):
            label = name.decode(options.encoding, errors="replace")
            dst = os.path.join(outdir or ".", name_to_path(name, options.encoding))
            os.makedirs(os.path.dirname(dst) or ".", exist_ok=True)
            actual_dst = dst
            rename_note = None
            if os.path.exists(actual_dst) or os.path.islink(actual_dst):
                if exists == "overwrite":
                    if os.path.isdir(actual_dst) and not os.path.islink(actual_dst):
                        raise RuntimeError(f"Cannot overwrite directory with file: {actual_dst}")
                elif exists == "skip":
                    if not quiet:
                        print(f"    skipping: {label} (exists)")
                    skipped_entries += 1
                    continue
                elif exists == "rename":
                    actual_dst = _next_nonconflicting_path(actual_dst)
                    rename_note = actual_dst
                else:
                    raise RuntimeError(f"Destination exists: {actual_dst}")
            if not quiet:
                print(f" unpacking: {i:>4}/{total:<4} {label}")
            with open(actual_dst, "wb") as wf:
                wf.write(data)
            processed_bytes += len(data)
            if rename_note:
                print(f"       note: renamed to {actual_dst}")
                renamed_entries += 1
    dt = max(0.000001, time.time() - t0)
    mib = processed_bytes / (1024.0 * 1024.0)
    print(
        f"Done: extracted {total - skipped_entries}/{total} files ({mib:.2f} MiB) in {dt:.1f}s; "
        f"{mib / dt:.2f} MiB/s; skipped={skipped_entries} renamed={renamed_entries}"
    )
    return True


def cmd_list(archive: str, *, options: Optional[Options] = None) -> bool:
    """List entries in table order as ``index<TAB>size<TAB>name``."""
    options = options or Options()
    with ArchiveReader(archive, options=options) as r:
        for i, e in enumerate(r.list()):
            print(f"{i}\t{e.data_size}\t{e.display_name(options.encoding)}")
    return True


def cmd_info(archive: str) -> bool:
    """Show header fields and check the table/name-blob arithmetic."""
    with ArchiveReader(archive) as r:
        h = r.header
        print(f"Archive: {archive}")
        print(f"  Header size: {h.header_size}")
        print(f"  File names start: {h.file_names_start}")
        print(f"  File names size: {h.file_names_size}")
        print(f"  Entries: {h.file_count}")
        print(f"  Data size: {sum(e.data_size for e in r.entries)}")
        if not h.is_consistent():
            print(
                f"Warning: name blob starts at {h.file_names_start}, "
                f"expected {file_names_start(h.file_count)} for {h.file_count} entries",
                file=sys.stderr,
            )
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="fjsys",
        description="FJSYS archive tool",
        epilog=(
            "Table order is significant to the engine; pack always writes entries in "
            "collation order regardless of input order."
        ),
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    def _add_codec_args(p: argparse.ArgumentParser):
        p.add_argument(
            "-k",
            "--key",
            help=(
                "Key used for MSD scripts: a registered name "
                f"(built in: {', '.join(sorted(COMMON_KEYS)) or 'none'}; more via --key-file) "
                f"or {RAW_KEY_PREFIX}MATERIAL"
            ),
        )
        p.add_argument("--raw-key", help="MSD key material given directly (overrides --key)")
        p.add_argument("--key-file", help="JSON file mapping key names to key strings")
        p.add_argument("--jobs", "-j", type=int, default=1, help="Codec worker threads (default 1)")
        p.add_argument(
            "--encoding",
            default=DEFAULT_NAME_ENCODING,
            help=f"Encoding of entry names (default {DEFAULT_NAME_ENCODING})",
        )

    ap_pack = sub.add_parser("pack", help="Pack files into an archive")
    ap_pack.add_argument("output", help="Output archive path")
    ap_pack.add_argument("inputs", nargs="+", help="Input files/directories")
    ap_pack.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")
    ap_pack.add_argument(
        "--collation",
        choices=sorted(COLLATIONS),
        default=DEFAULT_COLLATION.name,
        help=f"Table ordering strategy (default {DEFAULT_COLLATION.name})",
    )
    _add_codec_args(ap_pack)

    ap_unpack = sub.add_parser("unpack", help="Unpack an archive")
    ap_unpack.add_argument("archive", help="Archive path")
    ap_unpack.add_argument("--outdir", default=".", help="Output directory")
    ap_unpack.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")
    ap_unpack.add_argument(
        "--exists",
        choices=["overwrite", "skip", "rename", "fail"],
        default="rename",
        help=(
            "What to do if a destination file exists: overwrite, skip, "
            "rename (append ' (n)' before extension), or fail. Default: rename"
        ),
    )
    _add_codec_args(ap_unpack)

    ap_list = sub.add_parser("list", help="List archive contents in table order")
    ap_list.add_argument("archive", help="Archive path")
    ap_list.add_argument("--encoding", default=DEFAULT_NAME_ENCODING, help="Encoding of entry names")

    ap_info = sub.add_parser("info", help="Show archive information")
    ap_info.add_argument("archive", help="Archive path")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "pack":
            options = build_options(
                key=args.key,
                raw_key=args.raw_key,
                key_file=args.key_file,
                jobs=args.jobs,
                encoding=args.encoding,
                collation=args.collation,
            )
            cmd_pack(args.output, args.inputs, options=options, quiet=args.quiet)
        elif args.cmd == "unpack":
            options = build_options(
                key=args.key,
                raw_key=args.raw_key,
                key_file=args.key_file,
                jobs=args.jobs,
                encoding=args.encoding,
            )
            cmd_unpack(args.archive, outdir=args.outdir, options=options, exists=args.exists, quiet=args.quiet)
        elif args.cmd == "list":
            cmd_list(args.archive, options=Options(encoding=args.encoding))
        elif args.cmd == "info":
            cmd_info(args.archive)
        else:
            raise RuntimeError("Unknown command")
    except FormatError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Hint: the input does not look like a valid FJSYS archive.", file=sys.stderr)
        sys.exit(2)
    except CodecError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(f"Hint: {_CODEC_HINTS.get(e.codec, _CODEC_HINTS[''])}", file=sys.stderr)
        sys.exit(2)
    except (FjsysError, OSError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
