from __future__ import annotations

import os


def norm_path(p: str) -> str:
    """Normalize archive paths to a canonical forward-slash form.

    Rules:
    - Convert backslashes to slashes
    - Strip leading/trailing slashes
    - Remove empty and '.' segments
    - Reject '..' segments
    """
    p = p.replace("\\", "/").strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise ValueError("Path may not contain '..'")
    return "/".join(parts)


def name_to_path(name: bytes, encoding: str) -> str:
    """Map an archive entry name to a relative filesystem path."""
    rel = norm_path(name.decode(encoding, errors="replace"))
    if not rel:
        raise ValueError(f"Entry name does not map to a file path: {name!r}")
    return rel.replace("/", os.sep)


def path_to_name(rel_path: str, encoding: str) -> bytes:
    """Map a path relative to an input directory to an archive entry name."""
    return norm_path(rel_path).encode(encoding)
