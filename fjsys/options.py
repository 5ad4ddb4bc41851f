from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .collation import DEFAULT_COLLATION, Collation
from .constants import DEFAULT_NAME_ENCODING


@dataclass
class Options:
    # Resolved MSD key material; None leaves scripts untouched
    msd_key: Optional[bytes] = None
    # Codec worker threads; 1 keeps everything on the calling thread
    workers: int = 1
    # Encoding for str entry names and for display/filesystem mapping
    encoding: str = DEFAULT_NAME_ENCODING
    collation: Collation = field(default_factory=lambda: DEFAULT_COLLATION)


DEFAULT_OPTIONS = Options()
