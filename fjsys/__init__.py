"""
FJSYS: archive tooling for the FJSYS container used by several visual novels
(Sono Hanabira ni Kuchizuke o and others).

Features:

- Reader/writer for the FJSYS layout: header, file table, NUL-terminated name blob,
  data blocks.
- Table order reproduced with the engine's collation, since the engine looks assets
  up by table index rather than by name.
- Transparent asset codecs on unpack/pack: MGD images (PNG payload) and MSD scripts
  (MD5 keystream, key selected by name or given directly).
- Optional codec fan-out over a thread pool; archive I/O always stays on one cursor.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "reader",
    "writer",
    "codec",
    "collation",
    "mgd",
    "msd",
]

# Importable programmatic API is available via fjsys.reader.unpack/fjsys.writer.pack
# and the CLI functions in fjsys.cli (cmd_pack/cmd_unpack) which take normal parameters.
