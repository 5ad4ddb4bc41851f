"""MSD script codec.

MSD scripts are obfuscated with a keystream built from MD5 digests: every
32-byte block ``i`` of the script is XORed with the lowercase hex form of
``MD5(key + str(i))``. The transform is its own inverse, so ``encode`` and
``decode`` share one implementation. Without a key both directions pass the
data through unchanged.
"""

from __future__ import annotations

import json
from types import MappingProxyType
from typing import Mapping, Optional

from Cryptodome.Hash import MD5

from .constants import MSD_BLOCK_SIZE, MSD_EXTENSION
from .errors import CodecError, UnknownKeyError


# Built-in key registry (name -> key material). Titles whose key is known can
# be added through a key file, see ``load_key_registry``.
_BUILTIN_KEYS: dict = {}

COMMON_KEYS: Mapping[str, bytes] = MappingProxyType(dict(_BUILTIN_KEYS))


def load_key_registry(path: Optional[str] = None) -> Mapping[str, bytes]:
    """Return a read-only registry of the built-in keys merged with a JSON key file.

    The file holds a single object mapping key names to key strings; key
    strings are stored as UTF-8 key material.
    """
    keys = dict(_BUILTIN_KEYS)
    if path is not None:
        with open(path, "r", encoding="utf-8") as fh:
            raw = json.load(fh)
        if not isinstance(raw, dict):
            raise ValueError(f"Key file must contain a JSON object: {path}")
        for name, material in raw.items():
            if not isinstance(material, str):
                raise ValueError(f"Key {name!r} in {path} is not a string")
            keys[str(name)] = material.encode("utf-8")
    return MappingProxyType(keys)


RAW_KEY_PREFIX = "raw:"


def resolve_key(name: str, registry: Mapping[str, bytes] = COMMON_KEYS) -> bytes:
    """Look up key material by name; ``raw:<material>`` bypasses the registry."""
    if name.startswith(RAW_KEY_PREFIX):
        return name[len(RAW_KEY_PREFIX):].encode("utf-8")
    try:
        return registry[name]
    except KeyError:
        raise UnknownKeyError(name) from None


def _keystream_block(key: bytes, block_index: int) -> bytes:
    return MD5.new(key + str(block_index).encode("ascii")).hexdigest().encode("ascii")


def transform(data: bytes, key: bytes) -> bytes:
    if not isinstance(key, (bytes, bytearray)):
        raise CodecError("MSD key must be bytes", codec="msd")
    out = bytearray(data)
    n = len(out)
    for block_index, start in enumerate(range(0, n, MSD_BLOCK_SIZE)):
        ks = _keystream_block(bytes(key), block_index)
        for j in range(min(MSD_BLOCK_SIZE, n - start)):
            out[start + j] ^= ks[j]
    return bytes(out)


def decode(data: bytes, key: Optional[bytes] = None) -> bytes:
    if key is None:
        return data
    return transform(data, key)


def encode(data: bytes, key: Optional[bytes] = None) -> bytes:
    if key is None:
        return data
    return transform(data, key)


class MsdCodec:
    name = "msd"
    extension = MSD_EXTENSION
    signature = None

    def decode(self, data: bytes, options) -> bytes:
        return decode(data, options.msd_key)

    def encode(self, data: bytes, options) -> bytes:
        return encode(data, options.msd_key)
