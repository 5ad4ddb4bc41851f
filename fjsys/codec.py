from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .mgd import MgdCodec
from .msd import MsdCodec
from .options import DEFAULT_OPTIONS, Options


MGD_CODEC = MgdCodec()
MSD_CODEC = MsdCodec()


@dataclass(frozen=True)
class CodecRule:
    predicate: Callable[[bytes, bytes], bool]
    codec: object
    label: str


def has_signature(codec) -> CodecRule:
    sig = codec.signature
    return CodecRule(lambda name, data: data.startswith(sig), codec, f"{codec.name}:signature")


def has_extension(codec) -> CodecRule:
    ext = codec.extension.lower()
    return CodecRule(lambda name, data: name.lower().endswith(ext), codec, f"{codec.name}:extension")


# Evaluated top to bottom; the first match wins. Content signatures take
# priority over file names when unpacking.
DECODE_RULES: Sequence[CodecRule] = (
    has_signature(MGD_CODEC),
    has_extension(MSD_CODEC),
)

ENCODE_RULES: Sequence[CodecRule] = (
    has_extension(MGD_CODEC),
    has_extension(MSD_CODEC),
)


def select_codec(rules: Sequence[CodecRule], name: bytes, data: bytes) -> Optional[object]:
    for rule in rules:
        if rule.predicate(name, data):
            return rule.codec
    return None


def decode_entry(name: bytes, data: bytes, options: Optional[Options] = None) -> bytes:
    codec = select_codec(DECODE_RULES, name, data)
    if codec is None:
        return data
    return codec.decode(data, options or DEFAULT_OPTIONS)


def encode_entry(name: bytes, data: bytes, options: Optional[Options] = None) -> bytes:
    codec = select_codec(ENCODE_RULES, name, data)
    if codec is None:
        return data
    return codec.encode(data, options or DEFAULT_OPTIONS)
