"""MGD image codec.

Only the PNG-backed variant (compression type 2) is handled: decoding yields
the embedded PNG stream, encoding wraps a PNG stream into an MGD container.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from .constants import (
    MGD_COMPRESSION_NONE,
    MGD_COMPRESSION_PNG,
    MGD_COMPRESSION_SGD,
    MGD_DATA_OFFSET,
    MGD_EXTENSION,
    MGD_MAGIC,
)
from .errors import CodecError


# MGD header (fixed 0x5C bytes)
# struct: <4s H H 4x H H I I I 64x
#  - magic[4] "MGD "
#  - data_offset u16 (always 0x5C)
#  - format u16
#  - reserved[4]
#  - width u16, height u16
#  - size_original u32 (BGRA bytes)
#  - size_compressed_total u32 (payload plus its u32 length prefix)
#  - compression_type u32
#  - reserved[64]
_MGD_HDR_STRUCT = struct.Struct("<4sHH4xHHIII64x")
_U32 = struct.Struct("<I")

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
_PNG_IHDR_STRUCT = struct.Struct(">8sI4sII")

assert _MGD_HDR_STRUCT.size == MGD_DATA_OFFSET

_COMPRESSION_NAMES = {
    MGD_COMPRESSION_NONE: "raw",
    MGD_COMPRESSION_SGD: "sgd",
    MGD_COMPRESSION_PNG: "png",
}


@dataclass
class MgdHeader:
    data_offset: int
    format: int
    width: int
    height: int
    size_original: int
    size_compressed_total: int
    compression_type: int


def read_mgd_header(data: bytes) -> MgdHeader:
    if len(data) < _MGD_HDR_STRUCT.size:
        raise CodecError("MGD header too short", codec="mgd")
    magic, data_offset, fmt, width, height, size_orig, size_comp_total, comp = _MGD_HDR_STRUCT.unpack_from(data)
    if magic != MGD_MAGIC:
        raise CodecError("Bad MGD magic", codec="mgd")
    return MgdHeader(
        data_offset=data_offset,
        format=fmt,
        width=width,
        height=height,
        size_original=size_orig,
        size_compressed_total=size_comp_total,
        compression_type=comp,
    )


def png_dimensions(png: bytes) -> tuple[int, int]:
    if len(png) < _PNG_IHDR_STRUCT.size:
        raise CodecError("PNG stream too short", codec="mgd")
    sig, _ihdr_len, chunk_type, width, height = _PNG_IHDR_STRUCT.unpack_from(png)
    if sig != PNG_SIGNATURE or chunk_type != b"IHDR":
        raise CodecError("MGD encoding requires PNG input", codec="mgd")
    return width, height


def decode(data: bytes) -> bytes:
    hdr = read_mgd_header(data)
    if hdr.compression_type != MGD_COMPRESSION_PNG:
        kind = _COMPRESSION_NAMES.get(hdr.compression_type, str(hdr.compression_type))
        raise CodecError(f"Unsupported MGD compression: {kind}", codec="mgd")
    start = hdr.data_offset + _U32.size
    if len(data) < start:
        raise CodecError("MGD payload length missing", codec="mgd")
    (size_comp,) = _U32.unpack_from(data, hdr.data_offset)
    if start + size_comp > len(data):
        raise CodecError("MGD payload truncated", codec="mgd")
    return data[start:start + size_comp]


def encode(png: bytes) -> bytes:
    width, height = png_dimensions(png)
    if width > 0xFFFF or height > 0xFFFF:
        raise CodecError(f"Image too large for MGD: {width}x{height}", codec="mgd")
    hdr = _MGD_HDR_STRUCT.pack(
        MGD_MAGIC,
        MGD_DATA_OFFSET,
        0,
        width,
        height,
        width * height * 4,
        len(png) + _U32.size,
        MGD_COMPRESSION_PNG,
    )
    # Empty region list trailer
    return hdr + _U32.pack(len(png)) + png + _U32.pack(0)


class MgdCodec:
    name = "mgd"
    extension = MGD_EXTENSION
    signature = MGD_MAGIC

    def decode(self, data: bytes, options) -> bytes:
        return decode(data)

    def encode(self, data: bytes, options) -> bytes:
        if data.startswith(MGD_MAGIC):
            return data
        return encode(data)
