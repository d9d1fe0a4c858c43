"""Reading of DTEX texture files: header flags, pixel encoding and payload."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import BinaryIO, Union

_HEADER = struct.Struct("<4sHHII")

_NOT_TWIDDLED_BIT = 1 << 26
_COMPRESSED_BIT = 1 << 30
_MIPMAPPED_BIT = 1 << 31
_FORMAT_SHIFT = 27
_FORMAT_MASK = 0b111


class DtexError(ValueError):
    """Raised when a DTEX stream is truncated or describes an unknown format."""


class PixelFormat(IntEnum):
    """Pixel formats a loaded texture is reported as."""

    UNCOMPRESSED_R5G6B5 = 3
    UNCOMPRESSED_R8G8B8 = 4
    UNCOMPRESSED_R5G5B5A1 = 5
    UNCOMPRESSED_R4G4B4A4 = 6
    UNCOMPRESSED_R8G8B8A8 = 7


class TextureEncoding(IntEnum):
    """Texel encodings a DTEX file can hold."""

    ARGB1555 = 0
    RGB565 = 1
    ARGB4444 = 2

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    TextureEncoding.ARGB1555: "ARGB 1555",
    TextureEncoding.RGB565: "RGB 565",
    TextureEncoding.ARGB4444: "ARGB 4444",
}

_PIXEL_FORMATS = {
    TextureEncoding.ARGB1555: PixelFormat.UNCOMPRESSED_R5G5B5A1,
    TextureEncoding.RGB565: PixelFormat.UNCOMPRESSED_R5G6B5,
    TextureEncoding.ARGB4444: PixelFormat.UNCOMPRESSED_R4G4B4A4,
}


@dataclass(frozen=True)
class DtexImage:
    """A decoded DTEX texture."""

    width: int
    height: int
    encoding: TextureEncoding
    compressed: bool
    twiddled: bool
    mipmapped: bool
    data: bytes
    magic: bytes = b"DTEX"

    @property
    def description(self) -> str:
        if self.compressed and self.twiddled:
            kind = "Compressed & Twiddled"
        elif self.compressed:
            kind = "Compressed"
        else:
            kind = "Uncompressed"
        return f"{kind} - {self.encoding.label}"

    def pixel_format(self) -> PixelFormat:
        """The pixel format the texture is reported as once uploaded."""
        if self.compressed and self.mipmapped:
            # Mipmapped VQ formats have no dedicated mapping.
            return PixelFormat.UNCOMPRESSED_R8G8B8A8
        return _PIXEL_FORMATS[self.encoding]

    def compression_ratio(self) -> int:
        """Size of a plain 16-bit texture divided by the stored size, truncated."""
        if not self.data:
            raise DtexError("texture holds no data")
        expected = 2 * self.width * self.height
        return int(expected / len(self.data))


def decode_dtex(stream: BinaryIO) -> DtexImage:
    """Decode a DTEX texture from a binary stream."""
    header = stream.read(_HEADER.size)
    if len(header) < _HEADER.size:
        raise DtexError("truncated DTEX header")
    magic, width, height, flags, size = _HEADER.unpack(header)

    code = (flags >> _FORMAT_SHIFT) & _FORMAT_MASK
    try:
        encoding = TextureEncoding(code)
    except ValueError:
        raise DtexError(f"Invalid texture format {flags}") from None

    data = stream.read(size)
    if len(data) < size:
        raise DtexError(f"truncated DTEX data: expected {size} bytes, got {len(data)}")

    return DtexImage(
        width=width,
        height=height,
        encoding=encoding,
        compressed=bool(flags & _COMPRESSED_BIT),
        twiddled=not flags & _NOT_TWIDDLED_BIT,
        mipmapped=bool(flags & _MIPMAPPED_BIT),
        data=data,
        magic=magic,
    )


def load_dtex(path: Union[str, "os.PathLike[str]"]) -> DtexImage:
    """Load a DTEX texture from a file."""
    with open(path, "rb") as stream:
        return decode_dtex(stream)