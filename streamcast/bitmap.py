"""Windows BMP encoding for 8-bit-per-channel pixel buffers."""

from __future__ import annotations

import os
import struct
from collections.abc import Iterator

__all__ = ["ImageWriteError", "encode_bmp", "write_bmp"]

_FILE_HEADER_SIZE = 14
_INFO_HEADER_SIZE = 40
_V4_HEADER_SIZE = 108
_U32 = 0xFFFFFFFF

_RGB_HEADER = struct.Struct("<2sIHHI" "IIIHH" "6I")
_RGBA_HEADER = struct.Struct("<2sIHHI" "IIIHH" "6I" "17I")
_CHANNEL_MASKS = (0x00FF0000, 0x0000FF00, 0x000000FF, 0xFF000000)


class ImageWriteError(ValueError):
    """Raised when an image cannot be encoded from the given parameters."""


def _validate(width: int, height: int, comp: int, data: bytes) -> None:
    if width < 0 or height < 0:
        raise ImageWriteError("image dimensions must not be negative")
    if comp not in (1, 2, 3, 4):
        raise ImageWriteError(f"unsupported component count {comp}")
    needed = width * height * comp
    if len(data) < needed:
        raise ImageWriteError(f"pixel data holds {len(data)} bytes, {needed} needed")


def _rows(data: bytes, width: int, height: int, comp: int, bottom_up: bool) -> Iterator[bytes]:
    row_length = width * comp
    order = reversed(range(height)) if bottom_up else range(height)
    for row in order:
        yield data[row * row_length:(row + 1) * row_length]


def _convert_row(row: bytes, width: int, comp: int) -> bytearray:
    if comp == 4:
        out = bytearray(width * 4)
        out[0::4] = row[2::4]
        out[1::4] = row[1::4]
        out[2::4] = row[0::4]
        out[3::4] = row[3::4]
        return out
    out = bytearray(width * 3)
    if comp == 3:
        out[0::3] = row[2::3]
        out[1::3] = row[1::3]
        out[2::3] = row[0::3]
    else:
        grey = row[0::comp]
        out[0::3] = grey
        out[1::3] = grey
        out[2::3] = grey
    return out


def encode_bmp(
    width: int,
    height: int,
    comp: int,
    data: bytes,
    flip_vertically: bool = False,
) -> bytes:
    """Encode interleaved pixels (Y, YA, RGB or RGBA) as a BMP file.

    Grey input is expanded to RGB and an alpha channel is dropped unless
    the image has four components, in which case a V4 header with channel
    masks is written.
    """
    data = bytes(data)
    _validate(width, height, comp, data)
    if comp == 4:
        pad = 0
        offset = _FILE_HEADER_SIZE + _V4_HEADER_SIZE
        header = _RGBA_HEADER.pack(
            b"BM", (offset + width * height * 4) & _U32, 0, 0, offset,
            _V4_HEADER_SIZE, width & _U32, height & _U32, 1, 32,
            3, 0, 0, 0, 0, 0,
            *_CHANNEL_MASKS,
            *([0] * 13),
        )
    else:
        pad = (-width * 3) & 3
        offset = _FILE_HEADER_SIZE + _INFO_HEADER_SIZE
        header = _RGB_HEADER.pack(
            b"BM", (offset + (width * 3 + pad) * height) & _U32, 0, 0, offset,
            _INFO_HEADER_SIZE, width & _U32, height & _U32, 1, 24,
            0, 0, 0, 0, 0, 0,
        )
    padding = bytes(pad)
    body = bytearray(header)
    for row in _rows(data, width, height, comp, bottom_up=not flip_vertically):
        body += _convert_row(row, width, comp)
        body += padding
    return bytes(body)


def write_bmp(
    path: str | os.PathLike[str],
    width: int,
    height: int,
    comp: int,
    data: bytes,
    flip_vertically: bool = False,
) -> None:
    """Encode the pixels as BMP and write them to ``path``."""
    encoded = encode_bmp(width, height, comp, data, flip_vertically)
    with open(path, "wb") as handle:
        handle.write(encoded)