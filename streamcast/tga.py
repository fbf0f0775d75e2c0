"""Truevision TGA encoding, raw or run-length compressed."""

from __future__ import annotations

import os
import struct
from collections.abc import Iterator

from streamcast.bitmap import ImageWriteError

__all__ = ["encode_tga", "write_tga"]

_HEADER = struct.Struct("<BBBHHBHHHHBB")
_MAX_RUN = 128


def _validate(width: int, height: int, comp: int, data: bytes) -> None:
    if width < 0 or height < 0:
        raise ImageWriteError("image dimensions must not be negative")
    if comp not in (1, 2, 3, 4):
        raise ImageWriteError(f"unsupported component count {comp}")
    needed = width * height * comp
    if len(data) < needed:
        raise ImageWriteError(f"pixel data holds {len(data)} bytes, {needed} needed")


def _convert_row(row: bytes, width: int, comp: int) -> bytes:
    """Reorder RGB(A) to the BGR(A) order TGA stores; grey stays as is."""
    if comp < 3:
        return row
    out = bytearray(width * comp)
    out[0::comp] = row[2::comp]
    out[1::comp] = row[1::comp]
    out[2::comp] = row[0::comp]
    if comp == 4:
        out[3::4] = row[3::4]
    return bytes(out)


def _rle_packets(pixels: list[bytes]) -> Iterator[bytes]:
    count = len(pixels)
    i = 0
    while i < count:
        length = 1
        differs = True
        if i < count - 1:
            length = 2
            differs = pixels[i] != pixels[i + 1]
            if differs:
                prev = i
                for k in range(i + 2, count):
                    if length >= _MAX_RUN:
                        break
                    if pixels[prev] != pixels[k]:
                        prev += 1
                        length += 1
                    else:
                        length -= 1
                        break
            else:
                for k in range(i + 2, count):
                    if length >= _MAX_RUN:
                        break
                    if pixels[i] == pixels[k]:
                        length += 1
                    else:
                        break
        if differs:
            yield bytes([length - 1]) + b"".join(pixels[i:i + length])
        else:
            yield bytes([(length - 129) & 0xFF]) + pixels[i]
        i += length


def encode_tga(
    width: int,
    height: int,
    comp: int,
    data: bytes,
    rle: bool = True,
    flip_vertically: bool = False,
) -> bytes:
    """Encode interleaved pixels (Y, YA, RGB or RGBA) as a TGA file.

    Rows are stored bottom-up unless ``flip_vertically`` is set.
    """
    data = bytes(data)
    _validate(width, height, comp, data)
    has_alpha = 1 if comp in (2, 4) else 0
    color_bytes = comp - 1 if has_alpha else comp
    image_type = 3 if color_bytes < 2 else 2
    if rle:
        image_type += 8
    header = _HEADER.pack(
        0, 0, image_type,
        0, 0, 0,
        0, 0, width & 0xFFFF, height & 0xFFFF,
        (color_bytes + has_alpha) * 8, has_alpha * 8,
    )
    out = bytearray(header)
    row_length = width * comp
    order = range(height) if flip_vertically else reversed(range(height))
    for row_index in order:
        row = _convert_row(data[row_index * row_length:(row_index + 1) * row_length], width, comp)
        if rle:
            pixels = [row[p * comp:(p + 1) * comp] for p in range(width)]
            for packet in _rle_packets(pixels):
                out += packet
        else:
            out += row
    return bytes(out)


def write_tga(
    path: str | os.PathLike[str],
    width: int,
    height: int,
    comp: int,
    data: bytes,
    rle: bool = True,
    flip_vertically: bool = False,
) -> None:
    """Encode the pixels as TGA and write them to ``path``."""
    encoded = encode_tga(width, height, comp, data, rle, flip_vertically)
    with open(path, "wb") as handle:
        handle.write(encoded)