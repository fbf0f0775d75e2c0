"""PNG encoding with per-row filter selection and the built-in deflate coder."""

from __future__ import annotations

import os
import struct

from streamcast.bitmap import ImageWriteError
from streamcast.deflate import crc32, zlib_compress

__all__ = ["encode_png", "write_png"]

_SIGNATURE = bytes((137, 80, 78, 71, 13, 10, 26, 10))
_COLOR_TYPES = {1: 0, 2: 4, 3: 2, 4: 6}
_FILTER_COUNT = 5


def _paeth(a: int, b: int, c: int) -> int:
    p = a + b - c
    pa, pb, pc = abs(p - a), abs(p - b), abs(p - c)
    if pa <= pb and pa <= pc:
        return a
    if pb <= pc:
        return b
    return c


def _filter_row(line: bytes, prior: bytes, comp: int, filter_type: int) -> bytes:
    """Apply one PNG filter; ``prior`` is all zeros for the first row."""
    if filter_type == 0:
        return bytes(line)
    out = bytearray(len(line))
    for i, value in enumerate(line):
        left = line[i - comp] if i >= comp else 0
        above = prior[i]
        if filter_type == 1:
            predicted = left
        elif filter_type == 2:
            predicted = above
        elif filter_type == 3:
            predicted = (left + above) >> 1
        else:
            upper_left = prior[i - comp] if i >= comp else 0
            predicted = _paeth(left, above, upper_left)
        out[i] = (value - predicted) & 0xFF
    return bytes(out)


def _cost(filtered: bytes) -> int:
    """Sum of magnitudes of the bytes read as signed values."""
    return sum(value if value < 128 else 256 - value for value in filtered)


def _best_filter(line: bytes, prior: bytes, comp: int) -> tuple[int, bytes]:
    best_type, best_row, best_cost = 0, b"", None
    for filter_type in range(_FILTER_COUNT):
        filtered = _filter_row(line, prior, comp, filter_type)
        cost = _cost(filtered)
        if best_cost is None or cost < best_cost:
            best_type, best_row, best_cost = filter_type, filtered, cost
    return best_type, best_row


def _chunk(tag: bytes, body: bytes) -> bytes:
    return (
        struct.pack(">I", len(body))
        + tag
        + body
        + struct.pack(">I", crc32(tag + body))
    )


def encode_png(
    width: int,
    height: int,
    comp: int,
    data: bytes,
    stride: int = 0,
    compression_level: int = 8,
    force_filter: int = -1,
    flip_vertically: bool = False,
) -> bytes:
    """Encode interleaved 8-bit pixels (Y, YA, RGB or RGBA) as a PNG file.

    ``stride`` is the distance in bytes between rows (0 means tightly
    packed). ``force_filter`` in 0..4 fixes the row filter; any other value
    picks the filter with the smallest estimated cost for each row.
    """
    if width <= 0 or height <= 0:
        raise ImageWriteError("image dimensions must be positive")
    if comp not in _COLOR_TYPES:
        raise ImageWriteError(f"unsupported component count {comp}")
    if stride < 0:
        raise ImageWriteError("stride must not be negative")
    data = bytes(data)
    row_length = width * comp
    if stride == 0:
        stride = row_length
    needed = (height - 1) * stride + row_length
    if len(data) < needed:
        raise ImageWriteError(f"pixel data holds {len(data)} bytes, {needed} needed")
    if force_filter >= _FILTER_COUNT:
        force_filter = -1

    filtered = bytearray()
    prior = bytes(row_length)
    for y in range(height):
        source = height - 1 - y if flip_vertically else y
        line = data[source * stride:source * stride + row_length]
        if force_filter > -1:
            filter_type = force_filter
            row = _filter_row(line, prior, comp, filter_type)
        else:
            filter_type, row = _best_filter(line, prior, comp)
        filtered.append(filter_type)
        filtered += row
        prior = line

    compressed = zlib_compress(bytes(filtered), compression_level)
    header = struct.pack(">IIBBBBB", width, height, 8, _COLOR_TYPES[comp], 0, 0, 0)
    return (
        _SIGNATURE
        + _chunk(b"IHDR", header)
        + _chunk(b"IDAT", compressed)
        + _chunk(b"IEND", b"")
    )


def write_png(
    path: str | os.PathLike[str],
    width: int,
    height: int,
    comp: int,
    data: bytes,
    stride: int = 0,
    compression_level: int = 8,
    force_filter: int = -1,
    flip_vertically: bool = False,
) -> None:
    """Encode the pixels as PNG and write them to ``path``."""
    encoded = encode_png(
        width, height, comp, data, stride, compression_level, force_filter, flip_vertically
    )
    with open(path, "wb") as handle:
        handle.write(encoded)