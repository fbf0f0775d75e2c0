"""Radiance RGBE (.hdr) encoding for linear floating-point pixel buffers."""

from __future__ import annotations

import math
import os
import struct
from collections.abc import Iterable, Sequence

from streamcast.bitmap import ImageWriteError

__all__ = ["linear_to_rgbe", "encode_hdr", "write_hdr"]

_HEADER = b"#?RADIANCE\n# Written by streamcast\nFORMAT=32-bit_rle_rgbe\n"
_MIN_RLE_WIDTH = 8
_MAX_RLE_WIDTH = 32768
_MAX_DUMP = 128
_MAX_RUN = 127
_TINY = 1e-32

RGBE = tuple[int, int, int, int]


def _f32(value: float) -> float:
    """Round a Python float to single precision."""
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def linear_to_rgbe(red: float, green: float, blue: float) -> RGBE:
    """Convert one linear RGB triple to its shared-exponent RGBE bytes."""
    red, green, blue = _f32(red), _f32(green), _f32(blue)
    maxcomp = max(red, max(green, blue))
    if maxcomp < _TINY:
        return (0, 0, 0, 0)
    mantissa, exponent = math.frexp(maxcomp)
    normalize = _f32(_f32(mantissa * 256.0) / maxcomp)
    return (
        int(_f32(red * normalize)) & 0xFF,
        int(_f32(green * normalize)) & 0xFF,
        int(_f32(blue * normalize)) & 0xFF,
        (exponent + 128) & 0xFF,
    )


def _pixel(values: Sequence[float], start: int, comp: int) -> RGBE:
    if comp >= 3:
        return linear_to_rgbe(values[start], values[start + 1], values[start + 2])
    grey = values[start]
    return linear_to_rgbe(grey, grey, grey)


def _rle_channel(channel: bytes) -> bytes:
    width = len(channel)
    out = bytearray()
    x = 0
    while x < width:
        r = x
        while r + 2 < width:
            if channel[r] == channel[r + 1] == channel[r + 2]:
                break
            r += 1
        if r + 2 >= width:
            r = width
        while x < r:
            length = min(r - x, _MAX_DUMP)
            out.append(length)
            out += channel[x:x + length]
            x += length
        if r + 2 < width:
            while r < width and channel[r] == channel[x]:
                r += 1
            while x < r:
                length = min(r - x, _MAX_RUN)
                out.append(length + 128)
                out.append(channel[x])
                x += length
    return bytes(out)


def _scanline(pixels: list[RGBE], width: int) -> bytes:
    if width < _MIN_RLE_WIDTH or width >= _MAX_RLE_WIDTH:
        return b"".join(bytes(pixel) for pixel in pixels)
    out = bytearray((2, 2, (width & 0xFF00) >> 8, width & 0x00FF))
    for channel in zip(*pixels):
        out += _rle_channel(bytes(channel))
    return bytes(out)


def encode_hdr(
    width: int,
    height: int,
    comp: int,
    data: Iterable[float],
    flip_vertically: bool = False,
) -> bytes:
    """Encode interleaved linear floats (Y, YA, RGB or RGBA) as a Radiance file.

    Alpha is discarded and grey input is replicated across all three channels.
    """
    if width <= 0 or height <= 0:
        raise ImageWriteError("image dimensions must be positive")
    if comp not in (1, 2, 3, 4):
        raise ImageWriteError(f"unsupported component count {comp}")
    values = [float(value) for value in data]
    needed = width * height * comp
    if len(values) < needed:
        raise ImageWriteError(f"pixel data holds {len(values)} values, {needed} needed")

    out = bytearray(_HEADER)
    out += f"EXPOSURE=          1.0000000000000\n\n-Y {height} +X {width}\n".encode("ascii")
    row_length = width * comp
    rows = reversed(range(height)) if flip_vertically else range(height)
    for row in rows:
        start = row * row_length
        pixels = [_pixel(values, start + column * comp, comp) for column in range(width)]
        out += _scanline(pixels, width)
    return bytes(out)


def write_hdr(
    path: str | os.PathLike[str],
    width: int,
    height: int,
    comp: int,
    data: Iterable[float],
    flip_vertically: bool = False,
) -> None:
    """Encode the pixels as a Radiance file and write it to ``path``."""
    encoded = encode_hdr(width, height, comp, data, flip_vertically)
    with open(path, "wb") as handle:
        handle.write(encoded)