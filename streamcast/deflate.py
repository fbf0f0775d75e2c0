"""A small zlib/DEFLATE compressor using fixed Huffman codes, plus checksums."""

from __future__ import annotations

import zlib

__all__ = ["zlib_compress", "crc32", "adler32"]

_HASH_SIZE = 16384
_WINDOW = 32768
_MAX_MATCH = 258
_MAX_STORED_BLOCK = 32767
_MIN_QUALITY = 5
_U32 = 0xFFFFFFFF

_LENGTH_BASE = (
    3, 4, 5, 6, 7, 8, 9, 10, 11, 13, 15, 17, 19, 23, 27, 31,
    35, 43, 51, 59, 67, 83, 99, 115, 131, 163, 195, 227, 258, 259,
)
_LENGTH_EXTRA = (
    0, 0, 0, 0, 0, 0, 0, 0, 1, 1, 1, 1, 2, 2, 2, 2,
    3, 3, 3, 3, 4, 4, 4, 4, 5, 5, 5, 5, 0,
)
_DIST_BASE = (
    1, 2, 3, 4, 5, 7, 9, 13, 17, 25, 33, 49, 65, 97, 129, 193,
    257, 385, 513, 769, 1025, 1537, 2049, 3073, 4097, 6145, 8193,
    12289, 16385, 24577, 32768,
)
_DIST_EXTRA = (
    0, 0, 0, 0, 1, 1, 2, 2, 3, 3, 4, 4, 5, 5, 6, 6,
    7, 7, 8, 8, 9, 9, 10, 10, 11, 11, 12, 12, 13, 13,
)


def _bit_reverse(code: int, bits: int) -> int:
    result = 0
    for _ in range(bits):
        result = (result << 1) | (code & 1)
        code >>= 1
    return result


class _BitWriter:
    """Least-significant-bit-first bit packer appending to a byte array."""

    def __init__(self, out: bytearray) -> None:
        self.out = out
        self.buffer = 0
        self.count = 0

    def add(self, code: int, bits: int) -> None:
        self.buffer |= code << self.count
        self.count += bits
        while self.count >= 8:
            self.out.append(self.buffer & 0xFF)
            self.buffer >>= 8
            self.count -= 8

    def _huffman(self, code: int, bits: int) -> None:
        self.add(_bit_reverse(code, bits), bits)

    def symbol(self, n: int) -> None:
        """Write a literal/length symbol with the fixed Huffman table."""
        if n <= 143:
            self._huffman(0x30 + n, 8)
        elif n <= 255:
            self._huffman(0x190 + n - 144, 9)
        elif n <= 279:
            self._huffman(n - 256, 7)
        else:
            self._huffman(0xC0 + n - 280, 8)

    def align(self) -> None:
        while self.count:
            self.add(0, 1)


def _zhash(data: bytes, pos: int) -> int:
    h = data[pos] + (data[pos + 1] << 8) + (data[pos + 2] << 16)
    h = (h ^ (h << 3)) & _U32
    h = (h + (h >> 5)) & _U32
    h = (h ^ (h << 4)) & _U32
    h = (h + (h >> 17)) & _U32
    h = (h ^ (h << 25)) & _U32
    h = (h + (h >> 6)) & _U32
    return h & (_HASH_SIZE - 1)


def _match_length(data: bytes, earlier: int, current: int, limit: int) -> int:
    limit = min(limit, _MAX_MATCH)
    length = 0
    while length < limit and data[earlier + length] == data[current + length]:
        length += 1
    return length


def _write_match(writer: _BitWriter, length: int, distance: int) -> None:
    code = 0
    while length > _LENGTH_BASE[code + 1] - 1:
        code += 1
    writer.symbol(code + 257)
    if _LENGTH_EXTRA[code]:
        writer.add(length - _LENGTH_BASE[code], _LENGTH_EXTRA[code])
    code = 0
    while distance > _DIST_BASE[code + 1] - 1:
        code += 1
    writer.add(_bit_reverse(code, 5), 5)
    if _DIST_EXTRA[code]:
        writer.add(distance - _DIST_BASE[code], _DIST_EXTRA[code])


def _stored_blocks(data: bytes) -> bytes:
    out = bytearray()
    total = len(data)
    start = 0
    while start < total:
        block = min(total - start, _MAX_STORED_BLOCK)
        out.append(1 if total - start == block else 0)
        out += block.to_bytes(2, "little")
        out += (~block & 0xFFFF).to_bytes(2, "little")
        out += data[start:start + block]
        start += block
    return bytes(out)


def zlib_compress(data: bytes, quality: int = 8) -> bytes:
    """Compress ``data`` into a zlib stream.

    ``quality`` bounds the hash chain length (at least 5). When the
    compressed form would be larger, the data is stored uncompressed.
    """
    data = bytes(data)
    size = len(data)
    quality = max(quality, _MIN_QUALITY)
    out = bytearray(b"\x78\x5e")
    writer = _BitWriter(out)
    writer.add(1, 1)  # final block
    writer.add(1, 2)  # fixed Huffman codes

    table: dict[int, list[int]] = {}
    i = 0
    while i < size - 3:
        h = _zhash(data, i)
        best = 3
        best_pos: int | None = None
        for pos in table.get(h, ()):
            if pos > i - _WINDOW:
                length = _match_length(data, pos, i, size - i)
                if length >= best:
                    best, best_pos = length, pos
        bucket = table.setdefault(h, [])
        if len(bucket) == 2 * quality:
            del bucket[:quality]
        bucket.append(i)

        if best_pos is not None:
            # Lazy matching: prefer a literal if the next byte starts a longer match.
            for pos in table.get(_zhash(data, i + 1), ()):
                if pos > i - (_WINDOW - 1):
                    if _match_length(data, pos, i + 1, size - i - 1) > best:
                        best_pos = None
                        break

        if best_pos is not None:
            _write_match(writer, best, i - best_pos)
            i += best
        else:
            writer.symbol(data[i])
            i += 1

    for byte in data[i:]:
        writer.symbol(byte)
    writer.symbol(256)
    writer.align()

    if len(out) > size + 2 + ((size + _MAX_STORED_BLOCK - 1) // _MAX_STORED_BLOCK) * 5:
        del out[2:]
        out += _stored_blocks(data)

    out += adler32(data).to_bytes(4, "big")
    return bytes(out)


def crc32(data: bytes) -> int:
    """CRC-32 checksum as used by PNG chunks."""
    return zlib.crc32(bytes(data)) & _U32


def adler32(data: bytes) -> int:
    """Adler-32 checksum as used by zlib streams."""
    return zlib.adler32(bytes(data)) & _U32