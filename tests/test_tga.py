import struct

import pytest

from streamcast.bitmap import ImageWriteError
from streamcast.tga import encode_tga, write_tga


def _decode(blob):
    image_type = blob[2]
    width, height = struct.unpack_from("<HH", blob, 12)
    step = blob[16] // 8
    pos = 18
    total = width * height
    pixels = []
    if image_type in (2, 3):
        for _ in range(total):
            pixels.append(blob[pos:pos + step])
            pos += step
    else:
        while len(pixels) < total:
            head = blob[pos]
            pos += 1
            count = (head & 0x7F) + 1
            if head & 0x80:
                pixels.extend([blob[pos:pos + step]] * count)
                pos += step
            else:
                for _ in range(count):
                    pixels.append(blob[pos:pos + step])
                    pos += step
    assert pos == len(blob)
    assert len(pixels) == total
    return width, height, pixels


def _to_image(blob, comp, bottom_up=True):
    width, height, pixels = _decode(blob)
    rows = [pixels[r * width:(r + 1) * width] for r in range(height)]
    if bottom_up:
        rows.reverse()
    out = bytearray()
    for row in rows:
        for p in row:
            if comp == 3:
                out += bytes([p[2], p[1], p[0]])
            elif comp == 4:
                out += bytes([p[2], p[1], p[0], p[3]])
            else:
                out += p
    return width, height, bytes(out)


def _sample(width, height, comp):
    values = bytearray()
    for y in range(height):
        for x in range(width):
            for c in range(comp):
                # stripes so both runs and literals occur
                values.append(((x // 3) * 40 + y * 7 + c * 90) % 256)
    return bytes(values)


def test_raw_rgb_header_and_pixels():
    blob = encode_tga(2, 1, 3, bytes([1, 2, 3, 4, 5, 6]), rle=False)
    assert blob[:18] == bytes([0, 0, 2, 0, 0, 0, 0, 0, 0, 0, 0, 0, 2, 0, 1, 0, 24, 0])
    assert blob[18:] == bytes([3, 2, 1, 6, 5, 4])


def test_rle_header_type_and_alpha_bits():
    blob = encode_tga(1, 1, 4, bytes([10, 20, 30, 40]))
    assert blob[2] == 10
    assert blob[16] == 32
    assert blob[17] == 8


def test_grey_uses_type_three():
    assert encode_tga(1, 1, 1, b"\x07", rle=False)[2] == 3
    assert encode_tga(1, 1, 2, b"\x07\x08", rle=True)[2] == 11


def test_uniform_row_is_one_run_packet():
    blob = encode_tga(3, 1, 3, bytes([9, 8, 7]) * 3)
    assert blob[18:] == bytes([0x82, 7, 8, 9])


def test_runs_are_capped_at_128():
    blob = encode_tga(130, 1, 1, b"\x05" * 130)
    assert blob[18:] == bytes([0xFF, 5, 0x81, 5])


@pytest.mark.parametrize("comp", [1, 2, 3, 4])
@pytest.mark.parametrize("rle", [True, False])
def test_round_trip(comp, rle):
    data = _sample(11, 5, comp)
    blob = encode_tga(11, 5, comp, data, rle=rle)
    assert _to_image(blob, comp) == (11, 5, data)


@pytest.mark.parametrize("rle", [True, False])
def test_flip_stores_rows_top_down(rle):
    data = _sample(6, 4, 3)
    blob = encode_tga(6, 4, 3, data, rle=rle, flip_vertically=True)
    assert _to_image(blob, 3, bottom_up=False) == (6, 4, data)


def test_rle_compresses_flat_image():
    data = b"\x10\x20\x30" * 64
    assert len(encode_tga(64, 1, 3, data)) < len(encode_tga(64, 1, 3, data, rle=False))


def test_empty_image_is_header_only():
    assert len(encode_tga(0, 0, 3, b"")) == 18


def test_negative_size_rejected():
    with pytest.raises(ImageWriteError):
        encode_tga(-1, 2, 3, b"")


def test_bad_component_count_rejected():
    with pytest.raises(ImageWriteError):
        encode_tga(1, 1, 5, b"\x00" * 5)


def test_short_data_rejected():
    with pytest.raises(ImageWriteError):
        encode_tga(2, 2, 3, b"\x00" * 11)


def test_write_tga_matches_encoding(tmp_path):
    data = _sample(4, 3, 4)
    target = tmp_path / "out.tga"
    write_tga(target, 4, 3, 4, data)
    assert target.read_bytes() == encode_tga(4, 3, 4, data)