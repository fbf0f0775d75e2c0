import pytest

from streamcast.bitmap import ImageWriteError
from streamcast.radiance import encode_hdr, linear_to_rgbe, write_hdr


def _decode(blob, width, height):
    marker = blob.index(b"\n-Y ")
    pos = blob.index(b"\n", marker + 1) + 1
    rows = []
    for _ in range(height):
        if width < 8 or width >= 32768:
            chunk = blob[pos:pos + 4 * width]
            pos += 4 * width
            rows.append([tuple(chunk[i:i + 4]) for i in range(0, len(chunk), 4)])
            continue
        assert blob[pos:pos + 4] == bytes([2, 2, width >> 8, width & 0xFF])
        pos += 4
        channels = []
        for _ in range(4):
            values = bytearray()
            while len(values) < width:
                count = blob[pos]
                pos += 1
                if count > 128:
                    values += bytes([blob[pos]]) * (count - 128)
                    pos += 1
                else:
                    assert count > 0
                    values += blob[pos:pos + count]
                    pos += count
            assert len(values) == width
            channels.append(values)
        rows.append(list(zip(*channels)))
    assert pos == len(blob)
    return rows


def test_black_is_all_zero():
    assert linear_to_rgbe(0.0, 0.0, 0.0) == (0, 0, 0, 0)


def test_unit_white():
    assert linear_to_rgbe(1.0, 1.0, 1.0) == (128, 128, 128, 129)


def test_largest_component_has_top_bit_set():
    for triple in [(0.3, 2.5, 0.1), (100.0, 1.0, 7.0), (0.001, 0.002, 0.0005)]:
        rgbe = linear_to_rgbe(*triple)
        assert max(rgbe[:3]) >= 128


def test_header_text():
    blob = encode_hdr(3, 2, 3, [0.5] * 18)
    assert blob.startswith(b"#?RADIANCE\n")
    assert b"FORMAT=32-bit_rle_rgbe\n" in blob
    assert b"EXPOSURE=          1.0000000000000\n\n-Y 2 +X 3\n" in blob


def test_narrow_image_is_uncompressed():
    width, height = 3, 2
    blob = encode_hdr(width, height, 3, [0.25] * (width * height * 3))
    marker = blob.index(b"+X 3\n") + len(b"+X 3\n")
    assert len(blob) - marker == 4 * width * height


def test_round_trip_with_runs_and_dumps():
    width, height = 20, 3
    data = []
    for row in range(height):
        for col in range(width):
            value = 0.5 if col < 10 else (col + row) / 7.0
            data += [value, value * 0.5, value * 0.25]
    rows = _decode(encode_hdr(width, height, 3, data), width, height)
    for row in range(height):
        for col in range(width):
            start = (row * width + col) * 3
            assert rows[row][col] == linear_to_rgbe(*data[start:start + 3])


def test_long_run_is_split():
    width = 300
    rows = _decode(encode_hdr(width, 1, 3, [1.0] * (width * 3)), width, 1)
    assert rows[0] == [linear_to_rgbe(1.0, 1.0, 1.0)] * width


def test_long_distinct_row_round_trips():
    width = 200
    data = [(col % 97) / 50.0 + 0.01 for col in range(width)]
    rows = _decode(encode_hdr(width, 1, 1, data), width, 1)
    assert rows[0] == [linear_to_rgbe(v, v, v) for v in data]


def test_grey_with_alpha_ignores_alpha():
    grey = encode_hdr(2, 1, 1, [0.5, 2.0])
    grey_alpha = encode_hdr(2, 1, 2, [0.5, 0.1, 2.0, 0.9])
    assert grey == grey_alpha


def test_rgba_matches_rgb():
    rgb = encode_hdr(2, 1, 3, [0.1, 0.2, 0.3, 1.0, 2.0, 3.0])
    rgba = encode_hdr(2, 1, 4, [0.1, 0.2, 0.3, 0.0, 1.0, 2.0, 3.0, 1.0])
    assert rgb == rgba


def test_flip_reverses_rows():
    width, height = 9, 2
    data = [0.2] * (width * 3) + [4.0] * (width * 3)
    normal = _decode(encode_hdr(width, height, 3, data), width, height)
    flipped = _decode(encode_hdr(width, height, 3, data, flip_vertically=True), width, height)
    assert flipped == normal[::-1]
    assert normal[0] != normal[1]


@pytest.mark.parametrize("width,height", [(0, 1), (1, 0), (-1, 2)])
def test_bad_dimensions(width, height):
    with pytest.raises(ImageWriteError):
        encode_hdr(width, height, 3, [0.0] * 30)


def test_bad_component_count():
    with pytest.raises(ImageWriteError):
        encode_hdr(1, 1, 5, [0.0] * 5)


def test_short_data():
    with pytest.raises(ImageWriteError):
        encode_hdr(2, 2, 3, [0.0] * 11)


def test_write_hdr(tmp_path):
    path = tmp_path / "image.hdr"
    write_hdr(path, 4, 4, 3, [0.75] * 48)
    assert path.read_bytes() == encode_hdr(4, 4, 3, [0.75] * 48)