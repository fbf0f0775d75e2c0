import random

import pytest

from streamcast.bitmap import ImageWriteError
from streamcast.jpeg import encode_jpeg, write_jpeg

SOF_OFFSET = 25 + 64 + 1 + 64


def noisy_rgb(width, height, seed=1):
    rng = random.Random(seed)
    return bytes(rng.randrange(256) for _ in range(width * height * 3))


def gradient_rgb(width, height):
    return bytes(
        value
        for y in range(height)
        for x in range(width)
        for value in ((x * 16) & 0xFF, (y * 16) & 0xFF, ((x + y) * 8) & 0xFF)
    )


def test_starts_and_ends_with_markers():
    out = encode_jpeg(8, 8, 3, gradient_rgb(8, 8))
    assert out[:4] == b"\xff\xd8\xff\xe0"
    assert out[6:11] == b"JFIF\x00"
    assert out[-2:] == b"\xff\xd9"


def test_frame_header_holds_dimensions():
    out = encode_jpeg(300, 2, 3, bytes(300 * 2 * 3))
    sof = out[SOF_OFFSET:SOF_OFFSET + 11]
    assert sof[:2] == b"\xff\xc0"
    assert int.from_bytes(sof[5:7], "big") == 2
    assert int.from_bytes(sof[7:9], "big") == 300


@pytest.mark.parametrize("quality,sampling", [(90, 0x22), (50, 0x22), (91, 0x11), (100, 0x11)])
def test_chroma_subsampling_depends_on_quality(quality, sampling):
    out = encode_jpeg(8, 8, 3, gradient_rgb(8, 8), quality=quality)
    assert out[SOF_OFFSET + 11] == sampling


def test_quality_50_uses_standard_tables():
    out = encode_jpeg(8, 8, 3, gradient_rgb(8, 8), quality=50)
    luma = out[25:25 + 64]
    chroma = out[90:90 + 64]
    assert luma[0] == 16
    assert luma[1] == 11
    assert chroma[0] == 17


def test_quantisation_tables_stay_in_byte_range():
    out = encode_jpeg(8, 8, 3, gradient_rgb(8, 8), quality=1)
    tables = out[25:25 + 64] + out[90:90 + 64]
    assert min(tables) >= 1
    assert max(tables) <= 255


def test_zero_quality_means_ninety():
    data = gradient_rgb(16, 16)
    assert encode_jpeg(16, 16, 3, data, quality=0) == encode_jpeg(16, 16, 3, data, quality=90)


def test_quality_is_clamped():
    data = gradient_rgb(16, 16)
    assert encode_jpeg(16, 16, 3, data, quality=150) == encode_jpeg(16, 16, 3, data, quality=100)
    assert encode_jpeg(16, 16, 3, data, quality=-5) == encode_jpeg(16, 16, 3, data, quality=1)


@pytest.mark.parametrize("quality", [50, 95])
def test_entropy_data_is_byte_stuffed(quality):
    out = encode_jpeg(24, 20, 3, noisy_rgb(24, 20), quality=quality)
    start = out.index(b"\xff\xda") + 14
    scan = out[start:-2]
    for position, byte in enumerate(scan):
        if byte == 0xFF:
            assert scan[position + 1] == 0


@pytest.mark.parametrize("quality", [75, 95])
def test_flip_matches_reversed_rows(quality):
    width, height = 10, 12
    data = noisy_rgb(width, height, seed=7)
    row = width * 3
    reversed_rows = b"".join(data[r * row:(r + 1) * row] for r in reversed(range(height)))
    flipped = encode_jpeg(width, height, 3, data, quality=quality, flip_vertically=True)
    assert flipped == encode_jpeg(width, height, 3, reversed_rows, quality=quality)


def test_grey_matches_equal_rgb():
    grey = bytes(range(0, 256, 4))
    rgb = bytes(value for g in grey for value in (g, g, g))
    assert encode_jpeg(8, 8, 1, grey) == encode_jpeg(8, 8, 3, rgb)


def test_alpha_is_ignored():
    rgb = gradient_rgb(8, 8)
    rgba_opaque = b"".join(rgb[i:i + 3] + b"\xff" for i in range(0, len(rgb), 3))
    rgba_clear = b"".join(rgb[i:i + 3] + b"\x00" for i in range(0, len(rgb), 3))
    assert encode_jpeg(8, 8, 4, rgba_opaque) == encode_jpeg(8, 8, 4, rgba_clear)
    assert encode_jpeg(8, 8, 4, rgba_opaque) == encode_jpeg(8, 8, 3, rgb)


@pytest.mark.parametrize(
    "width,height,comp,size",
    [(0, 8, 3, 192), (8, 0, 3, 192), (8, 8, 0, 192), (8, 8, 5, 320), (8, 8, 3, 10)],
)
def test_invalid_arguments_raise(width, height, comp, size):
    with pytest.raises(ImageWriteError):
        encode_jpeg(width, height, comp, bytes(size))


def test_write_jpeg_writes_encoded_bytes(tmp_path):
    data = gradient_rgb(9, 5)
    path = tmp_path / "frame.jpg"
    write_jpeg(path, 9, 5, 3, data, quality=80)
    assert path.read_bytes() == encode_jpeg(9, 5, 3, data, quality=80)