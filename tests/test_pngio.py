import struct
import zlib

import pytest
from PIL import Image

from gbromkit.pngio import (
    ImageOptions,
    PngError,
    RawImage,
    build_palette,
    fit_grayscale_palette,
    order_color_palette,
    read_png,
    write_png,
)

WHITE = (255, 255, 255)
BLACK = (0, 0, 0)
RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)


def _chunk(ctype, body):
    return struct.pack(">I", len(body)) + ctype + body + struct.pack(
        ">I", zlib.crc32(ctype + body) & 0xFFFFFFFF
    )


def _indexed_png(path, width, height, palette, rows, trns=None):
    data = b"\x89PNG\r\n\x1a\n"
    data += _chunk(b"IHDR", struct.pack(">IIBBBBB", width, height, 8, 3, 0, 0, 0))
    data += _chunk(b"PLTE", b"".join(bytes(c) for c in palette))
    if trns is not None:
        data += _chunk(b"tRNS", bytes(trns))
    data += _chunk(b"IDAT", zlib.compress(b"".join(b"\0" + bytes(r) for r in rows)))
    data += _chunk(b"IEND", b"")
    path.write_bytes(data)
    return path


def test_order_color_palette_brightest_first():
    assert order_color_palette([BLACK, WHITE, RED]) == [WHITE, RED, BLACK]


def test_fit_grayscale_palette_uses_fixed_ramp():
    assert fit_grayscale_palette([WHITE, BLACK], 2) == [
        WHITE,
        (0xA9, 0xA9, 0xA9),
        (0x55, 0x55, 0x55),
        BLACK,
    ]


def test_fit_grayscale_palette_collision_returns_none():
    assert fit_grayscale_palette([(10, 10, 10), (20, 20, 20)], 2) is None


def test_build_palette_grayscale_fits_ramp_and_ignores_transparent():
    pixels = [(0, 0, 0, 255), (255, 255, 255, 255), (9, 9, 9, 0)]
    palette = build_palette(pixels, 2)
    assert palette[0] == WHITE
    assert palette[3] == BLACK
    assert len(palette) == 4


def test_build_palette_colors_are_ordered():
    pixels = [(0, 0, 255, 255), (255, 0, 0, 255), (0, 0, 255, 255)]
    assert build_palette(pixels, 2) == [RED, BLUE]


def test_build_palette_fully_transparent_is_empty():
    assert build_palette([(1, 2, 3, 0)], 2) == []


def test_build_palette_too_many_colors():
    pixels = [(i, 0, 0, 255) for i in range(5)]
    with pytest.raises(PngError):
        build_palette(pixels, 2)


def test_build_palette_depth_one_limit():
    with pytest.raises(PngError):
        build_palette([(*RED, 255), (*GREEN, 255), (*BLUE, 255)], 1)


def test_write_then_read_round_trip(tmp_path):
    raw = RawImage(
        width=8,
        height=2,
        palette=[WHITE, RED, GREEN, BLACK],
        pixels=[[0, 1, 2, 3, 0, 1, 2, 3], [3, 2, 1, 0, 3, 2, 1, 0]],
    )
    path = tmp_path / "img.png"
    write_png(path, raw)
    back, options = read_png(path, 2)
    assert back.pixels == raw.pixels
    assert back.palette == raw.palette
    assert (back.width, back.height) == (8, 2)
    assert options == ImageOptions()


def test_written_png_is_readable_by_pillow(tmp_path):
    raw = RawImage(2, 1, [WHITE, BLACK], [[1, 0]])
    path = tmp_path / "out.png"
    write_png(path, raw)
    with Image.open(path) as image:
        assert image.mode == "P"
        assert image.size == (2, 1)
        assert image.convert("RGB").getpixel((0, 0)) == BLACK
        assert image.convert("RGB").getpixel((1, 0)) == WHITE


def test_fix_options_round_trip_through_text(tmp_path):
    raw = RawImage(8, 8, [WHITE, BLACK], [[0] * 8 for _ in range(8)])
    options = ImageOptions(horizontal=True, trim=5, tilemapout=True, palout=True)
    path = tmp_path / "fixed.png"
    write_png(path, raw, options, fix=True)
    _, read_options = read_png(path, 1)
    assert read_options.horizontal is True
    assert read_options.trim == 5
    assert read_options.tilemapout is True
    assert read_options.palout is True
    assert read_options.attrmapout is False


def test_options_not_written_without_fix(tmp_path):
    raw = RawImage(1, 1, [WHITE, BLACK], [[0]])
    path = tmp_path / "plain.png"
    write_png(path, raw, ImageOptions(horizontal=True), fix=False)
    _, read_options = read_png(path, 1)
    assert read_options.horizontal is False


def test_trim_text_keeps_two_digits(tmp_path):
    raw = RawImage(1, 1, [WHITE, BLACK], [[0]])
    path = tmp_path / "trim.png"
    write_png(path, raw, ImageOptions(trim=123), fix=True)
    _, read_options = read_png(path, 1)
    assert read_options.trim == 12


def test_indexed_png_with_transparency_collapses_palette(tmp_path):
    path = _indexed_png(
        tmp_path / "trns.png", 4, 1, [(1, 2, 3), RED, GREEN], [[0, 1, 2, 1]], trns=[0]
    )
    raw, _ = read_png(path, 2)
    assert raw.palette == [RED, GREEN, BLACK, BLACK]
    assert raw.pixels == [[0, 0, 1, 0]]


def test_indexed_palette_too_large(tmp_path):
    path = _indexed_png(
        tmp_path / "big.png", 1, 1, [RED, GREEN, BLUE, WHITE, BLACK], [[0]]
    )
    with pytest.raises(PngError):
        read_png(path, 2)


def test_rgb_image_builds_ordered_palette(tmp_path):
    image = Image.new("RGB", (2, 1))
    image.putpixel((0, 0), BLUE)
    image.putpixel((1, 0), RED)
    path = tmp_path / "rgb.png"
    image.save(path)
    raw, _ = read_png(path, 2)
    assert raw.palette == [RED, BLUE, BLACK, BLACK]
    assert raw.pixels == [[1, 0]]


def test_rgba_transparent_pixel_gets_index_zero(tmp_path):
    image = Image.new("RGBA", (2, 1))
    image.putpixel((0, 0), (10, 20, 30, 0))
    image.putpixel((1, 0), (0, 0, 255, 255))
    path = tmp_path / "rgba.png"
    image.save(path)
    raw, _ = read_png(path, 2)
    assert raw.pixels == [[0, 0]]
    assert raw.palette[0] == BLUE


def test_grayscale_image_uses_ramp(tmp_path):
    image = Image.new("L", (2, 1))
    image.putpixel((0, 0), 0)
    image.putpixel((1, 0), 255)
    path = tmp_path / "gray.png"
    image.save(path)
    raw, _ = read_png(path, 2)
    assert raw.pixels == [[3, 0]]
    assert raw.palette[0] == WHITE
    assert raw.palette[3] == BLACK


def test_truecolor_too_many_colors(tmp_path):
    image = Image.new("RGB", (5, 1))
    for x in range(5):
        image.putpixel((x, 0), (x * 40, 0, 0))
    path = tmp_path / "many.png"
    image.save(path)
    with pytest.raises(PngError):
        read_png(path, 2)


def test_missing_file_raises(tmp_path):
    with pytest.raises(PngError):
        read_png(tmp_path / "absent.png", 2)


def test_non_png_raises(tmp_path):
    path = tmp_path / "text.png"
    path.write_bytes(b"not a png at all")
    with pytest.raises(PngError):
        read_png(path, 2)


def test_invalid_depth_rejected(tmp_path):
    raw = RawImage(1, 1, [WHITE, BLACK], [[0]])
    path = tmp_path / "d.png"
    write_png(path, raw)
    with pytest.raises(ValueError):
        read_png(path, 3)