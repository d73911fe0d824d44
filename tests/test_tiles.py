import pytest

from gbromkit.tiles import (
    XFLIP,
    YFLIP,
    TileMaps,
    create_mapfiles,
    find_mirrored_tile,
    find_tile,
    palette_bytes,
    raw_to_gb,
    reverse_bits,
    transpose_tiles,
    xflip,
    yflip,
)


def _image(width, height, fill=0):
    return [[fill] * width for _ in range(height)]


def test_reverse_bits_pins():
    assert reverse_bits(0x80) == 0x01
    assert reverse_bits(0x01) == 0x80
    assert reverse_bits(0xFF) == 0xFF


@pytest.mark.parametrize("value", range(256))
def test_reverse_bits_involution(value):
    assert reverse_bits(reverse_bits(value)) == value


def test_xflip_is_involution():
    tile = bytes(range(16))
    assert xflip(xflip(tile)) == tile
    assert xflip(tile)[0] == reverse_bits(tile[0])


@pytest.mark.parametrize("depth", [1, 2])
def test_yflip_is_involution(depth):
    tile = bytes(range(8 * depth))
    assert yflip(yflip(tile, depth), depth) == tile


def test_yflip_keeps_planes_together():
    tile = bytes(range(16))
    rows = [tile[i:i + 2] for i in range(0, 16, 2)]
    assert yflip(tile, 2) == b"".join(reversed(rows))


def test_yflip_depth_one_reverses():
    tile = bytes(range(8))
    assert yflip(tile, 1) == tile[::-1]


def test_raw_to_gb_solid_tiles():
    assert raw_to_gb(_image(8, 8, 3), 8, 8, 2, False) == b"\xff" * 16
    assert raw_to_gb(_image(8, 8, 1), 8, 8, 2, False) == b"\xff\x00" * 8
    assert raw_to_gb(_image(8, 8, 2), 8, 8, 2, False) == b"\x00\xff" * 8


def test_raw_to_gb_single_pixel():
    pixels = _image(8, 8)
    pixels[0][0] = 1
    data = raw_to_gb(pixels, 8, 8, 2, False)
    assert data[0] == 0x80
    assert data[1:] == bytes(15)


def test_raw_to_gb_depth_one_masks_index():
    data = raw_to_gb(_image(8, 8, 3), 8, 8, 1, False)
    assert data == b"\xff" * 8


def test_raw_to_gb_tile_order():
    pixels = _image(16, 16)
    for y in range(8):
        for x in range(8, 16):
            pixels[y][x] = 1
    vertical = raw_to_gb(pixels, 16, 16, 1, True)
    assert vertical[16:24] == b"\xff" * 8
    assert vertical.count(0xFF) == 8
    rows = raw_to_gb(pixels, 16, 16, 1, False)
    assert rows[8:16] == b"\xff" * 8
    assert rows.count(0xFF) == 8


def test_raw_to_gb_rejects_bad_depth():
    with pytest.raises(ValueError):
        raw_to_gb(_image(8, 8), 8, 8, 3, False)


def test_transpose_single_column_is_identity():
    data = bytes(range(32))
    assert transpose_tiles(data, 1, 2) == data


def test_transpose_preserves_bytes():
    data = bytes(range(64))
    out = transpose_tiles(data, 2, 2)
    assert sorted(out) == sorted(data)
    assert out[:16] == data[:16]


def test_find_tile():
    tiles = [b"\x01" * 8, b"\x02" * 8]
    assert find_tile(b"\x02" * 8, tiles) == 1
    assert find_tile(b"\x03" * 8, tiles) is None


def test_find_mirrored_tile_flags():
    tile = bytes([0x80, 0, 0, 0, 0, 0, 0, 1])
    tiles = [tile]
    assert find_mirrored_tile(tile, tiles, 1) == (0, 0)
    assert find_mirrored_tile(xflip(tile), tiles, 1) == (0, XFLIP)
    other = bytes([0x80, 0x40, 0, 0, 0, 0, 0, 0])
    assert find_mirrored_tile(yflip(other, 1), [other], 1) == (0, YFLIP)
    both = yflip(xflip(other), 1)
    assert find_mirrored_tile(both, [other], 1) == (0, XFLIP | YFLIP)
    assert find_mirrored_tile(b"\x55" * 8, [other], 1) is None


def test_create_mapfiles_not_unique():
    data = b"\x01" * 8 + b"\x01" * 8 + b"\x02" * 8
    maps = create_mapfiles(data, 0, 1, False, False)
    assert maps == TileMaps(data, bytes([0, 1, 2]), bytes(3), 3)


def test_create_mapfiles_unique():
    a, b = b"\x01" * 8, b"\x02" * 8
    maps = create_mapfiles(a + a + b, 0, 1, True, False)
    assert maps.data == a + b
    assert maps.tilemap == bytes([0, 0, 1])
    assert maps.attrmap == bytes(3)
    assert maps.tile_count == 2


def test_create_mapfiles_mirror():
    a = bytes([0x80, 0, 0, 0, 0, 0, 0, 0])
    maps = create_mapfiles(a + xflip(a), 0, 1, True, True)
    assert maps.data == a
    assert maps.tilemap == bytes([0, 0])
    assert maps.attrmap == bytes([0, XFLIP])


def test_create_mapfiles_trim():
    data = b"\x01" * 8 + b"\x02" * 8 + b"\x03" * 8
    maps = create_mapfiles(data, 1, 1, False, False)
    assert maps.tilemap == bytes([0, 1])
    assert maps.tile_count == 2


def test_palette_bytes_plain():
    palette = [(255, 255, 255), (0, 0, 0), (255, 0, 0)]
    assert palette_bytes(palette, False) == b"\xff\x7f\x00\x00\x1f\x00"


def test_palette_bytes_curve_extremes():
    assert palette_bytes([(255, 255, 255), (0, 0, 0)], True) == b"\xff\x7f\x00\x00"


def test_palette_bytes_length():
    palette = [(i, i, i) for i in range(0, 256, 64)]
    assert len(palette_bytes(palette, True)) == 2 * len(palette)
    assert len(palette_bytes(palette, False)) == 2 * len(palette)