"""Conversion of indexed pixels into 2bpp/1bpp tile data, tile maps and palettes."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

XFLIP = 0x40
YFLIP = 0x20

# Inverse of a Gaussian-like colour curve; ties resolved by comparing squares.
_REVERSE_CURVE = (
    0, 0, 1, 1, 2, 2, 3, 3, 3, 3, 4, 4, 4, 4, 4, 4,
    5, 5, 5, 5, 5, 5, 6, 6, 6, 6, 6, 6, 6, 6, 7, 7,
    7, 7, 7, 7, 7, 7, 7, 8, 8, 8, 8, 8, 8, 8, 8, 8,
    9, 9, 9, 9, 9, 9, 9, 9, 9, 9, 10, 10, 10, 10, 10, 10,
    10, 10, 10, 10, 11, 11, 11, 11, 11, 11, 11, 11, 11, 11, 11, 11,
    12, 12, 12, 12, 12, 12, 12, 12, 12, 12, 12, 12, 13, 13, 13, 13,
    13, 13, 13, 13, 13, 13, 13, 13, 14, 14, 14, 14, 14, 14, 14, 14,
    14, 14, 14, 14, 15, 15, 15, 15, 15, 15, 15, 15, 15, 15, 15, 15,
    16, 16, 16, 16, 16, 16, 16, 16, 16, 16, 16, 16, 16, 17, 17, 17,
    17, 17, 17, 17, 17, 17, 17, 17, 17, 18, 18, 18, 18, 18, 18, 18,
    18, 18, 18, 18, 18, 19, 19, 19, 19, 19, 19, 19, 19, 19, 19, 19,
    19, 20, 20, 20, 20, 20, 20, 20, 20, 20, 20, 20, 21, 21, 21, 21,
    21, 21, 21, 21, 21, 21, 21, 22, 22, 22, 22, 22, 22, 22, 22, 22,
    22, 23, 23, 23, 23, 23, 23, 23, 23, 23, 24, 24, 24, 24, 24, 24,
    24, 24, 25, 25, 25, 25, 25, 25, 25, 25, 26, 26, 26, 26, 26, 26,
    26, 27, 27, 27, 27, 27, 28, 28, 28, 28, 29, 29, 29, 30, 30, 31,
)


@dataclass(frozen=True)
class TileMaps:
    """Tile data together with the tile map and attribute map describing it."""

    data: bytes
    tilemap: bytes
    attrmap: bytes
    tile_count: int


def _check_depth(depth: int) -> None:
    if depth not in (1, 2):
        raise ValueError("Depth option must be either 1 or 2.")


def transpose_tiles(data: bytes, width: int, depth: int) -> bytes:
    """Reorder tiles from column-major to row-major order, width tiles per row."""
    size = len(data)
    if size == 0:
        return b""
    tile_size = 8 * depth
    result = bytearray(size)
    for i, byte in enumerate(data):
        target = i // tile_size * width * tile_size
        target = target % size + tile_size * (target // size) + i % tile_size
        result[target] = byte
    return bytes(result)


def raw_to_gb(
    pixels: Sequence[Sequence[int]],
    width: int,
    height: int,
    depth: int,
    horizontal: bool,
) -> bytes:
    """Encode rows of palette indices as planar tile data.

    Tiles come out row by row, unless ``horizontal`` is set, in which case
    they come out column by column.
    """
    _check_depth(depth)
    data = bytearray(width * height * depth // 8)
    mask = (1 << depth) - 1
    for y, row in enumerate(pixels[:height]):
        for x, value in enumerate(row[:width]):
            index = value & mask
            offset = y * depth + (x // 8 * height) // 8 * 8 * depth
            shift = 7 - x % 8
            data[offset] |= (index & 1) << shift
            if depth == 2:
                data[offset + 1] |= (index >> 1) << shift
    if not horizontal:
        return transpose_tiles(bytes(data), width // 8, depth)
    return bytes(data)


def reverse_bits(byte: int) -> int:
    """Reverse the order of the 8 bits of a byte."""
    return int(f"{byte & 0xFF:08b}"[::-1], 2)


def xflip(tile: bytes) -> bytes:
    """Mirror a tile horizontally."""
    return bytes(reverse_bits(b) for b in tile)


def yflip(tile: bytes, depth: int) -> bytes:
    """Mirror a tile vertically, keeping each row's bit planes together."""
    size = len(tile)
    return bytes(tile[(size - i - 1) ^ (depth - 1)] for i in range(size))


def find_tile(tile: bytes, tiles: Sequence[bytes]) -> int | None:
    """Return the index of the first tile equal to ``tile``, or None."""
    for index, candidate in enumerate(tiles):
        if candidate == tile:
            return index
    return None


def find_mirrored_tile(
    tile: bytes, tiles: Sequence[bytes], depth: int
) -> tuple[int, int] | None:
    """Find ``tile`` or a mirrored version of it among ``tiles``.

    Returns the index and the flip flags needed to get the match, trying the
    tile itself, then its Y flip, X flip and XY flip; None if nothing matches.
    """
    flipped_y = yflip(tile, depth)
    flipped_x = xflip(tile)
    candidates = (
        (tile, 0),
        (flipped_y, YFLIP),
        (flipped_x, XFLIP),
        (yflip(flipped_x, depth), XFLIP | YFLIP),
    )
    for candidate, flags in candidates:
        index = find_tile(candidate, tiles)
        if index is not None:
            return index, flags
    return None


def create_mapfiles(
    data: bytes, trim: int, depth: int, unique: bool, mirror: bool
) -> TileMaps:
    """Split tile data into tiles and build the tile and attribute maps.

    The last ``trim`` tiles are left out of the maps. With ``unique``,
    duplicate tiles are removed from the data; with ``mirror`` as well,
    mirrored duplicates are removed too and recorded in the attribute map.
    """
    _check_depth(depth)
    tile_size = 8 * depth
    used = len(data) - trim * tile_size
    tiles: list[bytes] = []
    tilemap = bytearray()
    attrmap = bytearray()

    for start in range(0, max(used, 0), tile_size):
        tile = bytes(data[start:min(start + tile_size, used)])
        flags = 0
        if unique:
            if mirror:
                match = find_mirrored_tile(tile, tiles, depth)
                index, flags = match if match is not None else (None, 0)
            else:
                index = find_tile(tile, tiles)
            if index is None:
                index = len(tiles)
                tiles.append(tile)
        else:
            index = len(tiles)
            tiles.append(tile)
        tilemap.append(index & 0xFF)
        attrmap.append(flags)

    if unique:
        out = b"".join(t.ljust(tile_size, b"\0") for t in tiles)
    else:
        out = bytes(data)
    return TileMaps(out, bytes(tilemap), bytes(attrmap), len(tiles))


def palette_bytes(palette: Sequence[tuple[int, int, int]], color_curve: bool) -> bytes:
    """Encode 8-bit RGB colours as little-endian 15-bit BGR words."""
    out = bytearray()
    for red, green, blue in palette:
        if color_curve:
            green = min(max((green * 4 - blue) // 3, 0), 255)
            red = _REVERSE_CURVE[red]
            green = _REVERSE_CURVE[green]
            blue = _REVERSE_CURVE[blue]
        else:
            red >>= 3
            green >>= 3
            blue >>= 3
        out += (blue << 10 | green << 5 | red).to_bytes(2, "little")
    return bytes(out)