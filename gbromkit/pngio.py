"""Reading PNG images into indexed pixel data, and writing them back."""

from __future__ import annotations

import io
import os
import re
import struct
import zlib
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from PIL import Image

from gbromkit.errors import warnx

Color = tuple[int, int, int]

_SIGNATURE = b"\x89PNG\r\n\x1a\n"
_COLOR_GRAY = 0
_COLOR_RGB = 2
_COLOR_PALETTE = 3
_COLOR_GRAY_ALPHA = 4
_COLOR_RGB_ALPHA = 6

_NUMBER = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")


class PngError(Exception):
    """The PNG file could not be read, written or converted."""


@dataclass
class RawImage:
    """An image as rows of palette indices, with its palette."""

    width: int
    height: int
    palette: list[Color]
    pixels: list[list[int]]

    @property
    def num_colors(self) -> int:
        return len(self.palette)


@dataclass
class ImageOptions:
    """Conversion settings that can be stored in a PNG's text chunks."""

    horizontal: bool = False
    trim: int = 0
    tilemapfile: str = ""
    tilemapout: bool = False
    attrmapfile: str = ""
    attrmapout: bool = False
    palfile: str = ""
    palout: bool = False


@dataclass
class _Header:
    width: int
    height: int
    bit_depth: int
    color_type: int


@dataclass
class _Chunks:
    header: _Header
    plte: bytes | None = None
    trns: bytes | None = None
    texts: list[tuple[str, str]] = field(default_factory=list)


def _colors(depth: int) -> int:
    if depth not in (1, 2):
        raise ValueError("Depth option must be either 1 or 2.")
    return 1 << depth


def _strtoul(text: str) -> int:
    """Parse the leading number of text as C's strtoul with base 0 does."""
    match = _NUMBER.match(text)
    if match is None:
        return 0
    sign, digits = match.groups()
    if digits[:2].lower() == "0x":
        value = int(digits, 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits)
    return -value if sign == "-" else value


def _decode_text(ctype: bytes, body: bytes) -> tuple[str, str] | None:
    try:
        if ctype == b"tEXt":
            key, _, text = body.partition(b"\0")
            return key.decode("latin-1"), text.decode("latin-1")
        if ctype == b"zTXt":
            key, _, rest = body.partition(b"\0")
            return key.decode("latin-1"), zlib.decompress(rest[1:]).decode("latin-1")
        if ctype == b"iTXt":
            key, _, rest = body.partition(b"\0")
            compressed = rest[0]
            rest = rest[2:]
            _lang, _, rest = rest.partition(b"\0")
            _translated, _, text = rest.partition(b"\0")
            if compressed:
                text = zlib.decompress(text)
            return key.decode("latin-1"), text.decode("utf-8")
    except (zlib.error, IndexError, UnicodeDecodeError):
        return None
    return None


def _parse_chunks(data: bytes) -> _Chunks:
    if data[:8] != _SIGNATURE:
        raise PngError("Input file is not a PNG file")
    pos = 8
    header: _Header | None = None
    plte = trns = None
    texts: list[tuple[str, str]] = []
    while pos + 8 <= len(data):
        length, ctype = struct.unpack(">I4s", data[pos:pos + 8])
        body = data[pos + 8:pos + 8 + length]
        pos += 12 + length
        if ctype == b"IHDR":
            if len(body) < 10:
                raise PngError("Corrupt PNG header")
            width, height, bit_depth, color_type = struct.unpack(">IIBB", body[:10])
            header = _Header(width, height, bit_depth, color_type)
        elif ctype == b"PLTE":
            plte = body
        elif ctype == b"tRNS":
            trns = body
        elif ctype in (b"tEXt", b"zTXt", b"iTXt"):
            decoded = _decode_text(ctype, body)
            if decoded is not None:
                texts.append(decoded)
        elif ctype == b"IEND":
            break
    if header is None:
        raise PngError("PNG file has no header")
    return _Chunks(header, plte, trns, texts)


def _make_raw(
    width: int, height: int, palette: Sequence[Color], depth: int, pixels: list[list[int]]
) -> RawImage:
    colors = _colors(depth)
    if len(palette) > colors:
        raise PngError(
            "Too many colors in input PNG file's palette to fit into a "
            f"{depth}-bit palette ({len(palette)} in input palette, max {colors})."
        )
    full = list(palette) + [(0, 0, 0)] * (colors - len(palette))
    return RawImage(width, height, full, pixels)


def build_palette(pixels: Iterable[tuple[int, int, int, int]], depth: int) -> list[Color]:
    """Collect the distinct opaque colours of RGBA pixels into a palette.

    A grayscale image gets its shades placed on the standard gray ramp where
    possible; otherwise colours are ordered from brightest to darkest.
    """
    colors = _colors(depth)
    palette: list[Color] = []
    seen: set[Color] = set()
    only_grayscale = True
    for red, green, blue, alpha in pixels:
        if alpha == 0:
            continue
        if only_grayscale and not (red == green == blue):
            only_grayscale = False
        color = (red, green, blue)
        if color not in seen:
            if len(palette) == colors:
                raise PngError(
                    "Too many colors in input PNG file to fit into a "
                    f"{depth}-bit palette (max {colors})."
                )
            seen.add(color)
            palette.append(color)

    if palette and only_grayscale:
        fitted = fit_grayscale_palette(palette, depth)
        if fitted is not None:
            return fitted
    return order_color_palette(palette)


def fit_grayscale_palette(palette: Sequence[Color], depth: int) -> list[Color] | None:
    """Place gray shades on the fixed gray ramp; None if two share a slot."""
    colors = _colors(depth)
    interval = 256 // colors
    fitted: list[Color] = [(0, 0, 0)] * colors
    fitted[0] = (0xFF, 0xFF, 0xFF)
    if colors == 4:
        fitted[1] = (0xA9, 0xA9, 0xA9)
        fitted[2] = (0x55, 0x55, 0x55)
    used: set[int] = set()
    for color in palette:
        slot = colors - 1 - color[0] // interval
        if slot in used:
            return None
        fitted[slot] = tuple(color)  # type: ignore[assignment]
        used.add(slot)
    return fitted


def order_color_palette(palette: Sequence[Color]) -> list[Color]:
    """Sort colours from the highest luminance to the lowest."""
    return sorted(
        (tuple(c) for c in palette),  # type: ignore[misc]
        key=lambda c: 2126 * c[0] + 7152 * c[1] + 722 * c[2],
        reverse=True,
    )


def _decode_image(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (OSError, SyntaxError, ValueError) as exc:
        raise PngError(f"Failed to decode PNG data: {exc}") from exc
    return image


def _rgba_rows(image: Image.Image) -> list[list[tuple[int, int, int, int]]]:
    width, height = image.size
    if image.mode.startswith("I"):
        transparent = image.info.get("transparency")
        rows = []
        for y in range(height):
            row = []
            for x in range(width):
                value = image.getpixel((x, y))
                shade = min(max(value >> 8, 0), 255)
                row.append((shade, shade, shade, 0 if value == transparent else 255))
            rows.append(row)
        return rows
    raw = image.convert("RGBA").tobytes()
    flat = [tuple(raw[i:i + 4]) for i in range(0, len(raw), 4)]
    return [flat[y * width:(y + 1) * width] for y in range(height)]  # type: ignore[misc]


def _indexed_to_raw(image: Image.Image, chunks: _Chunks, depth: int) -> RawImage:
    width, height = image.size
    plte = chunks.plte or b""
    palette = [tuple(plte[i:i + 3]) for i in range(0, len(plte) - 2, 3)]
    indices = image.convert("P").tobytes() if image.mode != "P" else image.tobytes()
    rows = [list(indices[y * width:(y + 1) * width]) for y in range(height)]

    if chunks.trns is None:
        return _make_raw(width, height, palette, depth, rows)  # type: ignore[arg-type]

    mapping: list[int] = []
    kept: list[Color] = []
    for i, color in enumerate(palette):
        if i < len(chunks.trns) and chunks.trns[i] == 0:
            mapping.append(0)
        else:
            mapping.append(len(kept))
            kept.append(color)  # type: ignore[arg-type]
    raw = _make_raw(width, height, kept, depth, [])
    try:
        raw.pixels = [[mapping[index] for index in row] for row in rows]
    except IndexError:
        raise PngError("The input PNG file uses a color index outside its palette.") from None
    return raw


def _truecolor_to_raw(image: Image.Image, chunks: _Chunks, depth: int) -> RawImage:
    width, height = image.size
    rows = _rgba_rows(image)
    if chunks.plte is not None and chunks.header.color_type in (_COLOR_RGB, _COLOR_RGB_ALPHA):
        plte = chunks.plte
        palette = [tuple(plte[i:i + 3]) for i in range(0, len(plte) - 2, 3)]
    else:
        palette = build_palette((p for row in rows for p in row), depth)
    raw = _make_raw(width, height, palette, depth, [])  # type: ignore[arg-type]

    lookup: dict[Color, int] = {}
    for index, color in enumerate(palette):
        lookup.setdefault(color, index)  # type: ignore[arg-type]
    pixels = []
    for row in rows:
        out = []
        for red, green, blue, alpha in row:
            if alpha == 0:
                out.append(0)
                continue
            index = lookup.get((red, green, blue))
            if index is None:
                raise PngError(
                    "The input PNG file contains colors that don't appear in its embedded palette."
                )
            out.append(index)
        pixels.append(out)
    raw.pixels = pixels
    return raw


def _text_options(texts: Iterable[tuple[str, str]]) -> ImageOptions:
    options = ImageOptions()
    for key, text in texts:
        if key == "h" and not text:
            options.horizontal = True
        elif key == "x":
            options.trim = _strtoul(text)
        elif key == "t":
            options.tilemapfile = text
        elif key == "T" and not text:
            options.tilemapout = True
        elif key == "a":
            options.attrmapfile = text
        elif key == "A" and not text:
            options.attrmapout = True
        elif key == "p":
            options.palfile = text
        elif key == "P" and not text:
            options.palout = True
    return options


def read_png(
    path: str | os.PathLike[str], depth: int = 2, verbose: bool = False
) -> tuple[RawImage, ImageOptions]:
    """Read a PNG file as an indexed image, with options found in its text chunks."""
    _colors(depth)
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise PngError(
            f"Opening input png file '{os.fspath(path)}' failed: {exc.strerror or exc}"
        ) from exc
    chunks = _parse_chunks(data)
    header = chunks.header
    if verbose and header.bit_depth != depth:
        warnx(f"Image bit depth is not {depth} (is {header.bit_depth}).")

    if header.color_type == _COLOR_PALETTE:
        raw = _indexed_to_raw(_decode_image(data), chunks, depth)
    elif header.color_type in (_COLOR_GRAY, _COLOR_GRAY_ALPHA, _COLOR_RGB, _COLOR_RGB_ALPHA):
        raw = _truecolor_to_raw(_decode_image(data), chunks, depth)
    else:
        raise PngError("Input PNG file is of invalid color type.")
    return raw, _text_options(chunks.texts)


def _chunk(ctype: bytes, body: bytes) -> bytes:
    crc = zlib.crc32(ctype + body) & 0xFFFFFFFF
    return struct.pack(">I", len(body)) + ctype + body + struct.pack(">I", crc)


def _text_entries(options: ImageOptions) -> list[tuple[str, str]]:
    entries = []
    if options.horizontal:
        entries.append(("h", ""))
    if options.trim:
        entries.append(("x", str(options.trim)[:2]))
    if options.tilemapfile:
        entries.append(("t", ""))
    if options.tilemapout:
        entries.append(("T", ""))
    if options.attrmapfile:
        entries.append(("a", ""))
    if options.attrmapout:
        entries.append(("A", ""))
    if options.palfile:
        entries.append(("p", ""))
    if options.palout:
        entries.append(("P", ""))
    return entries


def write_png(
    path: str | os.PathLike[str],
    raw_image: RawImage,
    options: ImageOptions | None = None,
    fix: bool = False,
) -> None:
    """Write an indexed image as an 8-bit paletted PNG.

    With ``fix``, the options are recorded in text chunks.
    """
    header = struct.pack(">IIBBBBB", raw_image.width, raw_image.height, 8, _COLOR_PALETTE, 0, 0, 0)
    palette = b"".join(bytes(color) for color in raw_image.palette)
    scanlines = b"".join(b"\0" + bytes(row[:raw_image.width]) for row in raw_image.pixels)
    parts = [_SIGNATURE, _chunk(b"IHDR", header), _chunk(b"PLTE", palette)]
    if fix and options is not None:
        for key, text in _text_entries(options):
            parts.append(_chunk(b"tEXt", key.encode("latin-1") + b"\0" + text.encode("latin-1")))
    parts.append(_chunk(b"IDAT", zlib.compress(scanlines)))
    parts.append(_chunk(b"IEND", b""))
    try:
        Path(path).write_bytes(b"".join(parts))
    except OSError as exc:
        raise PngError(
            f"Opening output png file '{os.fspath(path)}' failed: {exc.strerror or exc}"
        ) from exc