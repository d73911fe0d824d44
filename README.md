# gbromkit

Tools for Game Boy homebrew development:

- **ROM header fixing** (`gbromkit-fix`, module `gbromkit.fix`): write the
  boot logo, title, manufacturer code, CGB/SGB flags, cartridge (MBC) type,
  RAM size, licensee codes, version number, and the header and global
  checksums. It can also pad a ROM to a valid power-of-two size.
- **Graphics conversion** (`gbromkit-gfx`, module `gbromkit.gfx`): turn PNG
  images into 1bpp or 2bpp Game Boy tile data. It can also produce tilemaps,
  attribute maps and palette files, and it can remove duplicate tiles,
  including mirrored ones.

## Installation

```
pip install .
```

To run the tests, install the `test` extra (`pip install .[test]`) and run
`pytest`.

## Fixing a ROM header

```
gbromkit-fix -v -p 0xFF game.gb
```

This fixes the logo and both checksums (`-v`) and pads the file with `0xFF`
(`-p`). The file is changed in place. Options:

| Option | Meaning |
| --- | --- |
| `-C`, `--color-only` / `-c`, `--color-compatible` | mark the ROM as CGB-only or CGB-compatible |
| `-f`, `--fix-spec <spec>` | fix spec: `l`/`L` logo, `h`/`H` header sum, `g`/`G` global sum (uppercase writes a deliberately wrong value) |
| `-i`, `--game-id <id>` | game ID (truncated to 4 characters) |
| `-j`, `--non-japanese` | non-Japanese destination code |
| `-k`, `--new-licensee <code>` | new licensee code (truncated to 2 characters) |
| `-l`, `--old-licensee <byte>` | old licensee byte |
| `-m`, `--mbc-type <mbc>` | cartridge type, e.g. `MBC5+RAM+BATTERY`, `$1B`, `0x1B`, `TPP1_1.0+TIMER`, or `help` for the list |
| `-n`, `--rom-version <byte>` | mask ROM version number |
| `-O`, `--overwrite` | do not warn when overwriting non-zero bytes |
| `-p`, `--pad-value <byte>` | pad to the next power-of-two size (at least 32 KiB) with this byte |
| `-r`, `--ram-size <byte>` | RAM size code |
| `-s`, `--sgb-compatible` | set the SGB flag |
| `-t`, `--title <title>` | game title (at most 16, 15 or 11 characters depending on `-C`/`-c` and `-i`) |
| `-V`, `--version` | print the version and exit |
| `-v`, `--validate` | same as `-f lhg` |

Byte arguments accept decimal, `0x`-prefixed hexadecimal, `0`-prefixed octal,
or `$`-prefixed hexadecimal. Give `-` as the file name, or no file at all, to
read a ROM from standard input and write the fixed ROM to standard output.
The exit status is 1 if any option or file failed.

From Python:

```python
from gbromkit.fix import FixOptions, FixSpec, fix_rom, parse_fix_spec
from gbromkit.mbc import mbc_name, parse_mbc

parsed = parse_mbc("mbc3+timer+ram+battery")
print(mbc_name(parsed.mbc))   # MBC3+TIMER+RAM+BATTERY

options = FixOptions(
    fix_spec=parse_fix_spec("lhg"),
    cartridge_type=parsed.mbc,
    title=b"MYGAME",
    pad_value=0xFF,
)
fixed = fix_rom(rom_bytes, options)
```

`fix_rom` returns new bytes and raises `FixError` for a ROM shorter than its
header. `fix_file` fixes a file in place and `fix_stream` copies from one
binary stream to another. `parse_mbc` raises `UnknownMbcError`,
`WrongFeaturesError` or `MbcRangeError` (all subclasses of `MbcError`) for
rejected names; `has_ram` and `accepted_mbc_names` describe the known types.

## Converting graphics

```
gbromkit-gfx -o tiles.2bpp -u -T sprites.png
```

This writes deduplicated 2bpp tile data to `tiles.2bpp` and a tilemap to
`sprites.tilemap`. Options:

| Option | Meaning |
| --- | --- |
| `-d`, `--depth <1\|2>` | bit depth (default 2) |
| `-o`, `--output <file>` | output tile data |
| `-t`, `--tilemap <file>` / `-T`, `--output-tilemap` | tilemap output, named explicitly or derived from the input name |
| `-a`, `--attr-map <file>` / `-A`, `--output-attr-map` | attribute map output (flip flags) |
| `-p`, `--palette <file>` / `-P`, `--output-palette` | palette output (15-bit BGR, little-endian) |
| `-u`, `--unique-tiles` | remove identical tiles |
| `-m`, `--mirror-tiles` | also remove mirrored tiles (implies `-u`) |
| `-h`, `--horizontal` | lay tiles out column by column |
| `-x`, `--trim-end <n>` | leave out the last *n* tiles |
| `-C`, `--color-curve` | apply a color curve when writing the palette |
| `-f`, `--fix` / `-F`, `--fix-and-save` | rewrite the input as an 8-bit indexed PNG, recording settings in text chunks; `-F` makes the command-line settings replace those read from the PNG |
| `-D`, `--debug` | write the indexed PNG to `<input>.out` instead |
| `-v`, `--verbose` | warn about bit depth and settings that differ from the PNG's |
| `-V`, `--version` | print the version and exit |

The image width must be a multiple of 8, and an image wider than one tile
must also have a height that is a multiple of 8. Indexed images keep their
palette (fully transparent entries are dropped and their pixels become index
0). Grayscale images are placed on the standard gray shades where possible;
other images get their colors ordered from brightest to darkest.

From Python, `gbromkit.pngio.read_png` loads an image as a `RawImage` plus
the `ImageOptions` stored in it, and `write_png` writes one back.
`gbromkit.tiles` provides `raw_to_gb`, `create_mapfiles` (returning
`TileMaps`) and `palette_bytes` for building the outputs yourself, and
`gbromkit.gfx.convert` runs the whole conversion from a `GfxOptions`.

## Supporting modules

- `gbromkit.errors`: `warn`, `warnx`, `err` and `errx` print to standard
  error; the last two raise `FatalError`, a `SystemExit` with status 1.
- `gbromkit.diagnostics`: `Diagnostics` handles `-W` style warning flags
  (`div`, `no-obsolete`, `error=shift`, `truncation=2`, `all`, `extra`,
  `everything`, `error`) and reports errors, fatal errors
  (`AssemblyFatalError`) and warnings identified by `WarningID`.
- `gbromkit.hashmap`: `HashMap`, a string-keyed map bucketed by the FNV-1a
  hash (`fnv1a`), where a repeated key shadows the older entry.
- `gbromkit.textutil`: `print_char` describes a character code for messages,
  and `read_utf8_char` extracts the first well-formed UTF-8 character.

## What is not included

There is no assembler and no linker: the package cannot turn source code
into a ROM. The diagnostics, hash map and text helpers above are available as
building blocks, but nothing in the package uses them to assemble code.