"""Fixing cartridge headers: logo, metadata, padding and checksums."""

from __future__ import annotations

import argparse
import os
import stat
import string
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum, IntFlag
from importlib.metadata import PackageNotFoundError, version
from typing import BinaryIO

from gbromkit.errors import warnx
from gbromkit.mbc import (
    MbcRangeError,
    MbcType,
    UnknownMbcError,
    WrongFeaturesError,
    accepted_mbc_names,
    has_ram,
    mbc_name,
    parse_mbc,
)

BANK_SIZE = 0x4000
MAX_BANKS = 0x10000

NINTENDO_LOGO = bytes((
    0xCE, 0xED, 0x66, 0x66, 0xCC, 0x0D, 0x00, 0x0B,
    0x03, 0x73, 0x00, 0x83, 0x00, 0x0C, 0x00, 0x0D,
    0x00, 0x08, 0x11, 0x1F, 0x88, 0x89, 0x00, 0x0E,
    0xDC, 0xCC, 0x6E, 0xE6, 0xDD, 0xDD, 0xD9, 0x99,
    0xBB, 0xBB, 0x67, 0x63, 0x6E, 0x0E, 0xEC, 0xCC,
    0xDD, 0xDC, 0x99, 0x9F, 0xBB, 0xB9, 0x33, 0x3E,
))
_TRASHED_LOGO = bytes(b ^ 0xFF for b in NINTENDO_LOGO)

_WHITESPACE = " \t\n\v\f\r"
_ULONG_MODULUS = 1 << 64

_USAGE = (
    "Usage: gbromkit-fix [-jOsVv] [-C | -c] [-f <fix_spec>] [-i <game_id>] [-k <licensee>]\n"
    "              [-l <licensee_byte>] [-m <mbc_type>] [-n <rom_version>]\n"
    "              [-p <pad_value>] [-r <ram_size>] [-t <title_str>] [<file> ...]\n"
    "Useful options:\n"
    "    -m, --mbc-type <value>      set the MBC type byte to this value; use\n"
    "                                  `-m help' for a list of values\n"
    "    -p, --pad-value <value>     pad to the next valid size using this value\n"
    "    -r, --ram-size <code>       set the cart RAM size byte to this value\n"
    "    -V, --version               print the version and exit\n"
    "    -v, --validate              fix the header logo and both checksums (-f lhg)\n"
)


class Model(Enum):
    """Which consoles the cartridge targets; DMG leaves the CGB flag alone."""

    DMG = "dmg"
    BOTH = "both"
    CGB = "cgb"


_CGB_FLAG = {Model.BOTH: 0x80, Model.CGB: 0xC0}


class FixSpec(IntFlag):
    """What to fix (or deliberately break) in the header."""

    NONE = 0
    TRASH_GLOBAL_SUM = 0x04
    FIX_GLOBAL_SUM = 0x08
    TRASH_HEADER_SUM = 0x10
    FIX_HEADER_SUM = 0x20
    TRASH_LOGO = 0x40
    FIX_LOGO = 0x80


class FixError(Exception):
    """A ROM could not be fixed, or an option value was rejected."""


@dataclass
class FixOptions:
    """Everything to change in a ROM's header."""

    model: Model = Model.DMG
    fix_spec: FixSpec = FixSpec.NONE
    title: bytes | None = None
    game_id: bytes | None = None
    new_licensee: bytes | None = None
    japanese: bool = True
    old_licensee: int | None = None
    cartridge_type: int | None = None
    tpp1_revision: tuple[int, int] = (1, 0)
    rom_version: int | None = None
    overwrite: bool = False
    pad_value: int | None = None
    ram_size: int | None = None
    sgb: bool = False

    @property
    def is_tpp1(self) -> bool:
        return self.cartridge_type is not None and (self.cartridge_type & 0xFF00) == MbcType.TPP1

    @property
    def max_title_len(self) -> int:
        if self.game_id is not None:
            return 11
        return 15 if self.model is not Model.DMG else 16

    @property
    def header_size(self) -> int:
        return 0x154 if self.is_tpp1 else 0x150


_SPEC_LETTERS = {
    "l": (FixSpec.FIX_LOGO, "L"),
    "L": (FixSpec.TRASH_LOGO, "l"),
    "h": (FixSpec.FIX_HEADER_SUM, "H"),
    "H": (FixSpec.TRASH_HEADER_SUM, "h"),
    "g": (FixSpec.FIX_GLOBAL_SUM, "G"),
    "G": (FixSpec.TRASH_GLOBAL_SUM, "g"),
}


def parse_fix_spec(spec: str) -> FixSpec:
    """Parse a fix spec such as "lhg"; later letters override opposite ones."""
    result = FixSpec.NONE
    for letter in spec:
        entry = _SPEC_LETTERS.get(letter)
        if entry is None:
            warnx(f"Ignoring '{letter}' in fix spec")
            continue
        flag, opposite = entry
        opposite_flag = _SPEC_LETTERS[opposite][0]
        if result & opposite_flag:
            warnx(f"'{letter}' overriding '{opposite}' in fix spec")
        result = FixSpec((result & ~opposite_flag) | flag)
    return result


def _strtoul(text: str, base: int) -> tuple[int, int]:
    """Parse like C's strtoul; return (value, number of characters consumed)."""
    i, length = 0, len(text)
    while i < length and text[i] in _WHITESPACE:
        i += 1
    negative = False
    if i < length and text[i] in "+-":
        negative = text[i] == "-"
        i += 1
    if (
        base in (0, 16)
        and text[i:i + 2] in ("0x", "0X")
        and i + 2 < length
        and text[i + 2] in string.hexdigits
    ):
        i += 2
        base = 16
    elif base == 0:
        base = 8 if text[i:i + 1] == "0" else 10
    start = i
    value = 0
    while i < length:
        char = text[i]
        if not (char.isascii() and char.isalnum()):
            break
        digit = int(char, 36)
        if digit >= base:
            break
        value = value * base + digit
        i += 1
    if i == start:
        return 0, 0
    if negative:
        value = (-value) % _ULONG_MODULUS
    return value, i


def parse_byte_arg(value: str, option: str) -> int:
    """Parse a byte-sized option argument ("$1F", "0x1F", "31", "037")."""
    if value == "":
        raise FixError(f"Argument to option '{option}' may not be empty")
    text, base = (value[1:], 16) if value[0] == "$" else (value, 0)
    number, end = _strtoul(text, base)
    if end != len(text):
        raise FixError(f"Expected number as argument to option '{option}', got {value}")
    if number > 0xFF:
        raise FixError(f"Argument to option '{option}' is larger than 255: {number}")
    return number


def _overwrite(rom: bytearray, addr: int, new: bytes, area: str, allowed: bool) -> None:
    if not allowed:
        original = rom[addr:addr + len(new)]
        if any(old != 0 and old != fixed for old, fixed in zip(original, new)):
            warnx(f"Overwrote a non-zero byte in the {area}")
    rom[addr:addr + len(new)] = new


def fix_rom(data: bytes, options: FixOptions) -> bytes:
    """Return a copy of a ROM image with its header fixed and padding applied."""
    rom = bytearray(data)
    header_size = options.header_size
    if len(rom) < header_size:
        raise FixError(
            f"too short, expected at least {header_size} (${header_size:x}) bytes, "
            f"got only {len(rom)}"
        )
    if len(rom) >= MAX_BANKS * BANK_SIZE:
        raise FixError(f"has more than {MAX_BANKS} banks")

    def put(addr: int, new: bytes, area: str) -> None:
        _overwrite(rom, addr, new, area, options.overwrite)

    spec = options.fix_spec
    if spec & FixSpec.FIX_LOGO:
        put(0x104, NINTENDO_LOGO, "Nintendo logo")
    elif spec & FixSpec.TRASH_LOGO:
        put(0x104, _TRASHED_LOGO, "Nintendo logo")

    if options.title is not None:
        put(0x134, options.title[:options.max_title_len], "title")
    if options.game_id is not None:
        put(0x13F, options.game_id[:4], "manufacturer code")
    if options.model is not Model.DMG:
        put(0x143, bytes([_CGB_FLAG[options.model]]), "CGB flag")
    if options.new_licensee is not None:
        put(0x144, options.new_licensee[:2], "new licensee code")
    if options.sgb:
        put(0x146, b"\x03", "SGB flag")

    if options.cartridge_type is not None:
        byte = 0xBC if options.is_tpp1 else options.cartridge_type & 0xFF
        put(0x147, bytes([byte]), "cartridge type")

    if options.is_tpp1:
        put(0x149, b"\xC1\x65", "TPP1 identification code")
        put(0x150, bytes(options.tpp1_revision), "TPP1 revision number")
        if options.ram_size is not None:
            put(0x152, bytes([options.ram_size]), "RAM size")
        put(0x153, bytes([options.cartridge_type & 0xFF]), "TPP1 feature flags")
    else:
        if options.ram_size is not None:
            put(0x149, bytes([options.ram_size]), "RAM size")
        if not options.japanese:
            put(0x14A, b"\x01", "destination code")

    if options.old_licensee is not None:
        put(0x14B, bytes([options.old_licensee]), "old licensee code")
    if options.rom_version is not None:
        put(0x14C, bytes([options.rom_version]), "mask ROM version number")

    if options.pad_value is not None:
        banks = max(2, -(-len(rom) // BANK_SIZE))
        if banks & (banks - 1):
            banks = 1 << banks.bit_length()
        rom.extend(bytes([options.pad_value]) * (banks * BANK_SIZE - len(rom)))
        rom[0x148] = banks.bit_length() - 2

    if spec & (FixSpec.FIX_HEADER_SUM | FixSpec.TRASH_HEADER_SUM):
        checksum = (-sum(rom[0x134:0x14D]) - (0x14D - 0x134)) & 0xFF
        if spec & FixSpec.TRASH_HEADER_SUM:
            checksum = ~checksum & 0xFF
        put(0x14D, bytes([checksum]), "header checksum")

    if spec & (FixSpec.FIX_GLOBAL_SUM | FixSpec.TRASH_GLOBAL_SUM):
        total = (sum(rom) - rom[0x14E] - rom[0x14F]) & 0xFFFF
        if spec & FixSpec.TRASH_GLOBAL_SUM:
            total = ~total & 0xFFFF
        put(0x14E, total.to_bytes(2, "big"), "global checksum")

    return bytes(rom)


def fix_stream(instream: BinaryIO, outstream: BinaryIO, options: FixOptions) -> None:
    """Read a whole ROM from instream and write the fixed ROM to outstream."""
    data = instream.read()
    try:
        fixed = fix_rom(data, options)
    except FixError as exc:
        raise FixError(f'"<stdin>" {exc}') from None
    outstream.write(fixed)


def fix_file(path: str | os.PathLike[str], options: FixOptions) -> None:
    """Fix a ROM file in place."""
    name = os.fspath(path)
    try:
        handle = open(path, "r+b")
    except OSError as exc:
        raise FixError(
            f'Failed to open "{name}" for reading+writing: {exc.strerror or exc}'
        ) from exc
    with handle:
        try:
            info = os.fstat(handle.fileno())
        except OSError as exc:
            raise FixError(f'Failed to stat "{name}": {exc.strerror or exc}') from exc
        if not stat.S_ISREG(info.st_mode):
            raise FixError(
                f'"{name}" is not a regular file, and thus cannot be modified in-place'
            )
        if info.st_size < 0x150:
            raise FixError(
                f'"{name}" too short, expected at least 336 ($150) bytes, '
                f"got only {info.st_size}"
            )
        try:
            data = handle.read()
        except OSError as exc:
            raise FixError(f'Failed to read "{name}"\'s header: {exc.strerror or exc}') from exc
        try:
            fixed = fix_rom(data, options)
        except FixError as exc:
            raise FixError(f'"{name}" {exc}') from None
        payload = fixed if options.pad_value is not None else fixed[:options.header_size]
        try:
            handle.seek(0)
            handle.write(payload)
        except OSError as exc:
            raise FixError(f'Failed to write "{name}": {exc.strerror or exc}') from exc


class _UsageError(Exception):
    pass


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        sys.stderr.write(f"FATAL: {message}\n{_USAGE}")
        raise _UsageError(message)


class _Record(argparse.Action):
    """Remember options in the order they were given."""

    def __call__(self, parser, namespace, values, option_string=None):  # type: ignore[override]
        namespace.events.append((self.dest, values))


_OPTIONS = (
    ("-C", "--color-only", "C", 0),
    ("-c", "--color-compatible", "c", 0),
    ("-f", "--fix-spec", "f", None),
    ("-i", "--game-id", "i", None),
    ("-j", "--non-japanese", "j", 0),
    ("-k", "--new-licensee", "k", None),
    ("-l", "--old-licensee", "l", None),
    ("-m", "--mbc-type", "m", None),
    ("-n", "--rom-version", "n", None),
    ("-O", "--overwrite", "O", 0),
    ("-p", "--pad-value", "p", None),
    ("-r", "--ram-size", "r", None),
    ("-s", "--sgb-compatible", "s", 0),
    ("-t", "--title", "t", None),
    ("-V", "--version", "V", 0),
    ("-v", "--validate", "v", 0),
)


def _build_parser() -> _ArgumentParser:
    parser = _ArgumentParser(prog="gbromkit-fix", add_help=False, usage=argparse.SUPPRESS)
    for short, long, key, nargs in _OPTIONS:
        parser.add_argument(
            short, long, dest=key, action=_Record, nargs=nargs, default=argparse.SUPPRESS
        )
    parser.add_argument("files", nargs="*")
    return parser


def _package_version() -> str:
    try:
        return version("gbromkit")
    except PackageNotFoundError:
        return "unknown"


class _Reporter:
    def __init__(self) -> None:
        self.count = 0

    def report(self, message: str) -> None:
        sys.stderr.write(message if message.endswith("\n") else message + "\n")
        self.count = min(self.count + 1, 255)


def _process(name: str, options: FixOptions) -> bool:
    """Fix one file (or stdin for "-"); return whether it failed."""
    display = "<stdin>" if name == "-" else name
    try:
        if name == "-":
            fix_stream(sys.stdin.buffer, sys.stdout.buffer, options)
            sys.stdout.buffer.flush()
        else:
            fix_file(name, options)
    except FixError as exc:
        sys.stderr.write(f"FATAL: {exc}\n")
        sys.stderr.write(f'Fixing "{display}" failed with 1 error\n')
        return True
    return False


def main(argv: Sequence[str] | None = None) -> int:
    """Command-line entry point; returns the exit status."""
    try:
        args = _build_parser().parse_args(argv, argparse.Namespace(events=[]))
    except _UsageError:
        return 1

    reporter = _Reporter()
    model = Model.DMG
    fix_spec = FixSpec.NONE
    title_text = ""
    title: bytes | None = None
    title_len = 0
    game_id: bytes | None = None
    new_licensee: bytes | None = None
    japanese = True
    cartridge: int | None = None
    revision = (1, 0)
    overwrite = False
    sgb = False
    byte_values: dict[str, int] = {}

    for key, value in args.events:
        if key in ("C", "c"):
            model = Model.BOTH if key == "c" else Model.CGB
            if title_len > 15:
                title_len = 15
                warnx(f'Truncating title "{title_text}" to 15 chars')
        elif key == "f":
            fix_spec = parse_fix_spec(value)
        elif key == "i":
            game_id = os.fsencode(value)
            if len(game_id) > 4:
                warnx(f'Truncating game ID "{value}" to 4 chars')
                game_id = game_id[:4]
            if title_len > 11:
                title_len = 11
                warnx(f'Truncating title "{title_text}" to 11 chars')
        elif key == "j":
            japanese = False
        elif key == "k":
            new_licensee = os.fsencode(value)
            if len(new_licensee) > 2:
                warnx(f'Truncating new licensee "{value}" to 2 chars')
                new_licensee = new_licensee[:2]
        elif key in ("l", "n", "p", "r"):
            try:
                byte_values[key] = parse_byte_arg(value, key)
            except FixError as exc:
                reporter.report(f"error: {exc}")
        elif key == "m":
            cartridge = None
            try:
                parsed = parse_mbc(value)
            except UnknownMbcError as exc:
                if exc.detail:
                    reporter.report(f"error: {exc.detail}")
                reporter.report(f'error: Unknown MBC "{value}"\nAccepted MBC names:')
                sys.stderr.write(accepted_mbc_names())
            except WrongFeaturesError:
                reporter.report(
                    f'error: Features incompatible with MBC ("{value}")\nAccepted combinations:'
                )
                sys.stderr.write(accepted_mbc_names())
            except MbcRangeError:
                reporter.report(f"error: Specified MBC ID out of range 0-255: {value}")
            else:
                if parsed.help_requested:
                    sys.stderr.write("Accepted MBC names:\n" + accepted_mbc_names())
                    return 0
                for message in parsed.warnings:
                    warnx(message)
                cartridge = parsed.mbc
                if parsed.tpp1_revision is not None:
                    revision = parsed.tpp1_revision
                if cartridge in (MbcType.ROM_RAM, MbcType.ROM_RAM_BATTERY):
                    warnx("ROM+RAM / ROM+RAM+BATTERY are under-specified and poorly supported")
        elif key == "O":
            overwrite = True
        elif key == "s":
            sgb = True
        elif key == "t":
            title_text = value
            title = os.fsencode(value)
            max_len = 11 if game_id is not None else 15 if model is not Model.DMG else 16
            title_len = len(title)
            if title_len > max_len:
                title_len = max_len
                warnx(f'Truncating title "{value}" to {max_len} chars')
        elif key == "V":
            print(f"gbromkit-fix {_package_version()}")
            return 0
        elif key == "v":
            fix_spec = FixSpec.FIX_LOGO | FixSpec.FIX_HEADER_SUM | FixSpec.FIX_GLOBAL_SUM

    options = FixOptions(
        model=model,
        fix_spec=fix_spec,
        title=title[:title_len] if title is not None else None,
        game_id=game_id,
        new_licensee=new_licensee,
        japanese=japanese,
        old_licensee=byte_values.get("l"),
        cartridge_type=cartridge,
        tpp1_revision=revision,
        rom_version=byte_values.get("n"),
        overwrite=overwrite,
        pad_value=byte_values.get("p"),
        ram_size=byte_values.get("r"),
        sgb=sgb,
    )

    if options.is_tpp1 and not japanese:
        warnx("TPP1 overwrites region flag for its identification code, ignoring `-j`")

    ram_size = options.ram_size
    if ram_size is not None and cartridge is not None and not options.is_tpp1:
        try:
            name = mbc_name(cartridge)
            with_ram = has_ram(cartridge)
        except ValueError:
            pass
        else:
            if cartridge in (MbcType.ROM_RAM, MbcType.ROM_RAM_BATTERY):
                if ram_size != 1:
                    warnx(f'MBC "{name}" should have 2kiB of RAM (-r 1)')
            elif with_ram:
                if ram_size == 0:
                    warnx(f'MBC "{name}" has RAM, but RAM size was set to 0')
                elif ram_size == 1:
                    warnx(f'RAM size 1 (2 kiB) was specified for MBC "{name}"')
            elif ram_size:
                warnx(f'MBC "{name}" has no RAM, but RAM size was set to {ram_size}')

    old = options.old_licensee
    if sgb and old is not None and old != 0x33:
        shown = f"{old:#x}" if old else "0"
        warnx(f"SGB compatibility enabled, but old licensee is {shown}, not 0x33")

    failed = reporter.count > 0
    for name in args.files or ["-"]:
        failed |= _process(name, options)
    return 1 if failed else 0