"""Parsing and description of cartridge memory bank controller (MBC) types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, IntFlag

_WHITESPACE = " \t\n\v\f\r"
_ULONG_MODULUS = 1 << 64


class MbcType(IntEnum):
    """Cartridge types; TPP1 types carry their feature bits in the low byte."""

    ROM = 0x00
    ROM_RAM = 0x08
    ROM_RAM_BATTERY = 0x09

    MBC1 = 0x01
    MBC1_RAM = 0x02
    MBC1_RAM_BATTERY = 0x03

    MBC2 = 0x05
    MBC2_BATTERY = 0x06

    MMM01 = 0x0B
    MMM01_RAM = 0x0C
    MMM01_RAM_BATTERY = 0x0D

    MBC3 = 0x11
    MBC3_TIMER_BATTERY = 0x0F
    MBC3_TIMER_RAM_BATTERY = 0x10
    MBC3_RAM = 0x12
    MBC3_RAM_BATTERY = 0x13

    MBC5 = 0x19
    MBC5_RAM = 0x1A
    MBC5_RAM_BATTERY = 0x1B
    MBC5_RUMBLE = 0x1C
    MBC5_RUMBLE_RAM = 0x1D
    MBC5_RUMBLE_RAM_BATTERY = 0x1E

    MBC6 = 0x20

    MBC7_SENSOR_RUMBLE_RAM_BATTERY = 0x22

    POCKET_CAMERA = 0xFC
    BANDAI_TAMA5 = 0xFD
    HUC3 = 0xFE
    HUC1_RAM_BATTERY = 0xFF

    TPP1 = 0x100
    TPP1_RUMBLE = 0x101
    TPP1_MULTIRUMBLE = 0x102
    TPP1_MULTIRUMBLE_RUMBLE = 0x103
    TPP1_TIMER = 0x104
    TPP1_TIMER_RUMBLE = 0x105
    TPP1_TIMER_MULTIRUMBLE = 0x106
    TPP1_TIMER_MULTIRUMBLE_RUMBLE = 0x107
    TPP1_BATTERY = 0x108
    TPP1_BATTERY_RUMBLE = 0x109
    TPP1_BATTERY_MULTIRUMBLE = 0x10A
    TPP1_BATTERY_MULTIRUMBLE_RUMBLE = 0x10B
    TPP1_BATTERY_TIMER = 0x10C
    TPP1_BATTERY_TIMER_RUMBLE = 0x10D
    TPP1_BATTERY_TIMER_MULTIRUMBLE = 0x10E
    TPP1_BATTERY_TIMER_MULTIRUMBLE_RUMBLE = 0x10F

    @property
    def is_tpp1(self) -> bool:
        return (self & 0xFF00) == MbcType.TPP1


class MbcError(ValueError):
    """An MBC specification could not be accepted."""

    def __init__(self, name: str, detail: str | None = None) -> None:
        self.name = name
        self.detail = detail
        super().__init__(self._describe())

    def _describe(self) -> str:
        return f'Invalid MBC "{self.name}"'


class UnknownMbcError(MbcError):
    """The MBC does not exist, or the specification is malformed."""

    def _describe(self) -> str:
        text = f'Unknown MBC "{self.name}"'
        return f"{text}: {self.detail}" if self.detail else text


class WrongFeaturesError(MbcError):
    """The requested features cannot be combined with the MBC."""

    def _describe(self) -> str:
        return f'Features incompatible with MBC ("{self.name}")'


class MbcRangeError(MbcError):
    """A numeric MBC value lies outside 0-255."""

    def _describe(self) -> str:
        return f"Specified MBC ID out of range 0-255: {self.name}"


@dataclass(frozen=True)
class ParsedMbc:
    """Result of parsing an MBC specification.

    ``mbc`` is the cartridge type (a plain int for numeric values that name
    no known type), or None when help was requested.
    """

    mbc: int | None
    tpp1_revision: tuple[int, int] | None = None
    warnings: tuple[str, ...] = ()
    help_requested: bool = False

    @property
    def is_tpp1(self) -> bool:
        return self.mbc is not None and (self.mbc & 0xFF00) == MbcType.TPP1


class _Feature(IntFlag):
    NONE = 0
    MULTIRUMBLE = 0x04
    SENSOR = 0x08
    RUMBLE = 0x10
    TIMER = 0x20
    BATTERY = 0x40
    RAM = 0x80


def _digit_value(char: str) -> int | None:
    if char.isascii() and char.isalnum():
        return int(char, 36)
    return None


def _strtoul(text: str, start: int, base: int) -> tuple[int, int]:
    """Parse an unsigned long like C's strtoul; return (value, end position)."""
    i = start
    length = len(text)
    while i < length and text[i] in _WHITESPACE:
        i += 1
    negative = False
    if i < length and text[i] in "+-":
        negative = text[i] == "-"
        i += 1
    if (
        base in (0, 16)
        and text[i:i + 2].lower() == "0x"
        and i + 2 < length
        and (_digit_value(text[i + 2]) or 0) < 16
        and _digit_value(text[i + 2]) is not None
    ):
        i += 2
        base = 16
    elif base == 0:
        base = 8 if i < length and text[i] == "0" else 10
    digits_start = i
    value = 0
    while i < length:
        digit = _digit_value(text[i])
        if digit is None or digit >= base:
            break
        value = value * base + digit
        i += 1
    if i == digits_start:
        return 0, start
    if negative:
        value = (-value) % _ULONG_MODULUS
    return value, i


class _Reader:
    """Cursor over an MBC name; reads past the end yield NUL."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.pos = 0

    def peek(self) -> str:
        return self.name[self.pos] if self.pos < len(self.name) else "\0"

    def take(self) -> str:
        char = self.peek()
        self.pos += 1
        return char

    def skip(self, chars: str) -> None:
        while self.pos < len(self.name) and self.name[self.pos] in chars:
            self.pos += 1

    def at_end(self) -> bool:
        return self.pos >= len(self.name)

    def fail(self, detail: str | None = None) -> UnknownMbcError:
        return UnknownMbcError(self.name, detail)

    def expect(self, expected: str) -> None:
        """Match expected case-insensitively, treating '_' as a space."""
        for wanted in expected:
            char = self.take()
            if char == "\0":
                raise self.fail()
            if "a" <= char <= "z":
                char = char.upper()
            elif char == "_":
                char = " "
            if char != wanted:
                raise self.fail()


def _parse_number(name: str) -> ParsedMbc:
    text, base = (name[1:], 16) if name[0] == "$" else (name, 0)
    value, end = _strtoul(text, 0, base)
    if end != len(text):
        raise UnknownMbcError(name)
    if value > 0xFF:
        raise MbcRangeError(name)
    try:
        return ParsedMbc(MbcType(value))
    except ValueError:
        return ParsedMbc(value)


def _parse_tpp1_revision(reader: _Reader) -> tuple[int, int]:
    reader.skip(" _")
    major, end = _strtoul(reader.name, reader.pos, 10)
    if end == reader.pos:
        raise reader.fail("Failed to parse TPP1 major revision number")
    reader.pos = end
    if major != 1:
        raise reader.fail("RGBFIX only supports TPP1 versions 1.0")
    reader.expect(".")
    minor, end = _strtoul(reader.name, reader.pos, 10)
    if end == reader.pos:
        raise reader.fail("Failed to parse TPP1 minor revision number")
    reader.pos = end
    if minor > 0xFF:
        raise reader.fail("TPP1 minor revision number must be 8-bit")
    return major, minor


def _parse_base(reader: _Reader) -> tuple[int, tuple[int, int] | None]:
    first = reader.take()
    if first in "Rr":
        reader.expect("OM")
        reader.skip(" \t_")
        if reader.peek() in "Oo":
            reader.take()
            reader.expect("NLY")
        return MbcType.ROM, None
    if first in "Mm":
        second = reader.take()
        if second in "Bb":
            if reader.take() not in "Cc":
                raise reader.fail()
            number = {
                "1": MbcType.MBC1,
                "2": MbcType.MBC2,
                "3": MbcType.MBC3,
                "5": MbcType.MBC5,
                "6": MbcType.MBC6,
                "7": MbcType.MBC7_SENSOR_RUMBLE_RAM_BATTERY,
            }.get(reader.take())
            if number is None:
                raise reader.fail()
            return number, None
        if second in "Mm":
            reader.expect("M01")
            return MbcType.MMM01, None
        raise reader.fail()
    if first in "Pp":
        reader.expect("OCKET CAMERA")
        return MbcType.POCKET_CAMERA, None
    if first in "Bb":
        reader.expect("ANDAI TAMA5")
        return MbcType.BANDAI_TAMA5, None
    if first in "Tt":
        second = reader.take()
        if second == "A":
            reader.expect("MA5")
            return MbcType.BANDAI_TAMA5, None
        if second == "P":
            reader.expect("P1")
            return MbcType.TPP1, _parse_tpp1_revision(reader)
        raise reader.fail()
    if first in "Hh":
        reader.expect("UC")
        huc = {"1": MbcType.HUC1_RAM_BATTERY, "3": MbcType.HUC3}.get(reader.take())
        if huc is None:
            raise reader.fail()
        return huc, None
    raise reader.fail()


def _parse_features(reader: _Reader) -> _Feature:
    features = _Feature.NONE
    while True:
        reader.skip(" \t_")
        if reader.at_end():
            return features
        if reader.take() != "+":
            raise reader.fail()
        reader.skip(" \t_")
        char = reader.take()
        if char in "Bb":
            reader.expect("ATTERY")
            features |= _Feature.BATTERY
        elif char in "Mm":
            reader.expect("ULTIRUMBLE")
            features |= _Feature.MULTIRUMBLE
        elif char in "Rr":
            second = reader.take()
            if second in "Uu":
                reader.expect("MBLE")
                features |= _Feature.RUMBLE
            elif second in "Aa":
                if reader.take() not in "Mm":
                    raise reader.fail()
                features |= _Feature.RAM
            else:
                raise reader.fail()
        elif char in "Ss":
            reader.expect("ENSOR")
            features |= _Feature.SENSOR
        elif char in "Tt":
            reader.expect("IMER")
            features |= _Feature.TIMER
        else:
            raise reader.fail()


def _ram_variant(base: int, features: _Feature, name: str) -> int:
    """Return base, base+1 (RAM) or base+2 (RAM+BATTERY)."""
    if features == _Feature.RAM:
        return base + 1
    if features == _Feature.RAM | _Feature.BATTERY:
        return base + 2
    if features:
        raise WrongFeaturesError(name)
    return base


def _combine(mbc: int, features: _Feature, name: str, warnings: list[str]) -> int:
    if mbc in (MbcType.ROM, MbcType.MBC1, MbcType.MMM01):
        if mbc == MbcType.ROM:
            if not features:
                return mbc
            mbc = MbcType.ROM_RAM - 1
        return _ram_variant(mbc, features, name)
    if mbc == MbcType.MBC2:
        if features == _Feature.BATTERY:
            return MbcType.MBC2_BATTERY
        if features:
            raise WrongFeaturesError(name)
        return mbc
    if mbc == MbcType.MBC3:
        if features & _Feature.TIMER:
            if not features & _Feature.BATTERY:
                warnings.append("MBC3+TIMER implies BATTERY")
            features &= ~(_Feature.TIMER | _Feature.BATTERY)
            mbc = MbcType.MBC3_TIMER_BATTERY
        return _ram_variant(mbc, features, name)
    if mbc == MbcType.MBC5:
        if features & _Feature.RUMBLE:
            features &= ~_Feature.RUMBLE
            mbc = MbcType.MBC5_RUMBLE
        return _ram_variant(mbc, features, name)
    if mbc in (MbcType.MBC6, MbcType.POCKET_CAMERA, MbcType.BANDAI_TAMA5, MbcType.HUC3):
        if features:
            raise WrongFeaturesError(name)
        return mbc
    if mbc == MbcType.MBC7_SENSOR_RUMBLE_RAM_BATTERY:
        if features != _Feature.SENSOR | _Feature.RUMBLE | _Feature.RAM | _Feature.BATTERY:
            raise WrongFeaturesError(name)
        return mbc
    if mbc == MbcType.HUC1_RAM_BATTERY:
        if features != _Feature.RAM | _Feature.BATTERY:
            raise WrongFeaturesError(name)
        return mbc
    # TPP1
    if features & _Feature.RAM:
        warnings.append("TPP1 requests RAM implicitly if given a non-zero RAM size")
    if features & _Feature.BATTERY:
        mbc |= 0x08
    if features & _Feature.TIMER:
        mbc |= 0x04
    if features & _Feature.MULTIRUMBLE:
        mbc |= 0x03
    if features & _Feature.RUMBLE:
        mbc |= 0x01
    if features & _Feature.SENSOR:
        raise WrongFeaturesError(name)
    return mbc


def parse_mbc(name: str) -> ParsedMbc:
    """Parse an MBC given by number ("0x1B", "$1B", "27") or by name ("MBC5+RAM")."""
    if name.lower() == "help":
        return ParsedMbc(None, help_requested=True)
    if name and (name[0] in "0123456789" or name[0] == "$"):
        return _parse_number(name)

    reader = _Reader(name)
    reader.skip(" \t")
    base, revision = _parse_base(reader)
    features = _parse_features(reader)
    warnings: list[str] = []
    mbc = _combine(base, features, name, warnings)
    return ParsedMbc(MbcType(mbc), tpp1_revision=revision, warnings=tuple(warnings))


_NAMES = {
    MbcType.ROM: "ROM",
    MbcType.ROM_RAM: "ROM+RAM",
    MbcType.ROM_RAM_BATTERY: "ROM+RAM+BATTERY",
    MbcType.MBC1: "MBC1",
    MbcType.MBC1_RAM: "MBC1+RAM",
    MbcType.MBC1_RAM_BATTERY: "MBC1+RAM+BATTERY",
    MbcType.MBC2: "MBC2",
    MbcType.MBC2_BATTERY: "MBC2+BATTERY",
    MbcType.MMM01: "MMM01",
    MbcType.MMM01_RAM: "MMM01+RAM",
    MbcType.MMM01_RAM_BATTERY: "MMM01+RAM+BATTERY",
    MbcType.MBC3: "MBC3",
    MbcType.MBC3_TIMER_BATTERY: "MBC3+TIMER+BATTERY",
    MbcType.MBC3_TIMER_RAM_BATTERY: "MBC3+TIMER+RAM+BATTERY",
    MbcType.MBC3_RAM: "MBC3+RAM",
    MbcType.MBC3_RAM_BATTERY: "MBC3+RAM+BATTERY",
    MbcType.MBC5: "MBC5",
    MbcType.MBC5_RAM: "MBC5+RAM",
    MbcType.MBC5_RAM_BATTERY: "MBC5+RAM+BATTERY",
    MbcType.MBC5_RUMBLE: "MBC5+RUMBLE",
    MbcType.MBC5_RUMBLE_RAM: "MBC5+RUMBLE+RAM",
    MbcType.MBC5_RUMBLE_RAM_BATTERY: "MBC5+RUMBLE+RAM+BATTERY",
    MbcType.MBC6: "MBC6",
    MbcType.MBC7_SENSOR_RUMBLE_RAM_BATTERY: "MBC7+SENSOR+RUMBLE+RAM+BATTERY",
    MbcType.POCKET_CAMERA: "POCKET CAMERA",
    MbcType.BANDAI_TAMA5: "BANDAI TAMA5",
    MbcType.HUC3: "HUC3",
    MbcType.HUC1_RAM_BATTERY: "HUC1+RAM+BATTERY",
    MbcType.TPP1: "TPP1",
    MbcType.TPP1_RUMBLE: "TPP1+RUMBLE",
    MbcType.TPP1_MULTIRUMBLE: "TPP1+MULTIRUMBLE",
    MbcType.TPP1_MULTIRUMBLE_RUMBLE: "TPP1+MULTIRUMBLE",
    MbcType.TPP1_TIMER: "TPP1+TIMER",
    MbcType.TPP1_TIMER_RUMBLE: "TPP1+TIMER+RUMBLE",
    MbcType.TPP1_TIMER_MULTIRUMBLE: "TPP1+TIMER+MULTIRUMBLE",
    MbcType.TPP1_TIMER_MULTIRUMBLE_RUMBLE: "TPP1+TIMER+MULTIRUMBLE",
    MbcType.TPP1_BATTERY: "TPP1+BATTERY",
    MbcType.TPP1_BATTERY_RUMBLE: "TPP1+BATTERY+RUMBLE",
    MbcType.TPP1_BATTERY_MULTIRUMBLE: "TPP1+BATTERY+MULTIRUMBLE",
    MbcType.TPP1_BATTERY_MULTIRUMBLE_RUMBLE: "TPP1+BATTERY+MULTIRUMBLE",
    MbcType.TPP1_BATTERY_TIMER: "TPP1+BATTERY+TIMER",
    MbcType.TPP1_BATTERY_TIMER_RUMBLE: "TPP1+BATTERY+TIMER+RUMBLE",
    MbcType.TPP1_BATTERY_TIMER_MULTIRUMBLE: "TPP1+BATTERY+TIMER+MULTIRUMBLE",
    MbcType.TPP1_BATTERY_TIMER_MULTIRUMBLE_RUMBLE: "TPP1+BATTERY+TIMER+MULTIRUMBLE",
}

_WITH_RAM = frozenset({
    MbcType.ROM_RAM,
    MbcType.ROM_RAM_BATTERY,
    MbcType.MBC1_RAM,
    MbcType.MBC1_RAM_BATTERY,
    MbcType.MMM01_RAM,
    MbcType.MMM01_RAM_BATTERY,
    MbcType.MBC3_TIMER_RAM_BATTERY,
    MbcType.MBC3_RAM,
    MbcType.MBC3_RAM_BATTERY,
    MbcType.MBC5_RAM,
    MbcType.MBC5_RAM_BATTERY,
    MbcType.MBC5_RUMBLE_RAM,
    MbcType.MBC5_RUMBLE_RAM_BATTERY,
    MbcType.MBC7_SENSOR_RUMBLE_RAM_BATTERY,
    MbcType.POCKET_CAMERA,
    MbcType.HUC3,
    MbcType.HUC1_RAM_BATTERY,
})


def _known(mbc: int) -> MbcType:
    try:
        return MbcType(mbc)
    except ValueError:
        raise ValueError(f"Unknown cartridge type ${mbc:02X}") from None


def mbc_name(mbc: int) -> str:
    """Return the display name of a cartridge type."""
    return _NAMES[_known(mbc)]


def has_ram(mbc: int) -> bool:
    """Tell whether a non-TPP1 cartridge type is marked as having RAM."""
    known = _known(mbc)
    if known.is_tpp1:
        raise ValueError("TPP1 may or may not have RAM")
    return known in _WITH_RAM


def accepted_mbc_names() -> str:
    """Return the listing of accepted MBC names, one group per line."""
    return (
        "\tROM ($00) [aka ROM_ONLY]\n"
        "\tMBC1 ($01), MBC1+RAM ($02), MBC1+RAM+BATTERY ($03)\n"
        "\tMBC2 ($05), MBC2+BATTERY ($06)\n"
        "\tROM+RAM ($08) [deprecated], ROM+RAM+BATTERY ($09) [deprecated]\n"
        "\tMMM01 ($0B), MMM01+RAM ($0C), MMM01+RAM+BATTERY ($0D)\n"
        "\tMBC3+TIMER+BATTERY ($0F), MBC3+TIMER+RAM+BATTERY ($10)\n"
        "\tMBC3 ($11), MBC3+RAM ($12), MBC3+RAM+BATTERY ($13)\n"
        "\tMBC5 ($19), MBC5+RAM ($1A), MBC5+RAM+BATTERY ($1B)\n"
        "\tMBC5+RUMBLE ($1C), MBC5+RUMBLE+RAM ($1D), MBC5+RUMBLE+RAM+BATTERY ($1E)\n"
        "\tMBC6 ($20)\n"
        "\tMBC7+SENSOR+RUMBLE+RAM+BATTERY ($22)\n"
        "\tPOCKET_CAMERA ($FC)\n"
        "\tBANDAI_TAMA5 ($FD)\n"
        "\tHUC3 ($FE)\n"
        "\tHUC1+RAM+BATTERY ($FF)\n"
        "\n\tTPP1_1.0, TPP1_1.0+RUMBLE, TPP1_1.0+MULTIRUMBLE, TPP1_1.0+TIMER,\n"
        "\tTPP1_1.0+TIMER+RUMBLE, TPP1_1.0+TIMER+MULTIRUMBLE, TPP1_1.0+BATTERY,\n"
        "\tTPP1_1.0+BATTERY+RUMBLE, TPP1_1.0+BATTERY+MULTIRUMBLE,\n"
        "\tTPP1_1.0+BATTERY+TIMER, TPP1_1.0+BATTERY+TIMER+RUMBLE,\n"
        "\tTPP1_1.0+BATTERY+TIMER+MULTIRUMBLE\n"
    )