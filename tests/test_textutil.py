import pytest

from gbromkit.textutil import print_char, read_utf8_char


def test_printable_character_is_quoted():
    assert print_char(ord("A")) == "'A'"


def test_newline_is_escaped():
    assert print_char(ord("\n")) == "'\\n'"


@pytest.mark.parametrize("char,letter", [("\r", "r"), ("\t", "t")])
def test_other_escapes(char, letter):
    assert print_char(ord(char)) == "'\\" + letter + "'"


def test_eof():
    assert print_char(-1) == "EOF"
    assert print_char(None) == "EOF"


def test_non_printable_is_hex():
    assert print_char(0xFF) == "0xFF"
    assert print_char(0) == "0x00"


def test_space_and_tilde_are_printable():
    assert print_char(ord(" ")) == "' '"
    assert print_char(ord("~")) == "'~'"


@pytest.mark.parametrize("char", ["a", "é", "€", "😀", "\u07ff", "\U0010ffff"])
def test_reads_whole_character(char):
    encoded = char.encode("utf-8")
    assert read_utf8_char(encoded + b"rest") == encoded


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"\xff",
        b"\x80",
        b"\xc0\x80",
        b"\xed\xa0\x80",
        b"\xe2\x82",
        b"\xf4\x90\x80\x80",
        b"\xe0\x80\x80",
        b"\xc3(",
    ],
)
def test_rejects_malformed(data):
    assert read_utf8_char(data) == b""


def test_nul_byte_is_single_character():
    assert read_utf8_char(b"\x00abc") == b"\x00"