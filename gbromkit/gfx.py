"""Converting PNG images into tile data, tile maps, attribute maps and palettes."""

from __future__ import annotations

import argparse
import dataclasses
import os
import re
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version

from gbromkit.errors import FatalError, err, errx, warnx
from gbromkit.pngio import ImageOptions, PngError, RawImage, read_png, write_png
from gbromkit.tiles import create_mapfiles, palette_bytes, raw_to_gb

_USAGE = (
    "Usage: gbromkit-gfx [-CDhmuVv] [-f | -F] [-a <attr_map> | -A] [-d <depth>]\n"
    "              [-o <out_file>] [-p <pal_file> | -P] [-t <tile_map> | -T]\n"
    "              [-x <tiles>] <file>\n"
    "Useful options:\n"
    "    -f, --fix                 make the input image an indexed PNG\n"
    "    -m, --mirror-tiles        optimize out mirrored tiles\n"
    "    -o, --output <path>       set the output binary file\n"
    "    -t, --tilemap <path>      set the output tilemap file\n"
    "    -u, --unique-tiles        optimize out identical tiles\n"
    "    -V, --version             print the version and exit\n"
)

_NUMBER = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")


@dataclass
class GfxOptions:
    """Settings for one image conversion; empty file names mean "no output"."""

    infile: str = ""
    outfile: str = ""
    tilemapfile: str = ""
    attrmapfile: str = ""
    palfile: str = ""
    tilemapout: bool = False
    attrmapout: bool = False
    palout: bool = False
    depth: int = 2
    trim: int = 0
    horizontal: bool = False
    unique: bool = False
    mirror: bool = False
    colorcurve: bool = False
    fix: bool = False
    hardfix: bool = False
    debug: bool = False
    verbose: bool = False


def derive_output_name(infile: str, extension: str) -> str:
    """Replace everything from the last '.' of infile with extension, or append it."""
    stem, dot, _ = infile.rpartition(".")
    return stem + extension if dot else infile + extension


def _mismatch(prop: str) -> None:
    warnx(f"The PNG's {prop} setting doesn't match the one defined on the command line")


def _write(path: str, data: bytes, what: str) -> None:
    try:
        with open(path, "wb") as handle:
            handle.write(data)
    except OSError:
        err(f"Opening {what} file '{path}' failed")


def _reconcile_flag(opts: GfxOptions, png: ImageOptions, name: str, label: str) -> None:
    png_value = getattr(png, name)
    opt_value = getattr(opts, name)
    if png_value != opt_value:
        if opts.verbose:
            _mismatch(label)
        if opts.hardfix:
            setattr(png, name, opt_value)
    if getattr(png, name):
        setattr(opts, name, getattr(png, name))


def _reconcile_file(opts: GfxOptions, png: ImageOptions, name: str, label: str) -> None:
    if getattr(png, name) != getattr(opts, name):
        if opts.verbose:
            _mismatch(label)
        if opts.hardfix:
            setattr(png, name, getattr(opts, name))
    if not getattr(opts, name):
        setattr(opts, name, getattr(png, name))


def convert(options: GfxOptions) -> GfxOptions:
    """Convert options.infile and write every requested output.

    Returns the options as finally resolved (settings from the PNG merged in,
    derived file names filled in). Raises FatalError on failure.
    """
    opts = dataclasses.replace(options)
    if opts.depth not in (1, 2):
        errx("Depth option must be either 1 or 2.")

    try:
        raw, png = read_png(opts.infile, opts.depth, opts.verbose)
    except PngError as exc:
        errx(str(exc))

    png.tilemapfile = ""
    png.attrmapfile = ""
    png.palfile = ""

    _reconcile_flag(opts, png, "horizontal", "horizontal")
    _reconcile_flag(opts, png, "trim", "trim")

    if raw.width % 8:
        errx(
            f"Input PNG file {opts.infile} not sized correctly. "
            "The image's width must be a multiple of 8."
        )
    if raw.width // 8 > 1 and raw.height % 8:
        errx(
            f"Input PNG file {opts.infile} not sized correctly. If the image is more "
            "than 1 tile wide, its height must be a multiple of 8."
        )

    max_trim = (raw.width // 8) * (raw.height // 8) - 1
    if opts.trim and opts.trim > max_trim:
        errx(
            f"Trim ({opts.trim}) for input raw_image file '{opts.infile}' "
            f"too large (max: {max_trim})"
        )

    _reconcile_file(opts, png, "tilemapfile", "tilemap file")
    _reconcile_flag(opts, png, "tilemapout", "tilemap file")
    _reconcile_file(opts, png, "attrmapfile", "attrmap file")
    _reconcile_flag(opts, png, "attrmapout", "attrmap file")
    _reconcile_file(opts, png, "palfile", "palette file")
    _reconcile_flag(opts, png, "palout", "palette file")

    if not opts.tilemapfile and opts.tilemapout:
        opts.tilemapfile = derive_output_name(opts.infile, ".tilemap")
    if not opts.attrmapfile and opts.attrmapout:
        opts.attrmapfile = derive_output_name(opts.infile, ".attrmap")
    if not opts.palfile and opts.palout:
        opts.palfile = derive_output_name(opts.infile, ".pal")

    if opts.outfile or opts.tilemapfile or opts.attrmapfile:
        data = raw_to_gb(raw.pixels, raw.width, raw.height, opts.depth, opts.horizontal)
        maps = create_mapfiles(data, opts.trim, opts.depth, opts.unique, opts.mirror)
        if opts.outfile:
            length = max(len(maps.data) - opts.trim * 8 * opts.depth, 0)
            _write(opts.outfile, maps.data[:length], "output")
        if opts.tilemapfile:
            _write(opts.tilemapfile, maps.tilemap, "tilemap")
        if opts.attrmapfile:
            _write(opts.attrmapfile, maps.attrmap, "attrmap")

    if opts.palfile:
        _write(opts.palfile, palette_bytes(raw.palette, opts.colorcurve), "palette")

    if opts.fix or opts.debug:
        _write_image(opts, png, raw)

    return opts


def _write_image(opts: GfxOptions, png: ImageOptions, raw: RawImage) -> None:
    target = opts.infile + ".out" if opts.debug else opts.infile
    try:
        write_png(target, raw, png, opts.fix)
    except PngError as exc:
        errx(str(exc))


def _strtoul(text: str) -> int:
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


class _UsageError(Exception):
    pass


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        sys.stderr.write(_USAGE)
        raise _UsageError(message)


def _build_parser() -> _ArgumentParser:
    parser = _ArgumentParser(prog="gbromkit-gfx", add_help=False, usage=argparse.SUPPRESS)
    flags = (
        ("-A", "--output-attr-map", "attrmapout"),
        ("-C", "--color-curve", "colorcurve"),
        ("-D", "--debug", "debug"),
        ("-f", "--fix", "fix"),
        ("-F", "--fix-and-save", "hardfix"),
        ("-h", "--horizontal", "horizontal"),
        ("-m", "--mirror-tiles", "mirror"),
        ("-P", "--output-palette", "palout"),
        ("-T", "--output-tilemap", "tilemapout"),
        ("-u", "--unique-tiles", "unique"),
        ("-V", "--version", "show_version"),
        ("-v", "--verbose", "verbose"),
    )
    for short, long, dest in flags:
        parser.add_argument(short, long, dest=dest, action="store_true")
    values = (
        ("-a", "--attr-map", "attrmapfile"),
        ("-d", "--depth", "depth"),
        ("-o", "--output", "outfile"),
        ("-p", "--palette", "palfile"),
        ("-t", "--tilemap", "tilemapfile"),
        ("-x", "--trim-end", "trim"),
    )
    for short, long, dest in values:
        parser.add_argument(short, long, dest=dest, default=None)
    parser.add_argument("files", nargs="*")
    return parser


def _package_version() -> str:
    try:
        return version("gbromkit")
    except PackageNotFoundError:
        return "unknown"


def main(argv: Sequence[str] | None = None) -> int:
    """Command-line entry point; returns the exit status."""
    try:
        args = _build_parser().parse_args(argv)
    except _UsageError:
        return 1

    if args.show_version:
        print(f"gbromkit-gfx {_package_version()}")
        return 0

    if not args.files:
        sys.stderr.write("FATAL: no input files\n" + _USAGE)
        return 1

    options = GfxOptions(
        infile=args.files[-1],
        outfile=args.outfile or "",
        tilemapfile=args.tilemapfile or "",
        attrmapfile=args.attrmapfile or "",
        palfile=args.palfile or "",
        tilemapout=args.tilemapout,
        attrmapout=args.attrmapout,
        palout=args.palout,
        depth=_strtoul(args.depth) if args.depth is not None else 2,
        trim=_strtoul(args.trim) if args.trim is not None else 0,
        horizontal=args.horizontal,
        unique=args.unique or args.mirror,
        mirror=args.mirror,
        colorcurve=args.colorcurve,
        fix=args.fix or args.hardfix,
        hardfix=args.hardfix,
        debug=args.debug,
        verbose=args.verbose,
    )
    try:
        convert(options)
    except FatalError:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())