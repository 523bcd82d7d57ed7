"""Command line entry point for the benchmark tools."""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Sequence
from typing import Callable, Optional

from pbench.cmp import DEFAULT_FILE_ID_PATTERN, DEFAULT_OUTPUT_PATH, compare_directories
from pbench.genconfig import run_genconfig
from pbench.logger import FatalError, get_logger
from pbench.round import (
    DEFAULT_EXTENSIONS,
    DEFAULT_PRECISION,
    DecimalRounder,
    FileFormat,
    validate_options,
)

PROG = "pbench"

_ROUND_DESCRIPTION = (
    "The program will try to match every column in the first row to see which "
    "column has matching decimal. After processing the first row, it will only "
    "look at the matched columns. So if the overly long decimal only appears from "
    "the second row, this might not work properly."
)


def _run_genconfig(args: argparse.Namespace) -> int:
    template_dir = os.path.expanduser(args.template_dir) if args.template_dir else None
    parameter_path = os.path.expanduser(args.parameter_file) if args.parameter_file else None
    run_genconfig(os.path.expanduser(args.directory), template_dir, parameter_path)
    return 0


def _run_cmp(args: argparse.Namespace) -> int:
    compare_directories(
        os.path.expanduser(args.directory1),
        os.path.expanduser(args.directory2),
        os.path.expanduser(args.output_path),
        args.file_id_regex,
    )
    return 0


def _run_round(args: argparse.Namespace) -> int:
    extensions = args.file_extension if args.file_extension is not None else list(DEFAULT_EXTENSIONS)
    fmt = validate_options(extensions, args.format, args.paths)
    rounder = DecimalRounder(
        precision=args.precision,
        extensions=extensions,
        file_format=fmt,
        in_place=args.rewrite_in_place,
        recursive=args.recursive,
    )
    rounder.run(args.paths)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(prog=PROG, description="Tool for running Presto benchmarks")
    commands = parser.add_subparsers(dest="command", metavar="command")

    genconfig = commands.add_parser(
        "genconfig",
        help="Generate benchmark cluster configurations",
        description="Generate benchmark cluster configurations",
    )
    genconfig.add_argument(
        "directory", help="directory to search recursively for config.json"
    )
    genconfig.add_argument(
        "-t", "--template-dir", default="", help="Specifies the template directory."
    )
    genconfig.add_argument(
        "-p",
        "--parameter-file",
        default="",
        help="Specifies the parameter file. Use built-in defaults if not specified.",
    )
    genconfig.set_defaults(handler=_run_genconfig)

    cmp = commands.add_parser(
        "cmp",
        help="Compare two query result directories",
        description="Compare two query result directories",
    )
    cmp.add_argument("directory1")
    cmp.add_argument("directory2")
    cmp.add_argument(
        "-r",
        "--file-id-regex",
        default=DEFAULT_FILE_ID_PATTERN,
        help="regex to extract file id from file names in two directories "
        "to find matching files to compare",
    )
    cmp.add_argument(
        "-o", "--output-path", default=DEFAULT_OUTPUT_PATH, help="diff output path"
    )
    cmp.set_defaults(handler=_run_cmp)

    round_cmd = commands.add_parser(
        "round",
        help="Round the decimal values in the benchmark query output files "
        "for easier comparison.",
        description=_ROUND_DESCRIPTION,
    )
    round_cmd.add_argument("paths", nargs="*", help="files or directories to process")
    round_cmd.add_argument(
        "-p",
        "--precision",
        type=int,
        default=DEFAULT_PRECISION,
        help="Decimal precision to preserve.",
    )
    round_cmd.add_argument(
        "-e",
        "--file-extension",
        action="append",
        default=None,
        help="File extension to include for processing (including the dot); "
        "can be given more than once.",
    )
    round_cmd.add_argument(
        "-f",
        "--format",
        default=FileFormat.JSON.value,
        help='Format of the files: "csv" or "json".',
    )
    round_cmd.add_argument(
        "-i",
        "--rewrite-in-place",
        action="store_true",
        help="Rewrite the file in place instead of saving it separately.",
    )
    round_cmd.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        help="Recursively walk a path if a directory is provided.",
    )
    round_cmd.set_defaults(handler=_run_round)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command line; return the process exit status."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return 0 if exc.code in (0, None) else 1
    handler: Optional[Callable[[argparse.Namespace], int]] = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 0
    try:
        return handler(args)
    except FatalError:
        return 1
    except (OSError, ValueError) as exc:
        get_logger().error(error=exc, command=args.command)
        return 1


if __name__ == "__main__":
    sys.exit(main())