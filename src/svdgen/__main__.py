# Copyright (c) 2024 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from textwrap import dedent
from typing import List, Optional

import svdgen
from svdgen import browse
from svdgen.naming import CaseStyle


def cli(argv: Optional[List[str]] = None) -> None:
    top = argparse.ArgumentParser(
        prog="svdgen",
        description=dedent(
            """\
            Generate Python register access code from System View Description (SVD) files.
            """
        ),
        allow_abbrev=False,
    )
    top.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help=(
            "Output verbose logs. Can be given multiple times to increase the verbosity. "
            "By default only critical messages are output."
        ),
    )
    top.add_argument(
        "-i",
        "--input",
        metavar="FILE",
        required=True,
        type=Path,
        help="Path to the device SVD file.",
    )
    top.add_argument(
        "--svd-parse-options",
        type=json.loads,
        help=(
            "JSON object used to override fields in the Options object to customize parsing "
            "behavior. Mainly intended for advanced use cases such as working around "
            "difficult SVD files."
        ),
    )

    sub = top.add_subparsers(title="subcommands")

    gen = sub.add_parser(
        "generate",
        help="Generate the code for a peripheral.",
        description=dedent(
            """\
            Generate register access code for the peripheral selected by PATTERN.
            Without a pattern, a table of the base addresses of all peripherals is generated.
            """
        ),
        allow_abbrev=False,
    )
    gen.set_defaults(_command="generate")
    gen.add_argument(
        "pattern",
        metavar="PATTERN",
        nargs="?",
        help=(
            "Pattern used to select a single peripheral. A case-insensitive exact match is "
            "preferred over a substring match."
        ),
    )
    gen_out = gen.add_argument_group("output options")
    gen_out.add_argument(
        "-o",
        "--output-file",
        type=argparse.FileType("w", encoding="utf-8"),
        default=sys.stdout,
        help="File to write the output to. If not given, output is written to stdout.",
    )
    gen_out.add_argument(
        "--no-docstrings",
        action="store_true",
        help="Don't include descriptions from the SVD file in the generated code.",
    )
    gen_out.add_argument(
        "--indent",
        metavar="N",
        type=integer,
        default=4,
        help="Number of spaces per indentation level.",
    )
    for kind, default in (
        ("type", CaseStyle.PASCAL),
        ("accessor", CaseStyle.SNAKE),
        ("constant", CaseStyle.UPPER_SNAKE),
    ):
        gen_out.add_argument(
            f"--{kind}-case",
            choices=[c.value for c in CaseStyle],
            default=default.value,
            help=f"Case style of generated {kind} names (default: {default.value}).",
        )

    lst = sub.add_parser(
        "list",
        help="List the available peripherals.",
        description="List the peripherals of the device, optionally filtered by PATTERN.",
        allow_abbrev=False,
    )
    lst.set_defaults(_command="list")
    lst.add_argument(
        "pattern",
        metavar="PATTERN",
        nargs="?",
        help="Only list peripherals whose name contains the pattern (case-insensitive).",
    )

    brw = sub.add_parser(
        "browse",
        help="Search peripherals, registers, fields and enumerated values.",
        description=dedent(
            """\
            Print a listing of every peripheral where PATTERN is found in the name of the
            peripheral or of one of its registers, fields or enumerated values.
            """
        ),
        allow_abbrev=False,
    )
    brw.set_defaults(_command="browse")
    brw.add_argument("pattern", metavar="PATTERN", help="Case-insensitive search string.")
    brw.add_argument(
        "-d",
        "--descriptions",
        action="store_true",
        help="Also search descriptions.",
    )
    brw.add_argument(
        "-l",
        "--long",
        action="store_true",
        help="Include register sizes and reset values in the listing.",
    )
    brw.add_argument(
        "--color",
        choices=["auto", "always", "never"],
        default="auto",
        help="Highlight matches using terminal colors.",
    )

    args = top.parse_args(argv)

    log_level = {
        0: logging.CRITICAL,
        1: logging.WARNING,
        2: logging.INFO,
        3: logging.DEBUG,
    }.get(args.verbose, logging.DEBUG)
    svdgen.log.setLevel(log_level)

    if not hasattr(args, "_command"):
        top.print_usage()
        sys.exit(2)

    options = svdgen.Options()
    if args.svd_parse_options:
        try:
            options = dataclasses.replace(options, **args.svd_parse_options)
        except TypeError as e:
            top.error(f"invalid --svd-parse-options: {e}")

    try:
        device = svdgen.parse(args.input, options=options)
    except (OSError, svdgen.SvdParseError, svdgen.SvdDefinitionError) as e:
        print(f"svdgen: error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args._command == "generate":
            cmd_generate(device, args)
        elif args._command == "list":
            cmd_list(device, args)
        elif args._command == "browse":
            cmd_browse(device, args)
        else:
            top.print_usage()
            sys.exit(2)
    except svdgen.GenerationError as e:
        print(f"svdgen: error: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(0)


def integer(val: str) -> int:
    return int(val, 0)


def cmd_generate(device: svdgen.Device, args: argparse.Namespace) -> None:
    options = svdgen.GeneratorOptions(
        naming=svdgen.NamingConvention(
            type_case=CaseStyle(args.type_case),
            accessor_case=CaseStyle(args.accessor_case),
            constant_case=CaseStyle(args.constant_case),
        ),
        emit_docstrings=not args.no_docstrings,
        indent=" " * args.indent,
    )

    collisions: List[svdgen.IdentifierCollision] = []

    if args.pattern is None:
        units = svdgen.generate(device, svdgen.ALL_PERIPHERALS, options, collisions=collisions)
        separator = "\n"
    else:
        try:
            units = svdgen.generate(device, args.pattern, options, collisions=collisions)
        except svdgen.NoMatch as e:
            print(f"svdgen: {e}", file=sys.stderr)
            return
        separator = "\n\n\n"

    args.output_file.write(separator.join(units) + "\n")
    if args.output_file is not sys.stdout:
        args.output_file.close()

    # Reported regardless of the log level
    for collision in collisions:
        print(f"svdgen: warning: {collision}", file=sys.stderr)


def cmd_list(device: svdgen.Device, args: argparse.Namespace) -> None:
    if args.pattern is None:
        for peripheral in device.peripherals:
            print(f"{peripheral.name} at 0x{peripheral.base_address:08x}")
        return

    pattern = args.pattern.lower()
    for peripheral in device.peripherals:
        if pattern in peripheral.name.lower():
            print(peripheral.name)


def cmd_browse(device: svdgen.Device, args: argparse.Namespace) -> None:
    pattern = browse.create_pattern(args.pattern)
    search = browse.SearchSettings(search_descriptions=args.descriptions)
    output = browse.OutputSettings(verbosity=1 if args.long else 0)
    use_color = args.color == "always" or (args.color == "auto" and sys.stdout.isatty())

    resolver = svdgen.Resolver(device)

    for peripheral in device.peripherals:
        try:
            resolved = resolver.resolve(peripheral)
        except svdgen.GenerationError as e:
            svdgen.log.warning(f"Skipping peripheral {peripheral.name}: {e}")
            continue

        if not browse.match(pattern, resolved, search):
            continue

        text = browse.highlight(browse.strip_markers(browse.render(resolved, output)), pattern)
        print(browse.colorize(text) if use_color else browse.strip_markers(text))


# Entry point when running with python -m svdgen
if __name__ == "__main__":
    cli()
