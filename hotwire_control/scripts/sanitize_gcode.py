#!/usr/bin/env python3
"""
Sanitize G-code Script.

Rewrite one or more uploaded gcode files into command streams the
hot-wire firmware accepts.

Usage:
    python -m hotwire_control.scripts.sanitize_gcode part.gcode
    python -m hotwire_control.scripts.sanitize_gcode part.gcode -o part.clean.gcode
    python -m hotwire_control.scripts.sanitize_gcode slices/*.gcode -d cleaned/
    python -m hotwire_control.scripts.sanitize_gcode part.gcode -c my_sanitizer.yaml --print

Without ``--output`` or ``--output-dir`` the cleaned commands are printed
to stdout.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from hotwire_control.configs.loader import (
    ConfigError,
    default_sanitizer_config,
    load_sanitizer_config,
)
from hotwire_control.gcode.sanitizer import GCodeSanitizer, SanitizerError
from hotwire_control.utils.logging_config import (
    pop_context,
    push_context,
    setup_logging,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sanitize gcode files for the hot-wire cutter firmware",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "files",
        nargs="+",
        help="Gcode files to sanitize",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Sanitizer configuration file path",
    )

    # Output destination
    dest = parser.add_mutually_exclusive_group()
    dest.add_argument(
        "--output",
        "-o",
        type=str,
        help="Output file (single input only)",
    )
    dest.add_argument(
        "--output-dir",
        "-d",
        type=str,
        help="Directory for cleaned files (one per input)",
    )
    parser.add_argument(
        "--suffix",
        type=str,
        default=".clean.gcode",
        help="Filename suffix used with --output-dir (default: %(default)s)",
    )
    parser.add_argument(
        "--print",
        action="store_true",
        dest="print_commands",
        help="Print cleaned commands to stdout even when writing files",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: %(default)s)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Also log to this file",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines",
    )
    return parser


def _destination(args: argparse.Namespace, src: Path) -> Path | None:
    if args.output:
        return Path(args.output)
    if args.output_dir:
        return Path(args.output_dir) / f"{src.stem}{args.suffix}"
    return None


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.output and len(args.files) > 1:
        parser.error("--output accepts a single input file; use --output-dir")

    setup_logging(
        args.log_level,
        args.log_file,
        json=args.json_logs,
        context={"app": "sanitize"},
    )

    # Two inputs with the same stem would overwrite each other in --output-dir
    if args.output_dir:
        claimed: dict[Path, str] = {}
        for name in args.files:
            dest = _destination(args, Path(name))
            if dest in claimed:
                print(
                    f"Error: {name} and {claimed[dest]} both write to {dest}",
                    file=sys.stderr,
                )
                return 1
            claimed[dest] = name

    # Load config
    try:
        if args.config:
            config = load_sanitizer_config(args.config)
        else:
            config = default_sanitizer_config()
    except (ConfigError, FileNotFoundError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    for name in args.files:
        src = Path(name)
        push_context(file=src.name)
        try:
            sanitizer = GCodeSanitizer(src, config)
            try:
                sanitizer.run()
            except SanitizerError as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1

            dest = _destination(args, src)
            if dest is not None:
                try:
                    sanitizer.write_commands(dest)
                except (RuntimeError, OSError) as e:
                    print(f"Error writing {dest}: {e}", file=sys.stderr)
                    return 1
            if dest is None or args.print_commands:
                sanitizer.print_commands(sys.stdout)
        finally:
            pop_context(keys=["file"])

    return 0


if __name__ == "__main__":
    sys.exit(main())
