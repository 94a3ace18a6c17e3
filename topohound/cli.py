from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from . import __version__
from .bundle import render, write_manifest, write_topology
from .config import get_settings
from .constants import OUTPUT_FORMATS
from .driver import Driver
from .errors import TopoHoundError
from .loader import load_file

logger = logging.getLogger(__name__)


def _module_spec(value: str) -> Tuple[str, Path]:
    path, sep, file = value.partition("=")
    if not sep or not path or not file:
        raise argparse.ArgumentTypeError(f"expected MODULE.PATH=FILE, got {value!r}")
    return path, Path(file)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="topohound", description="Terraform topology and reachability graphs")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", help="logging level (default: from TOPOHOUND_LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command")

    convert = sub.add_parser("convert", help="convert a Terraform JSON configuration")
    convert.add_argument("config", type=Path, help="root module configuration (*.tf.json)")
    convert.add_argument(
        "--module",
        "-m",
        action="append",
        type=_module_spec,
        default=[],
        metavar="PATH=FILE",
        help="child module configuration, e.g. network.private=private.tf.json",
    )
    convert.add_argument("--output", "-o", type=Path, help="write the topology here instead of stdout")
    convert.add_argument("--format", choices=OUTPUT_FORMATS, help="output record layout")
    convert.add_argument("--indent", type=int, help="JSON indent")
    convert.add_argument("--keep-going", action="store_true", help="skip malformed resources instead of aborting")
    convert.add_argument("--manifest-dir", type=Path, help="also write manifest.json to this directory")
    return parser.parse_args(argv)


def run_convert(args: argparse.Namespace) -> int:
    settings = get_settings()
    updates = {}
    if args.format:
        updates["output_format"] = args.format
    if args.indent is not None:
        updates["output_indent"] = args.indent
    if args.keep_going:
        updates["strict"] = False
    if updates:
        settings = settings.model_copy(update=updates)

    root = settings.root_module
    configuration = load_file(args.config, (root,))
    for dotted, path in args.module:
        configuration = configuration.merge(load_file(path, (root, *dotted.split("."))))

    result = Driver(configuration, settings=settings).run()
    records = result.records(settings.output_format)

    if args.manifest_dir:
        write_manifest(result.manifest, args.manifest_dir)

    if args.output is None:
        sys.stdout.write(render(records, indent=settings.output_indent))
        sys.stdout.write("\n")
    else:
        write_topology(records, args.output, indent=settings.output_indent)
        summary = {"output": str(args.output), **result.manifest.summary()}
        print(json.dumps(summary, indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    level = args.log_level or get_settings().log_level
    logging.basicConfig(level=level.upper(), format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)

    if args.command is None:
        parse_args(["--help"])
    if args.command != "convert":  # pragma: no cover - argparse restricts commands
        raise SystemExit(f"Unknown command {args.command}")

    try:
        return run_convert(args)
    except TopoHoundError as e:
        logger.error(e.message)
        print(json.dumps(e.to_dict()), file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
