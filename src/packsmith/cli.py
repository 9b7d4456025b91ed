from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from packsmith import __version__
from packsmith.config.example import write_example
from packsmith.config.models import LoggingConfig
from packsmith.errors import PackagerError, describe
from packsmith.main import package
from packsmith.observability.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="packsmith", description="packages apps as deb files from a YAML manifest")
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("-f", "--config", default="nfpm.yaml", help="config file")
    parser.add_argument("--log-level", default="WARNING", help="log level for the JSON event log")
    parser.add_argument("--log-file", default=None, help="also write the JSON event log to this file")
    sub = parser.add_subparsers(dest="command")
    pkg_parser = sub.add_parser("pkg", aliases=["package"], help="package based on the config file")
    pkg_parser.add_argument("-t", "--target", default="/tmp/foo.deb", help="where to save the generated package")
    init_parser = sub.add_parser("init", help="create an example config file")
    init_parser.add_argument("--force", action="store_true", help="overwrite an existing config file")
    return parser


def _fail(message: str) -> int:
    print(f"packsmith: error: {message}", file=sys.stderr)
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.version:
        print(f"packsmith {__version__}")
        return 0
    if args.command is None:
        parser.print_help()
        return 2

    logger = setup_logging(LoggingConfig(level=args.log_level, log_file=args.log_file))
    try:
        if args.command == "init":
            write_example(args.config, force=args.force)
            print(f"created config file from example: {args.config}")
            return 0
        package(args.config, args.target, logger=logger)
    except PackagerError as exc:
        return _fail(describe(exc))
    print(f"created package: {args.target}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
