from __future__ import annotations

import argparse
import logging
from pathlib import Path

from rich.console import Console

from mediaresource.cli.commands import (
    env_cmd,
    episodes_cmd,
    files_cmd,
    groups_cmd,
    init_cmd,
    preload_cmd,
    resolve_cmd,
    resources_cmd,
)
from mediaresource.cli.context import CLIContext
from mediaresource.core.config import load_paths
from mediaresource.core.errors import MediaResourceError
from mediaresource.core.logging import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mediares",
        description="Media resource table and resolution CLI",
    )
    parser.add_argument(
        "--project-root",
        type=Path,
        default=Path.cwd(),
        help="Project root to use for .mediares data (default: current working directory)",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0)

    subparsers = parser.add_subparsers(dest="command", required=True)
    init_cmd.register(subparsers)
    files_cmd.register(subparsers)
    groups_cmd.register(subparsers)
    resources_cmd.register(subparsers)
    resolve_cmd.register(subparsers)
    preload_cmd.register(subparsers)
    episodes_cmd.register(subparsers)
    env_cmd.register(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    console = Console()

    paths = load_paths(args.project_root)
    ctx = CLIContext(paths=paths, console=console)

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 2

    try:
        return handler(args, ctx)
    except MediaResourceError as exc:
        logger.error(str(exc))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
