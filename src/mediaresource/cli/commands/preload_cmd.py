from __future__ import annotations

import argparse

from rich.table import Table

from mediaresource.application.services.preload_service import PreloadService
from mediaresource.application.services.project_service import ProjectService
from mediaresource.cli.context import CLIContext
from mediaresource.domain.models.resource import PreloadLevel


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("preload", help="Show the preload order for an episode")
    parser.add_argument("episode_id")
    parser.add_argument(
        "--min-level",
        default=PreloadLevel.NONE.wire_name,
        choices=[level.wire_name for level in PreloadLevel],
    )
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    service = PreloadService(ProjectService(ctx.paths).open_table())
    files = service.schedule(args.episode_id, minimum_level=PreloadLevel.parse(args.min_level))

    table = Table(title=f"Preload order for {args.episode_id} ({len(files)})")
    table.add_column("#", justify="right")
    table.add_column("Level")
    table.add_column("File ID")
    table.add_column("Label")
    table.add_column("Imported")
    table.add_column("Cache")

    for index, resource_file in enumerate(files, start=1):
        table.add_row(
            str(index),
            resource_file.preload_level.wire_name,
            resource_file.id,
            resource_file.label,
            resource_file.import_time,
            "yes" if resource_file.cache_to_hard_disk else "",
        )

    ctx.console.print(table)
    return 0
