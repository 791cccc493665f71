from __future__ import annotations

import argparse

from rich.table import Table

from mediaresource.application.services.project_service import ProjectService
from mediaresource.cli.context import CLIContext
from mediaresource.domain.models.resource import ResourceFile


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("resources", help="List resource files and groups")
    parser.add_argument("--include-removed", action="store_true")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    resource_table = ProjectService(ctx.paths).open_table()
    items = [item for item in resource_table.snapshot() if args.include_removed or not item.removed]

    table = Table(title=f"Resources ({len(items)})")
    table.add_column("ID")
    table.add_column("Type")
    table.add_column("Label")
    table.add_column("Group / Files")
    table.add_column("Tags", overflow="fold")
    table.add_column("Removed")

    for item in items:
        if isinstance(item, ResourceFile):
            membership = item.resource_group_id or "-"
        else:
            membership = f"{len(item.files)} file(s)"
        table.add_row(
            item.id,
            item.type,
            item.label,
            membership,
            ", ".join(tag.id for tag in item.tags),
            "yes" if item.removed else "",
        )

    ctx.console.print(table)
    return 0
