from __future__ import annotations

import argparse

from rich.panel import Panel

from mediaresource.application.services.project_service import ProjectService
from mediaresource.application.services.resource_service import ResourceService
from mediaresource.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("groups", help="Resource group management")
    groups_subparsers = parser.add_subparsers(dest="groups_command", required=True)

    create_parser = groups_subparsers.add_parser("create", help="Create a resource group")
    create_parser.add_argument("--label", required=True)
    create_parser.add_argument("--file", action="append", default=[], help="Member file id, in order")
    create_parser.add_argument("--tag", action="append", default=[], help="Group tag, e.g. group:video")
    create_parser.set_defaults(handler=run_create)

    add_parser = groups_subparsers.add_parser("add", help="Move a file into a group")
    add_parser.add_argument("group_id")
    add_parser.add_argument("file_id")
    add_parser.set_defaults(handler=run_add)

    detach_parser = groups_subparsers.add_parser("detach", help="Take a file out of its group")
    detach_parser.add_argument("file_id")
    detach_parser.set_defaults(handler=run_detach)


def _service(ctx: CLIContext) -> ResourceService:
    return ProjectService(ctx.paths).open_resource_service()


def run_create(args: argparse.Namespace, ctx: CLIContext) -> int:
    group = _service(ctx).create_group(label=args.label, files=args.file, tags=args.tag)
    ctx.console.print(
        Panel.fit(
            f"ID: {group.id}\nLabel: {group.label}\nFiles: {', '.join(group.files) or '-'}",
            title="Created Group",
        )
    )
    return 0


def run_add(args: argparse.Namespace, ctx: CLIContext) -> int:
    _service(ctx).consistency.add_file_to_group(args.file_id, args.group_id)
    ctx.console.print(f"[green]Grouped[/green] {args.file_id} -> {args.group_id}")
    return 0


def run_detach(args: argparse.Namespace, ctx: CLIContext) -> int:
    _service(ctx).consistency.remove_file_from_group(args.file_id)
    ctx.console.print(f"[green]Detached[/green] {args.file_id}")
    return 0
