from __future__ import annotations

import argparse

from rich.panel import Panel

from mediaresource.application.services.project_service import ProjectService
from mediaresource.application.services.resource_service import ResourceService
from mediaresource.cli.context import CLIContext
from mediaresource.core.errors import ValidationError
from mediaresource.domain.models.resource import ContentHash, PreloadLevel


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("files", help="Resource file authoring")
    files_subparsers = parser.add_subparsers(dest="files_command", required=True)

    import_parser = files_subparsers.add_parser("import", help="Register a resource file")
    import_parser.add_argument("--label", required=True)
    import_parser.add_argument("--mime-type", default="application/octet-stream")
    import_parser.add_argument("--url", action="append", default=[], help="channel=access string")
    import_parser.add_argument("--tag", action="append", default=[], help="field:value or field:value!")
    import_parser.add_argument("--group", default="", help="Resource group id to join")
    import_parser.add_argument("--episode", action="append", default=[], help="Episode id")
    import_parser.add_argument(
        "--preload",
        default=PreloadLevel.NONE.wire_name,
        choices=[level.wire_name for level in PreloadLevel],
    )
    import_parser.add_argument("--cache", action="store_true", help="Keep on hard disk across sessions")
    import_parser.add_argument("--duration", type=float)
    import_parser.add_argument("--xxhash", default="")
    import_parser.add_argument("--md5", default="")
    import_parser.add_argument("--managed-by", help="Source file id")
    import_parser.set_defaults(handler=run_import)

    remove_parser = files_subparsers.add_parser("remove", help="Soft-delete a file or group")
    remove_parser.add_argument("resource_id")
    remove_parser.set_defaults(handler=run_remove)

    tag_parser = files_subparsers.add_parser("tag", help="Replace the tags of a file or group")
    tag_parser.add_argument("resource_id")
    tag_parser.add_argument("tags", nargs="*")
    tag_parser.set_defaults(handler=run_tag)

    manage_parser = files_subparsers.add_parser("manage", help="Set or clear the managing source file")
    manage_parser.add_argument("file_id")
    manage_parser.add_argument("--source", help="Source file id; omit to clear")
    manage_parser.set_defaults(handler=run_manage)

    redirect_parser = files_subparsers.add_parser("redirect", help="Set or clear redirectTo")
    redirect_parser.add_argument("file_id")
    redirect_parser.add_argument("--to", dest="target_id", help="Target file id; omit to clear")
    redirect_parser.set_defaults(handler=run_redirect)

    propagate_parser = files_subparsers.add_parser("propagate", help="Sync managed files from a source")
    propagate_parser.add_argument("source_id")
    propagate_parser.set_defaults(handler=run_propagate)


def _service(ctx: CLIContext) -> ResourceService:
    return ProjectService(ctx.paths).open_resource_service()


def _parse_urls(values: list[str]) -> dict[str, str]:
    urls: dict[str, str] = {}
    for value in values:
        channel, sep, access = value.partition("=")
        if not sep or not channel:
            raise ValidationError(f"URL must look like channel=value, got {value!r}")
        urls[channel] = access
    return urls


def run_import(args: argparse.Namespace, ctx: CLIContext) -> int:
    service = _service(ctx)
    resource_file = service.import_file(
        label=args.label,
        mime_type=args.mime_type,
        url=_parse_urls(args.url),
        tags=args.tag,
        resource_group_id=args.group,
        episode_ids=args.episode,
        preload_level=args.preload,
        cache_to_hard_disk=args.cache,
        duration=args.duration,
        converted_hash=ContentHash(xx_hash=args.xxhash, md5=args.md5),
        managed_by=args.managed_by,
    )

    ctx.console.print(
        Panel.fit(
            "\n".join(
                [
                    f"ID: {resource_file.id}",
                    f"Label: {resource_file.label}",
                    f"Group: {resource_file.resource_group_id or '-'}",
                    f"Tags: {', '.join(tag.id for tag in resource_file.tags) or '-'}",
                    f"Preload: {resource_file.preload_level.wire_name}",
                ]
            ),
            title="Imported File",
        )
    )
    return 0


def run_remove(args: argparse.Namespace, ctx: CLIContext) -> int:
    _service(ctx).remove(args.resource_id)
    ctx.console.print(f"[yellow]Removed[/yellow] {args.resource_id}")
    return 0


def run_tag(args: argparse.Namespace, ctx: CLIContext) -> int:
    _service(ctx).set_tags(args.resource_id, args.tags)
    ctx.console.print(f"[green]Tagged[/green] {args.resource_id}: {', '.join(args.tags) or '-'}")
    return 0


def run_manage(args: argparse.Namespace, ctx: CLIContext) -> int:
    _service(ctx).set_managed_by(args.file_id, args.source)
    ctx.console.print(f"[green]Managed by[/green] {args.source or '-'}")
    return 0


def run_redirect(args: argparse.Namespace, ctx: CLIContext) -> int:
    _service(ctx).set_redirect_to(args.file_id, args.target_id)
    ctx.console.print(f"[green]Redirect[/green] {args.file_id} -> {args.target_id or '-'}")
    return 0


def run_propagate(args: argparse.Namespace, ctx: CLIContext) -> int:
    changed = _service(ctx).consistency.propagate_managed_fields(args.source_id)
    ctx.console.print(f"[green]Updated[/green] {len(changed)} managed file(s)")
    return 0
