from __future__ import annotations

import argparse

from rich.panel import Panel

from mediaresource.application.services.project_service import ProjectService
from mediaresource.application.services.resolution_service import (
    ResolutionConstraints,
    ResolutionService,
)
from mediaresource.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("resolve", help="Resolve a label or id to one concrete file")
    parser.add_argument("query", help="Resource label or id")
    parser.add_argument("--locale", help="Matches lang:* tags")
    parser.add_argument("--device", help="Matches device:* tags")
    parser.add_argument("--role", help="Matches role:* tags")
    parser.add_argument("--tag", action="append", default=[], help="Extra field:value constraint")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    service = ResolutionService(ProjectService(ctx.paths).open_table())
    constraints = ResolutionConstraints.from_tags(
        args.tag,
        locale=args.locale,
        device=args.device,
        role=args.role,
    )
    resolution = service.resolve_with_details(args.query, constraints)
    resolved = resolution.file

    ctx.console.print(
        Panel.fit(
            "\n".join(
                [
                    f"File ID: {resolved.id}",
                    f"Label: {resolved.label}",
                    f"MIME: {resolved.mime_type}",
                    f"Group: {resolution.group_id or '-'}",
                    f"Score: {resolution.score}",
                    f"Redirects: {' -> '.join(resolution.redirect_chain)}",
                    f"URLs: {', '.join(f'{k}={v}' for k, v in resolved.url.items()) or '-'}",
                ]
            ),
            title=f"Resolved {args.query}",
        )
    )
    return 0
