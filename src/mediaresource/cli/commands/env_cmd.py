from __future__ import annotations

import argparse
import json

from mediaresource.application.services.environment_service import EnvironmentService
from mediaresource.application.services.preload_service import PreloadService
from mediaresource.application.services.project_service import ProjectService
from mediaresource.cli.context import CLIContext
from mediaresource.infrastructure.db.repos.episode_repo import EpisodeRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("env", help="Print the environment context for an episode")
    parser.add_argument("--episode", help="Episode id (omit for the episode list only)")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    project_service = ProjectService(ctx.paths)
    service = EnvironmentService(
        EpisodeRepo(ctx.paths.db_path),
        PreloadService(project_service.open_table()),
    )
    context = service.build(args.episode)
    ctx.console.print_json(json.dumps(context.to_payload(), ensure_ascii=True))
    return 0
