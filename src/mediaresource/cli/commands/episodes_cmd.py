from __future__ import annotations

import argparse

from rich.table import Table

from mediaresource.application.services.project_service import ProjectService
from mediaresource.cli.context import CLIContext
from mediaresource.domain.models.episode import Episode
from mediaresource.infrastructure.db.repos.episode_repo import EpisodeRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("episodes", help="Episode registry")
    episodes_subparsers = parser.add_subparsers(dest="episodes_command", required=True)

    add_parser = episodes_subparsers.add_parser("add", help="Add or update an episode")
    add_parser.add_argument("episode_id")
    add_parser.add_argument("--order", type=int, required=True)
    add_parser.add_argument("--label", required=True)
    add_parser.set_defaults(handler=run_add)

    list_parser = episodes_subparsers.add_parser("list", help="List episodes")
    list_parser.set_defaults(handler=run_list)


def _repo(ctx: CLIContext) -> EpisodeRepo:
    ProjectService(ctx.paths).require_initialized()
    return EpisodeRepo(ctx.paths.db_path)


def run_add(args: argparse.Namespace, ctx: CLIContext) -> int:
    _repo(ctx).put(Episode(id=args.episode_id, order=args.order, label=args.label))
    ctx.console.print(f"[green]Saved episode[/green] {args.episode_id}")
    return 0


def run_list(args: argparse.Namespace, ctx: CLIContext) -> int:
    episodes = _repo(ctx).list()

    table = Table(title=f"Episodes ({len(episodes)})")
    table.add_column("Order", justify="right")
    table.add_column("ID")
    table.add_column("Label")
    for episode in episodes:
        table.add_row(str(episode.order), episode.id, episode.label)

    ctx.console.print(table)
    return 0
