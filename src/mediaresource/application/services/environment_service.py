from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from mediaresource.application.services.preload_service import PreloadService
from mediaresource.core.errors import EpisodeNotFoundError
from mediaresource.domain.models.episode import Episode
from mediaresource.domain.models.resource import ResourceFile
from mediaresource.infrastructure.events.bridge import ENVIRONMENT_RESOLVED, EventBridge

logger = logging.getLogger(__name__)


class EpisodeRegistry(Protocol):
    def get(self, episode_id: str) -> Episode | None: ...

    def list(self) -> list[Episode]: ...


@dataclass(slots=True)
class SaveEntry:
    id: str
    order: int
    title: str
    asset_status: list[str] = field(default_factory=list)

    # Legacy aliases kept for older act scripts.
    @property
    def id_in_order(self) -> int:
        return self.order

    @property
    def id_in_database(self) -> str:
        return self.id

    @property
    def id_in_act_server(self) -> str:
        return self.id

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "order": self.order,
            "idInOrder": self.id_in_order,
            "idInDatabase": self.id_in_database,
            "idInActServer": self.id_in_act_server,
            "title": self.title,
            "assetStatus": list(self.asset_status),
        }


@dataclass(slots=True)
class EnvironmentContext:
    saves: list[SaveEntry]
    episode: Episode | None
    assets: list[ResourceFile]

    @property
    def episodes(self) -> list[SaveEntry]:
        return self.saves

    @property
    def episode_id(self) -> str | None:
        return self.episode.id if self.episode else None

    @property
    def episode_order(self) -> int | None:
        return self.episode.order if self.episode else None

    @property
    def episode_id_in_order(self) -> int | None:
        """Deprecated, use `episode_order`."""
        return self.episode_order

    @property
    def episode_id_in_database(self) -> str | None:
        """Deprecated, use `episode_id`."""
        return self.episode_id

    def to_payload(self) -> dict[str, Any]:
        saves = [save.to_payload() for save in self.saves]
        episode = (
            {"id": self.episode.id, "order": self.episode.order, "label": self.episode.label}
            if self.episode
            else None
        )
        return {
            "saves": saves,
            "episode": episode,
            "episodeId": self.episode_id,
            "episodeOrder": self.episode_order,
            "episodeIdInOrder": self.episode_id_in_order,
            "episodeIdInDatabase": self.episode_id_in_database,
            "assets": [asset.to_dict() for asset in self.assets],
            "episodes": saves,
        }


class EnvironmentService:
    """Joins the episode registry with preload data for a playing episode."""

    def __init__(
        self,
        episodes: EpisodeRegistry,
        preload_service: PreloadService,
        event_bridge: EventBridge | None = None,
    ) -> None:
        self.episodes = episodes
        self.preload_service = preload_service
        self.event_bridge = event_bridge

    def build(self, episode_id: str | None = None) -> EnvironmentContext:
        saves = [
            SaveEntry(id=episode.id, order=episode.order, title=episode.label)
            for episode in self.episodes.list()
        ]

        episode: Episode | None = None
        assets: list[ResourceFile] = []
        if episode_id is not None:
            episode = self.episodes.get(episode_id)
            if episode is None:
                raise EpisodeNotFoundError(f"Episode not found: {episode_id}")
            assets = self.preload_service.schedule(episode.id)

        return EnvironmentContext(saves=saves, episode=episode, assets=assets)

    def publish(self, episode_id: str | None = None) -> EnvironmentContext:
        context = self.build(episode_id)
        if self.event_bridge is not None:
            self.event_bridge.dispatch_event(ENVIRONMENT_RESOLVED, context.to_payload())
        else:
            logger.debug("No event bridge configured; environment for %s not published", episode_id)
        return context
