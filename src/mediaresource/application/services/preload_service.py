from __future__ import annotations

from dataclasses import dataclass, field

from mediaresource.application.services.resource_table import ResourceTable
from mediaresource.domain.models.resource import PreloadLevel, ResourceFile


@dataclass(slots=True)
class PreloadPlan:
    episode_id: str
    levels: dict[PreloadLevel, list[ResourceFile]] = field(default_factory=dict)
    cached_file_ids: list[str] = field(default_factory=list)

    @property
    def ordered(self) -> list[ResourceFile]:
        return [f for level in sorted(self.levels, reverse=True) for f in self.levels[level]]


class PreloadService:
    def __init__(self, table: ResourceTable) -> None:
        self.table = table

    def schedule(
        self,
        episode_id: str,
        minimum_level: PreloadLevel = PreloadLevel.NONE,
    ) -> list[ResourceFile]:
        """Files an episode needs, most urgent first.

        Ordered by descending preload level, then ascending import time, then
        id, so a fixed table always yields the same sequence.
        """
        snapshot = self.table.snapshot()
        files = [
            f
            for f in snapshot.files()
            if not f.removed and episode_id in f.episode_ids and f.preload_level >= minimum_level
        ]
        return sorted(files, key=lambda f: (-int(f.preload_level), f.import_time, f.id))

    def plan(self, episode_id: str) -> PreloadPlan:
        plan = PreloadPlan(episode_id=episode_id)
        for resource_file in self.schedule(episode_id):
            plan.levels.setdefault(resource_file.preload_level, []).append(resource_file)
            if resource_file.cache_to_hard_disk:
                plan.cached_file_ids.append(resource_file.id)
        return plan
