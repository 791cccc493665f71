from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from mediaresource.application.services.resource_table import ResourceSnapshot, ResourceTable
from mediaresource.core.errors import (
    NoEligibleResourceError,
    RedirectCycleError,
    ResourceFileNotFoundError,
    ResourceNotFoundError,
    ValidationError,
)
from mediaresource.domain.models.resource import ResourceFile, ResourceGroup, ResourceItem
from mediaresource.domain.models.tag import parse_tag

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionConstraints:
    """Playback environment to match against file tags.

    `locale` matches `lang:*` tags, `device` matches `device:*` and `role`
    matches `role:*`; `extra` holds any other field/value pairs.
    """

    locale: str | None = None
    device: str | None = None
    role: str | None = None
    extra: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    @classmethod
    def from_tags(cls, raws: Iterable[str], **kwargs: str | None) -> ResolutionConstraints:
        named = {"lang": kwargs.get("locale"), "device": kwargs.get("device"), "role": kwargs.get("role")}
        extra: dict[str, str] = {}
        for raw in raws:
            tag = parse_tag(raw)
            if tag.field in extra or named.get(tag.field):
                raise ValidationError(f"Constraint field given more than once: {tag.field}")
            extra[tag.field] = tag.value
        return cls(extra=extra, **kwargs)

    def pairs(self) -> list[tuple[str, str]]:
        pairs: list[tuple[str, str]] = []
        for name, value in (("lang", self.locale), ("device", self.device), ("role", self.role)):
            if value:
                pairs.append((name, value))
        pairs.extend((str(k), str(v)) for k, v in self.extra.items())
        return list(dict.fromkeys(pairs))


@dataclass(slots=True)
class Resolution:
    query: str
    requested_id: str
    group_id: str | None
    score: int
    redirect_chain: list[str]
    file: ResourceFile


class ResolutionService:
    """Pick exactly one concrete file for a label or id.

    Every call works on a single snapshot and never writes to the table.
    """

    def __init__(self, table: ResourceTable) -> None:
        self.table = table

    def resolve(
        self,
        query: str,
        constraints: ResolutionConstraints | Mapping[str, str] | None = None,
    ) -> ResourceFile:
        return self.resolve_with_details(query, constraints).file

    def resolve_with_details(
        self,
        query: str,
        constraints: ResolutionConstraints | Mapping[str, str] | None = None,
    ) -> Resolution:
        snapshot = self.table.snapshot()
        wanted = _constraint_pairs(constraints)

        entity = self._lookup(snapshot, query)
        if isinstance(entity, ResourceGroup):
            selected, score = self._select_variant(snapshot, entity, wanted)
            group_id: str | None = entity.id
        else:
            selected, score = entity, _score(entity, wanted)
            group_id = None

        final, chain = self._follow_redirects(snapshot, selected)
        logger.debug(
            "Resolved %r to %s (score=%d, group=%s, redirects=%d)",
            query,
            final.id,
            score,
            group_id,
            len(chain) - 1,
        )
        return Resolution(
            query=query,
            requested_id=entity.id,
            group_id=group_id,
            score=score,
            redirect_chain=chain,
            file=final,
        )

    def _lookup(self, snapshot: ResourceSnapshot, query: str) -> ResourceItem:
        by_id = snapshot.get(query)
        if by_id is not None and not by_id.removed:
            return by_id

        groups: list[ResourceItem] = []
        files: list[ResourceItem] = []
        for item in snapshot:
            if item.removed or item.label != query:
                continue
            (groups if isinstance(item, ResourceGroup) else files).append(item)

        # Groups shadow files carrying the same label.
        candidates = groups or files
        if not candidates:
            raise ResourceNotFoundError(f"No resource matches {query!r}")
        return min(candidates, key=lambda item: (item.import_time, item.id))

    def _select_variant(
        self,
        snapshot: ResourceSnapshot,
        group: ResourceGroup,
        wanted: list[tuple[str, str]],
    ) -> tuple[ResourceFile, int]:
        best: ResourceFile | None = None
        best_score = -1
        for file_id in group.files:
            member = snapshot.get(file_id)
            if not isinstance(member, ResourceFile) or member.removed:
                continue
            score = _score(member, wanted)
            # Strictly greater keeps the first declared file on ties.
            if score > best_score:
                best, best_score = member, score

        if best is None:
            raise NoEligibleResourceError(
                f"Resource group {group.id} ({group.label}) has no eligible files"
            )
        return best, best_score

    def _follow_redirects(
        self,
        snapshot: ResourceSnapshot,
        start: ResourceFile,
    ) -> tuple[ResourceFile, list[str]]:
        chain = [start.id]
        current = start
        while current.redirect_to:
            target_id = current.redirect_to
            if target_id in chain:
                raise RedirectCycleError(
                    "Redirect cycle: " + " -> ".join(chain + [target_id])
                )
            target = snapshot.get(target_id)
            if not isinstance(target, ResourceFile):
                raise ResourceFileNotFoundError(
                    f"Redirect target not found: {current.id} -> {target_id}"
                )
            chain.append(target_id)
            current = target
        return current, chain


def _constraint_pairs(
    constraints: ResolutionConstraints | Mapping[str, str] | None,
) -> list[tuple[str, str]]:
    if constraints is None:
        return []
    if isinstance(constraints, ResolutionConstraints):
        return constraints.pairs()
    return list(dict.fromkeys((str(k), str(v)) for k, v in constraints.items() if v))


def _score(resource_file: ResourceFile, wanted: list[tuple[str, str]]) -> int:
    keys = {tag.key for tag in resource_file.tags}
    return sum(1 for pair in wanted if pair in keys)
