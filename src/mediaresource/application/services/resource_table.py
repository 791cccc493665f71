from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Protocol, TypeVar

from mediaresource.application.services.consistency_service import check_consistency
from mediaresource.core.errors import (
    ConsistencyViolationError,
    ResourceFileNotFoundError,
    ResourceGroupNotFoundError,
    ResourceNotFoundError,
    ValidationError,
)
from mediaresource.domain.models.resource import ResourceFile, ResourceGroup, ResourceItem
from mediaresource.infrastructure.events.bridge import RESOURCES_CHANGED, EventBridge

logger = logging.getLogger(__name__)

ResourceItemT = TypeVar("ResourceItemT", ResourceFile, ResourceGroup)


class ResourceRepository(Protocol):
    def get(self, resource_id: str) -> ResourceItem | None: ...

    def list(self) -> list[ResourceItem]: ...

    def put(self, item: ResourceItem) -> None: ...


class ResourceSnapshot:
    """Read-only view of the entity table at one point in time.

    Records handed out are copies; writes go through `ResourceTable.transaction`.
    """

    def __init__(self, items: Mapping[str, ResourceItem]) -> None:
        self._items = items

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self._items

    def __iter__(self) -> Iterator[ResourceItem]:
        return (self._view(item) for item in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def get(self, resource_id: str) -> ResourceItem | None:
        item = self._items.get(resource_id)
        return None if item is None else self._view(item)

    def require(self, resource_id: str) -> ResourceItem:
        item = self._items.get(resource_id)
        if item is None:
            raise ResourceNotFoundError(f"Resource not found: {resource_id}")
        return self._view(item)

    def require_file(self, file_id: str) -> ResourceFile:
        item = self._items.get(file_id)
        if not isinstance(item, ResourceFile):
            raise ResourceFileNotFoundError(f"Resource file not found: {file_id}")
        return self._view(item)

    def require_group(self, group_id: str) -> ResourceGroup:
        item = self._items.get(group_id)
        if not isinstance(item, ResourceGroup):
            raise ResourceGroupNotFoundError(f"Resource group not found: {group_id}")
        return self._view(item)

    def files(self) -> list[ResourceFile]:
        return [self._view(item) for item in self._items.values() if isinstance(item, ResourceFile)]

    def groups(self) -> list[ResourceGroup]:
        return [self._view(item) for item in self._items.values() if isinstance(item, ResourceGroup)]

    def managed_by(self, source_file_id: str) -> list[ResourceFile]:
        return [
            self._view(item)
            for item in self._items.values()
            if isinstance(item, ResourceFile) and item.managed_by == source_file_id
        ]

    def _view(self, item: ResourceItemT) -> ResourceItemT:
        return item.clone()


class ResourceDraft(ResourceSnapshot):
    """Mutable working copy used inside a table transaction.

    Records are cloned the first time they are edited so the published
    snapshot is never touched. Reads return the working records themselves.
    """

    def __init__(self, items: dict[str, ResourceItem]) -> None:
        super().__init__(items)
        self._working = items
        self.changed: dict[str, ResourceItem] = {}

    @property
    def items(self) -> Mapping[str, ResourceItem]:
        return self._working

    def add(self, item: ResourceItem) -> ResourceItem:
        if item.id in self._working:
            raise ValidationError(f"Resource id already exists: {item.id}")
        self._stage(item)
        return item

    def edit(self, resource_id: str) -> ResourceItem:
        if resource_id not in self.changed:
            self._stage(self.require(resource_id).clone())
        return self.require(resource_id)

    def edit_file(self, file_id: str) -> ResourceFile:
        if file_id not in self.changed:
            self._stage(self.require_file(file_id).clone())
        return self.require_file(file_id)

    def edit_group(self, group_id: str) -> ResourceGroup:
        if group_id not in self.changed:
            self._stage(self.require_group(group_id).clone())
        return self.require_group(group_id)

    def _stage(self, item: ResourceItem) -> None:
        self._working[item.id] = item
        self.changed[item.id] = item

    def _view(self, item: ResourceItemT) -> ResourceItemT:
        return item


class ResourceTable:
    """Authoritative in-memory arena of resource items.

    One writer at a time runs inside `transaction()`; readers take a
    `snapshot()` which is swapped in atomically when a transaction commits.
    """

    def __init__(
        self,
        items: Iterable[ResourceItem] = (),
        *,
        repo: ResourceRepository | None = None,
        event_bridge: EventBridge | None = None,
    ) -> None:
        initial = {item.id: item.clone() for item in items}
        check_consistency(initial)
        self._items: Mapping[str, ResourceItem] = MappingProxyType(initial)
        self._lock = threading.RLock()
        self._active: ResourceDraft | None = None
        self.repo = repo
        self.event_bridge = event_bridge

    @classmethod
    def load(
        cls,
        repo: ResourceRepository,
        event_bridge: EventBridge | None = None,
    ) -> ResourceTable:
        return cls(repo.list(), repo=repo, event_bridge=event_bridge)

    def snapshot(self) -> ResourceSnapshot:
        return ResourceSnapshot(self._items)

    @contextmanager
    def transaction(self, operation: str) -> Iterator[ResourceDraft]:
        with self._lock:
            if self._active is not None:
                # Nested calls join the outer unit of work.
                yield self._active
                return

            draft = ResourceDraft(dict(self._items))
            self._active = draft
            try:
                yield draft
                changed = list(draft.changed.values())
                if changed:
                    try:
                        check_consistency(draft.items)
                    except ConsistencyViolationError:
                        logger.critical("Aborting %s: resource table would become inconsistent", operation)
                        raise
                    if self.repo is not None:
                        self._persist(changed)
                    self._items = MappingProxyType(dict(draft.items))
            finally:
                self._active = None

        if changed:
            logger.debug("Committed %s (%d change(s))", operation, len(changed))
            self._notify(operation, [item.id for item in changed])

    def _persist(self, changed: list[ResourceItem]) -> None:
        put_many = getattr(self.repo, "put_many", None)
        if put_many is not None:
            put_many(changed)
            return
        for item in changed:
            self.repo.put(item)

    def _notify(self, operation: str, ids: list[str]) -> None:
        if self.event_bridge is None:
            return
        try:
            self.event_bridge.dispatch_event(RESOURCES_CHANGED, {"operation": operation, "ids": ids})
        except Exception:
            logger.warning("Change notification for %s was not delivered", operation, exc_info=True)
