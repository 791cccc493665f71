from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, Mapping

from mediaresource.core.config import MergePolicy
from mediaresource.core.errors import AlreadyRemovedError, ConsistencyViolationError
from mediaresource.domain.models.resource import ResourceFile, ResourceGroup, ResourceItem
from mediaresource.domain.models.tag import Tag

if TYPE_CHECKING:
    from mediaresource.application.services.resource_table import ResourceDraft, ResourceTable

logger = logging.getLogger(__name__)


class ConsistencyService:
    """Only writer of `ResourceFile.resource_group_id` and `ResourceGroup.files`."""

    def __init__(self, table: ResourceTable, merge_policy: MergePolicy | None = None) -> None:
        self.table = table
        self.merge_policy = merge_policy or MergePolicy()

    def add_file_to_group(self, file_id: str, group_id: str) -> None:
        with self.table.transaction("add_file_to_group") as draft:
            resource_file = draft.require_file(file_id)
            group = draft.require_group(group_id)
            _ensure_not_removed(resource_file)
            _ensure_not_removed(group)

            if resource_file.resource_group_id == group_id:
                return
            self._detach(draft, file_id)

            draft.edit_file(file_id).resource_group_id = group_id
            draft.edit_group(group_id).files.append(file_id)

    def remove_file_from_group(self, file_id: str) -> None:
        with self.table.transaction("remove_file_from_group") as draft:
            draft.require_file(file_id)
            self._detach(draft, file_id)

    def propagate_managed_fields(self, source_file_id: str) -> list[str]:
        """Copy mergeable fields from a source file onto every file it manages.

        Walks the managed-by graph breadth first so files managed by a managed
        file are refreshed too. Returns the ids of files that actually changed;
        a second call without a source change returns an empty list.
        """
        with self.table.transaction("propagate_managed_fields") as draft:
            source = draft.require_file(source_file_id)
            _ensure_not_removed(source)

            changed: list[str] = []
            visited = {source_file_id}
            queue = deque([source_file_id])
            while queue:
                current = draft.require_file(queue.popleft())
                for target in draft.managed_by(current.id):
                    if target.id in visited or target.removed:
                        continue
                    visited.add(target.id)
                    if self._apply_managed_fields(draft, current, target):
                        changed.append(target.id)
                    queue.append(target.id)

        if changed:
            logger.info("Propagated %s to %d managed file(s)", source_file_id, len(changed))
        return changed

    def _detach(self, draft: ResourceDraft, file_id: str) -> None:
        group_id = draft.require_file(file_id).resource_group_id
        if not group_id:
            return

        draft.edit_file(file_id).resource_group_id = ""
        group = draft.get(group_id)
        if isinstance(group, ResourceGroup) and file_id in group.files:
            draft.edit_group(group_id).files.remove(file_id)

    def _apply_managed_fields(
        self,
        draft: ResourceDraft,
        source: ResourceFile,
        target: ResourceFile,
    ) -> bool:
        updates: dict[str, object] = {}
        for name in self.merge_policy.mergeable_fields:
            if name == "tags":
                value: object = merge_tags(source.tags, target.tags)
            elif name == "extension_configurations":
                value = merge_extension_configurations(
                    source.extension_configurations,
                    target.extension_configurations,
                    self.merge_policy.non_mergeable_extension_keys,
                )
            elif name == "episode_ids":
                value = list(source.episode_ids)
            else:
                value = getattr(source, name)

            if getattr(target, name) != value:
                updates[name] = value

        if not updates:
            return False

        editable = draft.edit_file(target.id)
        for name, value in updates.items():
            setattr(editable, name, value)
        logger.debug("Managed file %s updated fields: %s", target.id, ", ".join(sorted(updates)))
        return True


def merge_tags(source_tags: list[Tag], target_tags: list[Tag]) -> list[Tag]:
    """Merge a source file's tags into a managed file's tags.

    Result is the target's sticky tags, then the source's non-sticky tags, then
    the target's non-sticky tags on fields the source does not define. The
    source wins when both define the same field.
    """
    sticky = [tag for tag in target_tags if tag.sticky]
    sticky_keys = {tag.key for tag in sticky}
    inherited = [tag for tag in source_tags if not tag.sticky and tag.key not in sticky_keys]
    inherited_fields = {tag.field for tag in source_tags if not tag.sticky}
    own = [tag for tag in target_tags if not tag.sticky and tag.field not in inherited_fields]
    return list(dict.fromkeys(sticky + inherited + own))


def merge_extension_configurations(
    source: Mapping[str, str],
    target: Mapping[str, str],
    non_mergeable_keys: frozenset[str] = frozenset(),
) -> dict[str, str]:
    merged = {
        key: value
        for key, value in target.items()
        if key in non_mergeable_keys or key not in source
    }
    for key, value in source.items():
        if key not in non_mergeable_keys:
            merged[key] = value
    return merged


def check_consistency(items: Mapping[str, ResourceItem]) -> None:
    """Raise ConsistencyViolationError unless every file/group link is mirrored."""
    for item in items.values():
        if isinstance(item, ResourceFile):
            if not item.resource_group_id:
                continue
            group = items.get(item.resource_group_id)
            if not isinstance(group, ResourceGroup):
                raise ConsistencyViolationError(
                    f"File {item.id} points to missing group {item.resource_group_id}"
                )
            if item.id not in group.files:
                raise ConsistencyViolationError(
                    f"File {item.id} points to group {group.id} which does not list it"
                )
        elif isinstance(item, ResourceGroup):
            if len(set(item.files)) != len(item.files):
                raise ConsistencyViolationError(f"Group {item.id} lists a file more than once")
            for file_id in item.files:
                member = items.get(file_id)
                if not isinstance(member, ResourceFile):
                    raise ConsistencyViolationError(f"Group {item.id} lists missing file {file_id}")
                if member.resource_group_id != item.id:
                    raise ConsistencyViolationError(
                        f"Group {item.id} lists file {file_id} which points to "
                        f"{member.resource_group_id or 'no group'}"
                    )


def _ensure_not_removed(item: ResourceItem) -> None:
    if item.removed:
        raise AlreadyRemovedError(f"Resource {item.id} ({item.label}) has been removed")
