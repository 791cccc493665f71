from __future__ import annotations

from typing import Iterable, Mapping

from mediaresource.application.services.consistency_service import ConsistencyService
from mediaresource.application.services.resource_table import ResourceDraft, ResourceTable
from mediaresource.core.config import MergePolicy
from mediaresource.core.errors import (
    AlreadyRemovedError,
    ManagedFieldLockedError,
    RedirectCycleError,
    ValidationError,
)
from mediaresource.core.ids import new_uuid
from mediaresource.core.time import now_utc_iso
from mediaresource.domain.models.resource import (
    ContentHash,
    PreloadLevel,
    ResourceFile,
    ResourceGroup,
    ResourceItem,
)
from mediaresource.domain.models.tag import Tag, TagNamespace, normalize_tags


class ResourceService:
    """Authoring operations over the resource table.

    Each public method is one all-or-nothing transaction: validation errors
    are raised before anything is published.
    """

    def __init__(
        self,
        table: ResourceTable,
        consistency: ConsistencyService | None = None,
        merge_policy: MergePolicy | None = None,
    ) -> None:
        self.table = table
        self.consistency = consistency or ConsistencyService(table, merge_policy)
        self.merge_policy = self.consistency.merge_policy

    def get(self, resource_id: str) -> ResourceItem:
        return self.table.snapshot().require(resource_id)

    def import_file(
        self,
        *,
        label: str,
        mime_type: str = "application/octet-stream",
        url: Mapping[str, str] | None = None,
        tags: Iterable[str | Tag] = (),
        resource_group_id: str = "",
        episode_ids: Iterable[str] = (),
        preload_level: PreloadLevel | str = PreloadLevel.NONE,
        cache_to_hard_disk: bool = False,
        duration: float | None = None,
        original_hash: str = "",
        converted_hash: ContentHash | None = None,
        extension_configurations: Mapping[str, str] | None = None,
        thumbnail_src: str | None = None,
        managed_by: str | None = None,
        file_id: str | None = None,
    ) -> ResourceFile:
        resource_file = ResourceFile(
            id=file_id or new_uuid(),
            label=_require_label(label),
            import_time=now_utc_iso(),
            thumbnail_src=thumbnail_src,
            mime_type=mime_type,
            original_hash=original_hash,
            converted_hash=converted_hash or ContentHash(),
            url=dict(url or {}),
            cache_to_hard_disk=cache_to_hard_disk,
            preload_level=PreloadLevel.parse(preload_level),
            episode_ids=list(dict.fromkeys(episode_ids)),
            duration=duration,
            tags=normalize_tags(tags, TagNamespace.FILE),
            extension_configurations=dict(extension_configurations or {}),
        )

        with self.table.transaction("import_file") as draft:
            if resource_group_id:
                _ensure_active(draft.require_group(resource_group_id))
            if managed_by:
                _ensure_active(draft.require_file(managed_by))

            draft.add(resource_file)
            if resource_group_id:
                self.consistency.add_file_to_group(resource_file.id, resource_group_id)
            if managed_by:
                draft.edit_file(resource_file.id).managed_by = managed_by
                self.consistency.propagate_managed_fields(managed_by)
            return draft.require_file(resource_file.id).clone()

    def create_group(
        self,
        *,
        label: str,
        files: Iterable[str] = (),
        tags: Iterable[str | Tag] = (),
        thumbnail_src: str | None = None,
        group_id: str | None = None,
    ) -> ResourceGroup:
        group = ResourceGroup(
            id=group_id or new_uuid(),
            label=_require_label(label),
            import_time=now_utc_iso(),
            thumbnail_src=thumbnail_src,
            tags=normalize_tags(tags, TagNamespace.GROUP),
        )
        member_ids = list(dict.fromkeys(files))

        with self.table.transaction("create_group") as draft:
            for file_id in member_ids:
                _ensure_active(draft.require_file(file_id))

            draft.add(group)
            for file_id in member_ids:
                self.consistency.add_file_to_group(file_id, group.id)
            return draft.require_group(group.id).clone()

    def set_label(self, resource_id: str, label: str) -> None:
        with self.table.transaction("set_label") as draft:
            item = draft.require(resource_id)
            self._ensure_unmanaged(item, "label")
            draft.edit(resource_id).label = _require_label(label)
            self._propagate_if_source(draft, resource_id)

    def set_tags(self, resource_id: str, tags: Iterable[str | Tag]) -> None:
        with self.table.transaction("set_tags") as draft:
            item = draft.require(resource_id)
            namespace = TagNamespace.GROUP if isinstance(item, ResourceGroup) else TagNamespace.FILE
            parsed = normalize_tags(tags, namespace)
            draft.edit(resource_id).tags = parsed
            self._propagate_if_source(draft, resource_id)

    def set_url(self, file_id: str, channel: str, value: str | None) -> None:
        with self.table.transaction("set_url") as draft:
            draft.require_file(file_id)
            url = draft.edit_file(file_id).url
            if value is None:
                url.pop(channel, None)
            else:
                url[channel] = value

    def set_preload_level(self, file_id: str, level: PreloadLevel | str) -> None:
        self._set_managed_field(file_id, "preload_level", PreloadLevel.parse(level))

    def set_cache_to_hard_disk(self, file_id: str, enabled: bool) -> None:
        self._set_managed_field(file_id, "cache_to_hard_disk", bool(enabled))

    def set_episode_ids(self, file_id: str, episode_ids: Iterable[str]) -> None:
        self._set_managed_field(file_id, "episode_ids", list(dict.fromkeys(episode_ids)))

    def set_extension_configuration(self, file_id: str, key: str, value: str | None) -> None:
        with self.table.transaction("set_extension_configuration") as draft:
            resource_file = draft.require_file(file_id)
            if key not in self.merge_policy.non_mergeable_extension_keys:
                self._ensure_unmanaged(resource_file, "extension_configurations")
            configurations = draft.edit_file(file_id).extension_configurations
            if value is None:
                configurations.pop(key, None)
            else:
                configurations[key] = value
            self._propagate_if_source(draft, file_id)

    def set_thumbnail(self, resource_id: str, thumbnail_src: str | None) -> None:
        with self.table.transaction("set_thumbnail") as draft:
            draft.require(resource_id)
            draft.edit(resource_id).thumbnail_src = thumbnail_src

    def set_redirect_to(self, file_id: str, target_id: str | None) -> None:
        with self.table.transaction("set_redirect_to") as draft:
            draft.require_file(file_id)
            if target_id:
                draft.require_file(target_id)
                chain = [file_id]
                cursor: str | None = target_id
                while cursor:
                    if cursor in chain:
                        raise RedirectCycleError(
                            "Redirect cycle: " + " -> ".join(chain + [cursor])
                        )
                    chain.append(cursor)
                    nxt = draft.get(cursor)
                    cursor = nxt.redirect_to if isinstance(nxt, ResourceFile) else None
            draft.edit_file(file_id).redirect_to = target_id or None

    def set_managed_by(self, file_id: str, source_id: str | None) -> None:
        with self.table.transaction("set_managed_by") as draft:
            draft.require_file(file_id)
            if not source_id:
                draft.edit_file(file_id).managed_by = None
                return

            _ensure_active(draft.require_file(source_id))
            cursor: str | None = source_id
            while cursor:
                if cursor == file_id:
                    raise ValidationError(f"File {file_id} cannot be managed by itself")
                cursor = draft.require_file(cursor).managed_by

            draft.edit_file(file_id).managed_by = source_id
            self.consistency.propagate_managed_fields(source_id)

    def remove(self, resource_id: str) -> None:
        with self.table.transaction("remove") as draft:
            item = draft.require(resource_id)
            if item.removed:
                raise AlreadyRemovedError(f"Resource {resource_id} has already been removed")
            editable = draft.edit(resource_id)
            editable.removed = True
            editable.removed_time = now_utc_iso()

    def _set_managed_field(self, file_id: str, name: str, value: object) -> None:
        with self.table.transaction(f"set_{name}") as draft:
            self._ensure_unmanaged(draft.require_file(file_id), name)
            setattr(draft.edit_file(file_id), name, value)
            self._propagate_if_source(draft, file_id)

    def _ensure_unmanaged(self, item: ResourceItem, name: str) -> None:
        if not isinstance(item, ResourceFile) or not item.managed_by:
            return
        if name in self.merge_policy.mergeable_fields:
            raise ManagedFieldLockedError(
                f"Field {name} of file {item.id} is managed by {item.managed_by}"
            )

    def _propagate_if_source(self, draft: ResourceDraft, resource_id: str) -> None:
        item = draft.require(resource_id)
        if isinstance(item, ResourceFile) and not item.removed and draft.managed_by(resource_id):
            self.consistency.propagate_managed_fields(resource_id)


def _require_label(label: str) -> str:
    text = str(label or "").strip()
    if not text:
        raise ValidationError("Resource label must not be empty")
    return text


def _ensure_active(item: ResourceItem) -> None:
    if item.removed:
        raise AlreadyRemovedError(f"Resource {item.id} ({item.label}) has been removed")
