from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Any, ClassVar, Union

from mediaresource.core.errors import ValidationError
from mediaresource.domain.models.tag import Tag, TagNamespace, normalize_tags


class PreloadLevel(IntEnum):
    """Eagerness of loading, ordered from least to most urgent."""

    NONE = 0
    LAZY = 1
    ON_EPISODE_START = 2
    EAGER = 3

    @property
    def wire_name(self) -> str:
        return _PRELOAD_WIRE_NAMES[self]

    @classmethod
    def parse(cls, value: str | int | PreloadLevel) -> PreloadLevel:
        if isinstance(value, PreloadLevel):
            return value
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip()
        for level, name in _PRELOAD_WIRE_NAMES.items():
            if text == name or text.upper() == level.name:
                return level
        raise ValidationError(f"Unknown preload level: {value!r}")


_PRELOAD_WIRE_NAMES = {
    PreloadLevel.NONE: "none",
    PreloadLevel.LAZY: "lazy",
    PreloadLevel.ON_EPISODE_START: "onEpisodeStart",
    PreloadLevel.EAGER: "eager",
}


@dataclass(frozen=True, slots=True)
class ContentHash:
    xx_hash: str = ""
    md5: str = ""


@dataclass(slots=True, kw_only=True)
class ResourceCommon:
    id: str
    label: str
    import_time: str
    removed: bool = False
    removed_time: str | None = None
    thumbnail_src: str | None = None

    type: ClassVar[str] = ""

    def _common_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "id": self.id,
            "label": self.label,
            "removed": self.removed,
            "removedTime": self.removed_time,
            "importTime": self.import_time,
            "thumbnailSrc": self.thumbnail_src,
        }


@dataclass(slots=True, kw_only=True)
class ResourceFile(ResourceCommon):
    mime_type: str = "application/octet-stream"
    original_hash: str = ""
    converted_hash: ContentHash = field(default_factory=ContentHash)
    url: dict[str, str] = field(default_factory=dict)
    cache_to_hard_disk: bool = False
    preload_level: PreloadLevel = PreloadLevel.NONE
    episode_ids: list[str] = field(default_factory=list)
    duration: float | None = None
    resource_group_id: str = ""
    tags: list[Tag] = field(default_factory=list)
    extension_configurations: dict[str, str] = field(default_factory=dict)
    redirect_to: str | None = None
    managed_by: str | None = None

    type: ClassVar[str] = "file"

    def clone(self) -> ResourceFile:
        return replace(
            self,
            url=dict(self.url),
            episode_ids=list(self.episode_ids),
            tags=list(self.tags),
            extension_configurations=dict(self.extension_configurations),
        )

    @property
    def preload_triggers(self) -> list[str]:
        # Legacy field kept for readers of old payloads; never populated.
        return []

    @property
    def is_managed(self) -> bool:
        return bool(self.managed_by)

    def to_dict(self) -> dict[str, Any]:
        data = self._common_dict()
        data.update(
            {
                "redirectTo": self.redirect_to,
                "managedBy": self.managed_by,
                "mimeType": self.mime_type,
                "originalHash": self.original_hash,
                "convertedHash": {
                    "xxHash": self.converted_hash.xx_hash,
                    "md5": self.converted_hash.md5,
                },
                "url": dict(self.url),
                "cacheToHardDisk": self.cache_to_hard_disk,
                "preloadLevel": self.preload_level.wire_name,
                "preloadTriggers": self.preload_triggers,
                "episodeIds": list(self.episode_ids),
                "duration": self.duration,
                "resourceGroupId": self.resource_group_id,
                "tags": [tag.id for tag in self.tags],
                "extensionConfigurations": dict(self.extension_configurations),
            }
        )
        return data


@dataclass(slots=True, kw_only=True)
class ResourceGroup(ResourceCommon):
    files: list[str] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)

    type: ClassVar[str] = "group"

    def clone(self) -> ResourceGroup:
        return replace(self, files=list(self.files), tags=list(self.tags))

    def to_dict(self) -> dict[str, Any]:
        data = self._common_dict()
        data.update(
            {
                "files": list(self.files),
                "tags": [tag.id for tag in self.tags],
            }
        )
        return data


ResourceItem = Union[ResourceFile, ResourceGroup]


def item_from_dict(data: dict[str, Any]) -> ResourceItem:
    item_type = data.get("type")
    common = {
        "id": str(data["id"]),
        "label": str(data.get("label") or ""),
        "import_time": str(data["importTime"]),
        "removed": bool(data.get("removed", False)),
        "removed_time": data.get("removedTime"),
        "thumbnail_src": data.get("thumbnailSrc"),
    }

    if item_type == ResourceFile.type:
        converted = data.get("convertedHash") or {}
        duration = data.get("duration")
        return ResourceFile(
            **common,
            redirect_to=data.get("redirectTo") or None,
            managed_by=data.get("managedBy") or None,
            mime_type=str(data.get("mimeType") or "application/octet-stream"),
            original_hash=str(data.get("originalHash") or ""),
            converted_hash=ContentHash(
                xx_hash=str(converted.get("xxHash") or ""),
                md5=str(converted.get("md5") or ""),
            ),
            url={str(k): str(v) for k, v in (data.get("url") or {}).items()},
            cache_to_hard_disk=bool(data.get("cacheToHardDisk", False)),
            preload_level=PreloadLevel.parse(data.get("preloadLevel", PreloadLevel.NONE)),
            episode_ids=[str(x) for x in data.get("episodeIds") or []],
            duration=float(duration) if duration is not None else None,
            resource_group_id=str(data.get("resourceGroupId") or ""),
            tags=normalize_tags(data.get("tags") or [], TagNamespace.FILE),
            extension_configurations={
                str(k): str(v) for k, v in (data.get("extensionConfigurations") or {}).items()
            },
        )

    if item_type == ResourceGroup.type:
        if data.get("resourceGroupId"):
            raise ValidationError(f"Resource group {common['id']} cannot carry resourceGroupId")
        return ResourceGroup(
            **common,
            files=_unique([str(x) for x in data.get("files") or []]),
            tags=normalize_tags(data.get("tags") or [], TagNamespace.GROUP),
        )

    raise ValidationError(f"Unsupported resource type: {item_type!r}")


def _unique(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))
