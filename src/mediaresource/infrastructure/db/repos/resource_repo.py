from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Iterable

from mediaresource.domain.models.resource import (
    ResourceFile,
    ResourceGroup,
    ResourceItem,
    item_from_dict,
)
from mediaresource.infrastructure.db.sqlite import get_connection

_COLUMNS = (
    "id",
    "type",
    "label",
    "removed",
    "removed_time",
    "import_time",
    "thumbnail_src",
    "redirect_to",
    "managed_by",
    "mime_type",
    "original_hash",
    "converted_xxhash",
    "converted_md5",
    "url_json",
    "cache_to_hard_disk",
    "preload_level",
    "episode_ids_json",
    "duration",
    "resource_group_id",
    "files_json",
    "tags_json",
    "extension_configurations_json",
)

_UPSERT_SQL = f"""
INSERT INTO resources ({", ".join(_COLUMNS)})
VALUES ({", ".join("?" for _ in _COLUMNS)})
ON CONFLICT(id) DO UPDATE SET
{", ".join(f"{col} = excluded.{col}" for col in _COLUMNS if col not in ("id", "type", "import_time"))}
"""


class ResourceRepo:
    """SQLite-backed entity table for resource files and groups."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def get(self, resource_id: str) -> ResourceItem | None:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM resources WHERE id = ?",
                (resource_id,),
            ).fetchone()
        return self._to_model(row) if row else None

    def list(self) -> list[ResourceItem]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM resources
                ORDER BY import_time ASC, id ASC
                """
            ).fetchall()
        return [self._to_model(row) for row in rows]

    def put(self, item: ResourceItem) -> None:
        self.put_many([item])

    def put_many(self, items: Iterable[ResourceItem]) -> None:
        params = [self._to_params(item) for item in items]
        if not params:
            return
        with get_connection(self.db_path) as conn:
            conn.executemany(_UPSERT_SQL, params)
            conn.commit()

    @staticmethod
    def _to_params(item: ResourceItem) -> tuple[object, ...]:
        tags_json = json.dumps([tag.id for tag in item.tags], ensure_ascii=True)
        if isinstance(item, ResourceGroup):
            return (
                item.id,
                item.type,
                item.label,
                int(item.removed),
                item.removed_time,
                item.import_time,
                item.thumbnail_src,
                None,
                None,
                None,
                None,
                None,
                None,
                "{}",
                0,
                "none",
                "[]",
                None,
                "",
                json.dumps(item.files, ensure_ascii=True),
                tags_json,
                "{}",
            )

        return (
            item.id,
            item.type,
            item.label,
            int(item.removed),
            item.removed_time,
            item.import_time,
            item.thumbnail_src,
            item.redirect_to,
            item.managed_by,
            item.mime_type,
            item.original_hash,
            item.converted_hash.xx_hash,
            item.converted_hash.md5,
            json.dumps(item.url, ensure_ascii=True, sort_keys=True),
            int(item.cache_to_hard_disk),
            item.preload_level.wire_name,
            json.dumps(item.episode_ids, ensure_ascii=True),
            item.duration,
            item.resource_group_id,
            "[]",
            tags_json,
            json.dumps(item.extension_configurations, ensure_ascii=True, sort_keys=True),
        )

    @staticmethod
    def _to_model(row: sqlite3.Row) -> ResourceItem:
        data: dict[str, object] = {
            "type": row["type"],
            "id": row["id"],
            "label": row["label"],
            "removed": bool(row["removed"]),
            "removedTime": row["removed_time"],
            "importTime": row["import_time"],
            "thumbnailSrc": row["thumbnail_src"],
            "tags": json.loads(row["tags_json"] or "[]"),
        }
        if row["type"] == ResourceFile.type:
            data.update(
                {
                    "redirectTo": row["redirect_to"],
                    "managedBy": row["managed_by"],
                    "mimeType": row["mime_type"],
                    "originalHash": row["original_hash"],
                    "convertedHash": {
                        "xxHash": row["converted_xxhash"],
                        "md5": row["converted_md5"],
                    },
                    "url": json.loads(row["url_json"] or "{}"),
                    "cacheToHardDisk": bool(row["cache_to_hard_disk"]),
                    "preloadLevel": row["preload_level"],
                    "episodeIds": json.loads(row["episode_ids_json"] or "[]"),
                    "duration": row["duration"],
                    "resourceGroupId": row["resource_group_id"],
                    "extensionConfigurations": json.loads(row["extension_configurations_json"] or "{}"),
                }
            )
        else:
            data["files"] = json.loads(row["files_json"] or "[]")
        return item_from_dict(data)
