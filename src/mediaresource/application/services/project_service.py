from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from mediaresource.application.services.resource_service import ResourceService
from mediaresource.application.services.resource_table import ResourceTable
from mediaresource.core.config import AppPaths, load_merge_policy
from mediaresource.core.errors import ProjectNotInitializedError
from mediaresource.core.files import ensure_directory
from mediaresource.infrastructure.db.repos.resource_repo import ResourceRepo
from mediaresource.infrastructure.db.sqlite import SCHEMA_VERSION, initialize_schema, require_current_schema
from mediaresource.infrastructure.events.bridge import EventBridge


@dataclass(slots=True)
class InitResult:
    paths_created: list[Path]
    db_path: Path
    previous_schema_version: int
    schema_version: int


class ProjectService:
    def __init__(self, paths: AppPaths) -> None:
        self.paths = paths

    def init_project(self) -> InitResult:
        paths_created: list[Path] = []

        if not self.paths.data_dir.exists():
            paths_created.append(self.paths.data_dir)
        ensure_directory(self.paths.data_dir)

        previous = initialize_schema(self.paths.db_path)

        return InitResult(
            paths_created=paths_created,
            db_path=self.paths.db_path,
            previous_schema_version=previous,
            schema_version=SCHEMA_VERSION,
        )

    def is_initialized(self) -> bool:
        return self.paths.db_path.exists()

    def require_initialized(self) -> None:
        if not self.is_initialized():
            raise ProjectNotInitializedError(
                f"Project is not initialized. Run 'mediares init' first in {self.paths.project_root}"
            )
        require_current_schema(self.paths.db_path)

    def open_table(self, event_bridge: EventBridge | None = None) -> ResourceTable:
        self.require_initialized()
        return ResourceTable.load(ResourceRepo(self.paths.db_path), event_bridge=event_bridge)

    def open_resource_service(self, event_bridge: EventBridge | None = None) -> ResourceService:
        return ResourceService(self.open_table(event_bridge), merge_policy=load_merge_policy())
