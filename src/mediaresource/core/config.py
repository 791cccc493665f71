from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from mediaresource.core.errors import ConfigurationError


@dataclass(frozen=True)
class AppPaths:
    project_root: Path
    data_dir: Path
    db_path: Path


DEFAULT_DATA_DIRNAME = ".mediares"

# Fields of a managed file that follow its source file.
MANAGED_FIELDS = (
    "label",
    "cache_to_hard_disk",
    "preload_level",
    "episode_ids",
    "tags",
    "extension_configurations",
)


@dataclass(frozen=True)
class MergePolicy:
    non_mergeable_fields: frozenset[str] = field(default_factory=frozenset)
    non_mergeable_extension_keys: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        unknown = set(self.non_mergeable_fields) - set(MANAGED_FIELDS)
        if unknown:
            raise ConfigurationError(
                f"Unknown non-mergeable field(s): {', '.join(sorted(unknown))}"
            )

    @property
    def mergeable_fields(self) -> tuple[str, ...]:
        return tuple(name for name in MANAGED_FIELDS if name not in self.non_mergeable_fields)


def load_paths(project_root: Path | None = None) -> AppPaths:
    root = (project_root or Path.cwd()).expanduser().resolve()

    home_raw = os.getenv("MEDIARES_HOME")
    if home_raw:
        data_dir = Path(home_raw).expanduser().resolve()
    else:
        data_dir = root / DEFAULT_DATA_DIRNAME

    return AppPaths(
        project_root=root,
        data_dir=data_dir,
        db_path=data_dir / "mediares.db",
    )


def load_merge_policy() -> MergePolicy:
    return MergePolicy(
        non_mergeable_fields=_read_csv_env("MEDIARES_NON_MERGEABLE_FIELDS"),
        non_mergeable_extension_keys=_read_csv_env("MEDIARES_NON_MERGEABLE_EXTENSION_KEYS"),
    )


def _read_csv_env(name: str) -> frozenset[str]:
    raw = os.getenv(name)
    if not raw:
        return frozenset()
    return frozenset(part.strip() for part in raw.split(",") if part.strip())
