from __future__ import annotations

from pathlib import Path

import pytest

from mediaresource.application.services.project_service import ProjectService
from mediaresource.cli.main import main
from mediaresource.core.config import load_paths
from mediaresource.infrastructure.db.repos.resource_repo import ResourceRepo


def _run(project_root: Path, *args: str) -> int:
    return main(["--project-root", str(project_root), *args])


def test_cli_requires_init(tmp_path: Path) -> None:
    assert _run(tmp_path, "resources") == 1


def test_cli_end_to_end_smoke(tmp_path: Path) -> None:
    assert _run(tmp_path, "init") == 0

    assert _run(tmp_path, "files", "import", "--label", "intro-en", "--tag", "lang:en", "--episode", "ep1") == 0
    assert _run(tmp_path, "files", "import", "--label", "intro-ja", "--tag", "lang:ja", "--preload", "eager", "--episode", "ep1") == 0

    repo = ResourceRepo(tmp_path / ".mediares" / "mediares.db")
    ids = {item.label: item.id for item in repo.list()}

    assert _run(tmp_path, "groups", "create", "--label", "intro", "--file", ids["intro-en"], "--file", ids["intro-ja"]) == 0
    assert _run(tmp_path, "resolve", "intro", "--locale", "ja") == 0
    assert _run(tmp_path, "preload", "ep1") == 0
    assert _run(tmp_path, "episodes", "add", "ep1", "--order", "1", "--label", "Pilot") == 0
    assert _run(tmp_path, "env", "--episode", "ep1") == 0
    assert _run(tmp_path, "resources") == 0

    group = next(item for item in repo.list() if item.type == "group")
    assert group.files == [ids["intro-en"], ids["intro-ja"]]


def test_cli_reports_user_errors_with_exit_code(tmp_path: Path) -> None:
    assert _run(tmp_path, "init") == 0
    assert _run(tmp_path, "resolve", "missing") == 1
    assert _run(tmp_path, "files", "import", "--label", "bad", "--tag", "group:video") == 1
    assert _run(tmp_path, "groups", "add", "nope", "nada") == 1


def test_commands_share_merge_policy_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MEDIARES_HOME", raising=False)
    monkeypatch.setenv("MEDIARES_NON_MERGEABLE_FIELDS", "label")
    assert _run(tmp_path, "init") == 0

    service = ProjectService(load_paths(tmp_path)).open_resource_service()
    source = service.import_file(label="source", file_id="src")
    service.import_file(label="own-label", file_id="dst", managed_by=source.id)

    assert "label" not in service.merge_policy.mergeable_fields
    assert service.consistency.merge_policy is service.merge_policy
    assert service.get("dst").label == "own-label"

    assert _run(tmp_path, "groups", "create", "--label", "pair", "--file", "src", "--file", "dst") == 0
    assert _run(tmp_path, "files", "tag", "dst", "lang:en") == 0
