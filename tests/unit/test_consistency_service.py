from __future__ import annotations

import random

import pytest

from mediaresource.application.services.consistency_service import (
    ConsistencyService,
    check_consistency,
    merge_extension_configurations,
    merge_tags,
)
from mediaresource.application.services.resource_service import ResourceService
from mediaresource.application.services.resource_table import ResourceTable
from mediaresource.core.config import MergePolicy
from mediaresource.core.errors import (
    AlreadyRemovedError,
    ConsistencyViolationError,
    ResourceFileNotFoundError,
    ResourceGroupNotFoundError,
)
from mediaresource.domain.models.resource import PreloadLevel, ResourceFile, ResourceGroup
from mediaresource.domain.models.tag import parse_tag


def _bootstrap(merge_policy: MergePolicy | None = None):
    table = ResourceTable()
    consistency = ConsistencyService(table, merge_policy)
    service = ResourceService(table, consistency)
    return table, consistency, service


def _tags(*raws: str):
    return [parse_tag(raw) for raw in raws]


def test_add_file_to_group_sets_both_sides() -> None:
    table, consistency, service = _bootstrap()
    f = service.import_file(label="a", file_id="f1")
    g = service.create_group(label="intro", group_id="g1")

    consistency.add_file_to_group(f.id, g.id)

    snapshot = table.snapshot()
    assert snapshot.require_file("f1").resource_group_id == "g1"
    assert snapshot.require_group("g1").files == ["f1"]


def test_moving_file_between_groups_updates_old_group() -> None:
    table, consistency, service = _bootstrap()
    service.import_file(label="a", file_id="f1")
    service.create_group(label="one", group_id="g1", files=["f1"])
    service.create_group(label="two", group_id="g2")

    consistency.add_file_to_group("f1", "g2")

    snapshot = table.snapshot()
    assert snapshot.require_group("g1").files == []
    assert snapshot.require_group("g2").files == ["f1"]
    assert snapshot.require_file("f1").resource_group_id == "g2"


def test_add_file_to_group_reports_missing_and_removed_entities() -> None:
    table, consistency, service = _bootstrap()
    service.import_file(label="a", file_id="f1")
    service.create_group(label="g", group_id="g1")

    with pytest.raises(ResourceFileNotFoundError):
        consistency.add_file_to_group("missing", "g1")
    with pytest.raises(ResourceGroupNotFoundError):
        consistency.add_file_to_group("f1", "missing")
    with pytest.raises(ResourceGroupNotFoundError):
        consistency.add_file_to_group("f1", "f1")

    service.remove("g1")
    with pytest.raises(AlreadyRemovedError):
        consistency.add_file_to_group("f1", "g1")
    assert table.snapshot().require_file("f1").resource_group_id == ""


def test_remove_file_from_group_is_idempotent() -> None:
    table, consistency, service = _bootstrap()
    service.import_file(label="a", file_id="f1")
    service.create_group(label="g", group_id="g1", files=["f1"])

    consistency.remove_file_from_group("f1")
    once = {item.id: item.to_dict() for item in table.snapshot()}
    consistency.remove_file_from_group("f1")
    twice = {item.id: item.to_dict() for item in table.snapshot()}

    assert once == twice
    assert once["f1"]["resourceGroupId"] == ""
    assert once["g1"]["files"] == []


def test_random_grouping_sequences_keep_links_symmetric() -> None:
    table, consistency, service = _bootstrap()
    file_ids = [service.import_file(label=f"f{i}", file_id=f"f{i}").id for i in range(6)]
    group_ids = [service.create_group(label=f"g{i}", group_id=f"g{i}").id for i in range(3)]

    rng = random.Random(1234)
    for _ in range(200):
        file_id = rng.choice(file_ids)
        if rng.random() < 0.7:
            consistency.add_file_to_group(file_id, rng.choice(group_ids))
        else:
            consistency.remove_file_from_group(file_id)

        snapshot = table.snapshot()
        for resource_file in snapshot.files():
            if resource_file.resource_group_id:
                assert resource_file.id in snapshot.require_group(resource_file.resource_group_id).files
        for group in snapshot.groups():
            for member_id in group.files:
                assert snapshot.require_file(member_id).resource_group_id == group.id


def test_check_consistency_detects_one_sided_links() -> None:
    items = {
        "f1": ResourceFile(id="f1", label="a", import_time="t", resource_group_id="g1"),
        "g1": ResourceGroup(id="g1", label="g", import_time="t", files=[]),
    }
    with pytest.raises(ConsistencyViolationError):
        check_consistency(items)

    items = {
        "f1": ResourceFile(id="f1", label="a", import_time="t"),
        "g1": ResourceGroup(id="g1", label="g", import_time="t", files=["f1"]),
    }
    with pytest.raises(ConsistencyViolationError):
        check_consistency(items)


def test_bypassed_write_path_aborts_transaction() -> None:
    table, consistency, service = _bootstrap()
    service.import_file(label="a", file_id="f1")
    service.create_group(label="g", group_id="g1")

    with pytest.raises(ConsistencyViolationError):
        with table.transaction("broken") as draft:
            draft.edit_file("f1").resource_group_id = "g1"

    snapshot = table.snapshot()
    assert snapshot.require_file("f1").resource_group_id == ""
    assert snapshot.require_group("g1").files == []


def test_merge_tags_keeps_sticky_and_lets_source_win() -> None:
    source = _tags("lang:ja", "device:mobile", "role:video!")
    target = _tags("lang:en", "role:audio!", "screen:wide")

    merged = merge_tags(source, target)

    assert [t.id for t in merged] == ["role:audio!", "lang:ja", "device:mobile", "screen:wide"]


def test_merge_tags_does_not_duplicate_sticky_key() -> None:
    merged = merge_tags(_tags("lang:en"), _tags("lang:en!"))
    assert [t.id for t in merged] == ["lang:en!"]


def test_merge_extension_configurations_respects_non_mergeable_keys() -> None:
    merged = merge_extension_configurations(
        {"atlas": "src", "audio": "src"},
        {"atlas": "target", "subtitle": "target"},
        frozenset({"atlas"}),
    )
    assert merged == {"atlas": "target", "subtitle": "target", "audio": "src"}


def test_propagate_copies_managed_fields_and_is_idempotent() -> None:
    table, consistency, service = _bootstrap()
    service.import_file(label="source", file_id="src", tags=["lang:en"], episode_ids=["ep1"])
    service.import_file(label="converted", file_id="dst", tags=["role:video!", "lang:zh"])
    service.set_managed_by("dst", "src")

    managed = table.snapshot().require_file("dst")
    assert managed.label == "source"
    assert managed.episode_ids == ["ep1"]
    assert [t.id for t in managed.tags] == ["role:video!", "lang:en"]

    with table.transaction("direct") as draft:
        source = draft.edit_file("src")
        source.preload_level = PreloadLevel.EAGER
        source.tags = _tags("lang:ja", "device:pc")

    assert consistency.propagate_managed_fields("src") == ["dst"]
    first = table.snapshot().require_file("dst").to_dict()

    assert consistency.propagate_managed_fields("src") == []
    second = table.snapshot().require_file("dst").to_dict()

    assert first == second
    assert first["preloadLevel"] == "eager"
    assert first["tags"] == ["role:video!", "lang:ja", "device:pc"]


@pytest.mark.parametrize(
    "source_tags",
    [
        [],
        ["role:audio"],
        ["role:video!", "lang:en"],
        ["role:audio", "lang:en!", "custom:x"],
    ],
)
def test_sticky_tags_survive_any_source_tag_set(source_tags: list[str]) -> None:
    table, consistency, service = _bootstrap()
    service.import_file(label="source", file_id="src", tags=source_tags)
    service.import_file(label="copy", file_id="dst", tags=["role:video!", "lang:ja!"], managed_by="src")

    consistency.propagate_managed_fields("src")

    sticky = [t.id for t in table.snapshot().require_file("dst").tags if t.sticky]
    assert sticky == ["role:video!", "lang:ja!"]


def test_propagation_reaches_files_managed_by_managed_files() -> None:
    table, consistency, service = _bootstrap()
    service.import_file(label="root", file_id="a", episode_ids=["ep1"])
    service.import_file(label="b", file_id="b", managed_by="a")
    service.import_file(label="c", file_id="c", managed_by="b")

    with table.transaction("direct") as draft:
        draft.edit_file("a").episode_ids = ["ep2"]
    changed = consistency.propagate_managed_fields("a")

    assert changed == ["b", "c"]
    assert table.snapshot().require_file("c").episode_ids == ["ep2"]


def test_non_mergeable_fields_are_left_alone() -> None:
    policy = MergePolicy(non_mergeable_fields=frozenset({"label"}))
    table, consistency, service = _bootstrap(policy)
    service.import_file(label="source", file_id="src", cache_to_hard_disk=True)
    service.import_file(label="mine", file_id="dst", managed_by="src")

    managed = table.snapshot().require_file("dst")
    assert managed.label == "mine"
    assert managed.cache_to_hard_disk is True


def test_propagate_from_removed_source_fails() -> None:
    table, consistency, service = _bootstrap()
    service.import_file(label="source", file_id="src")
    service.remove("src")
    with pytest.raises(AlreadyRemovedError):
        consistency.propagate_managed_fields("src")
