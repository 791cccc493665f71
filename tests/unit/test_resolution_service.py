from __future__ import annotations

import pytest

from mediaresource.application.services.resolution_service import (
    ResolutionConstraints,
    ResolutionService,
)
from mediaresource.application.services.resource_service import ResourceService
from mediaresource.application.services.resource_table import ResourceTable
from mediaresource.core.errors import (
    NoEligibleResourceError,
    RedirectCycleError,
    ResourceFileNotFoundError,
    ResourceNotFoundError,
    ValidationError,
)
from mediaresource.domain.models.resource import ResourceFile, ResourceGroup
from mediaresource.domain.models.tag import parse_tag


def _bootstrap():
    table = ResourceTable()
    return table, ResourceService(table), ResolutionService(table)


def _file(file_id: str, *, tags=(), redirect_to: str | None = None, group: str = "", label: str | None = None):
    return ResourceFile(
        id=file_id,
        label=label or file_id,
        import_time="2024-01-01T00:00:00+00:00",
        tags=[parse_tag(t) for t in tags],
        redirect_to=redirect_to,
        resource_group_id=group,
    )


def test_tie_break_uses_declaration_order() -> None:
    table, service, resolver = _bootstrap()
    service.import_file(label="a", file_id="A", tags=["lang:en"])
    service.import_file(label="b", file_id="B", tags=["lang:en"])
    service.create_group(label="intro", group_id="G", files=["A", "B"])

    assert resolver.resolve("intro", {"lang": "en"}).id == "A"


def test_highest_score_wins_over_declaration_order() -> None:
    table, service, resolver = _bootstrap()
    service.import_file(label="a", file_id="A", tags=["lang:en"])
    service.import_file(label="b", file_id="B", tags=["lang:en", "device:mobile!"])
    service.create_group(label="intro", group_id="G", files=["A", "B"])

    resolution = resolver.resolve_with_details(
        "intro", ResolutionConstraints(locale="en", device="mobile")
    )

    assert resolution.file.id == "B"
    assert resolution.score == 2
    assert resolution.group_id == "G"


def test_zero_score_still_resolves_to_first_declared() -> None:
    table, service, resolver = _bootstrap()
    service.import_file(label="a", file_id="A", tags=["lang:ja"])
    service.import_file(label="b", file_id="B", tags=["lang:zh"])
    service.create_group(label="intro", group_id="G", files=["B", "A"])

    resolution = resolver.resolve_with_details("intro", ResolutionConstraints(locale="en"))

    assert resolution.file.id == "B"
    assert resolution.score == 0


def test_groups_shadow_files_with_the_same_label() -> None:
    table, service, resolver = _bootstrap()
    service.import_file(label="intro", file_id="F", tags=["lang:en"])
    service.import_file(label="variant", file_id="V")
    service.create_group(label="intro", group_id="G", files=["V"])

    assert resolver.resolve("intro", {"lang": "en"}).id == "V"


def test_resolution_by_group_id() -> None:
    table, service, resolver = _bootstrap()
    service.import_file(label="a", file_id="A")
    service.create_group(label="intro", group_id="G", files=["A"])

    assert resolver.resolve("G").id == "A"


def test_removed_members_are_skipped() -> None:
    table, service, resolver = _bootstrap()
    service.import_file(label="a", file_id="A", tags=["lang:en"])
    service.import_file(label="b", file_id="B")
    service.create_group(label="intro", group_id="G", files=["A", "B"])
    service.remove("A")

    assert resolver.resolve("intro", {"lang": "en"}).id == "B"


def test_group_with_only_removed_files_has_no_eligible_resource() -> None:
    table, service, resolver = _bootstrap()
    service.import_file(label="a", file_id="A")
    service.import_file(label="b", file_id="B")
    service.create_group(label="intro", group_id="G", files=["A", "B"])
    service.remove("A")
    service.remove("B")

    with pytest.raises(NoEligibleResourceError):
        resolver.resolve("intro")


def test_empty_group_has_no_eligible_resource() -> None:
    table, service, resolver = _bootstrap()
    service.create_group(label="intro", group_id="G")

    with pytest.raises(NoEligibleResourceError):
        resolver.resolve("intro")


def test_redirect_chain_resolves_transitively() -> None:
    table = ResourceTable([_file("A", redirect_to="B"), _file("B", redirect_to="C"), _file("C")])
    resolution = ResolutionService(table).resolve_with_details("A")

    assert resolution.file.id == "C"
    assert resolution.redirect_chain == ["A", "B", "C"]


def test_redirect_cycle_is_fatal() -> None:
    table = ResourceTable([_file("A", redirect_to="B"), _file("B", redirect_to="A")])

    with pytest.raises(RedirectCycleError):
        ResolutionService(table).resolve("A")


def test_self_redirect_is_a_cycle() -> None:
    table = ResourceTable([_file("A", redirect_to="A")])

    with pytest.raises(RedirectCycleError):
        ResolutionService(table).resolve("A")


def test_dangling_redirect_reports_missing_file() -> None:
    table = ResourceTable([_file("A", redirect_to="gone")])

    with pytest.raises(ResourceFileNotFoundError):
        ResolutionService(table).resolve("A")


def test_group_winner_follows_its_redirect() -> None:
    table = ResourceTable(
        [
            _file("A", group="G", tags=["lang:en"], redirect_to="online"),
            _file("online"),
            ResourceGroup(id="G", label="intro", import_time="2024", files=["A"]),
        ]
    )

    assert ResolutionService(table).resolve("intro", {"lang": "en"}).id == "online"


def test_unknown_query_is_not_found() -> None:
    table, service, resolver = _bootstrap()
    with pytest.raises(ResourceNotFoundError):
        resolver.resolve("nothing")


def test_resolution_is_pure_and_repeatable() -> None:
    table, service, resolver = _bootstrap()
    service.import_file(label="a", file_id="A", tags=["lang:en", "device:pc"])
    service.import_file(label="b", file_id="B", tags=["lang:en", "device:mobile"])
    service.create_group(label="intro", group_id="G", files=["A", "B"])

    before = {item.id: item.to_dict() for item in table.snapshot()}
    constraints = ResolutionConstraints(locale="en", device="mobile", extra={"custom": "x"})
    first = resolver.resolve("intro", constraints)
    second = resolver.resolve("intro", constraints)
    after = {item.id: item.to_dict() for item in table.snapshot()}

    assert first.id == second.id == "B"
    assert before == after


def test_constraints_from_tags() -> None:
    constraints = ResolutionConstraints.from_tags(["screen:wide", "custom:x!"], locale="en")
    assert constraints.pairs() == [("lang", "en"), ("screen", "wide"), ("custom", "x")]


@pytest.mark.parametrize(
    ("raws", "kwargs"),
    [
        (["lang:en", "lang:ja"], {}),
        (["lang:en"], {"locale": "ja"}),
        (["device:tv"], {"device": "mobile"}),
    ],
)
def test_constraints_from_tags_rejects_repeated_field(raws, kwargs) -> None:
    with pytest.raises(ValidationError):
        ResolutionConstraints.from_tags(raws, **kwargs)


def test_constraints_extra_is_read_only() -> None:
    source = {"custom": "x"}
    constraints = ResolutionConstraints(extra=source)
    source["custom"] = "y"

    assert constraints.extra["custom"] == "x"
    with pytest.raises(TypeError):
        constraints.extra["custom"] = "z"  # type: ignore[index]


def test_resolved_file_is_detached_from_table() -> None:
    table, service, resolver = _bootstrap()
    service.import_file(label="a", file_id="f1", tags=["lang:en"])

    resolved = resolver.resolve("a")
    resolved.resource_group_id = "g1"
    resolved.tags.clear()

    stored = table.snapshot().require_file("f1")
    assert stored.resource_group_id == ""
    assert [tag.id for tag in stored.tags] == ["lang:en"]
