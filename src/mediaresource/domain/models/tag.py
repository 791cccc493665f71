from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from mediaresource.core.errors import TagFormatError, TagNamespaceViolationError

STICKY_SUFFIX = "!"
GROUP_TAG_FIELDS = frozenset({"group"})


class TagNamespace(str, Enum):
    FILE = "file"
    GROUP = "group"


@dataclass(frozen=True, slots=True)
class Tag:
    """A parsed `field:value` tag; `sticky` tags end with `!` and never merge."""

    field: str
    value: str
    sticky: bool = False

    @property
    def id(self) -> str:
        suffix = STICKY_SUFFIX if self.sticky else ""
        return f"{self.field}:{self.value}{suffix}"

    @property
    def key(self) -> tuple[str, str]:
        return (self.field, self.value)

    @property
    def namespace(self) -> TagNamespace:
        return TagNamespace.GROUP if self.field in GROUP_TAG_FIELDS else TagNamespace.FILE

    def __str__(self) -> str:
        return self.id


def parse_tag(raw: str | Tag) -> Tag:
    if isinstance(raw, Tag):
        return raw

    text = str(raw)
    sticky = text.endswith(STICKY_SUFFIX)
    body = text[: -len(STICKY_SUFFIX)] if sticky else text

    field, sep, value = body.partition(":")
    if not sep or not field or not value:
        raise TagFormatError(f"Tag must look like field:value or field:value!, got {text!r}")
    if any(ch.isspace() for ch in body) or STICKY_SUFFIX in body:
        raise TagFormatError(f"Tag contains invalid characters: {text!r}")
    return Tag(field=field, value=value, sticky=sticky)


def normalize_tags(raws: Iterable[str | Tag], namespace: TagNamespace) -> list[Tag]:
    tags: list[Tag] = []
    seen: set[Tag] = set()
    for raw in raws:
        tag = parse_tag(raw)
        if tag.namespace is not namespace:
            raise TagNamespaceViolationError(
                f"Tag {tag.id!r} belongs to the {tag.namespace.value} namespace, "
                f"not the {namespace.value} namespace"
            )
        if namespace is TagNamespace.GROUP and tag.sticky:
            raise TagNamespaceViolationError(f"Group tags cannot be sticky: {tag.id!r}")
        if tag in seen:
            continue
        seen.add(tag)
        tags.append(tag)
    return tags
