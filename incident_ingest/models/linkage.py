from __future__ import annotations

from dataclasses import dataclass, field

"""Linkage inputs (parent/child pairs, tag rows) and grouped views."""

__all__ = [
    "LinkRef",
    "ParentChildPair",
    "ParentChildGroup",
    "TagRow",
    "TagGroup",
    "TagGrouping",
]


@dataclass(frozen=True)
class LinkRef:
    request_id: str
    link: str | None = None


@dataclass(frozen=True)
class ParentChildPair:
    parent_id: str
    child_id: str  # the linked request id the parent points at
    parent_link: str | None = None
    child_link: str | None = None


@dataclass(frozen=True)
class ParentChildGroup:
    child_id: str
    child_link: str | None
    parents: list[LinkRef] = field(default_factory=list)

    @property
    def parent_count(self) -> int:
        return len(self.parents)


@dataclass(frozen=True)
class TagRow:
    request_id: str
    linked_request_id: str
    categorization: str = ""
    additional_info: str = ""
    request_id_link: str | None = None
    linked_request_id_link: str | None = None
    created_time: str = ""
    module: str = ""
    problem_id: str = ""
    problem_id_link: str | None = None
    jira: str = ""
    technician: str = ""


@dataclass(frozen=True)
class TagGroup:
    linked_request_id: str
    linked_request_id_link: str | None
    categorizations: list[str] = field(default_factory=list)
    additional_infos: list[str] = field(default_factory=list)
    request_ids: list[LinkRef] = field(default_factory=list)


@dataclass(frozen=True)
class TagGrouping:
    """Tag rows grouped by linked request id, plus label reverse lookups.

    ``categorization_index[linked_id][label]`` lists the request ids whose
    tag row produced ``label`` within that group.
    """
    groups: list[TagGroup] = field(default_factory=list)
    categorization_index: dict[str, dict[str, list[LinkRef]]] = field(default_factory=dict)
    additional_info_index: dict[str, dict[str, list[LinkRef]]] = field(default_factory=dict)
    skipped: int = 0  # rows without a usable linked request id
