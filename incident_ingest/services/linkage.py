from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import replace

from ..models.derived_record import DerivedRecord
from ..models.linkage import (
    LinkRef,
    ParentChildGroup,
    ParentChildPair,
    TagGroup,
    TagGrouping,
    TagRow,
)
from .deriver import summary_message

"""Linked-ticket aggregation and grouped drill-down views."""

__all__ = [
    "count_links",
    "aggregate",
    "group_parent_child",
    "group_tags",
]

UNASSIGNED = "No asignado"


def _key(value: str | None) -> str:
    return (value or "").strip()


def count_links(pairs: Iterable[ParentChildPair]) -> Counter[str]:
    """Number of pairs per child identifier."""
    return Counter(_key(p.child_id) for p in pairs if _key(p.child_id))


def aggregate(records: Sequence[DerivedRecord], pairs: Iterable[ParentChildPair]) -> list[DerivedRecord]:
    """Recompute linked counts and summary messages.

    A record's count is the number of pairs whose child id equals its linked
    request id. Row order is preserved.
    """
    counts = count_links(pairs)
    out: list[DerivedRecord] = []
    for record in records:
        linked = _key(record.linked_request_id)
        n = counts.get(linked, 0) if linked else 0
        out.append(replace(record, linked_count=n, message=summary_message(linked, n)))
    return out


def group_parent_child(pairs: Iterable[ParentChildPair]) -> list[ParentChildGroup]:
    """Group pairs by child id (first-seen order), listing each parent reference."""
    groups: dict[str, ParentChildGroup] = {}
    for pair in pairs:
        child = _key(pair.child_id)
        if not child:
            continue
        group = groups.get(child)
        if group is None:
            group = ParentChildGroup(child_id=child, child_link=pair.child_link)
            groups[child] = group
        group.parents.append(LinkRef(_key(pair.parent_id), pair.parent_link))
    return list(groups.values())


def _append_unique(items: list[str], value: str) -> None:
    if value not in items:
        items.append(value)


def group_tags(tags: Iterable[TagRow], unassigned: str = UNASSIGNED) -> TagGrouping:
    """Group tag rows by linked request id.

    Rows whose linked id is empty or the unassigned sentinel are skipped.
    Labels are deduplicated in insertion order; the reverse indexes map
    ``linked_id -> label -> [request refs]``.
    """
    groups: dict[str, TagGroup] = {}
    categ_index: dict[str, dict[str, list[LinkRef]]] = {}
    info_index: dict[str, dict[str, list[LinkRef]]] = {}
    skipped = 0
    sentinel = unassigned.strip().lower()

    for tag in tags:
        linked = _key(tag.linked_request_id)
        if not linked or linked.lower() == sentinel:
            skipped += 1
            continue
        group = groups.get(linked)
        if group is None:
            group = TagGroup(linked_request_id=linked, linked_request_id_link=tag.linked_request_id_link)
            groups[linked] = group
        ref = LinkRef(_key(tag.request_id), tag.request_id_link)
        if ref not in group.request_ids:
            group.request_ids.append(ref)

        categorization = _key(tag.categorization)
        if categorization:
            _append_unique(group.categorizations, categorization)
            refs = categ_index.setdefault(linked, {}).setdefault(categorization, [])
            if ref not in refs:
                refs.append(ref)

        info = _key(tag.additional_info)
        if info:
            _append_unique(group.additional_infos, info)
            refs = info_index.setdefault(linked, {}).setdefault(info, [])
            if ref not in refs:
                refs.append(ref)

    return TagGrouping(
        groups=list(groups.values()),
        categorization_index=categ_index,
        additional_info_index=info_index,
        skipped=skipped,
    )
