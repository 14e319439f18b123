# abouttime/validate.py
"""Structural validation of item graphs (library-facing)."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple, Union

from .interval import DurationOf, IntervalIndex
from .model import (
    BaseCalendar,
    Item,
    ItemKind,
    SubCalendarItem,
    child_ids,
    iter_entries,
)


class GraphValidationError(ValueError):
    """Raised when an item graph fails validation."""


ItemsLike = Union[Mapping[str, Item], Iterable[Item]]


def _item_list(items: ItemsLike) -> List[Item]:
    if isinstance(items, Mapping):
        return list(items.values())
    return list(items)


def _require(cond: bool, msg: str, errs: List[str]) -> None:
    if not cond:
        errs.append(msg)


def _child_refs(item: Item) -> List[Tuple[str, str]]:
    """(child_id, relationship_id) for every child reference of `item`."""
    if item.kind is ItemKind.BASIC:
        return []
    if item.kind in (ItemKind.SUB_CALENDAR, ItemKind.CHECK_LIST):
        return [(c.child_id, c.relationship_id) for c in item.children]  # type: ignore[attr-defined]
    raise TypeError(f"unhandled item kind: {item.kind!r}")


def find_cycles(items: ItemsLike) -> List[Tuple[str, ...]]:
    """Each cycle reachable through child references, as the id path that closes it."""
    by_id: Dict[str, Item] = {it.id: it for it in _item_list(items)}
    state: Dict[str, int] = {}  # 1 = on stack, 2 = done
    cycles: List[Tuple[str, ...]] = []

    # Iterative DFS; hierarchies may be deeper than the recursion limit.
    for start in sorted(by_id):
        if start in state:
            continue
        state[start] = 1
        path: List[str] = [start]
        stack: List[Iterator[str]] = [iter(child_ids(by_id[start]))]
        while stack:
            descended = False
            for cid in stack[-1]:
                if cid not in by_id:
                    continue
                st = state.get(cid)
                if st == 1:
                    cycles.append(tuple(path[path.index(cid):]) + (cid,))
                elif st is None:
                    state[cid] = 1
                    path.append(cid)
                    stack.append(iter(child_ids(by_id[cid])))
                    descended = True
                    break
            if not descended:
                stack.pop()
                state[path.pop()] = 2
    return cycles


def find_overflowing_children(items: ItemsLike) -> List[Tuple[str, str]]:
    """(container_id, relationship_id) of SubCalendar children that end after their container."""
    by_id: Dict[str, Item] = {it.id: it for it in _item_list(items)}
    out: List[Tuple[str, str]] = []
    for it in by_id.values():
        if it.kind is not ItemKind.SUB_CALENDAR:
            continue
        for c in it.children:  # type: ignore[attr-defined]
            child = by_id.get(c.child_id)
            if child is None:
                continue
            if int(c.start_offset_ms) + int(child.duration) > int(it.duration):
                out.append((it.id, c.relationship_id))
    out.sort()
    return out


def find_child_overlaps(container: SubCalendarItem, duration_of: DurationOf) -> List[Tuple[str, str]]:
    """Pairs of relationship ids whose placements overlap inside `container`."""
    idx: IntervalIndex[str] = IntervalIndex()
    pairs: List[Tuple[str, str]] = []
    for c in sorted(container.children, key=lambda c: (c.start_offset_ms, c.relationship_id)):
        start = int(c.start_offset_ms)
        end = start + int(duration_of(c.child_id))
        for other in idx.find_all_overlapping(start, end):
            pairs.append((other, c.relationship_id))
        idx.insert(start, end, c.relationship_id)
    return pairs


def validate_graph(items: ItemsLike, base_calendar: Optional[BaseCalendar] = ()) -> List[str]:
    errs: List[str] = []
    all_items = _item_list(items)

    by_id: Dict[str, Item] = {}
    for it in all_items:
        if it.id in by_id:
            errs.append(f"duplicate item id: {it.id!r}")
        by_id[it.id] = it

    for it in all_items:
        label = f"item[{it.id}]"
        _require(int(it.duration) >= 0, f"{label}: duration must be >= 0", errs)

        for cid, rel in _child_refs(it):
            child = by_id.get(cid)
            if child is None:
                errs.append(f"{label}: child {cid!r} not found")
                continue
            back = {(p.parent_id, p.relationship_id) for p in child.parents}
            _require(
                (it.id, rel) in back,
                f"{label}: child {cid!r} has no parent reference for relationship {rel!r}",
                errs,
            )

        for p in it.parents:
            parent = by_id.get(p.parent_id)
            if parent is None:
                errs.append(f"{label}: parent {p.parent_id!r} not found")
                continue
            _require(
                (it.id, p.relationship_id) in set(_child_refs(parent)),
                f"{label}: parent {p.parent_id!r} has no child reference for relationship {p.relationship_id!r}",
                errs,
            )

        if it.kind is ItemKind.SUB_CALENDAR:
            sub: SubCalendarItem = it  # type: ignore[assignment]
            for c in sub.children:
                _require(int(c.start_offset_ms) >= 0, f"{label}: child {c.child_id!r} has negative start offset", errs)
            if all(c.child_id in by_id for c in sub.children):
                for a, b in find_child_overlaps(sub, lambda cid: int(by_id[cid].duration)):
                    errs.append(f"{label}: children overlap ({a} / {b})")

    seen_entries: Set[str] = set()
    for e in iter_entries(base_calendar):
        if e.id in seen_entries:
            errs.append(f"duplicate base calendar entry id: {e.id!r}")
        seen_entries.add(e.id)
        _require(e.item_id in by_id, f"entry[{e.id}]: item {e.item_id!r} not found", errs)

    for cyc in find_cycles(all_items):
        errs.append("cycle: " + " -> ".join(cyc))

    return errs


def assert_valid_graph(items: ItemsLike, base_calendar: Optional[BaseCalendar] = ()) -> None:
    errs = validate_graph(items, base_calendar)
    if errs:
        raise GraphValidationError(errs[0])


__all__ = [
    "GraphValidationError",
    "assert_valid_graph",
    "find_child_overlaps",
    "find_cycles",
    "find_overflowing_children",
    "validate_graph",
]
