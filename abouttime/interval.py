# abouttime/interval.py
from __future__ import annotations

from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from typing import Any, Callable, Generic, Hashable, Iterator, List, Optional, Tuple, TypeVar

from .model import (
    CheckListChild,
    CheckListItem,
    Item,
    ItemKind,
    ParentRef,
    SubCalendarChild,
    SubCalendarItem,
    new_relationship_id,
)
from .util.console import obs

T = TypeVar("T", bound=Hashable)

DurationOf = Callable[[str], int]


@dataclass(frozen=True)
class Interval(Generic[T]):
    start: int
    end: int
    token: T


def _overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return max(a_start, b_start) < min(a_end, b_end)


class IntervalIndex(Generic[T]):
    """Sorted-by-start interval set used for admission control inside one container.

    Intervals are half-open. Zero-length intervals are stored but never overlap
    anything, so they never block admission.
    """

    def __init__(self) -> None:
        self._starts: List[int] = []
        self._intervals: List[Interval[T]] = []
        self._max_len = 0

    def __len__(self) -> int:
        return len(self._intervals)

    def __iter__(self) -> Iterator[Interval[T]]:
        return iter(list(self._intervals))

    def insert(self, start: int, end: int, token: T) -> None:
        i = bisect_right(self._starts, start)
        self._starts.insert(i, start)
        self._intervals.insert(i, Interval(start, end, token))
        self._max_len = max(self._max_len, end - start)

    def _candidates(self, start: int, end: int) -> Iterator[Interval[T]]:
        # Anything starting before start - max_len cannot reach start.
        lo = bisect_left(self._starts, start - self._max_len)
        hi = bisect_left(self._starts, end)
        for iv in self._intervals[lo:hi]:
            yield iv

    def overlaps(self, start: int, end: int) -> bool:
        return any(_overlap(start, end, iv.start, iv.end) for iv in self._candidates(start, end))

    def find_all_overlapping(self, start: int, end: int) -> List[T]:
        return [iv.token for iv in self._candidates(start, end) if _overlap(start, end, iv.start, iv.end)]

    def find_containing(self, point: int) -> Optional[T]:
        """Token of the interval holding `point` (start <= point < end), if any."""
        hits = self.find_all_overlapping(point, point + 1)
        return hits[0] if hits else None

    def remove_by_token(self, token: T) -> bool:
        for i, iv in enumerate(self._intervals):
            if iv.token == token:
                del self._intervals[i]
                del self._starts[i]
                self._max_len = max((x.end - x.start for x in self._intervals), default=0)
                return True
        return False

    def schedule_child(self, child: SubCalendarChild, duration_of: DurationOf) -> bool:
        """Admit `child` unless it overlaps an existing interval. Never partially applies."""
        start = int(child.start_offset_ms)
        end = start + int(duration_of(child.child_id))
        if self.overlaps(start, end):
            obs("interval", "schedule.reject", child=child.child_id, start=start, end=end)
            return False
        self.insert(start, end, child.relationship_id)  # type: ignore[arg-type]
        return True

    @classmethod
    def for_container(cls, container: SubCalendarItem, duration_of: DurationOf) -> "IntervalIndex[str]":
        """Index of the container's children keyed by relationship id."""
        idx: IntervalIndex[str] = IntervalIndex()
        for ch in container.children:
            start = int(ch.start_offset_ms)
            idx.insert(start, start + int(duration_of(ch.child_id)), ch.relationship_id)
        return idx


# --- container operations ------------------------------------------------------
# Each returns a new item instance; inputs are never modified.


def _require_sub_calendar(container: Item) -> SubCalendarItem:
    if container.kind is not ItemKind.SUB_CALENDAR:
        raise TypeError(f"can only schedule children into a SubCalendarItem, got {container.kind.value}")
    return container  # type: ignore[return-value]


def schedule_child(
    container: Item,
    child: SubCalendarChild,
    duration_of: DurationOf,
) -> Optional[SubCalendarItem]:
    """Return `container` with `child` added, or None when the slot is taken."""
    sub = _require_sub_calendar(container)
    idx = IntervalIndex.for_container(sub, duration_of)
    if not idx.schedule_child(child, duration_of):
        return None
    children = sorted(sub.children + (child,), key=lambda c: (c.start_offset_ms, c.relationship_id))
    return sub.with_children(children)


def remove_child(
    container: Item,
    *,
    relationship_id: Optional[str] = None,
    child_id: Optional[str] = None,
) -> Item:
    """Drop child references matching `relationship_id` (one placement) or `child_id` (all placements)."""
    if relationship_id is None and child_id is None:
        raise ValueError("remove_child needs relationship_id or child_id")

    def keep(c: Any) -> bool:
        if relationship_id is not None and c.relationship_id == relationship_id:
            return False
        if child_id is not None and c.child_id == child_id:
            return False
        return True

    if container.kind is ItemKind.BASIC:
        return container
    if container.kind is ItemKind.SUB_CALENDAR:
        sub: SubCalendarItem = container  # type: ignore[assignment]
        return sub.with_children(c for c in sub.children if keep(c))
    if container.kind is ItemKind.CHECK_LIST:
        chk: CheckListItem = container  # type: ignore[assignment]
        return chk.with_children(c for c in chk.children if keep(c))
    raise TypeError(f"unhandled item kind: {container.kind!r}")


def add_checklist_child(container: Item, child: CheckListChild) -> CheckListItem:
    if container.kind is not ItemKind.CHECK_LIST:
        raise TypeError(f"expected a CheckListItem, got {container.kind.value}")
    chk: CheckListItem = container  # type: ignore[assignment]
    return chk.with_children(chk.children + (child,))


def set_checklist_complete(container: Item, relationship_id: str, complete: bool = True) -> CheckListItem:
    if container.kind is not ItemKind.CHECK_LIST:
        raise TypeError(f"expected a CheckListItem, got {container.kind.value}")
    chk: CheckListItem = container  # type: ignore[assignment]
    out = []
    found = False
    for c in chk.children:
        if c.relationship_id == relationship_id:
            found = True
            c = CheckListChild(child_id=c.child_id, relationship_id=c.relationship_id, complete=bool(complete))
        out.append(c)
    if not found:
        raise KeyError(relationship_id)
    return chk.with_children(out)


def add_parent(item: Item, parent: ParentRef) -> Item:
    return item.with_parents(item.parents + (parent,))


def remove_parent(
    item: Item,
    *,
    parent_id: Optional[str] = None,
    relationship_id: Optional[str] = None,
) -> Item:
    if parent_id is None and relationship_id is None:
        raise ValueError("remove_parent needs parent_id or relationship_id")
    kept = [
        p
        for p in item.parents
        if not (
            (parent_id is not None and p.parent_id == parent_id)
            or (relationship_id is not None and p.relationship_id == relationship_id)
        )
    ]
    return item.with_parents(kept)


def link_child(
    container: Item,
    child_item: Item,
    start_offset_ms: int,
    duration_of: DurationOf,
    *,
    relationship_id: Optional[str] = None,
) -> Optional[Tuple[SubCalendarItem, Item]]:
    """Schedule `child_item` into `container` and add the matching back-reference.

    Returns (new_container, new_child) or None if the slot overlaps a sibling.
    """
    ref = SubCalendarChild(
        child_id=child_item.id,
        start_offset_ms=int(start_offset_ms),
        relationship_id=relationship_id or new_relationship_id(),
    )
    new_container = schedule_child(container, ref, duration_of)
    if new_container is None:
        return None
    new_child = add_parent(child_item, ParentRef(parent_id=container.id, relationship_id=ref.relationship_id))
    return new_container, new_child


__all__ = [
    "DurationOf",
    "Interval",
    "IntervalIndex",
    "add_checklist_child",
    "add_parent",
    "link_child",
    "remove_child",
    "remove_parent",
    "schedule_child",
    "set_checklist_complete",
]
