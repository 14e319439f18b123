# abouttime/unwrap.py
"""Flatten item hierarchies for a bounded display window.

Policy per root:
  - an item fully inside the window is shown as one record, children hidden;
  - otherwise its children that intersect the window are unwrapped recursively;
  - if that yields nothing, the item itself is shown clamped and marked partial.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from .model import (
    BaseCalendar,
    CheckListItem,
    Item,
    ItemGraph,
    ItemKind,
    Items,
    SubCalendarItem,
    TimeWindow,
    as_graph,
    iter_entries,
)
from .util.tz import day_bounds_ms, resolve_tz


@dataclass(frozen=True)
class FlatDisplayItem:
    item: Item
    clamped_start: int
    clamped_end: int
    depth: int
    fully_inside: bool
    original_start: int
    original_end: int
    parent_names: Tuple[str, ...] = ()

    @property
    def partial(self) -> bool:
        return not self.fully_inside


def display_order_key(rec: FlatDisplayItem) -> Tuple[int, int, str]:
    return (rec.clamped_start, rec.depth, rec.item.id)


def day_window(d: dt.date, tz: Optional[str] = "local") -> TimeWindow:
    start, end = day_bounds_ms(d, resolve_tz(tz))
    return TimeWindow(start, end)


def _record(
    item: Item,
    start: int,
    end: int,
    window: TimeWindow,
    depth: int,
    parent_names: Tuple[str, ...],
    fully_inside: bool,
) -> FlatDisplayItem:
    cs, ce = window.clamp(start, end)
    return FlatDisplayItem(
        item=item,
        clamped_start=cs,
        clamped_end=ce,
        depth=depth,
        fully_inside=fully_inside,
        original_start=start,
        original_end=end,
        parent_names=parent_names,
    )


def _child_placements(item: Item, absolute_start: int, graph: ItemGraph) -> Iterator[Tuple[Item, int]]:
    if item.kind is ItemKind.BASIC:
        return
    if item.kind is ItemKind.SUB_CALENDAR:
        sub: SubCalendarItem = item  # type: ignore[assignment]
        for ch in sub.children:
            child = graph.require(ch.child_id, f"child of {sub.id}")
            yield child, absolute_start + int(ch.start_offset_ms)
        return
    if item.kind is ItemKind.CHECK_LIST:
        chk: CheckListItem = item  # type: ignore[assignment]
        for ch in chk.children:
            yield graph.require(ch.child_id, f"child of {chk.id}"), absolute_start
        return
    raise TypeError(f"unhandled item kind: {item.kind!r}")


def _collect(
    item: Item,
    absolute_start: int,
    window: TimeWindow,
    graph: ItemGraph,
    depth: int,
    parent_names: Tuple[str, ...],
    path: Tuple[str, ...],
) -> List[FlatDisplayItem]:
    absolute_end = absolute_start + max(0, int(item.duration or 0))
    if not window.intersects(absolute_start, absolute_end):
        return []

    if window.contains(absolute_start, absolute_end):
        return [_record(item, absolute_start, absolute_end, window, depth, parent_names, True)]

    if item.id in path:
        # Cyclic graphs are not unwrapped further.
        return [_record(item, absolute_start, absolute_end, window, depth, parent_names, False)]

    out: List[FlatDisplayItem] = []
    names = parent_names + (item.name,)
    for child, child_start in _child_placements(item, absolute_start, graph):
        child_end = child_start + max(0, int(child.duration or 0))
        if window.intersects(child_start, child_end):
            out.extend(_collect(child, child_start, window, graph, depth + 1, names, path + (item.id,)))

    if out:
        return out
    return [_record(item, absolute_start, absolute_end, window, depth, parent_names, False)]


def collect_display_items(
    item: Item,
    absolute_start: int,
    window: TimeWindow,
    items: Optional[Items] = None,
) -> List[FlatDisplayItem]:
    """Display records for one scheduled item within `window`, in display order.

    `items` resolves child ids; it may be omitted for items without children.
    """
    graph = as_graph(items)
    recs = _collect(item, int(absolute_start), window, graph, 0, (), ())
    recs.sort(key=display_order_key)
    return recs


def collect_window(
    items: Items,
    base_calendar: Optional[BaseCalendar],
    window: TimeWindow,
) -> List[FlatDisplayItem]:
    """Display records for every base calendar entry whose root meets `window`."""
    graph = as_graph(items)
    out: List[FlatDisplayItem] = []
    for entry in iter_entries(base_calendar):
        root = graph.require(entry.item_id, f"base calendar entry {entry.id}")
        start = int(entry.start_time)
        if not root.duration or not window.intersects(start, start + int(root.duration)):
            continue
        out.extend(_collect(root, start, window, graph, 0, (), ()))
    out.sort(key=display_order_key)
    return out


__all__ = [
    "FlatDisplayItem",
    "collect_display_items",
    "collect_window",
    "day_window",
    "display_order_key",
]
