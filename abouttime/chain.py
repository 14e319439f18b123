# abouttime/chain.py
"""Task-chain resolution: which item is executing at a given instant.

A chain runs from a scheduled root (anchored by a base calendar entry) down to
the deepest item whose interval holds `now`. Only SubCalendarItem children
carry start offsets, so only SubCalendarItem is descended by time; BasicItem and
CheckListItem always end the chain.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .interval import DurationOf, IntervalIndex
from .model import (
    BaseCalendar,
    BaseCalendarEntry,
    CycleError,
    Item,
    ItemGraph,
    ItemKind,
    Items,
    MissingItemError,
    SubCalendarChild,
    SubCalendarItem,
    as_graph,
    item_priority,
    iter_entries,
)
from .util.console import env_int, obs

SLOW_RESOLVE_MS = 10.0


@dataclass(frozen=True)
class ChainLink:
    item: Item
    start_ms: int  # absolute
    relationship_id: Optional[str] = None  # None for the root


@dataclass(frozen=True)
class TaskChain:
    entry: Optional[BaseCalendarEntry]
    links: Tuple[ChainLink, ...] = ()

    @property
    def items(self) -> List[Item]:
        return [ln.item for ln in self.links]

    @property
    def deepest(self) -> Optional[Item]:
        return self.links[-1].item if self.links else None

    def __len__(self) -> int:
        return len(self.links)

    def start_of(self, item_id: str) -> int:
        for ln in self.links:
            if ln.item.id == item_id:
                return ln.start_ms
        raise ValueError(f"item {item_id!r} is not part of the chain")


def duration_lookup(graph: ItemGraph) -> DurationOf:
    def duration_of(item_id: str) -> int:
        return int(graph.require(item_id, "child reference").duration)

    return duration_of


def is_active_at(duration: int, start_ms: int, now: int) -> bool:
    if not duration or duration <= 0:
        return False
    return start_ms <= now < start_ms + duration


def _selection_key(entry: BaseCalendarEntry, root: Item) -> Tuple[int, int, str, str]:
    return (-item_priority(root), int(entry.start_time), root.id, entry.id)


def active_roots(
    items: Items,
    now: int,
    base_calendar: Optional[BaseCalendar],
) -> List[Tuple[BaseCalendarEntry, Item]]:
    """Entries whose root is active at `now`, best candidate first.

    Order: priority desc, start asc, item id, entry id.
    """
    graph = as_graph(items)
    out: List[Tuple[BaseCalendarEntry, Item]] = []
    for entry in iter_entries(base_calendar):
        root = graph.require(entry.item_id, f"base calendar entry {entry.id}")
        if is_active_at(root.duration, int(entry.start_time), now):
            out.append((entry, root))
    out.sort(key=lambda pair: _selection_key(pair[0], pair[1]))
    return out


def find_active_child(
    items: Items,
    item: Item,
    now: int,
    start_ms: int,
) -> Optional[Tuple[SubCalendarChild, Item]]:
    """Child reference and item active at `now` inside `item` anchored at `start_ms`."""
    if item.kind is ItemKind.BASIC:
        return None
    if item.kind is ItemKind.CHECK_LIST:
        return None
    if item.kind is ItemKind.SUB_CALENDAR:
        sub: SubCalendarItem = item  # type: ignore[assignment]
        if not sub.children:
            return None
        graph = as_graph(items)
        idx = IntervalIndex.for_container(sub, duration_lookup(graph))
        rel = idx.find_containing(now - start_ms)
        if rel is None:
            return None
        for ch in sub.children:
            if ch.relationship_id == rel:
                return ch, graph.require(ch.child_id, f"child of {sub.id}")
        return None
    raise TypeError(f"unhandled item kind: {item.kind!r}")


def resolve_task_chain(
    items: Items,
    now: int,
    base_calendar: Optional[BaseCalendar],
) -> TaskChain:
    t0 = time.perf_counter()
    graph = as_graph(items)

    candidates = active_roots(graph, now, base_calendar)
    if not candidates:
        return TaskChain(entry=None)

    entry, root = candidates[0]
    links = [ChainLink(item=root, start_ms=int(entry.start_time))]
    seen = {root.id}

    cur, cur_start = root, int(entry.start_time)
    while True:
        hit = find_active_child(graph, cur, now, cur_start)
        if hit is None:
            break
        ref, child = hit
        if child.id in seen:
            raise CycleError(tuple(ln.item.id for ln in links) + (child.id,))
        seen.add(child.id)
        cur_start += int(ref.start_offset_ms)
        links.append(ChainLink(item=child, start_ms=cur_start, relationship_id=ref.relationship_id))
        cur = child

    elapsed_ms = (time.perf_counter() - t0) * 1000.0
    if elapsed_ms > SLOW_RESOLVE_MS:
        obs("chain", "resolve.slow", ms=f"{elapsed_ms:.2f}", depth=len(links), items=len(graph))
    if len(candidates) > 1:
        obs("chain", "resolve.contested", chosen=root.id, active=len(candidates))

    return TaskChain(entry=entry, links=tuple(links))


def get_current_task_chain(
    items: Items,
    now: int,
    base_calendar: Optional[BaseCalendar],
) -> List[Item]:
    """Items from the chosen scheduled root down to the deepest active descendant.

    Empty when no base calendar entry is active at `now`. Raises
    MissingItemError when an entry or child points at an unknown id.
    """
    return resolve_task_chain(items, now, base_calendar).items


def get_deepest_item(chain: Sequence[Item]) -> Optional[Item]:
    return chain[-1] if chain else None


def is_deepest_executable_task(items: Items, item: Item, now: int, start_ms: int = 0) -> bool:
    """True when no child of `item` (starting at absolute `start_ms`) is active at `now`."""
    return find_active_child(items, item, now, start_ms) is None


def get_task_progress(item: Item, now: int, item_start: int = 0) -> float:
    """Percent of `item` elapsed at `now`, clamped to [0, 100]."""
    if not item.duration or item.duration <= 0:
        return 0.0
    pct = (now - item_start) / float(item.duration) * 100.0
    return max(0.0, min(100.0, pct))


def _root_start(root: Item, base_calendar: Optional[BaseCalendar], now: Optional[int]) -> int:
    starts = sorted(int(e.start_time) for e in iter_entries(base_calendar) if e.item_id == root.id)
    if not starts:
        raise MissingItemError(root.id, "no base calendar entry for chain root")
    if now is not None:
        for s in starts:
            if is_active_at(root.duration, s, now):
                return s
    return starts[0]


def _pick_child_ref(
    parent: SubCalendarItem,
    child: Item,
    parent_start: int,
    now: Optional[int],
) -> Optional[SubCalendarChild]:
    refs = sorted(
        (c for c in parent.children if c.child_id == child.id),
        key=lambda c: c.start_offset_ms,
    )
    if not refs:
        return None
    if now is not None:
        for ref in refs:
            if is_active_at(child.duration, parent_start + int(ref.start_offset_ms), now):
                return ref
    return refs[0]


def get_task_start_time(
    chain: Union[TaskChain, Sequence[Item]],
    item: Item,
    base_calendar: Optional[BaseCalendar],
    now: Optional[int] = None,
) -> int:
    """Absolute start of `item`: the root's calendar start plus every offset down to it.

    When several entries anchor the root (or a child is placed twice under the
    same parent) the placement active at `now` wins; without `now` the earliest
    one is used.
    """
    if isinstance(chain, TaskChain):
        return chain.start_of(item.id)

    seq = list(chain)
    if not any(it.id == item.id for it in seq):
        raise ValueError(f"item {item.id!r} is not part of the chain")

    start = _root_start(seq[0], base_calendar, now)
    for parent, child in zip(seq, seq[1:]):
        if parent.id == item.id:
            break
        if parent.kind is ItemKind.SUB_CALENDAR:
            ref = _pick_child_ref(parent, child, start, now)  # type: ignore[arg-type]
            if ref is not None:
                start += int(ref.start_offset_ms)
        elif parent.kind is ItemKind.CHECK_LIST:
            pass  # checklist children share the parent's start
        elif parent.kind is ItemKind.BASIC:
            break
        else:
            raise TypeError(f"unhandled item kind: {parent.kind!r}")
    return start


def _calendar_key(base_calendar: Optional[BaseCalendar]) -> Tuple[Tuple[str, str, int], ...]:
    return tuple(sorted((e.id, e.item_id, int(e.start_time)) for e in iter_entries(base_calendar)))


def stable_span(
    items: Items,
    chain: TaskChain,
    now: int,
    base_calendar: Optional[BaseCalendar],
) -> Tuple[Optional[int], Optional[int]]:
    """Half-open [lo, hi) around `now` over which `chain` stays the resolved chain.

    Bounds are the nearest root or child boundary on each side; None means
    unbounded. Root boundaries come from every entry, child boundaries from
    every SubCalendarItem link in the chain.
    """
    graph = as_graph(items)
    points: List[int] = []
    for entry in iter_entries(base_calendar):
        d = int(graph.require(entry.item_id, f"base calendar entry {entry.id}").duration)
        if d > 0:
            points += [int(entry.start_time), int(entry.start_time) + d]
    for ln in chain.links:
        if ln.item.kind is not ItemKind.SUB_CALENDAR:
            continue
        for ch in ln.item.children:  # type: ignore[attr-defined]
            d = int(graph.require(ch.child_id, f"child of {ln.item.id}").duration)
            if d > 0:
                s = ln.start_ms + int(ch.start_offset_ms)
                points += [s, s + d]
    lo = max((p for p in points if p <= now), default=None)
    hi = min((p for p in points if p > now), default=None)
    return lo, hi


def _in_span(span: Tuple[Optional[int], Optional[int]], now: int) -> bool:
    lo, hi = span
    return (lo is None or lo <= now) and (hi is None or now < hi)


class TaskChainCache:
    """Memoizes get_current_task_chain per (graph version, calendar, time bucket).

    Each cached chain carries its stable span; a lookup whose `now` falls
    outside it is a miss, so a cached result always equals a fresh resolve.
    Passing a different ItemGraph object resets the cache.
    """

    def __init__(self, bucket_ms: Optional[int] = None, max_entries: int = 256) -> None:
        self.bucket_ms = int(bucket_ms) if bucket_ms else env_int("ABOUTTIME_CHAIN_BUCKET_MS", 1000)
        self.max_entries = max(1, int(max_entries))
        self._graph: Optional[ItemGraph] = None
        self._cache: "OrderedDict[Tuple[object, ...], Tuple[Tuple[Optional[int], Optional[int]], List[Item]]]" = (
            OrderedDict()
        )
        self.hits = 0
        self.misses = 0

    def clear(self) -> None:
        self._cache.clear()
        self._graph = None

    def stats(self) -> Dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "size": len(self._cache)}

    def get(self, items: ItemGraph, now: int, base_calendar: Optional[BaseCalendar]) -> List[Item]:
        if items is not self._graph:
            self._cache.clear()
            self._graph = items
        key = (items.version, _calendar_key(base_calendar), int(now) // self.bucket_ms)
        hit = self._cache.get(key)
        if hit is not None and _in_span(hit[0], now):
            self.hits += 1
            self._cache.move_to_end(key)
            return list(hit[1])
        self.misses += 1
        resolved = resolve_task_chain(items, now, base_calendar)
        chain = resolved.items
        self._cache[key] = (stable_span(items, resolved, now, base_calendar), chain)
        self._cache.move_to_end(key)
        while len(self._cache) > self.max_entries:
            self._cache.popitem(last=False)
        return list(chain)


__all__ = [
    "ChainLink",
    "TaskChain",
    "TaskChainCache",
    "active_roots",
    "duration_lookup",
    "find_active_child",
    "get_current_task_chain",
    "get_deepest_item",
    "get_task_progress",
    "get_task_start_time",
    "is_active_at",
    "is_deepest_executable_task",
    "resolve_task_chain",
    "stable_span",
]
