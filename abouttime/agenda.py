# abouttime/agenda.py
"""Schedule analysis over base calendar entries: upcoming/recent roots, gaps, busy summaries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from .model import (
    BaseCalendar,
    BaseCalendarEntry,
    CheckListItem,
    ConflictMember,
    Item,
    ItemKind,
    Items,
    TimeWindow,
    as_graph,
    iter_entries,
)

GAP_TYPES = ("unscheduled", "break", "end-of-day")


@dataclass(frozen=True)
class ScheduledOccurrence:
    item: Item
    entry: BaseCalendarEntry
    start: int
    end: int

    def is_active(self, now: int) -> bool:
        return self.start <= now < self.end

    def is_past(self, now: int) -> bool:
        return self.end <= now

    def is_future(self, now: int) -> bool:
        return self.start > now


@dataclass(frozen=True)
class ScheduleGap:
    start: int
    end: int
    type: str

    def __post_init__(self) -> None:
        if self.type not in GAP_TYPES:
            raise ValueError(f"unknown gap type: {self.type!r}")

    @property
    def duration(self) -> int:
        return self.end - self.start


def sorted_entries(base_calendar: Optional[BaseCalendar]) -> List[BaseCalendarEntry]:
    return sorted(iter_entries(base_calendar), key=lambda e: (int(e.start_time), e.id))


def occurrences(items: Items, base_calendar: Optional[BaseCalendar]) -> List[ScheduledOccurrence]:
    """Every base calendar entry resolved to its root item, in start order."""
    graph = as_graph(items)
    out: List[ScheduledOccurrence] = []
    for e in sorted_entries(base_calendar):
        it = graph.require(e.item_id, f"base calendar entry {e.id}")
        start = int(e.start_time)
        out.append(ScheduledOccurrence(item=it, entry=e, start=start, end=start + max(0, int(it.duration))))
    return out


def active_entries(items: Items, base_calendar: Optional[BaseCalendar], now: int) -> List[ScheduledOccurrence]:
    return [o for o in occurrences(items, base_calendar) if o.is_active(now)]


def upcoming(
    items: Items,
    base_calendar: Optional[BaseCalendar],
    now: int,
    limit: int = 10,
) -> List[ScheduledOccurrence]:
    """Roots starting after `now`, soonest first."""
    fut = [o for o in occurrences(items, base_calendar) if o.is_future(now)]
    return fut[: max(0, int(limit))]


def recent(
    items: Items,
    base_calendar: Optional[BaseCalendar],
    now: int,
    limit: int = 5,
) -> List[ScheduledOccurrence]:
    """Roots already finished at `now`, most recently ended first."""
    past = [o for o in occurrences(items, base_calendar) if o.is_past(now)]
    past.sort(key=lambda o: (-o.end, -o.start, o.entry.id))
    return past[: max(0, int(limit))]


def last_active(items: Items, base_calendar: Optional[BaseCalendar], now: int) -> Optional[Item]:
    hits = recent(items, base_calendar, now, limit=1)
    return hits[0].item if hits else None


def find_schedule_gaps(
    items: Items,
    base_calendar: Optional[BaseCalendar],
    window: TimeWindow,
) -> List[ScheduleGap]:
    """Free stretches of `window` not covered by any scheduled root.

    Leading free time is `unscheduled`, free time between roots is `break`,
    trailing free time is `end-of-day`. A window with nothing scheduled is a
    single `unscheduled` gap. Overlapping roots are merged first.
    """
    occ = [o for o in occurrences(items, base_calendar) if window.intersects(o.start, o.end)]
    if not occ:
        if window.duration_ms <= 0:
            return []
        return [ScheduleGap(window.start_ms, window.end_ms, "unscheduled")]

    gaps: List[ScheduleGap] = []
    first_start = occ[0].start
    if first_start > window.start_ms:
        gaps.append(ScheduleGap(window.start_ms, first_start, "unscheduled"))

    busy_end = occ[0].end
    for o in occ[1:]:
        if o.start > busy_end:
            gaps.append(ScheduleGap(busy_end, o.start, "break"))
        busy_end = max(busy_end, o.end)

    if busy_end < window.end_ms:
        gaps.append(ScheduleGap(busy_end, window.end_ms, "end-of-day"))
    return gaps


def execution_summary(items: Items, base_calendar: Optional[BaseCalendar], now: int) -> Dict[str, int]:
    occ = occurrences(items, base_calendar)
    return {
        "total_scheduled_ms": sum(o.end - o.start for o in occ),
        "completed_ms": sum(o.end - o.start for o in occ if o.is_past(now)),
        "entries": len(occ),
    }


def next_checklist_child(item: Item, items: Items) -> Optional[Item]:
    """First incomplete checklist child, else the last child. None for other kinds or empty lists."""
    if item.kind is not ItemKind.CHECK_LIST:
        return None
    chk: CheckListItem = item  # type: ignore[assignment]
    if not chk.children:
        return None
    graph = as_graph(items)
    for c in chk.children:
        if not c.complete:
            return graph.require(c.child_id, f"checklist child of {chk.id}")
    return graph.require(chk.children[-1].child_id, f"checklist child of {chk.id}")


def unscheduled_by_priority(
    members: Iterable[ConflictMember],
    window: TimeWindow,
    levels: Sequence[int] = (2, 1, 0),
) -> Dict[str, int]:
    """Window time not covered by members of priority >= level, per level."""
    busy = list(members)

    def covered_ms(min_level: int) -> int:
        spans = sorted(window.clamp(m.start, m.end) for m in busy if int(m.priority) >= min_level)
        total = 0
        cur_s: Optional[int] = None
        cur_e = 0
        for s, e in spans:
            if s >= e:
                continue
            if cur_s is None:
                cur_s, cur_e = s, e
            elif s <= cur_e:
                cur_e = max(cur_e, e)
            else:
                total += cur_e - cur_s
                cur_s, cur_e = s, e
        if cur_s is not None:
            total += cur_e - cur_s
        return total

    return {f"unscheduled_p{lvl}": window.duration_ms - covered_ms(lvl) for lvl in levels}


__all__ = [
    "GAP_TYPES",
    "ScheduleGap",
    "ScheduledOccurrence",
    "active_entries",
    "execution_summary",
    "find_schedule_gaps",
    "last_active",
    "next_checklist_child",
    "occurrences",
    "recent",
    "sorted_entries",
    "unscheduled_by_priority",
    "upcoming",
]
