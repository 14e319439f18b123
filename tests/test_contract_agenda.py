from __future__ import annotations

import unittest

from abouttime.agenda import (
    GAP_TYPES,
    ScheduleGap,
    active_entries,
    execution_summary,
    find_schedule_gaps,
    last_active,
    next_checklist_child,
    recent,
    unscheduled_by_priority,
    upcoming,
)
from abouttime.model import (
    BaseCalendarEntry,
    BasicItem,
    CheckListChild,
    CheckListItem,
    ConflictMember,
    ItemGraph,
    TimeWindow,
)

M = 60_000


def _day():
    items = ItemGraph(
        [
            BasicItem(id="a", name="A", duration=30 * M),
            BasicItem(id="b", name="B", duration=60 * M),
            BasicItem(id="c", name="C", duration=15 * M),
        ]
    )
    cal = [
        BaseCalendarEntry("e-a", "a", 60 * M),
        BaseCalendarEntry("e-b", "b", 120 * M),
        BaseCalendarEntry("e-c", "c", 150 * M),
    ]
    return items, cal


class TestAgendaContract(unittest.TestCase):
    def test_upcoming_and_recent(self) -> None:
        items, cal = _day()
        self.assertEqual([o.item.id for o in upcoming(items, cal, 100 * M)], ["b", "c"])
        self.assertEqual([o.item.id for o in upcoming(items, cal, 100 * M, limit=1)], ["b"])
        self.assertEqual([o.item.id for o in recent(items, cal, 200 * M)], ["b", "c", "a"])
        self.assertEqual(last_active(items, cal, 200 * M).id, "b")  # type: ignore[union-attr]
        self.assertIsNone(last_active(items, cal, 0))
        self.assertEqual([o.entry.id for o in active_entries(items, cal, 155 * M)], ["e-b", "e-c"])

    def test_gaps_classified(self) -> None:
        items, cal = _day()
        gaps = find_schedule_gaps(items, cal, TimeWindow(0, 240 * M))
        self.assertEqual(
            [(g.type, g.start // M, g.end // M) for g in gaps],
            [("unscheduled", 0, 60), ("break", 90, 120), ("end-of-day", 180, 240)],
        )

    def test_gap_types_are_closed(self) -> None:
        items, cal = _day()
        gaps = find_schedule_gaps(items, cal, TimeWindow(0, 240 * M))
        self.assertTrue(all(g.type in GAP_TYPES for g in gaps))
        with self.assertRaises(ValueError):
            ScheduleGap(0, 1, "nap")

    def test_empty_window_is_one_unscheduled_gap(self) -> None:
        items, cal = _day()
        gaps = find_schedule_gaps(items, cal, TimeWindow(300 * M, 360 * M))
        self.assertEqual([(g.type, g.duration) for g in gaps], [("unscheduled", 60 * M)])

    def test_summary(self) -> None:
        items, cal = _day()
        s = execution_summary(items, cal, 100 * M)
        self.assertEqual(s, {"total_scheduled_ms": 105 * M, "completed_ms": 30 * M, "entries": 3})

    def test_next_checklist_child(self) -> None:
        a = BasicItem(id="a", name="A", duration=1)
        b = BasicItem(id="b", name="B", duration=1)
        chk = CheckListItem(
            id="k",
            name="K",
            duration=10,
            children=(CheckListChild("a", "r1", complete=True), CheckListChild("b", "r2")),
        )
        self.assertEqual(next_checklist_child(chk, [chk, a, b]).id, "b")  # type: ignore[union-attr]
        done = chk.with_children([CheckListChild("a", "r1", True), CheckListChild("b", "r2", True)])
        self.assertEqual(next_checklist_child(done, [done, a, b]).id, "b")  # type: ignore[union-attr]
        self.assertIsNone(next_checklist_child(a, [a]))

    def test_unscheduled_by_priority(self) -> None:
        members = [
            ConflictMember("x", 0, 100, priority=2),
            ConflictMember("y", 50, 200, priority=1),
            ConflictMember("z", 300, 400, priority=0),
        ]
        out = unscheduled_by_priority(members, TimeWindow(0, 1000))
        self.assertEqual(out, {"unscheduled_p2": 900, "unscheduled_p1": 800, "unscheduled_p0": 700})


if __name__ == "__main__":
    unittest.main(verbosity=2)
