from __future__ import annotations

import datetime as dt
import unittest

from abouttime.model import (
    BaseCalendarEntry,
    BasicItem,
    CheckListChild,
    CheckListItem,
    ItemGraph,
    SubCalendarChild,
    SubCalendarItem,
    TimeWindow,
)
from abouttime.unwrap import collect_display_items, collect_window, day_window


def _graph():
    a = BasicItem(id="a", name="A", duration=1000)
    b = BasicItem(id="b", name="B", duration=1000)
    c = BasicItem(id="c", name="C", duration=1000)
    root = SubCalendarItem(
        id="root",
        name="Root",
        duration=3000,
        children=(
            SubCalendarChild("a", 0, "r1"),
            SubCalendarChild("b", 1000, "r2"),
            SubCalendarChild("c", 2000, "r3"),
        ),
    )
    return ItemGraph([root, a, b, c])


class TestUnwrapContract(unittest.TestCase):
    def test_fully_inside_item_is_single_record(self) -> None:
        g = _graph()
        recs = collect_display_items(g["root"], 0, TimeWindow(-100, 5000), g)
        self.assertEqual(len(recs), 1)
        r = recs[0]
        self.assertEqual(r.item.id, "root")
        self.assertTrue(r.fully_inside)
        self.assertEqual((r.clamped_start, r.clamped_end), (0, 3000))

    def test_partial_container_unwraps_intersecting_children(self) -> None:
        g = _graph()
        recs = collect_display_items(g["root"], 0, TimeWindow(500, 2000), g)
        self.assertEqual([r.item.id for r in recs], ["a", "b"])
        a, b = recs
        self.assertFalse(a.fully_inside)
        self.assertEqual((a.clamped_start, a.clamped_end), (500, 1000))
        self.assertEqual((a.original_start, a.original_end), (0, 1000))
        self.assertTrue(b.fully_inside)
        self.assertEqual(b.depth, 1)
        self.assertEqual(b.parent_names, ("Root",))

    def test_fallback_to_clamped_parent_when_no_child_meets_window(self) -> None:
        leaf = BasicItem(id="leaf", name="Leaf", duration=1000)
        sub = SubCalendarItem(id="s", name="S", duration=10000, children=(SubCalendarChild("leaf", 0, "r"),))
        recs = collect_display_items(sub, 0, TimeWindow(5000, 20000), [sub, leaf])
        self.assertEqual(len(recs), 1)
        self.assertEqual(recs[0].item.id, "s")
        self.assertFalse(recs[0].fully_inside)
        self.assertEqual((recs[0].clamped_start, recs[0].clamped_end), (5000, 10000))

    def test_basic_item_straddling_window_is_clamped(self) -> None:
        a = BasicItem(id="a", name="A", duration=1000)
        recs = collect_display_items(a, 0, TimeWindow(500, 2000))
        self.assertEqual(len(recs), 1)
        self.assertTrue(recs[0].partial)
        self.assertEqual(recs[0].clamped_start, 500)

    def test_checklist_children_share_parent_start(self) -> None:
        a = BasicItem(id="a", name="A", duration=500)
        chk = CheckListItem(id="k", name="K", duration=4000, children=(CheckListChild("a", "r"),))
        recs = collect_display_items(chk, 1000, TimeWindow(1200, 3000), [chk, a])
        self.assertEqual([r.item.id for r in recs], ["a"])
        self.assertEqual((recs[0].clamped_start, recs[0].clamped_end), (1200, 1500))

    def test_outside_window_is_empty(self) -> None:
        g = _graph()
        self.assertEqual(collect_display_items(g["root"], 0, TimeWindow(3000, 4000), g), [])
        self.assertEqual(collect_display_items(g["root"], 0, TimeWindow(100, 100), g), [])

    def test_every_intersecting_leaf_is_represented(self) -> None:
        g = _graph()
        win = TimeWindow(900, 2100)
        recs = collect_display_items(g["root"], 0, win, g)
        covered = sum(r.clamped_end - r.clamped_start for r in recs)
        self.assertEqual(covered, win.duration_ms)
        self.assertEqual([r.item.id for r in recs], ["a", "b", "c"])

    def test_collect_window_merges_roots_in_order(self) -> None:
        g = _graph()
        lone = BasicItem(id="lone", name="Lone", duration=1000)
        g = g.with_items(lone)
        cal = [BaseCalendarEntry("e1", "root", 10000), BaseCalendarEntry("e2", "lone", 0)]
        recs = collect_window(g, cal, TimeWindow(0, 11500))
        self.assertEqual([r.item.id for r in recs], ["lone", "a", "b"])

    def test_day_window_spans_one_day(self) -> None:
        w = day_window(dt.date(2026, 3, 2), "UTC")
        self.assertEqual(w.duration_ms, 24 * 3600 * 1000)
        self.assertEqual(w.start_ms, int(dt.datetime(2026, 3, 2, tzinfo=dt.timezone.utc).timestamp() * 1000))


if __name__ == "__main__":
    unittest.main(verbosity=2)
