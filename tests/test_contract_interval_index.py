from __future__ import annotations

import random
import unittest

from abouttime.interval import IntervalIndex
from abouttime.model import SubCalendarChild


class TestIntervalIndexContract(unittest.TestCase):
    def test_half_open_neighbours_do_not_overlap(self) -> None:
        idx: IntervalIndex[str] = IntervalIndex()
        idx.insert(0, 10, "a")
        self.assertFalse(idx.overlaps(10, 20))
        self.assertFalse(idx.overlaps(-5, 0))
        self.assertTrue(idx.overlaps(9, 11))
        self.assertTrue(idx.overlaps(-5, 1))

    def test_zero_length_intervals_never_overlap(self) -> None:
        idx: IntervalIndex[str] = IntervalIndex()
        idx.insert(0, 10, "a")
        self.assertFalse(idx.overlaps(5, 5))
        idx.insert(20, 20, "z")
        self.assertFalse(idx.overlaps(15, 25))

    def test_find_all_overlapping_returns_tokens(self) -> None:
        idx: IntervalIndex[str] = IntervalIndex()
        idx.insert(0, 100, "long")
        idx.insert(10, 20, "b")
        idx.insert(30, 40, "c")
        idx.insert(200, 210, "far")
        hits = idx.find_all_overlapping(15, 35)
        self.assertEqual(sorted(hits), ["b", "c", "long"])
        self.assertEqual(idx.find_all_overlapping(100, 200), [])

    def test_long_interval_found_past_max_len_window(self) -> None:
        idx: IntervalIndex[str] = IntervalIndex()
        idx.insert(0, 1000, "long")
        idx.insert(500, 510, "short")
        self.assertEqual(idx.find_all_overlapping(900, 901), ["long"])

    def test_remove_by_token(self) -> None:
        idx: IntervalIndex[str] = IntervalIndex()
        idx.insert(0, 10, "a")
        idx.insert(20, 30, "b")
        self.assertTrue(idx.remove_by_token("a"))
        self.assertFalse(idx.remove_by_token("a"))
        self.assertEqual(len(idx), 1)
        self.assertFalse(idx.overlaps(0, 10))
        self.assertTrue(idx.overlaps(25, 26))

    def test_find_containing(self) -> None:
        idx: IntervalIndex[str] = IntervalIndex()
        idx.insert(0, 5000, "c1")
        idx.insert(5000, 10000, "c2")
        self.assertEqual(idx.find_containing(0), "c1")
        self.assertEqual(idx.find_containing(4999), "c1")
        self.assertEqual(idx.find_containing(5000), "c2")
        self.assertIsNone(idx.find_containing(10000))

    def test_schedule_child_rejects_overlap_without_mutation(self) -> None:
        durations = {"a": 60, "b": 60}
        idx: IntervalIndex[str] = IntervalIndex()
        ok = idx.schedule_child(SubCalendarChild("a", 0, relationship_id="r1"), durations.__getitem__)
        self.assertTrue(ok)
        rejected = idx.schedule_child(SubCalendarChild("b", 30, relationship_id="r2"), durations.__getitem__)
        self.assertFalse(rejected)
        self.assertEqual(len(idx), 1)
        self.assertEqual([iv.token for iv in idx], ["r1"])
        ok2 = idx.schedule_child(SubCalendarChild("b", 60, relationship_id="r3"), durations.__getitem__)
        self.assertTrue(ok2)

    def test_accepted_intervals_stay_pairwise_disjoint(self) -> None:
        rng = random.Random(7)
        idx: IntervalIndex[int] = IntervalIndex()
        accepted = []
        for i in range(300):
            s = rng.randint(0, 5000)
            e = s + rng.randint(1, 200)
            if not idx.overlaps(s, e):
                idx.insert(s, e, i)
                accepted.append((s, e))
        accepted.sort()
        for (s1, e1), (s2, e2) in zip(accepted, accepted[1:]):
            self.assertLessEqual(e1, s2)
        self.assertEqual(len(idx), len(accepted))


if __name__ == "__main__":
    unittest.main(verbosity=2)
