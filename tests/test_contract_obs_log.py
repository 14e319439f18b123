from __future__ import annotations

import io
import os
import unittest
from contextlib import redirect_stderr
from unittest.mock import patch

from abouttime.chain import resolve_task_chain
from abouttime.model import BaseCalendarEntry, BasicItem
from abouttime.util.console import env_int, eprint, obs


def _contested():
    items = [BasicItem(id="a", name="A", duration=100, priority=1), BasicItem(id="b", name="B", duration=100)]
    cal = [BaseCalendarEntry("e-a", "a", 0), BaseCalendarEntry("e-b", "b", 0)]
    return items, cal


class TestObsLogContract(unittest.TestCase):
    def test_eprint_writes_to_stderr(self) -> None:
        buf = io.StringIO()
        with redirect_stderr(buf):
            eprint("[abouttime.test]", "hello")
        self.assertEqual(buf.getvalue(), "[abouttime.test] hello\n")

    def test_obs_line_format_when_enabled(self) -> None:
        with patch.dict(os.environ, {"ABOUTTIME_OBS_LOG": "1"}, clear=False), patch("abouttime.util.console.eprint") as ep:
            obs("chain", "resolve.slow", ms="12.50", depth=2)
        ep.assert_called_once_with("[abouttime.chain] resolve.slow depth=2 ms=12.50")

    def test_contested_resolve_logs_when_enabled(self) -> None:
        items, cal = _contested()
        with patch.dict(os.environ, {"ABOUTTIME_OBS_LOG": "1"}, clear=False), patch("abouttime.util.console.eprint") as ep:
            chain = resolve_task_chain(items, 50, cal)
        self.assertEqual(chain.deepest.id, "a")  # type: ignore[union-attr]
        combined = "\n".join(str(c.args[0]) for c in ep.call_args_list if c.args)
        self.assertIn("[abouttime.chain] resolve.contested active=2 chosen=a", combined)

    def test_no_lines_when_disabled(self) -> None:
        items, cal = _contested()
        with patch.dict(os.environ, {}, clear=True), patch("abouttime.util.console.eprint") as ep:
            resolve_task_chain(items, 50, cal)
            obs("chain", "resolve.slow", ms="1")
        self.assertFalse(ep.called)

    def test_env_int_ignores_bad_values(self) -> None:
        with patch.dict(os.environ, {"ABOUTTIME_X": "nope"}, clear=False):
            self.assertEqual(env_int("ABOUTTIME_X", 7), 7)
        with patch.dict(os.environ, {"ABOUTTIME_X": "-3"}, clear=False):
            self.assertEqual(env_int("ABOUTTIME_X", 7), 7)
        with patch.dict(os.environ, {"ABOUTTIME_X": "42"}, clear=False):
            self.assertEqual(env_int("ABOUTTIME_X", 7), 42)


if __name__ == "__main__":
    unittest.main(verbosity=2)
