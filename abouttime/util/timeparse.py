# abouttime/util/timeparse.py
from __future__ import annotations

import datetime as dt
import re
from typing import Optional

# Durations are accepted as ISO-8601 (PT1H30M), "90m", "45s", "2h" or bare milliseconds.
_ISO_RE = re.compile(r"^P(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?)$", re.IGNORECASE)
_UNIT_RE = re.compile(r"^(\d+)\s*(ms|s|m|min|h)$", re.IGNORECASE)

_UNIT_MS = {"ms": 1, "s": 1000, "m": 60_000, "min": 60_000, "h": 3_600_000}


def parse_date_yyyy_mm_dd(s: str) -> dt.date:
    return dt.datetime.strptime(s, "%Y-%m-%d").date()


def parse_duration_ms(s: Optional[str]) -> Optional[int]:
    if s is None:
        return None
    ss = str(s).strip()
    if not ss:
        return None
    if ss.isdigit():
        return int(ss)

    m = _UNIT_RE.match(ss)
    if m:
        return int(m.group(1)) * _UNIT_MS[m.group(2).lower()]

    m = _ISO_RE.match(ss)
    if not m or not any(m.groups()):
        return None
    h = int(m.group(1) or 0)
    mn = int(m.group(2) or 0)
    sec = int(m.group(3) or 0)
    return ((h * 60 + mn) * 60 + sec) * 1000
