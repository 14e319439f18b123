# abouttime/util/tz.py
from __future__ import annotations

import datetime as dt
import re
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):?(\d{2})$")


def normalize_tz_name(name: Optional[str]) -> str:
    """Canonical timezone identifier.

    None / "" / "system" -> "local"; "Z" / "GMT" -> "UTC"; anything else
    (IANA names, fixed offsets like "+02:00") is kept as given.
    """
    if name is None:
        return "local"
    s = str(name).strip()
    if not s:
        return "local"
    low = s.lower()
    if low in {"local", "system", "native"}:
        return "local"
    if low in {"utc", "z", "gmt", "utc0", "utc+0"}:
        return "UTC"
    return s


def resolve_tz(name: Optional[str]) -> dt.tzinfo:
    """Resolve a timezone name into a tzinfo. Raises ValueError when unknown."""
    tz_name = normalize_tz_name(name)

    if tz_name == "UTC":
        return dt.timezone.utc

    if tz_name == "local":
        tz = dt.datetime.now().astimezone().tzinfo
        return tz or dt.timezone.utc

    m = _OFFSET_RE.match(tz_name)
    if m:
        sign_s, hh_s, mm_s = m.groups()
        hh = int(hh_s)
        mm = int(mm_s)
        if hh > 23 or mm > 59:
            raise ValueError(f"Invalid timezone offset: {tz_name!r}")
        sign = 1 if sign_s == "+" else -1
        return dt.timezone(dt.timedelta(minutes=sign * (hh * 60 + mm)))

    try:
        return ZoneInfo(tz_name)
    except Exception as ex:
        raise ValueError(f"Invalid timezone identifier: {tz_name!r}") from ex


def today_date(tz: dt.tzinfo) -> dt.date:
    return dt.datetime.now(tz=tz).date()


def midnight_epoch_ms(d: dt.date, tz: dt.tzinfo) -> int:
    aware = dt.datetime(d.year, d.month, d.day, 0, 0, 0, tzinfo=tz)
    return int(aware.timestamp() * 1000)


def day_bounds_ms(d: dt.date, tz: dt.tzinfo) -> Tuple[int, int]:
    """[midnight, next midnight) of `d` in `tz`; 23h/25h on DST transitions."""
    return midnight_epoch_ms(d, tz), midnight_epoch_ms(d + dt.timedelta(days=1), tz)


def format_ms(ms: int, tz: dt.tzinfo) -> str:
    return dt.datetime.fromtimestamp(int(ms) / 1000.0, tz=tz).strftime("%Y-%m-%d %H:%M:%S")
