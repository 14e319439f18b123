from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from typing import Any, Dict, List, Optional

import orjson

from .agenda import find_schedule_gaps
from .chain import get_task_progress, resolve_task_chain
from .client import ConflictServiceClient, ConflictServiceError
from .codec import Payload, PayloadError, conflict_member_to_json, load_payload
from .conflicts import live_groups
from .model import IntegrityError
from .unwrap import collect_window, day_window
from .util.timeparse import parse_date_yyyy_mm_dd, parse_duration_ms
from .util.tz import format_ms, normalize_tz_name, resolve_tz, today_date
from .validate import validate_graph

log = logging.getLogger("abouttime")


class UsageError(Exception):
    """Bad CLI input; reported on stderr with exit code 2."""


def _die(msg: str, rc: int = 2) -> int:
    print(f"[abouttime] ERROR: {msg}", file=sys.stderr)
    return rc


def _now_ms() -> int:
    return int(time.time() * 1000)


def _emit_json(obj: Any) -> None:
    sys.stdout.write(orjson.dumps(obj, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS).decode("utf-8") + "\n")


def _load(path: str) -> Payload:
    if not os.path.exists(path):
        raise UsageError(f"Missing payload file: {path}")
    try:
        return load_payload(path)
    except PayloadError as e:
        raise UsageError(f"Failed to load payload: {path} ({e})") from e


def _tz(name: str):
    try:
        return resolve_tz(normalize_tz_name(name))
    except ValueError as e:
        raise UsageError(f"Invalid --tz value: {e}") from e


def _day(date_s: Optional[str], tz) -> Any:
    if not date_s:
        return today_date(tz)
    try:
        return parse_date_yyyy_mm_dd(date_s)
    except ValueError as e:
        raise UsageError(f"Invalid --date value: {date_s!r}") from e


# --- subcommands ---------------------------------------------------------------


def cmd_chain(ns: argparse.Namespace) -> int:
    payload = _load(ns.in_json)
    now = ns.now if ns.now is not None else _now_ms()
    chain = resolve_task_chain(payload.graph, now, payload.calendar)

    rows: List[Dict[str, Any]] = []
    for depth, ln in enumerate(chain.links):
        rows.append(
            {
                "depth": depth,
                "id": ln.item.id,
                "name": ln.item.name,
                "type": ln.item.kind.value,
                "start": ln.start_ms,
                "end": ln.start_ms + int(ln.item.duration),
                "progress": round(get_task_progress(ln.item, now, ln.start_ms), 2),
            }
        )

    if ns.json:
        _emit_json({"now": now, "entry": chain.entry.id if chain.entry else None, "chain": rows})
        return 0
    if not rows:
        print("(nothing scheduled now)")
        return 0
    for r in rows:
        print(f"{'  ' * r['depth']}{r['name']} [{r['id']}] start={r['start']} progress={r['progress']:.1f}%")
    return 0


def cmd_day(ns: argparse.Namespace) -> int:
    payload = _load(ns.in_json)
    tz = _tz(ns.tz)
    window = day_window(_day(ns.date, tz), ns.tz)
    recs = collect_window(payload.graph, payload.calendar, window)

    if ns.json:
        _emit_json(
            {
                "window": {"start": window.start_ms, "end": window.end_ms},
                "items": [
                    {
                        "id": r.item.id,
                        "name": r.item.name,
                        "depth": r.depth,
                        "start": r.clamped_start,
                        "end": r.clamped_end,
                        "fully_inside": r.fully_inside,
                        "parents": list(r.parent_names),
                    }
                    for r in recs
                ],
            }
        )
        return 0
    if not recs:
        print("(nothing scheduled)")
        return 0
    for r in recs:
        mark = "" if r.fully_inside else " (partial)"
        ctx = f"  <{' / '.join(r.parent_names)}>" if r.parent_names else ""
        print(f"{format_ms(r.clamped_start, tz)} - {format_ms(r.clamped_end, tz)}  {r.item.name}{mark}{ctx}")
    return 0


def cmd_gaps(ns: argparse.Namespace) -> int:
    payload = _load(ns.in_json)
    tz = _tz(ns.tz)
    window = day_window(_day(ns.date, tz), ns.tz)
    gaps = find_schedule_gaps(payload.graph, payload.calendar, window)
    if ns.min_gap:
        min_ms = parse_duration_ms(ns.min_gap)
        if min_ms is None:
            raise UsageError(f"Invalid --min-gap value: {ns.min_gap!r}")
        gaps = [g for g in gaps if g.duration >= min_ms]

    if ns.json:
        _emit_json([{"start": g.start, "end": g.end, "duration": g.duration, "type": g.type} for g in gaps])
        return 0
    for g in gaps:
        mins = g.duration // 60_000
        print(f"{format_ms(g.start, tz)} - {format_ms(g.end, tz)}  {g.type} ({mins} min)")
    return 0


def cmd_validate(ns: argparse.Namespace) -> int:
    payload = _load(ns.in_json)
    errs = validate_graph(payload.graph, payload.calendar)
    if ns.json:
        _emit_json({"ok": not errs, "errors": errs})
        return 1 if errs else 0
    if errs:
        print("[abouttime-validate] FAIL", file=sys.stderr)
        for e in errs:
            print(f"  - {e}", file=sys.stderr)
        return 1
    print("[abouttime-validate] OK")
    return 0


def cmd_conflicts(ns: argparse.Namespace) -> int:
    if ns.end < ns.start:
        raise UsageError("--end must be >= --start")
    now = ns.now if ns.now is not None else _now_ms()
    try:
        with ConflictServiceClient(ns.url) as client:
            groups = client.conflict_groups(ns.start, ns.end)
    except ConflictServiceError as e:
        return _die(str(e), rc=3)

    live = live_groups(groups, now)
    if ns.json:
        _emit_json(
            {
                "groups": len(groups),
                "live": [conflict_member_to_json(m) for m in live[0].members] if live else None,
            }
        )
        return 0
    print(f"groups={len(groups)} live={len(live)}")
    if live:
        for m in live[0].members:
            print(f"  {m.id} p={m.priority} {m.start}-{m.end}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="abouttime", description="Resolve and inspect time-blocked item schedules.")
    ap.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging on stderr")
    sub = ap.add_subparsers(dest="cmd", required=True)

    tz_default = os.getenv("ABOUTTIME_TZ", "local")

    p = sub.add_parser("chain", help="Print the task chain executing now")
    p.add_argument("--in", dest="in_json", required=True, help="Payload JSON path")
    p.add_argument("--now", type=int, default=None, help="Instant in epoch ms (default: current time)")
    p.set_defaults(func=cmd_chain)

    for name, func, hlp in (
        ("day", cmd_day, "Print the unwrapped display list for one day"),
        ("gaps", cmd_gaps, "Print free stretches of one day"),
    ):
        p = sub.add_parser(name, help=hlp)
        p.add_argument("--in", dest="in_json", required=True, help="Payload JSON path")
        p.add_argument("--date", default=None, help="Day YYYY-MM-DD (default: today in --tz)")
        p.add_argument(
            "--tz",
            default=tz_default,
            help="Timezone for day boundaries (default: env ABOUTTIME_TZ or 'local')",
        )
        if name == "gaps":
            p.add_argument("--min-gap", default=None, help="Hide gaps shorter than this (e.g. 15m, PT1H, 900000)")
        p.set_defaults(func=func)

    p = sub.add_parser("validate", help="Check payload integrity")
    p.add_argument("--in", dest="in_json", required=True, help="Payload JSON path")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("conflicts", help="Fetch conflict groups from the calendar service")
    p.add_argument("--start", type=int, required=True, help="Window start, epoch ms")
    p.add_argument("--end", type=int, required=True, help="Window end, epoch ms")
    p.add_argument("--url", default=None, help="Service base URL (default: env ABOUTTIME_SERVICE_URL)")
    p.add_argument("--now", type=int, default=None, help="Instant in epoch ms (default: current time)")
    p.set_defaults(func=cmd_conflicts)

    return ap


def main(argv: Optional[List[str]] = None) -> int:
    ns = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if ns.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    log.debug("command=%s", ns.cmd)
    try:
        return int(ns.func(ns))
    except UsageError as e:
        return _die(str(e))
    except IntegrityError as e:
        return _die(f"payload integrity: {e}")


if __name__ == "__main__":
    raise SystemExit(main())
