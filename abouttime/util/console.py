# abouttime/util/console.py
from __future__ import annotations

import os
import sys
from typing import Any


def eprint(*args: Any) -> None:
    print(*args, file=sys.stderr)


def obs_enabled() -> bool:
    v = (os.getenv("ABOUTTIME_OBS_LOG", "") or "").strip().lower()
    return v in {"1", "true", "yes", "on"}


def obs(component: str, event: str, **fields: Any) -> None:
    """Emit `[abouttime.<component>] <event> k=v ...` on stderr when ABOUTTIME_OBS_LOG is on."""
    if not obs_enabled():
        return
    parts = [f"[abouttime.{component}]", event]
    for k in sorted(fields):
        parts.append(f"{k}={fields[k]}")
    eprint(" ".join(parts))


def env_int(name: str, default: int) -> int:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        v = int(raw)
        if v > 0:
            return v
    except ValueError:
        pass
    return default


def env_float(name: str, default: float) -> float:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        v = float(raw)
        if v > 0:
            return v
    except ValueError:
        pass
    return default
