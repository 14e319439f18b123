# abouttime/conflicts.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .model import ConflictMember
from .util.console import env_int, obs

DEFAULT_COOLDOWN_S = 300


def _member_order(m: ConflictMember) -> Tuple[int, int, str]:
    return (-int(m.priority), int(m.start), m.id)


@dataclass(frozen=True)
class ConflictGroup:
    """Root intervals connected by pairwise overlap; members sorted priority desc, start asc."""

    members: Tuple[ConflictMember, ...]

    @property
    def key(self) -> str:
        return ",".join(sorted(m.id for m in self.members))

    @property
    def start(self) -> int:
        return min(m.start for m in self.members)

    @property
    def end(self) -> int:
        return max(m.end for m in self.members)

    def __len__(self) -> int:
        return len(self.members)

    def active_members(self, now: int) -> List[ConflictMember]:
        return [m for m in self.members if m.is_active(now)]

    def is_live(self, now: int) -> bool:
        return len(self.active_members(now)) >= 2


def make_group(members: Iterable[ConflictMember]) -> ConflictGroup:
    return ConflictGroup(members=tuple(sorted(members, key=_member_order)))


def group_overlaps(members: Iterable[ConflictMember]) -> List[ConflictGroup]:
    """Transitive overlap closure over half-open intervals.

    Sweep in start order, extending the running group while the next member
    starts before the group's furthest end. Singletons are not conflicts and
    are dropped.
    """
    ordered = sorted((m for m in members if m.end > m.start), key=lambda m: (m.start, m.end, m.id))
    groups: List[ConflictGroup] = []
    cur: List[ConflictMember] = []
    cur_end: Optional[int] = None

    for m in ordered:
        if cur and cur_end is not None and m.start < cur_end:
            cur.append(m)
            cur_end = max(cur_end, m.end)
            continue
        if len(cur) >= 2:
            groups.append(make_group(cur))
        cur = [m]
        cur_end = m.end
    if len(cur) >= 2:
        groups.append(make_group(cur))
    return groups


def live_groups(groups: Iterable[ConflictGroup], now: int) -> List[ConflictGroup]:
    return [g for g in groups if g.is_live(now)]


def prioritize(group: ConflictGroup, chosen_id: str) -> ConflictMember:
    """Raise `chosen_id` strictly above every member of the group."""
    for m in group.members:
        if m.id == chosen_id:
            top = max(int(x.priority) for x in group.members)
            return replace(m, priority=top + 1)
    raise KeyError(chosen_id)


def snooze(group: ConflictGroup, delay_ms: int) -> List[ConflictMember]:
    """Shift every member but the leading one forward by `delay_ms`."""
    delay_ms = int(delay_ms)
    if delay_ms < 0:
        raise ValueError("snooze delay must be >= 0")
    return [replace(m, start=m.start + delay_ms, end=m.end + delay_ms) for m in group.members[1:]]


# --- resolution workflow -------------------------------------------------------


@dataclass(frozen=True)
class ResolutionOutcome:
    ok: bool
    written: Tuple[str, ...] = ()
    failed: Dict[str, str] = field(default_factory=dict)


Writer = Callable[[ConflictMember], object]


def commit(writer: Writer, updates: Iterable[ConflictMember]) -> ResolutionOutcome:
    """Write each update once; failures are reported, not retried."""
    written: List[str] = []
    failed: Dict[str, str] = {}
    for m in updates:
        try:
            writer(m)
        except Exception as ex:
            failed[m.id] = str(ex) or type(ex).__name__
            obs("conflicts", "commit.fail", id=m.id, err=type(ex).__name__)
            continue
        written.append(m.id)
    return ResolutionOutcome(ok=not failed, written=tuple(written), failed=failed)


class ConflictWorkflow:
    """Pick one live conflict group to present and turn the user's decision into updates.

    After a decision, prompting is suppressed for `cooldown_ms` so the same
    (possibly still overlapping) group does not re-trigger immediately.
    """

    def __init__(self, cooldown_ms: Optional[int] = None) -> None:
        if cooldown_ms is None:
            cooldown_ms = env_int("ABOUTTIME_CONFLICT_COOLDOWN_S", DEFAULT_COOLDOWN_S) * 1000
        self.cooldown_ms = int(cooldown_ms)
        self._suppress_until: Optional[int] = None
        self.last_key: Optional[str] = None

    def suppressed(self, now: int) -> bool:
        return self._suppress_until is not None and now < self._suppress_until

    def next_prompt(self, groups: Iterable[ConflictGroup], now: int) -> Optional[ConflictGroup]:
        if self.suppressed(now):
            return None
        for g in groups:
            if g.is_live(now):
                return g
        return None

    def _resolved(self, group: ConflictGroup, now: int, action: str) -> None:
        self._suppress_until = int(now) + self.cooldown_ms
        self.last_key = group.key
        obs("conflicts", f"resolve.{action}", group=group.key, until=self._suppress_until)

    def resolve_prioritize(self, group: ConflictGroup, chosen_id: str, now: int) -> List[ConflictMember]:
        updated = prioritize(group, chosen_id)
        self._resolved(group, now, "prioritize")
        return [updated]

    def resolve_snooze(self, group: ConflictGroup, delay_ms: int, now: int) -> List[ConflictMember]:
        updated = snooze(group, delay_ms)
        self._resolved(group, now, "snooze")
        return updated


__all__ = [
    "ConflictGroup",
    "ConflictWorkflow",
    "DEFAULT_COOLDOWN_S",
    "ResolutionOutcome",
    "commit",
    "group_overlaps",
    "live_groups",
    "make_group",
    "prioritize",
    "snooze",
]
