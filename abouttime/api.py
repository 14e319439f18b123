"""abouttime.api

Stable *library* entrypoint for abouttime.

Policy:
  - Only names listed in __all__ are considered public API.
  - Everything else is internal and may change without notice.
"""

from __future__ import annotations

from abouttime.agenda import (
    ScheduleGap,
    ScheduledOccurrence,
    find_schedule_gaps,
    last_active,
    next_checklist_child,
    recent,
    unscheduled_by_priority,
    upcoming,
)
from abouttime.chain import (
    TaskChain,
    TaskChainCache,
    get_current_task_chain,
    get_deepest_item,
    get_task_progress,
    get_task_start_time,
    is_deepest_executable_task,
    resolve_task_chain,
)
from abouttime.client import ConflictServiceClient, ConflictServiceError
from abouttime.codec import Payload, PayloadError, dumps_payload, load_payload, loads_payload
from abouttime.conflicts import (
    ConflictGroup,
    ConflictWorkflow,
    ResolutionOutcome,
    commit,
    group_overlaps,
    prioritize,
    snooze,
)
from abouttime.interval import (
    IntervalIndex,
    add_checklist_child,
    link_child,
    remove_child,
    schedule_child,
    set_checklist_complete,
)
from abouttime.model import (
    BaseCalendarEntry,
    BasicItem,
    CheckListChild,
    CheckListItem,
    ConflictMember,
    CycleError,
    IntegrityError,
    ItemGraph,
    ItemKind,
    MissingItemError,
    ParentRef,
    SubCalendarChild,
    SubCalendarItem,
    TimeWindow,
)
from abouttime.unwrap import FlatDisplayItem, collect_display_items, collect_window, day_window
from abouttime.validate import GraphValidationError, assert_valid_graph, validate_graph


# --- Public API exports (locked by contract tests) ------------------------
# Keep changes intentional and reviewable.
# Prefer append-only unless you are intentionally reshaping the public surface.
_PUBLIC_EXPORTS = (
    # model
    "BaseCalendarEntry",
    "BasicItem",
    "CheckListChild",
    "CheckListItem",
    "ConflictMember",
    "CycleError",
    "IntegrityError",
    "ItemGraph",
    "ItemKind",
    "MissingItemError",
    "ParentRef",
    "SubCalendarChild",
    "SubCalendarItem",
    "TimeWindow",
    # interval index / container edits
    "IntervalIndex",
    "add_checklist_child",
    "link_child",
    "remove_child",
    "schedule_child",
    "set_checklist_complete",
    # task chain
    "TaskChain",
    "TaskChainCache",
    "get_current_task_chain",
    "get_deepest_item",
    "get_task_progress",
    "get_task_start_time",
    "is_deepest_executable_task",
    "resolve_task_chain",
    # window unwrapping
    "FlatDisplayItem",
    "collect_display_items",
    "collect_window",
    "day_window",
    # conflicts
    "ConflictGroup",
    "ConflictServiceClient",
    "ConflictServiceError",
    "ConflictWorkflow",
    "ResolutionOutcome",
    "commit",
    "group_overlaps",
    "prioritize",
    "snooze",
    # agenda
    "ScheduleGap",
    "ScheduledOccurrence",
    "find_schedule_gaps",
    "last_active",
    "next_checklist_child",
    "recent",
    "unscheduled_by_priority",
    "upcoming",
    # payloads / validation
    "GraphValidationError",
    "Payload",
    "PayloadError",
    "assert_valid_graph",
    "dumps_payload",
    "load_payload",
    "loads_payload",
    "validate_graph",
)

__all__ = [n for n in _PUBLIC_EXPORTS if n in globals()]
# --- /Public API exports --------------------------------------------------
