# abouttime/model.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import (
    ClassVar,
    Dict,
    Iterable,
    Iterator,
    Mapping,
    Optional,
    Tuple,
    Union,
)


def new_relationship_id() -> str:
    return uuid.uuid4().hex


class IntegrityError(Exception):
    """Base class for referential/structural integrity violations in an item graph."""


class MissingItemError(IntegrityError, KeyError):
    """A chain, child, parent or calendar entry references an id absent from the items."""

    def __init__(self, item_id: str, context: str = "") -> None:
        super().__init__(item_id)
        self.item_id = item_id
        self.context = context

    def __str__(self) -> str:
        if self.context:
            return f"unknown item id {self.item_id!r} ({self.context})"
        return f"unknown item id {self.item_id!r}"


class CycleError(IntegrityError, ValueError):
    """An item was reached twice while descending one hierarchy."""

    def __init__(self, path: Tuple[str, ...]) -> None:
        super().__init__(" -> ".join(path))
        self.path = path


class ItemKind(str, Enum):
    BASIC = "BasicItem"
    SUB_CALENDAR = "SubCalendarItem"
    CHECK_LIST = "CheckListItem"


SORT_TYPES = ("manual", "alphabetical", "duration")


@dataclass(frozen=True)
class ParentRef:
    parent_id: str
    relationship_id: str = field(default_factory=new_relationship_id)


@dataclass(frozen=True)
class SubCalendarChild:
    child_id: str
    start_offset_ms: int
    relationship_id: str = field(default_factory=new_relationship_id)


@dataclass(frozen=True)
class CheckListChild:
    child_id: str
    relationship_id: str = field(default_factory=new_relationship_id)
    complete: bool = False


@dataclass(frozen=True)
class Item:
    """Common item fields. Use one of the three concrete variants."""

    kind: ClassVar[ItemKind]

    id: str
    name: str
    duration: int
    parents: Tuple[ParentRef, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "parents", tuple(self.parents))

    def with_parents(self, parents: Iterable[ParentRef]) -> "Item":
        return replace(self, parents=tuple(parents))


@dataclass(frozen=True)
class BasicItem(Item):
    kind: ClassVar[ItemKind] = ItemKind.BASIC

    priority: int = 0


@dataclass(frozen=True)
class SubCalendarItem(Item):
    kind: ClassVar[ItemKind] = ItemKind.SUB_CALENDAR

    children: Tuple[SubCalendarChild, ...] = ()

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "children", tuple(self.children))

    def with_children(self, children: Iterable[SubCalendarChild]) -> "SubCalendarItem":
        return replace(self, children=tuple(children))


@dataclass(frozen=True)
class CheckListItem(Item):
    kind: ClassVar[ItemKind] = ItemKind.CHECK_LIST

    children: Tuple[CheckListChild, ...] = ()
    sort_type: str = "manual"

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "children", tuple(self.children))
        if self.sort_type not in SORT_TYPES:
            object.__setattr__(self, "sort_type", "manual")

    def with_children(self, children: Iterable[CheckListChild]) -> "CheckListItem":
        return replace(self, children=tuple(children))


AnyItem = Union[BasicItem, SubCalendarItem, CheckListItem]


def item_priority(item: Item) -> int:
    """Conflict tie-break priority; only BasicItem carries one, containers rank as 0."""
    if item.kind is ItemKind.BASIC:
        return int(item.priority)  # type: ignore[attr-defined]
    if item.kind in (ItemKind.SUB_CALENDAR, ItemKind.CHECK_LIST):
        return 0
    raise TypeError(f"unhandled item kind: {item.kind!r}")


def child_ids(item: Item) -> Tuple[str, ...]:
    if item.kind is ItemKind.BASIC:
        return ()
    if item.kind is ItemKind.SUB_CALENDAR:
        return tuple(c.child_id for c in item.children)  # type: ignore[attr-defined]
    if item.kind is ItemKind.CHECK_LIST:
        return tuple(c.child_id for c in item.children)  # type: ignore[attr-defined]
    raise TypeError(f"unhandled item kind: {item.kind!r}")


@dataclass(frozen=True)
class BaseCalendarEntry:
    id: str
    item_id: str
    start_time: int


BaseCalendar = Union[Mapping[str, BaseCalendarEntry], Iterable[BaseCalendarEntry]]


def iter_entries(base_calendar: Optional[BaseCalendar]) -> Iterator[BaseCalendarEntry]:
    """Iterate entries from either an id->entry mapping or a plain iterable."""
    if base_calendar is None:
        return
    if isinstance(base_calendar, Mapping):
        yield from base_calendar.values()
        return
    yield from base_calendar


@dataclass(frozen=True)
class TimeWindow:
    """Half-open [start_ms, end_ms) window."""

    start_ms: int
    end_ms: int

    def __post_init__(self) -> None:
        if self.end_ms < self.start_ms:
            raise ValueError(f"window end {self.end_ms} before start {self.start_ms}")

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    def intersects(self, start_ms: int, end_ms: int) -> bool:
        if self.end_ms <= self.start_ms:
            return False
        return end_ms > self.start_ms and start_ms < self.end_ms

    def contains(self, start_ms: int, end_ms: int) -> bool:
        return start_ms >= self.start_ms and end_ms <= self.end_ms

    def clamp(self, start_ms: int, end_ms: int) -> Tuple[int, int]:
        return max(start_ms, self.start_ms), min(end_ms, self.end_ms)


@dataclass(frozen=True)
class ConflictMember:
    """A root interval as reported by the conflict service."""

    id: str
    start: int
    end: int
    priority: int = 0
    template_hash: str = ""

    def is_active(self, now: int) -> bool:
        return self.start <= now < self.end


class ItemGraph(Mapping[str, Item]):
    """Immutable id -> item arena with a version stamp.

    Mutating helpers return a new graph whose version is one higher, so a
    resolver holding a graph always sees one consistent snapshot.
    """

    __slots__ = ("_items", "_version")

    def __init__(self, items: Iterable[Item] = (), *, version: int = 0) -> None:
        by_id: Dict[str, Item] = {}
        for it in items:
            by_id[it.id] = it
        self._items = by_id
        self._version = int(version)

    @property
    def version(self) -> int:
        return self._version

    def __getitem__(self, item_id: str) -> Item:
        return self._items[item_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"ItemGraph(version={self._version}, items={len(self._items)})"

    def require(self, item_id: str, context: str = "") -> Item:
        try:
            return self._items[item_id]
        except KeyError:
            raise MissingItemError(item_id, context) from None

    def with_items(self, *items: Item) -> "ItemGraph":
        merged = dict(self._items)
        for it in items:
            merged[it.id] = it
        return ItemGraph(merged.values(), version=self._version + 1)

    def without(self, *item_ids: str) -> "ItemGraph":
        drop = set(item_ids)
        return ItemGraph((it for k, it in self._items.items() if k not in drop), version=self._version + 1)


Items = Union[ItemGraph, Mapping[str, Item], Iterable[Item]]


def as_graph(items: Optional[Items]) -> ItemGraph:
    if items is None:
        return ItemGraph()
    if isinstance(items, ItemGraph):
        return items
    if isinstance(items, Mapping):
        return ItemGraph(items.values())
    return ItemGraph(items)


__all__ = [
    "AnyItem",
    "BaseCalendar",
    "BaseCalendarEntry",
    "BasicItem",
    "CheckListChild",
    "CheckListItem",
    "ConflictMember",
    "CycleError",
    "IntegrityError",
    "Item",
    "ItemGraph",
    "ItemKind",
    "Items",
    "MissingItemError",
    "ParentRef",
    "SORT_TYPES",
    "SubCalendarChild",
    "SubCalendarItem",
    "TimeWindow",
    "as_graph",
    "child_ids",
    "item_priority",
    "iter_entries",
    "new_relationship_id",
]
