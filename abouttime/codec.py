# abouttime/codec.py
"""JSON payload codec for items, base calendar entries and conflict members.

Payload file layout::

    {"items": [...], "baseCalendar": [...]}

`baseCalendar` may also be an object keyed by entry id.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import orjson

from .model import (
    BaseCalendar,
    BaseCalendarEntry,
    BasicItem,
    CheckListChild,
    CheckListItem,
    ConflictMember,
    Item,
    ItemGraph,
    ItemKind,
    ParentRef,
    SubCalendarChild,
    SubCalendarItem,
    iter_entries,
)


class PayloadError(ValueError):
    """Raised when a payload cannot be decoded into model objects."""


@dataclass(frozen=True)
class Payload:
    graph: ItemGraph
    calendar: Tuple[BaseCalendarEntry, ...] = ()


def _obj(v: Any, label: str) -> Mapping[str, Any]:
    if not isinstance(v, Mapping):
        raise PayloadError(f"{label} must be an object")
    return v


def _str(d: Mapping[str, Any], key: str, label: str) -> str:
    v = d.get(key)
    if not isinstance(v, str) or not v.strip():
        raise PayloadError(f"{label}.{key} must be a non-empty string")
    return v


def _int(d: Mapping[str, Any], key: str, label: str, default: Optional[int] = None) -> int:
    v = d.get(key)
    if v is None:
        if default is None:
            raise PayloadError(f"{label}.{key} is required")
        return default
    # bool is an int subclass; reject it explicitly.
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise PayloadError(f"{label}.{key} must be a number")
    return int(v)


def _rel(d: Mapping[str, Any], parent_id: str, child_id: str, seen: Dict[Tuple[str, str], int]) -> str:
    """Explicit relationshipId, else `<parent>:<child>:<n>` for the n-th link of that pair.

    Both sides of a link count occurrences the same way, so a payload without
    ids decodes to matching parent and child references.
    """
    n = seen.get((parent_id, child_id), 0)
    seen[(parent_id, child_id)] = n + 1
    v = d.get("relationshipId")
    return v if isinstance(v, str) and v else f"{parent_id}:{child_id}:{n}"


def _list(d: Mapping[str, Any], key: str, label: str) -> List[Any]:
    v = d.get(key)
    if v is None:
        return []
    if not isinstance(v, list):
        raise PayloadError(f"{label}.{key} must be a list")
    return v


# --- items ---------------------------------------------------------------------


def item_from_json(obj: Any) -> Item:
    d = _obj(obj, "item")
    item_id = _str(d, "id", "item")
    label = f"item[{item_id}]"
    name = d.get("name") or ""
    duration = _int(d, "duration", label, default=0)

    parents = []
    seen: Dict[Tuple[str, str], int] = {}
    for i, p in enumerate(_list(d, "parents", label)):
        pd = _obj(p, f"{label}.parents[{i}]")
        parent_id = _str(pd, "id", f"{label}.parents[{i}]")
        parents.append(ParentRef(parent_id=parent_id, relationship_id=_rel(pd, parent_id, item_id, seen)))

    kind_raw = d.get("type")
    try:
        kind = ItemKind(kind_raw)
    except ValueError:
        raise PayloadError(f"{label}.type unknown: {kind_raw!r}") from None

    if kind is ItemKind.BASIC:
        return BasicItem(
            id=item_id,
            name=str(name),
            duration=duration,
            parents=tuple(parents),
            priority=_int(d, "priority", label, default=0),
        )
    if kind is ItemKind.SUB_CALENDAR:
        sub_children = []
        placed: Dict[Tuple[str, str], int] = {}
        for i, c in enumerate(_list(d, "children", label)):
            cl = f"{label}.children[{i}]"
            cd = _obj(c, cl)
            cid = _str(cd, "id", cl)
            sub_children.append(
                SubCalendarChild(
                    child_id=cid,
                    start_offset_ms=_int(cd, "start", cl),
                    relationship_id=_rel(cd, item_id, cid, placed),
                )
            )
        return SubCalendarItem(
            id=item_id,
            name=str(name),
            duration=duration,
            parents=tuple(parents),
            children=tuple(sub_children),
        )
    if kind is ItemKind.CHECK_LIST:
        chk_children = []
        listed: Dict[Tuple[str, str], int] = {}
        for i, c in enumerate(_list(d, "children", label)):
            cl = f"{label}.children[{i}]"
            cd = _obj(c, cl)
            cid = _str(cd, "itemId", cl)
            chk_children.append(
                CheckListChild(
                    child_id=cid,
                    relationship_id=_rel(cd, item_id, cid, listed),
                    complete=bool(cd.get("complete", False)),
                )
            )
        return CheckListItem(
            id=item_id,
            name=str(name),
            duration=duration,
            parents=tuple(parents),
            children=tuple(chk_children),
            sort_type=str(d.get("sortType") or "manual"),
        )
    raise TypeError(f"unhandled item kind: {kind!r}")


def item_to_json(item: Item) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "id": item.id,
        "name": item.name,
        "duration": int(item.duration),
        "parents": [{"id": p.parent_id, "relationshipId": p.relationship_id} for p in item.parents],
        "type": item.kind.value,
    }
    if item.kind is ItemKind.BASIC:
        out["priority"] = int(item.priority)  # type: ignore[attr-defined]
    elif item.kind is ItemKind.SUB_CALENDAR:
        out["children"] = [
            {"id": c.child_id, "start": int(c.start_offset_ms), "relationshipId": c.relationship_id}
            for c in item.children  # type: ignore[attr-defined]
        ]
    elif item.kind is ItemKind.CHECK_LIST:
        out["children"] = [
            {"itemId": c.child_id, "complete": bool(c.complete), "relationshipId": c.relationship_id}
            for c in item.children  # type: ignore[attr-defined]
        ]
        out["sortType"] = item.sort_type  # type: ignore[attr-defined]
    else:
        raise TypeError(f"unhandled item kind: {item.kind!r}")
    return out


def items_from_json(objs: Any) -> ItemGraph:
    if not isinstance(objs, list):
        raise PayloadError("items must be a list")
    items = [item_from_json(o) for o in objs]
    seen = set()
    for it in items:
        if it.id in seen:
            raise PayloadError(f"duplicate item id: {it.id!r}")
        seen.add(it.id)
    return ItemGraph(items)


# --- calendar entries ----------------------------------------------------------


def entry_from_json(obj: Any) -> BaseCalendarEntry:
    d = _obj(obj, "entry")
    entry_id = _str(d, "id", "entry")
    label = f"entry[{entry_id}]"
    return BaseCalendarEntry(
        id=entry_id,
        item_id=_str(d, "itemId", label),
        start_time=_int(d, "startTime", label),
    )


def entry_to_json(entry: BaseCalendarEntry) -> Dict[str, Any]:
    return {"id": entry.id, "itemId": entry.item_id, "startTime": int(entry.start_time)}


def entries_from_json(objs: Any) -> Tuple[BaseCalendarEntry, ...]:
    if objs is None:
        return ()
    if isinstance(objs, Mapping):
        objs = list(objs.values())
    if not isinstance(objs, list):
        raise PayloadError("baseCalendar must be a list or an object")
    return tuple(entry_from_json(o) for o in objs)


# --- conflict members ----------------------------------------------------------


def conflict_member_from_json(obj: Any) -> ConflictMember:
    d = _obj(obj, "conflict member")
    member_id = _str(d, "id", "conflict member")
    label = f"conflict member[{member_id}]"
    start = _int(d, "start", label)
    end = _int(d, "end", label)
    if end < start:
        raise PayloadError(f"{label}: end before start")
    return ConflictMember(
        id=member_id,
        start=start,
        end=end,
        priority=_int(d, "priority", label, default=0),
        template_hash=str(d.get("templateHash") or ""),
    )


def conflict_member_to_json(member: ConflictMember) -> Dict[str, Any]:
    return {
        "id": member.id,
        "start": int(member.start),
        "end": int(member.end),
        "priority": int(member.priority),
        "templateHash": member.template_hash,
    }


# --- whole payloads ------------------------------------------------------------


def loads_payload(data: Union[bytes, str]) -> Payload:
    try:
        raw = orjson.loads(data)
    except orjson.JSONDecodeError as ex:
        raise PayloadError(f"invalid JSON: {ex}") from ex
    d = _obj(raw, "payload")
    graph = items_from_json(d.get("items", []))
    calendar = entries_from_json(d.get("baseCalendar"))
    return Payload(graph=graph, calendar=calendar)


def load_payload(path: Union[str, Path]) -> Payload:
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as ex:
        raise PayloadError(f"cannot read payload {p}: {ex}") from ex
    return loads_payload(data)


def dumps_payload(
    graph: Union[Iterable[Item], Mapping[str, Item]],
    calendar: Optional[BaseCalendar] = None,
    *,
    indent: bool = False,
) -> bytes:
    items = graph.values() if isinstance(graph, Mapping) else graph
    doc = {
        "items": [item_to_json(it) for it in sorted(items, key=lambda it: it.id)],
        "baseCalendar": [entry_to_json(e) for e in sorted(iter_entries(calendar), key=lambda e: e.id)],
    }
    opts = orjson.OPT_INDENT_2 if indent else 0
    return orjson.dumps(doc, option=opts)


__all__ = [
    "Payload",
    "PayloadError",
    "conflict_member_from_json",
    "conflict_member_to_json",
    "dumps_payload",
    "entries_from_json",
    "entry_from_json",
    "entry_to_json",
    "item_from_json",
    "item_to_json",
    "items_from_json",
    "load_payload",
    "loads_payload",
]
