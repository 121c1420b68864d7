"""
Snapshot / restore of task records across a transfer boundary.

Records coming from a query engine are loosely typed and may hold
back-references (a parent list node holding children, each child pointing
back at the parent). Those edges never cross the boundary:

  - snapshot() copies primitive and string-list fields only, and drops any
    key in the back-reference namespace or holding a callable
  - to_plain()/safe_stringify() walk arbitrary graphs with a seen-set and
    emit CIRCULAR_SENTINEL instead of revisiting an object

Reverse lookups, where needed, go through build_parent_index(), a flat
``task id -> parent id`` side table.
"""
import json
import logging
from collections.abc import Mapping
from dataclasses import fields, is_dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Union

from .schema import Priority, TaskRecord, dedupe_tags

logger = logging.getLogger(__name__)

CIRCULAR_SENTINEL = "[Circular Reference]"
ID_TEXT_CHARS = 20

# Keys that hold parent/owner links in upstream query results
BACKREF_PREFIXES = ("$parent", "$owner", "_")
BACKREF_KEYS = {"parent", "owner"}

_PRIMITIVES = (str, int, float, bool, type(None))


def is_backref_key(key: Any) -> bool:
    key = str(key)
    return key in BACKREF_KEYS or key.startswith(BACKREF_PREFIXES)


def _is_string_list(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value)


def _is_tracked(obj: Any) -> bool:
    # Immutable containers are shared freely (every empty tuple is the same
    # object) and cannot close a cycle on their own
    return not isinstance(obj, (tuple, frozenset))


def _items(obj: Any):
    """Key/value pairs of a mapping, dataclass or plain object."""
    if isinstance(obj, Mapping):
        return list(obj.items())
    if is_dataclass(obj) and not isinstance(obj, type):
        return [(f.name, getattr(obj, f.name)) for f in fields(obj)]
    if hasattr(obj, "__dict__"):
        return list(vars(obj).items())
    return []


def get_field(record: Any, *names: str, default: Any = None) -> Any:
    """First present, non-empty field among ``names``."""
    for name in names:
        if isinstance(record, Mapping):
            value = record.get(name)
        else:
            value = getattr(record, name, None)
        if value is not None and value != "":
            return value
    return default


# ── Generic cycle-safe traversal ─────────────────────────────────────────────


def to_plain(obj: Any, _seen: Optional[set] = None) -> Any:
    """
    Convert an arbitrary object graph into JSON-safe values.

    Back-reference keys and callables are skipped. Any object reached a
    second time becomes CIRCULAR_SENTINEL, so self-referential graphs
    terminate.
    """
    if _seen is None:
        _seen = set()

    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, _PRIMITIVES):
        return obj
    if callable(obj):
        return None

    is_container = isinstance(obj, (list, tuple, set, frozenset))
    is_record = isinstance(obj, Mapping) or is_dataclass(obj) or hasattr(obj, "__dict__")
    if not (is_container or is_record):
        return str(obj)

    if _is_tracked(obj):
        if id(obj) in _seen:
            return CIRCULAR_SENTINEL
        _seen.add(id(obj))

    if is_container:
        items = sorted(obj, key=str) if isinstance(obj, (set, frozenset)) else obj
        return [to_plain(v, _seen) for v in items]

    out = {}
    for key, value in _items(obj):
        if is_backref_key(key) or callable(value):
            continue
        out[str(key)] = to_plain(value, _seen)
    return out


def safe_stringify(obj: Any, indent: Optional[int] = None) -> str:
    """JSON text for any object graph; never raises on cycles."""
    try:
        return json.dumps(to_plain(obj), indent=indent, sort_keys=True, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to stringify {type(obj).__name__}: {e}")
        return json.dumps({
            "error": "Serialization failed",
            "type": type(obj).__name__,
        })


def safe_parse(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to parse transfer payload: {e}")
        return None


def has_circular_reference(obj: Any) -> bool:
    seen = set()

    def check(current: Any) -> bool:
        if isinstance(current, _PRIMITIVES) or isinstance(current, Enum):
            return False
        if _is_tracked(current):
            if id(current) in seen:
                return True
            seen.add(id(current))
        if isinstance(current, (list, tuple, set, frozenset)):
            return any(check(v) for v in current)
        return any(check(v) for _, v in _items(current))

    return check(obj)


# ── Task snapshot / restore ──────────────────────────────────────────────────


def _task_fields(task: Any) -> Dict[str, Any]:
    """Canonical task fields from a TaskRecord or a loose query record."""
    if isinstance(task, TaskRecord):
        return {
            "text": task.clean_text,
            "raw": task.raw_text,
            "file": task.source_file,
            "line": task.source_line,
            "indent": task.indent,
            "tags": list(task.tags),
            "completed": task.completed,
            "due": task.due_date or "",
            "scheduled": task.scheduled_date or "",
            "start": task.start_date or "",
            "done": task.done_date or "",
            "priority": task.priority.value,
            "recurrence": task.recurrence_rule or "",
        }

    file_value = get_field(task, "$file", "file", "path", default="")
    if not isinstance(file_value, str):
        file_value = get_field(file_value, "path", default="") or ""
    tags = get_field(task, "$tags", "tags", default=[])
    priority = get_field(task, "priority", default="")
    return {
        "text": str(get_field(task, "$cleantext", "$text", "text", "clean_text", default="")),
        "raw": str(get_field(task, "raw", "raw_text", default="")),
        "file": file_value,
        "line": int(get_field(task, "$line", "line", "source_line", default=0) or 0),
        "indent": int(get_field(task, "indent", default=0) or 0),
        "tags": [str(t) for t in tags] if _is_string_list(tags) else [],
        "completed": bool(get_field(task, "$completed", "completed", default=False)),
        "due": str(get_field(task, "due", "dueDate", "due_date", default="")),
        "scheduled": str(get_field(task, "scheduled", "scheduledDate", "scheduled_date", default="")),
        "start": str(get_field(task, "start", "startDate", "start_date", default="")),
        "done": str(get_field(task, "done", "doneDate", "done_date", default="")),
        "priority": priority.value if isinstance(priority, Priority) else str(priority),
        "recurrence": str(get_field(task, "recurrence", "recurrenceRule", "recurrence_rule", default="")),
    }


def _extras(task: Any, known: Iterable[str]) -> Dict[str, Any]:
    """Opaque pass-through fields: primitives and string lists only."""
    if isinstance(task, TaskRecord):
        return {}
    known = set(known)
    extra = {}
    for key, value in _items(task):
        key = str(key)
        if key in known or key.startswith("$") or is_backref_key(key) or callable(value):
            continue
        if isinstance(value, _PRIMITIVES) or _is_string_list(value):
            extra[key] = list(value) if isinstance(value, tuple) else value
    return dict(sorted(extra.items()))


_LOOSE_KEYS = (
    "text", "raw", "raw_text", "clean_text", "file", "path", "line", "source_line",
    "indent", "tags", "completed", "due", "dueDate", "due_date", "scheduled",
    "scheduledDate", "scheduled_date", "start", "startDate", "start_date", "done",
    "doneDate", "done_date", "priority", "recurrence", "recurrenceRule",
    "recurrence_rule",
)


def generate_id(task: Any) -> str:
    """``file:line:first-20-chars``. Deterministic for one board state."""
    data = _task_fields(task)
    return f"{data['file'] or 'unknown'}:{data['line']}:{data['text'][:ID_TEXT_CHARS]}"


def snapshot(task: Any) -> Dict[str, Any]:
    """Flat, JSON-safe copy of a task with stable key order."""
    data = _task_fields(task)
    data["id"] = generate_id(task)
    extra = _extras(task, _LOOSE_KEYS)
    if extra:
        data["extra"] = extra
    return dict(sorted(data.items()))


def restore(payload: Union[Dict[str, Any], str, None]) -> Optional[TaskRecord]:
    """Rebuild a TaskRecord from snapshot() output (dict or JSON text)."""
    if isinstance(payload, str):
        payload = safe_parse(payload)
    if not isinstance(payload, Mapping):
        return None

    tags = payload.get("tags") or []
    text = payload.get("text") or ""
    return TaskRecord(
        raw_text=payload.get("raw") or "",
        clean_text=text,
        completed=bool(payload.get("completed", False)),
        due_date=payload.get("due") or None,
        scheduled_date=payload.get("scheduled") or None,
        start_date=payload.get("start") or None,
        done_date=payload.get("done") or None,
        priority=Priority.from_str(payload.get("priority")),
        tags=dedupe_tags(tags if _is_string_list(tags) else []),
        recurrence_rule=payload.get("recurrence") or None,
        source_file=payload.get("file") or "",
        source_line=int(payload.get("line") or 0),
        indent=int(payload.get("indent") or 0),
    )


def build_parent_index(records: Iterable[Any]) -> Dict[str, str]:
    """
    ``task id -> parent id`` for records that carry a back-reference.

    The parent id is the parent's own task id when it looks like a task,
    otherwise its file path.
    """
    index = {}
    for record in records:
        parent = None
        for key, value in _items(record):
            if is_backref_key(key) and value is not None and not isinstance(value, _PRIMITIVES):
                parent = value
                break
        if parent is None:
            continue
        if get_field(parent, "$text", "text"):
            parent_id = generate_id(parent)
        else:
            parent_id = str(get_field(parent, "$file", "file", "path", default="") or "")
        if parent_id:
            index[generate_id(record)] = parent_id
    return index
