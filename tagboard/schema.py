"""
Board data model: task records, column configuration, tag operations.

Task records are flat, immutable values built fresh from each query result.
A move never edits a record in place; the board re-queries after a write.

Failures that callers are expected to handle (a full column, a task line
that can no longer be found, a stale drag handle) are returned as tagged
values rather than raised.
"""
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, List, Tuple, Iterable, Union, Dict, Any


class Priority(Enum):
    """Closed priority set, highest first."""
    HIGHEST = "highest"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"
    LOWEST = "lowest"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "Priority":
        if not value:
            return cls.NORMAL
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            return cls.NORMAL

    @property
    def rank(self) -> int:
        return list(Priority).index(self)


class CompletionPolicy(Enum):
    """What happens to the checkbox when a task lands in a column."""
    MARK_COMPLETE = "mark-complete"
    MARK_INCOMPLETE = "mark-incomplete"
    NO_CHANGE = "no-change"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "CompletionPolicy":
        if not value:
            return cls.NO_CHANGE
        return cls(str(value).strip().lower())


class SortBy(Enum):
    """Ordering of cards inside a column."""
    DUE = "due"
    CREATED = "created"
    PRIORITY = "priority"
    ALPHABETICAL = "alphabetical"
    NONE = "none"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "SortBy":
        if not value:
            return cls.CREATED
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.NONE


class TagAction(Enum):
    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"


class DragState(Enum):
    """Coordinator states."""
    IDLE = "idle"
    DRAGGING = "dragging"


# ── Tag helpers ──────────────────────────────────────────────────────────────


def normalize_tag(tag: str) -> str:
    """Return the tag with exactly one leading '#'."""
    tag = (tag or "").strip()
    return "#" + tag.lstrip("#") if tag else ""


def tag_key(tag: str) -> str:
    """Comparison key: lowercase, without the leading marker."""
    return (tag or "").strip().lstrip("#").lower()


def tags_match(a: str, b: str) -> bool:
    return bool(tag_key(a)) and tag_key(a) == tag_key(b)


def dedupe_tags(tags: Iterable[str]) -> Tuple[str, ...]:
    """Keep first spelling of each tag, preserve order."""
    seen = set()
    out = []
    for t in tags:
        key = tag_key(t)
        if key and key not in seen:
            seen.add(key)
            out.append(normalize_tag(t))
    return tuple(out)


# ── Records ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TaskRecord:
    """One checkbox line, parsed."""

    raw_text: str
    clean_text: str
    completed: bool = False

    # Dates are kept as the YYYY-MM-DD strings found in the line
    due_date: Optional[str] = None
    scheduled_date: Optional[str] = None
    start_date: Optional[str] = None
    done_date: Optional[str] = None

    priority: Priority = Priority.NORMAL
    tags: Tuple[str, ...] = ()
    recurrence_rule: Optional[str] = None

    # Location (source_line may be stale by the time a move happens)
    source_file: str = ""
    source_line: int = 0
    indent: int = 0

    def has_tag(self, tag: str) -> bool:
        return any(tags_match(t, tag) for t in self.tags)

    @property
    def tag_set(self) -> frozenset:
        return frozenset(tag_key(t) for t in self.tags)


@dataclass(frozen=True)
class ColumnConfig:
    """A board lane. Callers own validation; the core trusts these values."""

    id: str
    name: str
    status_tag: str
    color: str = "#6c757d"
    completion: CompletionPolicy = CompletionPolicy.NO_CHANGE
    remove_conflicting_tags: bool = True
    add_custom_tags: Tuple[str, ...] = ()
    max_tasks: Optional[int] = None
    sort_by: SortBy = SortBy.CREATED
    collapsible: bool = False

    def matches_tag(self, tag: str) -> bool:
        return tags_match(self.status_tag, tag)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status_tag": self.status_tag,
            "color": self.color,
            "completion": self.completion.value,
            "remove_conflicting_tags": self.remove_conflicting_tags,
            "add_custom_tags": list(self.add_custom_tags),
            "max_tasks": self.max_tasks,
            "sort_by": self.sort_by.value,
            "collapsible": self.collapsible,
        }


@dataclass(frozen=True)
class TagUpdateOp:
    action: TagAction
    tag: str
    old_tag: Optional[str] = None

    def __str__(self) -> str:
        if self.action == TagAction.REPLACE:
            return f"replace {self.old_tag} -> {self.tag}"
        return f"{self.action.value} {self.tag}"


@dataclass
class DragSession:
    """Handle for one in-progress move. Owned by the coordinator."""
    session_id: str
    dragged_task: Dict[str, Any]       # snapshot, never the live record
    source_column: Optional[ColumnConfig]
    target_column: Optional[ColumnConfig] = None
    is_active: bool = True


# ── Tagged failures ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CapacityExceeded:
    column_id: str
    column_name: str
    max_tasks: int
    occupancy: int

    @property
    def message(self) -> str:
        return f'Column "{self.column_name}" is full (max {self.max_tasks} tasks)'


@dataclass(frozen=True)
class LocatorMiss:
    source_file: str
    clean_text: str

    @property
    def message(self) -> str:
        return f"Task not found in {self.source_file}: {self.clean_text[:40]!r}"


@dataclass(frozen=True)
class StaleSession:
    session_id: str

    @property
    def message(self) -> str:
        return f"Drag session {self.session_id} is no longer active"


Failure = Union[CapacityExceeded, LocatorMiss, StaleSession]


@dataclass
class MoveResult:
    """Outcome of a drop or a direct line update."""
    success: bool
    message: str = ""
    changed: bool = False
    line_index: Optional[int] = None
    updated_line: Optional[str] = None
    ops: List[TagUpdateOp] = field(default_factory=list)
    failure: Optional[Failure] = None

    @classmethod
    def failed(cls, failure: Failure, ops: Optional[List[TagUpdateOp]] = None) -> "MoveResult":
        return cls(success=False, message=failure.message, failure=failure, ops=list(ops or []))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "changed": self.changed,
            "line_index": self.line_index,
            "updated_line": self.updated_line,
            "ops": [str(op) for op in self.ops],
            "failure": type(self.failure).__name__ if self.failure else None,
        }


# ── Defaults ─────────────────────────────────────────────────────────────────

DEFAULT_COLUMNS: List[ColumnConfig] = [
    ColumnConfig(
        id="todo",
        name="To Do",
        status_tag="#todo",
        color="#fd7e14",
        completion=CompletionPolicy.MARK_INCOMPLETE,
        sort_by=SortBy.DUE,
    ),
    ColumnConfig(
        id="doing",
        name="In Progress",
        status_tag="#doing",
        color="#0d6efd",
        completion=CompletionPolicy.MARK_INCOMPLETE,
        add_custom_tags=("#active",),
        max_tasks=5,
        sort_by=SortBy.CREATED,
    ),
    ColumnConfig(
        id="done",
        name="Completed",
        status_tag="#done",
        color="#198754",
        completion=CompletionPolicy.MARK_COMPLETE,
        sort_by=SortBy.CREATED,
        collapsible=True,
    ),
]
