"""
Column classification: which lane does a task belong in?

A task lands in the first column (config order) whose status tag it carries.
Tasks that carry none of the status tags go to the default bucket, which is
a named policy rather than an accident of the loop below.
"""
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from .schema import ColumnConfig, SortBy, TaskRecord, tags_match


class UnmatchedPolicy(Enum):
    """Where tasks without any status tag go."""
    FIRST_COLUMN = "first-column"


DEFAULT_BUCKET_POLICY = UnmatchedPolicy.FIRST_COLUMN


@dataclass(frozen=True)
class Classification:
    column: Optional[ColumnConfig]
    matched: bool                      # False -> placed by policy
    policy: UnmatchedPolicy = DEFAULT_BUCKET_POLICY


def classify_detailed(
    tags: Iterable[str],
    columns: Sequence[ColumnConfig],
    policy: UnmatchedPolicy = DEFAULT_BUCKET_POLICY,
) -> Classification:
    tags = list(tags)
    for column in columns:
        if any(tags_match(column.status_tag, t) for t in tags):
            return Classification(column=column, matched=True, policy=policy)

    if not columns:
        return Classification(column=None, matched=False, policy=policy)
    # Only one policy exists today
    return Classification(column=columns[0], matched=False, policy=policy)


def classify(
    tags: Iterable[str],
    columns: Sequence[ColumnConfig],
    policy: UnmatchedPolicy = DEFAULT_BUCKET_POLICY,
) -> Optional[ColumnConfig]:
    """Return the column for a tag set (None only when there are no columns)."""
    return classify_detailed(tags, columns, policy).column


def find_column(columns: Sequence[ColumnConfig], column_id: str) -> Optional[ColumnConfig]:
    for column in columns:
        if column.id == column_id:
            return column
    return None


# ── Grouping & sorting ───────────────────────────────────────────────────────


def _sort_key(sort_by: SortBy):
    if sort_by == SortBy.DUE:
        # undated tasks sink to the bottom
        return lambda t: (t.due_date is None, t.due_date or "")
    if sort_by == SortBy.PRIORITY:
        return lambda t: t.priority.rank
    if sort_by == SortBy.ALPHABETICAL:
        return lambda t: t.clean_text.lower()
    if sort_by == SortBy.CREATED:
        # no creation date on a line; document order is the closest proxy
        return lambda t: (t.source_file, t.source_line)
    return None


def sort_tasks(tasks: List[TaskRecord], sort_by: SortBy) -> List[TaskRecord]:
    key = _sort_key(sort_by)
    if key is None:
        return list(tasks)
    return sorted(tasks, key=key)


def group_by_column(
    tasks: Iterable[TaskRecord],
    columns: Sequence[ColumnConfig],
    policy: UnmatchedPolicy = DEFAULT_BUCKET_POLICY,
) -> Dict[str, List[TaskRecord]]:
    """Bucket tasks per column id, in column order, each bucket sorted."""
    grouped: Dict[str, List[TaskRecord]] = OrderedDict((c.id, []) for c in columns)
    for task in tasks:
        column = classify(task.tags, columns, policy)
        if column is not None:
            grouped[column.id].append(task)

    for column in columns:
        grouped[column.id] = sort_tasks(grouped[column.id], column.sort_by)
    return grouped
