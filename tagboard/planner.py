"""
Tag update planning for a column transition.

Given a task and where it is going, compute the smallest set of tag
operations that makes the line belong to the target column. The planner
never touches text; the mutator applies what it returns.
"""
from typing import List, Optional, Sequence, Union

from .schema import (
    CapacityExceeded,
    ColumnConfig,
    TagAction,
    TagUpdateOp,
    TaskRecord,
    normalize_tag,
    tags_match,
)


def _same_column(a: Optional[ColumnConfig], b: Optional[ColumnConfig]) -> bool:
    return a is not None and b is not None and a.id == b.id


def check_capacity(
    source_column: Optional[ColumnConfig],
    target_column: ColumnConfig,
    occupancy: int,
) -> Optional[CapacityExceeded]:
    """
    Return CapacityExceeded if a cross-column move would overfill the target.

    Same-column reorders are never capacity checked.
    """
    if _same_column(source_column, target_column):
        return None
    if target_column.max_tasks is None:
        return None
    if occupancy >= target_column.max_tasks:
        return CapacityExceeded(
            column_id=target_column.id,
            column_name=target_column.name,
            max_tasks=target_column.max_tasks,
            occupancy=occupancy,
        )
    return None


def plan(
    task: TaskRecord,
    source_column: Optional[ColumnConfig],
    target_column: ColumnConfig,
    columns: Sequence[ColumnConfig],
    occupancy: int = 0,
) -> Union[List[TagUpdateOp], CapacityExceeded]:
    """
    Ops to move ``task`` into ``target_column``.

    Steps, in order:
      1. capacity check (abort with no ops)
      2. remove tags belonging to other columns, if the target asks for it
      3. add the target status tag if missing
      4. add the target's custom tags if missing
    """
    full = check_capacity(source_column, target_column, occupancy)
    if full is not None:
        return full

    ops: List[TagUpdateOp] = []

    if target_column.remove_conflicting_tags:
        others = [c for c in columns if c.id != target_column.id]
        for tag in task.tags:
            if tags_match(tag, target_column.status_tag):
                continue
            if any(c.matches_tag(tag) for c in others):
                ops.append(TagUpdateOp(TagAction.REMOVE, tag))

    if target_column.status_tag and not task.has_tag(target_column.status_tag):
        ops.append(TagUpdateOp(TagAction.ADD, normalize_tag(target_column.status_tag)))

    for custom in target_column.add_custom_tags:
        if not task.has_tag(custom) and not any(tags_match(op.tag, custom) for op in ops):
            ops.append(TagUpdateOp(TagAction.ADD, normalize_tag(custom)))

    return ops
