"""
Find a task's current line in file content that may have shifted since the
task was indexed.

The recorded line number is only a hint. A line is accepted when it is still
a checkbox line and still carries the task's clean text; otherwise the file
is scanned top to bottom. Confirming content is what stops a move from
rewriting whatever line happens to sit at the old index.

Candidate lines are parsed with the same codec that produced the task, so
markers sitting between words (dates, priority, recurrence, tags) never
defeat the comparison.
"""
from typing import Optional, Sequence

from .codec import TaskLineCodec, strip_tags
from .schema import TaskRecord

_DEFAULT_CODEC = TaskLineCodec()


def line_matches(line: str, task: TaskRecord, codec: Optional[TaskLineCodec] = None) -> bool:
    """Checkbox-shaped and still the same task."""
    record = (codec or _DEFAULT_CODEC).parse(line)
    if record is None:
        return False

    clean_text = task.clean_text
    if not clean_text:
        # Nothing but markers and tags: require the exact tag set
        return not record.clean_text and record.tag_set == task.tag_set

    if clean_text in line or clean_text in strip_tags(line):
        return True
    return clean_text in record.clean_text


def locate(file_lines: Sequence[str], task: TaskRecord,
           codec: Optional[TaskLineCodec] = None) -> Optional[int]:
    """Index of the task line, or None when it cannot be confirmed."""
    hint = task.source_line
    if hint is not None and 0 <= hint < len(file_lines):
        if line_matches(file_lines[hint], task, codec):
            return hint

    if not task.clean_text:
        return None

    for i, line in enumerate(file_lines):
        if line_matches(line, task, codec):
            return i
    return None
