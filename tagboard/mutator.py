"""
Pure string transforms on task lines.

Nothing here knows about files or stores: it takes a line (or a list of
lines) and returns the rewritten value. Every operation is idempotent.
"""
import re
from typing import Iterable, List, Sequence, Tuple

from .codec import CHECKBOX_RE, TAG_BOUNDARY
from .schema import CompletionPolicy, TagAction, TagUpdateOp, normalize_tag

_CHECKBOX_MARK_RE = re.compile(r"^(\s*[-*+] \[)([ xX])(\])")


def _tag_pattern(tag: str) -> "re.Pattern":
    # Token boundaries on both sides so "#do" never eats "#doing"
    return re.compile(r"\s*" + TAG_BOUNDARY + re.escape(normalize_tag(tag)) + r"(?![\w/-])", re.IGNORECASE)


def has_tag(line: str, tag: str) -> bool:
    return bool(tag) and bool(_tag_pattern(tag).search(line))


def add_tag(line: str, tag: str) -> str:
    tag = normalize_tag(tag)
    if not tag or has_tag(line, tag):
        return line
    return f"{line.rstrip()} {tag}"


def remove_tag(line: str, tag: str) -> str:
    if not tag:
        return line
    return _tag_pattern(tag).sub("", line).rstrip()


def apply_op(line: str, op: TagUpdateOp) -> str:
    if op.action == TagAction.ADD:
        return add_tag(line, op.tag)
    if op.action == TagAction.REMOVE:
        return remove_tag(line, op.tag)
    if op.action == TagAction.REPLACE:
        if op.old_tag:
            line = remove_tag(line, op.old_tag)
        return add_tag(line, op.tag)
    raise ValueError(f"Unknown tag action: {op.action}")


def apply_ops(line: str, ops: Iterable[TagUpdateOp]) -> str:
    for op in ops:
        line = apply_op(line, op)
    return line


# ── Completion ───────────────────────────────────────────────────────────────


def set_completion(line: str, completed: bool) -> str:
    """Tick or untick the checkbox. Non-task lines come back unchanged."""
    m = _CHECKBOX_MARK_RE.match(line)
    if not m:
        return line
    is_done = m.group(2) in ("x", "X")
    if is_done == completed:
        return line
    mark = "x" if completed else " "
    return m.group(1) + mark + m.group(3) + line[m.end():]


def apply_completion_policy(line: str, policy: CompletionPolicy) -> str:
    if policy == CompletionPolicy.MARK_COMPLETE:
        return set_completion(line, True)
    if policy == CompletionPolicy.MARK_INCOMPLETE:
        return set_completion(line, False)
    return line


# ── Insertion ────────────────────────────────────────────────────────────────


def build_task_line(text: str, tags: Sequence[str] = ()) -> str:
    line = f"- [ ] {text.strip()}"
    tag_str = " ".join(normalize_tag(t) for t in tags if t and t.strip("# "))
    return f"{line} {tag_str}" if tag_str else line


def insert_task_line(lines: List[str], text: str, tags: Sequence[str] = ()) -> Tuple[List[str], int]:
    """
    Insert a new open task after the last checkbox line (or at the end).

    Returns (new lines, index of the inserted line). An empty document
    becomes a single line.
    """
    new_line = build_task_line(text, tags)
    if not "".join(lines).strip():
        return [new_line], 0

    insert_at = len(lines)
    for i in range(len(lines) - 1, -1, -1):
        if CHECKBOX_RE.match(lines[i]):
            insert_at = i + 1
            break
    # Keep a trailing newline at the end of the file
    if insert_at == len(lines) and lines and lines[-1] == "":
        insert_at -= 1

    out = list(lines)
    out.insert(insert_at, new_line)
    return out, insert_at
