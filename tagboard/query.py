"""
Query engine interface and the default file-scanning engine.

Query results are loosely typed: any mapping or object exposing at least
text/file/line/tags/due/priority/completed. normalize_results() is the one
place such records become TaskRecords; everything downstream works on the
flat records only.

Query language of FileTaskQuery (whitespace separated, all terms ANDed):

    @task           every task (implicit)
    #tag            must carry tag
    -#tag           must not carry tag
    path:prefix     file id starts with prefix
    done            completed tasks only
    not done        open tasks only
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from .codec import TaskLineCodec, is_checkbox_line, strip_tags
from .schema import TaskRecord, tag_key
from .serialization import get_field, build_parent_index, restore, snapshot
from .store import FileStore

logger = logging.getLogger(__name__)


@dataclass
class TaskQuery:
    require_tags: List[str] = field(default_factory=list)
    exclude_tags: List[str] = field(default_factory=list)
    path_prefix: str = ""
    completed: Optional[bool] = None

    def matches(self, task: TaskRecord) -> bool:
        keys = task.tag_set
        if any(tag_key(t) not in keys for t in self.require_tags):
            return False
        if any(tag_key(t) in keys for t in self.exclude_tags):
            return False
        if self.path_prefix and not task.source_file.startswith(self.path_prefix):
            return False
        if self.completed is not None and task.completed != self.completed:
            return False
        return True


def parse_query(query_string: str) -> TaskQuery:
    q = TaskQuery()
    tokens = (query_string or "").split()
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        low = tok.lower()
        if low == "@task":
            pass
        elif low == "not" and i + 1 < len(tokens) and tokens[i + 1].lower() == "done":
            q.completed = False
            i += 1
        elif low == "done":
            q.completed = True
        elif tok.startswith("-#"):
            q.exclude_tags.append(tok[1:])
        elif tok.startswith("#"):
            q.require_tags.append(tok)
        elif low.startswith("path:"):
            q.path_prefix = tok[5:]
        else:
            logger.debug(f"Ignoring unknown query term: {tok}")
        i += 1
    return q


class QueryEngine:
    """Interface: return task-like records for a query string."""

    async def query(self, query_string: str) -> List[Any]:
        raise NotImplementedError


class FileTaskQuery(QueryEngine):
    """Scan every file in a store and yield matching checkbox lines."""

    def __init__(self, store: FileStore, codec: Optional[TaskLineCodec] = None):
        self.store = store
        self.codec = codec or TaskLineCodec()

    async def query(self, query_string: str = "@task") -> List[Dict[str, Any]]:
        q = parse_query(query_string)
        results = []
        for file_id in self.store.list_files():
            if q.path_prefix and not file_id.startswith(q.path_prefix):
                continue
            content = await self.store.read(file_id)
            for i, line in enumerate(content.split("\n")):
                record = self.codec.parse(line, file_id, i)
                if record is None or not q.matches(record):
                    continue
                results.append({
                    "text": record.clean_text,
                    "raw": line,
                    "file": file_id,
                    "line": i,
                    "tags": list(record.tags),
                    "due": record.due_date,
                    "priority": record.priority.value,
                    "completed": record.completed,
                })
        return results


# ── Normalization ────────────────────────────────────────────────────────────


def normalize_record(item: Any, codec: TaskLineCodec) -> Optional[TaskRecord]:
    """
    One query result -> TaskRecord.

    When the record carries its raw checkbox line, the codec parses it (the
    line is the source of truth). Otherwise the record's own fields are
    taken through snapshot/restore, which drops back-references.
    """
    data = snapshot(item)
    raw = data.get("raw") or ""
    if not raw and is_checkbox_line(data.get("text") or ""):
        raw = data["text"]
    if raw and is_checkbox_line(raw):
        record = codec.parse(raw, data["file"], data["line"])
        if record is not None:
            return record

    if not data.get("text") and not data.get("tags"):
        return None
    record = restore(data)
    record = replace(record, clean_text=strip_tags(record.clean_text))
    if not record.raw_text:
        # Keep a formatted line so the record is self-describing
        record = replace(record, raw_text=codec.format(record))
    return record


def normalize_results(items: List[Any], codec: TaskLineCodec) -> Tuple[List[TaskRecord], Dict[str, str]]:
    """Records plus the ``task id -> parent id`` side table."""
    records = []
    for item in items:
        record = normalize_record(item, codec)
        if record is not None:
            records.append(record)
        else:
            logger.debug(f"Skipping non-task query result from {get_field(item, '$file', 'file', default='?')}")
    return records, build_parent_index(items)
