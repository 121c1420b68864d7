"""
Task line codec: checkbox line <-> TaskRecord.

Two parser strategies exist because task files in the wild are written for
two different conventions:

  EXTENDED - full emoji marker set (dates, priority, recurrence)
  BASIC    - checkbox, due date, priority glyphs or priority tag words

Neither is a fallback for the other. The caller picks one explicitly
(config key ``parser``) and gets exactly that marker set.

Extraction order for EXTENDED is fixed: dates, priority, recurrence, tags.
Each step consumes its marker from the working text so later steps never
see it (a recurrence rule must not swallow a date, etc).
"""
import re
from enum import Enum
from typing import Optional, List, Dict

from .schema import TaskRecord, Priority, dedupe_tags


class ParserStrategy(Enum):
    BASIC = "basic"
    EXTENDED = "extended"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "ParserStrategy":
        if not value:
            return cls.EXTENDED
        return cls(str(value).strip().lower())


# ── Markers ──────────────────────────────────────────────────────────────────

CHECKBOX_RE = re.compile(r"^(\s*)([-*+]) \[([ xX])\]\s*(.*)$")
# Tags may also follow a checkbox's closing "]" with no space
TAG_BOUNDARY = r"(?<![^\s\]])"
TAG_RE = re.compile(TAG_BOUNDARY + r"#[\w/-]+")

# Field name -> glyph, in extraction order
DATE_MARKERS = (
    ("due_date", "📅"),
    ("scheduled_date", "⏳"),
    ("start_date", "🛫"),
    ("done_date", "✅"),
)
DATE_GLYPHS: Dict[str, str] = dict(DATE_MARKERS)

PRIORITY_GLYPHS: Dict[str, Priority] = {
    "⏫": Priority.HIGHEST,
    "🔼": Priority.HIGH,
    "🔽": Priority.LOW,
    "⏬": Priority.LOWEST,
}
GLYPH_FOR_PRIORITY: Dict[Priority, str] = {v: k for k, v in PRIORITY_GLYPHS.items()}

# BASIC also honours these tag words (the tag itself stays a tag)
PRIORITY_TAG_WORDS = (
    ("#urgent", Priority.HIGHEST),
    ("#high", Priority.HIGH),
    ("#low", Priority.LOW),
    ("#medium", Priority.NORMAL),
)

RECURRENCE_GLYPH = "🔁"

_VS = "\ufe0f?"  # optional emoji variation selector
_PRIORITY_RE = re.compile("(" + "|".join(PRIORITY_GLYPHS) + ")" + _VS)
_RECURRENCE_RE = re.compile(RECURRENCE_GLYPH + _VS + r"\s*([^#]*?)(?=\s+#|\s*$)")


def _date_re(glyph: str) -> "re.Pattern":
    return re.compile(glyph + _VS + r"\s*(\d{4}-\d{2}-\d{2})")


_DATE_RES = {name: _date_re(glyph) for name, glyph in DATE_MARKERS}


# ── Helpers ──────────────────────────────────────────────────────────────────


def is_checkbox_line(line: str) -> bool:
    """True if the line starts with an open or closed checkbox."""
    return bool(CHECKBOX_RE.match(line or ""))


def extract_tags(text: str) -> List[str]:
    return TAG_RE.findall(text or "")


def strip_tags(text: str) -> str:
    """Text with tag tokens removed and whitespace collapsed."""
    return _collapse(TAG_RE.sub("", text or ""))


def _collapse(text: str) -> str:
    return " ".join(text.split())


def _take(pattern: "re.Pattern", text: str):
    """Return (first group or None, text with the match removed)."""
    m = pattern.search(text)
    if not m:
        return None, text
    return m.group(1), text[:m.start()] + " " + text[m.end():]


# ── Codec ────────────────────────────────────────────────────────────────────


class TaskLineCodec:
    """Parse and format checkbox lines with one explicit strategy."""

    def __init__(self, strategy: ParserStrategy = ParserStrategy.EXTENDED):
        self.strategy = strategy

    def parse(self, raw_line: str, source_file: str = "", source_line: int = 0) -> Optional[TaskRecord]:
        """
        Parse one line. Returns None when the line is not a task.

        Never raises on malformed content: unknown markers simply stay in
        the clean text.
        """
        m = CHECKBOX_RE.match(raw_line or "")
        if not m:
            return None

        indent, _bullet, mark, content = m.groups()
        fields = {
            "raw_text": raw_line,
            "completed": mark in ("x", "X"),
            "source_file": source_file,
            "source_line": source_line,
            "indent": len(indent),
        }

        if self.strategy == ParserStrategy.BASIC:
            working = self._parse_basic(content, fields)
        else:
            working = self._parse_extended(content, fields)

        tags = extract_tags(working)
        fields["tags"] = dedupe_tags(tags)
        fields["clean_text"] = strip_tags(working)

        if self.strategy == ParserStrategy.BASIC and fields["priority"] == Priority.NORMAL:
            fields["priority"] = _priority_from_tags(tags)

        return TaskRecord(**fields)

    def _parse_extended(self, content: str, fields: dict) -> str:
        working = content

        # 1. dates
        for name, _glyph in DATE_MARKERS:
            value, working = _take(_DATE_RES[name], working)
            fields[name] = value

        # 2. priority
        glyph, working = _take(_PRIORITY_RE, working)
        fields["priority"] = PRIORITY_GLYPHS.get(glyph, Priority.NORMAL)

        # 3. recurrence (free text up to next tag or EOL)
        rule, working = _take(_RECURRENCE_RE, working)
        rule = _collapse(rule or "")
        fields["recurrence_rule"] = rule or None

        return working

    def _parse_basic(self, content: str, fields: dict) -> str:
        working = content
        fields["due_date"], working = _take(_DATE_RES["due_date"], working)
        glyph, working = _take(_PRIORITY_RE, working)
        fields["priority"] = PRIORITY_GLYPHS.get(glyph, Priority.NORMAL)
        return working

    def format(self, record: TaskRecord) -> str:
        """
        Build a line in canonical field order:
        checkbox, text, priority, scheduled, start, due, done, recurrence, tags.
        """
        parts = [" " * record.indent + ("- [x]" if record.completed else "- [ ]")]
        if record.clean_text:
            parts.append(record.clean_text)

        if record.priority != Priority.NORMAL:
            parts.append(GLYPH_FOR_PRIORITY[record.priority])

        if self.strategy == ParserStrategy.BASIC:
            if record.due_date:
                parts.append(f"{DATE_GLYPHS['due_date']} {record.due_date}")
        else:
            for name in ("scheduled_date", "start_date", "due_date", "done_date"):
                value = getattr(record, name)
                if value:
                    parts.append(f"{DATE_GLYPHS[name]} {value}")
            if record.recurrence_rule:
                parts.append(f"{RECURRENCE_GLYPH} {record.recurrence_rule}")

        parts.extend(record.tags)
        return " ".join(parts)


def _priority_from_tags(tags: List[str]) -> Priority:
    lowered = {t.lower() for t in tags}
    for word, priority in PRIORITY_TAG_WORDS:
        if word in lowered:
            return priority
    return Priority.NORMAL


_DEFAULT = TaskLineCodec()


def parse_line(raw_line: str, source_file: str = "", source_line: int = 0) -> Optional[TaskRecord]:
    """Parse with the EXTENDED strategy."""
    return _DEFAULT.parse(raw_line, source_file, source_line)


def format_record(record: TaskRecord) -> str:
    return _DEFAULT.format(record)
