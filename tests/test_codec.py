"""Tests for the task line codec: both marker sets, formatting, edge cases."""
import pytest

from tagboard.codec import (
    ParserStrategy,
    TaskLineCodec,
    extract_tags,
    format_record,
    is_checkbox_line,
    parse_line,
    strip_tags,
)
from tagboard.schema import Priority, TaskRecord


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Line shape
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@pytest.mark.parametrize("line", [
    "plain paragraph",
    "- [] missing space",
    "- bullet without box",
    "",
    "#todo on its own",
])
def test_non_task_lines_parse_to_none(line):
    assert parse_line(line) is None
    assert not is_checkbox_line(line)


def test_open_and_closed_boxes():
    assert parse_line("- [ ] a").completed is False
    assert parse_line("- [x] a").completed is True
    assert parse_line("* [X] a").completed is True


def test_indent_and_location_recorded():
    task = parse_line("    - [ ] child task", "notes/a.md", 7)
    assert task.indent == 4
    assert task.source_file == "notes/a.md"
    assert task.source_line == 7
    assert task.clean_text == "child task"


def test_tags_extracted_and_stripped():
    task = parse_line("- [ ] Ship release #doing #urgent")
    assert task.tags == ("#doing", "#urgent")
    assert task.clean_text == "Ship release"
    assert task.raw_text == "- [ ] Ship release #doing #urgent"


def test_duplicate_tags_collapse_case_insensitively():
    task = parse_line("- [ ] a #Todo #todo #x")
    assert task.tags == ("#Todo", "#x")


def test_tag_helpers():
    assert extract_tags("fix #bug in a#b and #area/ui") == ["#bug", "#area/ui"]
    assert strip_tags("fix #bug   now") == "fix now"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Extended marker set
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestExtendedParser:

    def test_all_dates(self):
        task = parse_line("- [x] Report ⏳ 2024-01-01 🛫 2024-01-02 📅 2024-01-05 ✅ 2024-01-04")
        assert task.scheduled_date == "2024-01-01"
        assert task.start_date == "2024-01-02"
        assert task.due_date == "2024-01-05"
        assert task.done_date == "2024-01-04"
        assert task.clean_text == "Report"

    @pytest.mark.parametrize("glyph,priority", [
        ("⏫", Priority.HIGHEST),
        ("🔼", Priority.HIGH),
        ("🔽", Priority.LOW),
        ("⏬", Priority.LOWEST),
    ])
    def test_priority_glyphs(self, glyph, priority):
        task = parse_line(f"- [ ] Thing {glyph}")
        assert task.priority == priority
        assert task.clean_text == "Thing"

    def test_no_glyph_is_normal_priority(self):
        # Tag words only mean something to the basic parser
        assert parse_line("- [ ] Thing #urgent").priority == Priority.NORMAL

    def test_recurrence_stops_at_tag(self):
        task = parse_line("- [ ] Pay rent 🔁 every month 📅 2024-05-01 ⏫ #home")
        assert task.recurrence_rule == "every month"
        assert task.due_date == "2024-05-01"
        assert task.priority == Priority.HIGHEST
        assert task.tags == ("#home",)
        assert task.clean_text == "Pay rent"

    def test_recurrence_to_end_of_line(self):
        task = parse_line("- [ ] Water plants 🔁 every week on Sunday")
        assert task.recurrence_rule == "every week on Sunday"
        assert task.clean_text == "Water plants"

    def test_malformed_date_stays_in_text(self):
        task = parse_line("- [ ] Thing 📅 soon")
        assert task.due_date is None
        assert "📅 soon" in task.clean_text


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Basic marker set
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestBasicParser:

    @pytest.fixture
    def codec(self):
        return TaskLineCodec(ParserStrategy.BASIC)

    def test_due_date(self, codec):
        assert codec.parse("- [ ] Thing 📅 2024-03-01").due_date == "2024-03-01"

    def test_other_dates_left_in_text(self, codec):
        task = codec.parse("- [ ] Thing ⏳ 2024-03-01")
        assert task.scheduled_date is None
        assert task.clean_text == "Thing ⏳ 2024-03-01"

    @pytest.mark.parametrize("tag,priority", [
        ("#urgent", Priority.HIGHEST),
        ("#high", Priority.HIGH),
        ("#low", Priority.LOW),
        ("#medium", Priority.NORMAL),
    ])
    def test_priority_tag_words(self, codec, tag, priority):
        task = codec.parse(f"- [ ] Thing {tag}")
        assert task.priority == priority
        assert task.has_tag(tag)

    def test_glyph_beats_tag_word(self, codec):
        assert codec.parse("- [ ] Thing 🔽 #urgent").priority == Priority.LOW

    def test_recurrence_not_parsed(self, codec):
        task = codec.parse("- [ ] Thing 🔁 every day")
        assert task.recurrence_rule is None


def test_strategy_from_str():
    assert ParserStrategy.from_str(None) == ParserStrategy.EXTENDED
    assert ParserStrategy.from_str("Basic") == ParserStrategy.BASIC
    with pytest.raises(ValueError):
        ParserStrategy.from_str("dataview")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Formatting
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_format_canonical_order():
    task = parse_line("- [ ] Pay rent #home 🔁 every month 📅 2024-05-01 ⏫ ⏳ 2024-04-28")
    assert format_record(task) == "- [ ] Pay rent ⏫ ⏳ 2024-04-28 📅 2024-05-01 🔁 every month #home"


def _roundtrip_cases():
    cases = []
    for strategy in ParserStrategy:
        for priority in Priority:
            record = TaskRecord(
                raw_text="",
                clean_text="Review PR",
                completed=priority.rank % 2 == 1,
                due_date="2024-02-02",
                priority=priority,
                tags=("#work", "#review"),
                indent=2,
            )
            cases.append(pytest.param(strategy, record, id=f"{strategy.value}-{priority.value}"))

    extended = [
        ("all-dates", TaskRecord(
            raw_text="", clean_text="Quarterly report", completed=True,
            scheduled_date="2024-03-01", start_date="2024-03-02",
            due_date="2024-03-10", done_date="2024-03-09",
            priority=Priority.HIGH, tags=("#work",),
        )),
        ("recurrence-then-tags", TaskRecord(
            raw_text="", clean_text="Take out bins",
            recurrence_rule="every week on Monday", due_date="2024-04-01",
            tags=("#home", "#chores"),
        )),
        ("recurrence-at-end", TaskRecord(
            raw_text="", clean_text="Water plants",
            recurrence_rule="every 3 days", priority=Priority.LOWEST,
        )),
        ("bare", TaskRecord(raw_text="", clean_text="Just text")),
    ]
    for name, record in extended:
        cases.append(pytest.param(ParserStrategy.EXTENDED, record, id=f"extended-{name}"))
    return cases


@pytest.mark.parametrize("strategy,record", _roundtrip_cases())
def test_format_then_parse_keeps_fields(strategy, record):
    codec = TaskLineCodec(strategy)
    again = codec.parse(codec.format(record))
    assert again is not None
    assert again.clean_text == record.clean_text
    assert again.completed == record.completed
    assert again.tags == record.tags
    assert again.due_date == record.due_date
    assert again.priority == record.priority
    assert again.recurrence_rule == record.recurrence_rule
    assert again.indent == record.indent
    if strategy == ParserStrategy.EXTENDED:
        assert again.scheduled_date == record.scheduled_date
        assert again.start_date == record.start_date
        assert again.done_date == record.done_date


def test_basic_format_omits_extended_fields():
    codec = TaskLineCodec(ParserStrategy.BASIC)
    task = parse_line("- [ ] A 🔁 every day ⏳ 2024-01-01 📅 2024-01-02 #x")
    assert codec.format(task) == "- [ ] A 📅 2024-01-02 #x"
