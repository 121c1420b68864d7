"""Tests for the local file store, the file-scanning query engine and the line updater."""
import asyncio

import pytest

from tagboard.codec import ParserStrategy, TaskLineCodec, parse_line
from tagboard.query import FileTaskQuery, normalize_results, parse_query
from tagboard.schema import CompletionPolicy, LocatorMiss, TagAction, TagUpdateOp
from tagboard.store import LocalFileStore, WriteFailure
from tagboard.updater import TaskLineUpdater


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Store
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestLocalFileStore:

    def test_read_write_roundtrip_verbatim(self, store):
        text = "# T\r\n- [ ] a\n\n"
        asyncio.run(store.write("t.md", text))
        assert asyncio.run(store.read("t.md")) == text

    def test_list_files_skips_hidden_and_other_extensions(self, store, notes_dir):
        (notes_dir / "sub").mkdir()
        (notes_dir / ".obsidian").mkdir()
        (notes_dir / "a.md").write_text("")
        (notes_dir / "sub" / "b.md").write_text("")
        (notes_dir / ".obsidian" / "c.md").write_text("")
        (notes_dir / "d.txt").write_text("")
        assert store.list_files() == ["a.md", "sub/b.md"]

    def test_resolve_refuses_escape(self, store):
        with pytest.raises(ValueError):
            store.resolve("../outside.md")

    def test_missing_file(self, store):
        with pytest.raises(FileNotFoundError):
            asyncio.run(store.read("nope.md"))

    def test_write_failure_leaves_no_temp_file(self, store, notes_dir):
        with pytest.raises(WriteFailure) as exc:
            asyncio.run(store.write("missing-dir/x.md", "text"))
        assert exc.value.file_id == "missing-dir/x.md"
        assert list(notes_dir.iterdir()) == []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Query
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_parse_query_terms():
    q = parse_query("@task #work -#done path:projects/ not done")
    assert q.require_tags == ["#work"]
    assert q.exclude_tags == ["#done"]
    assert q.path_prefix == "projects/"
    assert q.completed is False


class TestFileTaskQuery:

    @pytest.fixture
    def engine(self, store, notes_dir):
        (notes_dir / "projects").mkdir()
        (notes_dir / "a.md").write_text("# A\n- [ ] one #work\n- [x] two #work #done\ntext\n")
        (notes_dir / "projects" / "b.md").write_text("- [ ] three #home\n")
        return FileTaskQuery(store)

    def test_all_tasks(self, engine):
        results = asyncio.run(engine.query("@task"))
        assert [(r["file"], r["line"], r["text"]) for r in results] == [
            ("a.md", 1, "one"),
            ("a.md", 2, "two"),
            ("projects/b.md", 0, "three"),
        ]

    def test_filters(self, engine):
        assert [r["text"] for r in asyncio.run(engine.query("#work -#done"))] == ["one"]
        assert [r["text"] for r in asyncio.run(engine.query("done"))] == ["two"]
        assert [r["text"] for r in asyncio.run(engine.query("path:projects/"))] == ["three"]

    def test_normalize_query_results(self, engine):
        items = asyncio.run(engine.query("@task"))
        records, parents = normalize_results(items, engine.codec)
        assert [r.source_line for r in records] == [1, 2, 0]
        assert records[1].completed is True
        assert parents == {}


def test_normalize_loose_records_without_raw_line():
    codec = TaskLineCodec(ParserStrategy.EXTENDED)
    items = [
        {"$text": "Plan trip #travel", "$file": "t.md", "$line": 2, "$tags": ["#travel"]},
        {"$file": "t.md", "$line": 5},
    ]
    records, _ = normalize_results(items, codec)
    assert len(records) == 1
    assert records[0].clean_text == "Plan trip"
    assert records[0].tags == ("#travel",)
    assert records[0].raw_text == "- [ ] Plan trip #travel"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Updater
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestTaskLineUpdater:

    @pytest.fixture
    def board_file(self, notes_dir):
        path = notes_dir / "board.md"
        path.write_text("# Board\n- [ ] Ship release #doing #urgent\n- [ ] Other #todo\n")
        return path

    def test_apply_rewrites_one_line(self, store, notifier, board_file):
        task = parse_line("- [ ] Ship release #doing #urgent", "board.md", 1)
        ops = [TagUpdateOp(TagAction.REMOVE, "#doing"), TagUpdateOp(TagAction.ADD, "#done")]
        result = asyncio.run(TaskLineUpdater(store, notifier).apply(task, ops, CompletionPolicy.MARK_COMPLETE))
        assert result.success and result.changed
        assert result.line_index == 1
        assert board_file.read_text() == "# Board\n- [x] Ship release #urgent #done\n- [ ] Other #todo\n"
        assert notifier.calls == 1

    def test_apply_twice_writes_once(self, store, notifier, board_file):
        task = parse_line("- [ ] Other #todo", "board.md", 2)
        updater = TaskLineUpdater(store, notifier)
        ops = [TagUpdateOp(TagAction.ADD, "#later")]
        asyncio.run(updater.apply(task, ops))
        second = asyncio.run(updater.apply(task, ops))
        assert second.success and not second.changed
        assert notifier.calls == 1
        assert board_file.read_text().count("#later") == 1

    def test_locator_miss_leaves_file_alone(self, store, notifier, board_file):
        before = board_file.read_text()
        task = parse_line("- [ ] Deleted elsewhere #todo", "board.md", 1)
        result = asyncio.run(TaskLineUpdater(store, notifier).apply(task, [TagUpdateOp(TagAction.ADD, "#x")]))
        assert not result.success
        assert isinstance(result.failure, LocatorMiss)
        assert board_file.read_text() == before
        assert notifier.calls == 0

    def test_set_completed(self, store, board_file):
        task = parse_line("- [ ] Other #todo", "board.md", 2)
        result = asyncio.run(TaskLineUpdater(store).set_completed(task, True))
        assert result.changed
        assert "- [x] Other #todo" in board_file.read_text()

    def test_append_task(self, store, notifier, board_file):
        result = asyncio.run(TaskLineUpdater(store, notifier).append_task("board.md", "New one", ["#todo"]))
        assert result.line_index == 3
        assert board_file.read_text().splitlines()[3] == "- [ ] New one #todo"
        assert board_file.read_text().endswith("\n")
