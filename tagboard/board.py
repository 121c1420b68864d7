"""
Board service: one configured board over one file store.

Wires store -> query engine -> codec -> classifier, and owns the drag
coordinator and the debounced refresh notifier for that board.
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from .classifier import classify, find_column, group_by_column
from .codec import ParserStrategy, TaskLineCodec
from .config import BoardConfig
from .coordinator import DragDropCoordinator
from .notifier import DebouncedNotifier
from .query import FileTaskQuery, QueryEngine, normalize_results
from .schema import ColumnConfig, MoveResult, TaskRecord
from .serialization import generate_id, snapshot
from .store import FileStore, LocalFileStore
from .updater import TaskLineUpdater

logger = logging.getLogger(__name__)


class TaskBoard:
    """Loaded tasks plus the machinery to move them between columns."""

    def __init__(
        self,
        cfg: BoardConfig,
        store: Optional[FileStore] = None,
        engine: Optional[QueryEngine] = None,
        on_refresh: Optional[Callable[[], None]] = None,
    ):
        self.cfg = cfg
        self.columns: List[ColumnConfig] = list(cfg.columns)
        self.codec = TaskLineCodec(ParserStrategy.from_str(cfg.parser))
        self.store = store or LocalFileStore(cfg.root_dir, cfg.file_extensions)
        self.engine = engine or FileTaskQuery(self.store, self.codec)

        self.version = 0
        self._on_refresh = on_refresh
        self._lock = threading.Lock()
        self.notifier = DebouncedNotifier(self._refreshed, cfg.refresh_debounce_ms)

        self.updater = TaskLineUpdater(self.store, self.notifier, self.codec)
        self.coordinator = DragDropCoordinator(self.updater, self.columns, self.occupancy)

        self.tasks: List[TaskRecord] = []
        self.parents: Dict[str, str] = {}

    def _refreshed(self) -> None:
        with self._lock:
            self.version += 1
        if self._on_refresh is not None:
            self._on_refresh()

    # ── Loading ──────────────────────────────────────────────────────────────

    async def load(self) -> List[TaskRecord]:
        items = await self.engine.query(self.cfg.query)
        self.tasks, self.parents = normalize_results(items, self.codec)
        logger.debug(f"Loaded {len(self.tasks)} tasks")
        return self.tasks

    def grouped(self) -> Dict[str, List[TaskRecord]]:
        return group_by_column(self.tasks, self.columns)

    def occupancy(self, column_id: str) -> int:
        count = 0
        for task in self.tasks:
            column = classify(task.tags, self.columns)
            if column is not None and column.id == column_id:
                count += 1
        return count

    def column(self, column_id: str) -> Optional[ColumnConfig]:
        return find_column(self.columns, column_id)

    def column_of(self, task: TaskRecord) -> Optional[ColumnConfig]:
        return classify(task.tags, self.columns)

    def find_task(self, task_id: str) -> Optional[TaskRecord]:
        for task in self.tasks:
            if generate_id(task) == task_id:
                return task
        return None

    # ── Direct operations ────────────────────────────────────────────────────

    async def create_task(self, file_id: str, text: str, column_id: Optional[str] = None) -> MoveResult:
        """Append an open task, tagged for ``column_id`` (first column by default)."""
        column = self.column(column_id) if column_id else (self.columns[0] if self.columns else None)
        tags = [column.status_tag] if column is not None else []
        return await self.updater.append_task(file_id, text, tags)

    def to_dict(self) -> Dict[str, Any]:
        grouped = self.grouped()
        return {
            "version": self.version,
            "columns": [
                {**c.to_dict(), "tasks": [snapshot(t) for t in grouped[c.id]], "count": len(grouped[c.id])}
                for c in self.columns
            ],
            "parents": self.parents,
            "total": len(self.tasks),
        }
