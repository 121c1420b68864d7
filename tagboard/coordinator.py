"""
Drag & drop coordinator.

States: IDLE -> DRAGGING (start) -> IDLE (drop / cancel / end).

The coordinator owns at most one DragSession. Callers hold the session as a
handle and pass it back on hover/drop; a handle that is not the current
session is stale and every mutating call with it is refused.
"""
import logging
import uuid
from typing import Callable, List, Optional, Sequence

from .planner import check_capacity, plan
from .schema import (
    CapacityExceeded,
    ColumnConfig,
    DragSession,
    DragState,
    MoveResult,
    StaleSession,
    TaskRecord,
)
from .serialization import restore, snapshot
from .updater import TaskLineUpdater

logger = logging.getLogger(__name__)

MoveCallback = Callable[[TaskRecord, str, str], None]


class DragDropCoordinator:
    """Runs one interactive move at a time against a column layout."""

    def __init__(
        self,
        updater: TaskLineUpdater,
        columns: Sequence[ColumnConfig],
        occupancy: Callable[[str], int],
        on_task_move: Optional[MoveCallback] = None,
    ):
        self.updater = updater
        self.columns: List[ColumnConfig] = list(columns)
        self.occupancy = occupancy
        self.on_task_move = on_task_move
        self._session: Optional[DragSession] = None

    @property
    def state(self) -> DragState:
        return DragState.DRAGGING if self._session is not None else DragState.IDLE

    @property
    def session(self) -> Optional[DragSession]:
        return self._session

    def is_current(self, session: Optional[DragSession]) -> bool:
        return session is not None and session is self._session and session.is_active

    # ── Transitions ──────────────────────────────────────────────────────────

    def start(self, task: TaskRecord, source_column: Optional[ColumnConfig]) -> DragSession:
        if self._session is not None:
            logger.warning(
                f"Drag {self._session.session_id} still active; replacing it"
            )
            self._session.is_active = False

        self._session = DragSession(
            session_id=uuid.uuid4().hex[:12],
            dragged_task=snapshot(task),
            source_column=source_column,
        )
        logger.debug(f"Drag {self._session.session_id} started from "
                     f"{source_column.id if source_column else '-'}")
        return self._session

    def hover(self, session: DragSession, column: Optional[ColumnConfig]) -> bool:
        """Record the candidate target. Returns False for a stale handle."""
        if not self.is_current(session):
            return False
        session.target_column = column
        logger.debug(f"Drag {session.session_id} over {column.id if column else '-'}")
        return True

    def leave(self, session: DragSession, column: ColumnConfig) -> bool:
        if not self.is_current(session):
            return False
        if session.target_column is not None and session.target_column.id == column.id:
            session.target_column = None
        return True

    def validate_drop(self, session: DragSession, target: ColumnConfig) -> Optional[CapacityExceeded]:
        """Capacity check only; same-column reorders always pass."""
        return check_capacity(session.source_column, target, self.occupancy(target.id))

    async def drop(self, session: DragSession, target: ColumnConfig) -> MoveResult:
        """
        Finish the move into ``target``.

        Always leaves the coordinator IDLE, whatever the outcome. A
        WriteFailure from the store propagates after the session is cleared.
        """
        if not self.is_current(session):
            stale = StaleSession(session.session_id)
            logger.warning(stale.message)
            return MoveResult.failed(stale)

        try:
            source = session.source_column
            if source is not None and source.id == target.id:
                return MoveResult(success=True, message="Same column, nothing to do")

            full = self.validate_drop(session, target)
            if full is not None:
                logger.warning(f"Drop rejected: {full.message}")
                return MoveResult.failed(full)

            task = restore(session.dragged_task)
            ops = plan(task, source, target, self.columns, self.occupancy(target.id))
            if isinstance(ops, CapacityExceeded):
                return MoveResult.failed(ops)

            result = await self.updater.apply(task, ops, target.completion)
            if result.success:
                from_id = source.id if source else ""
                logger.info(f"Moved '{task.clean_text[:40]}' {from_id or '?'} -> {target.id}")
                if self.on_task_move is not None:
                    self.on_task_move(task, from_id, target.id)
            return result
        finally:
            self._clear(session)

    def end(self, session: DragSession) -> bool:
        """Drag ended without a drop. Same as cancel for the current session."""
        if not self.is_current(session):
            return False
        self._clear(session)
        return True

    def cancel(self) -> None:
        if self._session is not None:
            logger.debug(f"Drag {self._session.session_id} cancelled")
            self._clear(self._session)

    def _clear(self, session: DragSession) -> None:
        session.is_active = False
        if self._session is session:
            self._session = None
