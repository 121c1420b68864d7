"""
Line updater: the read -> locate -> mutate -> persist -> notify pipeline.

No lock is held between locating the line and writing the file back. If the
file is edited externally in that window the edit can be lost; the store has
no locking primitive to prevent it, and the window is one read plus one
write.
"""
import logging
from typing import Callable, List, Optional, Sequence

from .codec import TaskLineCodec
from .locator import locate
from .mutator import apply_completion_policy, apply_ops, insert_task_line, set_completion
from .schema import CompletionPolicy, LocatorMiss, MoveResult, TagUpdateOp, TaskRecord
from .store import FileStore

logger = logging.getLogger(__name__)


def _noop() -> None:
    pass


class TaskLineUpdater:
    """Rewrites single task lines in a FileStore."""

    def __init__(self, store: FileStore, notify: Optional[Callable[[], None]] = None,
                 codec: Optional[TaskLineCodec] = None):
        self.store = store
        self.notify = notify or _noop
        self.codec = codec or TaskLineCodec()

    async def apply(
        self,
        task: TaskRecord,
        ops: Sequence[TagUpdateOp],
        completion: CompletionPolicy = CompletionPolicy.NO_CHANGE,
    ) -> MoveResult:
        """
        Apply tag ops plus a completion policy to the task's line.

        Returns a failed MoveResult (LocatorMiss) when the line cannot be
        confirmed. Store errors (WriteFailure, FileNotFoundError) propagate.
        """
        content = await self.store.read(task.source_file)
        lines = content.split("\n")

        index = locate(lines, task, self.codec)
        if index is None:
            miss = LocatorMiss(source_file=task.source_file, clean_text=task.clean_text)
            logger.warning(miss.message)
            return MoveResult.failed(miss, ops=list(ops))

        original = lines[index]
        updated = apply_ops(original, ops)
        updated = apply_completion_policy(updated, completion)

        if updated == original:
            return MoveResult(success=True, message="No changes needed", line_index=index,
                              updated_line=original, ops=list(ops))

        lines[index] = updated
        await self.store.write(task.source_file, "\n".join(lines))
        self.notify()
        return MoveResult(success=True, message="Task updated", changed=True,
                          line_index=index, updated_line=updated, ops=list(ops))

    async def set_completed(self, task: TaskRecord, completed: bool) -> MoveResult:
        """Tick/untick one task without touching its tags."""
        content = await self.store.read(task.source_file)
        lines = content.split("\n")
        index = locate(lines, task, self.codec)
        if index is None:
            return MoveResult.failed(LocatorMiss(task.source_file, task.clean_text))

        updated = set_completion(lines[index], completed)
        if updated == lines[index]:
            return MoveResult(success=True, message="No changes needed", line_index=index,
                              updated_line=updated)
        lines[index] = updated
        await self.store.write(task.source_file, "\n".join(lines))
        self.notify()
        return MoveResult(success=True, message="Task updated", changed=True,
                          line_index=index, updated_line=updated)

    async def append_task(self, file_id: str, text: str, tags: Sequence[str] = ()) -> MoveResult:
        """Add one open task line to an existing file."""
        content = await self.store.read(file_id)
        lines: List[str] = content.split("\n")
        lines, index = insert_task_line(lines, text, tags)
        await self.store.write(file_id, "\n".join(lines))
        self.notify()
        logger.info(f"Created task in {file_id}:{index}")
        return MoveResult(success=True, message="Task created", changed=True,
                          line_index=index, updated_line=lines[index])
