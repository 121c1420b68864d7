"""
Filesystem watcher: external edits to task files -> refresh notifications.

Runs a watchdog Observer over the store root. Every create/modify/move/delete
of a task file asks the notifier for a refresh; the notifier coalesces the
burst, so an editor saving five times in a second triggers one re-render.
"""
import logging
from pathlib import Path
from typing import Callable, Optional, Sequence

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class TaskFileHandler(FileSystemEventHandler):
    """Routes task-file events to a notifier; ignores everything else."""

    def __init__(self, notify: Callable[[], None], extensions: Sequence[str] = (".md",)):
        self.notify = notify
        self.extensions = tuple(e.lower() for e in extensions)
        self.events_seen = 0

    def is_task_file(self, path: str) -> bool:
        p = Path(path)
        if p.name.startswith("."):
            return False  # hidden files and the store's temp files
        return p.suffix.lower() in self.extensions

    def on_any_event(self, fs_event):
        if fs_event.is_directory:
            return
        paths = [fs_event.src_path, getattr(fs_event, "dest_path", "") or ""]
        if not any(p and self.is_task_file(str(p)) for p in paths):
            return
        self.events_seen += 1
        logger.debug(f"{fs_event.event_type}: {fs_event.src_path}")
        self.notify()


def start_watching(
    root: str,
    notify: Callable[[], None],
    extensions: Sequence[str] = (".md",),
    observer: Optional[Observer] = None,
) -> Observer:
    """Start a recursive observer on ``root``. Caller stops and joins it."""
    observer = observer or Observer()
    observer.schedule(TaskFileHandler(notify, extensions), str(root), recursive=True)
    observer.start()
    logger.info(f"Watching {root} for task file changes")
    return observer
