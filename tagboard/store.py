"""
File store backend: where task lines live.

The board only needs read / write / resolve on opaque file ids. The default
LocalFileStore maps ids to paths relative to a root directory. Content is
handled verbatim; lines are split and joined on "\\n" by the callers.
"""
import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)


class WriteFailure(Exception):
    """The store rejected a write. Never retried automatically."""

    def __init__(self, file_id: str, reason: str = ""):
        self.file_id = file_id
        self.reason = reason
        super().__init__(f"Write to {file_id} failed: {reason}" if reason else f"Write to {file_id} failed")


class FileStore:
    """Interface consumed by the board. Subclasses implement all four."""

    async def read(self, file_id: str) -> str:
        raise NotImplementedError

    async def write(self, file_id: str, text: str) -> None:
        raise NotImplementedError

    def resolve(self, path: str) -> Path:
        raise NotImplementedError

    def list_files(self) -> List[str]:
        raise NotImplementedError


class LocalFileStore(FileStore):
    """Directory-backed store. File ids are POSIX paths relative to root."""

    def __init__(self, root: Optional[str] = None, extensions: Sequence[str] = (".md",)):
        if root is None:
            root = str(Path.home() / "notes")
        self.root = Path(root).expanduser().resolve()
        self.extensions = tuple(e.lower() for e in extensions)
        self.root.mkdir(parents=True, exist_ok=True)

    def resolve(self, path: str) -> Path:
        """Absolute path for a file id. Refuses ids that escape the root."""
        candidate = (self.root / path).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise ValueError(f"Path escapes store root: {path}")
        return candidate

    def file_id(self, path: Path) -> str:
        return Path(path).resolve().relative_to(self.root).as_posix()

    def list_files(self) -> List[str]:
        """All task files under root, hidden directories skipped, sorted."""
        found = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for name in filenames:
                if Path(name).suffix.lower() in self.extensions:
                    found.append(self.file_id(Path(dirpath) / name))
        return sorted(found)

    # ── I/O ──────────────────────────────────────────────────────────────────

    def _read_sync(self, file_id: str) -> str:
        with open(self.resolve(file_id), "r", encoding="utf-8", newline="") as f:
            return f.read()

    def _write_sync(self, file_id: str, text: str) -> None:
        path = self.resolve(file_id)
        tmp = path.with_name(f".{path.name}.tmp")
        try:
            with open(tmp, "w", encoding="utf-8", newline="") as f:
                f.write(text)
            # Atomic swap: readers see the old file or the new one
            os.replace(tmp, path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise WriteFailure(file_id, str(e)) from e

    async def read(self, file_id: str) -> str:
        return await asyncio.to_thread(self._read_sync, file_id)

    async def write(self, file_id: str, text: str) -> None:
        await asyncio.to_thread(self._write_sync, file_id, text)
        logger.debug(f"Wrote {file_id} ({len(text)} chars)")
