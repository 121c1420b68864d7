#!/usr/bin/env python3
"""
tagboard API server
-------------------
JSON API over a directory of markdown task files. Cards are checkbox lines;
columns are status tags; moving a card rewrites the tags on its line.

Usage:
    tagboard --config board.yaml
    tagboard --root ~/notes --port 3000

API:
    GET  /health              → { status, version }
    GET  /api/board           → { version, columns: [{..., tasks}], parents, total }
    GET  /api/columns         → { columns }
    POST /api/drag/start      → body { task_id }             → { session_id, source_column }
    POST /api/drag/hover      → body { session_id, column_id }
    POST /api/drag/leave      → body { session_id, column_id }
    POST /api/drag/drop       → body { session_id, column_id } → MoveResult
    POST /api/drag/cancel     → body { session_id }
    POST /api/tasks           → body { file, text, column_id? } → MoveResult
    POST /api/tasks/complete  → body { task_id, completed }    → MoveResult

Mutating routes need an X-API-Key header matching TAGBOARD_API_SECRET.
"""

import argparse
import asyncio
import hmac
import logging
import os
import sys
from functools import wraps
from typing import Optional

from flask import Flask, current_app, jsonify, request

from .board import TaskBoard
from .config import BoardConfig, ConfigError
from .schema import CapacityExceeded, DragSession, LocatorMiss, MoveResult, StaleSession
from .store import WriteFailure
from .watcher import start_watching

logger = logging.getLogger(__name__)

API_SECRET_ENV = "TAGBOARD_API_SECRET"


# ── Auth ─────────────────────────────────────────────────────────────────────


def require_api_key(f):
    """Decorator: reject requests without a valid X-API-Key header."""
    @wraps(f)
    def decorated(*args, **kwargs):
        secret = current_app.config.get("API_SECRET", "")
        if not secret:
            return jsonify({"error": f"{API_SECRET_ENV} not set"}), 503
        provided = request.headers.get("X-API-Key", "").strip()
        if not hmac.compare_digest(provided, secret):
            code = 401 if not provided else 403
            return jsonify({"error": "Unauthorized"}), code
        return f(*args, **kwargs)
    return decorated


# ── Helpers ──────────────────────────────────────────────────────────────────


def _status_for(result: MoveResult) -> int:
    if result.success:
        return 200
    if isinstance(result.failure, LocatorMiss):
        return 404
    if isinstance(result.failure, (CapacityExceeded, StaleSession)):
        return 409
    return 400


def _body() -> dict:
    return request.get_json(force=True, silent=True) or {}


def _session_for(board: TaskBoard, session_id: str) -> DragSession:
    """The live session for ``session_id``, or an inactive stand-in."""
    current = board.coordinator.session
    if current is not None and current.session_id == session_id:
        return current
    return DragSession(session_id=session_id, dragged_task={}, source_column=None, is_active=False)


# ── App factory ──────────────────────────────────────────────────────────────


def create_app(cfg: Optional[BoardConfig] = None, board: Optional[TaskBoard] = None,
               api_secret: Optional[str] = None) -> Flask:
    cfg = cfg or BoardConfig.load()
    board = board or TaskBoard(cfg)

    app = Flask(__name__)
    app.config["API_SECRET"] = api_secret if api_secret is not None else os.environ.get(API_SECRET_ENV, "")
    app.config["BOARD"] = board

    @app.errorhandler(WriteFailure)
    def handle_write_failure(e):
        logger.error(str(e))
        return jsonify({"error": str(e), "failure": "WriteFailure"}), 500

    @app.errorhandler(FileNotFoundError)
    def handle_missing_file(e):
        return jsonify({"error": f"File not found: {e.filename or e}"}), 404

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "version": board.version})

    @app.route("/api/board")
    def api_board():
        asyncio.run(board.load())
        return jsonify(board.to_dict())

    @app.route("/api/columns")
    def api_columns():
        return jsonify({"columns": [c.to_dict() for c in board.columns]})

    # ── Drag & drop ──────────────────────────────────────────────────────────

    @app.route("/api/drag/start", methods=["POST"])
    @require_api_key
    def api_drag_start():
        task_id = str(_body().get("task_id", "")).strip()
        if not task_id:
            return jsonify({"error": "task_id is required"}), 400
        asyncio.run(board.load())
        task = board.find_task(task_id)
        if task is None:
            return jsonify({"error": f"Unknown task: {task_id}"}), 404
        source = board.column_of(task)
        session = board.coordinator.start(task, source)
        return jsonify({
            "session_id": session.session_id,
            "source_column": source.id if source else None,
            "task": session.dragged_task,
        })

    @app.route("/api/drag/hover", methods=["POST"])
    @require_api_key
    def api_drag_hover():
        data = _body()
        column = board.column(str(data.get("column_id", "")))
        if column is None:
            return jsonify({"error": "Unknown column"}), 400
        session = _session_for(board, str(data.get("session_id", "")))
        if not board.coordinator.hover(session, column):
            return jsonify(MoveResult.failed(StaleSession(session.session_id)).to_dict()), 409
        valid = board.coordinator.validate_drop(session, column) is None
        return jsonify({"session_id": session.session_id, "target_column": column.id, "valid": valid})

    @app.route("/api/drag/leave", methods=["POST"])
    @require_api_key
    def api_drag_leave():
        data = _body()
        column = board.column(str(data.get("column_id", "")))
        if column is None:
            return jsonify({"error": "Unknown column"}), 400
        session = _session_for(board, str(data.get("session_id", "")))
        if not board.coordinator.leave(session, column):
            return jsonify(MoveResult.failed(StaleSession(session.session_id)).to_dict()), 409
        target = session.target_column
        return jsonify({"session_id": session.session_id, "target_column": target.id if target else None})

    @app.route("/api/drag/drop", methods=["POST"])
    @require_api_key
    def api_drag_drop():
        data = _body()
        column = board.column(str(data.get("column_id", "")))
        if column is None:
            return jsonify({"error": "Unknown column"}), 400
        session = _session_for(board, str(data.get("session_id", "")))

        async def run():
            # Fresh occupancy for the capacity check
            await board.load()
            return await board.coordinator.drop(session, column)

        result = asyncio.run(run())
        return jsonify(result.to_dict()), _status_for(result)

    @app.route("/api/drag/cancel", methods=["POST"])
    @require_api_key
    def api_drag_cancel():
        session = _session_for(board, str(_body().get("session_id", "")))
        ended = board.coordinator.end(session)
        return jsonify({"session_id": session.session_id, "cancelled": ended})

    # ── Direct task edits ────────────────────────────────────────────────────

    @app.route("/api/tasks", methods=["POST"])
    @require_api_key
    def api_create_task():
        data = _body()
        text = str(data.get("text", "")).strip()
        file_id = str(data.get("file", "")).strip()
        if not text or not file_id:
            return jsonify({"error": "file and text are required"}), 400
        column_id = data.get("column_id")
        if column_id and board.column(str(column_id)) is None:
            return jsonify({"error": "Unknown column"}), 400
        try:
            result = asyncio.run(board.create_task(file_id, text, column_id))
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        return jsonify(result.to_dict()), 201

    @app.route("/api/tasks/complete", methods=["POST"])
    @require_api_key
    def api_complete_task():
        data = _body()
        task_id = str(data.get("task_id", "")).strip()
        asyncio.run(board.load())
        task = board.find_task(task_id)
        if task is None:
            return jsonify({"error": f"Unknown task: {task_id}"}), 404
        result = asyncio.run(board.updater.set_completed(task, bool(data.get("completed", True))))
        return jsonify(result.to_dict()), _status_for(result)

    return app


# ── Entry point ──────────────────────────────────────────────────────────────


def main(argv=None):
    parser = argparse.ArgumentParser(description="Tag-driven kanban board over markdown task files")
    parser.add_argument("--config", help="Path to board.yaml")
    parser.add_argument("--root", help="Directory holding the task files")
    parser.add_argument("--host", help="Bind address")
    parser.add_argument("--port", type=int, help="Port")
    parser.add_argument("--no-watch", action="store_true", help="Do not watch files for external edits")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    try:
        cfg = BoardConfig.load(args.config)
    except ConfigError as e:
        logger.error(f"Config error: {e}")
        return 1
    if args.root:
        cfg.root_dir = args.root
        cfg.resolve_paths()
    if args.host:
        cfg.host = args.host
    if args.port:
        cfg.port = args.port

    board = TaskBoard(cfg, on_refresh=lambda: logger.info("Task files changed; board refresh due"))
    app = create_app(cfg, board)
    if not app.config["API_SECRET"]:
        logger.warning(f"{API_SECRET_ENV} not set; mutating routes will return 503")

    observer = None
    if cfg.watch and not args.no_watch:
        observer = start_watching(cfg.root_dir, board.notifier, cfg.file_extensions)

    logger.info(f"tagboard serving {cfg.root_dir} on http://{cfg.host}:{cfg.port}")
    try:
        app.run(host=cfg.host, port=cfg.port, threaded=False)
    finally:
        board.notifier.cancel()
        if observer is not None:
            observer.stop()
            observer.join()
    return 0


if __name__ == "__main__":
    sys.exit(main())
