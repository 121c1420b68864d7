# tagboard: configuration
# Board layout and runtime settings via board.yaml or CLI args.

import re
import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .schema import ColumnConfig, CompletionPolicy, SortBy, DEFAULT_COLUMNS, normalize_tag, dedupe_tags
from .codec import ParserStrategy

CONFIG_PATH = Path.cwd() / "board.yaml"

DEFAULT_PALETTE = ["#fd7e14", "#0d6efd", "#198754", "#6f42c1", "#dc3545", "#20c997"]


class ConfigError(ValueError):
    """Board configuration is unusable."""


@dataclass
class BoardConfig:
    """Runtime configuration for one board."""

    # Where task files live
    root_dir: str = "~/notes"
    file_extensions: List[str] = field(default_factory=lambda: [".md"])

    # What goes on the board
    query: str = "@task"
    parser: str = "extended"
    columns: List[ColumnConfig] = field(default_factory=lambda: list(DEFAULT_COLUMNS))

    # Behavior
    refresh_debounce_ms: int = 500
    watch: bool = True

    # API server
    host: str = "127.0.0.1"
    port: int = 3000

    def resolve_paths(self):
        self.root_dir = str(Path(self.root_dir).expanduser())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoardConfig":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__ and k != "columns"}
        cfg = cls(**known)
        if "columns" in data:
            cfg.columns = parse_columns(data["columns"])
        validate(cfg)
        cfg.resolve_paths()
        return cfg

    @classmethod
    def load(cls, path: Optional[str] = None) -> "BoardConfig":
        """Load config from YAML file, falling back to defaults when absent."""
        cfg_path = Path(path) if path else CONFIG_PATH
        if not cfg_path.exists():
            cfg = cls()
            cfg.resolve_paths()
            return cfg
        try:
            with open(cfg_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"{cfg_path}: invalid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{cfg_path}: expected a mapping at top level")
        return cls.from_dict(data)


# ── Columns ──────────────────────────────────────────────────────────────────


def _first(col: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if col.get(key) is not None:
            return col[key]
    return default


def _slug(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


def parse_column(col: Any, index: int) -> ColumnConfig:
    if not isinstance(col, dict):
        raise ConfigError(f"Invalid column configuration at index {index}")

    auto = col.get("autoUpdates") or {}
    name = str(col.get("name") or f"Column {index + 1}")
    status_tag = _first(col, "tag", "statusTag", "status_tag")
    if not status_tag:
        status_tag = f"#{_slug(name)}" if col.get("name") else ""

    try:
        completion = CompletionPolicy.from_str(
            _first(auto, "completion") or _first(col, "completion")
        )
    except ValueError as e:
        raise ConfigError(f"Column {index}: unknown completion policy") from e

    max_tasks = _first(col, "maxTasks", "max_tasks", "limit")
    custom = _first(auto, "addCustomTags") or _first(col, "addTags", "addCustomTags", "add_custom_tags", default=[])
    remove = _first(auto, "removeConflictingTags")
    if remove is None:
        remove = _first(col, "removeConflicting", "remove_conflicting_tags", default=True)

    return ColumnConfig(
        id=str(col.get("id") or (_slug(name) if col.get("name") else f"column-{index}")),
        name=name,
        status_tag=normalize_tag(str(status_tag)) if status_tag else "",
        color=str(col.get("color") or DEFAULT_PALETTE[index % len(DEFAULT_PALETTE)]),
        completion=completion,
        remove_conflicting_tags=bool(remove),
        add_custom_tags=dedupe_tags(custom if isinstance(custom, list) else [custom]),
        max_tasks=int(max_tasks) if max_tasks else None,
        sort_by=SortBy.from_str(_first(col, "sortBy", "sort_by", "sort")),
        collapsible=bool(col.get("collapsible", False)),
    )


def parse_columns(raw: Any) -> List[ColumnConfig]:
    """Column list from YAML. A missing value means the defaults."""
    if raw is None:
        return list(DEFAULT_COLUMNS)
    if not isinstance(raw, list):
        raise ConfigError("columns must be a list")
    return [parse_column(col, i) for i, col in enumerate(raw)]


def validate(cfg: BoardConfig) -> None:
    if not cfg.query or not isinstance(cfg.query, str):
        raise ConfigError("query is required and must be a string")
    try:
        ParserStrategy.from_str(cfg.parser)
    except ValueError as e:
        raise ConfigError(f"unknown parser: {cfg.parser}") from e
    if not cfg.columns:
        raise ConfigError("at least one column is required")

    seen = set()
    for i, column in enumerate(cfg.columns):
        if not column.status_tag:
            raise ConfigError(f"Column {i}: statusTag is required")
        if column.id in seen:
            raise ConfigError(f"Duplicate column id: {column.id}")
        seen.add(column.id)
        if column.max_tasks is not None and column.max_tasks < 1:
            raise ConfigError(f"Column {i}: maxTasks must be positive")
