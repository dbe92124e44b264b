"""Process-wide logging setup for the story graph service."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

DEFAULT_LOG_PATH = "work/logs/story_graph.log"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_CONFIGURED = False


def _int_env(name: str, default: int, *, minimum: int, maximum: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


def _level_env(name: str, default: str) -> int:
    level_name = os.environ.get(name, default).strip().upper() or default
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else logging.getLevelName(default)


def _resolve_log_path(log_path: Path | None) -> Path | None:
    """Explicit path wins; ``STORY_GRAPH_LOG_PATH=-`` disables the file handler."""
    if log_path is not None:
        return log_path
    raw = os.environ.get("STORY_GRAPH_LOG_PATH", "").strip()
    if raw == "-":
        return None
    return Path(raw or DEFAULT_LOG_PATH)


def configure_runtime_logging(*, log_path: Path | None = None, force: bool = False) -> None:
    """Install console and rotating-file handlers on the root logger once."""
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    resolved_path = _resolve_log_path(log_path)
    if resolved_path is not None:
        resolved_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                filename=resolved_path,
                maxBytes=_int_env(
                    "STORY_GRAPH_LOG_MAX_BYTES",
                    5 * 1024 * 1024,
                    minimum=64 * 1024,
                    maximum=100 * 1024 * 1024,
                ),
                backupCount=_int_env("STORY_GRAPH_LOG_BACKUP_COUNT", 10, minimum=1, maximum=120),
                encoding="utf-8",
            )
        )

    root = logging.getLogger()
    root.setLevel(_level_env("STORY_GRAPH_LOG_LEVEL", "INFO"))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(
        _level_env("STORY_GRAPH_ACCESS_LOG_LEVEL", "WARNING")
    )
    _CONFIGURED = True
