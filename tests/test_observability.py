from __future__ import annotations

import logging
from collections.abc import Iterator
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from story_graph.adapters.observability import configure_runtime_logging


@pytest.fixture(autouse=True)
def _restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_file_handler_writes_event_lines(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("STORY_GRAPH_LOG_LEVEL", "debug")
    log_path = tmp_path / "logs" / "story_graph.log"

    configure_runtime_logging(log_path=log_path, force=True)
    logging.getLogger("story_graph.test").info("story.create story_id=%s", "s1")
    for handler in logging.getLogger().handlers:
        handler.flush()

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert any(isinstance(handler, RotatingFileHandler) for handler in root.handlers)
    assert "INFO [story_graph.test] story.create story_id=s1" in log_path.read_text("utf-8")


def test_dash_log_path_disables_file_handler(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORY_GRAPH_LOG_PATH", "-")
    monkeypatch.setenv("STORY_GRAPH_ACCESS_LOG_LEVEL", "error")

    configure_runtime_logging(force=True)

    root = logging.getLogger()
    assert not any(isinstance(handler, RotatingFileHandler) for handler in root.handlers)
    assert logging.getLogger("uvicorn.access").level == logging.ERROR


def test_invalid_level_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORY_GRAPH_LOG_PATH", "-")
    monkeypatch.setenv("STORY_GRAPH_LOG_LEVEL", "chatty")

    configure_runtime_logging(force=True)

    assert logging.getLogger().level == logging.INFO
