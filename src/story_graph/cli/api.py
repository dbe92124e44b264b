"""CLI entrypoint for serving the story graph HTTP API."""

from __future__ import annotations

import argparse
import logging
import os

import uvicorn

from story_graph.adapters.observability import configure_runtime_logging

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    """Create CLI args for the API server process."""
    parser = argparse.ArgumentParser(description="Serve the story graph API.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")
    parser.add_argument(
        "--db-path",
        default="",
        help="SQLite path for story graph persistence (default: work/local/story_graph.db).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse flags, export the DB path, and hand the app import path to uvicorn."""
    configure_runtime_logging()
    parsed = build_arg_parser().parse_args(argv)
    db_path = str(parsed.db_path).strip()
    if db_path:
        os.environ["STORY_GRAPH_DB_PATH"] = db_path
    logger.info(
        "cli.api.serve host=%s port=%s reload=%s db_path=%s",
        parsed.host,
        parsed.port,
        parsed.reload,
        db_path or "<default>",
    )
    uvicorn.run(
        "story_graph.api.app:app",
        host=str(parsed.host),
        port=int(parsed.port),
        reload=bool(parsed.reload),
    )


if __name__ == "__main__":
    main()
