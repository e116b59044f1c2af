"""Application entry point for the QuizMaker attempt service."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

from quizmaker.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quizmaker.core.attempt_engine import AttemptEngine
from quizmaker.core.clock import SystemClock
from quizmaker.core.quiz_importer import QuizImportError, load_quizzes_from_file
from quizmaker.core.services.quiz_catalog import InMemoryQuizCatalog
from quizmaker.core.services.share_links import InMemoryShareLinkRegistry
from quizmaker.server.api_server import run_api_server
from quizmaker.utils.logging_config import configure_logging


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve quiz attempts over HTTP.")
    parser.add_argument("quiz_file", type=Path, help="JSON document with quizzes and share links")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Initialize logging, load quizzes and serve the attempt API."""
    args = _parse_args(argv)
    logger = configure_logging()
    logger.info("Starting QuizMaker attempt service...")

    clock = SystemClock()
    catalog = InMemoryQuizCatalog()
    share_links = InMemoryShareLinkRegistry(clock=clock)
    try:
        imported = load_quizzes_from_file(args.quiz_file)
    except (OSError, QuizImportError) as exc:
        logger.error("Could not load quizzes from %s: %s", args.quiz_file, exc)
        sys.exit(1)
    imported.register(catalog, share_links)
    logger.info("Loaded %d quiz(zes) from %s", catalog.get_quiz_count(), args.quiz_file)

    engine = AttemptEngine(catalog, clock=clock)
    logger.info("Attempt API listening on http://%s:%d/", args.host, args.port)
    run_api_server(engine, share_links, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
