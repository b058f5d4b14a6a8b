# locallabor/cli.py
"""Operational entry point:

    locallabor init-db
    locallabor serve --host 0.0.0.0 --port 8000
    locallabor backfill-locations --dry-run
"""
from __future__ import annotations

import argparse
import logging
import os
from typing import Optional, Sequence

from locallabor.config import get_settings
from locallabor.log import configure_logging

LOGGER = logging.getLogger(__name__)


def _init_db(args: argparse.Namespace) -> None:
    from locallabor.db.models import Base
    from locallabor.db.session import ENGINE, current_engine_url

    LOGGER.info("Initializing database schema at %s ...", current_engine_url())
    Base.metadata.create_all(bind=ENGINE)
    LOGGER.info("Database schema initialized successfully.")


def _serve(args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("locallabor.api.main:app", host=args.host, port=args.port, reload=args.reload)


def _backfill_locations(args: argparse.Namespace) -> None:
    from locallabor.db.session import get_session
    from locallabor.geo.geocoder import build_geocoder
    from locallabor.maintenance import backfill_locations

    geocoder = build_geocoder(get_settings())
    with get_session() as session:
        summary = backfill_locations(
            session,
            geocoder,
            limit=args.limit,
            dry_run=args.dry_run,
            sample_size=args.sample_size,
        )
    print(summary.to_dict())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="locallabor", description="Local Labor job discovery service")
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL (DEBUG, INFO, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    init_db = sub.add_parser("init-db", help="Create database tables")
    init_db.set_defaults(func=_init_db)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    serve.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes (development)")
    serve.set_defaults(func=_serve)

    backfill = sub.add_parser(
        "backfill-locations",
        help="Re-geocode jobs stored with an unknown location",
    )
    backfill.add_argument("--limit", type=int, default=None, help="Max jobs to process in this run")
    backfill.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be updated without modifying the database",
    )
    backfill.add_argument("--sample-size", type=int, default=10)
    backfill.set_defaults(func=_backfill_locations)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    args.func(args)


if __name__ == "__main__":
    # When executed as `python -m locallabor.cli ...`
    main()
