"""
Cadence catalog ingester - Entry Point

Run with: python -m cadence FEED.ndjson
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from cadence import __version__
from cadence.config import IngestConfig, load_ingest_config
from cadence.core.catalog_db import CatalogDb
from cadence.core.ingest import CatalogIngestor
from cadence.core.runner import IngestSummary, run_ingest


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="cadence",
        description="Cadence - ingest an NDJSON music-track feed into a SQLite catalog",
    )

    parser.add_argument(
        "feed",
        type=Path,
        nargs="?",
        help="NDJSON feed to ingest (one JSON object per line)",
    )

    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="SQLite catalog path (default: from config)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Ingest TOML config (default: packaged ingest.toml)",
    )

    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Records per batch/transaction (default: from config, 800)",
    )

    parser.add_argument(
        "--rebuild-every",
        type=int,
        default=None,
        help="Rebuild aggregates every N batches; 0 = only at the end (default: from config)",
    )

    parser.add_argument(
        "--no-rebuild",
        action="store_true",
        help="Skip the aggregate rebuild at the end of the run",
    )

    parser.add_argument(
        "--rebuild-only",
        action="store_true",
        help="Only rebuild aggregates from the existing catalog; no feed is read",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    args = parser.parse_args(argv)
    if args.feed is None and not args.rebuild_only:
        parser.error("a feed path is required unless --rebuild-only is given")
    return args


def resolve_config(args: argparse.Namespace) -> IngestConfig:
    """Load the TOML config and apply CLI overrides on top of it."""
    config = load_ingest_config(args.config)
    return IngestConfig(
        batch_size=args.batch_size if args.batch_size is not None else config.batch_size,
        rebuild_every=(
            args.rebuild_every if args.rebuild_every is not None else config.rebuild_every
        ),
        rebuild_at_end=config.rebuild_at_end and not args.no_rebuild,
        db_path=str(args.db) if args.db is not None else config.db_path,
        chunks=config.chunks,
    )


async def run(args: argparse.Namespace, config: IngestConfig) -> IngestSummary | None:
    """Open the catalog, ingest the feed (or just rebuild), and close."""
    logger = logging.getLogger(__name__)

    db = CatalogDb(config.db_path, chunks=config.chunks)
    await db.open()
    try:
        await db.ensure_schema()
        ingestor = CatalogIngestor(db)

        if args.rebuild_only:
            await ingestor.rebuild_aggregates()
            return None

        return await run_ingest(
            ingestor,
            args.feed,
            batch_size=config.batch_size,
            rebuild_every=config.rebuild_every,
            rebuild_at_end=config.rebuild_at_end,
        )
    finally:
        await db.close()
        logger.debug("Closed catalog %s", config.db_path)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the application."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    logger = logging.getLogger(__name__)

    try:
        config = resolve_config(args)
        logger.info("Using catalog %s", config.db_path)
        asyncio.run(run(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user; the current batch was rolled back")
        return 1
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
