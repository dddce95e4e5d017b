"""CLI entry point and orchestrator."""

import argparse
import logging
import sys
import time
from datetime import datetime, timezone

from . import __version__
from .cache import ArtifactCache
from .config import load_config
from .downloader import Downloader
from .errors import AccessDeniedError, ConfigurationError, HarvestError
from .fetcher import Fetcher
from .logger import setup_logger
from .models import BatchSummary
from .progress import NullProgress, TqdmProgress
from .vendors import ALL_VENDORS

logger = logging.getLogger("catalog_harvester")

KINDS = ("datasheets", "techdocs")

EXIT_CONFIG = 2
EXIT_ACCESS_DENIED = 3


def run_phases(vendor, database, download):
    """Run the requested phases in pipeline order."""
    phases = [
        ("database", "datasheets", "Building the database", vendor.build_database),
        ("database", "techdocs", "Building the techdoc database", vendor.build_techdocs),
        ("download", "datasheets", "Fetching datasheets", vendor.download_datasheets),
        ("download", "techdocs", "Fetching techdocs", vendor.download_techdocs),
    ]
    for group, kind, title, phase in phases:
        wanted = database if group == "database" else download
        if kind not in wanted:
            continue

        print(f"{title}...")
        start = time.monotonic()
        try:
            result = phase()
        except AccessDeniedError as e:
            if e.summary is not None:
                show_summary(e.summary)
            raise
        print(f"{title} took {time.monotonic() - start:.1f}s")

        if isinstance(result, BatchSummary):
            show_summary(result)


def show_summary(summary: BatchSummary):
    print(f"  saved:     {summary.saved:>8}")
    print(f"  present:   {summary.present:>8}")
    print(f"  not found: {summary.not_found:>8}")
    print(f"  failed:    {summary.failed:>8}")
    if summary.halted:
        print("  (halted after a forbidden response)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog-harvester",
        description="Builds a DB of all the parts and datasheets",
    )
    parser.add_argument("vendor", choices=list(ALL_VENDORS.keys()))
    parser.add_argument("-b", "--database", nargs="+", choices=KINDS, default=[],
                        help="Build the database, pass datasheets and/or techdocs")
    parser.add_argument("-d", "--download", nargs="+", choices=KINDS, default=[],
                        help="Fetch all the datasheets and/or techdocs")
    parser.add_argument("--config", type=str, default="config.yaml",
                        help="Path to config file")
    parser.add_argument("--no-progress", action="store_true",
                        help="Disable progress bars")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--version", action="version", version=__version__)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"fatal: {e}", file=sys.stderr)
        sys.exit(EXIT_CONFIG)

    setup_logger(config.log_dir, logging.DEBUG if args.verbose else logging.INFO)

    vendor_config = config.vendor(args.vendor)
    if not vendor_config.enabled:
        print(f"[{args.vendor}] Disabled in config, nothing to do.")
        return

    print(f"Start scraping {args.vendor.upper()} at {datetime.now(timezone.utc)}")

    fetcher = Fetcher(config.http)
    downloader = Downloader(fetcher, ArtifactCache(config.data_dir))
    progress = NullProgress() if args.no_progress else TqdmProgress()
    vendor = ALL_VENDORS[args.vendor](config, fetcher, downloader, progress)

    try:
        run_phases(vendor, args.database, args.download)
    except ConfigurationError as e:
        logger.error(f"[{args.vendor}] {e}")
        print(f"fatal: {e}", file=sys.stderr)
        sys.exit(EXIT_CONFIG)
    except AccessDeniedError as e:
        logger.error(f"[{args.vendor}] {e}")
        print(f"fatal: {e}; earlier output is kept, re-run later to resume", file=sys.stderr)
        sys.exit(EXIT_ACCESS_DENIED)
    except HarvestError as e:
        logger.error(f"[{args.vendor}] {e}")
        print(f"fatal: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        fetcher.close()


if __name__ == "__main__":
    main()
