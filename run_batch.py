"""
Batch Runner: research every pending company in the store.

The store directory holds company_list.csv (the queue) plus the result
tables. Each company's status is written back as soon as it finishes,
so the queue IS the checkpoint: rerunning picks up pending and stale
in_progress entries. Entries left in error are only retried with --names.

Usage:
    python run_batch.py                          # default store, config batch size
    python run_batch.py --limit 20               # at most 20 companies
    python run_batch.py --names "Acme" "Globex"  # these entries, any status
    python run_batch.py --store data/run2 --yes  # custom store, no prompt
"""

import argparse
import logging
import signal
import sys
from pathlib import Path

from company_research.common.log_setup import setup_logging
from company_research.config import (
    DATA_DIR,
    EXTRACTION,
    LOG_DIR,
    OUTPUT_DIR,
    PROCESSING,
    SCORING,
    SEARCH,
    load_api_keys,
)
from company_research.errors import AlreadyRunning, ConfigurationError
from company_research.store import FileEntityStore
from company_research.system import CompanyResearchSystem


# ─────────────────────────────────────────────────────────────────────────────
# GRACEFUL SHUTDOWN
# ─────────────────────────────────────────────────────────────────────────────

class GracefulShutdown:
    """
    Signal handler for clean Ctrl+C shutdown.

    On first Ctrl+C: asks the batch to stop after the current company.
    On second Ctrl+C: forces immediate exit.
    """

    def __init__(self, logger: logging.Logger, system: CompanyResearchSystem):
        self.shutdown_requested = False
        self.logger = logger
        self.system = system

    def handler(self, signum, frame):
        if self.shutdown_requested:
            self.logger.warning("Force shutdown requested. Exiting immediately.")
            sys.exit(1)
        self.shutdown_requested = True
        self.logger.warning(
            "Graceful shutdown requested (Ctrl+C). "
            "Finishing current company... Press Ctrl+C again to force exit."
        )
        self.system.stop_batch()


# ─────────────────────────────────────────────────────────────────────────────
# MAIN
# ─────────────────────────────────────────────────────────────────────────────

def main() -> int:
    parser = argparse.ArgumentParser(description="Research pending companies in the store")
    parser.add_argument("--store", type=str, default=None,
                        help=f"Store directory (default: {DATA_DIR / 'store'})")
    parser.add_argument("--limit", type=int, default=None,
                        help=f"Max companies this run (default: {PROCESSING.batch_size})")
    parser.add_argument("--names", nargs="+", default=None,
                        help="Process only these company names, whatever their status")
    parser.add_argument("--yes", action="store_true", help="Start without confirmation")
    args = parser.parse_args()

    logger = setup_logging(LOG_DIR, "run_batch")

    keys = load_api_keys()
    if keys.validate():
        logger.error("API keys missing: %s", ", ".join(keys.validate()))
        return 1

    try:
        processing = PROCESSING.from_env()
        search = SEARCH.from_env()
        extraction = EXTRACTION.from_env()
        scoring = SCORING.from_env()
    except ValueError as e:
        logger.error("Bad configuration: %s", e)
        return 1

    store = FileEntityStore(Path(args.store) if args.store else DATA_DIR / "store")
    pending = store.list_pending()
    limit = args.limit if args.limit is not None else processing.batch_size
    logger.info("Store: %s", store.directory)
    if args.names:
        logger.info("  Requested companies: %d", len(args.names))
    else:
        logger.info("  Pending companies: %d (this run: up to %d)", len(pending), limit)
        if not pending:
            logger.info("\nNothing to do.")
            return 0

    if not args.yes:
        input("\nPress Enter to start (or Ctrl+C to cancel)...")

    try:
        system = CompanyResearchSystem.build(
            keys, store,
            cache_dir=OUTPUT_DIR / "cache",
            processing=processing,
            search=search,
            extraction=extraction,
            scoring=scoring,
        )
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    shutdown = GracefulShutdown(logger, system)
    signal.signal(signal.SIGINT, shutdown.handler)

    with system:
        try:
            report = system.run_for_names(args.names) if args.names else system.run_batch(limit)
        except AlreadyRunning as e:
            logger.error(str(e))
            return 1

        stats = system.get_stats()

    logger.info("\n" + "=" * 60)
    logger.info("BATCH COMPLETE")
    logger.info("=" * 60)
    for line in report.summary_lines():
        logger.info("  %s", line)
    logger.info("  API requests: %d", stats.request_count)
    if stats.error_counts_by_type:
        logger.info("  Errors by type: %s", stats.error_counts_by_type)
    return 0 if report.errors == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
