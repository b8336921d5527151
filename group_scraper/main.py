"""Main entry point for the group scraper."""

import argparse
import asyncio
import signal
import sys
from datetime import datetime, timezone
from typing import Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import config
from .logging_config import setup_logging
from .scraper.facebook import GroupScraper, GroupScrapeResult
from .scraper.session import AuthError
from .storage.database import init_db

logger = structlog.get_logger()


async def run_scrape_job(scraper: Optional[GroupScraper] = None) -> list[GroupScrapeResult]:
    """Run a single scrape over all configured groups."""
    logger.info("Starting scrape job")
    start_time = datetime.now(timezone.utc)

    scraper = scraper or GroupScraper()
    results: list[GroupScrapeResult] = []

    try:
        await scraper.start()
        results = await scraper.scrape_all_groups()
    except AuthError as e:
        logger.error("Session invalid", error=str(e))
    except Exception as e:
        logger.error("Scrape job failed", error=str(e))
    finally:
        await scraper.stop()

    elapsed = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info(
        "Scrape job complete",
        total_posts=sum(r.posts_saved for r in results),
        groups_scraped=len(results),
        elapsed_seconds=elapsed,
    )
    return results


def setup_scheduler() -> AsyncIOScheduler:
    """Set up the job scheduler."""
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        run_scrape_job,
        trigger=IntervalTrigger(minutes=config.scraper_interval_minutes),
        id="scrape_job",
        name="Facebook Group Scraper",
        replace_existing=True,
        max_instances=1,  # Prevent overlapping runs
    )

    return scheduler


async def main(once: bool = False):
    """Scrape now, then keep scraping on the configured interval."""
    logger.info("Starting Group Scraper")
    logger.info(f"Scrape interval: {config.scraper_interval_minutes} minutes")
    logger.info(f"Groups to monitor: {len(config.groups)}")

    init_db()
    logger.info("Database initialized")

    if once:
        await run_scrape_job()
        return

    scheduler = setup_scheduler()
    scheduler.start()
    logger.info("Scheduler started")

    logger.info("Running initial scrape...")
    await run_scrape_job()

    try:
        while True:
            await asyncio.sleep(60)
    except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
        logger.info("Shutting down...")
        scheduler.shutdown()


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Scrape high-engagement posts from Facebook groups")
    parser.add_argument("--once", action="store_true", help="run a single scrape and exit")
    parser.add_argument("--log-level", default=None, help="console log level (default: LOG_LEVEL or INFO)")
    return parser.parse_args(argv)


def run(argv: Optional[list[str]] = None):
    """Entry point for the application."""
    args = parse_args(argv)
    setup_logging(args.log_level or config.log_level)

    def signal_handler(sig, frame):
        logger.info("Received shutdown signal")
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    asyncio.run(main(once=args.once))


if __name__ == "__main__":
    run()
