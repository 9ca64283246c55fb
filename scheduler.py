"""
Scheduled price collection for Airfare Tracker.

Runs the watch-route fetch at fixed times of day with graceful shutdown.
Scheduled and on-demand fetches share the same fetcher and key rotation.
"""

import logging
import signal
import time
from datetime import datetime
from typing import Optional, Dict, Any, List

import schedule

from config import (
    SCHEDULE_TIMES,
    WATCH_ORIGIN,
    WATCH_DESTINATION,
    WATCH_DATE,
    WATCH_FLEX_DAYS,
)
from data_fetcher import FlexDateFetcher, get_default_fetcher
from errors import ConfigurationError

logger = logging.getLogger(__name__)

# Global flag for graceful shutdown
_shutdown_requested = False


def _handle_shutdown(signum, frame):
    """Handle shutdown signals gracefully."""
    global _shutdown_requested
    logger.info("Shutdown signal received. Finishing current task...")
    _shutdown_requested = True


def run_scheduled_fetch(
    fetcher: Optional[FlexDateFetcher] = None,
    origin: str = WATCH_ORIGIN,
    destination: str = WATCH_DESTINATION,
    departure_date: str = WATCH_DATE,
    flex_days: int = WATCH_FLEX_DAYS,
) -> Dict[str, Any]:
    """
    Fetch the watched route once.

    A missing API key is logged and reported in the result instead of
    raised, so the scheduling loop keeps running.

    Returns:
        Dictionary with collection statistics
    """
    fetcher = fetcher or get_default_fetcher()

    logger.info("=" * 60)
    logger.info(f"Running scheduled flight price check: {origin} → {destination} on {departure_date}")
    logger.info(f"Time: {datetime.now().isoformat()}")
    logger.info("=" * 60)

    try:
        summary = fetcher.fetch_route(origin, destination, departure_date, flex_days)
    except ConfigurationError as e:
        logger.warning(f"Scheduled fetch skipped: {e}")
        return {"success": False, "error": str(e)}

    return {"success": True, **summary}


def start_scheduler(
    run_times: Optional[List[str]] = None,
    run_immediately: bool = False,
    fetcher: Optional[FlexDateFetcher] = None,
    poll_seconds: int = 60,
) -> None:
    """
    Start the scheduling loop.

    Args:
        run_times: Times of day to run (HH:MM), defaults to SCHEDULE_TIMES
        run_immediately: If True, run a fetch immediately on start
        fetcher: Fetcher to use, defaults to the shared one
        poll_seconds: How often to check for due jobs
    """
    global _shutdown_requested
    _shutdown_requested = False

    run_times = run_times or SCHEDULE_TIMES
    fetcher = fetcher or get_default_fetcher()

    # Set up signal handlers
    signal.signal(signal.SIGINT, _handle_shutdown)
    signal.signal(signal.SIGTERM, _handle_shutdown)

    register_jobs(run_times, fetcher)

    logger.info("=" * 60)
    logger.info("Airfare Tracker Scheduler")
    logger.info(f"Collection scheduled at: {', '.join(run_times)}")
    logger.info(f"Watch route: {WATCH_ORIGIN} → {WATCH_DESTINATION} on {WATCH_DATE} (±{WATCH_FLEX_DAYS})")
    logger.info("Press Ctrl+C to stop")
    logger.info("=" * 60)

    if run_immediately:
        logger.info("Running immediate collection...")
        run_scheduled_fetch(fetcher)

    # Main loop
    while not _shutdown_requested:
        try:
            schedule.run_pending()
        except Exception as e:
            logger.error(f"Scheduler error: {e}")
        time.sleep(poll_seconds)

    schedule.clear()
    logger.info("Scheduler stopped")


def register_jobs(run_times: List[str], fetcher: FlexDateFetcher) -> List[schedule.Job]:
    """Register one daily job per run time, replacing any existing jobs."""
    schedule.clear()
    return [
        schedule.every().day.at(run_time).do(run_scheduled_fetch, fetcher)
        for run_time in run_times
    ]


def get_next_run_time() -> Optional[datetime]:
    """
    Get the next scheduled run time.

    Returns:
        Next run datetime or None if no jobs scheduled
    """
    if schedule.get_jobs():
        return schedule.next_run()
    return None


def get_scheduler_status() -> Dict[str, Any]:
    """
    Get current scheduler status.
    """
    next_run = get_next_run_time()

    return {
        "running": not _shutdown_requested,
        "jobs_scheduled": len(schedule.get_jobs()),
        "next_run": next_run.isoformat() if next_run else None,
        "current_time": datetime.now().isoformat(),
        "watch_route": f"{WATCH_ORIGIN} → {WATCH_DESTINATION}",
        "watch_date": WATCH_DATE,
        "flex_days": WATCH_FLEX_DAYS,
    }
