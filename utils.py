"""
Utility functions for Airfare Tracker.

Contains helpers for date parsing, formatting, pacing, and logging setup.
"""

import logging
import math
import time
from datetime import date, datetime, timezone
from typing import Callable, Iterable, Iterator, Optional, TypeVar
from urllib.parse import quote_plus

from config import FLEX_PACING_SECONDS, GOOGLE_FLIGHTS_URL

logger = logging.getLogger(__name__)

T = TypeVar('T')


# =============================================================================
# DATE UTILITIES
# =============================================================================

def utc_now() -> datetime:
    """Current time as naive UTC, the form every stored timestamp takes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_date(value: date | str) -> date:
    """
    Parse a date string in various formats.

    Args:
        value: A date, or a string in 'YYYY-MM-DD', 'MM/DD/YYYY' or 'YYYY/MM/DD' format

    Returns:
        Parsed date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    formats = ["%Y-%m-%d", "%m/%d/%Y", "%Y/%m/%d"]

    for fmt in formats:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue

    raise ValueError(f"Cannot parse date '{value}'. Supported formats: YYYY-MM-DD, MM/DD/YYYY, YYYY/MM/DD")


# =============================================================================
# NUMERIC & FORMATTING UTILITIES
# =============================================================================

def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves away from zero for positives.

    Python's round() uses banker's rounding (round(170.5) == 170); prices
    shown to users should read 171.
    """
    return int(math.floor(value + 0.5))


def format_price(amount: float) -> str:
    """
    Format a USD amount, dropping cents for whole-dollar prices.

    Example:
        >>> format_price(80.0)
        '$80'
        >>> format_price(1234.5)
        '$1,234.50'
    """
    if float(amount).is_integer():
        return f"${int(amount):,}"
    return f"${amount:,.2f}"


def format_flight_detail(
    departure_time: Optional[str],
    arrival_time: Optional[str],
    stop_count: Optional[int],
) -> str:
    """
    Describe an itinerary's times and stops (e.g. '06:00–09:05 nonstop').

    Returns an empty string when either time is missing.
    """
    if not departure_time or not arrival_time:
        return ""
    if stop_count and stop_count > 0:
        return f"{departure_time}–{arrival_time} ({stop_count} stop)"
    return f"{departure_time}–{arrival_time} nonstop"


def build_search_url(origin: str, destination: str, departure_date: Optional[str]) -> str:
    """Build a Google Flights one-way search link for a route and date."""
    query = f"flights from {origin} to {destination} on {departure_date or ''} one way"
    return f"{GOOGLE_FLIGHTS_URL}?q={quote_plus(' '.join(query.split()))}"


# =============================================================================
# PACING
# =============================================================================

class Pacer:
    """
    Sequential iterator that waits a fixed interval between items.

    Used to space out upstream calls across a flex window. Nothing is
    slept before the first item or after the last, so a single-item
    sequence is never delayed.
    """

    def __init__(
        self,
        interval: float = FLEX_PACING_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize pacer.

        Args:
            interval: Seconds to wait between consecutive items
            sleep: Sleep function (injectable for tests)
        """
        self.interval = max(0.0, interval)
        self._sleep = sleep

    def wait(self) -> None:
        if self.interval > 0:
            logger.debug(f"Pacing: waiting {self.interval:.2f}s before next request")
            self._sleep(self.interval)

    def paced(self, items: Iterable[T]) -> Iterator[T]:
        """Yield items in order, waiting between consecutive ones."""
        for index, item in enumerate(items):
            if index > 0:
                self.wait()
            yield item


# =============================================================================
# LOGGING UTILITIES
# =============================================================================

def setup_logging(
    level: str = "INFO",
    log_format: Optional[str] = None,
    log_file: Optional[str] = None,
    date_format: Optional[str] = None,
) -> None:
    """
    Configure application logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Optional custom log format
        log_file: Optional file path to log to
        date_format: Optional strftime format for timestamps
    """
    if log_format is None:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        datefmt=date_format,
        handlers=handlers
    )
