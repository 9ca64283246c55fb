"""
Flexible-date fare collection for Airfare Tracker.

Expands a target date into a ± flex window, queries the upstream source for
each date in sequence with pacing between calls, keeps only the tracked
carriers, and appends what is left to the observation store.
"""

import logging
from datetime import date, timedelta
from threading import Lock
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError

from config import TRACKED_CARRIERS
from database import record_observation
from errors import ConfigurationError, UpstreamFetchError, ValidationError
from key_rotation import KeyRotator
from models import CandidateFare, FareObservation
from serpapi_client import SerpApiFlightSource, UpstreamResult
from utils import Pacer, parse_date, utc_now

# Configure logging
logger = logging.getLogger(__name__)


class FlightSource(Protocol):
    """Anything that can search one route on one date."""

    def search(
        self, origin: str, destination: str, departure_date: str, api_key: str
    ) -> UpstreamResult:
        ...


# =============================================================================
# DATE WINDOW
# =============================================================================

def build_date_window(base_date: date | str, flex_days: int = 0) -> List[str]:
    """
    Expand a target date into the dates to search.

    The base date comes first, then base-1, base+1, base-2, base+2, and so on.

    Args:
        base_date: Target departure date
        flex_days: Days of flexibility (±); negative values are treated as 0

    Returns:
        2 * flex_days + 1 ISO date strings

    Example:
        >>> build_date_window('2024-04-12', 1)
        ['2024-04-12', '2024-04-11', '2024-04-13']
    """
    base = parse_date(base_date)
    flex_days = max(0, int(flex_days or 0))

    dates = [base]
    for offset in range(1, flex_days + 1):
        dates.append(base - timedelta(days=offset))
        dates.append(base + timedelta(days=offset))

    return [d.isoformat() for d in dates]


# =============================================================================
# CARRIER FILTER
# =============================================================================

class CarrierAllowList:
    """
    Decides which upstream fares are worth keeping.

    An airline matches when any configured matcher is a substring of its
    name (so 'JetBlue' also keeps 'JetBlue, American').
    """

    def __init__(self, matchers: Iterable[str] = TRACKED_CARRIERS):
        self.matchers = tuple(m for m in matchers if m)

    def matches(self, airline: Optional[str]) -> bool:
        if not airline:
            return False
        return any(matcher in airline for matcher in self.matchers)

    def __repr__(self) -> str:
        return f"CarrierAllowList({list(self.matchers)!r})"


# =============================================================================
# NORMALIZATION
# =============================================================================

def _to_minutes(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _airport_time(airport: Any) -> Optional[str]:
    if not isinstance(airport, dict):
        return None
    return airport.get('time') or None


def normalize_fare(raw: Dict[str, Any], booking_reference: str = "") -> Optional[CandidateFare]:
    """
    Parse a single Google Flights fare entry into a CandidateFare.

    The first leg supplies airline, times and flight number; the stop count
    is the number of legs minus one.

    Returns:
        CandidateFare, or None if the entry has no usable price or its
        legs are not objects
    """
    if not isinstance(raw, dict):
        return None
    try:
        price = float(raw.get('price'))
    except (TypeError, ValueError):
        return None
    if price <= 0:
        return None

    legs = raw.get('flights') or []
    if not isinstance(legs, list) or not all(isinstance(item, dict) for item in legs):
        logger.debug(f"Skipping fare with malformed legs: {legs!r}")
        return None
    leg = legs[0] if legs else {}
    airline = leg.get('airline')
    airline = airline.strip() if isinstance(airline, str) else ''

    flight_number = None
    if leg.get('flight_number'):
        flight_number = f"{airline} {leg['flight_number']}".strip()

    try:
        return CandidateFare(
            airline=airline,
            price=price,
            departure_time=_airport_time(leg.get('departure_airport')),
            arrival_time=_airport_time(leg.get('arrival_airport')),
            duration_minutes=_to_minutes(raw.get('total_duration') or leg.get('duration')),
            flight_number=flight_number,
            stop_count=max(len(legs), 1) - 1,
            booking_reference=booking_reference or None,
        )
    except PydanticValidationError as e:
        logger.debug(f"Skipping fare with unexpected field types: {e}")
        return None


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class FlexDateFetcher:
    """
    Collects fares for a route across a flex window and stores the tracked ones.

    Dates are fetched one after another, never concurrently; the pacer
    spaces the calls out. A failure on one date is logged and skipped. A
    missing API key aborts the whole call.
    """

    def __init__(
        self,
        key_rotator: Optional[KeyRotator] = None,
        source: Optional[FlightSource] = None,
        carrier_filter: Optional[CarrierAllowList] = None,
        pacer: Optional[Pacer] = None,
        recorder: Callable[[FareObservation], FareObservation] = record_observation,
    ):
        self.key_rotator = key_rotator if key_rotator is not None else KeyRotator.from_config()
        self.source = source if source is not None else SerpApiFlightSource()
        self.carrier_filter = carrier_filter if carrier_filter is not None else CarrierAllowList()
        self.pacer = pacer if pacer is not None else Pacer()
        self.recorder = recorder

    def fetch_route(
        self,
        origin: str,
        destination: str,
        base_date: date | str,
        flex_days: int = 0,
    ) -> Dict[str, Any]:
        """
        Fetch and store one-way fares for every date in the flex window.

        Args:
            origin: Origin airport code (any case)
            destination: Destination airport code (any case)
            base_date: Target departure date
            flex_days: Days of flexibility (±) around base_date

        Returns:
            Dictionary with collection statistics. Dates whose upstream call
            failed are listed under 'failed_dates'.

        Raises:
            ConfigurationError: If no API key is available
            StorageError: If an observation cannot be written
        """
        origin = origin.strip().upper()
        destination = destination.strip().upper()
        dates = build_date_window(base_date, flex_days)

        summary: Dict[str, Any] = {
            "origin": origin,
            "destination": destination,
            "dates": dates,
            "dates_searched": [],
            "observations_saved": 0,
            "fares_discarded": 0,
            "failed_dates": {},
        }

        for departure_date in self.pacer.paced(dates):
            api_key = self.key_rotator.next_key()
            if api_key is None:
                logger.warning(
                    "No SerpAPI key configured. Skipping real data fetch. "
                    "Add SERPAPI_KEY to .env to enable live checks."
                )
                raise ConfigurationError("No SerpAPI key configured")

            logger.info(f"Fetching flights for {origin} to {destination} on {departure_date}...")

            try:
                result = self.source.search(origin, destination, departure_date, api_key)
            except UpstreamFetchError as e:
                logger.warning(f"Failed to fetch {origin}-{destination} on {departure_date}: {e}")
                summary["failed_dates"][departure_date] = str(e)
                continue

            saved, discarded = self._store_fares(origin, destination, departure_date, result)
            summary["dates_searched"].append(departure_date)
            summary["observations_saved"] += saved
            summary["fares_discarded"] += discarded

        logger.info(
            f"Finished {origin}-{destination}: {summary['observations_saved']} saved, "
            f"{summary['fares_discarded']} discarded, {len(summary['failed_dates'])} failed date(s)"
        )
        return summary

    def fetch_round_trip(
        self,
        origin: str,
        destination: str,
        out_date: date | str,
        return_date: Optional[date | str] = None,
        flex_days: int = 0,
    ) -> Dict[str, Any]:
        """
        Fetch the outbound leg and, if a return date is given, the return leg.

        Both legs use the same flex window and draw keys from the same
        rotation. The return leg starts after the outbound leg finishes.

        Raises:
            ConfigurationError: If no API key is configured
        """
        if not self.key_rotator.has_keys:
            logger.warning("Fetch requested but no SerpAPI key is configured")
            raise ConfigurationError("No API key configured.")

        outbound = self.fetch_route(origin, destination, out_date, flex_days)
        inbound = None
        if return_date:
            inbound = self.fetch_route(destination, origin, return_date, flex_days)

        return {"outbound": outbound, "return": inbound}

    def _store_fares(
        self,
        origin: str,
        destination: str,
        departure_date: str,
        result: UpstreamResult,
    ) -> tuple[int, int]:
        """Normalize, filter and record one date's fares. Returns (saved, discarded)."""
        scraped_at = utc_now()
        saved = 0
        discarded = 0

        for raw in result.fares:
            fare = normalize_fare(raw, result.booking_reference)
            if fare is None or not self.carrier_filter.matches(fare.airline):
                discarded += 1
                continue

            try:
                observation = fare.to_observation(origin, destination, departure_date, scraped_at)
                self.recorder(observation)
            except (PydanticValidationError, ValidationError) as e:
                logger.warning(f"Skipping malformed {fare.airline} fare on {departure_date}: {e}")
                discarded += 1
                continue

            saved += 1
            logger.debug(
                f"Saved: {fare.airline} {fare.flight_number or ''} on {departure_date}: "
                f"${fare.price} ({fare.departure_time}-{fare.arrival_time})"
            )

        return saved, discarded


# =============================================================================
# SHARED INSTANCE
# =============================================================================

# Global fetcher (lazy initialization) so every trigger shares one key rotation
_default_fetcher: Optional[FlexDateFetcher] = None
_fetcher_lock = Lock()


def get_default_fetcher() -> FlexDateFetcher:
    """Get or create the process-wide fetcher (thread-safe)."""
    global _default_fetcher
    with _fetcher_lock:
        if _default_fetcher is None:
            _default_fetcher = FlexDateFetcher()
    return _default_fetcher


def reset_default_fetcher() -> None:
    """Drop the shared fetcher so the next call rebuilds it from config."""
    global _default_fetcher
    with _fetcher_lock:
        _default_fetcher = None
    logger.info("Fetcher reset")
