"""
SerpAPI Google Flights client for Airfare Tracker.

Queries one origin/destination/date at a time and hands back the raw fare
entries. Normalization and filtering happen in data_fetcher.py.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from config import SERPAPI_BASE_URL, SERPAPI_TIMEOUT, CURRENCY
from errors import UpstreamFetchError

# Configure logging
logger = logging.getLogger(__name__)

GOOGLE_FLIGHTS_ENGINE = "google_flights"
ONE_WAY = 2

# SerpAPI reports an empty search as an error string rather than an empty list
NO_RESULTS_MARKER = "hasn't returned any results"


@dataclass
class UpstreamResult:
    """Raw candidate fares for one date plus the response-level booking link."""
    fares: List[Dict[str, Any]] = field(default_factory=list)
    booking_reference: str = ""


class SerpApiFlightSource:
    """
    Upstream flight-search source backed by SerpAPI's Google Flights engine.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: str = SERPAPI_BASE_URL,
        timeout: Optional[float] = SERPAPI_TIMEOUT,
    ):
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def search(
        self,
        origin: str,
        destination: str,
        departure_date: str,
        api_key: str,
    ) -> UpstreamResult:
        """
        Search one-way fares for a single departure date.

        Args:
            origin: Origin airport IATA code
            destination: Destination airport IATA code
            departure_date: Outbound date (YYYY-MM-DD)
            api_key: SerpAPI key for this request

        Returns:
            UpstreamResult with best_flights followed by other_flights

        Raises:
            UpstreamFetchError: On transport, HTTP or payload errors
        """
        params = {
            "engine": GOOGLE_FLIGHTS_ENGINE,
            "departure_id": origin,
            "arrival_id": destination,
            "outbound_date": departure_date,
            "type": ONE_WAY,
            "currency": CURRENCY,
            "api_key": api_key,
        }

        try:
            response = self.session.get(
                f"{self.base_url}/search.json", params=params, timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            # Never echo the request URL: it carries the api_key
            status = getattr(getattr(e, "response", None), "status_code", None)
            detail = f"HTTP {status}" if status else type(e).__name__
            raise UpstreamFetchError(
                f"SerpAPI request failed for {origin}-{destination} on {departure_date}: {detail}",
                departure_date=departure_date,
            ) from e
        except ValueError as e:
            raise UpstreamFetchError(
                f"SerpAPI returned a non-JSON body for {origin}-{destination} on {departure_date}",
                departure_date=departure_date,
            ) from e

        return parse_search_payload(payload, departure_date)


def parse_search_payload(payload: Any, departure_date: Optional[str] = None) -> UpstreamResult:
    """
    Pull candidate fares and the booking link out of a Google Flights payload.

    Raises:
        UpstreamFetchError: If the payload is not an object or reports an error
    """
    if not isinstance(payload, dict):
        raise UpstreamFetchError("Unexpected SerpAPI payload shape", departure_date=departure_date)

    error = payload.get("error")
    if error and NO_RESULTS_MARKER in str(error):
        logger.info(f"No flights returned for {departure_date}")
        return UpstreamResult()
    if error:
        raise UpstreamFetchError(f"SerpAPI error: {payload['error']}", departure_date=departure_date)

    fares = list(payload.get("best_flights") or []) + list(payload.get("other_flights") or [])
    metadata = payload.get("search_metadata") or {}

    return UpstreamResult(
        fares=[fare for fare in fares if isinstance(fare, dict)],
        booking_reference=metadata.get("google_flights_url") or "",
    )
