"""Shared fixtures for Airfare Tracker tests."""

from datetime import datetime, timedelta

import pytest

import database
from errors import UpstreamFetchError
from key_rotation import KeyRotator
from models import FareObservation
from serpapi_client import UpstreamResult
from utils import Pacer


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point the store at a fresh SQLite file for each test."""
    db_path = str(tmp_path / "test_flights.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    database.init_db()
    return db_path


@pytest.fixture
def make_observation():
    """Factory fixture for FareObservation instances."""
    base_time = datetime(2024, 3, 1, 8, 0, 0)

    def _make(
        airline: str = "JetBlue",
        price: float = 200.0,
        departure_date: str = "2024-04-12",
        origin: str = "JFK",
        destination: str = "MIA",
        minutes: int = 0,
        **extra,
    ) -> FareObservation:
        return FareObservation(
            airline=airline,
            origin=origin,
            destination=destination,
            departure_date=departure_date,
            price=price,
            scraped_at=base_time + timedelta(minutes=minutes),
            **extra,
        )

    return _make


def raw_fare(airline: str, price, legs: int = 1, number: str = "1001", **extra) -> dict:
    """A Google Flights style fare entry."""
    flights = []
    for leg in range(legs):
        flights.append({
            "airline": airline,
            "flight_number": number,
            "departure_airport": {"time": f"2024-04-12 0{6 + leg}:00"},
            "arrival_airport": {"time": f"2024-04-12 0{8 + leg}:30"},
            "duration": 150,
        })
    fare = {"price": price, "flights": flights, "total_duration": 150 * legs}
    fare.update(extra)
    return fare


class FakeSource:
    """
    Stands in for the SerpAPI source.

    `responses` maps departure date to a list of raw fares or to an
    exception to raise. Dates not listed return no fares.
    """

    def __init__(self, responses=None, booking_reference="https://www.google.com/travel/flights/booking"):
        self.responses = responses or {}
        self.booking_reference = booking_reference
        self.calls = []

    def search(self, origin, destination, departure_date, api_key):
        self.calls.append((origin, destination, departure_date, api_key))
        response = self.responses.get(departure_date, [])
        if isinstance(response, Exception):
            raise response
        return UpstreamResult(fares=list(response), booking_reference=self.booking_reference)


class RecordingSleep:
    """Sleep replacement that remembers every requested delay."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def make_fetcher(recording_sleep):
    """Factory fixture for a FlexDateFetcher wired to fakes."""
    from data_fetcher import FlexDateFetcher

    def _make(source=None, keys=("key-a",), **kwargs) -> FlexDateFetcher:
        return FlexDateFetcher(
            key_rotator=KeyRotator(keys),
            source=source if source is not None else FakeSource(),
            pacer=Pacer(interval=0.5, sleep=recording_sleep),
            **kwargs,
        )

    return _make


def upstream_error(date: str) -> UpstreamFetchError:
    return UpstreamFetchError(f"SerpAPI request failed on {date}: HTTP 500", departure_date=date)
