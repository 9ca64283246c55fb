"""Tests for the flexible-date fetch orchestrator."""

from datetime import date

import pytest

from data_fetcher import (
    CarrierAllowList,
    build_date_window,
    get_default_fetcher,
    normalize_fare,
    reset_default_fetcher,
)
from database import query_history
from errors import ConfigurationError, StorageError, ValidationError

from .conftest import FakeSource, raw_fare, upstream_error


# ---------------------------------------------------------------------------
# Date window
# ---------------------------------------------------------------------------


def test_date_window_alternates_around_base():
    assert build_date_window("2024-04-12", 2) == [
        "2024-04-12", "2024-04-11", "2024-04-13", "2024-04-10", "2024-04-14",
    ]


def test_date_window_without_flex_is_just_the_base():
    assert build_date_window(date(2024, 4, 12)) == ["2024-04-12"]
    assert build_date_window("2024-04-12", -3) == ["2024-04-12"]


def test_date_window_crosses_month_boundary():
    assert build_date_window("2024-03-01", 1) == ["2024-03-01", "2024-02-29", "2024-03-02"]


def test_date_window_rejects_garbage():
    with pytest.raises(ValueError):
        build_date_window("next friday", 1)


# ---------------------------------------------------------------------------
# Carrier filter and normalization
# ---------------------------------------------------------------------------


def test_carrier_allow_list_uses_substrings():
    allow = CarrierAllowList(["JetBlue", "JSX"])

    assert allow.matches("JetBlue")
    assert allow.matches("JSX")
    assert allow.matches("JetBlue, American")
    assert not allow.matches("Delta")
    assert not allow.matches("")
    assert not allow.matches(None)


def test_normalize_fare_reads_first_leg():
    fare = normalize_fare(raw_fare("JetBlue", 189, legs=2, number="1001"), "https://book.example")

    assert fare.airline == "JetBlue"
    assert fare.price == 189.0
    assert fare.departure_time == "2024-04-12 06:00"
    assert fare.arrival_time == "2024-04-12 08:30"
    assert fare.duration_minutes == 300
    assert fare.flight_number == "JetBlue 1001"
    assert fare.stop_count == 1
    assert fare.booking_reference == "https://book.example"


def test_normalize_fare_falls_back_to_leg_duration():
    raw = raw_fare("JSX", 450)
    del raw["total_duration"]
    assert normalize_fare(raw).duration_minutes == 150


@pytest.mark.parametrize("price", [None, 0, -5, "n/a"])
def test_normalize_fare_drops_unpriced_entries(price):
    assert normalize_fare(raw_fare("JetBlue", price)) is None


@pytest.mark.parametrize("raw", [
    {"price": 150, "flights": ["JetBlue 123"]},
    {"price": 150, "flights": "JetBlue 123"},
    "not a fare",
])
def test_normalize_fare_drops_malformed_entries(raw):
    assert normalize_fare(raw) is None


def test_normalize_fare_tolerates_odd_leg_fields():
    raw = raw_fare("JetBlue", 189)
    raw["flights"][0]["departure_airport"] = "JFK"
    fare = normalize_fare(raw)

    assert fare.departure_time is None
    assert fare.arrival_time == "2024-04-12 08:30"

    raw["flights"][0]["airline"] = 42
    assert normalize_fare(raw).airline == ""


def test_normalize_fare_without_legs():
    fare = normalize_fare({"price": 99})
    assert fare.airline == ""
    assert fare.stop_count == 0


# ---------------------------------------------------------------------------
# fetch_route
# ---------------------------------------------------------------------------


def test_fetch_route_stores_only_tracked_carriers(temp_db, make_fetcher):
    source = FakeSource({
        "2024-04-12": [
            raw_fare("JetBlue", 189),
            raw_fare("Delta", 150),
            raw_fare("JSX", 449),
            raw_fare("Spirit", None),
        ],
    })
    summary = make_fetcher(source=source).fetch_route("jfk", "mia", "2024-04-12")

    assert summary["origin"] == "JFK"
    assert summary["destination"] == "MIA"
    assert summary["observations_saved"] == 2
    assert summary["fares_discarded"] == 2
    assert summary["failed_dates"] == {}

    stored = query_history("JFK", "MIA")
    assert sorted(o.airline for o in stored) == ["JSX", "JetBlue"]
    assert all(o.departure_date == "2024-04-12" for o in stored)
    assert len({o.scraped_at for o in stored}) == 1
    assert stored[0].booking_reference == source.booking_reference


def test_fetch_route_searches_every_date_in_window(temp_db, make_fetcher):
    source = FakeSource({
        "2024-04-11": [raw_fare("JetBlue", 160)],
        "2024-04-13": [raw_fare("JetBlue", 210)],
    })
    summary = make_fetcher(source=source).fetch_route("JFK", "MIA", "2024-04-12", flex_days=1)

    assert [call[2] for call in source.calls] == ["2024-04-12", "2024-04-11", "2024-04-13"]
    assert summary["dates_searched"] == ["2024-04-12", "2024-04-11", "2024-04-13"]
    assert summary["observations_saved"] == 2
    assert {o.departure_date for o in query_history("JFK", "MIA")} == {"2024-04-11", "2024-04-13"}


def test_one_failed_date_does_not_stop_the_others(temp_db, make_fetcher):
    source = FakeSource({
        "2024-04-12": [raw_fare("JetBlue", 189)],
        "2024-04-11": upstream_error("2024-04-11"),
        "2024-04-13": [raw_fare("JSX", 475)],
    })
    summary = make_fetcher(source=source).fetch_route("JFK", "MIA", "2024-04-12", flex_days=1)

    assert list(summary["failed_dates"]) == ["2024-04-11"]
    assert summary["dates_searched"] == ["2024-04-12", "2024-04-13"]
    assert summary["observations_saved"] == 2
    assert len(source.calls) == 3


def test_malformed_fare_does_not_stop_the_window(temp_db, make_fetcher):
    source = FakeSource({
        "2024-04-12": [{"price": 150, "flights": ["JetBlue 123"]}],
        "2024-04-13": [raw_fare("JetBlue", 210)],
    })
    summary = make_fetcher(source=source).fetch_route("JFK", "MIA", "2024-04-12", flex_days=1)

    assert [call[2] for call in source.calls] == ["2024-04-12", "2024-04-11", "2024-04-13"]
    assert summary["failed_dates"] == {}
    assert summary["fares_discarded"] == 1
    assert summary["observations_saved"] == 1
    assert [o.departure_date for o in query_history("JFK", "MIA")] == ["2024-04-13"]


def test_empty_results_are_not_errors(temp_db, make_fetcher):
    summary = make_fetcher().fetch_route("JFK", "MIA", "2024-04-12")

    assert summary["observations_saved"] == 0
    assert summary["failed_dates"] == {}
    assert summary["dates_searched"] == ["2024-04-12"]


def test_missing_key_aborts_fetch(temp_db, make_fetcher):
    source = FakeSource({"2024-04-12": [raw_fare("JetBlue", 189)]})

    with pytest.raises(ConfigurationError):
        make_fetcher(source=source, keys=()).fetch_route("JFK", "MIA", "2024-04-12")

    assert source.calls == []
    assert query_history() == []


def test_storage_failure_propagates(make_fetcher):
    def broken_recorder(observation):
        raise StorageError("disk I/O error")

    source = FakeSource({"2024-04-12": [raw_fare("JetBlue", 189)]})
    fetcher = make_fetcher(source=source, recorder=broken_recorder)

    with pytest.raises(StorageError):
        fetcher.fetch_route("JFK", "MIA", "2024-04-12")


def test_rejected_fares_are_counted_as_discarded(make_fetcher):
    def rejecting_recorder(observation):
        raise ValidationError("Invalid fare observation (price)")

    source = FakeSource({"2024-04-12": [raw_fare("JetBlue", 189)]})
    summary = make_fetcher(source=source, recorder=rejecting_recorder).fetch_route("JFK", "MIA", "2024-04-12")

    assert summary["observations_saved"] == 0
    assert summary["fares_discarded"] == 1


def test_custom_carrier_filter(temp_db, make_fetcher):
    source = FakeSource({"2024-04-12": [raw_fare("JetBlue", 189), raw_fare("Delta", 150)]})
    fetcher = make_fetcher(source=source, carrier_filter=CarrierAllowList(["Delta"]))

    fetcher.fetch_route("JFK", "MIA", "2024-04-12")
    assert [o.airline for o in query_history()] == ["Delta"]


# ---------------------------------------------------------------------------
# Pacing
# ---------------------------------------------------------------------------


def test_pacing_between_dates_only(temp_db, make_fetcher, recording_sleep):
    make_fetcher().fetch_route("JFK", "MIA", "2024-04-12", flex_days=2)
    assert recording_sleep.calls == [0.5] * 4


def test_single_date_is_not_paced(temp_db, make_fetcher, recording_sleep):
    make_fetcher().fetch_route("JFK", "MIA", "2024-04-12")
    assert recording_sleep.calls == []


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------


def test_round_trip_fetches_swapped_return_leg(temp_db, make_fetcher):
    source = FakeSource({
        "2024-04-12": [raw_fare("JetBlue", 189)],
        "2024-04-19": [raw_fare("JetBlue", 205)],
    })
    fetcher = make_fetcher(source=source, keys=("k0", "k1"))

    result = fetcher.fetch_round_trip("JFK", "MIA", "2024-04-12", "2024-04-19", flex_days=1)

    assert [(c[0], c[1]) for c in source.calls] == [("JFK", "MIA")] * 3 + [("MIA", "JFK")] * 3
    assert [c[3] for c in source.calls] == ["k0", "k1", "k0", "k1", "k0", "k1"]
    assert result["outbound"]["observations_saved"] == 1
    assert result["return"]["origin"] == "MIA"
    assert result["return"]["dates"] == ["2024-04-19", "2024-04-18", "2024-04-20"]
    assert len(query_history("MIA", "JFK")) == 1


def test_one_way_has_no_return_summary(temp_db, make_fetcher):
    result = make_fetcher().fetch_round_trip("JFK", "MIA", "2024-04-12")
    assert result["return"] is None
    assert result["outbound"]["dates"] == ["2024-04-12"]


def test_round_trip_without_keys_fails_upfront(make_fetcher):
    source = FakeSource()

    with pytest.raises(ConfigurationError, match="No API key configured."):
        make_fetcher(source=source, keys=()).fetch_round_trip("JFK", "MIA", "2024-04-12", "2024-04-19")

    assert source.calls == []


# ---------------------------------------------------------------------------
# Shared instance
# ---------------------------------------------------------------------------


def test_default_fetcher_is_shared():
    reset_default_fetcher()
    try:
        assert get_default_fetcher() is get_default_fetcher()
    finally:
        reset_default_fetcher()
