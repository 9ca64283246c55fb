"""Tests for scheduled collection."""

import pytest
import schedule

import scheduler
from scheduler import (
    get_next_run_time,
    get_scheduler_status,
    register_jobs,
    run_scheduled_fetch,
    start_scheduler,
)

from .conftest import FakeSource, raw_fare


@pytest.fixture(autouse=True)
def clear_jobs():
    schedule.clear()
    yield
    schedule.clear()


def test_scheduled_fetch_without_keys_reports_failure(make_fetcher):
    result = run_scheduled_fetch(make_fetcher(keys=()), "JFK", "MIA", "2024-04-12", 0)

    assert result["success"] is False
    assert "No SerpAPI key configured" in result["error"]


def test_scheduled_fetch_collects_watch_route(temp_db, make_fetcher):
    source = FakeSource({"2024-04-12": [raw_fare("JetBlue", 189)]})
    result = run_scheduled_fetch(make_fetcher(source=source), "JFK", "MIA", "2024-04-12", 0)

    assert result["success"] is True
    assert result["observations_saved"] == 1


def test_register_jobs_replaces_existing(make_fetcher):
    fetcher = make_fetcher()
    register_jobs(["06:00"], fetcher)
    jobs = register_jobs(["06:00", "14:00", "22:00"], fetcher)

    assert len(jobs) == 3
    assert len(schedule.get_jobs()) == 3
    assert get_next_run_time() is not None

    status = get_scheduler_status()
    assert status["jobs_scheduled"] == 3
    assert status["next_run"] is not None


def test_no_jobs_means_no_next_run():
    assert get_next_run_time() is None


def test_start_scheduler_runs_immediately_and_stops(temp_db, make_fetcher, monkeypatch):
    source = FakeSource({"2024-04-12": [raw_fare("JetBlue", 189)]})
    monkeypatch.setattr(scheduler.signal, "signal", lambda *args: None)
    monkeypatch.setattr(scheduler.time, "sleep", lambda seconds: scheduler._handle_shutdown(None, None))

    start_scheduler(run_times=["06:00"], run_immediately=True, fetcher=make_fetcher(source=source))

    assert len(source.calls) == 1
    assert schedule.get_jobs() == []
