"""
Error taxonomy for Airfare Tracker.

Store and credential errors propagate to the caller; upstream errors are
contained per date by the fetch orchestrator.
"""


class AirfareTrackerError(Exception):
    """Base class for all domain errors."""


class ValidationError(AirfareTrackerError, ValueError):
    """A fare observation is malformed and was rejected before writing."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []


class StorageError(AirfareTrackerError):
    """The durability layer failed (I/O, constraint violation, ...)."""


class ConfigurationError(AirfareTrackerError):
    """No upstream credential is available for a fetch."""


class UpstreamFetchError(AirfareTrackerError):
    """Transport or parsing failure while querying the upstream source for one date."""

    def __init__(self, message: str, departure_date: str | None = None):
        super().__init__(message)
        self.departure_date = departure_date
