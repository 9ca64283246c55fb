"""
Data models and schemas for Airfare Tracker.

Uses Pydantic for validation and serialization. Field names are snake_case
in Python and in SQLite; the camelCase aliases are what the REST API speaks.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field, field_validator, ConfigDict
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS
# =============================================================================

class InsightKind(str, Enum):
    """Recommendation type produced by the insight engine."""
    BUY = "buy"
    WAIT = "wait"
    FLEX = "flex"


# =============================================================================
# CORE DATA MODELS
# =============================================================================

def _normalize_airport(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


class Route(BaseModel):
    """An (origin, destination) pair; never stored, derived from observations."""
    model_config = ConfigDict(frozen=True)

    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)

    @field_validator('origin', 'destination', mode='before')
    @classmethod
    def validate_airport_code(cls, v: Any) -> Any:
        return _normalize_airport(v)

    @property
    def label(self) -> str:
        """Display string (e.g., 'JFK → MIA')."""
        return f"{self.origin} → {self.destination}"


class FareObservation(BaseModel):
    """
    One sighting of a priced itinerary.

    Immutable: corrections are recorded as new observations. `id` and
    `scraped_at` are filled in by the store when the observation is recorded.
    """
    model_config = ConfigDict(
        frozen=True,
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: Optional[int] = None

    airline: str = Field(..., min_length=1)
    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    departure_date: str = ""
    price: float = Field(..., gt=0)
    scraped_at: Optional[datetime] = None

    # Optional itinerary detail
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    flight_number: Optional[str] = None
    stop_count: Optional[int] = Field(default=None, ge=0)
    booking_reference: Optional[str] = None

    @field_validator('airline', mode='before')
    @classmethod
    def strip_airline(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator('origin', 'destination', mode='before')
    @classmethod
    def validate_airport_code(cls, v: Any) -> Any:
        """Ensure airport codes are uppercase."""
        return _normalize_airport(v)

    @field_validator('departure_date', mode='before')
    @classmethod
    def validate_departure_date(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, datetime):
            return v.date().isoformat()
        if isinstance(v, date):
            return v.isoformat()
        if isinstance(v, str) and v.strip():
            # Raises ValueError for anything but YYYY-MM-DD
            return datetime.strptime(v.strip(), "%Y-%m-%d").date().isoformat()
        return v

    @field_validator('scraped_at')
    @classmethod
    def normalize_scraped_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store every timestamp as naive UTC so text order is time order."""
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    @property
    def route(self) -> Route:
        return Route(origin=self.origin, destination=self.destination)

    def to_row(self) -> dict[str, Any]:
        """Convert model to a column dictionary for database insertion."""
        data = self.model_dump(exclude={'id'})
        if data.get('scraped_at'):
            data['scraped_at'] = data['scraped_at'].isoformat(sep=' ', timespec='microseconds')
        return data

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "FareObservation":
        """Create model from a database row."""
        data = dict(row)
        scraped_at = data.get('scraped_at')
        if isinstance(scraped_at, str):
            # Rows written by other tools may carry a trailing 'Z'
            data['scraped_at'] = datetime.fromisoformat(scraped_at.replace('Z', '+00:00'))
        return cls.model_validate(data)


class CandidateFare(BaseModel):
    """
    A normalized upstream fare, before carrier filtering.
    """
    airline: str
    price: float
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    duration_minutes: Optional[int] = None
    flight_number: Optional[str] = None
    stop_count: int = Field(default=0, ge=0)
    booking_reference: Optional[str] = None

    def to_observation(
        self,
        origin: str,
        destination: str,
        departure_date: str,
        scraped_at: Optional[datetime] = None,
    ) -> FareObservation:
        return FareObservation(
            airline=self.airline,
            origin=origin,
            destination=destination,
            departure_date=departure_date,
            price=self.price,
            scraped_at=scraped_at,
            departure_time=self.departure_time,
            arrival_time=self.arrival_time,
            duration_minutes=self.duration_minutes,
            flight_number=self.flight_number,
            stop_count=self.stop_count,
            booking_reference=self.booking_reference,
        )


class Insight(BaseModel):
    """
    A derived recommendation. Recomputed on every read, never persisted.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    kind: InsightKind
    airline: str
    price: float
    title: str
    description: str

    # Flex insights only
    savings: Optional[float] = None

    # Provenance for display
    flight_detail: str = ""
    date: Optional[str] = None
    search_url: Optional[str] = None


# =============================================================================
# API REQUEST MODELS
# =============================================================================

class FetchRequest(BaseModel):
    """Body of an on-demand fetch trigger."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    date: str
    return_date: Optional[str] = None
    flex_days: int = 0

    @field_validator('origin', 'destination', mode='before')
    @classmethod
    def validate_airport_code(cls, v: Any) -> Any:
        return _normalize_airport(v)

    @field_validator('flex_days', mode='before')
    @classmethod
    def default_flex_days(cls, v: Any) -> Any:
        return 0 if v is None else v
