"""
Database initialization and fare observation store for Airfare Tracker.

Handles SQLite operations with proper connection management. The
fare_observations table is append-only: rows are inserted, never updated
or deleted.
"""

import sqlite3
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Optional, Generator, Any, Iterable, List, Mapping

from pydantic import ValidationError as PydanticValidationError

from config import DATABASE_PATH, RECENT_OBSERVATION_LIMIT
from errors import StorageError, ValidationError
from models import FareObservation
from utils import utc_now

# Configure logging
logger = logging.getLogger(__name__)


# =============================================================================
# DATABASE SCHEMA
# =============================================================================

SCHEMA_FARE_OBSERVATIONS = """
CREATE TABLE IF NOT EXISTS fare_observations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,

    -- Sighting
    airline TEXT NOT NULL,
    origin TEXT NOT NULL,
    destination TEXT NOT NULL,
    departure_date TEXT NOT NULL DEFAULT '',
    price REAL NOT NULL CHECK (price > 0),
    scraped_at DATETIME NOT NULL,

    -- Itinerary detail
    departure_time TEXT,
    arrival_time TEXT,
    duration_minutes INTEGER,
    flight_number TEXT,
    stop_count INTEGER,
    booking_reference TEXT
);
"""

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_obs_scraped_at ON fare_observations(scraped_at);",
    "CREATE INDEX IF NOT EXISTS idx_obs_route ON fare_observations(UPPER(origin), UPPER(destination), scraped_at);",
    "CREATE INDEX IF NOT EXISTS idx_obs_airline ON fare_observations(airline);",
]

PRAGMAS = [
    "PRAGMA journal_mode = WAL;",
    "PRAGMA synchronous = NORMAL;",
    "PRAGMA temp_store = MEMORY;",
]

OBSERVATION_COLUMNS = [
    'airline', 'origin', 'destination', 'departure_date', 'price', 'scraped_at',
    'departure_time', 'arrival_time', 'duration_minutes', 'flight_number',
    'stop_count', 'booking_reference',
]

# Optional columns added after the first release; old rows read them as NULL
MIGRATIONS = [
    ("fare_observations", "departure_time", "TEXT"),
    ("fare_observations", "arrival_time", "TEXT"),
    ("fare_observations", "duration_minutes", "INTEGER"),
    ("fare_observations", "flight_number", "TEXT"),
    ("fare_observations", "stop_count", "INTEGER"),
    ("fare_observations", "booking_reference", "TEXT"),
]


# =============================================================================
# CONNECTION MANAGEMENT
# =============================================================================

def _configure_connection(conn: sqlite3.Connection) -> None:
    """Apply configuration settings to a database connection."""
    conn.row_factory = sqlite3.Row
    for pragma in PRAGMAS:
        conn.execute(pragma)


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for safe database access.

    Commits on success and rolls back on failure. Any sqlite3 error is
    logged and re-raised as StorageError.
    """
    conn = None
    try:
        conn = sqlite3.connect(DATABASE_PATH, timeout=30)
        _configure_connection(conn)
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        if conn:
            conn.rollback()
        logger.error(f"Database error: {e}")
        raise StorageError(str(e)) from e
    finally:
        if conn:
            conn.close()


# =============================================================================
# DATABASE INITIALIZATION
# =============================================================================

def init_db() -> bool:
    """
    Initialize the database by creating tables and indexes if they don't exist.

    Returns:
        True if initialization succeeded

    Raises:
        StorageError: If the database cannot be created
    """
    with get_db_connection() as conn:
        conn.execute(SCHEMA_FARE_OBSERVATIONS)
        logger.info("Created/verified fare_observations table")

        for index_sql in INDEXES:
            conn.execute(index_sql)
        logger.info("Created/verified all indexes")

    migrate_db()
    logger.info(f"Database initialized successfully at {DATABASE_PATH}")
    return True


def migrate_db() -> bool:
    """
    Migrate an existing database to the current schema.

    Only ever adds optional columns.
    """
    with get_db_connection() as conn:
        for table, column, col_type in MIGRATIONS:
            try:
                conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}")
                logger.info(f"Added column {column} to {table}")
            except sqlite3.OperationalError as e:
                if "duplicate column name" in str(e).lower():
                    logger.debug(f"Column {column} already exists in {table}")
                else:
                    logger.warning(f"Migration note for {table}.{column}: {e}")
    return True


# =============================================================================
# QUERY UTILITIES
# =============================================================================

def execute_query(
    query: str,
    params: Optional[tuple] = None,
    fetch: str = "all"
) -> Optional[list[dict] | dict]:
    """Execute a database query with error handling."""
    with get_db_connection() as conn:
        cursor = conn.execute(query, params or ())

        if fetch == "one":
            row = cursor.fetchone()
            return dict(row) if row else None
        return [dict(row) for row in cursor.fetchall()]


def _route_clause(origin: Optional[str], destination: Optional[str]) -> tuple[str, list[str]]:
    """Build a case-insensitive WHERE clause for whichever airports are given."""
    clauses = []
    params = []
    if origin:
        clauses.append("UPPER(origin) = UPPER(?)")
        params.append(origin.strip())
    if destination:
        clauses.append("UPPER(destination) = UPPER(?)")
        params.append(destination.strip())
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


# =============================================================================
# FARE OBSERVATION OPERATIONS
# =============================================================================

def _coerce_observation(observation: FareObservation | Mapping[str, Any]) -> FareObservation:
    if isinstance(observation, FareObservation):
        return observation
    try:
        return FareObservation.model_validate(dict(observation))
    except PydanticValidationError as e:
        fields = ", ".join(
            ".".join(str(part) for part in err["loc"]) or "observation" for err in e.errors()
        )
        raise ValidationError(f"Invalid fare observation ({fields})", errors=e.errors()) from e


def _insert_observation(conn: sqlite3.Connection, obs: FareObservation) -> FareObservation:
    if obs.scraped_at is None:
        obs = obs.model_copy(update={'scraped_at': utc_now()})

    row = obs.to_row()
    placeholders = ', '.join(['?' for _ in OBSERVATION_COLUMNS])
    columns_str = ', '.join(OBSERVATION_COLUMNS)

    cursor = conn.execute(
        f"INSERT INTO fare_observations ({columns_str}) VALUES ({placeholders})",
        tuple(row.get(col) for col in OBSERVATION_COLUMNS)
    )
    return obs.model_copy(update={'id': cursor.lastrowid})


def record_observation(observation: FareObservation | Mapping[str, Any]) -> FareObservation:
    """
    Append a single fare observation.

    Args:
        observation: A FareObservation, or a mapping with its fields
            (snake_case or camelCase keys)

    Returns:
        The stored observation, with its id and scraped_at filled in

    Raises:
        ValidationError: If price is missing/non-positive or airline,
            origin or destination is empty. Nothing is written.
        StorageError: If the insert fails
    """
    obs = _coerce_observation(observation)
    with get_db_connection() as conn:
        stored = _insert_observation(conn, obs)

    logger.debug(
        f"Recorded {stored.airline} {stored.origin}-{stored.destination} "
        f"{stored.departure_date} ${stored.price} (id={stored.id})"
    )
    return stored


def record_observations(observations: Iterable[FareObservation | Mapping[str, Any]]) -> List[FareObservation]:
    """
    Append several observations in order.

    All observations are validated before anything is written, and the
    batch is inserted in one transaction: a storage failure part way
    through rolls back the whole batch.
    """
    validated = [_coerce_observation(obs) for obs in observations]
    with get_db_connection() as conn:
        return [_insert_observation(conn, obs) for obs in validated]


def query_history(
    origin: Optional[str] = None,
    destination: Optional[str] = None,
) -> List[FareObservation]:
    """
    Get observations for a route, oldest first.

    Args:
        origin: Optional origin airport (case-insensitive)
        destination: Optional destination airport (case-insensitive)

    Returns:
        Matching observations ordered by scraped_at ascending. With no
        filter, the full history.
    """
    where, params = _route_clause(origin, destination)
    query = f"SELECT * FROM fare_observations{where} ORDER BY scraped_at ASC, id ASC"
    rows = execute_query(query, tuple(params), fetch="all") or []
    return [FareObservation.from_row(row) for row in rows]


def query_recent(
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    limit: int = RECENT_OBSERVATION_LIMIT,
) -> List[FareObservation]:
    """
    Get the most recent observations for a route, newest first.

    Args:
        origin: Optional origin airport (case-insensitive)
        destination: Optional destination airport (case-insensitive)
        limit: Maximum rows returned (default: 100)
    """
    if limit <= 0:
        return []
    where, params = _route_clause(origin, destination)
    query = f"SELECT * FROM fare_observations{where} ORDER BY scraped_at DESC, id DESC LIMIT ?"
    rows = execute_query(query, tuple(params) + (limit,), fetch="all") or []
    return [FareObservation.from_row(row) for row in rows]


# =============================================================================
# STATISTICS
# =============================================================================

def get_database_stats() -> dict[str, Any]:
    """
    Summarize what the store holds.
    """
    totals = execute_query(
        "SELECT COUNT(*) AS count, MIN(scraped_at) AS earliest, MAX(scraped_at) AS latest, "
        "COUNT(DISTINCT UPPER(origin) || '-' || UPPER(destination)) AS routes, "
        "COUNT(DISTINCT airline) AS airlines "
        "FROM fare_observations",
        fetch="one",
    ) or {}
    routes = execute_query(
        "SELECT UPPER(origin) AS origin, UPPER(destination) AS destination, COUNT(*) AS count, "
        "MIN(price) AS min_price, MAX(scraped_at) AS last_seen "
        "FROM fare_observations GROUP BY UPPER(origin), UPPER(destination) "
        "ORDER BY count DESC",
        fetch="all",
    ) or []

    return {
        "total_observations": totals.get("count", 0),
        "routes_tracked": totals.get("routes", 0),
        "airlines_tracked": totals.get("airlines", 0),
        "date_range": {
            "earliest": totals.get("earliest"),
            "latest": totals.get("latest"),
        },
        "routes": routes,
        "database_path": DATABASE_PATH,
    }


# =============================================================================
# DEMO DATA
# =============================================================================

def seed_demo_data(now: Optional[datetime] = None) -> List[FareObservation]:
    """
    Insert a week of mock history for the JFK → MIA spring break flight.

    JetBlue climbs as the date approaches, with a dip two days ago; JSX is
    premium and steadier, with a surge yesterday.
    """
    now = now or utc_now()
    observations = []

    for days_ago in range(7, -1, -1):
        scraped_at = now - timedelta(days=days_ago)
        step = 7 - days_ago

        jetblue_price = 220 + step * 15
        if days_ago == 2:
            jetblue_price -= 45  # simulated price drop

        jsx_price = 450 + step * 10
        if days_ago == 1:
            jsx_price += 50  # surge pricing

        observations.append(FareObservation(
            airline="JetBlue", origin="JFK", destination="MIA",
            departure_date="2024-04-12", price=jetblue_price, scraped_at=scraped_at,
        ))
        observations.append(FareObservation(
            airline="JSX", origin="JFK", destination="MIA",
            departure_date="2024-04-12", price=jsx_price, scraped_at=scraped_at,
        ))

    stored = record_observations(observations)
    logger.info(f"Seeded {len(stored)} demo observations")
    return stored
