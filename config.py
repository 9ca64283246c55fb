"""
Configuration module for Airfare Tracker.

Loads environment variables and defines application constants.
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _split_env_list(value: str | None) -> list[str]:
    """Split a comma-separated environment value, dropping blanks."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _optional_float(value: str | None) -> float | None:
    if value is None or not value.strip():
        return None
    return float(value)


# =============================================================================
# API CREDENTIALS
# =============================================================================
SERPAPI_KEY = os.getenv("SERPAPI_KEY")
SERPAPI_KEY_2 = os.getenv("SERPAPI_KEY_2")
SERPAPI_KEYS = os.getenv("SERPAPI_KEYS")
SERPAPI_BASE_URL = os.getenv("SERPAPI_BASE_URL", "https://serpapi.com")
SERPAPI_TIMEOUT = _optional_float(os.getenv("SERPAPI_TIMEOUT"))

# Note: Credentials validated at fetch time in data_fetcher.py, not at import time
# This allows the API and dashboard to start without keys


def get_serpapi_keys() -> list[str]:
    """
    Collect every configured SerpAPI key in rotation order.

    SERPAPI_KEY comes first, then SERPAPI_KEY_2, then any extra keys listed
    in SERPAPI_KEYS. Blank values and repeats are dropped.

    Returns:
        List of API key strings (possibly empty)
    """
    ordered = [SERPAPI_KEY, SERPAPI_KEY_2] + _split_env_list(SERPAPI_KEYS)
    keys: list[str] = []
    for key in ordered:
        if key and key.strip() and key.strip() not in keys:
            keys.append(key.strip())
    return keys


SERPAPI_KEYS_LIST = get_serpapi_keys()

# =============================================================================
# DATABASE CONFIGURATION
# =============================================================================
DATABASE_PATH = os.getenv("DATABASE_PATH", "flights.db")

# =============================================================================
# FETCH PARAMETERS
# =============================================================================
# Carrier substrings kept from upstream results; everything else is discarded
TRACKED_CARRIERS = _split_env_list(os.getenv("TRACKED_CARRIERS", "JetBlue,JSX"))
FLEX_PACING_SECONDS = float(os.getenv("FLEX_PACING_SECONDS", "0.5"))  # seconds between dates
MAX_FLEX_DAYS = 3
CURRENCY = "USD"

# =============================================================================
# INSIGHT PARAMETERS
# =============================================================================
RECENT_OBSERVATION_LIMIT = 100
STRONG_BUY_RATIO = 0.9   # min below 90% of average
HOLD_RATIO = 1.1         # min above 110% of average
FLEX_SAVINGS_THRESHOLD = 20.0
GOOGLE_FLIGHTS_URL = "https://www.google.com/travel/flights"

# =============================================================================
# SCHEDULER CONFIGURATION
# =============================================================================
# 2 keys x 250 free searches/month; three runs a day stays well under that
SCHEDULE_TIMES = _split_env_list(os.getenv("SCHEDULE_TIMES", "06:00,14:00,22:00"))
WATCH_ORIGIN = os.getenv("WATCH_ORIGIN", "JFK")
WATCH_DESTINATION = os.getenv("WATCH_DESTINATION", "MIA")
WATCH_DATE = os.getenv("WATCH_DATE", "2024-04-12")
WATCH_FLEX_DAYS = int(os.getenv("WATCH_FLEX_DAYS", "0"))

# =============================================================================
# API CONFIGURATION
# =============================================================================
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("PORT", "3001"))
CORS_ORIGINS = _split_env_list(os.getenv("CORS_ORIGINS", "*"))

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE = os.getenv("LOG_FILE")

# =============================================================================
# UI CONFIGURATION
# =============================================================================
STREAMLIT_PAGE_TITLE = "Airfare Tracker"
STREAMLIT_PAGE_ICON = "✈️"
STREAMLIT_LAYOUT = "wide"

# Color scheme for visualizations
COLORS = {
    "buy": "#28a745",        # Green for buy signals
    "wait": "#dc3545",       # Red for hold/wait
    "flex": "#007bff",       # Blue for flexible dates
    "secondary": "#6c757d",  # Gray secondary
    "background": "#f8f9fa", # Light background
}

AIRLINE_COLORS = {
    "JetBlue": "#0033a0",
    "JSX": "#c8a96a",
}
