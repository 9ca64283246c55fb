"""
Insight derivation for Airfare Tracker.

Turns the most recent observations for a route into buy / wait / flex-date
recommendations. Insights are recomputed on every call and never stored.
"""

import logging
from typing import Dict, List, Optional, Sequence

from config import (
    RECENT_OBSERVATION_LIMIT,
    STRONG_BUY_RATIO,
    HOLD_RATIO,
    FLEX_SAVINGS_THRESHOLD,
)
from database import query_recent
from models import FareObservation, Insight, InsightKind
from utils import build_search_url, format_flight_detail, format_price, round_half_up

# Configure logging
logger = logging.getLogger(__name__)


# =============================================================================
# ENTRY POINT
# =============================================================================

def derive_insights(
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    limit: int = RECENT_OBSERVATION_LIMIT,
) -> List[Insight]:
    """
    Compute insights from the latest observations for a route.

    Args:
        origin: Optional origin airport (case-insensitive)
        destination: Optional destination airport (case-insensitive)
        limit: How many recent observations to consider (default: 100)

    Returns:
        Flex-date insights first, then one best-price insight per airline
    """
    observations = query_recent(origin, destination, limit=limit)
    insights = build_insights(observations)
    logger.debug(
        f"Derived {len(insights)} insight(s) from {len(observations)} observation(s) "
        f"for {origin or '*'}-{destination or '*'}"
    )
    return insights


def build_insights(observations: Sequence[FareObservation]) -> List[Insight]:
    """
    Build the ordered insight list from an observation window.

    Pure function of its input: the same observations always give the same
    insights. Airlines are visited in the order they first appear.
    """
    if not observations:
        return []

    by_airline = group_by_airline(observations)

    best_price = [
        _best_price_insight(airline, flights) for airline, flights in by_airline.items()
    ]
    flex = []
    for airline, flights in by_airline.items():
        insight = _flex_date_insight(airline, flights)
        if insight is not None:
            flex.append(insight)

    return _merge_and_number(flex, best_price)


# =============================================================================
# GROUPING
# =============================================================================

def group_by_airline(observations: Sequence[FareObservation]) -> Dict[str, List[FareObservation]]:
    """Group observations by airline, preserving first-seen order."""
    groups: Dict[str, List[FareObservation]] = {}
    for obs in observations:
        groups.setdefault(obs.airline, []).append(obs)
    return groups


def cheapest_by_date(flights: Sequence[FareObservation]) -> Dict[str, FareObservation]:
    """
    Cheapest observation for each non-empty departure date.

    On a price tie the first observation seen wins.
    """
    cheapest: Dict[str, FareObservation] = {}
    for flight in flights:
        if not flight.departure_date:
            continue
        current = cheapest.get(flight.departure_date)
        if current is None or flight.price < current.price:
            cheapest[flight.departure_date] = flight
    return cheapest


# =============================================================================
# INSIGHT BUILDERS
# =============================================================================

def _best_price_insight(airline: str, flights: List[FareObservation]) -> Insight:
    """Classify an airline's lowest fare against its average."""
    prices = [f.price for f in flights]
    min_price = min(prices)
    avg_price = round_half_up(sum(prices) / len(prices))
    cheapest = next(f for f in flights if f.price == min_price)

    route = cheapest.route.label
    flight_detail = format_flight_detail(
        cheapest.departure_time, cheapest.arrival_time, cheapest.stop_count
    )
    detail_suffix = f" {flight_detail}" if flight_detail else ""

    # Exactly 0.9x or 1.1x falls through to "Best Price Found"
    if min_price < avg_price * STRONG_BUY_RATIO:
        kind = InsightKind.BUY
        title = "Strong Buy Recommendation"
        pct_below = round_half_up((1 - min_price / avg_price) * 100)
        description = (
            f"{airline} {route} at {format_price(min_price)}, "
            f"{pct_below}% below avg {format_price(avg_price)}.{detail_suffix}"
        )
    elif min_price > avg_price * HOLD_RATIO:
        kind = InsightKind.WAIT
        title = "Hold / Wait"
        description = (
            f"{airline} {route} elevated at {format_price(min_price)} "
            f"(avg {format_price(avg_price)}). Consider waiting."
        )
    else:
        kind = InsightKind.BUY
        title = "Best Price Found"
        description = f"{airline} {route} at {format_price(min_price)}.{detail_suffix}"

    return Insight(
        id=0,
        kind=kind,
        airline=airline,
        price=min_price,
        title=title,
        description=description,
        flight_detail=flight_detail,
        date=cheapest.departure_date or None,
        search_url=build_search_url(cheapest.origin, cheapest.destination, cheapest.departure_date),
    )


def _flex_date_insight(airline: str, flights: List[FareObservation]) -> Optional[Insight]:
    """
    Compare an airline's cheapest and most expensive departure dates.

    Returns None with fewer than two dates or when the gap is not above
    the savings threshold.
    """
    per_date = cheapest_by_date(flights)
    if len(per_date) < 2:
        return None

    ranked = sorted(per_date.items(), key=lambda item: item[1].price)
    cheap_date, cheap = ranked[0]
    dear_date, dear = ranked[-1]
    if cheap_date == dear_date:
        return None

    savings = round(dear.price - cheap.price, 2)
    if savings <= FLEX_SAVINGS_THRESHOLD:
        return None

    return Insight(
        id=0,
        kind=InsightKind.FLEX,
        airline=airline,
        price=cheap.price,
        savings=savings,
        title=f"Cheaper {airline} Date",
        description=(
            f"{airline} is {format_price(cheap.price)} on {cheap_date} vs "
            f"{format_price(dear.price)} on {dear_date}. Save {format_price(savings)}."
        ),
        flight_detail=format_flight_detail(cheap.departure_time, cheap.arrival_time, cheap.stop_count),
        date=cheap_date,
        search_url=build_search_url(cheap.origin, cheap.destination, cheap_date),
    )


def _merge_and_number(flex: List[Insight], best_price: List[Insight]) -> List[Insight]:
    """Flex insights first, then best-price insights; ids run 1..n in that order."""
    ordered = flex + best_price
    return [
        insight.model_copy(update={'id': position})
        for position, insight in enumerate(ordered, start=1)
    ]
