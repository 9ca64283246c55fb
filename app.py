"""
Streamlit Dashboard for Airfare Tracker.

Shows price trends per airline for a route, the current buy / wait /
flex-date insights, and a form to trigger a live search.

Run with: streamlit run app.py
"""

import logging
from datetime import date

import streamlit as st

from config import (
    COLORS,
    LOG_FORMAT,
    LOG_LEVEL,
    MAX_FLEX_DAYS,
    STREAMLIT_LAYOUT,
    STREAMLIT_PAGE_ICON,
    STREAMLIT_PAGE_TITLE,
    TRACKED_CARRIERS,
    WATCH_DATE,
    WATCH_DESTINATION,
    WATCH_ORIGIN,
)
from utils import setup_logging

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = logging.getLogger(__name__)

# Page config - must be first Streamlit command
st.set_page_config(
    page_title=STREAMLIT_PAGE_TITLE,
    page_icon=STREAMLIT_PAGE_ICON,
    layout=STREAMLIT_LAYOUT,
)

# Import our modules after page config
from analyzer import derive_insights
from data_fetcher import get_default_fetcher
from database import init_db, query_history, seed_demo_data
from errors import AirfareTrackerError, ConfigurationError
from models import Insight, InsightKind
from utils import format_price, parse_date
from visualizer import plot_price_trend


# =============================================================================
# INITIALIZATION
# =============================================================================

@st.cache_resource
def initialize_database():
    """Initialize database once per session."""
    return init_db()

initialize_database()


# =============================================================================
# COMPONENTS
# =============================================================================

INSIGHT_ICONS = {
    InsightKind.BUY: "📉",
    InsightKind.WAIT: "⏳",
    InsightKind.FLEX: "📅",
}


def render_insight(insight: Insight) -> None:
    """Render one insight as a colored card."""
    color = COLORS.get(insight.kind.value, COLORS["secondary"])
    extra = ""
    if insight.savings:
        extra = f"<div><strong>Save {format_price(insight.savings)}</strong></div>"
    link = ""
    if insight.search_url:
        link = f'<div><a href="{insight.search_url}" target="_blank">Search flights</a></div>'

    st.markdown(
        f"""
        <div style="border-left: 4px solid {color}; padding: 0.75rem 1rem;
                    margin-bottom: 0.75rem; border-radius: 8px; background: {COLORS['background']};">
            <div style="font-weight: 600;">{INSIGHT_ICONS[insight.kind]} {insight.title}</div>
            <div>{insight.description}</div>
            {extra}
            {link}
        </div>
        """,
        unsafe_allow_html=True,
    )


def render_search_form() -> None:
    """Route inputs and the live search trigger."""
    col1, col2, col3, col4, col5 = st.columns([1, 1, 1.2, 1, 1])

    with col1:
        origin = st.text_input("Origin", value=st.session_state.get("origin", WATCH_ORIGIN))
    with col2:
        destination = st.text_input("Destination", value=st.session_state.get("destination", WATCH_DESTINATION))
    with col3:
        departure = st.date_input("Departure", value=parse_date(WATCH_DATE))
    with col4:
        flex_days = st.selectbox(
            "Flexibility",
            options=list(range(MAX_FLEX_DAYS + 1)),
            format_func=lambda d: "Exact Date" if d == 0 else f"± {d} Day{'s' if d > 1 else ''}",
        )
    with col5:
        st.write("")
        track = st.button("🔍 Track Route", type="primary", use_container_width=True)

    st.session_state["origin"] = origin.strip().upper()
    st.session_state["destination"] = destination.strip().upper()

    if track:
        with st.spinner("Searching..."):
            try:
                result = get_default_fetcher().fetch_round_trip(
                    origin, destination, departure.isoformat() if isinstance(departure, date) else departure,
                    flex_days=flex_days,
                )
            except ConfigurationError:
                st.error("Search failed: no API key configured. Add SERPAPI_KEY to your .env file.")
                return
            except AirfareTrackerError as e:
                st.error(f"Search failed: {e}")
                return

        outbound = result["outbound"]
        st.success(f"Saved {outbound['observations_saved']} fare(s) across {len(outbound['dates'])} date(s).")
        if outbound["failed_dates"]:
            st.warning(f"Some dates failed: {', '.join(outbound['failed_dates'])}")


# =============================================================================
# PAGE
# =============================================================================

def main() -> None:
    st.title("✈️ Airfare Tracking")
    st.caption(f"Monitor {' & '.join(TRACKED_CARRIERS)} fares")

    with st.sidebar:
        st.header("Data")
        if st.button("Load demo data"):
            stored = seed_demo_data()
            st.success(f"Seeded {len(stored)} observations")
        all_routes = st.checkbox("Show all routes", value=False)
        airline_choice = st.radio("Airline", options=["All Airlines"] + TRACKED_CARRIERS)

    render_search_form()

    origin = None if all_routes else st.session_state.get("origin")
    destination = None if all_routes else st.session_state.get("destination")
    airline = None if airline_choice == "All Airlines" else airline_choice

    history = query_history(origin, destination)
    insights = derive_insights(origin, destination)

    chart_col, insight_col = st.columns([2, 1])

    with chart_col:
        title = "Price Trends" if all_routes else f"Price Trends: {origin} → {destination}"
        st.plotly_chart(plot_price_trend(history, title=title, airline=airline), use_container_width=True)

    with insight_col:
        st.subheader("Insights")
        shown = [i for i in insights if airline is None or i.airline == airline]
        if not shown:
            st.info("No insights yet. Track a route or load demo data.")
        for insight in shown:
            render_insight(insight)


main()
