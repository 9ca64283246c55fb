"""
Chart generation for Airfare Tracker.

Creates interactive plotly charts from observation history.
"""

import logging
from typing import Optional, Sequence

import pandas as pd
import plotly.graph_objects as go

from config import AIRLINE_COLORS, COLORS
from models import FareObservation

# Configure logging
logger = logging.getLogger(__name__)

FRAME_COLUMNS = ['scraped_at', 'airline', 'origin', 'destination', 'departure_date', 'price']


def observations_to_frame(observations: Sequence[FareObservation]) -> pd.DataFrame:
    """
    Convert observations to a DataFrame sorted by scrape time.
    """
    if not observations:
        return pd.DataFrame(columns=FRAME_COLUMNS)

    df = pd.DataFrame([obs.model_dump() for obs in observations])
    df['scraped_at'] = pd.to_datetime(df['scraped_at'])
    return df.sort_values('scraped_at').reset_index(drop=True)


def daily_price_series(df: pd.DataFrame, airline: Optional[str] = None) -> pd.DataFrame:
    """
    Lowest observed price per airline per scrape day.

    Returns:
        DataFrame indexed by day with one column per airline
    """
    if df.empty:
        return pd.DataFrame()

    if airline:
        df = df[df['airline'] == airline]
        if df.empty:
            return pd.DataFrame()

    daily = (
        df.assign(day=df['scraped_at'].dt.normalize())
        .groupby(['day', 'airline'])['price']
        .min()
        .unstack('airline')
        .sort_index()
    )
    return daily


def plot_price_trend(
    observations: Sequence[FareObservation],
    title: str = "Price Trends",
    airline: Optional[str] = None,
) -> go.Figure:
    """
    Line chart of daily lowest price per airline over scrape time.

    Args:
        observations: Observation history (any order)
        title: Chart title
        airline: Optional airline to show alone

    Returns:
        Plotly Figure object
    """
    daily = daily_price_series(observations_to_frame(observations), airline)

    fig = go.Figure()
    if daily.empty:
        fig.add_annotation(text="No price history available", xref="paper", yref="paper", x=0.5, y=0.5)
        return fig

    for name in daily.columns:
        series = daily[name].dropna()
        fig.add_trace(go.Scatter(
            x=series.index,
            y=series.values,
            mode='lines+markers',
            name=name,
            line=dict(color=AIRLINE_COLORS.get(name, COLORS["secondary"]), width=2),
            marker=dict(size=6),
            hovertemplate=f"{name}<br>%{{x|%b %d}}<br>$%{{y:.0f}}<extra></extra>",
        ))

    fig.update_layout(
        title=title,
        xaxis_title="Date Checked",
        yaxis_title="Price ($)",
        hovermode="x unified",
        height=380,
    )

    return fig
