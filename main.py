#!/usr/bin/env python3
"""
Airfare Tracker CLI

Command-line interface for collecting fares, browsing history and getting
buy / wait / flex-date insights.

Collection Commands:
    python main.py search JFK MIA --date 2024-04-12 --flex 2
    python main.py search JFK MIA --date 2024-04-12 --return 2024-04-19
    python main.py record JetBlue JFK MIA --date 2024-04-12 --price 189
    python main.py schedule --now

Analysis Commands:
    python main.py history JFK MIA
    python main.py insights JFK MIA

General Commands:
    python main.py init
    python main.py seed
    python main.py stats
    python main.py serve
    python main.py dashboard
"""

import argparse
import logging
import subprocess
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from config import LOG_LEVEL, LOG_FORMAT, LOG_DATE_FORMAT, LOG_FILE
from utils import setup_logging

logger = logging.getLogger(__name__)

# Rich console for pretty output
console = Console()

INSIGHT_STYLES = {
    "buy": "green",
    "wait": "red",
    "flex": "cyan",
}


# =============================================================================
# COLLECTION COMMANDS
# =============================================================================

def cmd_search(args):
    """Fetch live fares for a route (and optional return leg)."""
    from data_fetcher import get_default_fetcher
    from database import init_db
    from errors import ConfigurationError

    init_db()
    fetcher = get_default_fetcher()

    console.print(
        f"\n[cyan]Searching {args.origin.upper()} → {args.dest.upper()} on {args.date}"
        f"{f' (±{args.flex} days)' if args.flex else ''}[/cyan]"
    )

    try:
        with console.status("Searching..."):
            result = fetcher.fetch_round_trip(
                args.origin, args.dest, args.date, args.return_date, args.flex
            )
    except ConfigurationError:
        console.print("[bold red]✗ No API key configured.[/bold red] Add SERPAPI_KEY to your .env file.")
        sys.exit(2)

    table = Table(title="Search Results")
    table.add_column("Leg", style="cyan")
    table.add_column("Dates searched", justify="right")
    table.add_column("Saved", justify="right", style="green")
    table.add_column("Discarded", justify="right")
    table.add_column("Failed dates", style="yellow")

    for leg_name, summary in (("Outbound", result["outbound"]), ("Return", result["return"])):
        if summary is None:
            continue
        table.add_row(
            f"{leg_name} {summary['origin']} → {summary['destination']}",
            str(len(summary["dates_searched"])),
            str(summary["observations_saved"]),
            str(summary["fares_discarded"]),
            ", ".join(summary["failed_dates"]) or "-",
        )

    console.print(table)


def cmd_record(args):
    """Record a single observation by hand."""
    from database import init_db, record_observation
    from errors import ValidationError

    init_db()
    try:
        stored = record_observation({
            "airline": args.airline,
            "origin": args.origin,
            "destination": args.dest,
            "departure_date": args.date,
            "price": args.price,
            "departure_time": args.depart_time,
            "arrival_time": args.arrive_time,
            "stop_count": args.stops,
        })
    except ValidationError as e:
        console.print(f"[bold red]✗ {e}[/bold red]")
        sys.exit(1)

    console.print(
        f"[bold green]✓ Recorded #{stored.id}:[/bold green] {stored.airline} "
        f"{stored.origin} → {stored.destination} on {stored.departure_date} at ${stored.price:,.2f}"
    )


def cmd_schedule(args):
    """Run the collection scheduler."""
    from database import init_db
    from scheduler import start_scheduler

    init_db()
    start_scheduler(run_times=args.times, run_immediately=args.now)


# =============================================================================
# ANALYSIS COMMANDS
# =============================================================================

def cmd_history(args):
    """Show observation history for a route."""
    from database import init_db, query_history

    init_db()
    observations = query_history(args.origin, args.dest)
    if args.limit:
        observations = observations[-args.limit:]

    if not observations:
        console.print("[yellow]No observations found[/yellow]")
        return

    table = Table(title="Price History")
    table.add_column("Scraped", style="dim")
    table.add_column("Airline", style="cyan")
    table.add_column("Route")
    table.add_column("Departs")
    table.add_column("Times")
    table.add_column("Price", justify="right", style="green")

    for obs in observations:
        times = f"{obs.departure_time or ''}-{obs.arrival_time or ''}".strip("-")
        table.add_row(
            obs.scraped_at.strftime("%Y-%m-%d %H:%M") if obs.scraped_at else "",
            obs.airline,
            obs.route.label,
            obs.departure_date,
            times,
            f"${obs.price:,.2f}",
        )

    console.print(table)


def cmd_insights(args):
    """Show buy / wait / flex-date insights."""
    from analyzer import derive_insights
    from database import init_db

    init_db()
    insights = derive_insights(args.origin, args.dest)

    if not insights:
        console.print("[yellow]No insights yet. Collect or seed some data first.[/yellow]")
        return

    for insight in insights:
        style = INSIGHT_STYLES.get(insight.kind.value, "white")
        body = insight.description
        if insight.search_url:
            body += f"\n[dim]{insight.search_url}[/dim]"
        console.print(Panel(
            body,
            title=f"[bold]#{insight.id} {insight.title}[/bold]",
            subtitle=insight.kind.value.upper(),
            border_style=style,
        ))


# =============================================================================
# GENERAL COMMANDS
# =============================================================================

def cmd_init(args):
    """Initialize the database."""
    from database import init_db, get_database_stats

    console.print("[bold blue]Initializing Airfare Tracker database...[/bold blue]")
    init_db()
    console.print("[bold green]✓ Database initialized successfully![/bold green]")
    console.print(f"Location: {get_database_stats()['database_path']}")


def cmd_seed(args):
    """Load demo history."""
    from database import init_db, seed_demo_data

    init_db()
    stored = seed_demo_data()
    console.print(f"[bold green]✓ Database seeded with {len(stored)} mock observations[/bold green]")


def cmd_stats(args):
    """Show database statistics."""
    from database import init_db, get_database_stats

    init_db()
    stats = get_database_stats()

    console.print(Panel.fit(
        "[bold]Airfare Tracker Database Statistics[/bold]",
        border_style="blue",
    ))

    table = Table()
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Total Observations", f"{stats['total_observations']:,}")
    table.add_row("Routes Tracked", str(stats['routes_tracked']))
    table.add_row("Airlines Tracked", str(stats['airlines_tracked']))
    if stats['date_range']['earliest']:
        table.add_row("Earliest Scrape", stats['date_range']['earliest'])
        table.add_row("Latest Scrape", stats['date_range']['latest'])
    console.print(table)

    if stats['routes']:
        routes = Table(title="Routes")
        routes.add_column("Route", style="cyan")
        routes.add_column("Observations", justify="right")
        routes.add_column("Lowest", justify="right", style="green")
        routes.add_column("Last Seen", style="dim")
        for route in stats['routes']:
            routes.add_row(
                f"{route['origin']} → {route['destination']}",
                str(route['count']),
                f"${route['min_price']:,.2f}",
                route['last_seen'],
            )
        console.print(routes)


def cmd_serve(args):
    """Run the REST API."""
    import uvicorn
    from api import create_app

    uvicorn.run(create_app(), host=args.host, port=args.port)


def cmd_dashboard(args):
    """Launch the Streamlit dashboard."""
    app_path = Path(__file__).parent / "app.py"
    console.print("[cyan]Launching dashboard... (Ctrl+C to stop)[/cyan]")
    subprocess.run([sys.executable, "-m", "streamlit", "run", str(app_path)], check=False)


# =============================================================================
# ENTRY POINT
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    from config import API_HOST, API_PORT

    parser = argparse.ArgumentParser(
        description="Airfare Tracker CLI - fare history and buy/wait insights",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py search JFK MIA --date 2024-04-12 --flex 2
  python main.py insights JFK MIA
  python main.py schedule --now
        """
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # search
    search_parser = subparsers.add_parser("search", help="Fetch live fares for a route")
    search_parser.add_argument("origin", help="Origin airport code")
    search_parser.add_argument("dest", help="Destination airport code")
    search_parser.add_argument("--date", "-d", required=True, help="Departure date (YYYY-MM-DD)")
    search_parser.add_argument("--return", dest="return_date", help="Return date (YYYY-MM-DD)")
    search_parser.add_argument("--flex", "-f", type=int, default=0, help="Flexibility ±days (default: 0)")
    search_parser.set_defaults(func=cmd_search)

    # record
    record_parser = subparsers.add_parser("record", help="Record an observation by hand")
    record_parser.add_argument("airline", help="Airline name")
    record_parser.add_argument("origin", help="Origin airport code")
    record_parser.add_argument("dest", help="Destination airport code")
    record_parser.add_argument("--date", "-d", required=True, help="Departure date (YYYY-MM-DD)")
    record_parser.add_argument("--price", "-p", type=float, required=True, help="Price in USD")
    record_parser.add_argument("--depart-time", help="Departure time")
    record_parser.add_argument("--arrive-time", help="Arrival time")
    record_parser.add_argument("--stops", type=int, help="Number of stops")
    record_parser.set_defaults(func=cmd_record)

    # schedule
    schedule_parser = subparsers.add_parser("schedule", help="Run the collection scheduler")
    schedule_parser.add_argument("--times", nargs="+", help="Times of day (HH:MM)")
    schedule_parser.add_argument("--now", action="store_true", help="Run once immediately")
    schedule_parser.set_defaults(func=cmd_schedule)

    # history
    history_parser = subparsers.add_parser("history", help="Show price history")
    history_parser.add_argument("origin", nargs="?", help="Origin airport code")
    history_parser.add_argument("dest", nargs="?", help="Destination airport code")
    history_parser.add_argument("--limit", "-n", type=int, help="Show only the last N rows")
    history_parser.set_defaults(func=cmd_history)

    # insights
    insights_parser = subparsers.add_parser("insights", help="Show buy/wait/flex insights")
    insights_parser.add_argument("origin", nargs="?", help="Origin airport code")
    insights_parser.add_argument("dest", nargs="?", help="Destination airport code")
    insights_parser.set_defaults(func=cmd_insights)

    # init
    init_parser = subparsers.add_parser("init", help="Initialize database")
    init_parser.set_defaults(func=cmd_init)

    # seed
    seed_parser = subparsers.add_parser("seed", help="Load demo history")
    seed_parser.set_defaults(func=cmd_seed)

    # stats
    stats_parser = subparsers.add_parser("stats", help="Show database statistics")
    stats_parser.set_defaults(func=cmd_stats)

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the REST API")
    serve_parser.add_argument("--host", default=API_HOST, help=f"Bind address (default: {API_HOST})")
    serve_parser.add_argument("--port", type=int, default=API_PORT, help=f"Port (default: {API_PORT})")
    serve_parser.set_defaults(func=cmd_serve)

    # dashboard
    dashboard_parser = subparsers.add_parser("dashboard", help="Launch web dashboard")
    dashboard_parser.set_defaults(func=cmd_dashboard)

    return parser


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(LOG_LEVEL, LOG_FORMAT, LOG_FILE, LOG_DATE_FORMAT)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if hasattr(args, 'func'):
        try:
            args.func(args)
        except KeyboardInterrupt:
            console.print("\n[yellow]Cancelled[/yellow]")
            sys.exit(130)
        except Exception as e:
            if args.verbose:
                console.print_exception()
            else:
                console.print(f"[bold red]Error: {e}[/bold red]")
            sys.exit(1)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
