"""
REST API for Airfare Tracker.

Thin HTTP layer over the observation store, the insight engine and the
fetcher. Endpoints are plain (sync) functions; FastAPI runs them in its
threadpool.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from analyzer import derive_insights
from config import CORS_ORIGINS
from data_fetcher import FlexDateFetcher, get_default_fetcher
from database import init_db, query_history, record_observation, seed_demo_data
from errors import ConfigurationError, StorageError, ValidationError
from models import FareObservation, FetchRequest, Insight

logger = logging.getLogger(__name__)


def create_app(fetcher: Optional[FlexDateFetcher] = None, initialize_db: bool = True) -> FastAPI:
    """
    Build and configure the FastAPI application.

    Args:
        fetcher: Fetcher for on-demand searches, defaults to the shared one
        initialize_db: Create the table on startup
    """
    if initialize_db:
        init_db()

    app = FastAPI(title="Airfare Tracker API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _fetcher() -> FlexDateFetcher:
        return fetcher or get_default_fetcher()

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"error": str(exc), "details": _json_safe_errors(exc.errors)},
        )

    @app.exception_handler(ConfigurationError)
    async def _configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})

    @app.exception_handler(ValueError)
    async def _bad_value(request: Request, exc: ValueError) -> JSONResponse:
        # e.g. an unparseable date in a search request
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})

    @app.exception_handler(StorageError)
    async def _storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.error(f"Storage failure on {request.url.path}: {exc}")
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(exc)})

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    @app.get("/api/flights/history", response_model=List[FareObservation])
    def get_history(
        origin: Optional[str] = Query(default=None),
        destination: Optional[str] = Query(default=None),
    ) -> List[FareObservation]:
        return query_history(origin, destination)

    @app.post("/api/flights", response_model=FareObservation, status_code=status.HTTP_201_CREATED)
    def post_observation(payload: Dict[str, Any]) -> FareObservation:
        return record_observation(payload)

    @app.get("/api/insights", response_model=List[Insight])
    def get_insights(
        origin: Optional[str] = Query(default=None),
        destination: Optional[str] = Query(default=None),
    ) -> List[Insight]:
        return derive_insights(origin, destination)

    @app.post("/api/flights/search")
    def search_flights(request: FetchRequest) -> Dict[str, Any]:
        result = _fetcher().fetch_round_trip(
            request.origin,
            request.destination,
            request.date,
            request.return_date,
            request.flex_days,
        )
        return {"message": "Live search completed and prices stored.", **result}

    @app.get("/api/seed")
    def seed() -> Dict[str, Any]:
        stored = seed_demo_data()
        return {"message": "Database seeded with mock historical data", "count": len(stored)}

    return app


def _json_safe_errors(errors: List[dict]) -> List[dict]:
    """Keep only the JSON-friendly parts of pydantic error entries."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in errors
    ]
