from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import settings
from .errors import PersistenceError
from .ingestion import ingest_upload
from .logging_setup import configure_logging
from .schemas import Pagination, TripFilters
from .store import TripStore

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset(
    {
        "application/csv",
        "text/csv",
        "application/vnd.ms-excel",
        "application/x-csv",
        "text/x-csv",
    }
)

app = FastAPI(title=settings.app_name, version=settings.app_version)
_started_at = time.monotonic()


@app.on_event("startup")
def startup() -> None:
    configure_logging(settings.log_level)
    if getattr(app.state, "store", None) is None:
        store = TripStore.from_url(settings.database_url)
        store.create_schema()
        app.state.store = store
    logger.info("%s started (%s)", settings.app_name, settings.environment)


@app.on_event("shutdown")
def shutdown() -> None:
    store = getattr(app.state, "store", None)
    if store is not None:
        store.dispose()


def get_store(request: Request) -> TripStore:
    return request.app.state.store


def trip_filters(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    duration_min: Optional[float] = Query(None, ge=0),
    duration_max: Optional[float] = Query(None, ge=0),
    distance_min: Optional[float] = Query(None, ge=0),
    distance_max: Optional[float] = Query(None, ge=0),
    store_and_fwd_flag: Optional[Literal["Y", "N", "all"]] = None,
    vendor_id: Optional[int] = Query(None, gt=0),
) -> TripFilters:
    return TripFilters(
        start_date=start_date,
        end_date=end_date,
        duration_min=duration_min,
        duration_max=duration_max,
        distance_min=distance_min,
        distance_max=distance_max,
        store_and_fwd_flag=store_and_fwd_flag,
        vendor_id=vendor_id,
    )


def pagination(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_limit, ge=1, le=settings.max_page_limit),
) -> Pagination:
    return Pagination(page=page, limit=limit)


def _success(message: str, data: Any) -> JSONResponse:
    return JSONResponse({"success": True, "message": message, "data": jsonable_encoder(data, by_alias=True)})


def _failure(status_code: int, message: str, **details: Any) -> JSONResponse:
    payload = {"success": False, "message": message}
    payload.update(jsonable_encoder(details))
    return JSONResponse(payload, status_code=status_code)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    user_agent = request.headers.get("user-agent", "Unknown")
    level = logging.WARNING if response.status_code >= 400 else logging.INFO
    logger.log(
        level,
        "%s %s - %d - %.0fms - %s",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
        user_agent,
    )
    return response


@app.exception_handler(RequestValidationError)
async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("Invalid request for %s: %s", request.url.path, exc.errors())
    message = "Invalid query parameters" if request.method == "GET" else "Invalid request body"
    return _failure(400, message, errors=exc.errors())


@app.post("/api/v1/ingress")
async def ingest_trips(
    trip_data: UploadFile = File(..., alias="tripData"),
    store: TripStore = Depends(get_store),
) -> JSONResponse:
    if trip_data.content_type not in ALLOWED_MIME_TYPES:
        return _failure(400, f"Unsupported file type {trip_data.content_type!r}, a CSV file is required")
    too_large = f"File too large, a file should not be greater than {settings.max_upload_bytes // (1024 * 1024)} MBs"
    if trip_data.size is not None and trip_data.size > settings.max_upload_bytes:
        return _failure(400, too_large)
    buffer = await trip_data.read()
    size = len(buffer)
    if size == 0:
        return _failure(400, "File is empty")
    if size > settings.max_upload_bytes:
        return _failure(400, too_large)

    result = await ingest_upload(buffer, store, filename=trip_data.filename, size=size)
    if not result.ok:
        logger.error("Error ingesting %s: %s", trip_data.filename, result.error.to_dict())
        return _failure(500, "Failed to ingest trip data", error=result.error.to_dict())
    return _success("Trip data ingested", result.data)


@app.get("/api/v1/trips")
def list_trips(
    filters: TripFilters = Depends(trip_filters),
    page: Pagination = Depends(pagination),
    store: TripStore = Depends(get_store),
) -> JSONResponse:
    try:
        data = store.list_trips(filters, page)
    except PersistenceError as exc:
        logger.error("Error fetching trips: %s", exc)
        return _failure(500, "Failed to fetch trips", error=str(exc))
    return _success("Trips fetched", data)


@app.get("/api/v1/trips/map")
def map_data(
    filters: TripFilters = Depends(trip_filters),
    store: TripStore = Depends(get_store),
) -> JSONResponse:
    try:
        data = store.map_points(filters, settings.map_points_limit)
    except PersistenceError as exc:
        logger.error("Error fetching map data: %s", exc)
        return _failure(500, "Failed to fetch map data", error=str(exc))
    return _success("Map data fetched", data)


@app.get("/api/v1/trips/stats")
def stats(
    filters: TripFilters = Depends(trip_filters),
    store: TripStore = Depends(get_store),
) -> JSONResponse:
    try:
        data = store.trip_stats(filters)
    except PersistenceError as exc:
        logger.error("Error fetching stats: %s", exc)
        return _failure(500, "Failed to fetch stats", error=str(exc))
    return _success("Stats fetched", data)


@app.get("/api/v1/trips/vendors")
def vendors(store: TripStore = Depends(get_store)) -> JSONResponse:
    try:
        data = store.vendor_ids()
    except PersistenceError as exc:
        logger.error("Error fetching vendors: %s", exc)
        return _failure(500, "Failed to fetch vendors", error=str(exc))
    return _success("Vendors fetched", data)


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": time.monotonic() - _started_at,
        "environment": settings.environment,
        "version": settings.app_version,
    }
