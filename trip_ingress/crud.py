from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence

from sqlalchemy import ColumnElement, Select, Table, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from .errors import PersistenceError
from .models import Trip, Vendor
from .records import TripRecord, VendorRecord
from .schemas import GeoPoint, MapPoint, Pagination, TripFilters, TripPage, TripRead, TripStats

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _upsert(session: Session, table: Table, rows: Sequence[Dict[str, Any]]) -> None:
    if not rows:
        return
    dialect = session.get_bind().dialect.name
    try:
        insert = _UPSERT_DIALECTS[dialect]
    except KeyError:
        raise PersistenceError(f"Upsert is not supported for dialect {dialect!r}") from None
    stmt = insert(table)
    stmt = stmt.on_conflict_do_update(
        index_elements=[column.name for column in table.primary_key.columns],
        set_={column.name: stmt.excluded[column.name] for column in table.columns if not column.primary_key},
    )
    session.execute(stmt, list(rows))


def upsert_vendors(session: Session, vendors: Sequence[VendorRecord]) -> None:
    _upsert(session, Vendor.__table__, [vendor.to_row() for vendor in vendors])


def upsert_trips(session: Session, trips: Sequence[TripRecord]) -> None:
    # One statement cannot touch the same key twice on PostgreSQL; the last row wins.
    rows = {trip.id: trip.to_row() for trip in trips}
    _upsert(session, Trip.__table__, list(rows.values()))


def count_trips(session: Session) -> int:
    return session.execute(select(func.count(Trip.id))).scalar_one()


def count_vendors(session: Session) -> int:
    return session.execute(select(func.count(Vendor.id))).scalar_one()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def build_trip_filters(filters: TripFilters) -> List[ColumnElement]:
    clauses: List[ColumnElement] = []
    if filters.start_date is not None:
        clauses.append(Trip.pickup_datetime >= _as_utc(filters.start_date))
    if filters.end_date is not None:
        clauses.append(Trip.dropoff_datetime <= _as_utc(filters.end_date))
    if filters.duration_min is not None:
        clauses.append(Trip.trip_duration >= filters.duration_min)
    if filters.duration_max is not None:
        clauses.append(Trip.trip_duration <= filters.duration_max)
    if filters.distance_min is not None:
        clauses.append(Trip.trip_min_distance >= filters.distance_min)
    if filters.distance_max is not None:
        clauses.append(Trip.trip_min_distance <= filters.distance_max)
    if filters.vendor_id is not None:
        clauses.append(Trip.vendor_id == filters.vendor_id)
    if filters.store_and_fwd_flag and filters.store_and_fwd_flag != "all":
        clauses.append(Trip.store_and_fwd_flag == filters.store_and_fwd_flag)
    return clauses


def build_trip_query(filters: TripFilters, *columns: Any) -> Select:
    query = select(*columns) if columns else select(Trip)
    clauses = build_trip_filters(filters)
    if clauses:
        query = query.where(*clauses)
    return query


def list_trips(session: Session, filters: TripFilters, pagination: Pagination) -> TripPage:
    total = session.execute(build_trip_query(filters, func.count(Trip.id))).scalar_one()
    query = (
        build_trip_query(filters)
        .order_by(Trip.pickup_datetime.asc(), Trip.id.asc())
        .offset(pagination.offset)
        .limit(pagination.limit)
    )
    items = [TripRead.from_model(trip) for trip in session.execute(query).scalars()]
    return TripPage(
        items=items,
        total=total,
        page=pagination.page,
        limit=pagination.limit,
        total_pages=math.ceil(total / pagination.limit) if total else 0,
    )


def map_points(session: Session, filters: TripFilters, limit: int) -> List[MapPoint]:
    query = build_trip_query(
        filters,
        Trip.id,
        Trip.pickup_longitude,
        Trip.pickup_latitude,
        Trip.dropoff_longitude,
        Trip.dropoff_latitude,
    ).limit(limit)
    return [
        MapPoint(
            id=row.id,
            pickup_coordinates=GeoPoint.from_lng_lat(row.pickup_longitude, row.pickup_latitude),
            dropoff_coordinates=GeoPoint.from_lng_lat(row.dropoff_longitude, row.dropoff_latitude),
        )
        for row in session.execute(query)
    ]


def trip_stats(session: Session, filters: TripFilters) -> TripStats:
    query = build_trip_query(
        filters,
        func.count(Trip.id),
        func.coalesce(func.sum(Trip.trip_duration), 0),
        func.coalesce(func.sum(Trip.trip_min_distance), 0.0),
    )
    total_trips, sum_duration, sum_distance = session.execute(query).one()
    if not total_trips:
        return TripStats(total_trips=0, avg_duration=0.0, avg_distance=0.0, avg_speed=0.0)
    avg_duration = float(sum_duration) / total_trips
    avg_distance = float(sum_distance) / total_trips
    avg_speed = avg_distance / ((avg_duration / 3600) or 1)
    return TripStats(
        total_trips=total_trips,
        avg_duration=avg_duration,
        avg_distance=avg_distance,
        avg_speed=avg_speed,
    )


def list_vendor_ids(session: Session) -> List[int]:
    return list(session.execute(select(Vendor.id).order_by(Vendor.id.asc())).scalars())
