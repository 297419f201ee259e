from __future__ import annotations

from datetime import datetime
from typing import Iterable, Iterator

from .geo import haversine_km
from .records import ParsedTrip, TripRecord


def actual_duration_seconds(pickup: datetime, dropoff: datetime) -> int:
    """Whole seconds between pickup and dropoff, fractions truncated toward zero."""
    return int((dropoff - pickup).total_seconds())


def is_suspicious(trip: ParsedTrip) -> bool:
    return trip.trip_duration != actual_duration_seconds(trip.pickup_datetime, trip.dropoff_datetime)


def derive_trip(trip: ParsedTrip) -> TripRecord:
    distance = haversine_km(trip.pickup, trip.dropoff)
    speed = distance / (trip.trip_duration / 3600) if trip.trip_duration > 0 else 0.0
    return TripRecord(
        trip=trip,
        suspicious_trip=is_suspicious(trip),
        trip_min_distance=distance,
        trip_speed=speed,
    )


def derive_trips(trips: Iterable[ParsedTrip]) -> Iterator[TripRecord]:
    for trip in trips:
        yield derive_trip(trip)
