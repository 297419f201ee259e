from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, NamedTuple


class Point(NamedTuple):
    longitude: float
    latitude: float

    def as_geojson(self) -> Dict[str, Any]:
        return {"type": "Point", "coordinates": [self.longitude, self.latitude]}


@dataclass(frozen=True)
class ParsedTrip:
    """A CSV row that passed the completeness and parsing checks."""

    id: int
    vendor_id: int
    pickup_datetime: datetime
    dropoff_datetime: datetime
    passenger_count: int
    pickup: Point
    dropoff: Point
    store_and_fwd_flag: str
    trip_duration: int


@dataclass(frozen=True)
class TripRecord:
    """A parsed trip together with the fields derived from it."""

    trip: ParsedTrip
    suspicious_trip: bool
    trip_min_distance: float
    trip_speed: float

    @property
    def id(self) -> int:
        return self.trip.id

    def to_row(self) -> Dict[str, Any]:
        trip = self.trip
        return {
            "id": trip.id,
            "vendor_id": trip.vendor_id,
            "pickup_datetime": trip.pickup_datetime,
            "dropoff_datetime": trip.dropoff_datetime,
            "passenger_count": trip.passenger_count,
            "pickup_longitude": trip.pickup.longitude,
            "pickup_latitude": trip.pickup.latitude,
            "dropoff_longitude": trip.dropoff.longitude,
            "dropoff_latitude": trip.dropoff.latitude,
            "store_and_fwd_flag": trip.store_and_fwd_flag,
            "trip_duration": trip.trip_duration,
            "trip_min_distance": self.trip_min_distance,
            "trip_speed": self.trip_speed,
            "suspicious_trip": self.suspicious_trip,
        }


@dataclass(frozen=True)
class VendorRecord:
    id: int
    name: str

    def to_row(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}
