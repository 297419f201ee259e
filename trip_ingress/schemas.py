from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import get_settings


class GeoPoint(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(..., min_length=2, max_length=2, description="[longitude, latitude]")

    @classmethod
    def from_lng_lat(cls, longitude: float, latitude: float) -> "GeoPoint":
        return cls(coordinates=[longitude, latitude])


class TripRead(BaseModel):
    id: int
    vendor_id: int
    pickup_datetime: datetime
    dropoff_datetime: datetime
    passenger_count: int
    pickup_coordinates: GeoPoint
    dropoff_coordinates: GeoPoint
    store_and_fwd_flag: Literal["Y", "N"]
    trip_duration: int
    trip_min_distance: float
    trip_speed: float
    suspicious_trip: bool

    @field_validator("pickup_datetime", "dropoff_datetime")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive values; everything is stored in UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_model(cls, trip) -> "TripRead":
        return cls(
            id=trip.id,
            vendor_id=trip.vendor_id,
            pickup_datetime=trip.pickup_datetime,
            dropoff_datetime=trip.dropoff_datetime,
            passenger_count=trip.passenger_count,
            pickup_coordinates=GeoPoint.from_lng_lat(trip.pickup_longitude, trip.pickup_latitude),
            dropoff_coordinates=GeoPoint.from_lng_lat(trip.dropoff_longitude, trip.dropoff_latitude),
            store_and_fwd_flag=trip.store_and_fwd_flag,
            trip_duration=trip.trip_duration,
            trip_min_distance=trip.trip_min_distance,
            trip_speed=trip.trip_speed,
            suspicious_trip=trip.suspicious_trip,
        )


class MapPoint(BaseModel):
    id: int
    pickup_coordinates: GeoPoint
    dropoff_coordinates: GeoPoint


class TripFilters(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    duration_min: Optional[float] = Field(None, ge=0)
    duration_max: Optional[float] = Field(None, ge=0)
    distance_min: Optional[float] = Field(None, ge=0)
    distance_max: Optional[float] = Field(None, ge=0)
    store_and_fwd_flag: Optional[Literal["Y", "N", "all"]] = None
    vendor_id: Optional[int] = Field(None, gt=0)


class Pagination(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(default_factory=lambda: get_settings().default_page_limit, ge=1)

    @model_validator(mode="after")
    def cap_limit(self) -> "Pagination":
        max_limit = get_settings().max_page_limit
        if self.limit > max_limit:
            raise ValueError(f"limit must be at most {max_limit}")
        return self

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class TripPage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[TripRead]
    total: int
    page: int
    limit: int
    total_pages: int = Field(..., alias="totalPages")


class TripStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_trips: int = Field(..., alias="totalTrips")
    avg_duration: float = Field(..., alias="avgDuration")
    avg_distance: float = Field(..., alias="avgDistance")
    avg_speed: float = Field(..., alias="avgSpeed")


class IngestionSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_trips: int = Field(..., alias="totalTrips", description="Trips stored after ingestion")
    total_vendors: int = Field(..., alias="totalVendors", description="Vendors stored after ingestion")
