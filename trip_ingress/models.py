from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Vendor(Base):
    __tablename__ = "vendors"
    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String, nullable=False)

    trips = relationship("Trip", back_populates="vendor")


class Trip(Base):
    __tablename__ = "trips"
    id = Column(Integer, primary_key=True, autoincrement=False)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), index=True, nullable=False)
    pickup_datetime = Column(DateTime(timezone=True), index=True, nullable=False)
    dropoff_datetime = Column(DateTime(timezone=True), index=True, nullable=False)
    passenger_count = Column(Integer, nullable=False)
    pickup_longitude = Column(Float, nullable=False)
    pickup_latitude = Column(Float, nullable=False)
    dropoff_longitude = Column(Float, nullable=False)
    dropoff_latitude = Column(Float, nullable=False)
    store_and_fwd_flag = Column(String(1), index=True, nullable=False)
    trip_duration = Column(Integer, index=True, nullable=False)
    trip_min_distance = Column(Float, index=True, nullable=False)
    trip_speed = Column(Float, nullable=False)
    suspicious_trip = Column(Boolean, index=True, nullable=False, default=False)

    vendor = relationship("Vendor", back_populates="trips")

    __table_args__ = (
        Index("ix_trips_pickup_location", "pickup_latitude", "pickup_longitude"),
        Index("ix_trips_dropoff_location", "dropoff_latitude", "dropoff_longitude"),
    )
