import os

import pytest

# Configure environment before importing application modules
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_tripdata.db")
os.environ.setdefault("ENVIRONMENT", "test")

from trip_ingress.parsing import FIELDS  # noqa: E402
from trip_ingress.store import TripStore  # noqa: E402

HEADER = ",".join(FIELDS)

DEFAULT_ROW = {
    "id": "id2875421",
    "vendor_id": "2",
    "pickup_datetime": "2016-03-14 17:24:55",
    "dropoff_datetime": "2016-03-14 17:32:30",
    "passenger_count": "1",
    "pickup_longitude": "-73.982154846191406",
    "pickup_latitude": "40.767936706542969",
    "dropoff_longitude": "-73.964630126953125",
    "dropoff_latitude": "40.765602111816406",
    "store_and_fwd_flag": "N",
    "trip_duration": "455",
}


def build_line(**overrides: str) -> str:
    row = {**DEFAULT_ROW, **overrides}
    return ",".join(str(row[field]) for field in FIELDS)


def build_csv(lines) -> bytes:
    return ("\n".join([HEADER, *lines]) + "\n").encode("utf-8")


def numbered_lines(count: int, start: int = 1, vendor_id: str = "1"):
    return [build_line(id=f"id{number}", vendor_id=vendor_id) for number in range(start, start + count)]


@pytest.fixture
def trip_line():
    return build_line


@pytest.fixture
def make_csv():
    return build_csv


@pytest.fixture
def trip_lines():
    return numbered_lines


@pytest.fixture
def store(tmp_path):
    trip_store = TripStore.from_url(f"sqlite:///{tmp_path / 'tripdata.db'}")
    trip_store.create_schema()
    yield trip_store
    trip_store.drop_schema()
    trip_store.dispose()
