"""CSV row parsing for uploaded trip files.

The wire format is a plain comma separated file with a header line and the
columns listed in ``FIELDS``. Quoted fields are not supported: a value that
contains a comma shifts every following column and the row is usually
dropped by the completeness check.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Set

from .records import ParsedTrip, Point

logger = logging.getLogger(__name__)

FIELDS = (
    "id",
    "vendor_id",
    "pickup_datetime",
    "dropoff_datetime",
    "passenger_count",
    "pickup_longitude",
    "pickup_latitude",
    "dropoff_longitude",
    "dropoff_latitude",
    "store_and_fwd_flag",
    "trip_duration",
)
DELIMITER = ","
# Source ids look like "id2875421"; only the digits are stored.
ID_PREFIX_LENGTH = 2
# Integer columns are stored as signed 64-bit values.
MIN_INTEGER = -(2**63)
MAX_INTEGER = 2**63 - 1


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive values are taken to be UTC.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_integer(value: str) -> int:
    number = int(value)
    if not MIN_INTEGER <= number <= MAX_INTEGER:
        raise ValueError(f"Integer out of range: {value!r}")
    return number


def parse_trip_id(value: str) -> int:
    return parse_integer(value[ID_PREFIX_LENGTH:])


def parse_coordinate(value: str) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"Non-finite coordinate: {value!r}")
    return number


def normalize_flag(value: str) -> str:
    return "Y" if value == "Y" else "N"


def split_fields(line: str) -> List[str]:
    fields = line.split(DELIMITER)[: len(FIELDS)]
    fields.extend([""] * (len(FIELDS) - len(fields)))
    return fields


def build_trip(fields: List[str]) -> ParsedTrip:
    (
        trip_id,
        vendor_id,
        pickup_datetime,
        dropoff_datetime,
        passenger_count,
        pickup_longitude,
        pickup_latitude,
        dropoff_longitude,
        dropoff_latitude,
        store_and_fwd_flag,
        trip_duration,
    ) = fields
    passengers = parse_integer(passenger_count)
    if passengers < 0:
        raise ValueError(f"Negative passenger count: {passengers}")
    return ParsedTrip(
        id=parse_trip_id(trip_id),
        vendor_id=parse_integer(vendor_id),
        pickup_datetime=parse_timestamp(pickup_datetime),
        dropoff_datetime=parse_timestamp(dropoff_datetime),
        passenger_count=passengers,
        pickup=Point(parse_coordinate(pickup_longitude), parse_coordinate(pickup_latitude)),
        dropoff=Point(parse_coordinate(dropoff_longitude), parse_coordinate(dropoff_latitude)),
        store_and_fwd_flag=normalize_flag(store_and_fwd_flag),
        trip_duration=parse_integer(trip_duration),
    )


class TripCsvReader:
    """One-pass reader over an uploaded CSV buffer.

    Iterating yields a ``ParsedTrip`` for every complete, well-formed line and
    silently skips the rest. ``vendor_ids`` collects the vendor of every line
    that has one, whether or not the line itself was accepted, and is only
    complete once iteration has finished.
    """

    def __init__(self, buffer: bytes) -> None:
        self._buffer = buffer
        self._consumed = False
        self.vendor_ids: Set[int] = set()
        self.rows_seen = 0
        self.rows_accepted = 0

    def __iter__(self) -> Iterator[ParsedTrip]:
        if self._consumed:
            raise RuntimeError("TripCsvReader can only be iterated once")
        self._consumed = True
        return self._read()

    def _read(self) -> Iterator[ParsedTrip]:
        text = self._buffer.decode("utf-8", errors="replace")
        lines = text.split("\n")
        for line_number, line in enumerate(lines[1:], start=2):
            line = line.rstrip("\r")
            if not line:
                continue
            fields = split_fields(line)
            self.rows_seen += 1
            self._record_vendor(fields[1])
            if not all(fields):
                continue
            trip = self._parse_line(line_number, fields)
            if trip is None:
                continue
            self.rows_accepted += 1
            yield trip

    def _record_vendor(self, value: str) -> None:
        if not value:
            return
        try:
            self.vendor_ids.add(parse_integer(value))
        except ValueError:
            logger.debug("Ignoring invalid vendor id %r", value)

    @staticmethod
    def _parse_line(line_number: int, fields: List[str]) -> Optional[ParsedTrip]:
        try:
            return build_trip(fields)
        except (ValueError, OverflowError) as exc:
            logger.debug("Skipping line %d: %s", line_number, exc)
            return None

    @property
    def rows_skipped(self) -> int:
        return self.rows_seen - self.rows_accepted
