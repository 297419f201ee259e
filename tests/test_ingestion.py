import pytest
from sqlalchemy import select

from trip_ingress import crud
from trip_ingress.errors import (
    BatchUpsertError,
    BatchUpsertErrors,
    CountQueryError,
    PersistenceError,
    VendorUpsertError,
)
from trip_ingress.ingestion import ingest, ingest_upload
from trip_ingress.models import Trip, Vendor


class FakeStore:
    def __init__(self, fail_vendors=False, fail_batches=(), fail_count=None):
        self.fail_vendors = fail_vendors
        self.fail_batches = set(fail_batches)
        self.fail_count = fail_count
        self.vendor_calls = []
        self.batch_calls = []
        self.trips = {}

    def upsert_vendors(self, vendors):
        self.vendor_calls.append(list(vendors))
        if self.fail_vendors:
            raise PersistenceError("vendors table is locked")

    def upsert_trip_batch(self, records):
        self.batch_calls.append([record.id for record in records])
        if len(self.batch_calls) in self.fail_batches:
            raise PersistenceError(f"batch {len(self.batch_calls)} rejected")
        self.trips.update((record.id, record) for record in records)

    def count_trips(self):
        if self.fail_count == "trips":
            raise PersistenceError("count timed out")
        return len(self.trips)

    def count_vendors(self):
        if self.fail_count == "vendors":
            raise PersistenceError("count timed out")
        return len({vendor.id for call in self.vendor_calls for vendor in call})


def test_successful_ingestion_returns_totals(make_csv, trip_lines):
    fake = FakeStore()

    result = ingest(make_csv(trip_lines(5)), fake, filename="trips.csv", batch_size=2)

    assert result.ok
    assert result.data.total_trips == 5
    assert result.data.total_vendors == 1
    assert fake.batch_calls == [[1, 2], [3, 4], [5]]


def test_default_batch_size_comes_from_settings(make_csv, trip_lines):
    fake = FakeStore()

    result = ingest(make_csv(trip_lines(2500)), fake)

    assert result.ok
    assert [len(call) for call in fake.batch_calls] == [1000, 1000, 500]
    assert [trip_id for call in fake.batch_calls for trip_id in call] == list(range(1, 2501))


def test_vendor_failure_blocks_every_trip_batch(make_csv, trip_lines):
    fake = FakeStore(fail_vendors=True)

    result = ingest(make_csv(trip_lines(3)), fake, batch_size=1)

    assert not result.ok
    assert result.data is None
    assert isinstance(result.error, VendorUpsertError)
    assert result.error.to_dict()["stage"] == "vendors"
    assert fake.batch_calls == []


def test_failed_batch_does_not_stop_later_batches(make_csv, trip_lines):
    fake = FakeStore(fail_batches={2})

    result = ingest(make_csv(trip_lines(6)), fake, batch_size=2)

    assert len(fake.batch_calls) == 3
    assert isinstance(result.error, BatchUpsertErrors)
    assert len(result.error.errors) == 1
    failure = result.error.errors[0]
    assert isinstance(failure, BatchUpsertError)
    assert failure.batch_number == 2
    assert failure.batch_size == 2
    assert isinstance(failure.cause, PersistenceError)
    assert sorted(fake.trips) == [1, 2, 5, 6]


def test_every_failed_batch_is_reported(make_csv, trip_lines):
    fake = FakeStore(fail_batches={1, 2, 3})

    result = ingest(make_csv(trip_lines(3)), fake, batch_size=1)

    payload = result.error.to_dict()
    assert payload["stage"] == "trip_batches"
    assert payload["message"] == "Some errors occurred"
    assert [error["batch"] for error in payload["errors"]] == [1, 2, 3]


@pytest.mark.parametrize("table", ["trips", "vendors"])
def test_count_failure_fails_the_ingestion(make_csv, trip_lines, table):
    fake = FakeStore(fail_count=table)

    result = ingest(make_csv(trip_lines(3)), fake)

    assert isinstance(result.error, CountQueryError)
    assert result.error.table == table
    assert len(fake.trips) == 3


def test_vendors_from_incomplete_rows_are_upserted(make_csv, trip_line):
    fake = FakeStore()
    lines = [trip_line(id="id1", vendor_id="1"), trip_line(id="id2", vendor_id="9", passenger_count="")]

    result = ingest(make_csv(lines), fake)

    assert [vendor.id for vendor in fake.vendor_calls[0]] == [1, 9]
    assert [vendor.name for vendor in fake.vendor_calls[0]] == ["Vendor 1", "Vendor 9"]
    assert result.data.total_trips == 1
    assert result.data.total_vendors == 2


def test_empty_upload_succeeds_without_batches(make_csv):
    fake = FakeStore()

    result = ingest(make_csv([]), fake)

    assert result.ok
    assert fake.batch_calls == []
    assert result.data.total_trips == 0


def test_ingestion_persists_trips_and_vendors(store, make_csv, trip_line):
    lines = [
        trip_line(id="id1", vendor_id="1"),
        trip_line(id="id2", vendor_id="2", trip_duration="999"),
        trip_line(id="id3", vendor_id="3", pickup_latitude=""),
    ]

    result = ingest(make_csv(lines), store, filename="sample.csv")

    assert result.ok
    assert result.data.total_trips == 2
    assert result.data.total_vendors == 3
    with store.session() as session:
        trips = {trip.id: trip for trip in session.execute(select(Trip)).scalars()}
        vendor_names = list(session.execute(select(Vendor.name).order_by(Vendor.id)).scalars())
        assert trips[1].suspicious_trip is False
        assert trips[2].suspicious_trip is True
        assert trips[1].store_and_fwd_flag == "N"
    assert vendor_names == ["Vendor 1", "Vendor 2", "Vendor 3"]


def test_reingesting_the_same_file_is_idempotent(store, make_csv, trip_lines):
    buffer = make_csv(trip_lines(25))

    first = ingest(buffer, store, batch_size=10)
    second = ingest(buffer, store, batch_size=10)

    assert first.data == second.data
    assert second.data.total_trips == 25
    assert second.data.total_vendors == 1


def test_reingesting_overwrites_existing_trips(store, make_csv, trip_line):
    ingest(make_csv([trip_line(id="id1", passenger_count="1")]), store)
    result = ingest(make_csv([trip_line(id="id1", passenger_count="4")]), store)

    assert result.data.total_trips == 1
    with store.session() as session:
        assert session.get(Trip, 1).passenger_count == 4


@pytest.mark.asyncio
async def test_ingest_upload_runs_in_executor(store, make_csv, trip_lines):
    result = await ingest_upload(make_csv(trip_lines(3)), store, filename="async.csv")

    assert result.ok
    assert result.data.total_trips == 3


def test_out_of_range_values_do_not_fail_the_batch(store, make_csv, trip_line):
    lines = [
        trip_line(id="id1"),
        trip_line(id="id2", trip_duration="99999999999999999999"),
        trip_line(id="id3"),
    ]

    result = ingest(make_csv(lines), store, batch_size=1)

    assert result.ok
    assert result.data.total_trips == 2
    with store.session() as session:
        assert session.scalars(select(Trip.id).order_by(Trip.id)).all() == [1, 3]


def test_unsupported_dialect_is_reported_as_vendor_failure(store, make_csv, trip_lines, monkeypatch):
    monkeypatch.setattr(crud, "_UPSERT_DIALECTS", {})

    result = ingest(make_csv(trip_lines(2)), store)

    assert not result.ok
    assert isinstance(result.error, VendorUpsertError)
