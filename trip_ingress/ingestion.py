"""End-to-end ingestion of an uploaded trip CSV.

``ingest`` parses the buffer, derives the computed trip fields, upserts the
vendors and then the trips batch by batch, and finally reports the stored
totals. Failures come back inside ``IngestionResult`` instead of being raised,
so the HTTP layer can turn them into a response.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import List, Optional, Protocol, Sequence

from .batching import batched
from .config import get_settings
from .derivation import derive_trips
from .errors import (
    BatchUpsertError,
    BatchUpsertErrors,
    CountQueryError,
    IngestionError,
    PersistenceError,
    VendorUpsertError,
)
from .parsing import TripCsvReader
from .records import TripRecord, VendorRecord
from .schemas import IngestionSummary
from .vendors import extract_vendors

logger = logging.getLogger(__name__)


class PersistenceGateway(Protocol):
    def upsert_vendors(self, vendors: Sequence[VendorRecord]) -> None: ...

    def upsert_trip_batch(self, records: Sequence[TripRecord]) -> None: ...

    def count_trips(self) -> int: ...

    def count_vendors(self) -> int: ...


@dataclass
class IngestionResult:
    data: Optional[IngestionSummary] = None
    error: Optional[IngestionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _upsert_batches(store: PersistenceGateway, batches: List[List[TripRecord]]) -> List[BatchUpsertError]:
    errors: List[BatchUpsertError] = []
    for number, batch in enumerate(batches, start=1):
        try:
            store.upsert_trip_batch(batch)
        except PersistenceError as exc:
            logger.warning("Trip batch %d/%d (%d trips) failed: %s", number, len(batches), len(batch), exc)
            errors.append(BatchUpsertError(number, len(batch), exc))
    return errors


def _count_totals(store: PersistenceGateway) -> IngestionSummary:
    try:
        total_trips = store.count_trips()
    except PersistenceError as exc:
        raise CountQueryError("trips", exc) from exc
    try:
        total_vendors = store.count_vendors()
    except PersistenceError as exc:
        raise CountQueryError("vendors", exc) from exc
    return IngestionSummary(total_trips=total_trips, total_vendors=total_vendors)


def ingest(
    buffer: bytes,
    store: PersistenceGateway,
    *,
    filename: Optional[str] = None,
    size: Optional[int] = None,
    batch_size: Optional[int] = None,
) -> IngestionResult:
    if batch_size is None:
        batch_size = get_settings().ingestion_batch_size
    size = len(buffer) if size is None else size
    label = filename or "<upload>"
    logger.info("Ingesting %s (%d bytes)", label, size)

    reader = TripCsvReader(buffer)
    # Vendors must be known before any trip is written, so the whole file is
    # parsed before the first batch goes out.
    batches = list(batched(derive_trips(reader), batch_size))
    vendors = extract_vendors(reader.vendor_ids)
    logger.info(
        "Parsed %d trips (%d rows skipped) in %d batches from %d vendors",
        reader.rows_accepted,
        reader.rows_skipped,
        len(batches),
        len(vendors),
    )

    try:
        store.upsert_vendors(vendors)
    except PersistenceError as exc:
        logger.error("Vendor upsert failed for %s: %s", label, exc)
        return IngestionResult(error=VendorUpsertError(f"Failed to upsert {len(vendors)} vendors", exc))

    batch_errors = _upsert_batches(store, batches)
    if batch_errors:
        logger.error("%d of %d trip batches failed for %s", len(batch_errors), len(batches), label)
        return IngestionResult(error=BatchUpsertErrors(batch_errors))

    try:
        summary = _count_totals(store)
    except CountQueryError as exc:
        logger.error("Count query failed after ingesting %s: %s", label, exc)
        return IngestionResult(error=exc)

    logger.info("Ingested %s: %d trips and %d vendors stored", label, summary.total_trips, summary.total_vendors)
    return IngestionResult(data=summary)


async def ingest_upload(
    buffer: bytes,
    store: PersistenceGateway,
    *,
    filename: Optional[str] = None,
    size: Optional[int] = None,
    batch_size: Optional[int] = None,
) -> IngestionResult:
    loop = asyncio.get_running_loop()
    bound_ingest = partial(ingest, buffer, store, filename=filename, size=size, batch_size=batch_size)
    return await loop.run_in_executor(None, bound_ingest)
