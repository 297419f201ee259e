#!/usr/bin/env python3
from __future__ import annotations

import argparse
import time
from pathlib import Path

from trip_ingress.config import settings
from trip_ingress.ingestion import ingest
from trip_ingress.logging_setup import configure_logging
from trip_ingress.store import TripStore


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Benchmark ingestion throughput")
    parser.add_argument("csv", type=Path, help="Path to the CSV file to ingest")
    parser.add_argument("--database-url", default=settings.database_url, help="Target database URL")
    parser.add_argument("--batch-size", type=int, default=settings.ingestion_batch_size, help="Trips per upsert")
    parser.add_argument("--keep", action="store_true", help="Keep existing rows instead of recreating the schema")
    return parser.parse_args()


def run_benchmark(csv_path: Path, database_url: str, batch_size: int, keep: bool) -> None:
    store = TripStore.from_url(database_url)
    if not keep:
        store.drop_schema()
    store.create_schema()
    buffer = csv_path.read_bytes()
    start = time.perf_counter()
    result = ingest(buffer, store, filename=csv_path.name, batch_size=batch_size)
    elapsed = time.perf_counter() - start
    store.dispose()
    if not result.ok:
        raise RuntimeError(f"Ingestion failed: {result.error.to_dict()}")
    trips = result.data.total_trips
    print(f"Ingested {trips} trips from {len(buffer)} bytes in {elapsed:.2f}s -> {trips / elapsed:.2f} trips/s")


def main() -> None:
    args = parse_args()
    configure_logging(settings.log_level)
    run_benchmark(args.csv, args.database_url, args.batch_size, args.keep)


if __name__ == "__main__":
    main()
