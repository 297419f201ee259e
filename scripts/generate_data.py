#!/usr/bin/env python3
from __future__ import annotations

import argparse
import random
from datetime import datetime, timedelta
from pathlib import Path
from typing import List

from trip_ingress.parsing import FIELDS

VENDOR_IDS = [1, 2, 3, 4]
# Rough bounding box around Manhattan
LNG_RANGE = (-74.02, -73.93)
LAT_RANGE = (40.70, 40.82)


def generate_row(index: int, malformed_ratio: float, suspicious_ratio: float) -> str:
    base_date = datetime(2016, 1, 1)
    pickup = base_date + timedelta(seconds=random.randint(0, 60 * 60 * 24 * 180))
    duration = random.randint(60, 60 * 60)
    dropoff = pickup + timedelta(seconds=duration)
    declared = duration + random.randint(1, 600) if random.random() < suspicious_ratio else duration
    values = [
        f"id{index:07d}",
        str(random.choice(VENDOR_IDS)),
        pickup.strftime("%Y-%m-%d %H:%M:%S"),
        dropoff.strftime("%Y-%m-%d %H:%M:%S"),
        str(random.randint(1, 6)),
        f"{random.uniform(*LNG_RANGE):.6f}",
        f"{random.uniform(*LAT_RANGE):.6f}",
        f"{random.uniform(*LNG_RANGE):.6f}",
        f"{random.uniform(*LAT_RANGE):.6f}",
        "Y" if random.random() < 0.01 else "N",
        str(declared),
    ]
    if random.random() < malformed_ratio:
        # Blank one of the required columns after the vendor id.
        values[random.randint(2, len(values) - 1)] = ""
    return ",".join(values)


def generate_rows(count: int, malformed_ratio: float = 0.0, suspicious_ratio: float = 0.05) -> List[str]:
    return [generate_row(index, malformed_ratio, suspicious_ratio) for index in range(1, count + 1)]


def write_csv(path: Path, rows: List[str]) -> None:
    with path.open("w", newline="", encoding="utf-8") as csvfile:
        csvfile.write(",".join(FIELDS) + "\n")
        for row in rows:
            csvfile.write(row + "\n")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate synthetic trip data")
    parser.add_argument("--rows", type=int, default=10000, help="Number of synthetic rows to generate")
    parser.add_argument("--malformed", type=float, default=0.0, help="Share of rows with a blank required field")
    parser.add_argument("--suspicious", type=float, default=0.05, help="Share of rows with a wrong declared duration")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible output")
    parser.add_argument("--output", type=Path, default=Path("data/trips.csv"), help="Output CSV path")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    random.seed(args.seed)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    rows = generate_rows(args.rows, args.malformed, args.suspicious)
    write_csv(args.output, rows)
    print(f"Generated {args.rows} rows at {args.output}")


if __name__ == "__main__":
    main()
