from __future__ import annotations

from typing import Iterable, List

from .records import VendorRecord


def vendor_name(vendor_id: int) -> str:
    return f"Vendor {vendor_id}"


def extract_vendors(vendor_ids: Iterable[int]) -> List[VendorRecord]:
    return [VendorRecord(id=vendor_id, name=vendor_name(vendor_id)) for vendor_id in sorted(set(vendor_ids))]
