from __future__ import annotations

from typing import Any, Dict, List, Optional


class PersistenceError(Exception):
    """Raised by the trip store when the database rejects an operation."""


class IngestionError(Exception):
    """Base class for failures returned by the ingestion pipeline."""

    stage = "ingestion"

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"stage": self.stage, "message": str(self)}
        if self.cause is not None:
            payload["cause"] = str(self.cause)
        return payload


class VendorUpsertError(IngestionError):
    stage = "vendors"


class BatchUpsertError(IngestionError):
    stage = "trip_batch"

    def __init__(self, batch_number: int, batch_size: int, cause: BaseException) -> None:
        super().__init__(f"Failed to upsert trip batch {batch_number} ({batch_size} trips)", cause)
        self.batch_number = batch_number
        self.batch_size = batch_size

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update(batch=self.batch_number, size=self.batch_size)
        return payload


class BatchUpsertErrors(IngestionError):
    """Every batch failure of one ingestion run."""

    stage = "trip_batches"

    def __init__(self, errors: List[BatchUpsertError]) -> None:
        super().__init__("Some errors occurred")
        self.errors = list(errors)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["errors"] = [error.to_dict() for error in self.errors]
        return payload


class CountQueryError(IngestionError):
    stage = "count"

    def __init__(self, table: str, cause: BaseException) -> None:
        super().__init__(f"Failed to count {table}", cause)
        self.table = table
