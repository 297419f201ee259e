from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Generator, List, Sequence, TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud
from .db import create_db_engine, create_session_factory, session_scope
from .errors import PersistenceError
from .models import Base
from .records import TripRecord, VendorRecord
from .schemas import MapPoint, Pagination, TripFilters, TripPage, TripStats

T = TypeVar("T")


class TripStore:
    """Database-backed trip and vendor storage.

    One instance is built at startup and shared by every request. Each public
    call runs in its own transaction and reports database failures as
    ``PersistenceError``.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_factory = create_session_factory(engine)

    @classmethod
    def from_url(cls, url: str, **engine_kwargs: Any) -> "TripStore":
        return cls(create_db_engine(url, **engine_kwargs))

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def drop_schema(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        with session_scope(self._session_factory) as session:
            yield session

    def _run(self, action: str, operation: Callable[[Session], T]) -> T:
        try:
            with self.session() as session:
                return operation(session)
        # sqlite3 raises a bare OverflowError when binding integers it cannot store.
        except (SQLAlchemyError, OverflowError) as exc:
            raise PersistenceError(f"Failed to {action}: {exc}") from exc

    def upsert_vendors(self, vendors: Sequence[VendorRecord]) -> None:
        self._run("upsert vendors", lambda session: crud.upsert_vendors(session, vendors))

    def upsert_trip_batch(self, records: Sequence[TripRecord]) -> None:
        self._run("upsert trips", lambda session: crud.upsert_trips(session, records))

    def count_trips(self) -> int:
        return self._run("count trips", crud.count_trips)

    def count_vendors(self) -> int:
        return self._run("count vendors", crud.count_vendors)

    def list_trips(self, filters: TripFilters, pagination: Pagination) -> TripPage:
        return self._run("list trips", lambda session: crud.list_trips(session, filters, pagination))

    def map_points(self, filters: TripFilters, limit: int) -> List[MapPoint]:
        return self._run("load map points", lambda session: crud.map_points(session, filters, limit))

    def trip_stats(self, filters: TripFilters) -> TripStats:
        return self._run("compute trip stats", lambda session: crud.trip_stats(session, filters))

    def vendor_ids(self) -> List[int]:
        return self._run("list vendors", crud.list_vendor_ids)
