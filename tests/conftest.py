from __future__ import annotations

import copy
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from farrier_route.config import settings
from farrier_route.models.domain import Coordinates, SessionContext, Stop


def make_stop(
    stop_id: str,
    lat: float | None = None,
    lon: float | None = None,
    *,
    hour: int = 8,
    minute: int = 0,
    horses: int = 1,
    status: str = "confirmed",
    sequence: int | None = None,
) -> Stop:
    return Stop(
        stop_id=stop_id,
        customer_name=f"Customer {stop_id}",
        address="Via Roma 1",
        city="Milano",
        coordinates=Coordinates(lat, lon) if lat is not None and lon is not None else None,
        phone=None,
        scheduled_at=datetime(2025, 3, 10, hour, minute, tzinfo=timezone.utc),
        horse_count=horses,
        sequence_index=sequence,
        status=status,
    )


def appointment_row(
    appointment_id: str,
    lat: float | None = None,
    lon: float | None = None,
    *,
    proposed_date: str = "2025-03-10T09:00:00+00:00",
    horses: int | None = 1,
    status: str = "confirmed",
    sequence: int | None = None,
    farrier_id: str = "F1",
    phone: str | None = "+39 333 000000",
) -> dict:
    return {
        "id": appointment_id,
        "farrier_id": farrier_id,
        "proposed_date": proposed_date,
        "num_horses": horses,
        "sequence_order": sequence,
        "status": status,
        "customer": {
            "full_name": f"Stable {appointment_id}",
            "address": "Via Verdi 2",
            "city": "Monza",
            "latitude": lat,
            "longitude": lon,
            "phone": phone,
        },
    }


class FakeQuery:
    """Chainable stand-in for the PostgREST query builder."""

    def __init__(self, store: "FakeSupabase", table: str) -> None:
        self.store = store
        self.table_name = table
        self.operation = "select"
        self.payload: dict | None = None
        self.filters: list[tuple[str, str, object]] = []
        self.orders: list[str] = []

    def select(self, columns: str, count: str | None = None) -> "FakeQuery":
        self.operation = "select"
        self.columns = columns
        return self

    def update(self, payload: dict) -> "FakeQuery":
        self.operation = "update"
        self.payload = payload
        return self

    def eq(self, column: str, value) -> "FakeQuery":
        self.filters.append(("eq", column, value))
        return self

    def gte(self, column: str, value) -> "FakeQuery":
        self.filters.append(("gte", column, value))
        return self

    def lt(self, column: str, value) -> "FakeQuery":
        self.filters.append(("lt", column, value))
        return self

    def in_(self, column: str, values) -> "FakeQuery":
        self.filters.append(("in", column, list(values)))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.orders.append(column)
        return self

    def limit(self, count: int) -> "FakeQuery":
        return self

    def _matches(self, row: dict) -> bool:
        for kind, column, value in self.filters:
            if kind == "eq" and column in row and row[column] != value:
                return False
            if kind == "in" and column in row and row[column] not in value:
                return False
        return True

    def execute(self) -> SimpleNamespace:
        self.store.queries.append(self)
        if (self.table_name, self.operation) in self.store.failures:
            raise RuntimeError("connection refused")
        target = next((value for kind, column, value in self.filters if kind == "eq" and column == "id"), None)
        if self.operation == "update" and target in self.store.failing_ids:
            raise RuntimeError(f"row {target} is locked")
        rows = self.store.tables.setdefault(self.table_name, [])
        matched = [row for row in rows if self._matches(row)]
        if self.operation == "update":
            for row in matched:
                row.update(self.payload)
            self.store.updates.append((self.table_name, target, dict(self.payload)))
        return SimpleNamespace(data=copy.deepcopy(matched))


class FakeSupabase:
    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {}
        self.queries: list[FakeQuery] = []
        self.updates: list[tuple[str, object, dict]] = []
        self.failures: set[tuple[str, str]] = set()
        self.failing_ids: set[str] = set()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)


@pytest.fixture
def fake_store(monkeypatch: pytest.MonkeyPatch) -> FakeSupabase:
    from farrier_route.data import appointments_repository

    store = FakeSupabase()
    monkeypatch.setattr(appointments_repository, "get_supabase_client", lambda: store)
    return store


@pytest.fixture
def session() -> SessionContext:
    return SessionContext(user_id="F1", timezone="UTC")


@pytest.fixture(autouse=True)
def fallback_optimizer(monkeypatch: pytest.MonkeyPatch):
    """Tests never reach a real reasoning service unless they inject a client."""
    monkeypatch.setattr(settings, "optimizer_api_key", None)
    monkeypatch.setattr(settings, "day_start", "08:00")
    monkeypatch.setattr(settings, "work_minutes_per_horse", 45)
    monkeypatch.setattr(settings, "travel_minutes_per_km", 1.0)
