"""
Shared test fixtures.

Settings are read at import time, so the Supabase env vars are set before
anything from the app is imported.
"""

import os
import sys
from pathlib import Path

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from unittest.mock import patch
from typing import Generator, Optional

from tests.fakes import FakeSlotGateway

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """
    Mock Supabase query builder with chainable methods.

    eq / neq / in_ filter the configured rows; order / limit are accepted
    and ignored. Every executed query is recorded on the client.
    """

    def __init__(self, client: "MockSupabaseClient", table: str, data: list, count: int = None):
        self._client = client
        self._table = table
        self._data = [dict(row) for row in data]
        self._count = count
        self._action = "select"
        self._payload = None
        self._filters: list[tuple] = []

    def select(self, *args, **kwargs):
        self._action = "select"
        return self

    def insert(self, data):
        self._action = "insert"
        self._payload = data
        return self

    def update(self, data):
        self._action = "update"
        self._payload = data
        return self

    def delete(self):
        self._action = "delete"
        return self

    def eq(self, column, value):
        self._filters.append(("eq", column, value))
        return self

    def neq(self, column, value):
        self._filters.append(("neq", column, value))
        return self

    def in_(self, column, values):
        self._filters.append(("in", column, list(values)))
        return self

    def order(self, column, **kwargs):
        return self

    def limit(self, count):
        return self

    def _matching(self) -> list:
        rows = self._data
        for op, column, value in self._filters:
            if op == "eq":
                rows = [r for r in rows if r.get(column) == value]
            elif op == "neq":
                rows = [r for r in rows if r.get(column) != value]
            elif op == "in":
                rows = [r for r in rows if r.get(column) in value]
        return rows

    def execute(self) -> MockSupabaseResponse:
        self._client.calls.append({
            "table": self._table,
            "action": self._action,
            "payload": self._payload,
            "filters": list(self._filters),
        })

        if (self._table, self._action) in self._client.failures:
            raise Exception(f"{self._action} on {self._table} failed")

        if self._action == "insert":
            rows = self._payload if isinstance(self._payload, list) else [self._payload]
            created = []
            for row in rows:
                row = dict(row)
                row.setdefault("id", self._client.next_id())
                created.append(row)
            return MockSupabaseResponse(data=created)

        rows = self._matching()
        if self._action == "update":
            rows = [{**row, **self._payload} for row in rows]

        return MockSupabaseResponse(
            data=rows,
            count=self._count if self._count is not None else len(rows)
        )


class MockSupabaseTable:
    """Mock Supabase table with configurable responses."""

    def __init__(self, client: "MockSupabaseClient", name: str, data: list = None, count: int = None):
        self._client = client
        self._name = name
        self._data = data or []
        self._count = count

    def _query(self) -> MockSupabaseQuery:
        return MockSupabaseQuery(self._client, self._name, self._data, self._count)

    def select(self, *args, **kwargs):
        return self._query().select(*args, **kwargs)

    def insert(self, data):
        return self._query().insert(data)

    def update(self, data):
        return self._query().update(data)

    def delete(self):
        return self._query().delete()


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables = {}
        self._next_id = 1000
        self.calls: list[dict] = []
        self.failures: set[tuple[str, str]] = set()

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = {"data": data, "count": count}

    def fail_on(self, table_name: str, action: str):
        """Make every `action` query on a table raise."""
        self.failures.add((table_name, action))

    def next_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def calls_for(self, table_name: str, action: Optional[str] = None) -> list[dict]:
        return [
            c for c in self.calls
            if c["table"] == table_name and (action is None or c["action"] == action)
        ]

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        config = self._tables.get(name, {"data": [], "count": None})
        return MockSupabaseTable(self, name, config["data"], config["count"])


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("item_slots", [
                {"id": 1, "item_id": 10, ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("items", [...])
            # Now SlotGateway() gets the mock
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.slot_gateway.get_supabase_client", return_value=mock_supabase):
            yield mock_supabase


@pytest.fixture
def two_group_campaign():
    """
    Campaign 1: item 10 with groups 1 (slots 1, 2) and 2 (slot 3),
    item 11 with group 1 (slot 4).
    """
    from tests.factories import ItemFactory, SlotFactory, BuyerFactory

    items = [
        ItemFactory.build(id=10, campaign_id=1, product_name="Cup"),
        ItemFactory.build(id=11, campaign_id=1, product_name="Plate"),
    ]
    slots = [
        SlotFactory.build(id=1, item_id=10, day_group=1, slot_number=1, keyword="mug",
                          buyer=BuyerFactory.build(id=101, amount=1000, order_number="A-1")),
        SlotFactory.build(id=2, item_id=10, day_group=1, slot_number=2, keyword="mug"),
        SlotFactory.build(id=3, item_id=10, day_group=2, slot_number=3, keyword="cup"),
        SlotFactory.build(id=4, item_id=11, day_group=1, slot_number=1, keyword="dish",
                          buyer=BuyerFactory.build(id=104, amount="2,500", order_number="B-1")),
    ]
    return items, slots


@pytest.fixture
def fake_gateway(two_group_campaign) -> FakeSlotGateway:
    items, slots = two_group_campaign
    return FakeSlotGateway(items, slots)


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
