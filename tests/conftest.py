"""Pytest configuration and fixtures."""

import os
from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("OPENNODE_API_KEY", "test-opennode-key")
os.environ.setdefault("OPENLOGI_API_KEY", "test-openlogi-key")
os.environ.setdefault("AUTO_SHIPMENT_ENABLED", "false")


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    get_settings.cache_clear()


@pytest.fixture
def make_settings() -> Callable[..., Any]:
    """Build a fresh Settings instance with overrides."""
    from src.core.config import Settings

    def _make(**overrides: Any) -> Any:
        values = {
            "supabase_url": "https://test-project.supabase.co",
            "supabase_secret_key": "test-secret-key",
            "opennode_api_key": "test-opennode-key",
            "openlogi_api_key": "test-openlogi-key",
            "debug": True,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def mock_supabase_client() -> Generator[MagicMock, None, None]:
    """Provide a mocked Supabase client.

    Yields:
        MagicMock: Mocked Supabase client for testing.
    """
    mock_client = MagicMock()

    mock_response = MagicMock()
    mock_response.data = []
    mock_client.table.return_value.select.return_value.limit.return_value.execute.return_value = (
        mock_response
    )

    with patch("src.core.supabase.get_supabase_client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def client(mock_supabase_client: MagicMock) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Args:
        mock_supabase_client: Mocked Supabase client fixture.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def domestic_address() -> dict[str, Any]:
    """Default user address inside Japan."""
    return {
        "id": "addr-1",
        "isDefault": True,
        "shippingFee": 15,
        "shippingRequest": {
            "international": False,
            "recipient": {
                "name": "山田太郎",
                "postcode": "100-0001",
                "prefecture": "東京都",
                "address1": "千代田区千代田1-1",
                "address2": "101",
                "phone": "090-1234-5678",
            },
        },
    }


@pytest.fixture
def international_address() -> dict[str, Any]:
    """Default user address outside Japan."""
    return {
        "id": "addr-2",
        "isDefault": True,
        "shippingFee": 40,
        "shippingRequest": {
            "international": True,
            "recipient": {
                "name": "Jane Doe",
                "region_code": "US",
                "state": "CA",
                "city": "San Francisco",
                "postcode": "94105",
                "address1": "1 Market St",
                "phone": "+1-415-555-0100",
            },
        },
    }


@pytest.fixture
def sample_invoice() -> dict[str, Any]:
    """Pending invoice with a two-product cart."""
    return {
        "id": "ORD-1",
        "sessionId": "S-1",
        "userId": "U1",
        "status": "pending",
        "amount_usd": 45,
        "cartSnapshot": {
            "items": [
                {"id": "P1", "quantity": 2, "unitPrice": 10},
                {"id": "P2", "quantity": 1, "unitPrice": 10},
            ],
            "subtotal": 30,
        },
    }


class FakeQuery:
    """Chainable stand-in for a PostgREST query builder."""

    def __init__(self, table: "FakeTable", op: str, values: dict[str, Any] | None = None) -> None:
        self.table = table
        self.op = op
        self.values = values
        self.filters: list[tuple[str, str, Any]] = []

    def select(self, *args: Any) -> "FakeQuery":
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(("eq", column, value))
        return self

    def is_(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(("is", column, value))
        return self

    def maybe_single(self) -> "FakeQuery":
        return self

    def _matches(self, row: dict[str, Any]) -> bool:
        for kind, column, value in self.filters:
            if kind == "eq" and row.get(column) != value:
                return False
            if kind == "is" and row.get(column) is not None:
                return False
        return True

    def execute(self) -> MagicMock:
        if self.table.fail_writes and self.op != "select":
            raise RuntimeError("write failed")
        response = MagicMock()
        if self.op == "insert":
            self.table.rows[self.values["id"]] = dict(self.values)
            response.data = [dict(self.values)]
            return response
        rows = [row for row in self.table.rows.values() if self._matches(row)]
        if self.op == "select":
            response.data = dict(rows[0]) if rows else None
        else:
            for row in rows:
                row.update(self.values)
            self.table.updates.append((self.values, list(self.filters)))
            response.data = [dict(row) for row in rows]
        return response


class FakeTable:
    def __init__(self, rows: list[dict[str, Any]] | None = None) -> None:
        self.rows = {row["id"]: row for row in rows or []}
        self.updates: list[tuple[dict[str, Any], list]] = []
        self.fail_writes = False

    def select(self, *args: Any) -> FakeQuery:
        return FakeQuery(self, "select")

    def update(self, values: dict[str, Any]) -> FakeQuery:
        return FakeQuery(self, "update", values)

    def insert(self, values: dict[str, Any]) -> FakeQuery:
        return FakeQuery(self, "insert", values)


class FakeSupabase:
    """In-memory document tables keyed by table name."""

    def __init__(self, **tables: list[dict[str, Any]]) -> None:
        self.tables = {name: FakeTable(rows) for name, rows in tables.items()}

    def table(self, name: str) -> FakeTable:
        return self.tables.setdefault(name, FakeTable())


@pytest.fixture
def fake_supabase() -> type[FakeSupabase]:
    """Factory for in-memory Supabase stand-ins."""
    return FakeSupabase
