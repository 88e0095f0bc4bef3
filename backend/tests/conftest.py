"""
Pytest configuration and shared fixtures for catalog sync tests.

Provides mock clients, stores, an in-memory table double for state-machine
scenarios, a simulated clock, and sample catalog data.
Version: 1.0.0
"""
import asyncio
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_settings():
    """Settings object with test defaults (no real credentials, no delays)."""
    from app.core.config import Settings
    return Settings(
        supabase_url="https://test.supabase.co",
        supabase_key="test-supabase-key",
        encryption_key="test-encryption-secret",
        worker_poll_interval=5,
        worker_failure_delay=1,
        job_max_attempts=5,
        lookup_delay=0,
        variant_add_delay=0,
        product_create_delay=0,
        update_delay=0,
        skip_out_of_stock=True,
    )


# ---------------------------------------------------------------------------
# Supabase (mocked)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_supabase_table():
    """Chained MagicMock standing in for client.table(...)."""
    mock_table = MagicMock()
    for method in ("select", "insert", "upsert", "update", "delete", "eq", "in_", "gte", "order", "limit"):
        getattr(mock_table, method).return_value = mock_table
    mock_table.execute.return_value = MagicMock(data=[], count=0)
    return mock_table


@pytest.fixture
def mock_supabase_client(mock_supabase_table):
    """Mocked supabase-py Client."""
    client = MagicMock()
    client.table.return_value = mock_supabase_table
    return client


class _Result:
    def __init__(self, data: List[Dict[str, Any]], count: Optional[int] = None) -> None:
        self.data = data
        self.count = count


class _Query:
    """Tiny PostgREST query builder over a list of dict rows."""

    def __init__(self, rows: List[Dict[str, Any]]) -> None:
        self._rows = rows
        self._op = "select"
        self._columns = "*"
        self._count = None
        self._payload: Any = None
        self._filters: List[Callable[[Dict[str, Any]], bool]] = []
        self._order: Optional[tuple] = None
        self._limit: Optional[int] = None

    def select(self, columns: str = "*", count: Optional[str] = None) -> "_Query":
        self._op, self._columns, self._count = "select", columns, count
        return self

    def insert(self, payload: Any) -> "_Query":
        self._op, self._payload = "insert", payload
        return self

    def update(self, payload: Dict[str, Any]) -> "_Query":
        self._op, self._payload = "update", payload
        return self

    def delete(self) -> "_Query":
        self._op = "delete"
        return self

    def eq(self, column: str, value: Any) -> "_Query":
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column: str, values: List[Any]) -> "_Query":
        values = list(values)
        self._filters.append(lambda row: row.get(column) in values)
        return self

    def gte(self, column: str, value: Any) -> "_Query":
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def order(self, column: str, desc: bool = False) -> "_Query":
        self._order = (column, desc)
        return self

    def limit(self, n: int) -> "_Query":
        self._limit = n
        return self

    def execute(self) -> _Result:
        if self._op == "insert":
            new_rows = self._payload if isinstance(self._payload, list) else [self._payload]
            inserted = [dict(row) for row in new_rows]
            self._rows.extend(inserted)
            return _Result([dict(row) for row in inserted])

        matched = [row for row in self._rows if all(f(row) for f in self._filters)]

        if self._op == "update":
            for row in matched:
                row.update(self._payload)
            return _Result([dict(row) for row in matched])

        if self._op == "delete":
            for row in matched:
                self._rows.remove(row)
            return _Result([dict(row) for row in matched])

        if self._order:
            column, desc = self._order
            matched = sorted(matched, key=lambda row: row.get(column) or "", reverse=desc)
        count = len(matched) if self._count else None
        if self._limit is not None:
            matched = matched[: self._limit]
        if self._columns != "*":
            keys = [c.strip() for c in self._columns.split(",")]
            matched = [{k: row.get(k) for k in keys} for row in matched]
        else:
            matched = [dict(row) for row in matched]
        return _Result(matched, count)


class InMemorySupabase:
    """Stands in for supabase-py's Client in state-machine tests."""

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {}

    def table(self, name: str) -> _Query:
        return _Query(self.tables.setdefault(name, []))

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(name, [])


@pytest.fixture
def memory_db():
    return InMemorySupabase()


@pytest.fixture
def stores(memory_db):
    """Real stores wired to the in-memory table double."""
    from app.db.audit_store import AuditStore
    from app.db.connection_store import ConnectionStore
    from app.db.job_item_store import JobItemStore
    from app.db.job_store import JobStore
    return {
        "connections": ConnectionStore(memory_db),
        "jobs": JobStore(memory_db),
        "items": JobItemStore(memory_db),
        "audit": AuditStore(memory_db),
    }


# ---------------------------------------------------------------------------
# Simulated time
# ---------------------------------------------------------------------------

class FakeClock:
    """Monotonic clock advanced only by its own sleep()."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        # Let already-released callers run before time moves on
        await asyncio.sleep(0)
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def fake_clock():
    return FakeClock()


# ---------------------------------------------------------------------------
# Audit (mocked)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_audit():
    """Mocked audit writer; inspect `.log.call_args_list`."""
    audit = MagicMock()
    audit.log = MagicMock()
    return audit


# ---------------------------------------------------------------------------
# Destination clients (mocked)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_shopify_destination():
    """Mocked ShopifyDestinationClient with an empty destination store."""
    client = MagicMock()
    client.domain = "dest-store.myshopify.com"
    client.find_variant_by_sku = AsyncMock(return_value=None)
    client.find_product_by_title = AsyncMock(return_value=None)
    client.get_product = AsyncMock(return_value=None)
    client.create_product = AsyncMock(return_value={"id": 1001, "variants": []})
    client.add_variant = AsyncMock(return_value={})
    client.update_variant_price = AsyncMock(return_value={})
    client.set_inventory_level = AsyncMock(return_value=None)
    client.find_smart_collection = AsyncMock(return_value=None)
    client.find_custom_collection = AsyncMock(return_value=None)
    client.create_smart_collection = AsyncMock(return_value={"id": 501, "title": "Sale"})
    client.create_custom_collection = AsyncMock(return_value={"id": 601, "title": "Featured"})
    client.add_product_to_collection = AsyncMock(return_value=True)
    return client


@pytest.fixture
def mock_woo_destination():
    """Mocked WooCommerceDestinationClient with an empty destination store."""
    client = MagicMock()
    client.domain = "woo.example.com"
    client.find_product_by_sku = AsyncMock(return_value=None)
    client.create_product = AsyncMock(return_value={"id": 77})
    client.update_product = AsyncMock(return_value={})
    client.find_or_create_category = AsyncMock(return_value=12)
    return client


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

@pytest.fixture
def make_item():
    """Factory for CatalogItems with sensible defaults."""
    from app.schemas.catalog import CatalogItem

    def _make(sku: str = "SKU-1", **overrides: Any) -> CatalogItem:
        data: Dict[str, Any] = {
            "sku": sku,
            "title": f"Product {sku}",
            "price": Decimal("10.00"),
            "stock": 5,
            "vendor": "Acme",
            "tags": ["new"],
            "source": "shopify",
        }
        data.update(overrides)
        return CatalogItem(**data)

    return _make


@pytest.fixture
def make_connection():
    """Factory for Connection snapshots."""
    from app.schemas.connections import Connection

    def _make(**overrides: Any) -> Connection:
        data: Dict[str, Any] = {
            "id": "conn-1",
            "platform": "shopify",
            "status": "active",
            "dest_shop_domain": "dest-store.myshopify.com",
            "location_id": "9001",
            "access_token": "token-ciphertext",
            "sync_price": True,
            "create_products": True,
        }
        data.update(overrides)
        return Connection(**data)

    return _make
