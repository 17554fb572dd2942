"""
tests/conftest.py
~~~~~~~~~~~~~~~~~
Shared pytest fixtures for the receiptit test suite.
"""

from __future__ import annotations

from datetime import datetime

import pytest

from receiptit.config import Config
from receiptit.models import LineItem, Receipt
from receiptit.storage.files import LocalObjectStore
from receiptit.storage.sqlite import SQLiteRepository


# ---------------------------------------------------------------------------
# Config / clock
# ---------------------------------------------------------------------------

@pytest.fixture
def default_config() -> Config:
    return Config(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 1, 15, 9, 30)


# ---------------------------------------------------------------------------
# Raw records
# ---------------------------------------------------------------------------

@pytest.fixture
def raw_apple() -> dict:
    return {
        "id": "a1b2c3d4-0001-4000-8000-000000000001",
        "store_name": "Apple Store",
        "total": "£2,199.00",
        "tax": 366.50,
        "timestamp": "2025-01-10T14:22:00Z",
        "tag": "Tech",
        "warrantyDate": "2026-01-10",
        "returnDate": "2025-01-24",
        "folder": "Work",
        "line_items": [{"description": "MacBook Pro", "qty": 1, "unit_price": "2199"}],
    }


@pytest.fixture
def raw_cafe() -> dict:
    return {
        "id": "a1b2c3d4-0002-4000-8000-000000000002",
        "merchant": "Corner Cafe",
        "amount": 4.5,
        "date": "2024-12-20",
        "category": "Food & Drink",
        "folder": "personal",
    }


# ---------------------------------------------------------------------------
# Canonical receipts
# ---------------------------------------------------------------------------

@pytest.fixture
def apple_receipt() -> Receipt:
    return Receipt(
        id="apple-1",
        merchant="Apple Store",
        amount=2199.0,
        subtotal=1832.5,
        vat=366.5,
        date="2025-01-10",
        category="Tech",
        warranty_date="2026-01-10",
        return_date="2025-01-24",
        reference_number="APPLE-1",
        items=[LineItem("MacBook Pro", 1.0, 2199.0)],
        folder="work",
    )


@pytest.fixture
def cafe_receipt() -> Receipt:
    return Receipt(
        id="cafe-1",
        merchant="Corner Cafe",
        amount=4.5,
        subtotal=4.5,
        vat=0.0,
        date="2024-12-20",
        category="Food",
        reference_number="CAFE-1",
        folder="personal",
    )


@pytest.fixture
def processing_receipt() -> Receipt:
    return Receipt(
        id="pending-1",
        date="2025-01-14",
        warranty_date="2027-01-01",
        return_date="2025-01-16",
        status="processing",
        reference_number="PENDING-1",
    )


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

@pytest.fixture
def repo(tmp_path) -> SQLiteRepository:
    db = SQLiteRepository(db_path=tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def store(tmp_path) -> LocalObjectStore:
    return LocalObjectStore(root=tmp_path / "files")
