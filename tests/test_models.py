"""
tests/test_models.py
~~~~~~~~~~~~~~~~~~~~
Tests for receiptit.models — Receipt helpers, serialisation and result values.
"""

from __future__ import annotations

import json
from dataclasses import FrozenInstanceError, replace

import pytest

from receiptit.models import ActionResult, LineItem, Receipt, RefreshResult, TagStyle


class TestReceipt:
    def test_frozen(self, apple_receipt):
        with pytest.raises(FrozenInstanceError):
            apple_receipt.amount = 1.0  # type: ignore[misc]

    def test_month_key(self, apple_receipt):
        assert apple_receipt.month_key == "2025-01"

    def test_month_key_undated(self):
        assert Receipt(id="x").month_key == ""

    def test_processing_by_status(self, apple_receipt):
        assert replace(apple_receipt, status="processing").is_processing

    def test_processing_by_zero_amount(self, apple_receipt):
        assert replace(apple_receipt, amount=0.0).is_processing

    def test_finalised(self, apple_receipt):
        assert not apple_receipt.is_processing

    def test_items_total(self):
        r = Receipt(id="x", items=[LineItem("a", 2, 1.5), LineItem("b", 1, 3.0)])
        assert r.items_total == pytest.approx(6.0)

    def test_to_dict_keys(self, apple_receipt):
        d = apple_receipt.to_dict()
        assert d["merchant"] == "Apple Store"
        assert d["items"] == [{"name": "MacBook Pro", "quantity": 1.0, "price": 2199.0}]
        assert set(d) >= {"id", "amount", "subtotal", "vat", "warranty_date", "return_date"}

    def test_to_json(self, apple_receipt):
        assert json.loads(apple_receipt.to_json())["reference_number"] == "APPLE-1"


class TestValues:
    def test_tag_style_default(self):
        assert TagStyle().to_dict() == {"color": "gray", "icon": "shopping-bag"}

    def test_refresh_result(self):
        assert RefreshResult(False, 2, "offline").to_dict() == {
            "success": False, "count": 2, "error_message": "offline",
        }

    def test_action_result_with_receipt(self, cafe_receipt):
        d = ActionResult(True, "cafe-1", cafe_receipt).to_dict()
        assert d["receipt"]["merchant"] == "Corner Cafe"

    def test_action_result_without_receipt(self):
        assert ActionResult(False, error_message="nope").to_dict()["receipt"] is None
