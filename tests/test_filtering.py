"""
tests/test_filtering.py
~~~~~~~~~~~~~~~~~~~~~~~
Tests for receiptit.filtering — text, category, folder and warranty predicates.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

import pytest

from receiptit.filtering import (
    ALL_CATEGORIES,
    ReceiptQuery,
    available_categories,
    filter_receipts,
    folder_counts,
)

NOW = datetime(2025, 1, 15, 9, 30)


@pytest.fixture
def receipts(apple_receipt, cafe_receipt, processing_receipt):
    return [apple_receipt, cafe_receipt, processing_receipt]


class TestQuery:
    def test_default_is_neutral(self):
        assert ReceiptQuery().is_neutral

    def test_all_category_is_neutral(self):
        assert ReceiptQuery(category="All").is_neutral

    def test_text_is_not_neutral(self):
        assert not ReceiptQuery(text="a").is_neutral


class TestFilterReceipts:
    def test_neutral_query_returns_input_in_order(self, receipts):
        result = filter_receipts(receipts, ReceiptQuery(), NOW)
        assert result == receipts
        assert result is not receipts

    def test_text_matches_merchant_case_insensitive(self, receipts):
        result = filter_receipts(receipts, ReceiptQuery(text="APPLE"), NOW)
        assert [r.id for r in result] == ["apple-1"]

    def test_text_matches_reference(self, receipts):
        result = filter_receipts(receipts, ReceiptQuery(text="cafe-1"), NOW)
        assert [r.id for r in result] == ["cafe-1"]

    def test_category_exact(self, receipts):
        result = filter_receipts(receipts, ReceiptQuery(category="Food"), NOW)
        assert [r.id for r in result] == ["cafe-1"]

    def test_category_is_not_substring(self, receipts):
        assert filter_receipts(receipts, ReceiptQuery(category="Foo"), NOW) == []

    def test_folder(self, receipts):
        result = filter_receipts(receipts, ReceiptQuery(folder="work"), NOW)
        assert [r.id for r in result] == ["apple-1"]

    def test_warranty_only(self, receipts):
        result = filter_receipts(receipts, ReceiptQuery(warranty_only=True), NOW)
        # the processing receipt still carries an active warranty date
        assert [r.id for r in result] == ["apple-1", "pending-1"]

    def test_predicates_combine(self, receipts):
        query = ReceiptQuery(text="apple", folder="personal")
        assert filter_receipts(receipts, query, NOW) == []

    def test_source_not_mutated(self, receipts):
        before = list(receipts)
        filter_receipts(receipts, ReceiptQuery(text="zzz"), NOW)
        assert receipts == before


class TestCategoriesAndFolders:
    def test_available_categories_first_seen(self, receipts, cafe_receipt):
        extra = replace(cafe_receipt, id="cafe-2")
        cats = available_categories(receipts + [extra])
        assert cats == [ALL_CATEGORIES, "Tech", "Food", "Other"]

    def test_available_categories_empty(self):
        assert available_categories([]) == [ALL_CATEGORIES]

    def test_folder_counts(self, receipts):
        counts = folder_counts(receipts, NOW)
        assert counts == {"all": 3, "work": 1, "personal": 1, "warranty": 2}
