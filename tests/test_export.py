"""
tests/test_export.py
~~~~~~~~~~~~~~~~~~~~
Tests for receiptit.export — CSV rendering.
"""

from __future__ import annotations

import csv
import io
from dataclasses import replace

from receiptit.export import CSV_COLUMNS, to_csv, write_csv


class TestToCsv:
    def test_header_only_when_empty(self):
        assert to_csv([]) == ",".join(CSV_COLUMNS) + "\n"

    def test_rows(self, apple_receipt, cafe_receipt):
        rows = list(csv.DictReader(io.StringIO(to_csv([apple_receipt, cafe_receipt]))))
        assert len(rows) == 2
        assert rows[0]["merchant"] == "Apple Store"
        assert rows[0]["amount"] == "2199.00"
        assert rows[0]["vat"] == "366.50"
        assert rows[0]["warranty_date"] == "2026-01-10"
        assert rows[1]["folder"] == "personal"
        assert rows[1]["return_date"] == ""

    def test_quotes_commas(self, cafe_receipt):
        text = to_csv([replace(cafe_receipt, merchant="Smith, Jones & Co")])
        assert '"Smith, Jones & Co"' in text


class TestWriteCsv:
    def test_writes_file(self, tmp_path, cafe_receipt):
        path = write_csv([cafe_receipt], tmp_path / "out" / "receipts.csv")
        assert path.read_text(encoding="utf-8").startswith("id,date,merchant")
