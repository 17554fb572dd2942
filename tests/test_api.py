"""
tests/test_api.py
~~~~~~~~~~~~~~~~~
Tests for the FastAPI app in receiptit.ui.api, backed by a temporary
SQLite database and file store.
"""

from __future__ import annotations

import csv
import io

import pytest
from fastapi.testclient import TestClient

from receiptit.config import Config
from receiptit.storage.files import LocalObjectStore
from receiptit.storage.sqlite import SQLiteRepository
from receiptit.ui import api

APPLE_ID = "a1b2c3d4-0001-4000-8000-000000000001"
CAFE_ID = "a1b2c3d4-0002-4000-8000-000000000002"


@pytest.fixture
def db_file(tmp_path, raw_apple, raw_cafe):
    path = tmp_path / "api.db"
    with SQLiteRepository(path) as repo:
        repo.insert("local", raw_apple)
        repo.insert("local", raw_cafe)
        repo.insert("someone-else", {"id": "foreign-1", "merchant": "Hidden", "amount": 9})
    return path


@pytest.fixture
def client(monkeypatch, tmp_path, db_file):
    monkeypatch.setattr(api, "_cfg", Config(_env_file=None))  # type: ignore[call-arg]

    def repository_override():
        repo = SQLiteRepository(db_file)
        try:
            yield repo
        finally:
            repo.close()

    api.app.dependency_overrides[api.repository_dep] = repository_override
    api.app.dependency_overrides[api.object_store_dep] = lambda: LocalObjectStore(tmp_path / "files")
    yield TestClient(api.app)
    api.app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Meta
# ---------------------------------------------------------------------------

class TestMeta:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body == {"status": "ok", "backend": "sqlite", "user_id": "local"}

    def test_config_has_no_secrets(self, client):
        body = client.get("/config").json()
        assert body["budget_limit"] == 2500.0
        assert "backend_key" not in body
        assert "warranty_date" in body["editable_fields"]


# ---------------------------------------------------------------------------
# Receipts
# ---------------------------------------------------------------------------

class TestListReceipts:
    def test_lists_own_receipts_newest_first(self, client):
        body = client.get("/receipts").json()
        assert body["total"] == 2
        assert [r["id"] for r in body["receipts"]] == [APPLE_ID, CAFE_ID]

    def test_view_fields(self, client):
        apple = client.get("/receipts").json()["receipts"][0]
        assert apple["merchant"] == "Apple Store"
        assert apple["amount"] == 2199.0
        assert apple["folder"] == "work"
        assert apple["is_processing"] is False
        assert set(apple["tag_style"]) == {"color", "icon"}
        assert "status" in apple["warranty"]
        assert "status" in apple["return_window"]

    def test_search(self, client):
        body = client.get("/receipts", params={"q": "CAFE"}).json()
        assert [r["id"] for r in body["receipts"]] == [CAFE_ID]

    def test_folder_filter(self, client):
        body = client.get("/receipts", params={"folder": "work"}).json()
        assert body["total"] == 1

    def test_invalid_folder(self, client):
        assert client.get("/receipts", params={"folder": "archive"}).status_code == 422


class TestSingleReceipt:
    def test_get(self, client):
        assert client.get(f"/receipts/{CAFE_ID}").json()["merchant"] == "Corner Cafe"

    def test_get_missing(self, client):
        assert client.get("/receipts/foreign-1").status_code == 404

    def test_patch(self, client, db_file):
        resp = client.patch(f"/receipts/{CAFE_ID}", json={"merchant": "Cafe Nero", "folder": "work"})
        assert resp.status_code == 200
        assert resp.json()["merchant"] == "Cafe Nero"
        with SQLiteRepository(db_file) as repo:
            stored = repo.get("local", CAFE_ID)
        assert stored["merchant"] == "Cafe Nero"
        assert stored["folder"] == "work"

    def test_patch_rejects_amount(self, client):
        resp = client.patch(f"/receipts/{CAFE_ID}", json={"amount": 1})
        assert resp.status_code == 422
        assert "amount" in resp.json()["detail"]

    def test_patch_rejects_bad_date(self, client):
        resp = client.patch(f"/receipts/{APPLE_ID}", json={"warranty_date": "next year"})
        assert resp.status_code == 422

    def test_patch_processing_conflict(self, client, db_file):
        with SQLiteRepository(db_file) as repo:
            repo.insert("local", {"id": "pending-1", "status": "processing", "date": "2025-01-14"})
        resp = client.patch("/receipts/pending-1", json={"merchant": "Later"})
        assert resp.status_code == 409

    def test_delete(self, client):
        assert client.delete(f"/receipts/{APPLE_ID}").status_code == 204
        assert client.get(f"/receipts/{APPLE_ID}").status_code == 404
        assert client.get("/receipts").json()["total"] == 1

    def test_delete_missing(self, client):
        assert client.delete("/receipts/nope").status_code == 404


class TestUpload:
    def test_upload_creates_processing_record(self, client, tmp_path):
        resp = client.post(
            "/receipts/upload",
            files={"file": ("Scan.PNG", b"\x89PNG\r\n\x1a\nfake", "image/png")},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "processing"
        assert body["is_processing"] is True
        assert body["warranty"]["status"] == "none"
        assert body["image_url"].startswith("file://")
        assert body["image_url"].endswith(".png")
        assert list((tmp_path / "files" / "local").iterdir())
        assert client.get("/receipts").json()["total"] == 3

    def test_unsupported_type(self, client):
        resp = client.post("/receipts/upload", files={"file": ("notes.txt", b"hi", "text/plain")})
        assert resp.status_code == 415

    def test_empty_file(self, client):
        resp = client.post("/receipts/upload", files={"file": ("scan.png", b"", "image/png")})
        assert resp.status_code == 400

    def test_too_large(self, client, monkeypatch):
        monkeypatch.setattr(api, "_cfg", Config(_env_file=None, upload_max_bytes=4))  # type: ignore[call-arg]
        resp = client.post("/receipts/upload", files={"file": ("scan.png", b"123456", "image/png")})
        assert resp.status_code == 413


# ---------------------------------------------------------------------------
# Insights / export
# ---------------------------------------------------------------------------

class TestInsights:
    def test_insights(self, client):
        body = client.get("/insights").json()
        assert body["receipt_count"] == 2
        assert body["total_spent"] == 2203.5
        assert body["top_category"] == "Tech"

    def test_budget_override(self, client):
        body = client.get("/insights", params={"budget_limit": 100}).json()
        assert body["budget"]["is_over"] is True

    def test_budget_must_be_positive(self, client):
        assert client.get("/insights", params={"budget_limit": 0}).status_code == 422

    def test_stats(self, client):
        body = client.get("/stats").json()
        assert body["receipts_captured"] == 2
        assert body["spam_blocked"] == 24
        assert body["folders"]["all"] == 2
        assert body["folders"]["work"] == 1
        assert body["folders"]["personal"] == 1

    def test_categories(self, client):
        categories = client.get("/categories").json()["categories"]
        assert categories[0] == "All"
        assert set(categories[1:]) == {"Tech", "Food & Drink"}


class TestExport:
    def test_csv_download(self, client):
        resp = client.get("/export.csv")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert "attachment" in resp.headers["content-disposition"]
        rows = list(csv.DictReader(io.StringIO(resp.text)))
        assert {r["merchant"] for r in rows} == {"Apple Store", "Corner Cafe"}
