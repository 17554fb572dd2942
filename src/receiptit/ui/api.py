"""
receiptit.ui.api
~~~~~~~~~~~~~~~~
FastAPI backend for the receiptit app.

Each request opens the configured repository (local SQLite profile, or the
hosted backend when ``RECEIPTIT_BACKEND_URL`` is set), loads the user's
receipts into a ``ReceiptWallet`` and answers from it.

Endpoints
---------
GET    /health                — Liveness + storage backend
GET    /config                — Runtime configuration snapshot
GET    /receipts              — List receipts (?q= ?category= ?folder= ?warranty_only=)
GET    /receipts/{id}         — One receipt with tag style and badges
PATCH  /receipts/{id}         — User edits (editable fields only)
DELETE /receipts/{id}         — Remove a receipt
POST   /receipts/upload       — Image/PDF → object store → processing record
GET    /insights              — Spending insights (?budget_limit=)
GET    /stats                 — Activity counters and folder counts
GET    /categories            — Category chips ("All" first)
GET    /export.csv            — CSV download
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Iterator, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Query, Response, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware

from receiptit.config import Config
from receiptit.export import to_csv
from receiptit.filtering import ALL_FOLDERS, ReceiptQuery
from receiptit.storage import get_object_store, get_repository
from receiptit.wallet import EDITABLE_FIELDS, ReceiptWallet, to_view, validate_edit

logger = logging.getLogger(__name__)

_cfg = Config()

ALLOWED_MIME_TYPES = {
    "image/jpeg", "image/png", "image/webp",
    "image/heic", "application/pdf",
}

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="receiptit API",
    description=(
        "REST API for receiptit — forwarded receipts, warranty and "
        "return-window tracking, and spending insights."
    ),
    version="0.1.0",
    license_info={"name": "MIT"},
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def repository_dep() -> Iterator:
    """Open the configured repository for one request."""
    repo = get_repository(config=_cfg)
    try:
        yield repo
    finally:
        repo.close()


def object_store_dep():
    return get_object_store(config=_cfg)


def wallet_dep(
    repo=Depends(repository_dep),
    store=Depends(object_store_dep),
) -> ReceiptWallet:
    wallet = ReceiptWallet(repo, _cfg.user_id, object_store=store, config=_cfg)
    result = wallet.refresh()
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Could not load receipts: {result.error_message}",
        )
    return wallet


Wallet = Annotated[ReceiptWallet, Depends(wallet_dep)]


def _require(wallet: ReceiptWallet, receipt_id: str):
    receipt = wallet.get(receipt_id)
    if receipt is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail="Receipt not found.")
    return receipt


# ---------------------------------------------------------------------------
# Meta routes
# ---------------------------------------------------------------------------

@app.get("/health", tags=["meta"])
def health():
    return {
        "status":  "ok",
        "backend": "remote" if _cfg.has_backend and not _cfg.db_path else "sqlite",
        "user_id": _cfg.user_id,
    }


@app.get("/config", tags=["meta"])
def get_config():
    """Return the active receiptit configuration (no secrets)."""
    return {
        "budget_limit":     _cfg.budget_limit,
        "currency_symbol":  _cfg.currency_symbol,
        "alias_domain":     _cfg.alias_domain,
        "trend_months":     _cfg.trend_months,
        "has_backend":      _cfg.has_backend,
        "storage_bucket":   _cfg.storage_bucket,
        "upload_max_bytes": _cfg.upload_max_bytes,
        "editable_fields":  list(EDITABLE_FIELDS),
    }


# ---------------------------------------------------------------------------
# Receipt routes
# ---------------------------------------------------------------------------

@app.get("/receipts", tags=["receipts"])
def list_receipts(
    wallet: Wallet,
    q:             str = Query(default=""),
    category:      Optional[str] = Query(default=None),
    folder:        str = Query(default=ALL_FOLDERS, pattern="^(all|work|personal)$"),
    warranty_only: bool = Query(default=False),
):
    """
    List receipts, newest first, with optional filters.

    - ``?q=apple``          — merchant or reference number contains
    - ``?category=Tech``    — exact category (``All`` = any)
    - ``?folder=work``      — ``all``, ``work`` or ``personal``
    - ``?warranty_only=1``  — only receipts with an active warranty
    """
    now = datetime.now()
    query = ReceiptQuery(text=q, category=category, folder=folder, warranty_only=warranty_only)
    receipts = wallet.view(query, now)
    return {
        "receipts": [to_view(r, now) for r in receipts],
        "total":    len(receipts),
    }


@app.get("/receipts/{receipt_id}", tags=["receipts"])
def get_receipt(receipt_id: str, wallet: Wallet):
    return to_view(_require(wallet, receipt_id), datetime.now())


@app.patch("/receipts/{receipt_id}", tags=["receipts"])
def update_receipt(receipt_id: str, fields: dict, wallet: Wallet):
    """
    Apply user edits to a receipt.

    Accepted fields: ``merchant``, ``category``, ``folder``,
    ``warranty_date``, ``return_date``. Returns the updated receipt.
    """
    receipt = _require(wallet, receipt_id)
    if receipt.is_processing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                            detail="Receipt is still processing.")
    try:
        validate_edit(fields)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                            detail=str(exc)) from exc

    result = wallet.update(receipt_id, fields)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY,
                            detail=result.error_message)
    return to_view(result.receipt, datetime.now())


@app.delete("/receipts/{receipt_id}", status_code=status.HTTP_204_NO_CONTENT,
            tags=["receipts"])
def delete_receipt(receipt_id: str, wallet: Wallet):
    _require(wallet, receipt_id)
    result = wallet.delete(receipt_id)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY,
                            detail=result.error_message)


@app.post("/receipts/upload", status_code=status.HTTP_201_CREATED, tags=["receipts"])
async def upload_receipt(
    file: Annotated[UploadFile, File(description="Receipt image or PDF")],
    wallet: Wallet,
):
    """
    Store an uploaded receipt and create a ``processing`` record for it.

    The record shows no badges until its fields are filled in.
    """
    if file.content_type not in ALLOWED_MIME_TYPES:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=(
                f"Unsupported file type '{file.content_type}'. "
                f"Allowed: {sorted(ALLOWED_MIME_TYPES)}"
            ),
        )

    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Uploaded file is empty.")
    if len(content) > _cfg.upload_max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {_cfg.upload_max_bytes} bytes.",
        )

    result = wallet.upload(file.filename or "receipt", content, file.content_type)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY,
                            detail=f"Upload failed: {result.error_message}")
    return to_view(result.receipt, datetime.now())


# ---------------------------------------------------------------------------
# Insight routes
# ---------------------------------------------------------------------------

@app.get("/insights", tags=["insights"])
def get_insights(
    wallet: Wallet,
    budget_limit: Optional[float] = Query(default=None, gt=0),
):
    return wallet.insights(datetime.now(), budget_limit).to_dict()


@app.get("/stats", tags=["insights"])
def get_stats(wallet: Wallet):
    now = datetime.now()
    return {
        **wallet.stats(now).to_dict(),
        "folders": wallet.folder_counts(now),
    }


@app.get("/categories", tags=["insights"])
def get_categories(wallet: Wallet):
    return {"categories": wallet.categories()}


@app.get("/export.csv", tags=["export"])
def export_csv(wallet: Wallet):
    return Response(
        content=to_csv(wallet.receipts),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="receipts.csv"'},
    )
