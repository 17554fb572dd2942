"""
receiptit
~~~~~~~~~
Receipt wallet core: normalises forwarded receipt records and derives
warranty/return-window status, filters and spending insights.

Typical usage::

    from datetime import datetime
    from receiptit import ReceiptWallet
    from receiptit.storage import get_repository

    with get_repository() as repo:
        wallet = ReceiptWallet(repo, "local")
        wallet.refresh()
        print(wallet.insights(datetime.now()).summary())
"""

import logging

from .config import BackendConfig, Config, cfg
from .exceptions import (
    AuthenticationError,
    CollaboratorError,
    InvalidAliasError,
    ObjectStorageError,
    PersistenceError,
    ReceiptItError,
    ReceiptNotFoundError,
)
from .filtering import ReceiptQuery, filter_receipts
from .insights import SpendingInsights, generate_insights
from .models import ActionResult, LineItem, Receipt, RefreshResult, TagStyle
from .normalizer import normalize_record, normalize_records, parse_amount, tag_style
from .status import return_window_status, warranty_status
from .wallet import ReceiptWallet

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Wallet
    "ReceiptWallet",
    # Configuration
    "BackendConfig",
    "Config",
    "cfg",
    # Models
    "ActionResult",
    "LineItem",
    "Receipt",
    "RefreshResult",
    "TagStyle",
    # Pure engines
    "ReceiptQuery",
    "SpendingInsights",
    "filter_receipts",
    "generate_insights",
    "normalize_record",
    "normalize_records",
    "parse_amount",
    "return_window_status",
    "tag_style",
    "warranty_status",
    # Exceptions
    "ReceiptItError",
    "CollaboratorError",
    "PersistenceError",
    "ObjectStorageError",
    "AuthenticationError",
    "InvalidAliasError",
    "ReceiptNotFoundError",
]
