"""
receiptit.cli
~~~~~~~~~~~~~
Command-line interface for receiptit.

Entry point registered in pyproject.toml::

    [project.scripts]
    receiptit = "receiptit.cli:main"

Usage examples
--------------
    receiptit --version

    # Load raw records exported from the app, then browse them
    receiptit --import receipts.json
    receiptit --list --search apple --folder work
    receiptit --list --warranty-only

    # Spending summary, optionally saved as JSON
    receiptit --insights --output insights.json

    # Edit / remove
    receiptit --set-warranty 3f2a... 2027-06-30
    receiptit --delete 3f2a...

    # CSV export from a custom database
    receiptit --export receipts.csv --db /tmp/receipts.db
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from receiptit.config import cfg
from receiptit.exceptions import PersistenceError
from receiptit.export import write_csv
from receiptit.filtering import ALL_FOLDERS, ReceiptQuery
from receiptit.models import FOLDERS
from receiptit.status import return_badge, warranty_badge
from receiptit.storage import get_repository
from receiptit.wallet import ReceiptWallet


# ---------------------------------------------------------------------------
# CLI class
# ---------------------------------------------------------------------------

class ReceiptItCLI:

    def __init__(self, db_path: Path | None = None, user_id: str | None = None) -> None:
        self.db_path = db_path
        self.user_id = user_id or cfg.user_id

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------

    def print_version(self) -> None:
        try:
            print(f"receiptit version: {version('receiptit')}")
        except PackageNotFoundError:
            print("receiptit version: unknown")

    def _load(self, repo) -> ReceiptWallet | None:
        wallet = ReceiptWallet(repo, self.user_id)
        result = wallet.refresh()
        if not result.success:
            print(f"[error] Could not load receipts: {result.error_message}", file=sys.stderr)
            return None
        return wallet

    # ------------------------------------------------------------------
    # Browse
    # ------------------------------------------------------------------

    def list_receipts(self, query: ReceiptQuery | None = None, now: datetime | None = None) -> int:
        """Print the (filtered) receipt list with badges. Returns exit code."""
        now = now or datetime.now()
        with get_repository(self.db_path) as repo:
            wallet = self._load(repo)
            if wallet is None:
                return 1
            receipts = wallet.view(query, now)

        if not receipts:
            print("No receipts found.")
            return 0

        for r in receipts:
            if r.is_processing:
                print(f"…  {r.id[:12]}  {r.date or '—':<10}  processing")
                continue
            badges = [
                b.message
                for b in (warranty_badge(r, now), return_badge(r, now))
                if b.status != "none"
            ]
            line = (
                f"•  {r.id[:12]}  {r.date or '—':<10}  {r.merchant:<24.24} "
                f"{r.currency_symbol}{r.amount:>10,.2f}  {r.category}"
            )
            if r.folder:
                line += f"  [{r.folder}]"
            if badges:
                line += "  (" + "; ".join(badges) + ")"
            print(line)
        print(f"\n{len(receipts)} receipt(s).")
        return 0

    def show_insights(self, output: Path | None = None, now: datetime | None = None) -> int:
        with get_repository(self.db_path) as repo:
            wallet = self._load(repo)
            if wallet is None:
                return 1
            insights = wallet.insights(now or datetime.now())

        print(insights.summary())
        if output:
            insights.to_json(output)
            print(f"Insights saved to {output}")
        return 0

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def import_records(self, path: Path, verbose: bool = False) -> int:
        """
        Insert raw records from a JSON file (a list, or ``{"receipts": [...]}``).

        Records whose id already exists are skipped. Returns exit code.
        """
        if not path.exists():
            print(f"[error] File not found: {path}", file=sys.stderr)
            return 1
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            print(f"[error] {path} is not valid JSON: {exc}", file=sys.stderr)
            return 1

        records = payload.get("receipts", []) if isinstance(payload, dict) else payload
        if not isinstance(records, list):
            print(f"[error] {path} does not contain a list of receipts", file=sys.stderr)
            return 1

        saved = skipped = 0
        with get_repository(self.db_path) as repo:
            for record in records:
                if not isinstance(record, dict):
                    skipped += 1
                    continue
                try:
                    record_id = repo.insert(self.user_id, record)
                except PersistenceError as exc:
                    skipped += 1
                    if verbose:
                        print(f"  skipped: {exc}")
                    continue
                saved += 1
                if verbose:
                    print(f"  saved {record_id}")

        print(f"{saved} saved, {skipped} skipped (of {len(records)} total).")
        return 0

    def export_csv(self, path: Path) -> int:
        with get_repository(self.db_path) as repo:
            wallet = self._load(repo)
            if wallet is None:
                return 1
            receipts = wallet.receipts
        write_csv(receipts, path)
        print(f"{len(receipts)} receipt(s) exported to {path}")
        return 0

    # ------------------------------------------------------------------
    # Edit
    # ------------------------------------------------------------------

    def delete_receipt(self, receipt_id: str) -> int:
        with get_repository(self.db_path) as repo:
            wallet = self._load(repo)
            if wallet is None:
                return 1
            result = wallet.delete(receipt_id)
        if not result.success:
            print(f"✗  {result.error_message}", file=sys.stderr)
            return 1
        print(f"✓  Deleted {receipt_id}")
        return 0

    def set_date(self, receipt_id: str, field: str, value: str) -> int:
        """Set ``warranty_date`` or ``return_date`` on one receipt."""
        with get_repository(self.db_path) as repo:
            wallet = self._load(repo)
            if wallet is None:
                return 1
            result = wallet.update(receipt_id, {field: value})
        if not result.success:
            print(f"✗  {result.error_message}", file=sys.stderr)
            return 1
        print(f"✓  {receipt_id}: {field} = {getattr(result.receipt, field)}")
        return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="receiptit: browse forwarded receipts, warranties and spending.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--version", action="store_true",
        help="Show package version and exit.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose output.",
    )
    parser.add_argument(
        "--db", default=None, metavar="FILE",
        help="SQLite database path (default: ~/.receiptit/<profile>/receiptit.db).",
    )
    parser.add_argument(
        "--user", default=None, metavar="ID",
        help="User scope (default: RECEIPTIT_USER_ID or 'local').",
    )

    # -- Browse -----------------------------------------------------------
    browse_group = parser.add_argument_group("Browse")
    browse_group.add_argument(
        "--list", action="store_true",
        help="List receipts, newest first.",
    )
    browse_group.add_argument(
        "--search", default="", metavar="TEXT",
        help="Case-insensitive match on merchant or reference number.",
    )
    browse_group.add_argument(
        "--category", default=None, metavar="NAME",
        help="Only receipts in this category.",
    )
    browse_group.add_argument(
        "--folder", default=ALL_FOLDERS, choices=[ALL_FOLDERS, *FOLDERS],
        help="Only receipts in this folder.",
    )
    browse_group.add_argument(
        "--warranty-only", action="store_true",
        help="Only receipts with an active warranty.",
    )

    # -- Insights ---------------------------------------------------------
    insight_group = parser.add_argument_group("Insights")
    insight_group.add_argument(
        "--insights", action="store_true",
        help="Print the spending summary.",
    )
    insight_group.add_argument(
        "--output", default=None, metavar="FILE",
        help="Also write the insights as JSON to this file.",
    )

    # -- Data -------------------------------------------------------------
    data_group = parser.add_argument_group("Data")
    data_group.add_argument(
        "--import", dest="import_file", default=None, metavar="FILE",
        help="Insert raw receipt records from a JSON file.",
    )
    data_group.add_argument(
        "--export", dest="export_file", default=None, metavar="FILE",
        help="Export all receipts to a CSV file.",
    )
    data_group.add_argument(
        "--delete", default=None, metavar="ID",
        help="Delete one receipt.",
    )
    data_group.add_argument(
        "--set-warranty", nargs=2, default=None, metavar=("ID", "DATE"),
        help="Set a receipt's warranty expiry date (YYYY-MM-DD).",
    )
    data_group.add_argument(
        "--set-return", nargs=2, default=None, metavar=("ID", "DATE"),
        help="Set a receipt's return deadline (YYYY-MM-DD).",
    )

    # -- Web UI -----------------------------------------------------------
    ui_group = parser.add_argument_group("Web UI")
    ui_group.add_argument(
        "--ui", action="store_true",
        help="Start the API server.",
    )
    ui_group.add_argument(
        "--host", default="127.0.0.1", metavar="HOST",
        help="UI server bind address.",
    )
    ui_group.add_argument(
        "--port", default=8000, type=int, metavar="PORT",
        help="UI server port.",
    )
    ui_group.add_argument(
        "--no-browser", action="store_true",
        help="Do not open the browser when starting the UI.",
    )
    ui_group.add_argument(
        "--reload", action="store_true",
        help="Enable hot-reload (development mode).",
    )
    ui_group.add_argument(
        "--log-level",
        default="warning",
        choices=["debug", "info", "warning", "error"],
        metavar="LEVEL",
        help="Log level for the UI server (debug, info, warning, error). Default: warning.",
    )

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> int:
    parser = _build_parser()
    args   = parser.parse_args()

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)-8s %(name)s — %(message)s",
        )

    cli = ReceiptItCLI(
        db_path=Path(args.db) if args.db else None,
        user_id=args.user,
    )

    if args.version:
        cli.print_version()
        return 0

    # -- Data -------------------------------------------------------------
    if args.import_file:
        rc = cli.import_records(Path(args.import_file), verbose=args.verbose)
        if rc or not (args.list or args.insights):
            return rc

    if args.delete:
        return cli.delete_receipt(args.delete)

    if args.set_warranty:
        return cli.set_date(args.set_warranty[0], "warranty_date", args.set_warranty[1])

    if args.set_return:
        return cli.set_date(args.set_return[0], "return_date", args.set_return[1])

    if args.export_file:
        return cli.export_csv(Path(args.export_file))

    # -- Browse / insights ------------------------------------------------
    if args.list:
        rc = cli.list_receipts(ReceiptQuery(
            text=args.search,
            category=args.category,
            folder=args.folder,
            warranty_only=args.warranty_only,
        ))
        if rc or not args.insights:
            return rc

    if args.insights:
        return cli.show_insights(output=Path(args.output) if args.output else None)

    # -- Web UI ----------------------------------------------------------
    if args.ui:
        from receiptit.ui.server import launch
        launch(
            host=args.host,
            port=args.port,
            reload=args.reload,
            open_browser=not args.no_browser,
            log_level=args.log_level,
            db_path=Path(args.db) if args.db else None,
        )
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
