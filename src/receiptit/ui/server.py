"""
receiptit.ui.server
~~~~~~~~~~~~~~~~~~~
Uvicorn launcher for the receiptit API, started by ``receiptit --ui``.
"""

from __future__ import annotations

import os
import threading
import webbrowser
from pathlib import Path

import uvicorn

APP = "receiptit.ui.api:app"


def launch(
    host: str = "127.0.0.1",
    port: int = 8000,
    reload: bool = False,
    open_browser: bool = True,
    log_level: str = "warning",
    db_path: Path | None = None,
) -> None:
    """
    Serve the API until interrupted.

    ``db_path`` is handed to the app through ``RECEIPTIT_DB_PATH`` since
    uvicorn imports the app module itself (and again in each reload worker).
    """
    if db_path is not None:
        os.environ["RECEIPTIT_DB_PATH"] = str(db_path)

    docs_url = f"http://{host}:{port}/docs"
    print(f"receiptit API on http://{host}:{port} (docs: {docs_url}); Ctrl+C to stop.")
    if open_browser:
        threading.Timer(1.0, webbrowser.open, args=(docs_url,)).start()

    uvicorn.run(APP, host=host, port=port, reload=reload, log_level=log_level)
