"""
receiptit.storage.remote
~~~~~~~~~~~~~~~~~~~~~~~~
HTTP adapters for a hosted backend exposing REST, object-storage and auth
endpoints (Supabase-style URL layout):

  /rest/v1/<table>                 — row CRUD with ``eq.`` filters
  /storage/v1/object/<bucket>/...  — file upload / delete
  /auth/v1/token, /signup, /logout — password sign-in and session

The change feed is emulated by polling: ``PollingSubscription`` lists the
user's records every ``poll_interval`` seconds on a daemon thread and
emits a ``"*"`` event whenever the fingerprint of the list changes.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from typing import Any, Callable, List, Optional, Type

import requests

from .base import ChangeCallback, ChangeEvent, RawRecord, StoredObject, Unsubscribe
from ..config import BackendConfig
from ..exceptions import (
    AuthenticationError, CollaboratorError, ObjectStorageError, PersistenceError,
)
from ..identity import Session

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared HTTP client
# ---------------------------------------------------------------------------

class RemoteBackend:
    """Authenticated ``requests`` session with retries against the backend."""

    def __init__(
        self,
        config: BackendConfig,
        http: requests.Session | None = None,
        retry_delay: float = 1.0,
    ) -> None:
        self.config = config
        self.retry_delay = retry_delay
        self._http = http or requests.Session()
        self._access_token: Optional[str] = None

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def set_access_token(self, token: Optional[str]) -> None:
        self._access_token = token

    def close(self) -> None:
        self._http.close()

    def _headers(self, extra: dict | None = None) -> dict:
        headers = {
            "apikey":        self.config.api_key,
            "Authorization": f"Bearer {self._access_token or self.config.api_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        error_cls: Type[CollaboratorError] = PersistenceError,
        allow_missing: bool = False,
        headers: dict | None = None,
        **kwargs,
    ) -> Optional[requests.Response]:
        """
        Send one request, retrying connection errors and 5xx responses.

        Returns ``None`` for a 404 when ``allow_missing`` is set; any other
        4xx/5xx or exhausted retries raise ``error_cls``.
        """
        url = f"{self.config.base_url}{path}"
        attempts = max(1, self.config.max_retries)
        last_exc: Optional[BaseException] = None

        for attempt in range(1, attempts + 1):
            try:
                resp = self._http.request(
                    method, url,
                    headers=self._headers(headers),
                    timeout=self.config.timeout,
                    **kwargs,
                )
            except requests.exceptions.RequestException as exc:
                last_exc = exc
                logger.debug("%s %s attempt %d failed: %s", method, path, attempt, exc)
                if attempt < attempts:
                    time.sleep(self.retry_delay)
                continue

            if resp.status_code >= 500 and attempt < attempts:
                logger.debug("%s %s attempt %d returned HTTP %d", method, path, attempt, resp.status_code)
                time.sleep(self.retry_delay)
                continue
            if resp.status_code == 404 and allow_missing:
                return None
            if resp.status_code >= 400:
                raise error_cls(
                    f"{method} {path} failed with HTTP {resp.status_code}: {resp.text[:200]}"
                )
            return resp

        raise error_cls(f"{method} {path} failed after {attempts} attempts", cause=last_exc)

    def request_json(
        self,
        method: str,
        path: str,
        *,
        error_cls: Type[CollaboratorError] = PersistenceError,
        **kwargs,
    ) -> Any:
        """``request()`` and decode the body; a non-JSON body raises ``error_cls``."""
        resp = self.request(method, path, error_cls=error_cls, **kwargs)
        try:
            return resp.json()
        except ValueError as exc:
            raise error_cls(
                f"{method} {path} returned a non-JSON body: {resp.text[:200]}", cause=exc
            ) from exc



# ---------------------------------------------------------------------------
# Change feed
# ---------------------------------------------------------------------------

class PollingSubscription:
    """Emit a change event whenever a fetched record list changes."""

    def __init__(
        self,
        fetch: Callable[[], List[RawRecord]],
        callback: ChangeCallback,
        user_id: str,
        interval: float,
    ) -> None:
        self._fetch = fetch
        self._callback = callback
        self._user_id = user_id
        self._interval = interval
        self._fingerprint: Optional[str] = None
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, daemon=True, name=f"receiptit-poll-{user_id}",
        )

    def _snapshot(self) -> Optional[str]:
        try:
            records = self._fetch()
        except CollaboratorError as exc:
            logger.warning("Change feed poll failed: %s", exc)
            return None
        payload = json.dumps(records, sort_keys=True, default=str)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def poll_once(self) -> bool:
        """Fetch once; return True (and notify) if the list changed."""
        fingerprint = self._snapshot()
        if fingerprint is None or fingerprint == self._fingerprint:
            return False
        self._fingerprint = fingerprint
        self._callback(ChangeEvent("*", self._user_id))
        return True

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            self.poll_once()

    def start(self) -> "PollingSubscription":
        self._fingerprint = self._snapshot()
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

class RemoteRepository:
    """``ReceiptRepository`` over the backend's REST table endpoint."""

    def __init__(self, backend: RemoteBackend, table: str = "receipts") -> None:
        self.backend = backend
        self.table = table
        self._subscriptions: List[PollingSubscription] = []

    def __enter__(self) -> "RemoteRepository":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    @property
    def _path(self) -> str:
        return f"/rest/v1/{self.table}"

    @staticmethod
    def _scope(user_id: str, record_id: str | None = None) -> dict:
        params = {"user_id": f"eq.{user_id}"}
        if record_id is not None:
            params["id"] = f"eq.{record_id}"
        return params

    def list(self, user_id: str) -> List[RawRecord]:
        rows = self.backend.request_json(
            "GET", self._path,
            params={**self._scope(user_id), "select": "*", "order": "date.desc.nullslast"},
        )
        if not isinstance(rows, list):
            raise PersistenceError(f"Expected a list of receipts, got {type(rows).__name__}")
        return rows

    def get(self, user_id: str, record_id: str) -> RawRecord | None:
        rows = self.backend.request_json(
            "GET", self._path, params={**self._scope(user_id, record_id), "select": "*"},
        )
        return rows[0] if rows else None

    def insert(self, user_id: str, record: RawRecord) -> str:
        rows = self.backend.request_json(
            "POST", self._path,
            json={**record, "user_id": user_id},
            headers={"Prefer": "return=representation"},
        )
        if not rows or "id" not in rows[0]:
            raise PersistenceError("Backend did not return the inserted receipt")
        return str(rows[0]["id"])

    def update(self, user_id: str, record_id: str, fields: RawRecord) -> bool:
        payload = {k: v for k, v in fields.items() if k not in ("id", "user_id")}
        rows = self.backend.request_json(
            "PATCH", self._path,
            params=self._scope(user_id, record_id),
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        return bool(rows)

    def delete(self, user_id: str, record_id: str) -> bool:
        rows = self.backend.request_json(
            "DELETE", self._path,
            params=self._scope(user_id, record_id),
            headers={"Prefer": "return=representation"},
        )
        return bool(rows)

    def subscribe(self, user_id: str, callback: ChangeCallback) -> Unsubscribe:
        subscription = PollingSubscription(
            lambda: self.list(user_id), callback, user_id, self.backend.config.poll_interval,
        ).start()
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            subscription.stop()
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.stop()
        self._subscriptions.clear()
        self.backend.close()


# ---------------------------------------------------------------------------
# Object storage
# ---------------------------------------------------------------------------

class RemoteObjectStore:
    """``ObjectStore`` over the backend's storage bucket."""

    def __init__(self, backend: RemoteBackend, bucket: str | None = None) -> None:
        self.backend = backend
        self.bucket = bucket or backend.config.bucket

    def public_url(self, path: str) -> str:
        return f"{self.backend.config.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> StoredObject:
        self.backend.request(
            "POST", f"/storage/v1/object/{self.bucket}/{path}",
            error_cls=ObjectStorageError,
            data=data,
            headers={"Content-Type": content_type, "x-upsert": "true"},
        )
        return StoredObject(path=path, public_url=self.public_url(path))

    def delete(self, path: str) -> bool:
        resp = self.backend.request(
            "DELETE", f"/storage/v1/object/{self.bucket}/{path}",
            error_cls=ObjectStorageError,
            allow_missing=True,
        )
        return resp is not None


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

class RemoteIdentity:
    """``IdentityProvider`` over the backend's password auth endpoints."""

    def __init__(self, backend: RemoteBackend, profiles_table: str = "profiles") -> None:
        self.backend = backend
        self.profiles_table = profiles_table
        self._session: Optional[Session] = None

    def current_session(self) -> Optional[Session]:
        return self._session

    def _fetch_profile(self, user_id: str) -> dict:
        rows = self.backend.request_json(
            "GET", f"/rest/v1/{self.profiles_table}",
            error_cls=AuthenticationError,
            params={"user_id": f"eq.{user_id}", "select": "*"},
        )
        return rows[0] if rows else {}

    def _start_session(self, user: dict, token: Optional[str]) -> Session:
        self.backend.set_access_token(token)
        profile = self._fetch_profile(user["id"])
        self._session = Session(
            user_id=str(user["id"]),
            email=user.get("email", ""),
            access_token=token,
            email_alias=profile.get("email_alias"),
            username=profile.get("username"),
        )
        return self._session

    def sign_in(self, email: str, password: str) -> Session:
        data = self.backend.request_json(
            "POST", "/auth/v1/token",
            error_cls=AuthenticationError,
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        user = data.get("user")
        if not user or "id" not in user:
            raise AuthenticationError("Sign-in response did not include a user")
        logger.info("Signed in as %s", user.get("email", email))
        return self._start_session(user, data.get("access_token"))

    def sign_up(self, email: str, password: str, alias: str, full_name: str) -> Session:
        """
        Create an account and its profile row (alias, display name, counters).
        """
        data = self.backend.request_json(
            "POST", "/auth/v1/signup",
            error_cls=AuthenticationError,
            json={"email": email, "password": password, "data": {"full_name": full_name}},
        )
        user = data.get("user") or (data if "id" in data else None)
        if not user:
            raise AuthenticationError("User creation failed")

        self.backend.set_access_token(data.get("access_token"))
        self.backend.request(
            "POST", f"/rest/v1/{self.profiles_table}",
            error_cls=AuthenticationError,
            json={
                "user_id":            user["id"],
                "username":           full_name,
                "email_alias":        alias,
                "receipts_captured":  0,
                "spam_blocked":       0,
                "warranties_tracked": 0,
            },
        )
        return self._start_session(user, data.get("access_token"))

    def sign_out(self) -> None:
        if self.backend.access_token:
            self.backend.request("POST", "/auth/v1/logout", error_cls=AuthenticationError)
        self.backend.set_access_token(None)
        self._session = None
