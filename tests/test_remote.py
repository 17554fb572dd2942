"""
tests/test_remote.py
~~~~~~~~~~~~~~~~~~~~
Tests for receiptit.storage.remote — the HTTP backend adapters.
``requests.Session.request`` is patched; nothing leaves the process.
"""

from __future__ import annotations

import pytest
import requests

from receiptit.config import BackendConfig
from receiptit.exceptions import AuthenticationError, ObjectStorageError, PersistenceError
from receiptit.storage.base import ChangeEvent, IdentityProvider, ObjectStore, ReceiptRepository
from receiptit.storage.remote import (
    PollingSubscription,
    RemoteBackend,
    RemoteIdentity,
    RemoteObjectStore,
    RemoteRepository,
)
from receiptit.wallet import ReceiptWallet

BASE = "https://api.example.com"


@pytest.fixture
def backend_config() -> BackendConfig:
    return BackendConfig(
        base_url=BASE,
        api_key="anon-key",
        bucket="receipts",
        timeout=5,
        max_retries=3,
        poll_interval=0.01,
    )


@pytest.fixture
def backend(backend_config) -> RemoteBackend:
    return RemoteBackend(backend_config, retry_delay=0)


def _response(mocker, status_code=200, payload=None, text=""):
    resp = mocker.Mock()
    resp.status_code = status_code
    resp.json.return_value = payload
    resp.text = text
    return resp


def _html_response(mocker, status_code=200):
    resp = _response(mocker, status_code, text="<html>gateway</html>")
    resp.json.side_effect = requests.exceptions.JSONDecodeError("Expecting value", resp.text, 0)
    return resp


class TestProtocols:
    def test_adapters_satisfy_protocols(self, backend):
        assert isinstance(RemoteRepository(backend), ReceiptRepository)
        assert isinstance(RemoteObjectStore(backend), ObjectStore)
        assert isinstance(RemoteIdentity(backend), IdentityProvider)


class TestRemoteBackend:
    def test_sends_api_key_headers(self, mocker, backend):
        send = mocker.patch.object(requests.Session, "request",
                                   return_value=_response(mocker, payload=[]))
        backend.request("GET", "/rest/v1/receipts")
        _, kwargs = send.call_args
        assert send.call_args.args[:2] == ("GET", f"{BASE}/rest/v1/receipts")
        assert kwargs["headers"]["apikey"] == "anon-key"
        assert kwargs["headers"]["Authorization"] == "Bearer anon-key"
        assert kwargs["timeout"] == 5

    def test_access_token_used_as_bearer(self, mocker, backend):
        send = mocker.patch.object(requests.Session, "request",
                                   return_value=_response(mocker, payload=[]))
        backend.set_access_token("user-jwt")
        backend.request("GET", "/rest/v1/receipts")
        assert send.call_args.kwargs["headers"]["Authorization"] == "Bearer user-jwt"

    def test_retries_connection_errors(self, mocker, backend):
        send = mocker.patch.object(requests.Session, "request", side_effect=[
            requests.exceptions.ConnectionError("down"),
            _response(mocker, payload=[{"id": "1"}]),
        ])
        resp = backend.request("GET", "/rest/v1/receipts")
        assert resp.json() == [{"id": "1"}]
        assert send.call_count == 2

    def test_retries_server_errors_then_raises(self, mocker, backend):
        send = mocker.patch.object(requests.Session, "request",
                                   return_value=_response(mocker, 503, text="busy"))
        with pytest.raises(PersistenceError, match="HTTP 503"):
            backend.request("GET", "/rest/v1/receipts")
        assert send.call_count == 3

    def test_client_error_not_retried(self, mocker, backend):
        send = mocker.patch.object(requests.Session, "request",
                                   return_value=_response(mocker, 401, text="bad key"))
        with pytest.raises(PersistenceError, match="HTTP 401"):
            backend.request("GET", "/rest/v1/receipts")
        assert send.call_count == 1

    def test_exhausted_connection_retries_chain_cause(self, mocker, backend):
        mocker.patch.object(requests.Session, "request",
                            side_effect=requests.exceptions.Timeout("slow"))
        with pytest.raises(PersistenceError) as info:
            backend.request("GET", "/rest/v1/receipts")
        assert isinstance(info.value.cause, requests.exceptions.Timeout)

    def test_allow_missing(self, mocker, backend):
        mocker.patch.object(requests.Session, "request",
                            return_value=_response(mocker, 404))
        assert backend.request("DELETE", "/x", allow_missing=True) is None

    def test_non_json_body_raises_error_cls(self, mocker, backend):
        mocker.patch.object(requests.Session, "request", return_value=_html_response(mocker))
        with pytest.raises(AuthenticationError, match="non-JSON") as info:
            backend.request_json("GET", "/x", error_cls=AuthenticationError)
        assert isinstance(info.value.cause, ValueError)


class TestRemoteRepository:
    def test_list_filters_by_user(self, mocker, backend):
        send = mocker.patch.object(requests.Session, "request",
                                   return_value=_response(mocker, payload=[{"id": "r1"}]))
        assert RemoteRepository(backend).list("u1") == [{"id": "r1"}]
        assert send.call_args.kwargs["params"]["user_id"] == "eq.u1"

    def test_get_missing(self, mocker, backend):
        mocker.patch.object(requests.Session, "request",
                            return_value=_response(mocker, payload=[]))
        assert RemoteRepository(backend).get("u1", "nope") is None

    def test_insert_returns_id(self, mocker, backend):
        send = mocker.patch.object(requests.Session, "request",
                                   return_value=_response(mocker, 201, payload=[{"id": "new-1"}]))
        assert RemoteRepository(backend).insert("u1", {"status": "processing"}) == "new-1"
        assert send.call_args.kwargs["json"] == {"status": "processing", "user_id": "u1"}
        assert send.call_args.kwargs["headers"]["Prefer"] == "return=representation"

    def test_insert_without_representation_raises(self, mocker, backend):
        mocker.patch.object(requests.Session, "request",
                            return_value=_response(mocker, 201, payload=[]))
        with pytest.raises(PersistenceError):
            RemoteRepository(backend).insert("u1", {})

    def test_update_strips_reserved(self, mocker, backend):
        send = mocker.patch.object(requests.Session, "request",
                                   return_value=_response(mocker, payload=[{"id": "r1"}]))
        assert RemoteRepository(backend).update("u1", "r1", {"id": "x", "folder": "work"})
        assert send.call_args.kwargs["json"] == {"folder": "work"}
        assert send.call_args.kwargs["params"] == {"user_id": "eq.u1", "id": "eq.r1"}

    def test_delete_nothing_matched(self, mocker, backend):
        mocker.patch.object(requests.Session, "request",
                            return_value=_response(mocker, payload=[]))
        assert RemoteRepository(backend).delete("u1", "r1") is False

    def test_list_non_json_body(self, mocker, backend):
        mocker.patch.object(requests.Session, "request", return_value=_html_response(mocker))
        with pytest.raises(PersistenceError, match="non-JSON"):
            RemoteRepository(backend).list("u1")

    def test_list_rejects_non_list(self, mocker, backend):
        mocker.patch.object(requests.Session, "request",
                            return_value=_response(mocker, payload={"message": "ok"}))
        with pytest.raises(PersistenceError, match="list of receipts"):
            RemoteRepository(backend).list("u1")

    def test_wallet_refresh_reports_non_json_body(self, mocker, backend):
        mocker.patch.object(requests.Session, "request", return_value=_html_response(mocker))
        result = ReceiptWallet(RemoteRepository(backend), "u1").refresh()
        assert result.success is False
        assert "non-JSON" in result.error_message

    def test_poll_survives_non_json_body(self, mocker, backend):
        mocker.patch.object(requests.Session, "request", return_value=_html_response(mocker))
        events = []
        repo = RemoteRepository(backend)
        sub = PollingSubscription(lambda: repo.list("u1"), events.append, "u1", 60)
        assert sub.poll_once() is False
        assert events == []

    def test_subscribe_and_close(self, mocker, backend):
        mocker.patch.object(requests.Session, "request",
                            return_value=_response(mocker, payload=[]))
        repo = RemoteRepository(backend)
        unsubscribe = repo.subscribe("u1", lambda event: None)
        assert len(repo._subscriptions) == 1
        unsubscribe()
        assert repo._subscriptions == []
        repo.close()


class TestPollingSubscription:
    def test_emits_only_on_change(self):
        pages = [[{"id": "1"}], [{"id": "1"}], [{"id": "1"}, {"id": "2"}]]
        events = []
        sub = PollingSubscription(lambda: pages.pop(0), events.append, "u1", 60)
        sub._fingerprint = sub._snapshot()
        assert sub.poll_once() is False
        assert sub.poll_once() is True
        assert events == [ChangeEvent("*", "u1")]

    def test_fetch_failure_is_not_a_change(self):
        def failing():
            raise PersistenceError("offline")
        events = []
        sub = PollingSubscription(failing, events.append, "u1", 60)
        assert sub.poll_once() is False
        assert events == []

    def test_stop(self):
        sub = PollingSubscription(lambda: [], lambda e: None, "u1", 60).start()
        sub.stop()
        assert sub.stopped


class TestRemoteObjectStore:
    def test_upload_returns_public_url(self, mocker, backend):
        send = mocker.patch.object(requests.Session, "request",
                                   return_value=_response(mocker, payload={"Key": "x"}))
        obj = RemoteObjectStore(backend).upload("u1/a.png", b"img", "image/png")
        assert obj.public_url == f"{BASE}/storage/v1/object/public/receipts/u1/a.png"
        assert send.call_args.kwargs["data"] == b"img"
        assert send.call_args.kwargs["headers"]["Content-Type"] == "image/png"

    def test_upload_failure(self, mocker, backend):
        mocker.patch.object(requests.Session, "request",
                            return_value=_response(mocker, 400, text="bad"))
        with pytest.raises(ObjectStorageError):
            RemoteObjectStore(backend).upload("u1/a.png", b"img")

    def test_delete_missing(self, mocker, backend):
        mocker.patch.object(requests.Session, "request",
                            return_value=_response(mocker, 404))
        assert RemoteObjectStore(backend).delete("u1/a.png") is False


class TestRemoteIdentity:
    def test_sign_in(self, mocker, backend):
        mocker.patch.object(requests.Session, "request", side_effect=[
            _response(mocker, payload={
                "access_token": "jwt",
                "user": {"id": "u1", "email": "jane@example.com"},
            }),
            _response(mocker, payload=[{"email_alias": "jane@receiptit.app", "username": "Jane"}]),
        ])
        identity = RemoteIdentity(backend)
        session = identity.sign_in("jane@example.com", "pw")
        assert session.user_id == "u1"
        assert session.email_alias == "jane@receiptit.app"
        assert backend.access_token == "jwt"
        assert identity.current_session() == session

    def test_sign_in_rejected(self, mocker, backend):
        mocker.patch.object(requests.Session, "request",
                            return_value=_response(mocker, 400, text="invalid_grant"))
        with pytest.raises(AuthenticationError):
            RemoteIdentity(backend).sign_in("jane@example.com", "wrong")

    def test_sign_up_creates_profile(self, mocker, backend):
        send = mocker.patch.object(requests.Session, "request", side_effect=[
            _response(mocker, payload={"access_token": "jwt", "user": {"id": "u9", "email": "a@b.c"}}),
            _response(mocker, 201, payload=None),
            _response(mocker, payload=[{"email_alias": "abc@receiptit.app", "username": "A B"}]),
        ])
        session = RemoteIdentity(backend).sign_up("a@b.c", "pw", "abc@receiptit.app", "A B")
        profile_call = send.call_args_list[1]
        assert profile_call.kwargs["json"]["email_alias"] == "abc@receiptit.app"
        assert profile_call.kwargs["json"]["user_id"] == "u9"
        assert session.username == "A B"

    def test_sign_up_without_user(self, mocker, backend):
        mocker.patch.object(requests.Session, "request",
                            return_value=_response(mocker, payload={}))
        with pytest.raises(AuthenticationError, match="User creation failed"):
            RemoteIdentity(backend).sign_up("a@b.c", "pw", "abc@receiptit.app", "A B")

    def test_sign_out_clears_session(self, mocker, backend):
        send = mocker.patch.object(requests.Session, "request",
                                   return_value=_response(mocker, 204))
        identity = RemoteIdentity(backend)
        backend.set_access_token("jwt")
        identity.sign_out()
        assert backend.access_token is None
        assert identity.current_session() is None
        assert send.call_args.args[1] == f"{BASE}/auth/v1/logout"
