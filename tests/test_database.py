"""Tests for DatabaseManager: configuration handling and bounded upstream calls."""

from __future__ import annotations

import threading

import httpx
import pytest
from supabase import AuthRetryableError

from lexgate.database import DatabaseManager, SupabaseNotConfiguredError
from lexgate.models.auth_models import UpstreamUnavailableError
from lexgate.services.identity_backend import SupabaseIdentityBackend


class _RetryableAuthFailure(AuthRetryableError):
    def __init__(self, message: str) -> None:
        Exception.__init__(self, message)
        self.message = message


@pytest.fixture
def db(logger):
    manager = DatabaseManager(
        supabase_url="",
        service_role_key="",
        session_key="",
        logger=logger,
        upstream_timeout_s=0.2,
        max_workers=2,
    )
    yield manager
    manager.close()


def test_unconfigured_manager_has_no_client(db):
    assert db.is_configured is False
    with pytest.raises(SupabaseNotConfiguredError):
        _ = db.supabase
    with pytest.raises(SupabaseNotConfiguredError):
        db.new_session_client()


def test_unconfigured_client_access_is_upstream_unavailable(db):
    with pytest.raises(UpstreamUnavailableError) as exc_info:
        db.call("select (user_profiles)", lambda: db.supabase)
    assert exc_info.value.operation == "select (user_profiles)"
    assert exc_info.value.retryable is True


def test_call_returns_result(db):
    assert db.call("noop", lambda: 42) == 42


def test_slow_call_times_out(db, log_records):
    release = threading.Event()

    def _slow() -> str:
        release.wait(5)
        return "late"

    try:
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            db.call("auth.get_user", _slow)
    finally:
        release.set()

    assert exc_info.value.operation == "auth.get_user"
    events = [record.get("extra", {}).get("event") for record in log_records()]
    assert "UPSTREAM_UNAVAILABLE" in events


@pytest.mark.parametrize(
    "failure",
    [
        ConnectionError("connection refused"),
        TimeoutError("read timed out"),
        httpx.ConnectError("name resolution failed"),
        _RetryableAuthFailure("503 from auth server"),
    ],
)
def test_transport_failures_are_upstream_unavailable(db, failure):
    def _fail() -> None:
        raise failure

    with pytest.raises(UpstreamUnavailableError) as exc_info:
        db.call("auth.sign_in_with_password", _fail)
    assert exc_info.value.__cause__ is failure


def test_other_errors_propagate_unchanged(db):
    def _fail() -> None:
        raise ValueError("bad row")

    with pytest.raises(ValueError, match="bad row"):
        db.call("insert (user_profiles)", _fail)


def test_close_is_idempotent_and_rejects_new_calls(db):
    db.close()
    db.close()
    with pytest.raises(UpstreamUnavailableError):
        db.call("noop", lambda: 1)


def test_configured_manager_creates_clients(logger, monkeypatch):
    created: list[tuple[str, str]] = []

    def _fake_create_client(url, key, options=None):
        created.append((url, key))
        return object()

    monkeypatch.setattr("lexgate.database.create_client", _fake_create_client)

    manager = DatabaseManager(
        supabase_url="https://project.supabase.co",
        service_role_key="service-key",
        session_key="anon-key",
        logger=logger,
    )
    try:
        assert manager.is_configured
        manager.new_session_client()
        manager.new_session_client()
    finally:
        manager.close()

    assert created == [
        ("https://project.supabase.co", "service-key"),
        ("https://project.supabase.co", "anon-key"),
        ("https://project.supabase.co", "anon-key"),
    ]


def test_rejected_session_key_is_upstream_unavailable(logger, log_records, monkeypatch):
    def _fake_create_client(url, key, options=None):
        if key == "malformed":
            raise RuntimeError("Invalid API key")
        return object()

    monkeypatch.setattr("lexgate.database.create_client", _fake_create_client)

    manager = DatabaseManager(
        supabase_url="https://project.supabase.co",
        service_role_key="service-key",
        session_key="malformed",
        logger=logger,
    )
    try:
        with pytest.raises(SupabaseNotConfiguredError) as exc_info:
            manager.new_session_client()
        assert isinstance(exc_info.value.__cause__, RuntimeError)

        backend = SupabaseIdentityBackend(db=manager, logger=logger)
        with pytest.raises(UpstreamUnavailableError) as unavailable:
            backend.sign_in_with_password("jane@x.com", "Abcdefg1")
        assert unavailable.value.operation == "auth.sign_in_with_password"
    finally:
        manager.close()

    events = [record.get("extra", {}).get("event") for record in log_records()]
    assert "SUPABASE_CLIENT_INIT_FAILED" in events
