"""Tests for the Supabase Auth adapter, using a stubbed DatabaseManager."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from supabase import AuthError

from lexgate.models.auth_models import IdentityBackendError, UpstreamUnavailableError
from lexgate.services.identity_backend import IdentityBackend, SupabaseIdentityBackend


class _BackendRejection(AuthError):
    def __init__(self, message: str) -> None:
        Exception.__init__(self, message)
        self.message = message


def _sdk_user(email="jane@x.com", metadata=None):
    return SimpleNamespace(id="0b6f-uuid", email=email, user_metadata=metadata)


def _sdk_session():
    return SimpleNamespace(access_token="at", refresh_token="rt", expires_at=1_900_000_000)


@pytest.fixture
def db():
    stub = MagicMock()
    stub.call.side_effect = lambda operation, fn: fn()
    stub.session_client = MagicMock()
    stub.new_session_client.return_value = stub.session_client
    return stub


@pytest.fixture
def backend(db, logger):
    return SupabaseIdentityBackend(db=db, logger=logger)


def test_satisfies_protocol(backend):
    assert isinstance(backend, IdentityBackend)


def test_sign_up_uses_session_client_and_normalises_result(backend, db):
    db.session_client.auth.sign_up.return_value = SimpleNamespace(
        user=_sdk_user(metadata={"full_name": "Jane"}), session=_sdk_session(),
    )

    result = backend.sign_up("jane@x.com", "Abcdefg1", "Jane")

    db.session_client.auth.sign_up.assert_called_once_with({
        "email": "jane@x.com",
        "password": "Abcdefg1",
        "options": {"data": {"full_name": "Jane"}},
    })
    assert db.call.call_args.args[0] == "auth.sign_up"
    assert result.user.id == "0b6f-uuid"
    assert result.user.user_metadata == {"full_name": "Jane"}
    assert result.session.access_token == "at"
    db.supabase.auth.sign_up.assert_not_called()


def test_sign_up_without_session(backend, db):
    db.session_client.auth.sign_up.return_value = SimpleNamespace(user=_sdk_user(), session=None)

    result = backend.sign_up("jane@x.com", "Abcdefg1", "Jane")

    assert result.session is None
    assert result.user.user_metadata == {}


def test_sign_in_rejection_becomes_identity_backend_error(backend, db):
    db.session_client.auth.sign_in_with_password.side_effect = _BackendRejection(
        "Invalid login credentials",
    )

    with pytest.raises(IdentityBackendError) as exc_info:
        backend.sign_in_with_password("jane@x.com", "wrong")

    assert exc_info.value.operation == "sign_in_with_password"
    assert exc_info.value.detail == "Invalid login credentials"


def test_refresh_session(backend, db):
    db.session_client.auth.refresh_session.return_value = SimpleNamespace(
        user=_sdk_user(), session=_sdk_session(),
    )

    result = backend.refresh_session("rt-old")

    db.session_client.auth.refresh_session.assert_called_once_with("rt-old")
    assert result.session.refresh_token == "rt"


def test_get_user_uses_shared_client(backend, db):
    db.supabase.auth.get_user.return_value = SimpleNamespace(user=_sdk_user(email=""))

    user = backend.get_user("token")

    db.supabase.auth.get_user.assert_called_once_with("token")
    assert user.id == "0b6f-uuid"
    assert user.email is None
    db.new_session_client.assert_not_called()


def test_get_user_without_user(backend, db):
    db.supabase.auth.get_user.return_value = None
    assert backend.get_user("token") is None


def test_reset_password_passes_redirect(backend, db):
    backend.reset_password_for_email("jane@x.com", "https://app/auth/reset-password")

    db.supabase.auth.reset_password_for_email.assert_called_once_with(
        "jane@x.com", {"redirect_to": "https://app/auth/reset-password"},
    )


def test_update_password_uses_admin_api(backend, db):
    backend.update_password("user-1", "Newpass123")

    db.supabase.auth.admin.update_user_by_id.assert_called_once_with(
        "user-1", {"password": "Newpass123"},
    )


def test_upstream_outage_is_not_wrapped(backend, db):
    db.call.side_effect = UpstreamUnavailableError(operation="auth.get_user")

    with pytest.raises(UpstreamUnavailableError):
        backend.get_user("token")
