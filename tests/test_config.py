"""Tests for AppConfig parsing and derived values."""

from __future__ import annotations

import pytest

from lexgate.config import AppConfig


def test_defaults(monkeypatch):
    for name in ("SUPABASE_URL", "ADMIN_EMAILS", "CORS_ORIGINS", "UPSTREAM_TIMEOUT_S"):
        monkeypatch.delenv(name, raising=False)

    config = AppConfig(_env_file=None)

    assert config.SUPABASE_URL == ""
    assert config.admin_emails == []
    assert config.cors_origins == ["http://localhost:3000", "http://localhost:4000"]
    assert config.password_reset_redirect_url == "http://localhost:3000/auth/reset-password"
    assert config.UPSTREAM_TIMEOUT_S == 10.0
    assert config.AUDIT_IN_BACKGROUND is True


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("ADMIN_EMAILS", "Root@Firm.com, partner@firm.com")
    monkeypatch.setenv("UPSTREAM_TIMEOUT_S", "2.5")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-secret")

    config = AppConfig(_env_file=None)

    assert config.admin_emails == ["root@firm.com", "partner@firm.com"]
    assert config.UPSTREAM_TIMEOUT_S == 2.5
    assert config.SUPABASE_SERVICE_ROLE_KEY.get_secret_value() == "service-secret"
    assert "service-secret" not in repr(config)


@pytest.mark.parametrize(
    "origins, expected",
    [
        ("https://portal.firm.com/", "https://portal.firm.com/auth/reset-password"),
        (" https://a.com , https://b.com", "https://a.com/auth/reset-password"),
        ("", "http://localhost:3000/auth/reset-password"),
    ],
)
def test_password_reset_redirect(origins, expected):
    assert AppConfig(_env_file=None, CORS_ORIGINS=origins).password_reset_redirect_url == expected


def test_session_key_falls_back_to_service_role_key():
    only_service = AppConfig(_env_file=None, SUPABASE_ANON_KEY="", SUPABASE_SERVICE_ROLE_KEY="svc")
    both = AppConfig(_env_file=None, SUPABASE_ANON_KEY="anon", SUPABASE_SERVICE_ROLE_KEY="svc")

    assert only_service.session_key == "svc"
    assert both.session_key == "anon"


def test_missing_settings_only_warn(caplog):
    with caplog.at_level("WARNING", logger="lexgate.config"):
        AppConfig(_env_file=None, SUPABASE_URL="", ADMIN_EMAILS="")

    messages = " ".join(record.getMessage() for record in caplog.records)
    assert "SUPABASE_URL is empty" in messages
    assert "ADMIN_EMAILS is empty" in messages
