"""Shared fixtures: explicit configuration, a captured logger and in-memory fakes.

The fakes stand in for the identity backend and the three profile-store
repositories so the service layer can be exercised without any network.
Each fake supports failure injection through a plain attribute.
"""

from __future__ import annotations

import io
import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Optional

import pytest
from postgrest.exceptions import APIError

from lexgate.config import AppConfig
from lexgate.logger import StructuredLogger
from lexgate.models.auth_models import IdentityBackendError, ProfileConflictError
from lexgate.models.enums import UserType
from lexgate.models.user import (
    ClientProfile,
    IdentityAuthResult,
    IdentitySession,
    IdentityUser,
    UserProfile,
)
from lexgate.services.activity_log import ActivityLogService
from lexgate.services.admin_whitelist import AdminWhitelistService
from lexgate.services.auth_service import AuthService
from lexgate.services.profile_provisioning import ProfileProvisioningService
from lexgate.utils.audit import AuditEvent

ADMIN_EMAIL = "admin@lexgate.test"
SECOND_ADMIN_EMAIL = "boss@lexgate.test"
STRONG_PASSWORD = "Abcdefg1"


def api_error(code: str = "XX000", message: str = "store rejected the request") -> APIError:
    return APIError({"code": code, "message": message, "details": None, "hint": None})


# ---------------------------------------------------------------------------
# Identity backend
# ---------------------------------------------------------------------------

class FakeIdentityBackend:
    """In-memory identity provider issuing opaque tokens."""

    def __init__(self) -> None:
        self.users: dict[str, IdentityUser] = {}
        self.passwords: dict[str, str] = {}
        self.access_tokens: dict[str, str] = {}
        self.refresh_tokens: dict[str, str] = {}
        self.calls: list[str] = []
        self.reset_requests: list[tuple[str, str]] = []
        self.failures: dict[str, Exception] = {}
        self.signup_returns_session: bool = True

    # -- helpers used by tests -------------------------------------------

    def add_user(
        self,
        email: str,
        password: str = STRONG_PASSWORD,
        metadata: Optional[dict[str, object]] = None,
        with_email: bool = True,
    ) -> IdentityUser:
        user = IdentityUser(
            id=str(uuid.uuid4()),
            email=email if with_email else None,
            user_metadata=metadata or {},
        )
        self.users[user.id] = user
        self.passwords[user.id] = password
        return user

    def issue_session(self, user: IdentityUser) -> IdentitySession:
        access, refresh = f"at-{uuid.uuid4().hex}", f"rt-{uuid.uuid4().hex}"
        self.access_tokens[access] = user.id
        self.refresh_tokens[refresh] = user.id
        return IdentitySession(access_token=access, refresh_token=refresh, expires_at=1_900_000_000)

    def find_by_email(self, email: str) -> Optional[IdentityUser]:
        for user in self.users.values():
            if user.email == email:
                return user
        return None

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        failure = self.failures.get(operation)
        if failure is not None:
            raise failure

    # -- IdentityBackend -------------------------------------------------

    def sign_up(self, email: str, password: str, full_name: str) -> IdentityAuthResult:
        self._enter("sign_up")
        if self.find_by_email(email) is not None:
            raise IdentityBackendError("sign_up", "User already registered")
        user = self.add_user(email, password, {"full_name": full_name})
        session = self.issue_session(user) if self.signup_returns_session else None
        return IdentityAuthResult(user=user, session=session)

    def sign_in_with_password(self, email: str, password: str) -> IdentityAuthResult:
        self._enter("sign_in_with_password")
        user = self.find_by_email(email)
        if user is None or self.passwords[user.id] != password:
            raise IdentityBackendError("sign_in_with_password", "Invalid login credentials")
        return IdentityAuthResult(user=user, session=self.issue_session(user))

    def get_user(self, access_token: str) -> Optional[IdentityUser]:
        self._enter("get_user")
        user_id = self.access_tokens.get(access_token)
        if user_id is None:
            raise IdentityBackendError("get_user", "invalid JWT: unable to parse or verify signature")
        return self.users[user_id]

    def refresh_session(self, refresh_token: str) -> IdentityAuthResult:
        self._enter("refresh_session")
        user_id = self.refresh_tokens.pop(refresh_token, None)
        if user_id is None:
            raise IdentityBackendError("refresh_session", "Invalid Refresh Token: Already Used")
        user = self.users[user_id]
        return IdentityAuthResult(user=user, session=self.issue_session(user))

    def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        self._enter("reset_password_for_email")
        self.reset_requests.append((email, redirect_to))

    def update_password(self, user_id: str, new_password: str) -> None:
        self._enter("update_password")
        self.passwords[user_id] = new_password


# ---------------------------------------------------------------------------
# Profile store
# ---------------------------------------------------------------------------

class InMemoryUserProfileRepository:
    """``user_profiles`` with a primary-key constraint on ``id``."""

    def __init__(self) -> None:
        self.rows: dict[str, UserProfile] = {}
        self.insert_calls: int = 0
        self.deleted: list[str] = []
        self.get_error: Optional[Exception] = None
        self.insert_error: Optional[Exception] = None
        self.update_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None
        self.preempt_insert_with: Optional[UserProfile] = None
        self._lock = threading.Lock()

    def add(self, user_id: str, full_name: str, user_type: UserType = UserType.CLIENT) -> UserProfile:
        profile = UserProfile(id=user_id, full_name=full_name, user_type=user_type)
        self.rows[user_id] = profile
        return profile

    def get_by_id(self, user_id: str) -> Optional[UserProfile]:
        if self.get_error is not None:
            raise self.get_error
        return self.rows.get(user_id)

    def insert(self, profile: UserProfile) -> UserProfile:
        with self._lock:
            self.insert_calls += 1
            if self.insert_error is not None:
                raise self.insert_error
            if self.preempt_insert_with is not None:
                # A concurrent request commits its row just before ours.
                self.rows[self.preempt_insert_with.id] = self.preempt_insert_with
                self.preempt_insert_with = None
            if profile.id in self.rows:
                raise ProfileConflictError("user_profiles", profile.id)
            stored = profile.model_copy(update={"created_at": datetime.now(timezone.utc)})
            self.rows[profile.id] = stored
            return stored

    def update_user_type(self, user_id: str, user_type: UserType) -> Optional[UserProfile]:
        if self.update_error is not None:
            raise self.update_error
        existing = self.rows.get(user_id)
        if existing is None:
            return None
        updated = existing.model_copy(update={"user_type": user_type})
        self.rows[user_id] = updated
        return updated

    def delete(self, user_id: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        self.rows.pop(user_id, None)
        self.deleted.append(user_id)


class InMemoryClientProfileRepository:
    def __init__(self) -> None:
        self.rows: dict[str, ClientProfile] = {}
        self.insert_error: Optional[Exception] = None

    def get_by_user_profile_id(self, user_profile_id: str) -> Optional[ClientProfile]:
        return self.rows.get(user_profile_id)

    def insert(self, user_profile_id: str) -> ClientProfile:
        if self.insert_error is not None:
            raise self.insert_error
        created = ClientProfile(id=str(uuid.uuid4()), user_profile_id=user_profile_id)
        self.rows[user_profile_id] = created
        return created


class InMemoryActivityLogRepository:
    def __init__(self) -> None:
        self.events: list[AuditEvent] = []
        self.insert_error: Optional[Exception] = None

    def insert(self, event: AuditEvent) -> None:
        if self.insert_error is not None:
            raise self.insert_error
        self.events.append(event)

    def actions(self) -> list[str]:
        return [event.action for event in self.events]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        _env_file=None,
        SUPABASE_URL="",
        ADMIN_EMAILS=f" {ADMIN_EMAIL}, Boss@LexGate.test ,",
        CORS_ORIGINS="https://app.lexgate.test/,http://localhost:4000",
        AUDIT_IN_BACKGROUND=False,
        UPSTREAM_TIMEOUT_S=0.5,
    )


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(log_stream: io.StringIO) -> StructuredLogger:
    # Unique name per test: StructuredLogger only attaches handlers once per name.
    return StructuredLogger(
        name=f"lexgate.test.{uuid.uuid4().hex}",
        level=logging.DEBUG,
        stream=log_stream,
    )


@pytest.fixture
def log_records(log_stream: io.StringIO):
    """Callable returning every JSON log line written so far."""
    def _read() -> list[dict[str, object]]:
        return [json.loads(line) for line in log_stream.getvalue().splitlines() if line]
    return _read


@pytest.fixture
def identity() -> FakeIdentityBackend:
    return FakeIdentityBackend()


@pytest.fixture
def user_repo() -> InMemoryUserProfileRepository:
    return InMemoryUserProfileRepository()


@pytest.fixture
def client_repo() -> InMemoryClientProfileRepository:
    return InMemoryClientProfileRepository()


@pytest.fixture
def activity_repo() -> InMemoryActivityLogRepository:
    return InMemoryActivityLogRepository()


@pytest.fixture
def whitelist(config: AppConfig, logger: StructuredLogger) -> AdminWhitelistService:
    return AdminWhitelistService.from_config(config, logger)


@pytest.fixture
def provisioning(
    user_repo: InMemoryUserProfileRepository,
    client_repo: InMemoryClientProfileRepository,
    whitelist: AdminWhitelistService,
    logger: StructuredLogger,
) -> ProfileProvisioningService:
    return ProfileProvisioningService(
        user_repo=user_repo,
        client_repo=client_repo,
        whitelist=whitelist,
        logger=logger,
    )


@pytest.fixture
def activity_log(
    activity_repo: InMemoryActivityLogRepository,
    logger: StructuredLogger,
) -> ActivityLogService:
    service = ActivityLogService(repo=activity_repo, logger=logger, in_background=False)
    yield service
    service.shutdown()


@pytest.fixture
def auth_service(
    identity: FakeIdentityBackend,
    provisioning: ProfileProvisioningService,
    whitelist: AdminWhitelistService,
    activity_log: ActivityLogService,
    config: AppConfig,
    logger: StructuredLogger,
) -> AuthService:
    return AuthService(
        identity=identity,
        provisioning=provisioning,
        whitelist=whitelist,
        activity_log=activity_log,
        config=config,
        logger=logger,
    )
