"""
Business Logic Services Package.

Services depend on the Repository layer for profile-store access and on
the identity backend client for everything credential-related.

The ``create_services()`` factory wires every repository and service together,
returning a typed dict that the transport layer can consume without knowing
the internal dependency graph.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from lexgate.config import AppConfig
from lexgate.database import DatabaseManager
from lexgate.jwt_auth import BearerAuthenticator
from lexgate.logger import StructuredLogger, get_logger
from lexgate.repositories.activity_log_repository import ActivityLogRepository
from lexgate.repositories.client_profile_repository import ClientProfileRepository
from lexgate.repositories.user_profile_repository import UserProfileRepository
from lexgate.services.activity_log import ActivityLogService
from lexgate.services.admin_whitelist import AdminWhitelistService
from lexgate.services.auth_service import AuthService
from lexgate.services.identity_backend import SupabaseIdentityBackend
from lexgate.services.profile_provisioning import ProfileProvisioningService


class ServiceContainer(TypedDict):
    """Typed container for all application services."""

    identity_backend: SupabaseIdentityBackend
    admin_whitelist: AdminWhitelistService
    activity_log_service: ActivityLogService
    profile_provisioning_service: ProfileProvisioningService
    auth_service: AuthService
    bearer_authenticator: BearerAuthenticator


def create_database(config: AppConfig, logger: Optional[StructuredLogger] = None) -> DatabaseManager:
    """Build the ``DatabaseManager`` described by *config*."""
    return DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        service_role_key=config.SUPABASE_SERVICE_ROLE_KEY.get_secret_value(),
        session_key=config.session_key,
        logger=logger or get_logger("lexgate.database"),
        upstream_timeout_s=config.UPSTREAM_TIMEOUT_S,
        max_workers=config.UPSTREAM_MAX_WORKERS,
    )


def create_services(
    db: DatabaseManager,
    config: AppConfig,
    logger: Optional[StructuredLogger] = None,
) -> ServiceContainer:
    """
    Wire all repositories and services together.

    This is the single composition root for the service layer.  The
    application entry-point calls this once at startup and hands the
    returned dict to its request handlers.

    Args:
        db: Initialised DatabaseManager.
        config: Application configuration (injected into services that need it).
        logger: Logger shared by every component; defaults to ``services``.

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = logger or get_logger("services")

    # ------------------------------------------------------------------
    # 1. Repositories (data-access layer)
    # ------------------------------------------------------------------
    user_profile_repo = UserProfileRepository(db=db, logger=logger)
    client_profile_repo = ClientProfileRepository(db=db, logger=logger)
    activity_log_repo = ActivityLogRepository(db=db, logger=logger)

    # ------------------------------------------------------------------
    # 2. Leaf services (no service dependencies)
    # ------------------------------------------------------------------
    identity_backend = SupabaseIdentityBackend(db=db, logger=logger)
    admin_whitelist = AdminWhitelistService.from_config(config, logger)
    activity_log_service = ActivityLogService(
        repo=activity_log_repo,
        logger=logger,
        in_background=config.AUDIT_IN_BACKGROUND,
        max_workers=config.AUDIT_MAX_WORKERS,
    )
    profile_provisioning_service = ProfileProvisioningService(
        user_repo=user_profile_repo,
        client_repo=client_profile_repo,
        whitelist=admin_whitelist,
        logger=logger,
    )

    # ------------------------------------------------------------------
    # 3. Orchestration services (depend on other services)
    # ------------------------------------------------------------------
    auth_service = AuthService(
        identity=identity_backend,
        provisioning=profile_provisioning_service,
        whitelist=admin_whitelist,
        activity_log=activity_log_service,
        config=config,
        logger=logger,
    )
    bearer_authenticator = BearerAuthenticator(
        identity=identity_backend,
        user_repo=user_profile_repo,
        client_repo=client_profile_repo,
        logger=logger,
    )

    return ServiceContainer(
        identity_backend=identity_backend,
        admin_whitelist=admin_whitelist,
        activity_log_service=activity_log_service,
        profile_provisioning_service=profile_provisioning_service,
        auth_service=auth_service,
        bearer_authenticator=bearer_authenticator,
    )
