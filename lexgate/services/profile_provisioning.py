"""
Profile Provisioning Service.

Creates the profile-store side of a user the first time an identity
authenticates, and applies the admin-whitelist escalation policy on later
authentications.

Provisioning strategy:
    - ``user_profiles.id`` is the identity id; the store's primary-key
      constraint is the only guard against duplicate first logins.
    - A unique violation on insert means a concurrent request won the race:
      re-fetch and continue with that row.
    - Clients additionally get a ``client_profiles`` row.  The REST store
      has no multi-statement transaction, so a failed extension insert is
      compensated by deleting the freshly inserted profile.
    - Escalation only ever moves a profile *to* ``admin``; nothing here
      demotes, and an escalation write failure is never fatal.
"""

from __future__ import annotations

from typing import Optional

from postgrest.exceptions import APIError

from lexgate.logger import StructuredLogger
from lexgate.models.auth_models import (
    ProfileConflictError,
    ProfileNotFoundError,
    ProvisioningError,
    UpstreamUnavailableError,
)
from lexgate.models.enums import UserType
from lexgate.models.user import UserProfile
from lexgate.repositories.client_profile_repository import ClientProfileRepository
from lexgate.repositories.user_profile_repository import UserProfileRepository
from lexgate.services.admin_whitelist import AdminWhitelist
from lexgate.services.base_service import BaseService


class ProfileProvisioningService(BaseService):
    """
    Owns first-login provisioning and whitelist escalation.

    Shared by the signup, signin, OAuth and current-user flows of
    :class:`~lexgate.services.auth_service.AuthService`.
    """

    def __init__(
        self,
        user_repo: UserProfileRepository,
        client_repo: ClientProfileRepository,
        whitelist: AdminWhitelist,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._user_repo = user_repo
        self._client_repo = client_repo
        self._whitelist = whitelist

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return self._user_repo.get_by_id(user_id)

    def require_profile(self, user_id: str) -> UserProfile:
        """Fetch an existing profile; flows that never provision call this.

        Raises:
            ProfileNotFoundError: No profile row exists for *user_id*.
        """
        profile = self._user_repo.get_by_id(user_id)
        if profile is None:
            self._logger.warning(
                "No profile found for authenticated identity %s", user_id,
                extra={"event": "PROFILE_NOT_FOUND", "user_id": user_id},
            )
            raise ProfileNotFoundError()
        return profile

    def initial_user_type(self, email: Optional[str]) -> UserType:
        """Role for a brand-new profile: ``admin`` if whitelisted, else ``client``."""
        return UserType.ADMIN if self._whitelist.is_admin_email(email) else UserType.CLIENT

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    def get_or_create_profile(
        self,
        user_id: str,
        full_name: str,
        user_type: UserType,
        phone_number: Optional[str] = None,
    ) -> tuple[UserProfile, bool]:
        """Return the profile for *user_id*, provisioning it if absent.

        Returns:
            ``(profile, created)`` where *created* is False when the row
            already existed, including when a concurrent request created
            it between our lookup and our insert.
        """
        existing = self._user_repo.get_by_id(user_id)
        if existing is not None:
            return existing, False
        return self.provision_profile(user_id, full_name, user_type, phone_number)

    def provision_profile(
        self,
        user_id: str,
        full_name: str,
        user_type: UserType,
        phone_number: Optional[str] = None,
    ) -> tuple[UserProfile, bool]:
        """Insert the profile (and client extension) for a new identity.

        Args:
            user_id: Identity id; becomes ``user_profiles.id``.
            full_name: Display name to store.
            user_type: Initial role.  Only ``client`` gets an extension row.
            phone_number: Optional contact number (signup only).

        Returns:
            ``(profile, created)``; *created* is False if a concurrent
            request had already provisioned the row.

        Raises:
            ProvisioningError: The store rejected either insert.
            UpstreamUnavailableError: The store could not be reached.
        """
        self._logger.info(
            "Provisioning profile for %s as %s", user_id, user_type,
            extra={"event": "PROFILE_PROVISION", "user_id": user_id},
        )

        candidate = UserProfile(
            id=user_id,
            full_name=full_name,
            user_type=user_type,
            phone_number=phone_number,
        )

        try:
            profile = self._user_repo.insert(candidate)
        except ProfileConflictError as exc:
            # Another request provisioned this identity first.
            self._logger.warning(
                "Profile for %s already exists; retrying lookup.", user_id,
                extra={"event": "PROFILE_PROVISION_RACE", "user_id": user_id},
            )
            retried = self._user_repo.get_by_id(user_id)
            if retried is None:
                raise ProvisioningError(original_error=exc) from exc
            return retried, False
        except APIError as exc:
            self._logger.error(
                "Profile insert failed for %s: %s", user_id, exc.message,
                extra={"event": "PROFILE_PROVISION_FAILED", "user_id": user_id},
            )
            raise ProvisioningError(original_error=exc) from exc

        if profile.user_type == UserType.CLIENT:
            self._provision_client_extension(user_id)

        return profile, True

    # ------------------------------------------------------------------
    # Escalation
    # ------------------------------------------------------------------

    def escalate_if_whitelisted(
        self,
        profile: UserProfile,
        email: Optional[str],
    ) -> UserProfile:
        """Promote *profile* to ``admin`` when *email* is whitelisted.

        Never demotes.  If the update fails the original profile is
        returned unchanged.
        """
        if profile.user_type == UserType.ADMIN or not self._whitelist.is_admin_email(email):
            return profile

        try:
            updated = self._user_repo.update_user_type(profile.id, UserType.ADMIN)
        except Exception as exc:
            self._logger.warning(
                "Admin escalation failed for %s: %s", profile.id, exc,
                extra={"event": "ADMIN_ESCALATION_FAILED", "user_id": profile.id},
            )
            return profile

        if updated is None:
            return profile

        self._logger.info(
            "Upgraded user %s from %s to admin", profile.id, profile.user_type,
            extra={"event": "ADMIN_ESCALATION", "user_id": profile.id},
        )
        return profile.model_copy(update={"user_type": UserType.ADMIN})

    # ------------------------------------------------------------------
    # Private implementation
    # ------------------------------------------------------------------

    def _provision_client_extension(self, user_id: str) -> None:
        try:
            self._client_repo.insert(user_id)
        except (APIError, UpstreamUnavailableError) as exc:
            self._logger.error(
                "Client profile insert failed for %s: %s", user_id, exc,
                extra={"event": "CLIENT_PROFILE_PROVISION_FAILED", "user_id": user_id},
            )
            self._compensate(user_id)
            if isinstance(exc, UpstreamUnavailableError):
                raise
            raise ProvisioningError(original_error=exc) from exc

    def _compensate(self, user_id: str) -> None:
        """Remove an orphaned profile left by a failed extension insert."""
        try:
            self._user_repo.delete(user_id)
        except (APIError, UpstreamUnavailableError) as exc:
            self._logger.error(
                "Could not remove orphaned profile %s: %s", user_id, exc,
                extra={"event": "PROFILE_COMPENSATION_FAILED", "user_id": user_id},
            )
