"""Device profile and identity.

The profile is a singleton stored under ``PROFILE_ID``.  The normalised
email is also kept in ``settings`` as the device identity the sync engine
and remote archive use.
"""

from __future__ import annotations

import logging

from ..timestamps import utc_now_iso
from ..validators import (
    derive_group_code,
    derive_group_code_from_email,
    normalize_email,
    require,
    validate_email,
    validate_group_code,
)
from .database import SETTING_USER_EMAIL, LocalStore
from .models import UserProfile

logger = logging.getLogger(__name__)

PROFILE_ID = "default"


class ProfileRepository:
    def __init__(self, store: LocalStore) -> None:
        self._store = store

    def get_profile(self) -> UserProfile | None:
        record = self._store.user_profile.get(PROFILE_ID)
        return None if record is None else UserProfile(**record)

    def create_profile(
        self,
        email: str,
        name: str,
        group_name: str | None = None,
        group_code: str | None = None,
        graveyard_name: str | None = None,
    ) -> UserProfile:
        """Create (or replace) the device profile and set the identity.

        Without an explicit *group_code* one is derived from *group_name*
        when given, else from the email.  *group_name* defaults to
        ``"{name}'s recordings"``.

        Raises:
            ValidationError: Invalid email or derived group code.
        """
        email = normalize_email(email)
        require(validate_email(email))
        if not group_code:
            group_code = (
                derive_group_code(group_name)
                if group_name
                else derive_group_code_from_email(email)
            )
        require(validate_group_code(group_code))
        profile = UserProfile(
            id=PROFILE_ID,
            email=email,
            name=name.strip(),
            group_name=group_name or f"{name.strip()}'s recordings",
            group_code=group_code,
            graveyard_name=graveyard_name,
            created_at=utc_now_iso(),
        )
        self.save_profile(profile)
        return profile

    def save_profile(self, profile: UserProfile) -> UserProfile:
        """Persist *profile* under the singleton key and set the identity."""
        if profile.id != PROFILE_ID:
            profile = profile.model_copy(update={"id": PROFILE_ID})
        self._store.user_profile.put(profile.model_dump(mode="json"))
        self.set_identity(profile.email)
        logger.info("Saved profile for group %s", profile.group_code)
        return profile

    def get_identity(self) -> str | None:
        return self._store.get_setting(SETTING_USER_EMAIL)

    def set_identity(self, email: str) -> None:
        self._store.set_setting(SETTING_USER_EMAIL, normalize_email(email))

    def clear_identity(self) -> None:
        self._store.delete_setting(SETTING_USER_EMAIL)
