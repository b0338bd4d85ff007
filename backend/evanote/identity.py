"""
Caller identity.

The external identity provider is represented by the X-User-Id header; the
value is mapped to a practitioner profile, whose id is the owner id used
everywhere else.
"""
from typing import Optional
import uuid

from .exceptions import Unauthenticated
from .store import ProfileStore


async def resolve_owner_id(profiles: ProfileStore, external_user_id: Optional[str]) -> uuid.UUID:
    """
    Map an external user id to the owning profile id.

    Raises:
        Unauthenticated: If the id is missing or no profile exists for it
    """
    if not external_user_id or not external_user_id.strip():
        raise Unauthenticated()

    profile = await profiles.find_by_external_id(external_user_id.strip())
    if profile is None:
        raise Unauthenticated("Profil utilisateur introuvable.")
    return profile.id


async def ensure_profile(
    profiles: ProfileStore,
    external_user_id: Optional[str],
    full_name: Optional[str] = None,
):
    """Return the profile for external_user_id, creating it on first sign-in."""
    if not external_user_id or not external_user_id.strip():
        raise Unauthenticated()

    profile = await profiles.find_by_external_id(external_user_id.strip())
    if profile is None:
        profile = await profiles.create(external_user_id.strip(), full_name)
    return profile
