"""User profile projection of the identity provider's user record."""

import logging
from datetime import UTC, datetime

from taskboard.core import db_client
from taskboard.core.config import constants, settings
from taskboard.core.logging import span
from taskboard.domain.user import Identity, UserProfile


logger = logging.getLogger(__name__)


def display_name_for(identity: Identity) -> str:
    """Pick a display name: provider name, then email local part, then the default label."""
    if identity.display_name and identity.display_name.strip():
        return identity.display_name.strip()
    if identity.email and identity.email.split("@")[0]:
        return identity.email.split("@")[0]
    return settings.default_profile_name


async def save_profile(*, identity: Identity) -> UserProfile:
    """Upsert the profile for a signed-in user, recording the login time.

    Args:
        identity: User record supplied by the identity provider

    Returns:
        The stored profile
    """
    with span("user_service.save_profile"):
        record = await db_client.upsert_record(
            collection="users",
            key_field="uid",
            data={
                "uid": identity.uid,
                "name": display_name_for(identity),
                "email": identity.email,
                "photo_url": identity.photo_url,
                "last_login": datetime.now(UTC).isoformat(),
            },
        )
        logger.info("Saved profile for %s", identity.uid)
        return UserProfile.model_validate(record)


async def get_profile(*, uid: str) -> UserProfile | None:
    """Get a profile by user ID, or None if the user never signed in."""
    record = await db_client.get_first_record(
        collection="users",
        filter_query=f'uid = "{db_client.sanitize_param(uid)}"',
    )
    return UserProfile.model_validate(record) if record else None


async def get_profiles(*, uids: list[str]) -> list[UserProfile]:
    """Resolve user IDs to profiles, in the order given.

    The store's "in" filter takes a bounded number of values, so IDs are
    queried in chunks. Users without a profile are skipped.
    """
    with span("user_service.get_profiles"):
        unique_uids = list(dict.fromkeys(uids))
        if not unique_uids:
            return []

        chunk_size = constants.MAX_IN_FILTER_VALUES
        found: dict[str, UserProfile] = {}
        for start in range(0, len(unique_uids), chunk_size):
            chunk = unique_uids[start : start + chunk_size]
            alternatives = " || ".join(f'uid = "{db_client.sanitize_param(uid)}"' for uid in chunk)
            records = await db_client.get_full_list(collection="users", filter_query=f"({alternatives})")
            for record in records:
                profile = UserProfile.model_validate(record)
                found[profile.uid] = profile

        logger.debug("Resolved %d of %d profiles", len(found), len(unique_uids))
        return [found[uid] for uid in unique_uids if uid in found]
