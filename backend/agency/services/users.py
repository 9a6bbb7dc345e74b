# agency/services/users.py
import logging

from google.cloud.firestore_v1 import DELETE_FIELD

from agency.core.errors import ValidationFailure
from agency.repositories.profiles import ProfileStore
from agency.schemas.user import UserProfile, UserProfileUpdate

logger = logging.getLogger("agency.users")


def edit_profile(profiles: ProfileStore, uid: str, update: UserProfileUpdate, edited_by: str) -> UserProfile:
    """
    Apply an admin/partner profile edit.
    `dj_percentual` only lives on DJ profiles: it is rejected for other roles
    and dropped when a DJ is moved to another role.
    """
    current = profiles.get(uid)
    patch = update.to_patch()
    role = patch.get("role", current.role)

    if role != "dj":
        if patch.get("dj_percentual") is not None:
            raise ValidationFailure(
                "Percentual inválido",
                {"dj_percentual": "Percentual só pode ser definido para DJs."},
            )
        if current.dj_percentual is not None or "dj_percentual" in patch:
            patch["dj_percentual"] = DELETE_FIELD

    if patch:
        profiles.update(uid, patch)
        logger.info("Profile uid=%s edited by uid=%s: %s", uid, edited_by, sorted(patch))
    return profiles.get(uid)
