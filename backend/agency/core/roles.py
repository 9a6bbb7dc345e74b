# agency/core/roles.py
import asyncio
import logging
from typing import Optional

from agency.core.errors import ProfileFetchFailure, ProfileNotFound
from agency.repositories.profiles import ProfileStore
from agency.schemas.user import UserProfile

logger = logging.getLogger("agency.roles")


class RoleResolver:
    """
    Maps a principal to its role by reading `users/{uid}`.

    Every call is a fresh point read; nothing is cached. Any failure reads as
    role = None so that the access gate denies.
    """

    def __init__(self, profiles: ProfileStore):
        self._profiles = profiles

    async def load_profile(self, uid: str) -> Optional[UserProfile]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._profiles.get, uid)
        except ProfileNotFound:
            logger.info("No profile for uid=%s; role unset", uid)
        except ProfileFetchFailure as exc:
            logger.warning("Profile read failed for uid=%s: %s", uid, exc.__cause__ or exc)
        except Exception:
            logger.exception("Unexpected error reading profile uid=%s", uid)
        return None

    async def resolve(self, uid: str) -> Optional[str]:
        profile = await self.load_profile(uid)
        return profile.role if profile else None
