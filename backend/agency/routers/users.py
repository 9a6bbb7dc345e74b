"""
# `agency/routers/users.py` - Profiles and user management

## `GET /users/me`
Profile of the signed-in principal. A principal without a profile gets the
identity data with `role = null`.

## `GET /admin/users`  (admin | partner)
Lists profiles, optionally filtered by `role`.

## `PATCH /admin/users/{uid}`  (admin | partner)
Edits display name, role, DJ percentage (`0..1`) and bank data. A failed write
answers 502 with `notify: true` and is not retried.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from agency.core.access import SessionContext, require_admin, require_authenticated
from agency.core.deps import get_profiles
from agency.repositories.profiles import ProfileStore
from agency.schemas.principal import Role
from agency.schemas.user import UserProfile, UserProfileUpdate
from agency.services.users import edit_profile

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserProfile)
def get_my_profile(ctx: SessionContext = Depends(require_authenticated)):
    """
    Get the profile of the currently authenticated user.
    """
    if ctx.profile is not None:
        return ctx.profile
    return UserProfile(
        uid=ctx.principal.uid,
        email=ctx.principal.email,
        displayName=ctx.principal.display_name,
    )


# Admin sub-router for user management
admin_router = APIRouter(prefix="/users", tags=["Admin: Users"])


@admin_router.get("", response_model=List[UserProfile])
def list_users(
    role: Optional[Role] = Query(None),
    ctx: SessionContext = Depends(require_admin),
    profiles: ProfileStore = Depends(get_profiles),
):
    return profiles.list(role=role)


@admin_router.patch("/{uid}", response_model=UserProfile)
def update_user(
    uid: str,
    update: UserProfileUpdate,
    ctx: SessionContext = Depends(require_admin),
    profiles: ProfileStore = Depends(get_profiles),
):
    return edit_profile(profiles, uid, update, edited_by=ctx.principal.uid)
