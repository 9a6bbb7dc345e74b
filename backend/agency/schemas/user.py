"""
# `agency/schemas/user.py` - User profile schemas

## UserProfile
Application record stored at `users/{uid}`, keyed 1:1 by the Firebase UID.

| Field           | Type              | Notes |
|-----------------|-------------------|-------|
| uid             | `str`             | Firebase UID |
| email           | `str` / `null`    | |
| displayName     | `str` / `null`    | |
| role            | `Role` / `null`   | unknown strings are read as `null` |
| dj_percentual   | `float` / `null`  | fraction in `[0, 1]`, only for DJs |
| bank*           | `str` / `null`    | bank data shown to admins |

## UserProfileUpdate
Partial update used by admins/partners. All fields optional; only the ones sent are written.

## LoginResponse
Returned after a successful e-mail/password sign-in.
"""
from typing import Literal, Optional, Annotated

from pydantic import BaseModel, EmailStr, Field, field_validator

from agency.schemas.principal import Role, parse_role

Fraction = Annotated[float, Field(ge=0, le=1)]
BankAccountType = Literal["corrente", "poupanca"]


class UserProfile(BaseModel):
    uid: str = Field(..., description="Firebase UID")
    email: Optional[str] = None
    displayName: Optional[str] = None
    role: Optional[Role] = None
    dj_percentual: Optional[float] = Field(None, description="DJ share, 0..1")
    bankName: Optional[str] = None
    bankAgency: Optional[str] = None
    bankAccount: Optional[str] = None
    bankAccountType: Optional[str] = None
    bankDocument: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def _known_role(cls, v):
        return parse_role(v)

    @field_validator("dj_percentual", mode="before")
    @classmethod
    def _fraction_or_none(cls, v):
        # Stored values may be strings or garbage; the cache calculator flags them as unknown.
        if v is None or isinstance(v, bool):
            return None
        try:
            return float(v)
        except (TypeError, ValueError):
            return None

    @classmethod
    def from_doc(cls, uid: str, data: dict) -> "UserProfile":
        return cls(**{**data, "uid": uid})


class UserProfileUpdate(BaseModel):
    """Profile edit payload (admin / partner)."""
    displayName: Optional[Annotated[str, Field(min_length=1)]] = None
    role: Optional[Role] = None
    dj_percentual: Optional[Fraction] = None
    bankName: Optional[str] = None
    bankAgency: Optional[str] = None
    bankAccount: Optional[str] = None
    bankAccountType: Optional[BankAccountType] = None
    bankDocument: Optional[str] = None

    model_config = {"extra": "forbid"}

    def to_patch(self) -> dict:
        return self.model_dump(exclude_unset=True)


class LoginForm(BaseModel):
    email: EmailStr
    password: Annotated[str, Field(min_length=6)]


class LoginResponse(BaseModel):
    user_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: Optional[Role] = None
    redirect_to: str
