"""
agency/schemas/principal.py
Roles and the Principal model.
"""
from typing import Literal, Optional, get_args

from pydantic import BaseModel, Field

Role = Literal["admin", "partner", "dj", "finance", "manager", "producer"]

ROLES: frozenset[str] = frozenset(get_args(Role))

# Role groups used by the route surface
ADMIN_ROLES: frozenset[str] = frozenset({"admin", "partner"})
FINANCE_ROLES: frozenset[str] = frozenset({"admin", "partner", "finance"})
DJ_ROLES: frozenset[str] = frozenset({"dj"})


def parse_role(value) -> Optional[str]:
    """Return the role if it is a known one, else None."""
    if isinstance(value, str) and value in ROLES:
        return value
    return None


class Principal(BaseModel):
    """Identity issued by Firebase Authentication. Read-only to the console."""
    uid: str = Field(..., description="Firebase UID")
    email: Optional[str] = Field(None, description="E-mail (if any)")
    display_name: Optional[str] = Field(None, description="Display name (if any)")

    model_config = {"frozen": True}
