"""
# `agency/core/access.py` - Access gate

Decides `allow | redirect | pending` for a set of required roles and the
current session state. First match wins:

| loading | principal | role permitted | decision |
|---------|-----------|----------------|----------|
| true    | -         | -              | pending  |
| false   | none      | -              | redirect (login) |
| false   | present   | no             | redirect (login) |
| false   | present   | yes            | allow    |

An empty role set admits any authenticated principal, with or without a role.
Forbidden and unauthenticated share the same destination; there is no
separate forbidden page and no return-to URL.

`require_roles(...)` is the FastAPI dependency used by the routers. It
re-verifies the identity and re-reads the role on every request, so a
revoked role takes effect on the next request.
"""
import enum
import logging
from typing import Callable, FrozenSet, Iterable, Optional

from fastapi import HTTPException, Request, status
from pydantic import BaseModel

from agency.core.session import SessionResolver, SessionState
from agency.schemas.principal import ADMIN_ROLES, DJ_ROLES, FINANCE_ROLES, Principal
from agency.schemas.user import UserProfile

logger = logging.getLogger("agency.access")

LOGIN_ROUTE = "login"


class AccessDecision(str, enum.Enum):
    ALLOW = "allow"
    REDIRECT = "redirect"
    PENDING = "pending"


def evaluate_access(required_roles: Iterable[str], state: SessionState) -> AccessDecision:
    required: FrozenSet[str] = frozenset(required_roles)
    if state.loading:
        return AccessDecision.PENDING
    if state.principal is None:
        return AccessDecision.REDIRECT
    if required and state.role not in required:
        return AccessDecision.REDIRECT
    return AccessDecision.ALLOW


def watch_access(
    resolver: SessionResolver,
    required_roles: Iterable[str],
    on_decision: Callable[[AccessDecision], None],
) -> Callable[[], None]:
    """Re-evaluate the gate on every session state change. Returns the unwatch callable."""
    required = frozenset(required_roles)
    return resolver.observe(lambda state: on_decision(evaluate_access(required, state)))


class SessionContext(BaseModel):
    """What an allowed request knows about its caller."""
    principal: Principal
    role: Optional[str] = None
    profile: Optional[UserProfile] = None


def _login_redirect(request: Request) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_303_SEE_OTHER,
        detail="Login required",
        headers={"Location": str(request.app.url_path_for(LOGIN_ROUTE))},
    )


async def current_state(request: Request) -> SessionState:
    """Session state for this request, freshly re-validated."""
    registry = request.app.state.sessions
    cookie = request.app.state.settings.session_cookie_name
    resolver = registry.get(request.cookies.get(cookie))
    if resolver is None:
        # No session: nothing to read, the role resolver is never invoked.
        return SessionState(loading=False)
    await resolver.identity.revalidate()
    return await resolver.refresh()


def require_roles(*roles: str):
    """Dependency factory. With no roles, any authenticated principal passes."""
    required = frozenset(roles)

    async def dependency(request: Request) -> SessionContext:
        state = await current_state(request)
        decision = evaluate_access(required, state)
        if decision is AccessDecision.PENDING:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Carregando autenticação...",
                headers={"Retry-After": "1"},
            )
        if decision is AccessDecision.REDIRECT:
            if state.principal is not None:
                logger.info("uid=%s role=%s denied for %s", state.principal.uid, state.role, request.url.path)
            raise _login_redirect(request)
        return SessionContext(principal=state.principal, role=state.role, profile=state.profile)

    return dependency


require_authenticated = require_roles()
require_admin = require_roles(*ADMIN_ROLES)
require_dj = require_roles(*DJ_ROLES)
require_finance = require_roles(*FINANCE_ROLES)
