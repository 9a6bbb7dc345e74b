"""
# agency/routers/auth.py - Authentication

## GET /login  (route name `login`)
Entry point every denied request is redirected to. Describes the sign-in form.

## POST /auth/login
Form-Data: `email`, `password` (min. 6 characters).

1. The form is validated; a malformed e-mail or short password answers 422 with
   one message per field.
2. The session's identity client signs in against Firebase Authentication.
   Bad credentials answer 401 with an inline message.
3. The role is resolved from `users/{uid}` before answering, and the session
   cookie is set. `redirect_to` points at the dashboard for the role.

## POST /auth/logout
Signs out, closes the session (listener released) and clears the cookie.
"""
import logging

from fastapi import APIRouter, Depends, Form, Request, Response
from pydantic import ValidationError

from agency.config import Settings
from agency.core.access import LOGIN_ROUTE
from agency.core.deps import get_registry, get_settings_dep
from agency.core.errors import AgencyError, ValidationFailure
from agency.core.session import SessionRegistry
from agency.schemas.principal import ADMIN_ROLES, DJ_ROLES
from agency.schemas.user import LoginForm, LoginResponse

logger = logging.getLogger("agency.auth")

router = APIRouter(tags=["Auth"])


def _landing_route(role) -> str:
    if role in ADMIN_ROLES:
        return "dashboard-admin"
    if role in DJ_ROLES:
        return "dashboard-dj"
    return "schedule"


def _field_errors(exc: ValidationError) -> dict[str, str]:
    messages = {
        "email": "E-mail inválido.",
        "password": "A senha deve ter pelo menos 6 caracteres.",
    }
    fields = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err.get("loc") else "form"
        fields[field] = messages.get(field, err.get("msg", "Valor inválido."))
    return fields


@router.get("/login", name=LOGIN_ROUTE, summary="Login entry point")
def login_page():
    return {
        "message": "Faça login para continuar.",
        "action": "/auth/login",
        "fields": ["email", "password"],
    }


@router.post("/auth/login", response_model=LoginResponse, summary="E-mail + password sign-in")
async def login(
    request: Request,
    response: Response,
    email: str = Form(..., description="E-mail"),
    password: str = Form(..., description="Senha (min 6)"),
    registry: SessionRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings_dep),
):
    try:
        form = LoginForm(email=email, password=password)
    except ValidationError as exc:
        raise ValidationFailure("Dados de login inválidos", _field_errors(exc))

    session_id = request.cookies.get(settings.session_cookie_name)
    resolver = registry.get(session_id)
    created = resolver is None
    if created:
        session_id, resolver = registry.open()

    try:
        principal = await resolver.identity.sign_in(form.email, form.password)
    except AgencyError:
        if created:
            await registry.close(session_id)
        raise

    state = await resolver.wait_settled(timeout=settings.sign_in_timeout)
    response.set_cookie(
        settings.session_cookie_name,
        session_id,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    logger.info("uid=%s signed in (role=%s)", principal.uid, state.role)
    return LoginResponse(
        user_id=principal.uid,
        email=principal.email,
        display_name=principal.display_name,
        role=state.role,
        redirect_to=str(request.app.url_path_for(_landing_route(state.role))),
    )


@router.post("/auth/logout", summary="Sign out and close the session")
async def logout(
    request: Request,
    response: Response,
    registry: SessionRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings_dep),
):
    session_id = request.cookies.get(settings.session_cookie_name)
    resolver = registry.get(session_id)
    if resolver is not None:
        await resolver.identity.sign_out()
    await registry.close(session_id)
    response.delete_cookie(settings.session_cookie_name)
    return {"detail": "Logged out"}
