"""
# `agency/core/identity.py` - Identity provider (Firebase Authentication)

## Contract
Every console session owns one identity client. It keeps the signed-in
principal and publishes each auth-state transition to its subscribers:

- `subscribe(on_change) -> unsubscribe`: `on_change` is called at once with the
  current principal (or `None`) and then on every change.
- `sign_in(email, password) -> Principal`: raises `AuthFailure` on bad credentials.
- `sign_out()`: clears the principal.
- `revalidate() -> Principal | None`: re-verifies the held ID token with the
  revocation check. An invalid, revoked or disabled session is a provider-level
  disconnect and is published as `None`. Expired tokens are refreshed once.

## Firebase endpoints
- `accounts:signInWithPassword` (Identity Toolkit REST) for password sign-in.
- `securetoken.googleapis.com/v1/token` to trade a refresh token for a new ID token.
- `firebase_admin.auth.verify_id_token(check_revoked=True)` for verification.
"""
import asyncio
import functools
import logging
from typing import Callable, Optional, Protocol

import httpx
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

from agency.config import Settings
from agency.core.errors import AuthFailure, IdentityUnavailable
from agency.schemas.principal import Principal

logger = logging.getLogger("agency.identity")

AuthListener = Callable[[Optional[Principal]], None]

SECURETOKEN_ENDPOINT = "https://securetoken.googleapis.com/v1/token?key={key}"


class IdentityProvider(Protocol):
    def subscribe(self, on_change: AuthListener) -> Callable[[], None]: ...

    async def sign_in(self, email: str, password: str) -> Principal: ...

    async def sign_out(self) -> None: ...

    async def revalidate(self) -> Optional[Principal]: ...


class ListenerSet:
    """Auth-state listeners of one identity client."""

    def __init__(self):
        self._listeners: list[AuthListener] = []

    def add(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def __len__(self) -> int:
        return len(self._listeners)

    def emit(self, principal: Optional[Principal]) -> None:
        for listener in list(self._listeners):
            try:
                listener(principal)
            except Exception:
                logger.exception("Auth listener failed")


class FirebaseIdentityClient:
    """Per-session Firebase Authentication client."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._settings = settings
        self._transport = transport
        self._listeners = ListenerSet()
        self._principal: Optional[Principal] = None
        self._id_token: Optional[str] = None
        self._refresh_token: Optional[str] = None

    @property
    def current(self) -> Optional[Principal]:
        return self._principal

    def subscribe(self, on_change: AuthListener) -> Callable[[], None]:
        unsubscribe = self._listeners.add(on_change)
        on_change(self._principal)
        return unsubscribe

    def _set_principal(self, principal: Optional[Principal]) -> None:
        previous = self._principal
        self._principal = principal
        if (previous.uid if previous else None) != (principal.uid if principal else None):
            self._listeners.emit(principal)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._settings.sign_in_timeout, transport=self._transport)

    async def sign_in(self, email: str, password: str) -> Principal:
        payload = {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        }
        try:
            async with self._client() as client:
                resp = await client.post(self._settings.sign_in_endpoint, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Sign-in request failed: %s", exc)
            raise IdentityUnavailable("Serviço de autenticação indisponível.") from exc

        data = resp.json()
        if resp.status_code != 200:
            message = (data.get("error") or {}).get("message", "INVALID_LOGIN_CREDENTIALS")
            logger.info("Sign-in rejected: %s", message)
            raise AuthFailure("Credenciais inválidas. Verifique e-mail e senha.")

        self._id_token = data["idToken"]
        self._refresh_token = data.get("refreshToken")
        principal = Principal(
            uid=data["localId"],
            email=data.get("email") or email,
            display_name=data.get("displayName") or None,
        )
        self._set_principal(principal)
        return principal

    async def sign_out(self) -> None:
        self._id_token = None
        self._refresh_token = None
        self._set_principal(None)

    async def _verify(self, id_token: str) -> dict:
        loop = asyncio.get_running_loop()
        verify = functools.partial(firebase_auth.verify_id_token, id_token, check_revoked=True)
        return await loop.run_in_executor(None, verify)

    async def _refresh(self) -> Optional[str]:
        if not self._refresh_token:
            return None
        url = SECURETOKEN_ENDPOINT.format(key=self._settings.firebase_web_api_key)
        try:
            async with self._client() as client:
                resp = await client.post(
                    url, data={"grant_type": "refresh_token", "refresh_token": self._refresh_token}
                )
        except httpx.HTTPError as exc:
            logger.warning("Token refresh failed: %s", exc)
            return None
        if resp.status_code != 200:
            logger.info("Token refresh rejected: %s", resp.status_code)
            return None
        data = resp.json()
        self._id_token = data["id_token"]
        self._refresh_token = data.get("refresh_token", self._refresh_token)
        return self._id_token

    async def revalidate(self) -> Optional[Principal]:
        if not self._id_token:
            return self._principal
        try:
            try:
                decoded = await self._verify(self._id_token)
            except firebase_auth.ExpiredIdTokenError:
                token = await self._refresh()
                if token is None:
                    raise
                decoded = await self._verify(token)
        except (ValueError, firebase_exceptions.FirebaseError) as exc:
            # Revoked, disabled, expired without refresh, or unverifiable.
            logger.info("Session token rejected: %s", type(exc).__name__)
            await self.sign_out()
            return None

        if self._principal and decoded.get("uid") != self._principal.uid:
            logger.warning("Token uid mismatch; signing out")
            await self.sign_out()
            return None
        return self._principal
