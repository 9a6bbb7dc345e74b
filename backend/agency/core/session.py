"""
# `agency/core/session.py` - Console sessions

## SessionResolver
Owns one subscription to an identity client and exposes
`SessionState(principal, role, loading)`.

- Initial state: `loading=True, principal=None`.
- `start()` subscribes exactly once; `close()` unsubscribes and cancels the
  in-flight role read. Both are idempotent and `async with` guarantees release.
- Every principal change bumps a generation counter. A role read whose
  generation is no longer current is dropped, so fast sign-in/sign-out cycles
  never publish a stale role. Results arriving after `close()` are ignored.
- `refresh()` performs a fresh role read for the current principal and returns
  the state built from that read, even if a newer refresh has already replaced
  the shared state. The HTTP gate calls it on every protected request.

## SessionRegistry
Maps an opaque cookie value to its resolver. Closed and idle sessions are
dropped lazily by `get()` and `open()`, and in bulk by `sweep()`, which the
application schedules with APScheduler.
"""
import asyncio
import logging
import secrets
import time
from typing import Callable, Dict, Optional

from pydantic import BaseModel

from agency.core.identity import IdentityProvider
from agency.core.roles import RoleResolver
from agency.schemas.principal import Principal
from agency.schemas.user import UserProfile

logger = logging.getLogger("agency.session")


class SessionState(BaseModel):
    principal: Optional[Principal] = None
    role: Optional[str] = None
    profile: Optional[UserProfile] = None
    loading: bool = True

    model_config = {"frozen": True}


SessionObserver = Callable[[SessionState], None]


class SessionResolver:
    def __init__(self, identity: IdentityProvider, roles: RoleResolver):
        self.identity = identity
        self._roles = roles
        self._state = SessionState()
        self._generation = 0
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._pending: Optional[asyncio.Task] = None
        self._observers: list[SessionObserver] = []
        self._settled = asyncio.Event()
        self._closed = False
        self.last_seen = time.monotonic()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def generation(self) -> int:
        return self._generation

    def observe(self, observer: SessionObserver) -> Callable[[], None]:
        self._observers.append(observer)
        observer(self._state)

        def unobserve() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unobserve

    def start(self) -> None:
        if self._closed or self._unsubscribe is not None:
            return
        self._unsubscribe = self.identity.subscribe(self._on_auth_change)

    def shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._cancel_pending()
        self._observers.clear()
        self._settled.set()

    async def close(self) -> None:
        self.shutdown()

    async def __aenter__(self) -> "SessionResolver":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def touch(self) -> None:
        self.last_seen = time.monotonic()

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def _publish(self, state: SessionState) -> None:
        if self._closed:
            return
        self._state = state
        if state.loading:
            self._settled.clear()
        else:
            self._settled.set()
        for observer in list(self._observers):
            try:
                observer(state)
            except Exception:
                logger.exception("Session observer failed")

    def _on_auth_change(self, principal: Optional[Principal]) -> None:
        if self._closed:
            return
        current = self._state.principal
        same_uid = (current.uid if current else None) == (principal.uid if principal else None)
        if same_uid and not self._state.loading:
            return
        if same_uid and principal is not None and self._pending is not None:
            # A read for this principal is already in flight.
            return

        self._generation += 1
        self._cancel_pending()
        if principal is None:
            self._publish(SessionState(loading=False))
            return

        self._publish(SessionState(principal=principal, loading=True))
        generation = self._generation
        self._pending = asyncio.get_running_loop().create_task(self._resolve(generation, principal))

    async def _read(self, generation: int, principal: Principal) -> SessionState:
        profile = await self._roles.load_profile(principal.uid)
        state = SessionState(
            principal=principal,
            role=profile.role if profile else None,
            profile=profile,
            loading=False,
        )
        if self._closed or generation != self._generation:
            logger.debug("Dropping stale role read for uid=%s (generation %s)", principal.uid, generation)
        else:
            self._publish(state)
        return state

    async def _resolve(self, generation: int, principal: Principal) -> None:
        try:
            await self._read(generation, principal)
        finally:
            if generation == self._generation:
                self._pending = None

    async def refresh(self) -> SessionState:
        """Fresh role read for the current principal.

        The caller is judged on its own read, even when a newer refresh has
        already replaced the shared state.
        """
        if self._closed:
            return SessionState(loading=False)
        self.touch()
        principal = self._state.principal
        if principal is None:
            return self._state
        self._generation += 1
        self._cancel_pending()
        state = await self._read(self._generation, principal)
        if self._closed:
            return SessionState(loading=False)
        current = self._state.principal
        if current is None or current.uid != principal.uid:
            # Signed out or switched user while reading.
            return self._state
        return state

    async def wait_settled(self, timeout: Optional[float] = None) -> SessionState:
        try:
            await asyncio.wait_for(self._settled.wait(), timeout)
        except asyncio.TimeoutError:
            logger.warning("Session still resolving after %ss", timeout)
        return self._state


IdentityFactory = Callable[[], IdentityProvider]


class SessionRegistry:
    def __init__(self, identity_factory: IdentityFactory, roles: RoleResolver, idle_minutes: int = 120):
        self._identity_factory = identity_factory
        self._roles = roles
        self._idle_seconds = idle_minutes * 60
        self._sessions: Dict[str, SessionResolver] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def _expired(self, resolver: SessionResolver, now: float) -> bool:
        return resolver.closed or now - resolver.last_seen > self._idle_seconds

    def _evict(self, session_id: str) -> None:
        resolver = self._sessions.pop(session_id, None)
        if resolver is not None:
            resolver.shutdown()

    def prune(self, now: Optional[float] = None) -> int:
        """Drop closed and idle sessions. Also called from `open()`."""
        now = time.monotonic() if now is None else now
        expired = [sid for sid, r in self._sessions.items() if self._expired(r, now)]
        for sid in expired:
            self._evict(sid)
        return len(expired)

    def open(self) -> tuple[str, SessionResolver]:
        self.prune()
        session_id = secrets.token_urlsafe(32)
        resolver = SessionResolver(self._identity_factory(), self._roles)
        resolver.start()
        self._sessions[session_id] = resolver
        logger.debug("Opened session (%d active)", len(self._sessions))
        return session_id, resolver

    def get(self, session_id: Optional[str]) -> Optional[SessionResolver]:
        if not session_id:
            return None
        resolver = self._sessions.get(session_id)
        if resolver is None:
            return None
        if self._expired(resolver, time.monotonic()):
            self._evict(session_id)
            return None
        resolver.touch()
        return resolver

    async def close(self, session_id: Optional[str]) -> None:
        resolver = self._sessions.pop(session_id, None) if session_id else None
        if resolver is not None:
            await resolver.close()

    async def sweep(self, now: Optional[float] = None) -> int:
        """Close sessions idle for longer than the configured timeout."""
        closed = self.prune(now)
        if closed:
            logger.info("Closed %d idle session(s)", closed)
        return closed

    async def close_all(self) -> None:
        for sid in list(self._sessions):
            await self.close(sid)
