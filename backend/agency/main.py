"""
# `agency/main.py` - Application entry point

## Application
`create_app()` builds the FastAPI application: CORS from
`settings.allowed_origins`, error handlers, routers, and the shared state
(`settings`, Firestore `db`, Storage `bucket`, profile store, role resolver and
session registry).

Firebase Admin is initialised on startup unless a `db`/`bucket` pair is
injected (tests do this).

## Routers
**Public / any signed-in user:**
- `/login`, `/auth`
- `/users/me`
- `/schedule`
- `/dashboard/admin`, `/dashboard/dj`
- `/finance`

**Admin routers (prefix `/admin`, admin | partner):**
- `/users`
- `/events`

## Background scheduler
- **Library:** APScheduler (`AsyncIOScheduler`)
- **Job:** `sweep_idle_sessions`, every `settings.session_sweep_minutes`
  (disabled with 0). Closes sessions idle for more than
  `settings.session_idle_minutes`.

**Events:**
- `startup`: Firebase, stores and scheduler.
- `shutdown`: scheduler stopped, every open session closed.
"""
import logging
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agency.config import Settings, get_settings, init_firebase
from agency.core.errors import register_error_handlers
from agency.core.identity import FirebaseIdentityClient, IdentityProvider
from agency.core.roles import RoleResolver
from agency.core.session import SessionRegistry
from agency.repositories.profiles import ProfileStore
from agency.routers import auth, dashboard, events, finance, schedule, users

logger = logging.getLogger("agency")


def create_app(
    settings: Optional[Settings] = None,
    db=None,
    bucket=None,
    identity_factory: Optional[Callable[[], IdentityProvider]] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="DJ Agency Console API",
        description="Backend for the DJ booking agency console: schedule, DJ roster, payments and user roles.",
        version="1.0.0",
        redirect_slashes=False,
    )
    app.state.settings = settings

    # CORS: front-end domains from settings, or all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(schedule.router)
    app.include_router(dashboard.router)
    app.include_router(finance.router)

    # Include admin routers (with prefix /admin)
    app.include_router(users.admin_router, prefix="/admin")
    app.include_router(events.admin_router, prefix="/admin")

    scheduler = AsyncIOScheduler()
    factory = identity_factory or (lambda: FirebaseIdentityClient(settings))

    async def sweep_idle_sessions():
        await app.state.sessions.sweep()

    @app.on_event("startup")
    async def _startup():
        if db is None:
            app.state.db, app.state.bucket = init_firebase(settings)
        else:
            app.state.db, app.state.bucket = db, bucket
        app.state.profiles = ProfileStore(app.state.db)
        app.state.sessions = SessionRegistry(
            factory,
            RoleResolver(app.state.profiles),
            idle_minutes=settings.session_idle_minutes,
        )
        if settings.session_sweep_minutes > 0 and not scheduler.running:
            scheduler.add_job(
                sweep_idle_sessions,
                "interval",
                minutes=settings.session_sweep_minutes,
                id="session-sweep",
                replace_existing=True,
            )
            scheduler.start()
        logger.info("Console started")

    @app.on_event("shutdown")
    async def _shutdown():
        if scheduler.running:
            scheduler.shutdown(wait=False)
        await app.state.sessions.close_all()

    return app


# Run the app directly with uvicorn (for development)
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("agency.main:create_app", factory=True, host="0.0.0.0", port=8000, reload=True)
