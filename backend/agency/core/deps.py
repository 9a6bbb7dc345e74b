# agency/core/deps.py
from fastapi import Request

from agency.config import Settings
from agency.core.session import SessionRegistry
from agency.repositories.events import EventStore
from agency.repositories.profiles import ProfileStore
from agency.repositories.proofs import ProofStorage


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_profiles(request: Request) -> ProfileStore:
    return request.app.state.profiles


def get_events(request: Request) -> EventStore:
    return EventStore(request.app.state.db)


def get_proofs(request: Request) -> ProofStorage:
    settings = request.app.state.settings
    return ProofStorage(
        request.app.state.bucket,
        public=settings.proof_public,
        expires_hours=settings.proof_url_expires_hours,
    )
