# agency/services/events.py
"""
Event writes used by the admin routes.

- Every event is assigned to exactly one DJ: `dj_id` must reference a profile
  whose role is `dj`; `dj_nome` is copied from that profile.
- `valor_sinal <= valor_total` is checked against the merged (stored + patch)
  values on every update.
"""
import logging

from agency.core.errors import ProfileNotFound, ValidationFailure
from agency.repositories.events import EventStore
from agency.repositories.profiles import ProfileStore
from agency.schemas.event import EventCreate, EventUpdate

logger = logging.getLogger("agency.events")


def _dj_name(profiles: ProfileStore, dj_id: str) -> str:
    try:
        profile = profiles.get(dj_id)
    except ProfileNotFound:
        raise ValidationFailure("DJ inválido", {"dj_id": "DJ não encontrado."})
    if profile.role != "dj":
        raise ValidationFailure("DJ inválido", {"dj_id": "O usuário selecionado não é DJ."})
    return profile.displayName or profile.email or "DJ sem nome"


def create_event(events: EventStore, profiles: ProfileStore, payload: EventCreate, created_by: str) -> str:
    data = payload.model_dump()
    data["dj_nome"] = _dj_name(profiles, payload.dj_id)
    event_id = events.create(data, created_by)
    logger.info("Event %s created by uid=%s", event_id, created_by)
    return event_id


def update_event(events: EventStore, profiles: ProfileStore, event_id: str, update: EventUpdate) -> None:
    patch = update.to_patch()
    if not patch:
        return
    current = events.get(event_id)

    total = patch.get("valor_total", current.valor_total)
    deposit = patch.get("valor_sinal", current.valor_sinal)
    if deposit > total:
        raise ValidationFailure(
            "Valores inválidos",
            {"valor_sinal": "Valor do sinal não pode ser maior que o valor total."},
        )

    if "dj_id" in patch and patch["dj_id"] != current.dj_id:
        patch["dj_nome"] = _dj_name(profiles, patch["dj_id"])

    events.update(event_id, patch)
    logger.info("Event %s updated: %s", event_id, sorted(patch))


def delete_event(events: EventStore, event_id: str, deleted_by: str) -> None:
    events.get(event_id)
    events.soft_delete(event_id, deleted_by)
    logger.info("Event %s deleted by uid=%s", event_id, deleted_by)
