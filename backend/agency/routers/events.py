"""
# `agency/routers/events.py` - Event management (admin | partner)

All routes are mounted under `/admin` and gated to admins and partners.

| Method | Path | Purpose |
|--------|------|---------|
| GET    | `/admin/events` | list events (filters: DJ, payment status, period) |
| GET    | `/admin/events/{id}` | event details |
| POST   | `/admin/events` | create; `dj_id` must be a DJ profile |
| PATCH  | `/admin/events/{id}` | edit / payment update; `valor_sinal <= valor_total` |
| DELETE | `/admin/events/{id}` | logical delete (`deleted = true`) |
| POST   | `/admin/events/{id}/payment-proofs` | upload a payment proof (multipart) |

Write failures answer 502 with `notify: true`; nothing is retried.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status

from agency.core.access import SessionContext, require_admin
from agency.core.deps import get_events, get_profiles, get_proofs
from agency.repositories.events import EventStore
from agency.repositories.profiles import ProfileStore
from agency.repositories.proofs import ProofStorage
from agency.schemas.event import Event, EventCreate, EventFilter, EventUpdate, PaymentProof, PaymentStatus
from agency.services.events import create_event, delete_event, update_event

MAX_PROOF_BYTES = 10 * 1024 * 1024
PROOF_CONTENT_TYPES = {"application/pdf", "image/jpeg", "image/png", "image/webp"}

admin_router = APIRouter(
    prefix="/events",
    tags=["Admin: Events"],
    dependencies=[Depends(require_admin)],
)


@admin_router.get("", response_model=List[Event])
def list_events(
    dj_id: Optional[str] = Query(None),
    status_pagamento: Optional[PaymentStatus] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    events: EventStore = Depends(get_events),
):
    return events.list(EventFilter(dj_id=dj_id, status_pagamento=status_pagamento, start=start, end=end))


@admin_router.get("/{event_id}", response_model=Event)
def get_event(event_id: str, events: EventStore = Depends(get_events)):
    return events.get(event_id)


@admin_router.post("", response_model=Event, status_code=status.HTTP_201_CREATED)
def create(
    payload: EventCreate,
    ctx: SessionContext = Depends(require_admin),
    events: EventStore = Depends(get_events),
    profiles: ProfileStore = Depends(get_profiles),
):
    event_id = create_event(events, profiles, payload, created_by=ctx.principal.uid)
    return events.get(event_id)


@admin_router.patch("/{event_id}", response_model=Event)
def update(
    event_id: str,
    payload: EventUpdate,
    events: EventStore = Depends(get_events),
    profiles: ProfileStore = Depends(get_profiles),
):
    update_event(events, profiles, event_id, payload)
    return events.get(event_id)


@admin_router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete(
    event_id: str,
    ctx: SessionContext = Depends(require_admin),
    events: EventStore = Depends(get_events),
):
    delete_event(events, event_id, deleted_by=ctx.principal.uid)


@admin_router.post(
    "/{event_id}/payment-proofs",
    response_model=PaymentProof,
    status_code=status.HTTP_201_CREATED,
)
def upload_payment_proof(
    event_id: str,
    file: UploadFile = File(..., description="Comprovante (PDF ou imagem)"),
    events: EventStore = Depends(get_events),
    proofs: ProofStorage = Depends(get_proofs),
):
    if file.content_type not in PROOF_CONTENT_TYPES:
        raise HTTPException(status_code=415, detail="Tipo de arquivo não suportado")
    if file.size is not None and file.size > MAX_PROOF_BYTES:
        raise HTTPException(status_code=413, detail="Arquivo maior que 10MB")

    events.get(event_id)
    proof = proofs.upload(event_id, file.filename or "comprovante", file.file, file.content_type)
    events.add_payment_proof(event_id, proof)
    return proof
