# agency/repositories/events.py
import logging
from typing import Any, Dict, List

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import firestore as gcf
from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_query import FieldFilter
from pydantic import ValidationError

from agency.core.errors import EventNotFound, ReadFailure, WriteFailure
from agency.schemas.event import Event, EventFilter, PaymentProof

logger = logging.getLogger("agency.events")

COL = "eventos"


class EventStore:
    """`events/{id}` documents. Events are soft-deleted only."""

    def __init__(self, db):
        self._db = db

    def list(self, flt: EventFilter) -> List[Event]:
        q = self._db.collection(COL).where(filter=FieldFilter("deleted", "==", False))
        if flt.dj_id:
            q = q.where(filter=FieldFilter("dj_id", "==", flt.dj_id))
        if flt.status_pagamento:
            q = q.where(filter=FieldFilter("status_pagamento", "==", flt.status_pagamento))
        if flt.start:
            q = q.where(filter=FieldFilter("data_evento", ">=", flt.start))
        if flt.end:
            q = q.where(filter=FieldFilter("data_evento", "<=", flt.end))
        q = q.order_by("data_evento", direction=gcf.Query.ASCENDING)

        try:
            snaps = list(q.stream())
        except GoogleAPIError as exc:
            # Usually a missing composite index on (deleted, dj_id, data_evento).
            logger.error("Event query failed: %s", exc)
            raise ReadFailure("Falha ao carregar a lista de eventos.") from exc

        out: List[Event] = []
        for snap in snaps:
            try:
                event = Event.from_doc(snap.id, snap.to_dict())
            except ValidationError as exc:
                logger.warning("Skipping malformed event %s: %s", snap.id, exc.error_count())
                continue
            if not flt.include_cancelled and event.status_pagamento == "cancelado":
                continue
            out.append(event)
        return out

    def get(self, event_id: str) -> Event:
        snap = self._db.collection(COL).document(event_id).get()
        if not snap.exists:
            raise EventNotFound(f"Evento {event_id} não encontrado")
        event = Event.from_doc(snap.id, snap.to_dict())
        if event.deleted:
            raise EventNotFound(f"Evento {event_id} não encontrado")
        return event

    def create(self, payload: Dict[str, Any], created_by: str) -> str:
        ref = self._db.collection(COL).document()
        doc = {
            **payload,
            "payment_proofs": [],
            "created_by": created_by,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
            "deleted": False,
        }
        try:
            ref.set(doc)
        except GoogleAPIError as exc:
            raise WriteFailure("Falha ao criar o evento. Tente novamente.") from exc
        return ref.id

    def update(self, event_id: str, partial: Dict[str, Any]) -> None:
        try:
            self._db.collection(COL).document(event_id).update({**partial, "updated_at": SERVER_TIMESTAMP})
        except NotFound as exc:
            raise EventNotFound(f"Evento {event_id} não encontrado") from exc
        except GoogleAPIError as exc:
            raise WriteFailure("Falha ao atualizar o evento. Tente novamente.") from exc

    def soft_delete(self, event_id: str, deleted_by: str) -> None:
        self.update(event_id, {
            "deleted": True,
            "deleted_at": SERVER_TIMESTAMP,
            "deleted_by": deleted_by,
        })

    def add_payment_proof(self, event_id: str, proof: PaymentProof) -> None:
        self.update(event_id, {"payment_proofs": gcf.ArrayUnion([proof.model_dump()])})
