"""
Schedule list view.

Admins and partners see every event (optionally filtered by DJ); a DJ sees only
their own events plus the estimated cachê column; other roles get an empty list.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from agency.core.access import SessionContext, require_authenticated
from agency.core.deps import get_events
from agency.repositories.events import EventStore
from agency.schemas.event import EventFilter, PaymentStatus, ScheduleRow
from agency.schemas.principal import ADMIN_ROLES
from agency.services.finance import build_schedule_rows

router = APIRouter(tags=["Schedule"])


def _matches(row: ScheduleRow, term: str) -> bool:
    term = term.lower()
    return any(term in (value or "").lower() for value in (row.nome_evento, row.local, row.contratante_nome))


@router.get("/schedule", name="schedule", response_model=List[ScheduleRow])
def list_schedule(
    dj_id: Optional[str] = Query(None, description="Filtro por DJ (admin/partner)"),
    status_pagamento: Optional[PaymentStatus] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    q: Optional[str] = Query(None, description="Busca por evento, local ou contratante"),
    ctx: SessionContext = Depends(require_authenticated),
    events: EventStore = Depends(get_events),
):
    flt = EventFilter(status_pagamento=status_pagamento, start=start, end=end)
    if ctx.role in ADMIN_ROLES:
        flt.dj_id = dj_id
        rows = build_schedule_rows(events.list(flt))
    elif ctx.role == "dj":
        flt.dj_id = ctx.principal.uid
        percentual = ctx.profile.dj_percentual if ctx.profile else None
        rows = build_schedule_rows(events.list(flt), dj_percentual=percentual, show_cache=True)
    else:
        return []

    if q:
        rows = [row for row in rows if _matches(row, q)]
    return rows
