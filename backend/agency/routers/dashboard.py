"""
Dashboards.

- `GET /dashboard/admin` (`dashboard-admin`, admin | partner): event counts per
  payment status, amounts still to be received and the next events.
- `GET /dashboard/dj` (`dashboard-dj`, dj): the DJ's next events with the
  estimated cachê and a summary of the current month.
"""
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from agency.core.access import SessionContext, require_admin, require_dj
from agency.core.deps import get_events
from agency.repositories.events import EventStore
from agency.schemas.event import EventFilter
from agency.services.finance import build_schedule_rows, format_currency, summarize_dj_events

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

UPCOMING_LIMIT = 5


def _month_bounds(now: datetime) -> tuple[datetime, datetime]:
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


@router.get("/admin", name="dashboard-admin")
def admin_dashboard(
    ctx: SessionContext = Depends(require_admin),
    events: EventStore = Depends(get_events),
) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    all_events = events.list(EventFilter())
    counts = Counter(e.status_pagamento or "N/A" for e in all_events)
    open_events = [e for e in all_events if e.status_pagamento in ("pendente", "parcial", "vencido")]
    a_receber = sum(max(e.valor_total - e.valor_sinal, 0) for e in open_events)
    upcoming = [e for e in all_events if e.data_evento and e.data_evento >= now][:UPCOMING_LIMIT]
    return {
        "total_eventos": len(all_events),
        "por_status": dict(counts),
        "a_receber": format_currency(a_receber),
        "proximos_eventos": build_schedule_rows(upcoming),
    }


@router.get("/dj", name="dashboard-dj")
def dj_dashboard(
    ctx: SessionContext = Depends(require_dj),
    events: EventStore = Depends(get_events),
) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    percentual = ctx.profile.dj_percentual if ctx.profile else None
    mine = events.list(EventFilter(dj_id=ctx.principal.uid))
    upcoming = [e for e in mine if e.data_evento and e.data_evento >= now and e.status_pagamento != "cancelado"]
    month_start, month_end = _month_bounds(now)
    this_month = [e for e in mine if e.data_evento and month_start <= e.data_evento < month_end]
    return {
        "proximos_eventos": build_schedule_rows(upcoming[:UPCOMING_LIMIT], dj_percentual=percentual, show_cache=True),
        "resumo_mes": summarize_dj_events(ctx.principal.uid, this_month, percentual),
    }
