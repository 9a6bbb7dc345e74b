"""
Financial summary per DJ (admin | partner | finance).

Totals over the DJ's visible events in a period: number of events, gross value,
DJ costs and the estimated cachê at the DJ's current percentage. Cancelled
events are left out. When the DJ has no valid percentage the cachê is
reported as unknown.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from agency.core.access import require_finance
from agency.core.deps import get_events, get_profiles
from agency.repositories.events import EventStore
from agency.repositories.profiles import ProfileStore
from agency.schemas.event import DJFinancialSummary, EventFilter
from agency.services.finance import summarize_dj_events

router = APIRouter(prefix="/finance", tags=["Finance"], dependencies=[Depends(require_finance)])


@router.get("/dj/{uid}/summary", response_model=DJFinancialSummary)
def dj_summary(
    uid: str,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    events: EventStore = Depends(get_events),
    profiles: ProfileStore = Depends(get_profiles),
):
    profile = profiles.get(uid)
    percentual = profile.dj_percentual if profile.role == "dj" else None
    dj_events = events.list(EventFilter(dj_id=uid, start=start, end=end, include_cancelled=False))
    return summarize_dj_events(uid, dj_events, percentual)
