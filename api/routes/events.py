"""Bridge event feed for monitors and indexers."""

from fastapi import APIRouter, Query

from api.models import EventsResponse
from api.stores import get_events

router = APIRouter(tags=["events"])


@router.get("/events", response_model=EventsResponse, summary="Recent bridge events")
def get_recent_events(
    limit: int = Query(50, ge=1, le=200),
    event_type: str | None = Query(None, description="request_issued or recommendation_updated"),
):
    events = get_events().recent(limit=limit, event_type=event_type)
    return {"events": events, "total": len(events)}
