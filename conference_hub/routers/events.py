from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from conference_hub.schemas.notification import EventResponse
from conference_hub.utils.auth import get_current_user
from conference_hub.utils.events import EventBus, EventType, get_event_bus

router = APIRouter(
    prefix="/api/events",
    tags=["events"],
)


@router.get("", response_model=List[EventResponse])
def get_events(
    since: int = Query(0, ge=0),
    event_type: Optional[EventType] = Query(None, alias="type"),
    current_user: dict = Depends(get_current_user),
    events: EventBus = Depends(get_event_bus),
):
    """
    Poll booking and room changes.

    - **since**: return events with a sequence number greater than this.
    - **type**: e.g. ``booking.created``, ``booking.status_changed``.
    """
    return [
        EventResponse(sequence=event.sequence, type=event.type.value, payload=event.payload, created_at=event.created_at)
        for event in events.since(since, event_type)
    ]
