import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from conference_hub.db import get_db
from conference_hub.models.notification import NotificationOutbox, OUTBOX_SENT
from conference_hub.schemas.notification import OutboxResponse
from conference_hub.utils.auth import require_admin
from conference_hub.utils.notifications import NotificationDispatcher, get_dispatcher

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/notifications",
    tags=["notifications"],
)


@router.get("/outbox", response_model=List[OutboxResponse])
def get_outbox(
    outbox_status: Optional[str] = Query(None, alias="status"),
    booking_id: Optional[int] = Query(None, alias="bookingId"),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_admin),
):
    """Queued email function calls, newest first."""
    query = db.query(NotificationOutbox)
    if outbox_status is not None:
        query = query.filter(NotificationOutbox.status == outbox_status)
    if booking_id is not None:
        query = query.filter(NotificationOutbox.booking_id == booking_id)
    return query.order_by(NotificationOutbox.id.desc()).offset(skip).limit(limit).all()


@router.post("/outbox/{outbox_id}/retry", response_model=OutboxResponse)
def retry_notification(
    outbox_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_admin),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Deliver a failed or skipped entry again, synchronously.
    """
    entry = db.get(NotificationOutbox, outbox_id)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if entry.status == OUTBOX_SENT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Notification was already sent")

    logger.info(f"Admin {current_user['id']} retrying notification {outbox_id}")
    dispatcher.deliver(entry)
    db.commit()
    db.refresh(entry)
    return entry
