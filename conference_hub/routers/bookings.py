import logging
from datetime import date, datetime
from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status
from sqlalchemy import or_, select
from sqlalchemy.orm import Session
from conference_hub.db import get_db
from conference_hub.models.booking import Booking, ACTIVE_STATUSES
from conference_hub.models.facility import Facility
from conference_hub.models.room import Room
from conference_hub.models.user import ROLE_ADMIN, ROLE_FACILITY_MANAGER
from conference_hub.schemas.booking import (
    AutoReleaseResponse,
    BookingBatchCreate,
    BookingBatchResponse,
    BookingRequest,
    BookingResponse,
    BookingStatusUpdate,
    BookingWithUserResponse,
    CheckInResponse,
    ExpirePendingResponse,
)
from conference_hub.utils.auth import get_current_user, get_optional_user, require_manager
from conference_hub.utils.bookings import create_booking, create_booking_batch, summarize_batch
from conference_hub.utils.events import EventBus, EventType, get_event_bus
from conference_hub.utils.lifecycle import (
    check_in_booking,
    delete_booking,
    expire_pending_bookings,
    find_expired_pending,
    find_unattended_bookings,
    get_booking_or_404,
    release_booking,
    release_unattended_bookings,
    transition_status,
)
from conference_hub.utils.notifications import NotificationDispatcher, get_dispatcher
from conference_hub.utils.quotas import day_bounds
from conference_hub.utils.validation_helpers import normalize_datetime

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/bookings",
    tags=["bookings"],
)


def _publish_expired(events: EventBus, expired):
    for booking in expired:
        events.publish(EventType.BOOKING_EXPIRED, booking_id=booking.id, room_id=booking.room_id)


def _publish_released(events: EventBus, released):
    for booking in released:
        events.publish(EventType.BOOKING_RELEASED, booking_id=booking.id, room_id=booking.room_id)


@router.get(
    "",
    response_model=None,
    summary="List bookings",
    description="List bookings for a room (public) or for the caller (requires authentication).",
)
def get_bookings(
    room_id: Optional[int] = Query(None, alias="roomId"),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    on_date: Optional[date] = Query(None, alias="date"),
    include_users: bool = Query(False, alias="includeUsers"),
    booking_status: Optional[str] = Query(None, alias="status"),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: Optional[dict] = Depends(get_optional_user),
    events: EventBus = Depends(get_event_bus),
):
    """
    Retrieve bookings.

    - **roomId**: restrict to one room; no token needed, only active bookings unless **status** is given.
    - **start** / **end**: keep bookings overlapping this window.
    - **date**: keep bookings starting on this day.
    - **includeUsers**: embed the organizer's name and email.
    - **status**: keep bookings in this status.

    Without **roomId** a bearer token is required: admins see every booking,
    facility managers see bookings for the rooms they manage plus their own,
    other users see their own. Listing as a manager or admin also expires
    stale pending bookings and releases unattended confirmed ones.
    """
    query = db.query(Booking)

    if room_id is not None:
        query = query.filter(Booking.room_id == room_id)
        if booking_status is None:
            query = query.filter(Booking.status.in_(ACTIVE_STATUSES))
    else:
        if current_user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authorization required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if current_user["role"] in (ROLE_ADMIN, ROLE_FACILITY_MANAGER):
            _publish_expired(events, expire_pending_bookings(db))
            _publish_released(events, release_unattended_bookings(db))

        if current_user["role"] == ROLE_FACILITY_MANAGER:
            managed_rooms = select(Room.id).join(Facility, Room.facility_id == Facility.id).where(
                Facility.manager_id == current_user["id"]
            )
            query = query.filter(or_(Booking.user_id == current_user["id"], Booking.room_id.in_(managed_rooms)))
        elif current_user["role"] != ROLE_ADMIN:
            query = query.filter(Booking.user_id == current_user["id"])

    if start is not None:
        query = query.filter(Booking.end_time > normalize_datetime(start))
    if end is not None:
        query = query.filter(Booking.start_time < normalize_datetime(end))
    if on_date is not None:
        day_start, day_end = day_bounds(datetime.combine(on_date, datetime.min.time()))
        query = query.filter(Booking.start_time >= day_start, Booking.start_time < day_end)
    if booking_status is not None:
        query = query.filter(Booking.status == booking_status)

    bookings = query.order_by(Booking.start_time).offset(skip).limit(limit).all()
    logger.debug(f"Retrieved {len(bookings)} bookings")
    schema = BookingWithUserResponse if include_users else BookingResponse
    return [schema.model_validate(booking) for booking in bookings]


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=None,
    summary="Create a booking or a batch of bookings",
    description="Create one pending booking, or up to five on different dates. Requires authentication.",
)
def create_bookings(
    payload: BookingRequest,
    background_tasks: BackgroundTasks,
    response: Response,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
    events: EventBus = Depends(get_event_bus),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Create bookings. New bookings are always ``pending``; any ``status`` sent is ignored.

    Single booking body:

    - **room_id**, **title**, **start_time**, **end_time**
    - **description**, **attendees**, **attendee_count**, **resource_ids** (optional)

    Batch body: the same fields without times, plus **bookings**, a list of
    ``{date, start_time, end_time}``. Slots are checked independently; the
    response lists created and failed slots with reasons. If no slot could be
    booked the response is 409.
    """
    data = payload.root
    if isinstance(data, BookingBatchCreate):
        created, failed, entries = create_booking_batch(db, data, current_user, events)
        dispatcher.schedule(background_tasks, entries)
        if not created:
            response.status_code = status.HTTP_409_CONFLICT
        return BookingBatchResponse(
            created=[BookingResponse.model_validate(booking) for booking in created],
            failed=failed,
            summary=summarize_batch(created, failed),
        )

    booking, entries = create_booking(db, data, current_user, events)
    dispatcher.schedule(background_tasks, entries)
    return BookingResponse.model_validate(booking)


@router.get(
    "/expire-pending",
    response_model=List[BookingResponse],
    summary="Preview expired pending bookings",
)
def preview_expired_bookings(
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
):
    """Pending bookings whose start time has passed, without changing them."""
    return find_expired_pending(db)


@router.post(
    "/expire-pending",
    response_model=ExpirePendingResponse,
    summary="Expire pending bookings",
)
def run_expire_pending(
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
    events: EventBus = Depends(get_event_bus),
):
    """Cancel every pending booking whose start time passed without approval."""
    expired = expire_pending_bookings(db)
    _publish_expired(events, expired)
    logger.info(f"User {current_user['id']} expired {len(expired)} pending bookings")
    message = (
        f"Successfully expired {len(expired)} pending booking(s)"
        if expired
        else "No pending bookings to expire"
    )
    return {"expired_count": len(expired), "expired_bookings": expired, "message": message}


@router.get(
    "/auto-release",
    response_model=List[BookingResponse],
    summary="Preview unattended bookings",
)
def preview_unattended_bookings(
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
):
    """Confirmed bookings nobody checked in to within the grace period, without changing them."""
    return find_unattended_bookings(db)


@router.post(
    "/auto-release",
    response_model=AutoReleaseResponse,
    summary="Release unattended bookings",
)
def run_auto_release(
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
    events: EventBus = Depends(get_event_bus),
):
    """Cancel confirmed bookings whose check-in grace period passed without a check-in."""
    released = release_unattended_bookings(db)
    _publish_released(events, released)
    logger.info(f"User {current_user['id']} released {len(released)} unattended bookings")
    message = (
        f"Successfully released {len(released)} booking(s)"
        if released
        else "No unattended bookings to release"
    )
    return {"released_count": len(released), "released_bookings": released, "message": message}


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get a booking by ID",
)
def get_booking(booking_id: int, db: Session = Depends(get_db)):
    """
    Retrieve a specific booking by ID.
    """
    booking = get_booking_or_404(db, booking_id)
    logger.debug(f"Retrieved booking: {booking_id}")
    return booking


@router.patch(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Approve or reject a booking",
    description="Move a pending booking to confirmed or cancelled. Facility manager of the room or admin only.",
)
def update_booking_status(
    booking_id: int,
    update: BookingStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
    events: EventBus = Depends(get_event_bus),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    - **status**: ``confirmed`` or ``cancelled``.
    - **rejection_reason**: optional, stored and shown to the organizer on rejection.
    """
    booking = get_booking_or_404(db, booking_id)
    previous = booking.status
    booking, entries = transition_status(db, booking, update.status, current_user, update.rejection_reason)
    dispatcher.schedule(background_tasks, entries)
    events.publish(
        EventType.BOOKING_STATUS_CHANGED,
        booking_id=booking.id,
        room_id=booking.room_id,
        previous=previous,
        status=booking.status,
    )
    return booking


@router.delete(
    "/{booking_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a booking",
    description="Permanently delete a booking. Organizer or admin only.",
)
def remove_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
    events: EventBus = Depends(get_event_bus),
):
    """
    Organizers cannot delete a confirmed booking less than 24 hours before it starts.
    """
    booking = get_booking_or_404(db, booking_id)
    room_id = booking.room_id
    delete_booking(db, booking, current_user)
    events.publish(EventType.BOOKING_DELETED, booking_id=booking_id, room_id=room_id)
    return None


@router.post(
    "/{booking_id}/check-in",
    response_model=CheckInResponse,
    summary="Check in to a booking",
)
def check_in(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
    events: EventBus = Depends(get_event_bus),
):
    """Mark a confirmed booking as started. Opens 15 minutes before the start time."""
    booking = check_in_booking(db, get_booking_or_404(db, booking_id), current_user)
    events.publish(EventType.BOOKING_CHECKED_IN, booking_id=booking.id, room_id=booking.room_id)
    return {"booking_id": booking.id, "checked_in_at": booking.checked_in_at, "message": "Successfully checked in"}


@router.post(
    "/{booking_id}/auto-release",
    response_model=BookingResponse,
    summary="Release an unattended booking",
)
def auto_release(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
    events: EventBus = Depends(get_event_bus),
):
    """
    Free the room of a confirmed meeting nobody checked in to.
    Facility manager of the room or admin only, once the check-in grace period has passed.
    """
    booking = release_booking(db, get_booking_or_404(db, booking_id), current_user)
    _publish_released(events, [booking])
    return booking
