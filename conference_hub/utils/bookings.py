"""Validation and persistence of new bookings.

Every booking is inserted as ``pending`` whatever the client sent. The
check-then-insert sequence runs inside one request without locking, so two
concurrent requests for the same slot can both pass the overlap check.
"""
import logging
from collections import Counter
from datetime import datetime
from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from conference_hub.models.booking import Booking, STATUS_PENDING
from conference_hub.models.resource import Resource
from conference_hub.models.room import Room
from conference_hub.schemas.booking import BookingBase, BookingCreate, BookingBatchCreate
from conference_hub.utils.conflicts import find_blackout, has_conflict, violates_buffer
from conference_hub.utils.events import EventBus, EventType
from conference_hub.utils.lifecycle import expire_pending_bookings, release_unattended_bookings
from conference_hub.utils.notifications import enqueue_booking_created
from conference_hub.utils.quotas import (
    check_booking_quota,
    duration_violation,
    get_room_availability,
    has_same_day_booking,
    window_violation,
)
from conference_hub.utils.validation_helpers import normalize_datetime, utcnow

logger = logging.getLogger(__name__)

SLOT_TAKEN = "Time slot already booked"
SAME_DAY_DUPLICATE = "You already have a booking for this room on this day"
PAST_SLOT = "Cannot book a time slot in the past"


def get_room_or_404(db: Session, room_id: int) -> Room:
    room = db.query(Room).filter(Room.id == room_id).first()
    if not room:
        logger.error(f"Room not found: {room_id}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return room


def ensure_room_bookable(room: Room):
    if room.status != "available":
        logger.error(f"Room {room.id} is {room.status}, not available for booking")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Room not available")


def resolve_resources(db: Session, resource_ids):
    resources = []
    for resource_id in dict.fromkeys(resource_ids):
        resource = db.query(Resource).filter(Resource.id == resource_id).first()
        if resource is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Resource {resource_id} not found")
        if resource.status != "available":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Resource {resource.name} is not available",
            )
        resources.append(resource)
    return resources


def check_headcount(room: Room, data: BookingBase):
    headcount = data.attendee_count or (1 + len(data.attendees) if data.attendees else None)
    if headcount and headcount > room.capacity:
        logger.error(f"Room capacity insufficient: {room.capacity} < {headcount}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Room capacity insufficient")


def _payment_fields(room: Room, start_time: datetime, end_time: datetime):
    if not room.hourly_rate:
        return None, None
    hours = (end_time - start_time).total_seconds() / 3600
    return round(room.hourly_rate * hours, 2), "pending"


def _new_booking(room: Room, user_id: int, data: BookingBase, start_time, end_time, resources) -> Booking:
    amount, payment_status = _payment_fields(room, start_time, end_time)
    return Booking(
        room_id=room.id,
        user_id=user_id,
        title=data.title,
        description=data.description,
        start_time=start_time,
        end_time=end_time,
        status=STATUS_PENDING,
        attendees=data.attendees,
        attendee_count=data.attendee_count,
        payment_amount=amount,
        payment_status=payment_status,
        resources=list(resources),
    )


def _sweep_room(db: Session, room: Room, events: EventBus):
    for expired in expire_pending_bookings(db, room_id=room.id):
        events.publish(EventType.BOOKING_EXPIRED, booking_id=expired.id, room_id=expired.room_id)
    for released in release_unattended_bookings(db, room_id=room.id):
        events.publish(EventType.BOOKING_RELEASED, booking_id=released.id, room_id=released.room_id)


def _conflict_reason(db: Session, room: Room, settings, start_time, end_time):
    if has_conflict(db, room.id, start_time, end_time):
        return SLOT_TAKEN
    blackout = find_blackout(db, room.id, start_time, end_time)
    if blackout:
        return f"Room is unavailable: {blackout.title}"
    if violates_buffer(db, room.id, start_time, end_time, settings.buffer_time):
        return f"Room needs {settings.buffer_time} minutes between bookings"
    return None


def _prepare(db: Session, data: BookingBase, events: EventBus):
    room = get_room_or_404(db, data.room_id)
    ensure_room_bookable(room)
    check_headcount(room, data)
    resources = resolve_resources(db, data.resource_ids)
    _sweep_room(db, room, events)
    return room, resources


def create_booking(db: Session, data: BookingCreate, current_user: dict, events: EventBus):
    """Validate and insert a single booking. Returns ``(booking, outbox_entries)``."""
    logger.debug(f"Creating booking for user: {current_user['email']}, room_id: {data.room_id}")
    room, resources = _prepare(db, data, events)

    if data.start_time < utcnow():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=PAST_SLOT)

    settings = get_room_availability(db, room)
    message = duration_violation(settings, data.start_time, data.end_time) or window_violation(
        settings, data.start_time, data.end_time
    )
    if message:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)

    reason = _conflict_reason(db, room, settings, data.start_time, data.end_time)
    if reason:
        logger.error(f"Slot unavailable for room_id: {room.id}, time: {data.start_time} to {data.end_time}: {reason}")
        if reason == SLOT_TAKEN:
            reason = "Room is already booked for this time slot"
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=reason)

    check_booking_quota(db, current_user["id"], room, data.start_time)

    booking = _new_booking(room, current_user["id"], data, data.start_time, data.end_time, resources)
    db.add(booking)
    db.flush()
    entries = enqueue_booking_created(db, booking.id)
    db.commit()
    db.refresh(booking)
    logger.info(f"Created booking {booking.id} in room {room.id} for user {current_user['id']}")
    events.publish(EventType.BOOKING_CREATED, booking_id=booking.id, room_id=room.id, user_id=booking.user_id)
    return booking, entries


def _slot_failure(db: Session, room: Room, settings, user_id: int, start_time, end_time):
    if end_time <= start_time:
        return "End time must be after start time"
    if start_time < utcnow():
        return PAST_SLOT
    message = duration_violation(settings, start_time, end_time) or window_violation(settings, start_time, end_time)
    if message:
        return message
    reason = _conflict_reason(db, room, settings, start_time, end_time)
    if reason:
        return reason
    if has_same_day_booking(db, user_id, room.id, start_time):
        return SAME_DAY_DUPLICATE
    return None


def create_booking_batch(db: Session, data: BookingBatchCreate, current_user: dict, events: EventBus):
    """Insert one booking per date/time slot, keeping the ones that pass.

    Each slot is checked on its own; accepted slots are flushed before the
    next slot is checked, so slots in the same request see each other.
    Returns ``(created, failed, outbox_entries)``.
    """
    logger.debug(f"Creating {len(data.bookings)} bookings for user: {current_user['email']}, room_id: {data.room_id}")
    room, resources = _prepare(db, data, events)
    settings = get_room_availability(db, room)

    created, failed = [], []
    for slot in data.bookings:
        start_time = normalize_datetime(datetime.combine(slot.date, slot.start_time))
        end_time = normalize_datetime(datetime.combine(slot.date, slot.end_time))
        reason = _slot_failure(db, room, settings, current_user["id"], start_time, end_time)
        if reason:
            logger.debug(f"Slot {slot.date} {slot.start_time}-{slot.end_time} rejected: {reason}")
            failed.append({
                "date": slot.date,
                "start_time": slot.start_time,
                "end_time": slot.end_time,
                "reason": reason,
            })
            continue
        booking = _new_booking(room, current_user["id"], data, start_time, end_time, resources)
        db.add(booking)
        db.flush()
        created.append(booking)

    entries = []
    for booking in created:
        entries.extend(enqueue_booking_created(db, booking.id))
    db.commit()
    for booking in created:
        db.refresh(booking)
        events.publish(EventType.BOOKING_CREATED, booking_id=booking.id, room_id=room.id, user_id=booking.user_id)

    logger.info(f"Batch for room {room.id}: {len(created)} created, {len(failed)} failed")
    return created, failed, entries


def summarize_batch(created, failed):
    return {
        "created": len(created),
        "failed": len(failed),
        "failure_reasons": dict(Counter(item["reason"] for item in failed)),
    }
