"""Booking status transitions, expiry, auto-release, deletion and check-in."""
import logging
from datetime import timedelta
from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from conference_hub.config import CHECK_IN_EARLY_MINUTES, CHECK_IN_GRACE_MINUTES, CONFIRMED_DELETE_NOTICE_HOURS
from conference_hub.models.booking import Booking, STATUS_CANCELLED, STATUS_CONFIRMED, STATUS_PENDING
from conference_hub.models.room import Room
from conference_hub.models.user import ROLE_ADMIN, ROLE_FACILITY_MANAGER
from conference_hub.utils.notifications import (
    FUNCTION_BOOKING_CONFIRMATION,
    FUNCTION_BOOKING_REJECTION,
    enqueue_notification,
)
from conference_hub.utils.validation_helpers import utcnow

logger = logging.getLogger(__name__)

EXPIRED_REASON = "Booking expired before it was approved"
RELEASED_REASON = f"Released automatically: nobody checked in within {CHECK_IN_GRACE_MINUTES} minutes of the start"


def get_booking_or_404(db: Session, booking_id: int) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        logger.error(f"Booking not found: {booking_id}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return booking


def can_manage_room(user: dict, room: Room):
    if user["role"] == ROLE_ADMIN:
        return True
    return (
        user["role"] == ROLE_FACILITY_MANAGER
        and room.facility is not None
        and room.facility.manager_id == user["id"]
    )


def transition_status(db: Session, booking: Booking, new_status: str, actor: dict, rejection_reason=None):
    """Approve or reject a pending booking. Returns ``(booking, outbox_entries)``."""
    if not can_manage_room(actor, booking.room):
        logger.error(f"User {actor['email']} may not change status of booking {booking.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permission denied: Only the facility manager can approve or reject bookings",
        )
    if booking.status != STATUS_PENDING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Only pending bookings can be updated; this booking is {booking.status}",
        )
    if new_status == STATUS_CONFIRMED and booking.start_time < utcnow():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot approve a booking whose start time has passed",
        )

    booking.status = new_status
    if new_status == STATUS_CANCELLED:
        booking.rejection_reason = rejection_reason
        entry = enqueue_notification(
            db, FUNCTION_BOOKING_REJECTION, booking.id, rejection_reason=rejection_reason or "No reason provided"
        )
    else:
        entry = enqueue_notification(db, FUNCTION_BOOKING_CONFIRMATION, booking.id)
    db.commit()
    db.refresh(booking)
    logger.info(f"Booking {booking.id} set to {new_status} by user {actor['id']}")
    return booking, [entry]


def find_expired_pending(db: Session, room_id=None, now=None):
    """Pending bookings whose start time has already passed."""
    query = db.query(Booking).filter(
        Booking.status == STATUS_PENDING,
        Booking.start_time < (now or utcnow()),
    )
    if room_id is not None:
        query = query.filter(Booking.room_id == room_id)
    return query.order_by(Booking.start_time).all()


def expire_pending_bookings(db: Session, room_id=None, now=None):
    """Cancel every pending booking that was not approved before it started."""
    expired = find_expired_pending(db, room_id=room_id, now=now)
    if not expired:
        return []
    for booking in expired:
        logger.info(f"Expiring pending booking {booking.id}: '{booking.title}' scheduled for {booking.start_time}")
        booking.status = STATUS_CANCELLED
        booking.rejection_reason = EXPIRED_REASON
    db.commit()
    return expired


def delete_booking(db: Session, booking: Booking, actor: dict):
    if booking.user_id != actor["id"] and actor["role"] != ROLE_ADMIN:
        logger.error(f"User {actor['email']} not authorized to delete booking {booking.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have permission to delete this booking",
        )

    if booking.status == STATUS_CONFIRMED and actor["role"] != ROLE_ADMIN:
        hours_until_meeting = (booking.start_time - utcnow()).total_seconds() / 3600
        if hours_until_meeting < CONFIRMED_DELETE_NOTICE_HOURS:
            if hours_until_meeting < 0:
                detail = "Cannot delete booking after it has started"
            else:
                detail = (
                    f"Cannot delete confirmed booking less than {CONFIRMED_DELETE_NOTICE_HOURS} "
                    "hours before start time"
                )
            logger.error(f"Deletion of booking {booking.id} refused: {detail}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

    booking_id = booking.id
    db.delete(booking)
    db.commit()
    logger.debug(f"Deleted booking: {booking_id}")


def check_in_booking(db: Session, booking: Booking, actor: dict):
    if booking.user_id != actor["id"] and not can_manage_room(actor, booking.room):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to check in this booking")
    if booking.status != STATUS_CONFIRMED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only confirmed bookings can be checked in")
    if booking.checked_in_at is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Booking is already checked in")

    now = utcnow()
    if now < booking.start_time - timedelta(minutes=CHECK_IN_EARLY_MINUTES):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Check-in opens {CHECK_IN_EARLY_MINUTES} minutes before the meeting starts",
        )
    if now > booking.end_time:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Meeting has already ended")

    booking.checked_in_at = now
    db.commit()
    db.refresh(booking)
    return booking


def find_unattended_bookings(db: Session, room_id=None, now=None):
    """Confirmed bookings still running whose check-in grace period has passed."""
    now = now or utcnow()
    query = db.query(Booking).filter(
        Booking.status == STATUS_CONFIRMED,
        Booking.checked_in_at.is_(None),
        Booking.start_time <= now - timedelta(minutes=CHECK_IN_GRACE_MINUTES),
        Booking.end_time > now,
    )
    if room_id is not None:
        query = query.filter(Booking.room_id == room_id)
    return query.order_by(Booking.start_time).all()


def _release(booking: Booking, now):
    logger.info(f"Releasing unattended booking {booking.id}: '{booking.title}' started {booking.start_time}")
    booking.status = STATUS_CANCELLED
    booking.rejection_reason = RELEASED_REASON
    booking.auto_released_at = now


def release_unattended_bookings(db: Session, room_id=None, now=None):
    """Free the rooms of confirmed meetings nobody checked in to."""
    now = now or utcnow()
    released = find_unattended_bookings(db, room_id=room_id, now=now)
    if not released:
        return []
    for booking in released:
        _release(booking, now)
    db.commit()
    return released


def release_booking(db: Session, booking: Booking, actor: dict, now=None):
    if not can_manage_room(actor, booking.room):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permission denied: Only the facility manager can release bookings",
        )
    now = now or utcnow()
    if booking.status != STATUS_CONFIRMED:
        detail = "Only confirmed bookings can be released"
    elif booking.checked_in_at is not None:
        detail = "Booking is already checked in"
    elif booking.end_time <= now:
        detail = "Meeting has already ended"
    elif now < booking.start_time + timedelta(minutes=CHECK_IN_GRACE_MINUTES):
        detail = f"Check-in grace period of {CHECK_IN_GRACE_MINUTES} minutes has not passed yet"
    else:
        detail = None
    if detail:
        logger.error(f"Release of booking {booking.id} refused: {detail}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

    _release(booking, now)
    db.commit()
    db.refresh(booking)
    return booking
