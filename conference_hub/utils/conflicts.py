"""Overlap detection for room bookings.

Intervals are half-open: a booking ending at 10:00 does not conflict with one
starting at 10:00. Only ``pending`` and ``confirmed`` bookings occupy a slot;
a room buffer widens the candidate interval on both sides. Active blackouts
block every slot they overlap.
"""
import logging
from datetime import timedelta
from sqlalchemy.orm import Session
from conference_hub.models.booking import Booking, ACTIVE_STATUSES
from conference_hub.models.room import RoomBlackout

logger = logging.getLogger(__name__)


def find_conflicting_booking(db: Session, room_id: int, start_time, end_time, exclude_booking_id=None):
    """Return the first active booking in the room overlapping the interval, if any."""
    query = db.query(Booking).filter(
        Booking.room_id == room_id,
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.start_time < end_time,
        Booking.end_time > start_time,
    )
    if exclude_booking_id is not None:
        query = query.filter(Booking.id != exclude_booking_id)
    return query.order_by(Booking.start_time).first()


def has_conflict(db: Session, room_id: int, start_time, end_time, exclude_booking_id=None):
    conflicting = find_conflicting_booking(db, room_id, start_time, end_time, exclude_booking_id)
    if conflicting is not None:
        logger.debug(
            f"Room {room_id}: {start_time} to {end_time} overlaps booking {conflicting.id} "
            f"({conflicting.start_time} to {conflicting.end_time})"
        )
        return True
    return False


def find_blackout(db: Session, room_id: int, start_time, end_time):
    """Return the first active blackout of the room overlapping the interval, if any."""
    return db.query(RoomBlackout).filter(
        RoomBlackout.room_id == room_id,
        RoomBlackout.is_active.is_(True),
        RoomBlackout.start_time < end_time,
        RoomBlackout.end_time > start_time,
    ).order_by(RoomBlackout.start_time).first()


def violates_buffer(db: Session, room_id: int, start_time, end_time, buffer_minutes: int):
    """True when another booking sits within ``buffer_minutes`` of the interval."""
    if not buffer_minutes:
        return False
    gap = timedelta(minutes=buffer_minutes)
    return has_conflict(db, room_id, start_time - gap, end_time + gap)
