import logging
from datetime import date, datetime, time, timedelta
from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from conference_hub.config import (
    DEFAULT_MAX_BOOKINGS_PER_DAY,
    DEFAULT_MAX_BOOKINGS_PER_WEEK,
    DEFAULT_MIN_BOOKING_MINUTES,
    DEFAULT_MAX_BOOKING_MINUTES,
    DEFAULT_BUFFER_MINUTES,
    DEFAULT_ADVANCE_BOOKING_DAYS,
    DAY_START_HOUR,
    DAY_END_HOUR,
)
from conference_hub.models.booking import Booking, ACTIVE_STATUSES
from conference_hub.models.room import Room, RoomAvailability
from conference_hub.utils.validation_helpers import utcnow

logger = logging.getLogger(__name__)


def day_bounds(moment: datetime):
    """Midnight-to-midnight window containing ``moment``."""
    start = datetime.combine(moment.date(), time.min)
    return start, start + timedelta(days=1)


def iso_week_bounds(moment: datetime):
    """Monday 00:00 to the following Monday 00:00 around ``moment``."""
    day_start, _ = day_bounds(moment)
    week_start = day_start - timedelta(days=moment.weekday())
    return week_start, week_start + timedelta(days=7)


def get_room_availability(db: Session, room: Room) -> RoomAvailability:
    """Fetch the room's booking rules, creating the default record if missing."""
    if room.availability is None:
        logger.debug(f"Creating default availability settings for room {room.id}")
        room.availability = RoomAvailability(
            max_bookings_per_user_per_day=DEFAULT_MAX_BOOKINGS_PER_DAY,
            max_bookings_per_user_per_week=DEFAULT_MAX_BOOKINGS_PER_WEEK,
            min_booking_duration=DEFAULT_MIN_BOOKING_MINUTES,
            max_booking_duration=DEFAULT_MAX_BOOKING_MINUTES,
            buffer_time=DEFAULT_BUFFER_MINUTES,
            advance_booking_days=DEFAULT_ADVANCE_BOOKING_DAYS,
            same_day_booking_enabled=True,
        )
        db.flush()
    return room.availability


def count_user_bookings(db: Session, user_id: int, room_id: int, window_start, window_end):
    return db.query(Booking).filter(
        Booking.user_id == user_id,
        Booking.room_id == room_id,
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.start_time >= window_start,
        Booking.start_time < window_end,
    ).count()


def _limit_message(limit: int, period: str):
    noun = "booking" if limit == 1 else "bookings"
    return f"You have reached the maximum of {limit} {noun} per {period} for this room"


def quota_violation(db: Session, user_id: int, room: Room, start_time: datetime):
    """Return the message for the first exceeded limit (daily, then weekly), or None."""
    settings = get_room_availability(db, room)

    daily = count_user_bookings(db, user_id, room.id, *day_bounds(start_time))
    if daily >= settings.max_bookings_per_user_per_day:
        logger.debug(f"User {user_id} has {daily} bookings on {start_time.date()} in room {room.id}")
        return _limit_message(settings.max_bookings_per_user_per_day, "day")

    weekly = count_user_bookings(db, user_id, room.id, *iso_week_bounds(start_time))
    if weekly >= settings.max_bookings_per_user_per_week:
        logger.debug(f"User {user_id} has {weekly} bookings in the week of {start_time.date()} in room {room.id}")
        return _limit_message(settings.max_bookings_per_user_per_week, "week")

    return None


def check_booking_quota(db: Session, user_id: int, room: Room, start_time: datetime):
    message = quota_violation(db, user_id, room, start_time)
    if message:
        logger.error(f"Quota exceeded for user {user_id} in room {room.id}: {message}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def has_same_day_booking(db: Session, user_id: int, room_id: int, moment: datetime):
    return count_user_bookings(db, user_id, room_id, *day_bounds(moment)) > 0


def duration_violation(settings: RoomAvailability, start_time: datetime, end_time: datetime):
    minutes = (end_time - start_time).total_seconds() / 60
    if minutes < settings.min_booking_duration:
        return f"Booking must last at least {settings.min_booking_duration} minutes"
    if minutes > settings.max_booking_duration:
        return f"Booking cannot last more than {settings.max_booking_duration} minutes"
    return None


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def _parse_hour(value: str) -> time:
    return time.fromisoformat(value)


def operating_window(settings: RoomAvailability, day: date):
    """Opening and closing datetimes of the room on ``day``, or None when it is closed.

    Rooms without operating hours use the default 08:00-18:00 window.
    """
    midnight = datetime.combine(day, time.min)
    if not settings.operating_hours:
        return midnight + timedelta(hours=DAY_START_HOUR), midnight + timedelta(hours=DAY_END_HOUR)
    day_hours = settings.operating_hours.get(WEEKDAYS[day.weekday()])
    if not day_hours or not day_hours.get("enabled"):
        return None
    return (
        datetime.combine(day, _parse_hour(day_hours["start"])),
        datetime.combine(day, _parse_hour(day_hours["end"])),
    )


def window_violation(settings: RoomAvailability, start_time: datetime, end_time: datetime, now=None):
    """Return why the slot falls outside the room's booking window, or None.

    Checks the advance-booking limit, same-day bookings and, when the room
    has them, its operating hours.
    """
    today = (now or utcnow()).date()
    if start_time.date() > today + timedelta(days=settings.advance_booking_days):
        return f"Bookings only allowed up to {settings.advance_booking_days} days in advance"
    if not settings.same_day_booking_enabled and start_time.date() == today:
        return "Same-day bookings are not allowed for this room"

    if settings.operating_hours:
        day_name = WEEKDAYS[start_time.weekday()]
        window = operating_window(settings, start_time.date())
        if window is None:
            return f"Room closed on {day_name.capitalize()}s"
        opens, closes = window
        if start_time < opens or end_time > closes:
            return (
                f"Bookings on {day_name.capitalize()}s must be between "
                f"{opens:%H:%M} and {closes:%H:%M}"
            )
    return None
