from datetime import date, timedelta
from sqlalchemy.orm import Session
from conference_hub.models.booking import Booking, ACTIVE_STATUSES
from conference_hub.models.room import Room, RoomBlackout
from conference_hub.utils.quotas import get_room_availability, operating_window


def _busy_intervals(db: Session, room: Room, day_start, day_end, buffer_minutes: int):
    gap = timedelta(minutes=buffer_minutes)

    # Bookings that touch the window, including ones spilling over its edges
    bookings = db.query(Booking).filter(
        Booking.room_id == room.id,
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.start_time < day_end + gap,
        Booking.end_time > day_start - gap,
    ).all()
    blackouts = db.query(RoomBlackout).filter(
        RoomBlackout.room_id == room.id,
        RoomBlackout.is_active.is_(True),
        RoomBlackout.start_time < day_end,
        RoomBlackout.end_time > day_start,
    ).all()

    busy = [(booking.start_time - gap, booking.end_time + gap) for booking in bookings]
    busy.extend((blackout.start_time, blackout.end_time) for blackout in blackouts)
    return sorted(busy)


def find_available_slots(db: Session, room: Room, day: date, duration: int = 60):
    """
    List free slots of ``duration`` minutes in the room's operating window for a day.

    Closed days have no slots. Bookings block their own time plus the room's
    buffer on each side; active blackouts block their whole span.
    """
    settings = get_room_availability(db, room)
    window = operating_window(settings, day)
    if window is None:
        return []
    day_start, day_end = window

    slots = []
    current_time = day_start
    duration_delta = timedelta(minutes=duration)

    for busy_start, busy_end in _busy_intervals(db, room, day_start, day_end, settings.buffer_time):
        while current_time + duration_delta <= busy_start:
            slot_end = current_time + duration_delta
            slots.append({"start_time": current_time, "end_time": slot_end})
            current_time = slot_end
        current_time = max(current_time, busy_end)

    while current_time + duration_delta <= day_end:
        slot_end = current_time + duration_delta
        slots.append({"start_time": current_time, "end_time": slot_end})
        current_time = slot_end

    return slots
