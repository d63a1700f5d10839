import logging
from fastapi import HTTPException, status
from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy.orm import Session
from conference_hub.models.booking import Booking
from conference_hub.models.invitation import MeetingInvitation

logger = logging.getLogger(__name__)

email_adapter = TypeAdapter(EmailStr)


def count_invitations(db: Session, booking_id: int):
    return db.query(MeetingInvitation).filter(MeetingInvitation.booking_id == booking_id).count()


def filter_invitees(attendees, existing_emails, organizer_email=None):
    """Split attendees into accepted ``(name, email)`` pairs and rejected entries.

    Emails are trimmed and lower-cased before comparison, so duplicates are
    caught regardless of case, both against ``existing_emails`` and within the
    batch itself.
    """
    existing = {email.lower() for email in existing_emails}
    seen = set(existing)
    organizer = organizer_email.lower() if organizer_email else None
    accepted, rejected = [], []

    for attendee in attendees:
        email = (attendee.email or "").strip().lower()
        try:
            email_adapter.validate_python(email)
        except ValidationError:
            rejected.append({"email": attendee.email, "reason": "Invalid email address"})
            continue
        if email == organizer:
            rejected.append({"email": email, "reason": "Organizer is already attending"})
            continue
        if email in seen:
            reason = "Already invited" if email in existing else "Duplicate email in request"
            rejected.append({"email": email, "reason": reason})
            continue
        seen.add(email)
        name = attendee.name.strip() if attendee.name and attendee.name.strip() else None
        accepted.append((name, email))

    return accepted, rejected


def invitation_capacity(db: Session, booking: Booking, new_invitee_count: int):
    """Headcount check: organizer + existing invitations + new invitees vs. room capacity."""
    current_count = count_invitations(db, booking.id)
    room_capacity = booking.room.capacity
    total = 1 + current_count + new_invitee_count
    can_invite = total <= room_capacity

    message = None
    if not can_invite:
        people = "person" if new_invitee_count == 1 else "people"
        message = (
            f"Cannot invite {new_invitee_count} more {people}. Room capacity is {room_capacity}, "
            f"current invitations: {current_count} (plus organizer), total would be {total}."
        )
    return {
        "can_invite": can_invite,
        "current_count": current_count,
        "room_capacity": room_capacity,
        "message": message,
    }


def check_invitation_capacity(db: Session, booking: Booking, new_invitee_count: int):
    result = invitation_capacity(db, booking, new_invitee_count)
    if not result["can_invite"]:
        logger.error(f"Capacity exceeded for booking {booking.id}: {result['message']}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result["message"])
    return result
