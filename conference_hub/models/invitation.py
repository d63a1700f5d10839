from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from conference_hub.db import Base


RSVP_PENDING = "pending"
RSVP_ACCEPTED = "accepted"
RSVP_DECLINED = "declined"

ATTENDANCE_NOT_CHECKED_IN = "not_checked_in"
ATTENDANCE_PRESENT = "present"


class MeetingInvitation(Base):
    __tablename__ = "meeting_invitations"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    invitee_email = Column(String, nullable=False)
    invitee_name = Column(String, nullable=True)
    status = Column(String, nullable=False, default=RSVP_PENDING)
    response_token = Column(String, unique=True, nullable=False)
    invited_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    responded_at = Column(DateTime, nullable=True)
    attendance_status = Column(String, nullable=False, default=ATTENDANCE_NOT_CHECKED_IN)
    checked_in_at = Column(DateTime, nullable=True)
    check_in_method = Column(String, nullable=True)

    booking = relationship("Booking", back_populates="invitations")
