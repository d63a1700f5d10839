from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, JSON
from sqlalchemy.orm import relationship
from conference_hub.db import Base
from conference_hub.models.resource import booking_resources


STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default=STATUS_PENDING, index=True)
    rejection_reason = Column(String, nullable=True)
    attendees = Column(JSON, nullable=True)
    attendee_count = Column(Integer, nullable=True)
    payment_amount = Column(Float, nullable=True)
    payment_status = Column(String, nullable=True)
    payment_method = Column(String, nullable=True)
    payment_reference = Column(String, nullable=True)
    checked_in_at = Column(DateTime, nullable=True)
    auto_released_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    room = relationship("Room", back_populates="bookings")
    user = relationship("User", back_populates="bookings")
    resources = relationship("Resource", secondary=booking_resources, back_populates="bookings")
    invitations = relationship(
        "MeetingInvitation", back_populates="booking", cascade="all, delete-orphan"
    )

    @property
    def resource_ids(self):
        return [resource.id for resource in self.resources]
