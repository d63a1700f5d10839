from datetime import datetime
from sqlalchemy.orm import relationship
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, JSON
from conference_hub.db import Base
from conference_hub.models.resource import room_resources


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=True)
    name = Column(String, index=True, nullable=False)
    capacity = Column(Integer, nullable=False)
    location = Column(String, nullable=True)
    status = Column(String, nullable=False, default="available")
    description = Column(String, nullable=True)
    hourly_rate = Column(Float, nullable=False, default=0.0)
    currency = Column(String, nullable=False, default="USD")

    facility = relationship("Facility", back_populates="rooms")
    resources = relationship("Resource", secondary=room_resources, back_populates="rooms")
    availability = relationship(
        "RoomAvailability", back_populates="room", uselist=False, cascade="all, delete-orphan"
    )
    blackouts = relationship(
        "RoomBlackout", back_populates="room", cascade="all, delete-orphan"
    )
    bookings = relationship(
        "Booking", back_populates="room", cascade="all, delete-orphan"
    )

    @property
    def resource_ids(self):
        return [resource.id for resource in self.resources]


class RoomAvailability(Base):
    """Per-room booking rules. Rows are created with defaults on first use.

    ``operating_hours`` maps weekday names to ``{"enabled", "start", "end"}``
    with ISO times; when it is empty the room has no opening hours.
    """

    __tablename__ = "room_availability"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), unique=True, nullable=False)
    max_bookings_per_user_per_day = Column(Integer, nullable=False)
    max_bookings_per_user_per_week = Column(Integer, nullable=False)
    min_booking_duration = Column(Integer, nullable=False)
    max_booking_duration = Column(Integer, nullable=False)
    operating_hours = Column(JSON, nullable=True)
    buffer_time = Column(Integer, nullable=False, default=0)
    advance_booking_days = Column(Integer, nullable=False, default=30)
    same_day_booking_enabled = Column(Boolean, nullable=False, default=True)

    room = relationship("Room", back_populates="availability")


class RoomBlackout(Base):
    """A period in which the room cannot be booked."""

    __tablename__ = "room_blackouts"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    blackout_type = Column(String, nullable=False, default="maintenance")
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    room = relationship("Room", back_populates="blackouts")
