from sqlalchemy import Column, Integer, String, ForeignKey, Table
from sqlalchemy.orm import relationship
from conference_hub.db import Base


RESOURCE_STATUSES = ("available", "in-use", "maintenance")


room_resources = Table(
    "room_resources",
    Base.metadata,
    Column("room_id", Integer, ForeignKey("rooms.id", ondelete="CASCADE"), primary_key=True),
    Column("resource_id", Integer, ForeignKey("resources.id", ondelete="CASCADE"), primary_key=True),
)

booking_resources = Table(
    "booking_resources",
    Base.metadata,
    Column("booking_id", Integer, ForeignKey("bookings.id", ondelete="CASCADE"), primary_key=True),
    Column("resource_id", Integer, ForeignKey("resources.id", ondelete="CASCADE"), primary_key=True),
)


class Resource(Base):
    __tablename__ = "resources"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    type = Column(String, nullable=False)
    status = Column(String, nullable=False, default="available")
    description = Column(String, nullable=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=True)

    facility = relationship("Facility", back_populates="resources")
    rooms = relationship("Room", secondary=room_resources, back_populates="resources")
    bookings = relationship("Booking", secondary=booking_resources, back_populates="resources")
