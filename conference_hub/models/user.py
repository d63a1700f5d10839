from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from conference_hub.db import Base


ROLE_USER = "user"
ROLE_FACILITY_MANAGER = "facility_manager"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_FACILITY_MANAGER, ROLE_ADMIN)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=ROLE_USER)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    bookings = relationship("Booking", back_populates="user")
    managed_facilities = relationship("Facility", back_populates="manager")
