from datetime import datetime, time
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Dict, List, Literal, Optional
from conference_hub.utils.validation_helpers import normalize_datetime, validate_interval

RoomStatus = Literal["available", "maintenance", "reserved"]
Weekday = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
BlackoutType = Literal["maintenance", "cleaning", "event", "holiday", "repair", "other"]


class RoomBase(BaseModel):
    name: str
    capacity: int = Field(gt=0)
    location: Optional[str] = None
    facility_id: Optional[int] = None
    status: RoomStatus = "available"
    description: Optional[str] = None
    hourly_rate: float = Field(default=0.0, ge=0)
    currency: str = "USD"


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    name: Optional[str] = None
    capacity: Optional[int] = Field(default=None, gt=0)
    location: Optional[str] = None
    facility_id: Optional[int] = None
    status: Optional[RoomStatus] = None
    description: Optional[str] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = None


class RoomResponse(RoomBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    resource_ids: List[int] = []


class OperatingDay(BaseModel):
    enabled: bool = True
    start: time
    end: time

    @model_validator(mode="after")
    def check_hours(self):
        if self.end <= self.start:
            raise ValueError("Closing time must be after opening time")
        return self


class RoomAvailabilityUpdate(BaseModel):
    """Only the fields sent are changed. Send ``operating_hours: null`` to remove opening hours."""

    max_bookings_per_user_per_day: Optional[int] = Field(default=None, ge=1)
    max_bookings_per_user_per_week: Optional[int] = Field(default=None, ge=1)
    min_booking_duration: Optional[int] = Field(default=None, ge=1)
    max_booking_duration: Optional[int] = Field(default=None, ge=1)
    operating_hours: Optional[Dict[Weekday, OperatingDay]] = None
    buffer_time: Optional[int] = Field(default=None, ge=0)
    advance_booking_days: Optional[int] = Field(default=None, ge=0)
    same_day_booking_enabled: Optional[bool] = None


class RoomAvailabilityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    room_id: int
    max_bookings_per_user_per_day: int
    max_bookings_per_user_per_week: int
    min_booking_duration: int
    max_booking_duration: int
    operating_hours: Optional[Dict[str, OperatingDay]] = None
    buffer_time: int
    advance_booking_days: int
    same_day_booking_enabled: bool


class AvailableSlot(BaseModel):
    start_time: datetime
    end_time: datetime


class RoomBlackoutCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    blackout_type: BlackoutType = "maintenance"
    is_active: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def check_timezone(cls, value):
        return normalize_datetime(value)

    @model_validator(mode="after")
    def check_interval(self):
        validate_interval(self.start_time, self.end_time)
        return self


class RoomBlackoutResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    room_id: int
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    blackout_type: str
    is_active: bool
    created_at: datetime
