from datetime import date, datetime, time
from typing import Annotated, Dict, List, Literal, Optional, Union
from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    RootModel,
    Tag,
    field_validator,
    model_validator,
)
from conference_hub.config import MAX_BATCH_BOOKINGS
from conference_hub.schemas.user import UserSummary
from conference_hub.utils.validation_helpers import normalize_datetime, validate_interval


class BookingBase(BaseModel):
    room_id: int
    title: str = Field(min_length=1)
    description: Optional[str] = None
    attendees: Optional[List[str]] = None
    attendee_count: Optional[int] = Field(default=None, ge=1)
    resource_ids: List[int] = []


class BookingCreate(BookingBase):
    """A single booking. Unknown fields such as ``status`` are ignored."""

    start_time: datetime
    end_time: datetime

    @field_validator("start_time", "end_time")
    @classmethod
    def check_timezone(cls, value):
        return normalize_datetime(value)

    @model_validator(mode="after")
    def check_interval(self):
        validate_interval(self.start_time, self.end_time)
        return self


class BatchSlot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: date
    start_time: time = Field(alias="startTime")
    end_time: time = Field(alias="endTime")


class BookingBatchCreate(BookingBase):
    bookings: List[BatchSlot] = Field(min_length=1, max_length=MAX_BATCH_BOOKINGS)


def booking_request_kind(value):
    if isinstance(value, dict):
        return "batch" if "bookings" in value else "single"
    return "batch" if isinstance(value, BookingBatchCreate) else "single"


BookingPayload = Annotated[
    Union[
        Annotated[BookingCreate, Tag("single")],
        Annotated[BookingBatchCreate, Tag("batch")],
    ],
    Discriminator(booking_request_kind),
]


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    room_id: int
    user_id: int
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: str
    rejection_reason: Optional[str] = None
    attendees: Optional[List[str]] = None
    attendee_count: Optional[int] = None
    resource_ids: List[int] = []
    payment_amount: Optional[float] = None
    payment_status: Optional[str] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    checked_in_at: Optional[datetime] = None
    auto_released_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class BookingWithUserResponse(BookingResponse):
    user: UserSummary


class BatchFailure(BaseModel):
    date: date
    start_time: time
    end_time: time
    reason: str


class BatchSummary(BaseModel):
    created: int
    failed: int
    failure_reasons: Dict[str, int]


class BookingBatchResponse(BaseModel):
    created: List[BookingResponse]
    failed: List[BatchFailure]
    summary: BatchSummary


class BookingStatusUpdate(BaseModel):
    status: Literal["confirmed", "cancelled"]
    rejection_reason: Optional[str] = None


class ExpirePendingResponse(BaseModel):
    expired_count: int
    expired_bookings: List[BookingResponse]
    message: str


class AutoReleaseResponse(BaseModel):
    released_count: int
    released_bookings: List[BookingResponse]
    message: str


class CheckInResponse(BaseModel):
    booking_id: int
    checked_in_at: datetime
    message: str


class BookingRequest(RootModel[BookingPayload]):
    """Body of ``POST /api/bookings``: a single booking or a ``bookings`` batch."""
