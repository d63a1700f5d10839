from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, model_validator


class Attendee(BaseModel):
    name: Optional[str] = None
    email: str


class InvitationCreate(BaseModel):
    booking_id: int
    attendees: Optional[List[Attendee]] = None
    # Older clients send bare email addresses
    invitee_emails: Optional[List[str]] = None

    @model_validator(mode="after")
    def check_attendees(self):
        if not self.attendees and not self.invitee_emails:
            raise ValueError("Booking ID and attendees are required")
        return self

    def all_attendees(self):
        if self.attendees:
            return list(self.attendees)
        return [Attendee(email=email) for email in self.invitee_emails]


class InvitationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    booking_id: int
    organizer_id: int
    invitee_email: str
    invitee_name: Optional[str] = None
    status: str
    invited_at: datetime
    responded_at: Optional[datetime] = None
    attendance_status: str
    checked_in_at: Optional[datetime] = None
    check_in_method: Optional[str] = None


class RejectedInvitee(BaseModel):
    email: str
    reason: str


class InvitationBatchResponse(BaseModel):
    invitations: List[InvitationResponse]
    rejected: List[RejectedInvitee]


class CapacityCheckResponse(BaseModel):
    can_invite: bool
    current_count: int
    room_capacity: int
    message: Optional[str] = None


class RsvpRequest(BaseModel):
    token: str
    status: Literal["accepted", "declined"]


class AttendanceCheckIn(BaseModel):
    method: Literal["manual", "qr", "code"] = "manual"
