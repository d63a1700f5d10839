import logging
import uuid
from typing import List
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from conference_hub.db import get_db
from conference_hub.models.booking import Booking, STATUS_CONFIRMED
from conference_hub.models.invitation import (
    MeetingInvitation,
    ATTENDANCE_PRESENT,
)
from conference_hub.models.user import ROLE_ADMIN
from conference_hub.schemas.invitation import (
    AttendanceCheckIn,
    CapacityCheckResponse,
    InvitationBatchResponse,
    InvitationCreate,
    InvitationResponse,
    RsvpRequest,
)
from conference_hub.utils.auth import get_current_user
from conference_hub.utils.capacity import check_invitation_capacity, filter_invitees, invitation_capacity
from conference_hub.utils.events import EventBus, EventType, get_event_bus
from conference_hub.utils.lifecycle import can_manage_room, get_booking_or_404
from conference_hub.utils.notifications import (
    FUNCTION_MEETING_INVITATIONS,
    NotificationDispatcher,
    enqueue_notification,
    get_dispatcher,
)
from conference_hub.utils.validation_helpers import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/meeting-invitations",
    tags=["meeting-invitations"],
)


def get_owned_booking(db: Session, booking_id: int, current_user: dict) -> Booking:
    booking = get_booking_or_404(db, booking_id)
    if booking.user_id != current_user["id"] and current_user["role"] != ROLE_ADMIN:
        logger.error(f"User {current_user['email']} denied access to invitations of booking {booking_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return booking


@router.get("", response_model=List[InvitationResponse])
def list_invitations(
    booking_id: int = Query(..., alias="bookingId"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """
    List the invitations of a booking, newest first. Organizer or admin only.
    """
    booking = get_owned_booking(db, booking_id, current_user)
    return db.query(MeetingInvitation).filter(
        MeetingInvitation.booking_id == booking.id
    ).order_by(MeetingInvitation.invited_at.desc(), MeetingInvitation.id.desc()).all()


@router.get("/capacity-check", response_model=CapacityCheckResponse)
def capacity_check(
    booking_id: int = Query(..., alias="bookingId"),
    new_invitee_count: int = Query(0, alias="newInviteeCount", ge=0),
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """
    Report how many people are invited and whether ``newInviteeCount`` more would fit.
    Read-only.
    """
    booking = get_owned_booking(db, booking_id, current_user)
    return invitation_capacity(db, booking, new_invitee_count)


@router.post("", response_model=InvitationBatchResponse, status_code=status.HTTP_201_CREATED)
def create_invitations(
    invitation: InvitationCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
    events: EventBus = Depends(get_event_bus),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Invite attendees to a confirmed booking.

    - **booking_id**: the booking to invite to.
    - **attendees**: list of ``{name, email}``; or **invitee_emails**, a list of addresses.

    Malformed and duplicate addresses are dropped and reported in ``rejected``.
    If the remaining invitees would push the headcount (organizer included)
    over the room capacity, nothing is created.
    """
    booking = get_owned_booking(db, invitation.booking_id, current_user)
    if booking.status != STATUS_CONFIRMED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only confirmed bookings can have meeting invitations",
        )

    existing_emails = [row.invitee_email for row in booking.invitations]
    accepted, rejected = filter_invitees(
        invitation.all_attendees(), existing_emails, organizer_email=booking.user.email
    )
    if not accepted:
        logger.error(f"No valid invitees for booking {booking.id}: {rejected}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "No valid invitees to add", "rejected": rejected},
        )

    check_invitation_capacity(db, booking, len(accepted))

    created = []
    for name, email in accepted:
        row = MeetingInvitation(
            booking_id=booking.id,
            organizer_id=current_user["id"],
            invitee_email=email,
            invitee_name=name,
            response_token=str(uuid.uuid4()),
        )
        db.add(row)
        created.append(row)
    db.flush()
    entry = enqueue_notification(
        db, FUNCTION_MEETING_INVITATIONS, booking.id, invitation_ids=[row.id for row in created]
    )
    db.commit()
    for row in created:
        db.refresh(row)

    dispatcher.schedule(background_tasks, [entry])
    events.publish(EventType.INVITATIONS_CREATED, booking_id=booking.id, count=len(created))
    logger.info(f"Created {len(created)} invitations for booking {booking.id}, rejected {len(rejected)}")
    return {"invitations": created, "rejected": rejected}


@router.post("/respond", response_model=InvitationResponse)
def respond_to_invitation(
    rsvp: RsvpRequest,
    db: Session = Depends(get_db),
    events: EventBus = Depends(get_event_bus),
):
    """RSVP with the token from the invitation email; no account needed."""
    invitation = db.query(MeetingInvitation).filter(MeetingInvitation.response_token == rsvp.token).first()
    if invitation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")

    invitation.status = rsvp.status
    invitation.responded_at = utcnow()
    db.commit()
    db.refresh(invitation)
    events.publish(
        EventType.INVITATION_RESPONDED,
        booking_id=invitation.booking_id,
        invitation_id=invitation.id,
        status=invitation.status,
    )
    return invitation


@router.post("/{invitation_id}/check-in", response_model=InvitationResponse)
def check_in_attendee(
    invitation_id: int,
    check_in: AttendanceCheckIn,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """Record an invitee as present. Organizer or a manager of the room."""
    invitation = db.get(MeetingInvitation, invitation_id)
    if invitation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")

    booking = invitation.booking
    if booking.user_id != current_user["id"] and not can_manage_room(current_user, booking.room):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    if booking.status != STATUS_CONFIRMED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only confirmed bookings track attendance")
    if invitation.attendance_status == ATTENDANCE_PRESENT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Attendee is already checked in")

    invitation.attendance_status = ATTENDANCE_PRESENT
    invitation.checked_in_at = utcnow()
    invitation.check_in_method = check_in.method
    db.commit()
    db.refresh(invitation)
    return invitation
