import logging
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from conference_hub.db import get_db
from conference_hub.models.booking import Booking, ACTIVE_STATUSES
from conference_hub.models.facility import Facility
from conference_hub.models.resource import Resource
from conference_hub.models.room import Room, RoomBlackout
from conference_hub.models.user import ROLE_ADMIN
from conference_hub.schemas.room import (
    AvailableSlot,
    RoomAvailabilityResponse,
    RoomAvailabilityUpdate,
    RoomBlackoutCreate,
    RoomBlackoutResponse,
    RoomCreate,
    RoomResponse,
    RoomUpdate,
)
from conference_hub.utils.auth import get_current_user, require_manager
from conference_hub.utils.bookings import get_room_or_404
from conference_hub.utils.events import EventBus, EventType, get_event_bus
from conference_hub.utils.lifecycle import can_manage_room
from conference_hub.utils.quotas import get_room_availability
from conference_hub.utils.scheduler import find_available_slots
from conference_hub.utils.validation_helpers import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/rooms",
    tags=["rooms"],
)


def get_managed_room(db: Session, room_id: int, current_user: dict) -> Room:
    room = get_room_or_404(db, room_id)
    if not can_manage_room(current_user, room):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to manage this room")
    return room


def check_facility_access(db: Session, facility_id: Optional[int], current_user: dict):
    if facility_id is None:
        if current_user["role"] != ROLE_ADMIN:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="facility_id is required")
        return
    facility = db.query(Facility).filter(Facility.id == facility_id).first()
    if not facility:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Facility not found")
    if current_user["role"] != ROLE_ADMIN and facility.manager_id != current_user["id"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to manage this facility")


@router.post("", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
def create_room(
    room: RoomCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
    events: EventBus = Depends(get_event_bus),
):
    """
    Create a new meeting room.
    Requires a facility manager of the target facility, or an admin.
    """
    check_facility_access(db, room.facility_id, current_user)
    db_room = Room(**room.model_dump())
    db.add(db_room)
    db.commit()
    db.refresh(db_room)
    events.publish(EventType.ROOM_CHANGED, room_id=db_room.id, action="created")
    return db_room


@router.get("", response_model=List[RoomResponse])
def get_rooms(
    facility_id: Optional[int] = Query(None, alias="facilityId"),
    room_status: Optional[str] = Query(None, alias="status"),
    min_capacity: Optional[int] = Query(None, alias="minCapacity"),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    """
    Retrieve a list of meeting rooms.
    """
    query = db.query(Room)
    if facility_id is not None:
        query = query.filter(Room.facility_id == facility_id)
    if room_status is not None:
        query = query.filter(Room.status == room_status)
    if min_capacity is not None:
        query = query.filter(Room.capacity >= min_capacity)
    return query.order_by(Room.name).offset(skip).limit(limit).all()


@router.get("/{room_id}", response_model=RoomResponse)
def get_room(room_id: int, db: Session = Depends(get_db)):
    """
    Retrieve a specific meeting room by ID.
    """
    return get_room_or_404(db, room_id)


@router.put("/{room_id}", response_model=RoomResponse)
def update_room(
    room_id: int,
    room_update: RoomUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
    events: EventBus = Depends(get_event_bus),
):
    """
    Update a meeting room's details.
    """
    db_room = get_managed_room(db, room_id, current_user)

    update_data = room_update.model_dump(exclude_unset=True)
    if "facility_id" in update_data and update_data["facility_id"] != db_room.facility_id:
        check_facility_access(db, update_data["facility_id"], current_user)
    for key, value in update_data.items():
        setattr(db_room, key, value)

    db.commit()
    db.refresh(db_room)
    events.publish(EventType.ROOM_CHANGED, room_id=db_room.id, action="updated")
    return db_room


@router.delete("/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
    events: EventBus = Depends(get_event_bus),
):
    """
    Delete a meeting room. Refused while it has active or upcoming bookings.
    """
    db_room = get_managed_room(db, room_id, current_user)

    active = db.query(Booking).filter(
        Booking.room_id == room_id,
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.end_time > utcnow(),
    ).first()
    if active:
        logger.error(f"Room {room_id} still has active booking {active.id}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot delete room with active or future bookings. Cancel all active bookings first.",
        )

    db.delete(db_room)
    db.commit()
    events.publish(EventType.ROOM_CHANGED, room_id=room_id, action="deleted")
    return None


@router.get("/{room_id}/availability", response_model=RoomAvailabilityResponse)
def get_availability(room_id: int, db: Session = Depends(get_db)):
    """Booking rules for the room: per-user quotas, duration bounds, opening hours and buffers."""
    room = get_room_or_404(db, room_id)
    settings = get_room_availability(db, room)
    db.commit()
    return settings


@router.put("/{room_id}/availability", response_model=RoomAvailabilityResponse)
def update_availability(
    room_id: int,
    update: RoomAvailabilityUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
):
    room = get_managed_room(db, room_id, current_user)
    settings = get_room_availability(db, room)
    for key, value in update.model_dump(mode="json", exclude_unset=True).items():
        if value is None and key != "operating_hours":
            continue
        setattr(settings, key, value)
    if settings.min_booking_duration > settings.max_booking_duration:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Minimum booking duration cannot exceed the maximum",
        )
    db.commit()
    db.refresh(settings)
    logger.info(f"Availability for room {room_id} updated by user {current_user['id']}")
    return settings


@router.get("/{room_id}/available-slots", response_model=List[AvailableSlot])
def get_available_slots(
    room_id: int,
    day: date = Query(..., alias="date"),
    duration: int = 60,
    db: Session = Depends(get_db),
):
    """
    List free slots for a room on a day within its operating hours (08:00 to 18:00 when none are set).

    - **date**: day to check (e.g., 2025-05-04).
    - **duration**: slot length in minutes (default: 60).
    """
    if duration <= 0:
        logger.error(f"Invalid duration: {duration}, must be positive")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Duration must be positive")

    room = get_room_or_404(db, room_id)
    slots = find_available_slots(db, room, day, duration)
    logger.debug(f"Found {len(slots)} available slots for room_id: {room_id}")
    return slots


@router.get("/{room_id}/blackouts", response_model=List[RoomBlackoutResponse])
def get_blackouts(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """Periods when the room cannot be booked, such as maintenance or holidays."""
    room = get_room_or_404(db, room_id)
    return db.query(RoomBlackout).filter(RoomBlackout.room_id == room.id).order_by(RoomBlackout.start_time).all()


@router.post("/{room_id}/blackouts", response_model=RoomBlackoutResponse, status_code=status.HTTP_201_CREATED)
def create_blackout(
    room_id: int,
    blackout: RoomBlackoutCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
    events: EventBus = Depends(get_event_bus),
):
    """
    Block the room for a period. Existing bookings are kept; new ones overlapping it are refused.
    """
    room = get_managed_room(db, room_id, current_user)
    db_blackout = RoomBlackout(room_id=room.id, created_by=current_user["id"], **blackout.model_dump())
    db.add(db_blackout)
    db.commit()
    db.refresh(db_blackout)
    logger.info(f"Blackout {db_blackout.id} '{db_blackout.title}' added to room {room.id}")
    events.publish(EventType.ROOM_CHANGED, room_id=room.id, action="blackout_created")
    return db_blackout


@router.delete("/{room_id}/blackouts/{blackout_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_blackout(
    room_id: int,
    blackout_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
    events: EventBus = Depends(get_event_bus),
):
    room = get_managed_room(db, room_id, current_user)
    blackout = db.query(RoomBlackout).filter(
        RoomBlackout.id == blackout_id,
        RoomBlackout.room_id == room.id,
    ).first()
    if not blackout:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Blackout not found")
    db.delete(blackout)
    db.commit()
    events.publish(EventType.ROOM_CHANGED, room_id=room.id, action="blackout_deleted")
    return None


@router.post("/{room_id}/resources/{resource_id}", response_model=RoomResponse)
def assign_resource(
    room_id: int,
    resource_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
):
    room = get_managed_room(db, room_id, current_user)
    resource = db.query(Resource).filter(Resource.id == resource_id).first()
    if not resource:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Resource not found")
    if resource not in room.resources:
        room.resources.append(resource)
        db.commit()
        db.refresh(room)
    return room


@router.delete("/{room_id}/resources/{resource_id}", response_model=RoomResponse)
def unassign_resource(
    room_id: int,
    resource_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
):
    room = get_managed_room(db, room_id, current_user)
    resource = next((r for r in room.resources if r.id == resource_id), None)
    if resource is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Resource is not assigned to this room")
    room.resources.remove(resource)
    db.commit()
    db.refresh(room)
    return room
