import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from conference_hub.db import get_db
from conference_hub.models.booking import Booking, STATUS_CANCELLED
from conference_hub.models.facility import Facility
from conference_hub.models.resource import Resource
from conference_hub.models.room import Room
from conference_hub.models.user import User, ROLE_ADMIN, ROLE_FACILITY_MANAGER
from conference_hub.schemas.facility import FacilityCreate, FacilityResponse, FacilityStats, FacilityUpdate
from conference_hub.utils.auth import require_admin, require_manager

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/facilities",
    tags=["facilities"],
)


def get_facility_or_404(db: Session, facility_id: int) -> Facility:
    facility = db.query(Facility).filter(Facility.id == facility_id).first()
    if not facility:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Facility not found")
    return facility


def check_manager(db: Session, manager_id):
    if manager_id is None:
        return
    manager = db.get(User, manager_id)
    if manager is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Manager not found")
    if manager.role not in (ROLE_FACILITY_MANAGER, ROLE_ADMIN):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Facility manager must have the facility_manager or admin role",
        )


def check_facility_owner(facility: Facility, current_user: dict):
    if current_user["role"] != ROLE_ADMIN and facility.manager_id != current_user["id"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to manage this facility")


@router.post("", response_model=FacilityResponse, status_code=status.HTTP_201_CREATED)
def create_facility(
    facility: FacilityCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_admin),
):
    """
    Create a facility. Admin only.
    """
    check_manager(db, facility.manager_id)
    db_facility = Facility(**facility.model_dump())
    db.add(db_facility)
    db.commit()
    db.refresh(db_facility)
    logger.info(f"Facility {db_facility.id} created by user {current_user['id']}")
    return db_facility


@router.get("", response_model=List[FacilityResponse])
def get_facilities(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return db.query(Facility).order_by(Facility.name).offset(skip).limit(limit).all()


@router.get("/{facility_id}", response_model=FacilityResponse)
def get_facility(facility_id: int, db: Session = Depends(get_db)):
    return get_facility_or_404(db, facility_id)


@router.put("/{facility_id}", response_model=FacilityResponse)
def update_facility(
    facility_id: int,
    facility_update: FacilityUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
):
    """
    Update a facility. Its manager may edit details; only admins may reassign the manager.
    """
    db_facility = get_facility_or_404(db, facility_id)
    check_facility_owner(db_facility, current_user)

    update_data = facility_update.model_dump(exclude_unset=True)
    if "manager_id" in update_data:
        if current_user["role"] != ROLE_ADMIN:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can reassign facilities")
        check_manager(db, update_data["manager_id"])
    for key, value in update_data.items():
        setattr(db_facility, key, value)

    db.commit()
    db.refresh(db_facility)
    return db_facility


@router.delete("/{facility_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_facility(
    facility_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_admin),
):
    """
    Delete a facility. Refused while rooms or resources still belong to it.
    """
    db_facility = get_facility_or_404(db, facility_id)

    room_count = db.query(Room).filter(Room.facility_id == facility_id).count()
    resource_count = db.query(Resource).filter(Resource.facility_id == facility_id).count()
    if room_count or resource_count:
        logger.error(f"Facility {facility_id} has {room_count} rooms and {resource_count} resources")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"Cannot delete facility with {room_count} associated room(s) and "
                f"{resource_count} resource(s). Please delete or reassign them first."
            ),
        )

    db.delete(db_facility)
    db.commit()
    return None


@router.get("/{facility_id}/stats", response_model=FacilityStats)
def facility_stats(
    facility_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
):
    """
    Booking counts per status and total hours booked (cancelled excluded) across the facility's rooms.
    """
    facility = get_facility_or_404(db, facility_id)
    check_facility_owner(facility, current_user)

    room_ids = [room.id for room in facility.rooms]
    rows = db.query(Booking.status, func.count(Booking.id)).filter(
        Booking.room_id.in_(room_ids)
    ).group_by(Booking.status).all()
    by_status = {row_status: count for row_status, count in rows}

    booked = db.query(Booking.start_time, Booking.end_time).filter(
        Booking.room_id.in_(room_ids),
        Booking.status != STATUS_CANCELLED,
    ).all()
    booked_hours = sum((end - start).total_seconds() for start, end in booked) / 3600

    return {
        "facility_id": facility.id,
        "room_count": len(room_ids),
        "total_bookings": sum(by_status.values()),
        "bookings_by_status": by_status,
        "booked_hours": round(booked_hours, 2),
    }
