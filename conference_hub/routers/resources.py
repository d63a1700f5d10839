from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from conference_hub.db import get_db
from conference_hub.models.facility import Facility
from conference_hub.models.resource import Resource
from conference_hub.models.user import ROLE_ADMIN
from conference_hub.schemas.resource import ResourceCreate, ResourceResponse, ResourceUpdate
from conference_hub.utils.auth import require_manager


router = APIRouter(
    prefix="/api/resources",
    tags=["resources"],
)


def get_resource_or_404(db: Session, resource_id: int) -> Resource:
    resource = db.query(Resource).filter(Resource.id == resource_id).first()
    if not resource:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Resource not found")
    return resource


def check_resource_facility(db: Session, facility_id: Optional[int], current_user: dict):
    if current_user["role"] == ROLE_ADMIN:
        return
    facility = db.query(Facility).filter(Facility.id == facility_id).first() if facility_id else None
    if facility is None or facility.manager_id != current_user["id"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to manage this resource")


@router.post("", response_model=ResourceResponse, status_code=status.HTTP_201_CREATED)
def create_resource(
    resource: ResourceCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
):
    check_resource_facility(db, resource.facility_id, current_user)
    db_resource = Resource(**resource.model_dump())
    db.add(db_resource)
    db.commit()
    db.refresh(db_resource)
    return db_resource


@router.get("", response_model=List[ResourceResponse])
def get_resources(
    facility_id: Optional[int] = Query(None, alias="facilityId"),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    query = db.query(Resource)
    if facility_id is not None:
        query = query.filter(Resource.facility_id == facility_id)
    return query.order_by(Resource.name).offset(skip).limit(limit).all()


@router.get("/{resource_id}", response_model=ResourceResponse)
def get_resource(resource_id: int, db: Session = Depends(get_db)):
    return get_resource_or_404(db, resource_id)


@router.put("/{resource_id}", response_model=ResourceResponse)
def update_resource(
    resource_id: int,
    resource_update: ResourceUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
):
    db_resource = get_resource_or_404(db, resource_id)
    check_resource_facility(db, db_resource.facility_id, current_user)

    update_data = resource_update.model_dump(exclude_unset=True)
    if "facility_id" in update_data:
        check_resource_facility(db, update_data["facility_id"], current_user)
    for key, value in update_data.items():
        setattr(db_resource, key, value)

    db.commit()
    db.refresh(db_resource)
    return db_resource


@router.delete("/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_resource(
    resource_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_manager),
):
    """
    Delete a resource and detach it from rooms and bookings.
    """
    db_resource = get_resource_or_404(db, resource_id)
    check_resource_facility(db, db_resource.facility_id, current_user)
    db.delete(db_resource)
    db.commit()
    return None
