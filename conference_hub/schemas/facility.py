from pydantic import BaseModel, ConfigDict
from typing import Dict, Optional


class FacilityBase(BaseModel):
    name: str
    location: Optional[str] = None
    description: Optional[str] = None
    manager_id: Optional[int] = None


class FacilityCreate(FacilityBase):
    pass


class FacilityUpdate(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    manager_id: Optional[int] = None


class FacilityResponse(FacilityBase):
    model_config = ConfigDict(from_attributes=True)

    id: int


class FacilityStats(BaseModel):
    facility_id: int
    room_count: int
    total_bookings: int
    bookings_by_status: Dict[str, int]
    booked_hours: float
