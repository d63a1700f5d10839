from pydantic import BaseModel, ConfigDict
from typing import Literal, Optional

ResourceStatus = Literal["available", "in-use", "maintenance"]


class ResourceBase(BaseModel):
    name: str
    type: str
    status: ResourceStatus = "available"
    description: Optional[str] = None
    facility_id: Optional[int] = None


class ResourceCreate(ResourceBase):
    pass


class ResourceUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    status: Optional[ResourceStatus] = None
    description: Optional[str] = None
    facility_id: Optional[int] = None


class ResourceResponse(ResourceBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
