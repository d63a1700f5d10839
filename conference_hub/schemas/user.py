from datetime import datetime
from typing import Literal
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=8)


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str


class UserResponse(UserSummary):
    role: str
    created_at: datetime


class RoleUpdate(BaseModel):
    role: Literal["user", "facility_manager", "admin"]


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
