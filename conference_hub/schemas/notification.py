from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict


class OutboxResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    function_name: str
    booking_id: Optional[int] = None
    payload: Dict[str, Any]
    status: str
    attempts: int
    last_error: Optional[str] = None
    created_at: datetime
    sent_at: Optional[datetime] = None


class EventResponse(BaseModel):
    sequence: int
    type: str
    payload: Dict[str, Any]
    created_at: datetime
