from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON
from conference_hub.db import Base


OUTBOX_PENDING = "pending"
OUTBOX_SENT = "sent"
OUTBOX_FAILED = "failed"
OUTBOX_SKIPPED = "skipped"


class NotificationOutbox(Base):
    """One queued call to a serverless email function."""

    __tablename__ = "notification_outbox"

    id = Column(Integer, primary_key=True, index=True)
    function_name = Column(String, nullable=False)
    booking_id = Column(Integer, nullable=True, index=True)
    payload = Column(JSON, nullable=False)
    status = Column(String, nullable=False, default=OUTBOX_PENDING, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    sent_at = Column(DateTime, nullable=True)
