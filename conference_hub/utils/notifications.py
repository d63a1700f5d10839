"""Outbox-backed delivery of booking emails through serverless functions.

Writers add ``NotificationOutbox`` rows in the same transaction as the
booking change. After the response is sent, ``NotificationDispatcher`` calls
the functions and records the outcome on each row. Failures are logged and
left on the row for a manual retry; they never affect the booking.
"""
import logging
import requests
from fastapi import BackgroundTasks, Request
from sqlalchemy.orm import Session
from conference_hub.config import FUNCTIONS_URL, FUNCTIONS_KEY, FUNCTIONS_TIMEOUT
from conference_hub.models.notification import (
    NotificationOutbox,
    OUTBOX_FAILED,
    OUTBOX_SENT,
    OUTBOX_SKIPPED,
)
from conference_hub.utils.validation_helpers import utcnow

logger = logging.getLogger(__name__)

FUNCTION_BOOKING_SUBMITTED = "send-booking-request-submitted"
FUNCTION_MANAGER_NOTIFICATION = "send-facility-manager-booking-notification"
FUNCTION_BOOKING_CONFIRMATION = "send-booking-confirmation"
FUNCTION_BOOKING_REJECTION = "send-booking-rejection"
FUNCTION_MEETING_INVITATIONS = "send-meeting-invitations"


class EdgeFunctionError(Exception):
    """A function answered but reported ``success: false``."""


class EdgeFunctionClient:
    def __init__(self, base_url=FUNCTIONS_URL, api_key=FUNCTIONS_KEY, timeout=FUNCTIONS_TIMEOUT, session=None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self):
        return bool(self.base_url)

    def invoke(self, function_name: str, payload: dict) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        response = self.session.post(
            f"{self.base_url}/{function_name}", json=payload, headers=headers, timeout=self.timeout
        )
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise EdgeFunctionError(f"{function_name} returned an unexpected response")
        if not body.get("success"):
            raise EdgeFunctionError(body.get("error") or f"{function_name} reported failure")
        return body


def enqueue_notification(db: Session, function_name: str, booking_id: int, **extra) -> NotificationOutbox:
    """Queue a function call; the caller commits it together with its own changes."""
    payload = {"booking_id": booking_id}
    payload.update(extra)
    entry = NotificationOutbox(function_name=function_name, booking_id=booking_id, payload=payload)
    db.add(entry)
    return entry


def enqueue_booking_created(db: Session, booking_id: int):
    return [
        enqueue_notification(db, FUNCTION_BOOKING_SUBMITTED, booking_id),
        enqueue_notification(db, FUNCTION_MANAGER_NOTIFICATION, booking_id),
    ]


class NotificationDispatcher:
    def __init__(self, session_factory, client=None):
        self.session_factory = session_factory
        self.client = client or EdgeFunctionClient()

    def schedule(self, background_tasks: BackgroundTasks, entries):
        """Deliver committed outbox entries once the response has been sent."""
        outbox_ids = [entry.id for entry in entries]
        if outbox_ids:
            background_tasks.add_task(self.dispatch, outbox_ids)

    def dispatch(self, outbox_ids):
        db = self.session_factory()
        try:
            for outbox_id in outbox_ids:
                entry = db.get(NotificationOutbox, outbox_id)
                if entry is None:
                    logger.error(f"Outbox entry {outbox_id} disappeared before delivery")
                    continue
                self.deliver(entry)
                db.commit()
        finally:
            db.close()

    def deliver(self, entry: NotificationOutbox):
        if not self.client.configured:
            logger.warning(f"Functions URL not configured, skipping {entry.function_name} for booking {entry.booking_id}")
            entry.status = OUTBOX_SKIPPED
            entry.last_error = "Functions URL not configured"
            return entry

        entry.attempts += 1
        try:
            self.client.invoke(entry.function_name, entry.payload)
        except (requests.RequestException, EdgeFunctionError) as e:
            logger.error(f"Notification {entry.function_name} for booking {entry.booking_id} failed: {e}")
            entry.status = OUTBOX_FAILED
            entry.last_error = str(e)
        else:
            logger.info(f"Notification {entry.function_name} sent for booking {entry.booking_id}")
            entry.status = OUTBOX_SENT
            entry.last_error = None
            entry.sent_at = utcnow()
        return entry


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher
