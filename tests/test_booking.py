from datetime import datetime, timedelta
import pytest
from fastapi import status
from conference_hub.models.booking import Booking, STATUS_CANCELLED, STATUS_CONFIRMED, STATUS_PENDING
from conference_hub.models.room import RoomAvailability
from tests.conf_tests import (
    client,
    clear_db,
    test_db,
    test_user,
    auth_headers,
    other_user,
    other_headers,
    manager_user,
    manager_headers,
    admin_user,
    admin_headers,
    test_facility,
    test_room,
    booking_payload,
    create_booking,
    create_room,
    future_slot,
)
from conference_hub.utils.validation_helpers import utcnow


@pytest.fixture
def test_booking(test_room, test_user): # pylint: disable=redefined-outer-name
    start, end = future_slot()
    return create_booking(test_room.id, test_user.id, start, end)


@pytest.fixture
def relaxed_quota(test_db, test_room):
    test_db.add(RoomAvailability(
        room_id=test_room.id,
        max_bookings_per_user_per_day=5,
        max_bookings_per_user_per_week=20,
        min_booking_duration=30,
        max_booking_duration=480,
    ))
    test_db.commit()


# Tests
# pylint: disable-next=redefined-outer-name
def test_create_booking_success(auth_headers, test_room, test_user):
    start, end = future_slot()
    response = client.post("/api/bookings", json=booking_payload(test_room.id, start, end), headers=auth_headers)
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["room_id"] == test_room.id
    assert data["user_id"] == test_user.id
    assert data["title"] == "Team Meeting"
    assert data["status"] == STATUS_PENDING
    assert datetime.fromisoformat(data["start_time"]) == start


# pylint: disable-next=redefined-outer-name
def test_create_booking_ignores_client_status(auth_headers, test_room):
    start, end = future_slot()
    payload = booking_payload(test_room.id, start, end, status=STATUS_CONFIRMED)
    response = client.post("/api/bookings", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["status"] == STATUS_PENDING


# pylint: disable-next=redefined-outer-name
def test_create_booking_normalizes_timezone(auth_headers, test_room):
    start, end = future_slot(hour=12)
    payload = booking_payload(test_room.id, start, end)
    payload["start_time"] = start.replace(hour=14).isoformat() + "+02:00"
    payload["end_time"] = end.replace(hour=15).isoformat() + "+02:00"
    response = client.post("/api/bookings", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_201_CREATED
    assert datetime.fromisoformat(response.json()["start_time"]) == start


# pylint: disable-next=redefined-outer-name
def test_create_booking_unauthorized(test_room):
    start, end = future_slot()
    response = client.post("/api/bookings", json=booking_payload(test_room.id, start, end))
    assert response.status_code in [
        status.HTTP_401_UNAUTHORIZED,
        status.HTTP_403_FORBIDDEN,
    ]


# pylint: disable-next=redefined-outer-name
def test_create_booking_end_before_start(auth_headers, test_room):
    start, end = future_slot()
    response = client.post("/api/bookings", json=booking_payload(test_room.id, end, start), headers=auth_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "End time must be after start time" in response.text


# pylint: disable-next=redefined-outer-name
def test_create_booking_in_the_past(auth_headers, test_room):
    start = utcnow().replace(microsecond=0) - timedelta(hours=3)
    response = client.post(
        "/api/bookings", json=booking_payload(test_room.id, start, start + timedelta(hours=1)), headers=auth_headers
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Cannot book a time slot in the past"


# pylint: disable-next=redefined-outer-name
def test_create_booking_room_not_found(auth_headers):
    start, end = future_slot()
    response = client.post("/api/bookings", json=booking_payload(999, start, end), headers=auth_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


# pylint: disable-next=redefined-outer-name
def test_create_booking_room_under_maintenance(auth_headers, test_facility):
    room = create_room(test_facility.id, status="maintenance")
    start, end = future_slot()
    response = client.post("/api/bookings", json=booking_payload(room.id, start, end), headers=auth_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Room not available"


# pylint: disable-next=redefined-outer-name
def test_create_booking_insufficient_capacity(auth_headers, test_room):
    start, end = future_slot()
    payload = booking_payload(test_room.id, start, end, attendee_count=20)
    response = client.post("/api/bookings", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "capacity insufficient" in response.json()["detail"]


# pylint: disable-next=redefined-outer-name
def test_create_booking_too_short(auth_headers, test_room):
    start, _ = future_slot()
    payload = booking_payload(test_room.id, start, start + timedelta(minutes=15))
    response = client.post("/api/bookings", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Booking must last at least 30 minutes"


# pylint: disable-next=redefined-outer-name
def test_create_booking_too_long(auth_headers, test_room):
    start, end = future_slot(hour=8, hours=9)
    response = client.post("/api/bookings", json=booking_payload(test_room.id, start, end), headers=auth_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Booking cannot last more than 480 minutes"


# pylint: disable-next=redefined-outer-name
def test_create_booking_overlapping(auth_headers, test_room, test_booking):
    payload = booking_payload(
        test_room.id,
        test_booking.start_time + timedelta(minutes=30),
        test_booking.end_time + timedelta(minutes=30),
    )
    response = client.post("/api/bookings", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_409_CONFLICT
    assert "already booked" in response.json()["detail"]


# pylint: disable-next=redefined-outer-name
def test_create_booking_back_to_back(other_headers, test_room, test_booking):
    payload = booking_payload(test_room.id, test_booking.end_time, test_booking.end_time + timedelta(hours=1))
    response = client.post("/api/bookings", json=payload, headers=other_headers)
    assert response.status_code == status.HTTP_201_CREATED


# pylint: disable-next=redefined-outer-name
def test_create_booking_after_gap(other_headers, test_room, test_booking):
    start = test_booking.end_time + timedelta(minutes=30)
    payload = booking_payload(test_room.id, start, start + timedelta(hours=1))
    response = client.post("/api/bookings", json=payload, headers=other_headers)
    assert response.status_code == status.HTTP_201_CREATED


# pylint: disable-next=redefined-outer-name
def test_cancelled_booking_frees_slot(auth_headers, test_room, other_user):
    start, end = future_slot()
    create_booking(test_room.id, other_user.id, start, end, status=STATUS_CANCELLED)
    response = client.post("/api/bookings", json=booking_payload(test_room.id, start, end), headers=auth_headers)
    assert response.status_code == status.HTTP_201_CREATED


# pylint: disable-next=redefined-outer-name
def test_daily_quota(auth_headers, test_room, test_booking):
    start = test_booking.end_time + timedelta(hours=2)
    payload = booking_payload(test_room.id, start, start + timedelta(hours=1))
    response = client.post("/api/bookings", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "You have reached the maximum of 1 booking per day for this room"


# pylint: disable-next=redefined-outer-name
def test_daily_quota_ignores_cancelled(auth_headers, test_room, test_user):
    start, end = future_slot(hour=9)
    create_booking(test_room.id, test_user.id, start, end, status=STATUS_CANCELLED)
    later_start, later_end = future_slot(hour=14)
    response = client.post(
        "/api/bookings", json=booking_payload(test_room.id, later_start, later_end), headers=auth_headers
    )
    assert response.status_code == status.HTTP_201_CREATED


# pylint: disable-next=redefined-outer-name
def test_daily_quota_is_per_room(auth_headers, test_facility, test_booking):
    room = create_room(test_facility.id, name="Conference Room B")
    start = test_booking.end_time + timedelta(hours=2)
    response = client.post(
        "/api/bookings", json=booking_payload(room.id, start, start + timedelta(hours=1)), headers=auth_headers
    )
    assert response.status_code == status.HTTP_201_CREATED


# pylint: disable-next=redefined-outer-name
def test_weekly_quota(auth_headers, test_room, test_user, test_db):
    settings = RoomAvailability(
        room_id=test_room.id,
        max_bookings_per_user_per_day=1,
        max_bookings_per_user_per_week=2,
        min_booking_duration=30,
        max_booking_duration=480,
    )
    test_db.add(settings)
    test_db.commit()

    # Monday of the week after next, so every day used is in the future
    today = utcnow().date()
    monday = today + timedelta(days=14 - today.weekday())
    for offset in (0, 1):
        start = datetime.combine(monday + timedelta(days=offset), datetime.min.time()) + timedelta(hours=10)
        create_booking(test_room.id, test_user.id, start, start + timedelta(hours=1))

    start = datetime.combine(monday + timedelta(days=3), datetime.min.time()) + timedelta(hours=10)
    response = client.post(
        "/api/bookings", json=booking_payload(test_room.id, start, start + timedelta(hours=1)), headers=auth_headers
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "You have reached the maximum of 2 bookings per week for this room"


# pylint: disable-next=redefined-outer-name
def test_relaxed_quota_allows_second_booking(auth_headers, test_room, test_booking, relaxed_quota):
    start = test_booking.end_time + timedelta(hours=1)
    response = client.post(
        "/api/bookings", json=booking_payload(test_room.id, start, start + timedelta(hours=1)), headers=auth_headers
    )
    assert response.status_code == status.HTTP_201_CREATED


# pylint: disable-next=redefined-outer-name
def test_payment_amount_from_hourly_rate(auth_headers, test_facility):
    room = create_room(test_facility.id, hourly_rate=40.0)
    start, end = future_slot(hours=2)
    response = client.post(
        "/api/bookings",
        json=booking_payload(room.id, start, start + timedelta(minutes=90)),
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["payment_amount"] == 60.0
    assert data["payment_status"] == "pending"


# pylint: disable-next=redefined-outer-name
def test_get_bookings_for_room_is_public(test_room, test_booking, other_user):
    start, end = future_slot(hour=15)
    create_booking(test_room.id, other_user.id, start, end, status=STATUS_CANCELLED)

    response = client.get("/api/bookings", params={"roomId": test_room.id})
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert [booking["id"] for booking in data] == [test_booking.id]


# pylint: disable-next=redefined-outer-name
def test_get_bookings_include_users(test_room, test_booking, test_user):
    response = client.get("/api/bookings", params={"roomId": test_room.id, "includeUsers": True})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()[0]["user"]["email"] == test_user.email


def test_get_bookings_without_room_requires_auth():
    response = client.get("/api/bookings")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "Authorization required"


# pylint: disable-next=redefined-outer-name
def test_get_bookings_scoped_by_role(
    auth_headers, other_headers, manager_headers, admin_headers, test_room, test_booking, test_facility, other_user
):
    foreign_room = create_room(None, name="Elsewhere")
    start, end = future_slot(hour=15)
    foreign = create_booking(foreign_room.id, other_user.id, start, end)

    own = client.get("/api/bookings", headers=auth_headers).json()
    assert [booking["id"] for booking in own] == [test_booking.id]

    other = client.get("/api/bookings", headers=other_headers).json()
    assert [booking["id"] for booking in other] == [foreign.id]

    managed = client.get("/api/bookings", headers=manager_headers).json()
    assert [booking["id"] for booking in managed] == [test_booking.id]

    everything = client.get("/api/bookings", headers=admin_headers).json()
    assert {booking["id"] for booking in everything} == {test_booking.id, foreign.id}


# pylint: disable-next=redefined-outer-name
def test_get_bookings_window_filters(auth_headers, test_room, test_booking):
    response = client.get(
        "/api/bookings",
        params={
            "start": (test_booking.end_time + timedelta(hours=1)).isoformat(),
            "end": (test_booking.end_time + timedelta(hours=3)).isoformat(),
        },
        headers=auth_headers,
    )
    assert response.json() == []

    response = client.get(
        "/api/bookings", params={"date": test_booking.start_time.date().isoformat()}, headers=auth_headers
    )
    assert len(response.json()) == 1


# pylint: disable-next=redefined-outer-name
def test_get_booking(test_booking):
    response = client.get(f"/api/bookings/{test_booking.id}")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["id"] == test_booking.id


def test_get_booking_not_found():
    response = client.get("/api/bookings/999")
    assert response.status_code == status.HTTP_404_NOT_FOUND


# pylint: disable-next=redefined-outer-name
def test_delete_booking_unauthorized(test_booking):
    response = client.delete(f"/api/bookings/{test_booking.id}")
    assert response.status_code in [
        status.HTTP_401_UNAUTHORIZED,
        status.HTTP_403_FORBIDDEN,
    ]


# pylint: disable-next=redefined-outer-name
def test_delete_booking_not_owner(other_headers, test_booking):
    response = client.delete(f"/api/bookings/{test_booking.id}", headers=other_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


# pylint: disable-next=redefined-outer-name
def test_delete_pending_booking(auth_headers, test_booking, test_db):
    response = client.delete(f"/api/bookings/{test_booking.id}", headers=auth_headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert test_db.get(Booking, test_booking.id) is None


# pylint: disable-next=redefined-outer-name
def test_delete_confirmed_booking_with_notice(auth_headers, test_room, test_user):
    start, end = future_slot(days=3)
    booking = create_booking(test_room.id, test_user.id, start, end, status=STATUS_CONFIRMED)
    response = client.delete(f"/api/bookings/{booking.id}", headers=auth_headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT


# pylint: disable-next=redefined-outer-name
def test_delete_confirmed_booking_within_a_day(auth_headers, admin_headers, test_room, test_user):
    start = utcnow().replace(microsecond=0) + timedelta(hours=2)
    booking = create_booking(test_room.id, test_user.id, start, start + timedelta(hours=1), status=STATUS_CONFIRMED)

    response = client.delete(f"/api/bookings/{booking.id}", headers=auth_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Cannot delete confirmed booking less than 24 hours before start time"

    response = client.delete(f"/api/bookings/{booking.id}", headers=admin_headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT


# pylint: disable-next=redefined-outer-name
def test_delete_started_booking(auth_headers, test_room, test_user):
    start = utcnow().replace(microsecond=0) - timedelta(minutes=30)
    booking = create_booking(test_room.id, test_user.id, start, start + timedelta(hours=1), status=STATUS_CONFIRMED)
    response = client.delete(f"/api/bookings/{booking.id}", headers=auth_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Cannot delete booking after it has started"


# pylint: disable-next=redefined-outer-name
def test_check_in(auth_headers, test_room, test_user):
    start = utcnow().replace(microsecond=0) + timedelta(minutes=10)
    booking = create_booking(test_room.id, test_user.id, start, start + timedelta(hours=1), status=STATUS_CONFIRMED)

    response = client.post(f"/api/bookings/{booking.id}/check-in", headers=auth_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["booking_id"] == booking.id

    response = client.post(f"/api/bookings/{booking.id}/check-in", headers=auth_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Booking is already checked in"


# pylint: disable-next=redefined-outer-name
def test_check_in_too_early(auth_headers, test_room, test_user):
    start, end = future_slot()
    booking = create_booking(test_room.id, test_user.id, start, end, status=STATUS_CONFIRMED)
    response = client.post(f"/api/bookings/{booking.id}/check-in", headers=auth_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "Check-in opens 15 minutes" in response.json()["detail"]


# pylint: disable-next=redefined-outer-name
def test_check_in_pending_booking(auth_headers, test_booking):
    response = client.post(f"/api/bookings/{test_booking.id}/check-in", headers=auth_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
