import pytest
from fastapi import status
from conference_hub.models.booking import STATUS_CONFIRMED
from conference_hub.models.invitation import MeetingInvitation
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
    test_facility,
    test_room,
    create_booking,
    future_slot,
    functions_client,
)


def attendees(count, start=1):
    return [{"name": f"Guest {n}", "email": f"guest{n}@example.com"} for n in range(start, start + count)]


@pytest.fixture
def confirmed_booking(test_room, test_user): # pylint: disable=redefined-outer-name
    start, end = future_slot()
    return create_booking(test_room.id, test_user.id, start, end, status=STATUS_CONFIRMED)


# pylint: disable-next=redefined-outer-name
def test_invite_attendees(auth_headers, confirmed_booking, test_user):
    response = client.post(
        "/api/meeting-invitations",
        json={"booking_id": confirmed_booking.id, "attendees": attendees(2)},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert [row["invitee_email"] for row in data["invitations"]] == ["guest1@example.com", "guest2@example.com"]
    assert data["invitations"][0]["invitee_name"] == "Guest 1"
    assert data["invitations"][0]["organizer_id"] == test_user.id
    assert data["invitations"][0]["status"] == "pending"
    assert data["rejected"] == []
    assert "response_token" not in data["invitations"][0]

    sent = functions_client.called("send-meeting-invitations")
    assert len(sent) == 1
    assert sent[0]["booking_id"] == confirmed_booking.id
    assert len(sent[0]["invitation_ids"]) == 2


# pylint: disable-next=redefined-outer-name
def test_invite_with_legacy_email_list(auth_headers, confirmed_booking):
    response = client.post(
        "/api/meeting-invitations",
        json={"booking_id": confirmed_booking.id, "invitee_emails": ["  Guest1@Example.com ", "guest2@example.com"]},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    emails = [row["invitee_email"] for row in response.json()["invitations"]]
    assert emails == ["guest1@example.com", "guest2@example.com"]


# pylint: disable-next=redefined-outer-name
def test_invite_requires_attendees(auth_headers, confirmed_booking):
    response = client.post(
        "/api/meeting-invitations", json={"booking_id": confirmed_booking.id}, headers=auth_headers
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


# pylint: disable-next=redefined-outer-name
def test_invite_filters_bad_entries(auth_headers, confirmed_booking, test_user):
    client.post(
        "/api/meeting-invitations",
        json={"booking_id": confirmed_booking.id, "attendees": attendees(1)},
        headers=auth_headers,
    )
    response = client.post(
        "/api/meeting-invitations",
        json={
            "booking_id": confirmed_booking.id,
            "attendees": [
                {"email": "not-an-email"},
                {"email": "GUEST1@example.com"},
                {"email": test_user.email},
                {"email": "guest2@example.com"},
                {"email": "Guest2@example.com"},
            ],
        },
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert [row["invitee_email"] for row in data["invitations"]] == ["guest2@example.com"]
    assert [entry["reason"] for entry in data["rejected"]] == [
        "Invalid email address",
        "Already invited",
        "Organizer is already attending",
        "Duplicate email in request",
    ]


# pylint: disable-next=redefined-outer-name
def test_invite_nothing_valid(auth_headers, confirmed_booking):
    response = client.post(
        "/api/meeting-invitations",
        json={"booking_id": confirmed_booking.id, "invitee_emails": ["broken", "also broken"]},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    detail = response.json()["detail"]
    assert detail["message"] == "No valid invitees to add"
    assert len(detail["rejected"]) == 2


# pylint: disable-next=redefined-outer-name
def test_invite_to_pending_booking(auth_headers, test_room, test_user):
    start, end = future_slot()
    booking = create_booking(test_room.id, test_user.id, start, end)
    response = client.post(
        "/api/meeting-invitations",
        json={"booking_id": booking.id, "attendees": attendees(1)},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Only confirmed bookings can have meeting invitations"


# pylint: disable-next=redefined-outer-name
def test_invite_not_organizer(other_headers, confirmed_booking):
    response = client.post(
        "/api/meeting-invitations",
        json={"booking_id": confirmed_booking.id, "attendees": attendees(1)},
        headers=other_headers,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "Access denied"


# pylint: disable-next=redefined-outer-name
def test_invite_up_to_capacity(auth_headers, confirmed_booking, test_db):
    # Room capacity 10: organizer + 8 invitees, then 2 more is one too many
    response = client.post(
        "/api/meeting-invitations",
        json={"booking_id": confirmed_booking.id, "attendees": attendees(8)},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED

    response = client.post(
        "/api/meeting-invitations",
        json={"booking_id": confirmed_booking.id, "attendees": attendees(2, start=9)},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    detail = response.json()["detail"]
    assert "Room capacity is 10" in detail
    assert "current invitations: 8" in detail
    assert "total would be 11" in detail
    assert test_db.query(MeetingInvitation).count() == 8

    response = client.post(
        "/api/meeting-invitations",
        json={"booking_id": confirmed_booking.id, "attendees": attendees(1, start=9)},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    assert test_db.query(MeetingInvitation).count() == 9


# pylint: disable-next=redefined-outer-name
def test_capacity_check(auth_headers, confirmed_booking, test_db):
    client.post(
        "/api/meeting-invitations",
        json={"booking_id": confirmed_booking.id, "attendees": attendees(8)},
        headers=auth_headers,
    )
    params = {"bookingId": confirmed_booking.id, "newInviteeCount": 2}

    first = client.get("/api/meeting-invitations/capacity-check", params=params, headers=auth_headers)
    second = client.get("/api/meeting-invitations/capacity-check", params=params, headers=auth_headers)
    assert first.status_code == status.HTTP_200_OK
    assert first.json() == second.json()
    data = first.json()
    assert data["can_invite"] is False
    assert data["current_count"] == 8
    assert data["room_capacity"] == 10
    assert "Cannot invite 2 more people" in data["message"]
    assert test_db.query(MeetingInvitation).count() == 8

    params["newInviteeCount"] = 1
    data = client.get("/api/meeting-invitations/capacity-check", params=params, headers=auth_headers).json()
    assert data["can_invite"] is True
    assert data["message"] is None


# pylint: disable-next=redefined-outer-name
def test_list_invitations(auth_headers, other_headers, confirmed_booking):
    client.post(
        "/api/meeting-invitations",
        json={"booking_id": confirmed_booking.id, "attendees": attendees(3)},
        headers=auth_headers,
    )
    response = client.get("/api/meeting-invitations", params={"bookingId": confirmed_booking.id}, headers=auth_headers)
    assert response.status_code == status.HTTP_200_OK
    assert len(response.json()) == 3

    response = client.get("/api/meeting-invitations", params={"bookingId": confirmed_booking.id}, headers=other_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


# pylint: disable-next=redefined-outer-name
def test_respond_to_invitation(auth_headers, confirmed_booking, test_db):
    client.post(
        "/api/meeting-invitations",
        json={"booking_id": confirmed_booking.id, "attendees": attendees(1)},
        headers=auth_headers,
    )
    token = test_db.query(MeetingInvitation).first().response_token

    response = client.post("/api/meeting-invitations/respond", json={"token": token, "status": "accepted"})
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "accepted"
    assert data["responded_at"] is not None

    response = client.post("/api/meeting-invitations/respond", json={"token": "unknown", "status": "declined"})
    assert response.status_code == status.HTTP_404_NOT_FOUND


# pylint: disable-next=redefined-outer-name
def test_attendance_check_in(auth_headers, manager_headers, confirmed_booking):
    created = client.post(
        "/api/meeting-invitations",
        json={"booking_id": confirmed_booking.id, "attendees": attendees(2)},
        headers=auth_headers,
    ).json()["invitations"]

    response = client.post(
        f"/api/meeting-invitations/{created[0]['id']}/check-in", json={"method": "qr"}, headers=auth_headers
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["attendance_status"] == "present"
    assert data["check_in_method"] == "qr"

    response = client.post(
        f"/api/meeting-invitations/{created[0]['id']}/check-in", json={}, headers=auth_headers
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    response = client.post(
        f"/api/meeting-invitations/{created[1]['id']}/check-in", json={}, headers=manager_headers
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["check_in_method"] == "manual"


# pylint: disable-next=redefined-outer-name
def test_attendance_check_in_stranger(other_headers, auth_headers, confirmed_booking):
    created = client.post(
        "/api/meeting-invitations",
        json={"booking_id": confirmed_booking.id, "attendees": attendees(1)},
        headers=auth_headers,
    ).json()["invitations"]
    response = client.post(
        f"/api/meeting-invitations/{created[0]['id']}/check-in", json={}, headers=other_headers
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
