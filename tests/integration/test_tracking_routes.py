"""
Integration tests for booking progress tracking.
"""
from uuid import uuid4

import pytest

from carwash.models.bookings import BookingStatus
from carwash.models.users import UserRole


@pytest.fixture
def owner(make_user):
    return make_user(email="owner@example.com")


@pytest.mark.integration
def test_owner_sees_scheduled_booking(client, owner, make_service, make_booking, minutes_from_now, auth_headers):
    booking = make_booking(owner, make_service(), minutes_from_now(120), notes="Dog hair on back seat")

    response = client.get(f"/bookings/{booking.id}/tracking", headers=auth_headers(owner))

    assert response.status_code == 200
    data = response.json()
    assert data["totalProgress"] == 0
    assert data["status"] == "CONFIRMED"
    assert data["overdue"] is False
    assert data["actualCompletion"] is None
    assert [stage["id"] for stage in data["stages"]] == ["scheduled", "arrival", "pre", "wash", "quality", "complete"]
    assert [stage["current"] for stage in data["stages"]] == [True, False, False, False, False, False]
    assert data["stages"][1]["notes"] == "Special instructions: Dog hair on back seat"
    assert [stage["estimatedTime"] for stage in data["stages"][1:5]] == [2, 5, 21, 3]


@pytest.mark.integration
def test_in_progress_booking_reports_wash_stage(client, owner, make_service, make_booking, minutes_from_now,
                                                auth_headers):
    booking = make_booking(owner, make_service(), minutes_from_now(-15), status=BookingStatus.IN_PROGRESS)

    data = client.get(f"/bookings/{booking.id}/tracking", headers=auth_headers(owner)).json()

    assert 50 <= data["totalProgress"] <= 54
    [current] = [stage for stage in data["stages"] if stage["current"]]
    assert current["id"] == "wash"
    assert [stage["completed"] for stage in data["stages"][:3]] == [True, True, True]


@pytest.mark.integration
def test_late_confirmed_booking_is_overdue(client, owner, make_service, make_booking, minutes_from_now,
                                           auth_headers):
    booking = make_booking(owner, make_service(), minutes_from_now(-20))

    data = client.get(f"/bookings/{booking.id}/tracking", headers=auth_headers(owner)).json()

    assert data["totalProgress"] == 5
    assert data["overdue"] is True
    assert data["overdueMinutes"] >= 20


@pytest.mark.integration
def test_staff_can_track_any_booking(client, owner, make_user, make_service, make_booking, minutes_from_now,
                                     auth_headers):
    booking = make_booking(owner, make_service(), minutes_from_now(60))
    staff = make_user(role=UserRole.STAFF)

    response = client.get(f"/bookings/{booking.id}/tracking", headers=auth_headers(staff))

    assert response.status_code == 200


@pytest.mark.integration
def test_other_customer_is_forbidden(client, owner, make_user, make_service, make_booking, minutes_from_now,
                                     auth_headers):
    booking = make_booking(owner, make_service(), minutes_from_now(60))
    stranger = make_user()

    response = client.get(f"/bookings/{booking.id}/tracking", headers=auth_headers(stranger))

    assert response.status_code == 403


@pytest.mark.integration
def test_unknown_booking_is_404(client, owner, auth_headers):
    response = client.get(f"/bookings/{uuid4()}/tracking", headers=auth_headers(owner))

    assert response.status_code == 404


@pytest.mark.integration
def test_requires_authentication(client, owner, make_service, make_booking, minutes_from_now):
    booking = make_booking(owner, make_service(), minutes_from_now(60))

    response = client.get(f"/bookings/{booking.id}/tracking")

    assert response.status_code == 401
