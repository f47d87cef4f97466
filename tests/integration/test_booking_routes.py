"""
Integration tests for customer booking routes.
"""
from datetime import datetime
from uuid import UUID

import pytest

from carwash.lib.metrics import get_metrics_collector
from carwash.models.bookings import Booking, BookingStatus


@pytest.fixture
def customer(make_user):
    return make_user(email="customer@example.com")


@pytest.fixture
def catalogue(make_service, make_add_on):
    return {
        "premium": make_service(),
        "deluxe": make_service(key="deluxe", name="Deluxe Detail", price=20000, duration=60),
        "tire_shine": make_add_on(),
        "air_freshener": make_add_on(name="Premium Air Freshener", price=1500),
        "retired": make_add_on(name="Hand Polish", price=9000, is_active=False),
    }


def _create(client, headers, **overrides):
    body = {"serviceId": "premium", "bookingDate": "2030-01-15", "timeSlot": "09:00"}
    body.update(overrides)
    return client.post("/bookings", json=body, headers=headers)


@pytest.mark.integration
def test_create_booking(client, customer, catalogue, auth_headers):
    response = _create(
        client,
        auth_headers(customer),
        addOns=[{"addOnId": str(catalogue["tire_shine"].id), "quantity": 2}],
        notes="Please vacuum the boot",
        plateNumber="CA 123-456",
        smsNotifications=True,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "CONFIRMED"
    assert data["userId"] == str(customer.id)
    assert data["serviceName"] == "Premium Wash & Wax"
    assert data["timeSlot"] == "09:00"
    assert data["bookingDate"].startswith("2030-01-15T00:00")
    assert (data["baseAmount"], data["addOnAmount"], data["totalAmount"]) == (15000, 5000, 20000)
    assert data["addOns"] == [
        {"addOnId": str(catalogue["tire_shine"].id), "name": "Tire Shine", "quantity": 2, "price": 5000}
    ]
    assert data["smsNotifications"] is True
    assert data["plateNumber"] == "CA 123-456"

    metrics = get_metrics_collector()
    assert metrics.get_counter_value(
        "booking_transitions_total", {"from_status": "PENDING", "to_status": "CONFIRMED"}
    ) == 1


@pytest.mark.integration
def test_create_accepts_service_id(client, customer, catalogue, auth_headers):
    response = _create(client, auth_headers(customer), serviceId=str(catalogue["deluxe"].id))

    assert response.status_code == 201
    assert response.json()["totalAmount"] == 20000


@pytest.mark.integration
def test_create_in_the_past_is_400(client, customer, catalogue, auth_headers):
    response = _create(client, auth_headers(customer), bookingDate="2020-01-15")

    assert response.status_code == 400
    assert response.json()["error"] == "Booking date must be in the future"


@pytest.mark.integration
@pytest.mark.parametrize("service_id", ["platinum", "00000000-0000-0000-0000-000000000000"])
def test_create_with_unknown_service_is_400(client, customer, catalogue, auth_headers, service_id):
    response = _create(client, auth_headers(customer), serviceId=service_id)

    assert response.status_code == 400
    assert response.json()["error"] == "Selected service not found or not active"


@pytest.mark.integration
def test_create_with_inactive_add_on_is_400(client, customer, catalogue, auth_headers):
    response = _create(client, auth_headers(customer), addOns=[{"addOnId": str(catalogue["retired"].id)}])

    assert response.status_code == 400
    assert response.json()["error"] == "One or more selected add-ons are not valid"


@pytest.mark.integration
@pytest.mark.parametrize("quantity", [0, 6])
def test_create_with_out_of_range_quantity_is_400(client, customer, catalogue, auth_headers, quantity):
    response = _create(
        client,
        auth_headers(customer),
        addOns=[{"addOnId": str(catalogue["tire_shine"].id), "quantity": quantity}],
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Add-on quantities must be between 1 and 5"


@pytest.mark.integration
def test_create_with_bad_slot_is_400(client, customer, catalogue, auth_headers):
    response = _create(client, auth_headers(customer), timeSlot="9 o'clock")

    assert response.status_code == 400


@pytest.mark.integration
def test_create_requires_authentication(client, catalogue):
    response = _create(client, {})

    assert response.status_code == 401


@pytest.mark.integration
def test_cancel_own_booking(client, customer, catalogue, make_booking, auth_headers):
    booking = make_booking(customer, catalogue["premium"], datetime(2030, 1, 15, 9, 0))

    response = client.post(f"/bookings/{booking.id}/cancel", headers=auth_headers(customer))

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "CANCELLED"
    assert data["cancelledAt"] is not None
    assert data["cancellationReason"] == "Cancelled by customer"


@pytest.mark.integration
def test_cancel_twice_is_400(client, customer, catalogue, make_booking, auth_headers):
    booking = make_booking(customer, catalogue["premium"], datetime(2030, 1, 15, 9, 0))
    client.post(f"/bookings/{booking.id}/cancel", headers=auth_headers(customer))

    response = client.post(f"/bookings/{booking.id}/cancel", headers=auth_headers(customer))

    assert response.status_code == 400


@pytest.mark.integration
def test_cannot_cancel_someone_elses_booking(client, customer, make_user, catalogue, make_booking, auth_headers):
    booking = make_booking(customer, catalogue["premium"], datetime(2030, 1, 15, 9, 0))

    response = client.post(f"/bookings/{booking.id}/cancel", headers=auth_headers(make_user()))

    assert response.status_code == 403


@pytest.mark.integration
def test_reschedule(client, customer, catalogue, make_booking, auth_headers):
    booking = make_booking(customer, catalogue["premium"], datetime(2030, 1, 15, 9, 0))

    response = client.post(
        f"/bookings/{booking.id}/reschedule",
        json={"bookingDate": "2030-01-16", "timeSlot": "10:30"},
        headers=auth_headers(customer),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["bookingDate"].startswith("2030-01-16T00:00")
    assert data["timeSlot"] == "10:30"
    assert data["status"] == "CONFIRMED"


@pytest.mark.integration
def test_reschedule_needs_two_hours_notice(client, customer, catalogue, make_booking, minutes_from_now,
                                           auth_headers):
    booking = make_booking(customer, catalogue["premium"], minutes_from_now(300))
    target = minutes_from_now(60)

    response = client.post(
        f"/bookings/{booking.id}/reschedule",
        json={"bookingDate": f"{target:%Y-%m-%d}", "timeSlot": f"{target:%H:%M}"},
        headers=auth_headers(customer),
    )

    assert response.status_code == 400
    assert "at least 2 hours in advance" in response.json()["error"]


@pytest.mark.integration
def test_reschedule_into_taken_slot_is_409(client, customer, make_user, catalogue, make_booking, auth_headers):
    booking = make_booking(customer, catalogue["premium"], datetime(2030, 1, 15, 9, 0))
    make_booking(make_user(), catalogue["premium"], datetime(2030, 1, 16, 10, 0))

    response = client.post(
        f"/bookings/{booking.id}/reschedule",
        json={"bookingDate": "2030-01-16", "timeSlot": "10:00"},
        headers=auth_headers(customer),
    )

    assert response.status_code == 409


@pytest.mark.integration
def test_reschedule_ignores_cancelled_bookings_in_slot(client, customer, make_user, catalogue, make_booking,
                                                      auth_headers):
    booking = make_booking(customer, catalogue["premium"], datetime(2030, 1, 15, 9, 0))
    make_booking(make_user(), catalogue["premium"], datetime(2030, 1, 16, 10, 0), status=BookingStatus.CANCELLED)

    response = client.post(
        f"/bookings/{booking.id}/reschedule",
        json={"bookingDate": "2030-01-16", "timeSlot": "10:00"},
        headers=auth_headers(customer),
    )

    assert response.status_code == 200


@pytest.mark.integration
def test_only_confirmed_bookings_can_be_rescheduled(client, customer, catalogue, make_booking, auth_headers):
    booking = make_booking(customer, catalogue["premium"], datetime(2030, 1, 15, 9, 0), status=BookingStatus.PENDING)

    response = client.post(
        f"/bookings/{booking.id}/reschedule",
        json={"bookingDate": "2030-01-16", "timeSlot": "10:00"},
        headers=auth_headers(customer),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Only confirmed bookings can be rescheduled"


@pytest.mark.integration
def test_modify_replaces_service_and_add_ons(client, customer, catalogue, auth_headers):
    headers = auth_headers(customer)
    created = _create(
        client,
        headers,
        addOns=[{"addOnId": str(catalogue["tire_shine"].id), "quantity": 1}],
        notes="old notes",
    ).json()

    response = client.post(
        f"/bookings/{created['id']}/modify",
        json={
            "serviceId": "deluxe",
            "addOns": [{"addOnId": str(catalogue["air_freshener"].id), "quantity": 3}],
            "notes": "new notes",
        },
        headers=headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["serviceName"] == "Deluxe Detail"
    assert (data["baseAmount"], data["addOnAmount"], data["totalAmount"]) == (20000, 4500, 24500)
    assert [(line["name"], line["quantity"]) for line in data["addOns"]] == [("Premium Air Freshener", 3)]
    assert data["notes"] == "new notes"


@pytest.mark.integration
def test_failed_modify_leaves_booking_untouched(client, db, customer, catalogue, auth_headers):
    headers = auth_headers(customer)
    created = _create(client, headers, addOns=[{"addOnId": str(catalogue["tire_shine"].id)}]).json()

    response = client.post(
        f"/bookings/{created['id']}/modify",
        json={"serviceId": "deluxe", "addOns": [{"addOnId": str(catalogue["retired"].id)}]},
        headers=headers,
    )

    assert response.status_code == 400
    db.expire_all()
    booking = db.get(Booking, UUID(created["id"]))
    assert booking.total_amount == 17500
    assert len(booking.add_ons) == 1


@pytest.mark.integration
def test_list_own_bookings(client, db, customer, make_user, catalogue, make_booking, auth_headers):
    first = make_booking(customer, catalogue["premium"], datetime(2030, 1, 15, 9, 0))
    second = make_booking(customer, catalogue["premium"], datetime(2030, 1, 16, 9, 0),
                          status=BookingStatus.CANCELLED)
    make_booking(make_user(), catalogue["premium"], datetime(2030, 1, 15, 9, 0))
    first.created_at = datetime(2029, 12, 1, 8, 0)
    second.created_at = datetime(2029, 12, 2, 8, 0)
    db.commit()

    response = client.get("/bookings", headers=auth_headers(customer))

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [item["id"] for item in data["bookings"]] == [str(second.id), str(first.id)]
    assert {item["userId"] for item in data["bookings"]} == {str(customer.id)}
    assert "customer" not in data["bookings"][0]


@pytest.mark.integration
def test_list_own_bookings_by_status_and_page(client, customer, catalogue, make_booking, auth_headers):
    for day in (15, 16, 17):
        make_booking(customer, catalogue["premium"], datetime(2030, 1, day, 9, 0))
    make_booking(customer, catalogue["premium"], datetime(2030, 1, 18, 9, 0), status=BookingStatus.CANCELLED)

    response = client.get("/bookings", params={"status": "CONFIRMED", "limit": 2}, headers=auth_headers(customer))

    data = response.json()
    assert data["total"] == 3
    assert len(data["bookings"]) == 2
    assert data["hasNext"] is True


@pytest.mark.integration
def test_list_own_bookings_requires_authentication(client):
    assert client.get("/bookings").status_code == 401
