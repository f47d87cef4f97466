"""
Integration tests for Services API.
"""
import pytest

from carwash.models.services import ServiceCategory


@pytest.fixture
def sample_services(make_service, make_add_on):
    """Create a small catalogue for testing."""
    express = make_service(
        key="express", name="Express Exterior Wash", price=8000, duration=15, category=ServiceCategory.EXPRESS
    )
    premium = make_service()
    make_service(
        key="executive", name="Executive Detail", price=30000, duration=120, category=ServiceCategory.EXECUTIVE
    )
    make_service(
        key=None, name="Retired Service", price=5000, duration=30, category=ServiceCategory.EXPRESS, is_active=False
    )
    make_add_on()
    make_add_on(name="Premium Air Freshener", price=1500)
    make_add_on(name="Hand Polish", price=9000, is_active=False)
    return {"express": express, "premium": premium}


@pytest.mark.integration
def test_list_active_services(client, sample_services):
    """Test listing all active services, cheapest first."""
    response = client.get("/services")

    assert response.status_code == 200
    data = response.json()

    assert [s["name"] for s in data] == [
        "Express Exterior Wash",
        "Premium Wash & Wax",
        "Executive Detail",
    ]
    assert data[0]["key"] == "express"
    assert data[0]["price"] == 8000
    assert data[0]["duration"] == 15
    assert data[0]["isActive"] is True


@pytest.mark.integration
def test_list_services_with_inactive(client, sample_services):
    """Test listing all services including inactive."""
    response = client.get("/services", params={"activeOnly": "false"})

    assert response.status_code == 200
    names = [s["name"] for s in response.json()]
    assert len(names) == 4
    assert "Retired Service" in names


@pytest.mark.integration
def test_filter_services_by_category(client, sample_services):
    """Test filtering services by category."""
    response = client.get("/services", params={"category": "EXECUTIVE"})

    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["name"] == "Executive Detail"
    assert data[0]["category"] == "EXECUTIVE"


@pytest.mark.integration
def test_list_services_empty_result(client):
    """Test listing services when none exist."""
    response = client.get("/services")

    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.integration
def test_invalid_category_filter(client, sample_services):
    """Test filtering with invalid category."""
    response = client.get("/services", params={"category": "PLATINUM"})

    assert response.status_code == 400


@pytest.mark.integration
def test_list_active_add_ons(client, sample_services):
    """Test listing add-ons, cheapest first, inactive excluded."""
    response = client.get("/services/add-ons")

    assert response.status_code == 200
    data = response.json()
    assert [(a["name"], a["price"]) for a in data] == [
        ("Premium Air Freshener", 1500),
        ("Tire Shine", 2500),
    ]
