"""
Tests for the booking HTTP endpoints.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from booking_helpers import fetch
from entertainment_hub.models import Showtime


def movie_body(showtime_id, seats=("A1",), total="12.50"):
    return {
        "booking_type": "movie",
        "showtime_id": showtime_id,
        "seats": list(seats),
        "total_amount": total,
    }


def restaurant_body(slot_date="2030-08-08", slot_time="19:00", party_size=4):
    return {
        "booking_type": "restaurant",
        "restaurant_id": 5,
        "booking_date": slot_date,
        "booking_time": slot_time,
        "party_size": party_size,
    }


async def create(client, headers, body):
    response = await client.post("/api/v1/bookings/", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_movie_booking(client: AsyncClient, auth_headers, showtime, session_factory):
    response = await client.post(
        "/api/v1/bookings/", json=movie_body(showtime.id, ("A1", "A2")), headers=auth_headers
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert len(data["confirmation_code"]) == 8
    assert data["booking_id"] > 0

    assert (await fetch(session_factory, Showtime, showtime.id)).available_seats == 98


@pytest.mark.asyncio
async def test_create_event_booking(client: AsyncClient, auth_headers, event, ticket_tier):
    body = {
        "booking_type": "event",
        "event_id": event.id,
        "ticket_type_id": ticket_tier.id,
        "quantity": 2,
        "total_amount": "80.00",
    }
    data = await create(client, auth_headers, body)
    assert data["status"] == "pending"


@pytest.mark.asyncio
async def test_create_restaurant_booking(client: AsyncClient, auth_headers, restaurant):
    data = await create(client, auth_headers, restaurant_body())
    assert data["status"] == "confirmed"


@pytest.mark.asyncio
async def test_create_booking_unauthenticated(client: AsyncClient, showtime):
    response = await client.post("/api/v1/bookings/", json=movie_body(showtime.id))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_booking_unknown_type(client: AsyncClient, auth_headers):
    response = await client.post(
        "/api/v1/bookings/", json={"booking_type": "concert", "event_id": 1}, headers=auth_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_booking_sold_out(client: AsyncClient, auth_headers, small_showtime):
    await create(client, auth_headers, movie_body(small_showtime.id, ("A1", "A2")))

    response = await client.post(
        "/api/v1/bookings/", json=movie_body(small_showtime.id, ("A3",)), headers=auth_headers
    )
    assert response.status_code == 409
    assert response.json()["detail"]["error_code"] == "INSUFFICIENT_INVENTORY"


@pytest.mark.asyncio
async def test_create_booking_unknown_showtime(client: AsyncClient, auth_headers, showtime):
    response = await client.post("/api/v1/bookings/", json=movie_body(99999), headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["detail"]["error_code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_create_booking_duplicate_seats(client: AsyncClient, auth_headers, showtime):
    response = await client.post(
        "/api/v1/bookings/", json=movie_body(showtime.id, ("A1", "A1")), headers=auth_headers
    )
    assert response.status_code == 400
    assert response.json()["detail"]["error_code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_validate_does_not_reserve(client: AsyncClient, auth_headers, showtime, session_factory):
    response = await client.post(
        "/api/v1/bookings/validate", json=movie_body(showtime.id, ("A1", "A2")), headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json() == {
        "valid": True,
        "message": "Movie booking is available",
        "details": {"available_seats": 100},
    }
    assert (await fetch(session_factory, Showtime, showtime.id)).available_seats == 100


@pytest.mark.asyncio
async def test_validate_reports_shortage(client: AsyncClient, auth_headers, event, ticket_tier):
    body = {
        "booking_type": "event",
        "event_id": event.id,
        "ticket_type_id": ticket_tier.id,
        "quantity": 3,
        "total_amount": "120.00",
    }
    response = await client.post("/api/v1/bookings/validate", json=body, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["valid"] is False
    assert data["details"]["error_code"] == "INSUFFICIENT_INVENTORY"
    assert data["details"]["available"] == 2


@pytest.mark.asyncio
async def test_get_booking(client: AsyncClient, auth_headers, other_headers, admin_headers, showtime):
    created = await create(client, auth_headers, movie_body(showtime.id))
    url = f"/api/v1/bookings/{created['booking_id']}"

    response = await client.get(url, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["booking_type"] == "movie"
    assert data["booking_details"]["seats"] == ["A1"]
    assert Decimal(data["total_amount"]) == Decimal("12.50")

    assert (await client.get(url, headers=other_headers)).status_code == 403
    assert (await client.get(url, headers=admin_headers)).status_code == 200
    assert (await client.get("/api/v1/bookings/987654", headers=auth_headers)).status_code == 404


@pytest.mark.asyncio
async def test_get_booking_by_code(client: AsyncClient, auth_headers, showtime):
    created = await create(client, auth_headers, movie_body(showtime.id))

    response = await client.get(
        f"/api/v1/bookings/code/{created['confirmation_code'].lower()}", headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["id"] == created["booking_id"]


@pytest.mark.asyncio
async def test_list_bookings_paginated(client: AsyncClient, auth_headers, other_headers, showtime):
    for seat in ("A1", "A2", "A3"):
        await create(client, auth_headers, movie_body(showtime.id, (seat,)))
    await create(client, other_headers, movie_body(showtime.id, ("Z9",)))

    response = await client.get("/api/v1/bookings/?limit=2", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["page"] == 1
    assert data["limit"] == 2
    assert data["total_pages"] == 2
    assert len(data["bookings"]) == 2

    response = await client.get("/api/v1/bookings/?type=restaurant", headers=auth_headers)
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_upcoming_and_history(client: AsyncClient, auth_headers, showtime, restaurant):
    movie = await create(client, auth_headers, movie_body(showtime.id))
    table = await create(client, auth_headers, restaurant_body())
    await client.put(f"/api/v1/bookings/{movie['booking_id']}/cancel", headers=auth_headers)

    upcoming = (await client.get("/api/v1/bookings/upcoming", headers=auth_headers)).json()
    assert [b["id"] for b in upcoming] == [table["booking_id"]]

    history = (await client.get("/api/v1/bookings/history", headers=auth_headers)).json()
    assert [b["id"] for b in history] == [movie["booking_id"]]


@pytest.mark.asyncio
async def test_update_special_requests(client: AsyncClient, auth_headers, showtime):
    created = await create(client, auth_headers, movie_body(showtime.id))

    response = await client.patch(
        f"/api/v1/bookings/{created['booking_id']}",
        json={"special_requests": "Wheelchair space"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["special_requests"] == "Wheelchair space"

    response = await client.patch(
        f"/api/v1/bookings/{created['booking_id']}",
        json={"status": "confirmed"},
        headers=auth_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_update_to_cancelled_releases_seats(
    client: AsyncClient, auth_headers, admin_headers, showtime, session_factory
):
    created = await create(client, auth_headers, movie_body(showtime.id, ("A1", "A2")))

    response = await client.patch(
        f"/api/v1/bookings/{created['booking_id']}",
        json={"status": "cancelled"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert (await fetch(session_factory, Showtime, showtime.id)).available_seats == 100


@pytest.mark.asyncio
async def test_cancel_booking(client: AsyncClient, auth_headers, showtime, session_factory):
    created = await create(client, auth_headers, movie_body(showtime.id, ("C1", "C2", "C3")))
    url = f"/api/v1/bookings/{created['booking_id']}/cancel"

    response = await client.put(url, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert (await fetch(session_factory, Showtime, showtime.id)).available_seats == 100

    response = await client.put(url, headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["error_code"] == "ALREADY_CANCELLED"
    assert (await fetch(session_factory, Showtime, showtime.id)).available_seats == 100


@pytest.mark.asyncio
async def test_cancel_inside_window(
    client: AsyncClient, auth_headers, admin_headers, movie, session_factory
):
    """Owners cannot cancel close to the start; admins still can."""
    async with session_factory() as session:
        async with session.begin():
            soon = Showtime(
                movie_id=movie.id,
                theater_name="Hall 3",
                starts_at=datetime.now() + timedelta(hours=2),
                total_seats=10,
                available_seats=10,
            )
            session.add(soon)
        showtime_id = soon.id

    created = await create(client, auth_headers, movie_body(showtime_id))
    url = f"/api/v1/bookings/{created['booking_id']}/cancel"

    response = await client.put(url, headers=auth_headers)
    assert response.status_code == 400

    response = await client.put(url, headers=admin_headers)
    assert response.status_code == 200
    assert (await fetch(session_factory, Showtime, showtime_id)).available_seats == 10


@pytest.mark.asyncio
async def test_delete_booking_admin_only(
    client: AsyncClient, auth_headers, admin_headers, showtime, session_factory
):
    created = await create(client, auth_headers, movie_body(showtime.id))
    url = f"/api/v1/bookings/{created['booking_id']}"

    assert (await client.delete(url, headers=auth_headers)).status_code == 403

    response = await client.delete(url, headers=admin_headers)
    assert response.status_code == 204
    assert (await fetch(session_factory, Showtime, showtime.id)).available_seats == 100
    assert (await client.get(url, headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["redis"] == {"status": "disabled"}


@pytest.mark.asyncio
async def test_metrics_exposes_booking_counters(client: AsyncClient, auth_headers, showtime):
    await create(client, auth_headers, movie_body(showtime.id))

    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "booking_attempts_total" in response.text
