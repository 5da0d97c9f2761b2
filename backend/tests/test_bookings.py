"""
Tests for the /booking endpoints: status mapping and capacity bookkeeping.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select, func

from app.core.security import create_access_token
from app.models import Booking, Enrollment, TicketStatus


async def _booking_count(db_session) -> int:
    return (await db_session.execute(select(func.count()).select_from(Booking))).scalar_one()


# GET /booking

@pytest.mark.asyncio
async def test_get_booking_unauthenticated(client: AsyncClient):
    """Missing token returns 401."""
    response = await client.get("/booking")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_booking_invalid_token(client: AsyncClient):
    """Garbage token returns 401."""
    response = await client.get("/booking", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_booking_not_found(client: AsyncClient, auth_headers):
    """User without a booking gets 404."""
    response = await client.get("/booking", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_get_booking(client: AsyncClient, auth_headers, existing_booking, room):
    """Booking is returned with its room under `Room`, camelCase keys."""
    response = await client.get("/booking", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == existing_booking.id
    assert data["Room"]["id"] == room.id
    assert data["Room"]["name"] == room.name
    assert data["Room"]["capacity"] == room.capacity
    assert data["Room"]["hotelId"] == room.hotel_id
    assert set(data["Room"]) == {"id", "name", "capacity", "hotelId", "createdAt", "updatedAt"}


# POST /booking

@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, db_session, auth_headers, eligible_user, room):
    """Successful booking returns its id and takes one slot of the room."""
    response = await client.post("/booking", json={"roomId": room.id}, headers=auth_headers)
    assert response.status_code == 200
    assert isinstance(response.json()["bookingId"], int)

    await db_session.refresh(room)
    assert room.capacity == 4


@pytest.mark.asyncio
async def test_create_booking_unauthenticated(client: AsyncClient, room):
    response = await client.post("/booking", json={"roomId": room.id})
    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{"roomId": ""}, {"roomId": 0}, {}])
async def test_create_booking_without_room_id(client: AsyncClient, db_session, auth_headers, eligible_user, body):
    """Empty, zero or missing roomId is a 404, not a validation error."""
    response = await client.post("/booking", json=body, headers=auth_headers)
    assert response.status_code == 404
    assert await _booking_count(db_session) == 0


@pytest.mark.asyncio
async def test_create_booking_unknown_room(client: AsyncClient, auth_headers, eligible_user):
    response = await client.post("/booking", json={"roomId": 99999}, headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_booking_no_vacancy(client: AsyncClient, db_session, auth_headers, eligible_user, full_room):
    """Full room returns 403 and nothing changes."""
    response = await client.post("/booking", json={"roomId": full_room.id}, headers=auth_headers)
    assert response.status_code == 403

    await db_session.refresh(full_room)
    assert full_room.capacity == 0
    assert await _booking_count(db_session) == 0


@pytest.mark.asyncio
async def test_create_booking_payment_required(
    client: AsyncClient, db_session, auth_headers, test_user, make_ticket, room
):
    await make_ticket(test_user, status=TicketStatus.RESERVED)

    response = await client.post("/booking", json={"roomId": room.id}, headers=auth_headers)
    assert response.status_code == 402

    await db_session.refresh(room)
    assert room.capacity == 5


@pytest.mark.asyncio
async def test_create_booking_payment_required_even_when_full(
    client: AsyncClient, auth_headers, test_user, make_ticket, full_room
):
    """Eligibility is checked before vacancy."""
    await make_ticket(test_user, status=TicketStatus.RESERVED)

    response = await client.post("/booking", json={"roomId": full_room.id}, headers=auth_headers)
    assert response.status_code == 402


@pytest.mark.asyncio
@pytest.mark.parametrize("is_remote,includes_hotel", [(True, True), (False, False), (True, False)])
async def test_create_booking_ticket_without_hotel(
    client: AsyncClient, auth_headers, test_user, make_ticket, room, is_remote, includes_hotel
):
    await make_ticket(test_user, is_remote=is_remote, includes_hotel=includes_hotel)

    response = await client.post("/booking", json={"roomId": room.id}, headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_booking_without_enrollment(client: AsyncClient, auth_headers, test_user, room):
    response = await client.post("/booking", json={"roomId": room.id}, headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_second_booking_rejected(
    client: AsyncClient, db_session, auth_headers, existing_booking, second_room
):
    """A user holds at most one booking; moving is done with PUT."""
    response = await client.post("/booking", json={"roomId": second_room.id}, headers=auth_headers)
    assert response.status_code == 403

    await db_session.refresh(second_room)
    assert second_room.capacity == 2


# PUT /booking/{booking_id}

@pytest.mark.asyncio
async def test_move_booking(client: AsyncClient, db_session, auth_headers, existing_booking, room, second_room):
    """Moving gives the old room a slot back and takes one from the new room."""
    response = await client.put(
        f"/booking/{existing_booking.id}",
        json={"roomId": second_room.id},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json() == {"bookingId": existing_booking.id}

    await db_session.refresh(room)
    await db_session.refresh(second_room)
    await db_session.refresh(existing_booking)
    assert room.capacity == 6
    assert second_room.capacity == 1
    assert existing_booking.room_id == second_room.id


@pytest.mark.asyncio
async def test_move_booking_without_body(client: AsyncClient, auth_headers, existing_booking):
    response = await client.put(f"/booking/{existing_booking.id}", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_move_booking_without_enrollment(client: AsyncClient, auth_headers, test_user, room):
    response = await client.put("/booking/2222", json={"roomId": room.id}, headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_move_booking_without_ticket(client: AsyncClient, db_session, auth_headers, test_user, room):
    db_session.add(Enrollment(user_id=test_user.id, name="No Ticket", cpf="10987654321", phone="551100000000"))
    await db_session.commit()

    response = await client.put("/booking/2222", json={"roomId": room.id}, headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_move_booking_remote_ticket(client: AsyncClient, auth_headers, test_user, make_ticket, room):
    """Ineligible ticket type is reported before the booking lookup."""
    await make_ticket(test_user, status=TicketStatus.RESERVED, is_remote=True)

    response = await client.put("/booking/2222", json={"roomId": room.id}, headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_move_booking_payment_required(client: AsyncClient, auth_headers, test_user, make_ticket, room):
    await make_ticket(test_user, status=TicketStatus.RESERVED)

    response = await client.put("/booking/2222", json={"roomId": room.id}, headers=auth_headers)
    assert response.status_code == 402


@pytest.mark.asyncio
async def test_move_unknown_booking(client: AsyncClient, auth_headers, eligible_user, room):
    response = await client.put("/booking/2222", json={"roomId": room.id}, headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_move_someone_elses_booking(
    client: AsyncClient, db_session, existing_booking, other_user, make_ticket, second_room
):
    """The path booking must belong to the caller."""
    await make_ticket(other_user)
    token = create_access_token(data={"sub": str(other_user.id)})

    response = await client.put(
        f"/booking/{existing_booking.id}",
        json={"roomId": second_room.id},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 404

    await db_session.refresh(existing_booking)
    await db_session.refresh(second_room)
    assert existing_booking.room_id != second_room.id
    assert second_room.capacity == 2


@pytest.mark.asyncio
async def test_move_booking_no_vacancy(
    client: AsyncClient, db_session, auth_headers, existing_booking, room, full_room
):
    response = await client.put(
        f"/booking/{existing_booking.id}",
        json={"roomId": full_room.id},
        headers=auth_headers,
    )
    assert response.status_code == 403

    await db_session.refresh(room)
    await db_session.refresh(full_room)
    assert room.capacity == 5
    assert full_room.capacity == 0


@pytest.mark.asyncio
async def test_metrics_endpoint(client: AsyncClient):
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "booking_attempts_total" in response.text
