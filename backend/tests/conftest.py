"""
Pytest fixtures for test database, client, and authentication.

Tables are created before and dropped after every test for isolation.
The database defaults to a local SQLite file; point TEST_DATABASE_URL at
PostgreSQL to also run the parallel booking race test.
"""

import os
from typing import AsyncGenerator, Awaitable, Callable

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.core.security import create_access_token
from app.models import Booking, Enrollment, Hotel, Room, Ticket, TicketStatus, TicketType, User

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_hotel_booking.db")

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

TicketFactory = Callable[..., Awaitable[Ticket]]


def is_postgres() -> bool:
    return TEST_DATABASE_URL.startswith("postgresql")


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests share the test session, committed like get_db does."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db_session: AsyncSession, email: str) -> User:
    user = User(email=email)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "test@example.com")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "other@example.com")


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    """Authorization headers with a Bearer token for test_user."""
    token = create_access_token(data={"sub": str(test_user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def make_ticket(db_session: AsyncSession) -> TicketFactory:
    """Factory: enroll a user and give them a ticket of the requested kind."""

    async def factory(
        user: User,
        status: TicketStatus = TicketStatus.PAID,
        is_remote: bool = False,
        includes_hotel: bool = True,
    ) -> Ticket:
        enrollment = Enrollment(
            user_id=user.id,
            name=f"Attendee {user.id}",
            cpf="12345678901",
            phone="5511999999999",
        )
        ticket_type = TicketType(
            name="Remote" if is_remote else "In person",
            price=250,
            is_remote=is_remote,
            includes_hotel=includes_hotel,
        )
        db_session.add_all([enrollment, ticket_type])
        await db_session.flush()

        ticket = Ticket(enrollment_id=enrollment.id, ticket_type_id=ticket_type.id, status=status)
        db_session.add(ticket)
        await db_session.commit()
        await db_session.refresh(ticket)
        return ticket

    return factory


@pytest_asyncio.fixture
async def eligible_user(test_user: User, make_ticket: TicketFactory) -> User:
    """test_user holding a paid, in-person ticket with hotel."""
    await make_ticket(test_user)
    return test_user


@pytest_asyncio.fixture
async def hotel(db_session: AsyncSession) -> Hotel:
    hotel = Hotel(name="Driven Resort", image="https://example.com/resort.jpg")
    db_session.add(hotel)
    await db_session.commit()
    await db_session.refresh(hotel)
    return hotel


async def _create_room(db_session: AsyncSession, hotel: Hotel, name: str, capacity: int) -> Room:
    room = Room(name=name, capacity=capacity, hotel_id=hotel.id)
    db_session.add(room)
    await db_session.commit()
    await db_session.refresh(room)
    return room


@pytest_asyncio.fixture
async def room(db_session: AsyncSession, hotel: Hotel) -> Room:
    """A room with 5 free slots."""
    return await _create_room(db_session, hotel, "101", 5)


@pytest_asyncio.fixture
async def second_room(db_session: AsyncSession, hotel: Hotel) -> Room:
    """A room with 2 free slots."""
    return await _create_room(db_session, hotel, "102", 2)


@pytest_asyncio.fixture
async def last_slot_room(db_session: AsyncSession, hotel: Hotel) -> Room:
    return await _create_room(db_session, hotel, "103", 1)


@pytest_asyncio.fixture
async def full_room(db_session: AsyncSession, hotel: Hotel) -> Room:
    """A room with no free slots."""
    return await _create_room(db_session, hotel, "104", 0)


@pytest_asyncio.fixture
async def existing_booking(db_session: AsyncSession, eligible_user: User, room: Room) -> Booking:
    """A booking for eligible_user in room, inserted directly (capacity untouched)."""
    booking = Booking(user_id=eligible_user.id, room_id=room.id)
    db_session.add(booking)
    await db_session.commit()
    await db_session.refresh(booking)
    return booking
