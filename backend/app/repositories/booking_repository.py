"""
Booking store. Lookups return the booking joined with its room.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.models.booking import Booking


async def find_booking_by_user_id(db: AsyncSession, user_id: int) -> Optional[Booking]:
    result = await db.execute(
        select(Booking)
        .options(joinedload(Booking.room))
        .where(Booking.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_booking_by_id(db: AsyncSession, booking_id: int) -> Optional[Booking]:
    result = await db.execute(
        select(Booking)
        .options(joinedload(Booking.room))
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_bookings_by_room_id(db: AsyncSession, room_id: int) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .options(joinedload(Booking.room))
        .where(Booking.room_id == room_id)
        .execution_options(populate_existing=True)
        .order_by(Booking.id.asc())
    )
    return list(result.scalars().all())


async def count_bookings_by_room_id(db: AsyncSession, room_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(Booking).where(Booking.room_id == room_id)
    )
    return result.scalar_one()


async def insert_booking(db: AsyncSession, user_id: int, room_id: int) -> Booking:
    """Create the booking row. Room capacity is left to the caller."""
    booking = Booking(user_id=user_id, room_id=room_id)
    db.add(booking)
    await db.flush()
    await db.refresh(booking)
    return booking


async def update_booking_room(db: AsyncSession, booking: Booking, room_id: int) -> Booking:
    booking.room_id = room_id
    await db.flush()
    await db.refresh(booking)
    return booking
