"""
Room store.

Capacity changes are single UPDATE statements evaluated by the database
(`capacity = capacity - 1 WHERE capacity > 0`), so two transactions can
never both take the last slot of a room.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.hotel import Room


async def find_room_by_id(db: AsyncSession, room_id: int) -> Optional[Room]:
    result = await db.execute(
        select(Room)
        .where(Room.id == room_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def lock_rooms(db: AsyncSession, room_ids: list[int]) -> None:
    """
    Row-lock the given rooms until the transaction ends, in ascending id order.
    Missing ids are skipped. A no-op on databases without SELECT ... FOR UPDATE.
    """
    await db.execute(
        select(Room.id)
        .where(Room.id.in_(sorted(set(room_ids))))
        .order_by(Room.id)
        .with_for_update()
    )


async def update_room_capacity(db: AsyncSession, room_id: int, capacity: int) -> Room:
    """Overwrite capacity unconditionally. The caller owns the value's correctness."""
    await db.execute(
        update(Room)
        .where(Room.id == room_id)
        .values(capacity=capacity)
        .execution_options(synchronize_session=False)
    )
    return await db.get(Room, room_id, populate_existing=True)


async def decrement_room_capacity(db: AsyncSession, room_id: int) -> bool:
    """
    Take one slot from the room if any is free.
    Returns False when the room is full (or missing) and nothing changed.
    """
    result = await db.execute(
        update(Room)
        .where(Room.id == room_id, Room.capacity > 0)
        .values(capacity=Room.capacity - 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def increment_room_capacity(db: AsyncSession, room_id: int) -> None:
    await db.execute(
        update(Room)
        .where(Room.id == room_id)
        .values(capacity=Room.capacity + 1)
        .execution_options(synchronize_session=False)
    )
