"""
Hotel booking endpoints.

Business failures surface as BookingError and are turned into status
codes by the handlers in app.core.exceptions.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.booking import (
    BookingCreate,
    BookingIdResponse,
    BookingWithRoomResponse,
    RoomResponse,
)
from app.services.booking_service import create_booking, get_booking, move_booking
from app.core.security import get_current_user_id

router = APIRouter(prefix="/booking", tags=["Booking"])


@router.get("", response_model=BookingWithRoomResponse)
async def get_booking_endpoint(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get the authenticated user's booking and its room."""
    booking = await get_booking(db, user_id)
    return BookingWithRoomResponse(id=booking.id, room=RoomResponse.model_validate(booking.room))


@router.post("", response_model=BookingIdResponse)
async def create_booking_endpoint(
    booking_data: Optional[BookingCreate] = None,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Book a room for the authenticated user.

    The room must have a free slot and the user's ticket must be paid,
    in person and include hotel.
    """
    room_id = booking_data.room_id if booking_data else None
    booking = await create_booking(db, user_id, room_id)
    return BookingIdResponse(booking_id=booking.id)


@router.put("/{booking_id}", response_model=BookingIdResponse)
async def move_booking_endpoint(
    booking_id: int,
    booking_data: Optional[BookingCreate] = None,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Move one of the user's bookings to another room."""
    room_id = booking_data.room_id if booking_data else None
    booking = await move_booking(db, user_id, booking_id, room_id)
    return BookingIdResponse(booking_id=booking.id)
