"""
Hotel booking service: eligibility rules and room capacity bookkeeping.

ELIGIBILITY
===========
A user may hold a hotel booking only if they have an enrollment with a
ticket whose type is in person and includes hotel, and whose payment is
not pending (status RESERVED). Both create and move re-check this.

CONCURRENCY STRATEGY: Conditional Update inside the Request Transaction
=======================================================================

Problem:
  Two users try to book the last slot of a room simultaneously.
  Both read capacity=1, both write capacity=0, both get a booking.
  Result: Overbooking.

Solution:
  Capacity is never read in Python and written back. The slot is taken with

    UPDATE rooms SET capacity = capacity - 1
    WHERE id = :room_id AND capacity > 0

  and the booking is only written if that statement affected a row. The
  database serializes the two updates on the row; the loser sees
  capacity=0, affects nothing and gets NO_VACANCY.

  The decrement, the increment of a vacated room and the booking write all
  run in the request's session and commit together (see app.db.session).
  Every failure path raises before anything is written, or raises
  afterwards so the whole unit rolls back. The CHECK (capacity >= 0)
  constraint is the final safety net.

  A move touches two room rows. They are always updated in ascending id
  order, so two moves in opposite directions wait on each other instead
  of deadlocking.

  With ROOM_OCCUPANCY_LIMIT set, the booking count is a read-then-write.
  The room rows involved are locked (SELECT ... FOR UPDATE, ascending id)
  before counting, so concurrent bookings of the same room count one at a
  time.
"""

import time
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import BookingError, BookingErrorKind
from app.core.logging import get_logger
from app.core.metrics import booking_latency, record_booking_attempt
from app.models.booking import Booking
from app.models.hotel import Room
from app.models.ticket import Ticket, TicketStatus
from app.repositories import booking_repository, room_repository, ticket_repository

logger = get_logger(__name__)


def _reject(operation: str, kind: BookingErrorKind, **context) -> BookingError:
    logger.warning("booking_rejected", operation=operation, reason=kind.value, **context)
    record_booking_attempt(operation, kind.value.lower())
    return BookingError(kind)


async def _ensure_eligible(db: AsyncSession, user_id: int, operation: str) -> Ticket:
    enrollment = await ticket_repository.find_enrollment_by_user_id(db, user_id)
    if not enrollment:
        raise _reject(operation, BookingErrorKind.NOT_FOUND, user_id=user_id, missing="enrollment")

    ticket = await ticket_repository.find_ticket_by_enrollment_id(db, enrollment.id)
    if not ticket:
        raise _reject(operation, BookingErrorKind.NOT_FOUND, user_id=user_id, missing="ticket")

    if not ticket.ticket_type.allows_hotel:
        raise _reject(
            operation,
            BookingErrorKind.CANNOT_BOOK_HOTEL,
            user_id=user_id,
            is_remote=ticket.ticket_type.is_remote,
            includes_hotel=ticket.ticket_type.includes_hotel,
        )

    if ticket.status == TicketStatus.RESERVED:
        raise _reject(operation, BookingErrorKind.PAYMENT_REQUIRED, user_id=user_id)

    return ticket


async def _find_room_with_vacancy(db: AsyncSession, room_id: int, operation: str) -> Room:
    room = await room_repository.find_room_by_id(db, room_id)
    if not room:
        raise _reject(operation, BookingErrorKind.NOT_FOUND, room_id=room_id, missing="room")

    if room.capacity <= 0:
        raise _reject(operation, BookingErrorKind.NO_VACANCY, room_id=room_id, capacity=room.capacity)

    occupancy_limit = get_settings().ROOM_OCCUPANCY_LIMIT
    if occupancy_limit is not None:
        occupied = await booking_repository.count_bookings_by_room_id(db, room_id)
        if occupied >= occupancy_limit:
            raise _reject(
                operation,
                BookingErrorKind.NO_VACANCY,
                room_id=room_id,
                occupied=occupied,
                limit=occupancy_limit,
            )

    return room


async def _lock_for_occupancy_count(db: AsyncSession, *room_ids: int) -> None:
    if get_settings().ROOM_OCCUPANCY_LIMIT is not None:
        await room_repository.lock_rooms(db, list(room_ids))


async def _take_slot(db: AsyncSession, room_id: int, operation: str) -> None:
    # Lost the race for the last slot since the vacancy check above
    if not await room_repository.decrement_room_capacity(db, room_id):
        raise _reject(operation, BookingErrorKind.NO_VACANCY, room_id=room_id, capacity=0)


async def get_booking(db: AsyncSession, user_id: int) -> Booking:
    """Get the user's booking with its room loaded."""
    booking = await booking_repository.find_booking_by_user_id(db, user_id)
    if not booking:
        raise BookingError(BookingErrorKind.NOT_FOUND, "Booking not found")
    return booking


async def create_booking(db: AsyncSession, user_id: int, room_id: Optional[int]) -> Booking:
    """
    Book a hotel room for an eligible user.
    Takes one slot of the room and inserts the booking in the same transaction.
    """
    operation = "create"
    started = time.perf_counter()

    if not room_id:
        raise _reject(operation, BookingErrorKind.NOT_FOUND, user_id=user_id, missing="room_id")

    await _ensure_eligible(db, user_id, operation)

    if await booking_repository.find_booking_by_user_id(db, user_id):
        raise _reject(operation, BookingErrorKind.BOOKING_EXISTS, user_id=user_id)

    await _lock_for_occupancy_count(db, room_id)
    await _find_room_with_vacancy(db, room_id, operation)
    await _take_slot(db, room_id, operation)

    try:
        booking = await booking_repository.insert_booking(db, user_id, room_id)
    except IntegrityError:
        # Concurrent create by the same user; the session rollback undoes the decrement
        raise _reject(operation, BookingErrorKind.BOOKING_EXISTS, user_id=user_id)

    record_booking_attempt(operation, "success")
    booking_latency.labels(operation=operation).observe(time.perf_counter() - started)
    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=user_id,
        room_id=room_id,
    )
    return booking


async def move_booking(
    db: AsyncSession,
    user_id: int,
    booking_id: int,
    room_id: Optional[int],
) -> Booking:
    """
    Move the user's booking to another room.
    The destination loses one slot and the vacated room gets one back.
    """
    operation = "move"
    started = time.perf_counter()

    if not room_id:
        raise _reject(operation, BookingErrorKind.NOT_FOUND, user_id=user_id, missing="room_id")

    await _ensure_eligible(db, user_id, operation)

    booking = await booking_repository.find_booking_by_id(db, booking_id)
    if not booking or booking.user_id != user_id:
        raise _reject(operation, BookingErrorKind.NOT_FOUND, user_id=user_id, booking_id=booking_id)

    if booking.room_id == room_id:
        logger.info("booking_move_noop", booking_id=booking.id, room_id=room_id)
        record_booking_attempt(operation, "success")
        return booking

    previous_room_id = booking.room_id
    await _lock_for_occupancy_count(db, previous_room_id, room_id)
    await _find_room_with_vacancy(db, room_id, operation)

    # Room rows in ascending id order
    if room_id < previous_room_id:
        await _take_slot(db, room_id, operation)
        await room_repository.increment_room_capacity(db, previous_room_id)
    else:
        await room_repository.increment_room_capacity(db, previous_room_id)
        await _take_slot(db, room_id, operation)
    booking = await booking_repository.update_booking_room(db, booking, room_id)

    record_booking_attempt(operation, "success")
    booking_latency.labels(operation=operation).observe(time.perf_counter() - started)
    logger.info(
        "booking_moved",
        booking_id=booking.id,
        user_id=user_id,
        from_room_id=previous_room_id,
        to_room_id=room_id,
    )
    return booking
