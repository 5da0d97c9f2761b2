"""
Read-only lookup of a user's enrollment and ticket.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.models.enrollment import Enrollment
from app.models.ticket import Ticket


async def find_enrollment_by_user_id(db: AsyncSession, user_id: int) -> Optional[Enrollment]:
    result = await db.execute(select(Enrollment).where(Enrollment.user_id == user_id))
    return result.scalar_one_or_none()


async def find_ticket_by_enrollment_id(db: AsyncSession, enrollment_id: int) -> Optional[Ticket]:
    """Ticket with its TicketType loaded."""
    result = await db.execute(
        select(Ticket)
        .options(joinedload(Ticket.ticket_type))
        .where(Ticket.enrollment_id == enrollment_id)
    )
    return result.scalar_one_or_none()
