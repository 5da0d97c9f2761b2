"""
Business-rule failures raised by the booking service and their HTTP mapping.

Every failure is a fresh BookingError carrying a kind and a message.
The adapter maps the kind to a status code through STATUS_BY_KIND, which
must cover every member of BookingErrorKind.
"""

from enum import Enum
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from app.core.logging import get_logger

logger = get_logger(__name__)


class BookingErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    NO_VACANCY = "NO_VACANCY"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
    CANNOT_BOOK_HOTEL = "CANNOT_BOOK_HOTEL"
    BOOKING_EXISTS = "BOOKING_EXISTS"
    UNAVAILABLE = "UNAVAILABLE"


DEFAULT_MESSAGES: dict[BookingErrorKind, str] = {
    BookingErrorKind.NOT_FOUND: "No result for this search",
    BookingErrorKind.NO_VACANCY: "This room is no longer available",
    BookingErrorKind.PAYMENT_REQUIRED: "Payment required",
    BookingErrorKind.CANNOT_BOOK_HOTEL: "Ticket does not include in-person hotel accommodation",
    BookingErrorKind.BOOKING_EXISTS: "User already has a booking",
    BookingErrorKind.UNAVAILABLE: "Service temporarily unavailable",
}

STATUS_BY_KIND: dict[BookingErrorKind, int] = {
    BookingErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BookingErrorKind.NO_VACANCY: status.HTTP_403_FORBIDDEN,
    BookingErrorKind.PAYMENT_REQUIRED: status.HTTP_402_PAYMENT_REQUIRED,
    BookingErrorKind.CANNOT_BOOK_HOTEL: status.HTTP_403_FORBIDDEN,
    BookingErrorKind.BOOKING_EXISTS: status.HTTP_403_FORBIDDEN,
    BookingErrorKind.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


class BookingError(Exception):
    def __init__(self, kind: BookingErrorKind, message: Optional[str] = None):
        self.kind = kind
        self.message = message or DEFAULT_MESSAGES[kind]
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def __repr__(self) -> str:
        return f"<BookingError(kind={self.kind.value}, message={self.message!r})>"


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("booking_error", kind=exc.kind.value, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def database_unavailable_handler(request: Request, exc: OperationalError) -> JSONResponse:
    return await booking_error_handler(
        request, BookingError(BookingErrorKind.UNAVAILABLE)
    )


async def general_500_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


EXCEPTION_HANDLERS = {
    BookingError: booking_error_handler,
    OperationalError: database_unavailable_handler,
    Exception: general_500_exception_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
