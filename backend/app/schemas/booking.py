"""
Pydantic schemas for booking-related request/response validation.

Payloads use camelCase keys (`roomId`, `bookingId`, `hotelId`), matching
the rest of the event platform's API.
"""

from datetime import datetime
from typing import Optional

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class BookingCreate(BaseModel):
    room_id: Optional[int] = Field(default=None, alias="roomId")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("room_id", mode="before")
    @classmethod
    def blank_room_id_is_missing(cls, value):
        # An empty roomId is reported as 404 by the service, not 422
        if value == "":
            return None
        return value


class BookingIdResponse(BaseModel):
    booking_id: int = Field(serialization_alias="bookingId")


class RoomResponse(BaseModel):
    id: int
    name: str
    capacity: int
    hotel_id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=AliasGenerator(serialization_alias=to_camel),
    )


class BookingWithRoomResponse(BaseModel):
    id: int
    room: RoomResponse = Field(serialization_alias="Room")
