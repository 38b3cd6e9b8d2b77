"""Availability-related Pydantic schemas."""

from datetime import date, time
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.booking import BookingStatus


class EffectiveRoomStatus(str, Enum):
    """Room bookability derived from stored status and bookings covering today."""
    AVAILABLE = "available"
    PREBOOKED = "prebooked"
    BOOKED = "booked"
    OCCUPIED = "occupied"
    CLEANING = "cleaning"
    MAINTENANCE = "maintenance"


class RoomAvailabilityRequest(BaseModel):
    """Request schema for checking a single room."""

    room_number: str = Field(..., min_length=1, max_length=20, description="Room to check")
    check_in: date = Field(..., description="Requested check-in date")
    check_out: date = Field(..., description="Requested check-out date")
    check_out_time: Optional[time] = Field(None, description="Planned departure time on the check-out day")
    exclude_booking_id: Optional[UUID] = Field(None, description="Booking to ignore, e.g. when editing it")


class RoomTypeAvailabilityRequest(BaseModel):
    """Request schema for checking every room of a type."""

    room_type_id: int = Field(..., ge=1, description="Room type to check")
    check_in: date = Field(..., description="Requested check-in date")
    check_out: date = Field(..., description="Requested check-out date")
    check_out_time: Optional[time] = Field(None, description="Planned departure time on the check-out day")


class ConflictingBooking(BaseModel):
    """A booking that blocks the requested stay."""

    booking_id: UUID
    booking_reference: str
    status: BookingStatus
    check_in_date: date
    check_out_date: date
    check_out_time: Optional[time] = None


class RoomAvailability(BaseModel):
    """Availability of one room for a requested stay."""

    room_number: str = Field(..., description="Room number")
    room_type_id: int = Field(..., description="Room type")
    available: bool = Field(..., description="True when no blocking booking conflicts")
    conflicting_bookings: list[ConflictingBooking] = Field(default_factory=list)
    effective_status: EffectiveRoomStatus = Field(..., description="Derived room status as of today")
    effective_price: Decimal = Field(..., description="Nightly price: room override or type base price")


class RoomTypeAvailability(BaseModel):
    """Availability of every room of a type."""

    room_type_id: int
    check_in: date
    check_out: date
    available_count: int = Field(..., ge=0)
    rooms: list[RoomAvailability]
