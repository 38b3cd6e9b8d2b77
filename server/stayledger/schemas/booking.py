"""Booking-related Pydantic schemas."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..models.booking import BookingStatus, PaymentStatus
from .common import LedgerSnapshot
from .payment import PaymentMethod


class GuestDetails(BaseModel):
    """Guest identity and contact details."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)
    email: Optional[EmailStr] = Field(None, description="Primary match key for returning guests")
    phone: Optional[str] = Field(None, min_length=5, max_length=32, description="Secondary match key")
    address: Optional[str] = None
    id_proof_type: Optional[str] = Field(None, max_length=50)
    id_proof_number: Optional[str] = Field(None, max_length=100)


class ExtraServiceItem(BaseModel):
    """An extra service to charge on the booking."""

    description: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(1, ge=1)
    unit_price: Decimal = Field(..., ge=0, decimal_places=2)


class CreateBookingRequest(BaseModel):
    """Request schema for creating a booking in a specific room or any room of a type."""

    guest: GuestDetails
    room_number: Optional[str] = Field(None, min_length=1, max_length=20)
    room_type_id: Optional[int] = Field(None, ge=1)
    check_in_date: date
    check_out_date: date
    check_in_time: Optional[time] = None
    check_out_time: Optional[time] = None
    adults: int = Field(1, ge=1, le=20)
    children: int = Field(0, ge=0, le=20)
    nightly_rate: Optional[Decimal] = Field(
        None, gt=0, decimal_places=2, description="Defaults to the room's effective price"
    )
    services: list[ExtraServiceItem] = Field(default_factory=list)
    discount: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    initial_payment: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    payment_method: PaymentMethod = PaymentMethod.CASH
    transaction_id: Optional[str] = Field(None, max_length=128)
    owner_reference: bool = Field(False, description="Referred by the owner; no payment is required")
    booking_source: str = Field("walk_in", max_length=50)
    notes: Optional[str] = None


class BookingIdRequest(BaseModel):
    """Request schema for operations addressed by booking id."""

    booking_id: UUID = Field(..., description="Booking to act on")


class ExtendStayRequest(BaseModel):
    """Request schema for moving a booking's check-out date later."""

    booking_id: UUID = Field(..., description="Booking to extend")
    new_check_out_date: date = Field(..., description="New check-out date; the current one is a no-op")


class BookingCreated(BaseModel):
    """Response schema for a created booking."""

    booking_id: UUID
    booking_reference: str
    room_number: str
    status: BookingStatus
    total_amount: Decimal
    payment_required: bool = Field(..., description="True while money is still owed")
    ledger: LedgerSnapshot


class Booking(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_reference: str
    room_number: str
    guest_id: int
    check_in_date: date
    check_out_date: date
    check_in_time: Optional[time] = None
    check_out_time: Optional[time] = None
    adults: int
    children: int
    nightly_rate: Decimal
    status: BookingStatus
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    payment_status: PaymentStatus
    owner_reference: bool
    booking_source: str
    created_at: datetime
