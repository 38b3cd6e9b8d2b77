"""Booking and extra service model definitions."""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .guest import Guest
    from .invoice import Invoice
    from .room import Room


class BookingStatus(str, Enum):
    """Booking lifecycle status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Ledger status derived by reconciliation."""
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"
    REFERRED_BY_OWNER = "referred_by_owner"


# Statuses that hold the room for their date range
BLOCKING_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.CHECKED_IN,
)


class Booking(Base):
    """A guest's stay in one room over a date range, with its payment ledger."""

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_reference: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)

    room_number: Mapped[str] = mapped_column(
        String(20),
        ForeignKey("rooms.room_number", ondelete="RESTRICT"),
        nullable=False
    )
    guest_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("guests.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Stay
    check_in_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_out_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_in_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    check_out_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    adults: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    children: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    nightly_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )

    # Ledger; paid, remaining and payment status are written only by the reconciler
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    remaining_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING
    )
    owner_reference: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    booking_source: Mapped[str] = mapped_column(String(50), nullable=False, default="walk_in")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        server_onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("check_out_date >= check_in_date", name="ck_booking_dates_ordered"),
        CheckConstraint("adults >= 1", name="ck_booking_adults_positive"),
        CheckConstraint("children >= 0", name="ck_booking_children_non_negative"),
        CheckConstraint("nightly_rate > 0", name="ck_booking_rate_positive"),
        CheckConstraint("total_amount >= 0", name="ck_booking_total_non_negative"),
        CheckConstraint("paid_amount >= 0", name="ck_booking_paid_non_negative"),
        Index("ix_bookings_room_dates", "room_number", "check_in_date", "check_out_date"),
    )

    room: Mapped["Room"] = relationship("Room", back_populates="bookings")
    guest: Mapped["Guest"] = relationship("Guest", back_populates="bookings")
    services: Mapped[list["BookingExtraService"]] = relationship(
        "BookingExtraService",
        back_populates="booking",
        cascade="all, delete-orphan"
    )
    invoice: Mapped["Invoice | None"] = relationship(
        "Invoice",
        back_populates="booking",
        uselist=False
    )

    @property
    def nights(self) -> int:
        return (self.check_out_date - self.check_in_date).days

    @property
    def is_blocking(self) -> bool:
        return self.status in BLOCKING_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, ref='{self.booking_reference}', room='{self.room_number}', "
            f"{self.check_in_date}->{self.check_out_date}, status={self.status}, "
            f"payment_status={self.payment_status})>"
        )


class BookingExtraService(Base):
    """Itemized extra service charged on a booking (laundry, meals, transfers)."""

    __tablename__ = "booking_services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_booking_service_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_booking_service_price_non_negative"),
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="services")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def __repr__(self) -> str:
        return f"<BookingExtraService(id={self.id}, '{self.description}' x{self.quantity} @ {self.unit_price})>"
