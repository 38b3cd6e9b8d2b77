"""Invoice, invoice line and tax rule model definitions."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, Numeric, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .booking import Booking


class InvoiceStatus(str, Enum):
    """Invoice status enumeration."""
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class InvoiceItemKind(str, Enum):
    """Invoice line kinds."""
    ROOM_CHARGE = "room_charge"
    SERVICE = "service"
    TAX = "tax"
    ADJUSTMENT = "adjustment"


class TaxAppliesTo(str, Enum):
    """Which charge base a tax rule is levied on."""
    ALL = "all"
    ROOM_CHARGES = "room_charges"
    SERVICES = "services"


class TaxRule(Base):
    """A percentage tax levied on room charges, services, or both."""

    __tablename__ = "tax_rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False)
    applies_to: Mapped[TaxAppliesTo] = mapped_column(
        String(20),
        nullable=False,
        default=TaxAppliesTo.ALL
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("rate >= 0", name="ck_tax_rate_non_negative"),
        CheckConstraint(
            "applies_to IN ('all', 'room_charges', 'services')",
            name="ck_tax_applies_to_valid"
        ),
    )

    def __repr__(self) -> str:
        return f"<TaxRule(id={self.id}, name='{self.name}', rate={self.rate}, applies_to={self.applies_to})>"


class Invoice(Base):
    """The single invoice issued for a booking; its total equals the booking total."""

    __tablename__ = "invoices"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )
    invoice_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        String(20),
        nullable=False,
        default=InvoiceStatus.PENDING
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        server_onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_invoice_total_non_negative"),
        CheckConstraint("discount_amount >= 0", name="ck_invoice_discount_non_negative"),
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="invoice")
    items: Mapped[list["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id"
    )

    def __repr__(self) -> str:
        return (
            f"<Invoice(id={self.id}, number='{self.invoice_number}', "
            f"total={self.total_amount}, status={self.status})>"
        )


class InvoiceItem(Base):
    """One invoice line."""

    __tablename__ = "invoice_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    kind: Mapped[InvoiceItemKind] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")

    def __repr__(self) -> str:
        return f"<InvoiceItem(id={self.id}, kind={self.kind}, amount={self.amount})>"
