"""Payment record model definitions.

Payments arrive through three separate sources, each stored in its own table
with identical columns. None of them is authoritative; the ledger is always
the union of completed records across all of them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Index, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from ..core.database import Base


class PaymentRecordStatus(str, Enum):
    """Payment record status enumeration."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentSource(str, Enum):
    """Logical payment sources, one table each."""
    INVOICE = "invoice"
    WALK_IN = "walk_in"
    REMAINING_AMOUNT = "remaining_amount"


class PaymentRecordMixin:
    """Columns shared by every payment source table. Rows are insert-only."""

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    @declared_attr
    def booking_id(cls) -> Mapped[UUID]:
        return mapped_column(
            Uuid,
            ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
            index=True
        )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    method: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[PaymentRecordStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentRecordStatus.COMPLETED
    )

    # External reference, e.g. the gateway payment id
    transaction_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    receipt_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    recorded_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__}(id={self.id}, booking_id={self.booking_id}, "
            f"amount={self.amount}, status={self.status})>"
        )


class Payment(PaymentRecordMixin, Base):
    """Full-invoice and gateway payments."""

    __tablename__ = "payments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        Index("ix_payments_transaction", "transaction_id"),
    )


class WalkInPayment(PaymentRecordMixin, Base):
    """Ad-hoc partial payments taken at the front desk."""

    __tablename__ = "walk_in_payments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_walk_in_payment_amount_positive"),
        Index("ix_walk_in_payments_transaction", "transaction_id"),
    )


class RemainingAmountPayment(PaymentRecordMixin, Base):
    """Legacy settle-the-remaining-amount payments."""

    __tablename__ = "remaining_amount_payments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_remaining_amount_payment_amount_positive"),
        Index("ix_remaining_amount_payments_transaction", "transaction_id"),
    )


# Every table the reconciler must sum; adding a source means adding it here
PAYMENT_SOURCES: dict[PaymentSource, type[PaymentRecordMixin]] = {
    PaymentSource.INVOICE: Payment,
    PaymentSource.WALK_IN: WalkInPayment,
    PaymentSource.REMAINING_AMOUNT: RemainingAmountPayment,
}
