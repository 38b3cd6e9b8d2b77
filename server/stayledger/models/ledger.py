"""Ledger sync audit log model definition."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, Numeric, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class LedgerSyncLog(Base):
    """One row per reconciliation that changed a booking's stored ledger."""

    __tablename__ = "ledger_sync_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    old_paid_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    new_paid_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    old_remaining_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    new_remaining_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    old_payment_status: Mapped[str] = mapped_column(String(20), nullable=False)
    new_payment_status: Mapped[str] = mapped_column(String(20), nullable=False)

    # What caused the reconciliation: booking_created, payment_recorded, manual, sweep
    trigger: Mapped[str] = mapped_column(String(30), nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())

    def __repr__(self) -> str:
        return (
            f"<LedgerSyncLog(booking_id={self.booking_id}, "
            f"{self.old_payment_status}->{self.new_payment_status}, trigger='{self.trigger}')>"
        )
