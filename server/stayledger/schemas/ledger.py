"""Ledger-related Pydantic schemas."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from .common import LedgerSnapshot


class LedgerSummary(BaseModel):
    """Stored ledger compared with a fresh recomputation from the payment sources."""

    booking_id: UUID
    total_amount: Decimal
    stored: LedgerSnapshot
    computed: LedgerSnapshot
    source_totals: dict[str, Decimal] = Field(..., description="Completed amount per payment source")
    is_synced: bool
    drift: Decimal = Field(..., description="computed paid minus stored paid")


class ReconcileAllResult(BaseModel):
    """Outcome of a reconciliation sweep."""

    checked: int = Field(..., ge=0)
    corrected: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    failed_booking_ids: list[UUID] = Field(default_factory=list)
