"""Payment-related Pydantic schemas."""

from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.payment import PaymentSource
from .common import LedgerSnapshot


class PaymentMethod(str, Enum):
    """Accepted payment methods."""
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    ONLINE = "online"


class RecordPaymentRequest(BaseModel):
    """Request schema for recording a payment against a booking."""

    booking_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    method: PaymentMethod = PaymentMethod.CASH
    source: PaymentSource = Field(PaymentSource.WALK_IN, description="Payment source table to record into")
    transaction_id: Optional[str] = Field(None, max_length=128, description="External transaction reference")
    gateway_payment_id: Optional[str] = Field(None, max_length=128)
    gateway_order_id: Optional[str] = Field(None, max_length=128)
    gateway_signature: Optional[str] = Field(None, max_length=256)
    recorded_by: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

    @property
    def has_gateway_fields(self) -> bool:
        return any((self.gateway_payment_id, self.gateway_order_id, self.gateway_signature))


class PaymentReceipt(BaseModel):
    """Response schema for an accepted payment."""

    receipt_number: str
    payment_id: UUID
    booking_id: UUID
    source: PaymentSource
    amount: Decimal
    method: PaymentMethod
    ledger: LedgerSnapshot


class CreateOrderRequest(BaseModel):
    """Request schema for opening a gateway order."""

    booking_id: UUID
    amount: Optional[Decimal] = Field(
        None, gt=0, decimal_places=2, description="Defaults to the remaining amount"
    )


class GatewayOrder(BaseModel):
    """Gateway order the client completes the payment against."""

    order_id: str
    booking_id: UUID
    amount: Decimal
    currency: str
    key_id: str
