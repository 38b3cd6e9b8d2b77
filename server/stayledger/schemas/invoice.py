"""Invoice-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from ..models.invoice import InvoiceItemKind, InvoiceStatus


class InvoiceLine(BaseModel):
    """Invoice line response schema."""

    model_config = ConfigDict(from_attributes=True)

    kind: InvoiceItemKind
    description: str
    quantity: int
    unit_price: Decimal
    amount: Decimal


class Invoice(BaseModel):
    """Invoice response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_number: str
    booking_id: UUID
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    status: InvoiceStatus
    items: list[InvoiceLine]
    created_at: datetime
