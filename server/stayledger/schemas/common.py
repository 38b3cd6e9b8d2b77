"""Common Pydantic schemas."""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.booking import PaymentStatus


class Violation(BaseModel):
    """Validation error violation."""

    path: str = Field(..., description="JSON path to the invalid field")
    message: str = Field(..., description="Validation error message")


class Problem(BaseModel):
    """RFC 9457 Problem Details response."""

    type: Optional[str] = Field(None, description="Problem type URI")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="URI reference for this occurrence")
    code: Optional[str] = Field(None, description="Application-specific error code")
    retryable: Optional[bool] = Field(None, description="Whether the operation can be retried")
    violations: Optional[List[Violation]] = Field(None, description="Validation errors")


class LedgerSnapshot(BaseModel):
    """The paid / remaining / status triple stored on a booking."""

    model_config = ConfigDict(from_attributes=True)

    paid_amount: Decimal = Field(..., description="Sum of completed payments across all sources")
    remaining_amount: Decimal = Field(..., description="Amount still owed; 0 for owner-referred stays")
    payment_status: PaymentStatus = Field(..., description="Derived payment status")
