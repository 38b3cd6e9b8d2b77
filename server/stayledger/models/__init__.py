"""Models module exporting all database models."""

from .booking import BLOCKING_STATUSES, Booking, BookingExtraService, BookingStatus, PaymentStatus
from .guest import Guest
from .idempotency import IdempotencyRecord
from .invoice import Invoice, InvoiceItem, InvoiceItemKind, InvoiceStatus, TaxAppliesTo, TaxRule
from .ledger import LedgerSyncLog
from .payment import (
    PAYMENT_SOURCES,
    Payment,
    PaymentRecordStatus,
    PaymentSource,
    RemainingAmountPayment,
    WalkInPayment,
)
from .room import Room, RoomStatus, RoomType

__all__ = [
    # Inventory
    "RoomType",
    "Room",
    "RoomStatus",

    # Guests and bookings
    "Guest",
    "Booking",
    "BookingExtraService",
    "BookingStatus",
    "PaymentStatus",
    "BLOCKING_STATUSES",

    # Payment sources
    "Payment",
    "WalkInPayment",
    "RemainingAmountPayment",
    "PaymentRecordStatus",
    "PaymentSource",
    "PAYMENT_SOURCES",

    # Invoicing
    "Invoice",
    "InvoiceItem",
    "InvoiceItemKind",
    "InvoiceStatus",
    "TaxRule",
    "TaxAppliesTo",

    # Audit
    "LedgerSyncLog",

    # Idempotency entity
    "IdempotencyRecord",
]
