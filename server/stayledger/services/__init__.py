"""Business services."""

from .availability_service import AvailabilityService
from .booking_service import BookingService
from .gateway import HmacPaymentGateway, PaymentGateway
from .idempotency_service import IdempotencyService
from .invoice_service import InvoiceService, compute_invoice
from .ledger_service import LedgerService, derive_ledger
from .overlap import StayRange, request_conflicts, stays_overlap
from .payment_service import PaymentService

__all__ = [
    "AvailabilityService",
    "BookingService",
    "HmacPaymentGateway",
    "IdempotencyService",
    "InvoiceService",
    "LedgerService",
    "PaymentGateway",
    "PaymentService",
    "StayRange",
    "compute_invoice",
    "derive_ledger",
    "request_conflicts",
    "stays_overlap",
]
