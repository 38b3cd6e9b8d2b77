"""FastAPI routers package."""

from .availability import router as availability_router
from .booking import router as booking_router
from .health import router as health_router
from .invoice import router as invoice_router
from .ledger import router as ledger_router
from .metrics import router as metrics_router
from .payment import router as payment_router

__all__ = [
    "availability_router",
    "booking_router",
    "health_router",
    "invoice_router",
    "ledger_router",
    "metrics_router",
    "payment_router",
]
