"""FastAPI dependencies for database sessions, clock, gateway and idempotency."""

from datetime import date
from functools import lru_cache

from fastapi import Header

from .database import get_db  # noqa: F401
from .exceptions import ValidationError


def get_today() -> date:
    """Business date used for past-date and check-in rules. Overridden in tests."""
    return date.today()


@lru_cache(maxsize=1)
def get_payment_gateway():
    """Process-wide gateway client configured from settings."""
    from ..services.gateway import HmacPaymentGateway

    return HmacPaymentGateway.from_settings()


async def get_idempotency_key(
    idempotency_key: str = Header(..., alias="Idempotency-Key")
) -> str:
    """
    Validate the Idempotency-Key header required on mutating payment and booking calls.

    Raises:
        ValidationError: If the key is blank or longer than 255 characters
    """
    key = idempotency_key.strip()
    if not key or len(key) > 255:
        raise ValidationError(
            detail="Idempotency-Key must be between 1 and 255 characters",
            errors={"Idempotency-Key": "invalid length"},
        )
    return key
