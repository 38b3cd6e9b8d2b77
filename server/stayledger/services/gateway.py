"""Payment gateway collaborator: order creation and payment signature checks."""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Protocol

import httpx

from ..core.config import settings
from ..core.exceptions import ProblemDetailsException

logger = logging.getLogger(__name__)


class GatewayUnavailableError(ProblemDetailsException):
    """The gateway could not be reached or refused the order."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=502,
            title="Payment Gateway Unavailable",
            code="GATEWAY_UNAVAILABLE",
            detail=detail,
            retryable=True,
        )


@dataclass(frozen=True)
class OrderRef:
    """Reference to an order opened at the gateway."""

    order_id: str
    amount: Decimal
    currency: str
    status: str = "created"


class PaymentGateway(Protocol):
    """What the service needs from a payment gateway."""

    key_id: str

    def verify_signature(self, payment_id: str, order_id: str, signature: str) -> bool:
        ...

    async def create_order(self, amount: Decimal, currency: str, metadata: dict[str, Any]) -> OrderRef:
        ...


def to_minor_units(amount: Decimal) -> int:
    """Gateway amounts are integers in the currency's minor unit."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class HmacPaymentGateway:
    """
    Gateway client that signs ``order_id|payment_id`` with HMAC-SHA256.

    Signature verification is local; only order creation talks to the gateway.
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.key_id = key_id
        self._key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self._client = client
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "HmacPaymentGateway":
        return cls(
            key_id=settings.gateway_key_id,
            key_secret=settings.gateway_key_secret,
            base_url=settings.gateway_base_url,
        )

    def sign(self, payment_id: str, order_id: str) -> str:
        message = f"{order_id}|{payment_id}".encode("utf-8")
        return hmac.new(self._key_secret.encode("utf-8"), message, hashlib.sha256).hexdigest()

    def verify_signature(self, payment_id: str, order_id: str, signature: str) -> bool:
        if not self._key_secret:
            logger.error("Gateway secret is not configured; rejecting signature")
            return False
        return hmac.compare_digest(self.sign(payment_id, order_id), signature)

    async def create_order(self, amount: Decimal, currency: str, metadata: dict[str, Any]) -> OrderRef:
        """
        Open an order at the gateway.

        Raises:
            GatewayUnavailableError: On transport errors or a non-2xx response
        """
        payload = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "receipt": metadata.get("booking_reference"),
            "notes": {k: str(v) for k, v in metadata.items()},
        }

        try:
            if self._client is not None:
                response = await self._post(self._client, payload)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._post(client, payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(
                "Gateway order creation failed",
                extra={"amount": str(amount), "currency": currency, "error": str(e)}
            )
            raise GatewayUnavailableError(f"Order creation failed: {e}") from e

        data = response.json()
        logger.info(
            "Gateway order created",
            extra={"order_id": data["id"], "amount": str(amount), "currency": currency}
        )
        return OrderRef(
            order_id=data["id"],
            amount=amount,
            currency=currency,
            status=data.get("status", "created"),
        )

    async def _post(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> httpx.Response:
        return await client.post(
            f"{self.base_url}/orders",
            json=payload,
            auth=(self.key_id, self._key_secret),
        )
