"""Unit tests for the payment gateway client."""

from decimal import Decimal

import httpx
import pytest

from stayledger.services.gateway import GatewayUnavailableError, HmacPaymentGateway, to_minor_units


def test_signature_round_trip():
    gateway = HmacPaymentGateway("key", "secret", "https://gateway.test")
    signature = gateway.sign("pay_1", "order_1")

    assert gateway.verify_signature("pay_1", "order_1", signature)
    assert not gateway.verify_signature("pay_2", "order_1", signature)


def test_signature_fails_without_secret():
    gateway = HmacPaymentGateway("key", "", "https://gateway.test")

    assert not gateway.verify_signature("pay_1", "order_1", gateway.sign("pay_1", "order_1"))


def test_minor_units():
    assert to_minor_units(Decimal("5000.00")) == 500000
    assert to_minor_units(Decimal("0.015")) == 2


@pytest.mark.asyncio
async def test_create_order_failure_is_retryable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "unavailable"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        gateway = HmacPaymentGateway("key", "secret", "https://gateway.test", client=client)

        with pytest.raises(GatewayUnavailableError) as exc_info:
            await gateway.create_order(Decimal("100.00"), "INR", {"booking_reference": "BK1"})

    assert exc_info.value.status_code == 502
    assert exc_info.value.retryable is True
