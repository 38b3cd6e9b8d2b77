"""Unit tests for invoice computation."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest

from stayledger.core.exceptions import NotFoundError, ValidationError
from stayledger.models import TaxAppliesTo, TaxRule
from stayledger.schemas.booking import CreateBookingRequest, ExtraServiceItem, GuestDetails
from stayledger.services.booking_service import BookingService
from stayledger.services.invoice_service import InvoiceService, compute_invoice, extra_guest_nightly_charge


@dataclass
class Rule:
    name: str
    rate: Decimal
    applies_to: str = "all"
    is_active: bool = True


@dataclass
class Service:
    description: str
    quantity: int
    unit_price: Decimal


def test_room_charges_only():
    totals = compute_invoice(nights=3, nightly_rate=Decimal("1000.00"))

    assert totals.room_charges == Decimal("3000.00")
    assert totals.total == Decimal("3000.00")


def test_taxes_are_additive_not_compounded():
    """Two 10% rules on 1000 give 200 of tax, not 210."""
    totals = compute_invoice(
        nights=1,
        nightly_rate=Decimal("1000.00"),
        tax_rules=[Rule("State", Decimal("10")), Rule("Central", Decimal("10"))],
    )

    assert totals.tax_amount == Decimal("200")
    assert totals.total == Decimal("1200.00")


def test_taxes_apply_to_their_own_base():
    totals = compute_invoice(
        nights=2,
        nightly_rate=Decimal("1000.00"),
        services=[Service("Dinner", 2, Decimal("250.00"))],
        tax_rules=[
            Rule("Room tax", Decimal("12"), applies_to="room_charges"),
            Rule("Service tax", Decimal("18"), applies_to="services"),
        ],
    )

    assert totals.service_charges == Decimal("500.00")
    assert [line.base for line in totals.tax_lines] == [Decimal("2000.00"), Decimal("500.00")]
    assert totals.total == Decimal("2830.00")


def test_inactive_rules_are_ignored():
    totals = compute_invoice(
        nights=1,
        nightly_rate=Decimal("1000.00"),
        tax_rules=[Rule("Old tax", Decimal("50"), is_active=False)],
    )

    assert totals.total == Decimal("1000.00")
    assert totals.tax_lines == []


def test_total_is_rounded_half_up_once():
    """333.33 * 3 = 999.99; 2.5% of that is 24.99975, so the total 1024.98975 rounds up to 1024.99."""
    totals = compute_invoice(
        nights=3,
        nightly_rate=Decimal("333.33"),
        tax_rules=[Rule("Levy", Decimal("2.5"))],
    )

    assert totals.tax_amount == Decimal("24.99975")
    assert totals.total == Decimal("1024.99")


def test_half_cent_rounds_up():
    totals = compute_invoice(nights=1, nightly_rate=Decimal("0.10"), tax_rules=[Rule("Tax", Decimal("25"))])

    assert totals.total == Decimal("0.13")


def test_discount_is_subtracted_after_tax():
    totals = compute_invoice(
        nights=1,
        nightly_rate=Decimal("1000.00"),
        tax_rules=[Rule("Tax", Decimal("10"))],
        discount=Decimal("100.00"),
    )

    assert totals.total == Decimal("1000.00")


def test_discount_larger_than_charges_is_rejected():
    with pytest.raises(ValueError):
        compute_invoice(nights=1, nightly_rate=Decimal("100.00"), discount=Decimal("150.00"))


def test_negative_nights_are_rejected():
    with pytest.raises(ValueError):
        compute_invoice(nights=-1, nightly_rate=Decimal("100.00"))


def test_extra_guest_charge_is_zero_within_capacity(monkeypatch):
    from stayledger.services import invoice_service

    monkeypatch.setattr(invoice_service.settings, "extra_guest_nightly_charge", Decimal("300.00"))

    assert extra_guest_nightly_charge(guests=2, capacity=2) == Decimal("0")
    assert extra_guest_nightly_charge(guests=4, capacity=2) == Decimal("600.00")


@pytest.mark.asyncio
async def test_booking_invoice_uses_active_tax_rules(test_session, seeded):
    """Test a booking's invoice carries the tax lines and its total matches the booking."""
    test_session.add_all([
        TaxRule(name="GST", rate=Decimal("12.000"), applies_to=TaxAppliesTo.ROOM_CHARGES.value),
        TaxRule(name="Service GST", rate=Decimal("18.000"), applies_to=TaxAppliesTo.SERVICES.value),
        TaxRule(name="Retired", rate=Decimal("5.000"), is_active=False),
    ])
    await test_session.commit()

    created = await BookingService(test_session, today=date(2024, 1, 1)).create_booking(CreateBookingRequest(
        guest=GuestDetails(first_name="Asha", email="asha@example.com"),
        room_number="R101",
        check_in_date=date(2024, 3, 1),
        check_out_date=date(2024, 3, 3),
        services=[ExtraServiceItem(description="Airport transfer", unit_price=Decimal("500.00"))],
    ))

    invoice = await InvoiceService(test_session).get_invoice(created.booking_id)

    assert created.total_amount == Decimal("2830.00")
    assert invoice.total_amount == created.total_amount
    assert invoice.subtotal == Decimal("2500.00")
    assert invoice.tax_amount == Decimal("330.00")
    assert [item.kind for item in invoice.items] == ["room_charge", "service", "tax", "tax"]
    assert invoice.status == "pending"


@pytest.mark.asyncio
async def test_discount_above_charges_is_a_validation_error(test_session, seeded):
    with pytest.raises(ValidationError):
        await InvoiceService(test_session).compute_totals(
            nights=1,
            nightly_rate=Decimal("100.00"),
            services=[],
            guests=1,
            capacity=2,
            discount=Decimal("500.00"),
        )


@pytest.mark.asyncio
async def test_get_invoice_not_found(test_session, seeded):
    from uuid import uuid4

    with pytest.raises(NotFoundError):
        await InvoiceService(test_session).get_invoice(uuid4())
