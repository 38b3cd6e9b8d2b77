"""Invoice service: stay charges, additive taxes and the booking total."""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.exceptions import NotFoundError, ValidationError
from ..models.booking import Booking, BookingExtraService
from ..models.invoice import Invoice, InvoiceItem, InvoiceItemKind, TaxAppliesTo, TaxRule
from ..models.room import Room
from .ledger_service import invoice_status_for

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class ServiceCharge(Protocol):
    description: str
    quantity: int
    unit_price: Decimal


class TaxRate(Protocol):
    name: str
    rate: Decimal
    applies_to: str
    is_active: bool


@dataclass(frozen=True)
class TaxLine:
    name: str
    rate: Decimal
    applies_to: TaxAppliesTo
    base: Decimal
    amount: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    """Computed invoice figures. Only ``total`` is rounded."""

    nights: int
    nightly_rate: Decimal
    room_charges: Decimal
    extra_guest_charges: Decimal
    service_charges: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    discount: Decimal
    total: Decimal
    tax_lines: list[TaxLine] = field(default_factory=list)


def compute_invoice(
    nights: int,
    nightly_rate: Decimal,
    services: Iterable[ServiceCharge] = (),
    tax_rules: Iterable[TaxRate] = (),
    discount: Decimal = Decimal("0"),
    extra_guest_charge: Decimal = Decimal("0"),
) -> InvoiceTotals:
    """
    Compute the invoice for a stay.

    Each active tax rule is levied on its own base (room charges, services, or
    both) and the rules add up; none is applied on top of another. The total
    is rounded once, half up, to cents.

    Args:
        nights: Number of nights
        nightly_rate: Effective nightly room rate
        services: Extra service lines
        tax_rules: Tax rules; inactive ones are ignored
        discount: Flat discount subtracted after tax
        extra_guest_charge: Extra-guest charge per night

    Returns:
        InvoiceTotals with the unrounded components and the rounded total

    Raises:
        ValueError: On negative nights or a discount larger than the charges
    """
    if nights < 0:
        raise ValueError(f"nights must not be negative, got {nights}")

    room_charges = Decimal(nightly_rate) * nights
    extra_guest_charges = Decimal(extra_guest_charge) * nights
    service_charges = sum(
        (Decimal(s.unit_price) * s.quantity for s in services),
        Decimal("0"),
    )
    room_base = room_charges + extra_guest_charges
    subtotal = room_base + service_charges

    tax_lines = []
    for rule in tax_rules:
        if not rule.is_active:
            continue
        applies_to = TaxAppliesTo(rule.applies_to)
        if applies_to == TaxAppliesTo.ROOM_CHARGES:
            base = room_base
        elif applies_to == TaxAppliesTo.SERVICES:
            base = service_charges
        else:
            base = subtotal
        tax_lines.append(TaxLine(
            name=rule.name,
            rate=Decimal(rule.rate),
            applies_to=applies_to,
            base=base,
            amount=base * Decimal(rule.rate) / 100,
        ))

    tax_amount = sum((line.amount for line in tax_lines), Decimal("0"))
    discount = Decimal(discount)
    total = (subtotal + tax_amount - discount).quantize(CENT, rounding=ROUND_HALF_UP)

    if total < 0:
        raise ValueError(f"discount {discount} exceeds charges {subtotal + tax_amount}")

    return InvoiceTotals(
        nights=nights,
        nightly_rate=Decimal(nightly_rate),
        room_charges=room_charges,
        extra_guest_charges=extra_guest_charges,
        service_charges=service_charges,
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount=discount,
        total=total,
        tax_lines=tax_lines,
    )


def extra_guest_nightly_charge(guests: int, capacity: int) -> Decimal:
    """Per-night charge for guests beyond the room type's capacity."""
    extra_guests = max(0, guests - capacity)
    return settings.extra_guest_nightly_charge * extra_guests


def _display(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


class InvoiceService:
    """Service for invoice computation and persistence."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def active_tax_rules(self) -> Sequence[TaxRule]:
        result = await self.db.execute(
            select(TaxRule).where(TaxRule.is_active.is_(True)).order_by(TaxRule.id)
        )
        return result.scalars().all()

    async def compute_totals(
        self,
        nights: int,
        nightly_rate: Decimal,
        services: Iterable[ServiceCharge],
        guests: int,
        capacity: int,
        discount: Decimal = Decimal("0"),
    ) -> InvoiceTotals:
        """
        Compute totals for a stay that is not stored yet.

        Raises:
            ValidationError: If the discount exceeds the charges
        """
        tax_rules = await self.active_tax_rules()
        try:
            return compute_invoice(
                nights=nights,
                nightly_rate=nightly_rate,
                services=services,
                tax_rules=tax_rules,
                discount=discount,
                extra_guest_charge=extra_guest_nightly_charge(guests, capacity),
            )
        except ValueError as e:
            raise ValidationError(detail=str(e), errors={"discount": str(discount)}) from e

    async def compute_for_booking(self, booking: Booking, discount: Decimal) -> InvoiceTotals:
        """Compute totals for a stored booking from its extra services and the active tax rules."""
        services = (await self.db.execute(
            select(BookingExtraService)
            .where(BookingExtraService.booking_id == booking.id)
            .order_by(BookingExtraService.id)
        )).scalars().all()
        room = (await self.db.execute(
            select(Room).options(selectinload(Room.room_type)).where(Room.room_number == booking.room_number)
        )).scalar_one()

        return await self.compute_totals(
            nights=booking.nights,
            nightly_rate=booking.nightly_rate,
            services=services,
            guests=booking.adults + booking.children,
            capacity=room.room_type.capacity,
            discount=discount,
        )

    async def _build_items(self, booking: Booking, totals: InvoiceTotals) -> list[InvoiceItem]:
        items = [InvoiceItem(
            kind=InvoiceItemKind.ROOM_CHARGE.value,
            description=f"Room {booking.room_number}, {totals.nights} night(s)",
            quantity=totals.nights,
            unit_price=totals.nightly_rate,
            amount=_display(totals.room_charges),
        )]
        if totals.extra_guest_charges:
            items.append(InvoiceItem(
                kind=InvoiceItemKind.ROOM_CHARGE.value,
                description="Extra guest charge",
                quantity=totals.nights,
                unit_price=_display(totals.extra_guest_charges / totals.nights),
                amount=_display(totals.extra_guest_charges),
            ))
        for service in (await self.db.execute(
            select(BookingExtraService)
            .where(BookingExtraService.booking_id == booking.id)
            .order_by(BookingExtraService.id)
        )).scalars():
            items.append(InvoiceItem(
                kind=InvoiceItemKind.SERVICE.value,
                description=service.description,
                quantity=service.quantity,
                unit_price=service.unit_price,
                amount=_display(service.line_total),
            ))
        for line in totals.tax_lines:
            items.append(InvoiceItem(
                kind=InvoiceItemKind.TAX.value,
                description=f"{line.name} ({line.rate}% on {line.applies_to.value})",
                quantity=1,
                unit_price=_display(line.amount),
                amount=_display(line.amount),
            ))
        if totals.discount:
            items.append(InvoiceItem(
                kind=InvoiceItemKind.ADJUSTMENT.value,
                description="Discount",
                quantity=1,
                unit_price=_display(-totals.discount),
                amount=_display(-totals.discount),
            ))
        return items

    async def create_for_booking(self, booking: Booking, totals: InvoiceTotals) -> Invoice:
        """
        Persist the booking's invoice and its lines. A booking gets exactly one invoice.

        Args:
            booking: Stored (flushed) booking
            totals: Totals the booking was priced with

        Returns:
            The existing or newly created invoice
        """
        existing = (await self.db.execute(
            select(Invoice).where(Invoice.booking_id == booking.id)
        )).scalar_one_or_none()
        if existing:
            return existing

        invoice = Invoice(
            booking_id=booking.id,
            invoice_number=f"INV-{booking.booking_reference}",
            subtotal=_display(totals.subtotal),
            tax_amount=_display(totals.tax_amount),
            discount_amount=_display(totals.discount),
            total_amount=totals.total,
            status=invoice_status_for(booking.payment_status).value,
        )
        invoice.items = await self._build_items(booking, totals)
        self.db.add(invoice)
        await self.db.flush()

        logger.info(
            "Invoice created",
            extra={
                "booking_id": str(booking.id),
                "invoice_number": invoice.invoice_number,
                "total_amount": str(invoice.total_amount),
                "tax_amount": str(invoice.tax_amount),
            }
        )

        return invoice

    async def reprice_for_booking(self, booking: Booking) -> InvoiceTotals:
        """
        Recompute a booking's invoice after its stay changed, keeping the original discount.

        The invoice lines are rebuilt; the caller stores the new total on the booking
        and reconciles the ledger.

        Raises:
            NotFoundError: If the booking has no invoice
            ValidationError: If the stored discount now exceeds the charges
        """
        invoice = await self.get_invoice(booking.id)
        totals = await self.compute_for_booking(booking, discount=invoice.discount_amount)

        previous_total = invoice.total_amount
        invoice.subtotal = _display(totals.subtotal)
        invoice.tax_amount = _display(totals.tax_amount)
        invoice.total_amount = totals.total
        invoice.items = await self._build_items(booking, totals)
        await self.db.flush()

        logger.info(
            "Invoice repriced",
            extra={
                "booking_id": str(booking.id),
                "invoice_number": invoice.invoice_number,
                "previous_total": str(previous_total),
                "total_amount": str(totals.total),
            }
        )

        return totals

    async def get_invoice(self, booking_id: UUID) -> Invoice:
        """
        Get a booking's invoice with its lines.

        Raises:
            NotFoundError: If the booking has no invoice
        """
        stmt = (
            select(Invoice)
            .options(selectinload(Invoice.items))
            .where(Invoice.booking_id == booking_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        invoice = result.scalar_one_or_none()

        if not invoice:
            raise NotFoundError(resource_type="invoice", resource_id=str(booking_id))

        return invoice
