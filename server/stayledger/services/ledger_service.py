"""Ledger service: derive a booking's paid / remaining / status from its payments."""

import logging
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import transactional, utcnow
from ..core.exceptions import NotFoundError, PersistenceFailureError, ProblemDetailsException
from ..core.locks import acquire_advisory_lock, booking_lock_key, lock_registry
from ..core.observability import metrics_collector
from ..models.booking import Booking, PaymentStatus
from ..models.invoice import Invoice, InvoiceStatus
from ..models.ledger import LedgerSyncLog
from ..models.payment import PAYMENT_SOURCES, PaymentRecordStatus, PaymentSource
from ..schemas.common import LedgerSnapshot
from ..schemas.ledger import LedgerSummary, ReconcileAllResult

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize_money(value: Decimal | int | str) -> Decimal:
    """Round to whole cents, half up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def derive_ledger(total: Decimal, paid: Decimal, owner_reference: bool) -> LedgerSnapshot:
    """
    Derive the ledger triple for a booking.

    Args:
        total: Booking total
        paid: Sum of completed payments across every source
        owner_reference: Whether the owner waived payment for the stay

    Returns:
        The paid / remaining / status triple. Owner-referred stays always owe
        nothing; otherwise remaining is total minus paid.
    """
    total = quantize_money(total)
    paid = quantize_money(paid)

    if owner_reference:
        return LedgerSnapshot(
            paid_amount=paid,
            remaining_amount=ZERO,
            payment_status=PaymentStatus.REFERRED_BY_OWNER,
        )

    if paid >= total:
        status = PaymentStatus.COMPLETED
    elif paid > 0:
        status = PaymentStatus.PARTIAL
    else:
        status = PaymentStatus.PENDING

    return LedgerSnapshot(
        paid_amount=paid,
        remaining_amount=total - paid,
        payment_status=status,
    )


def invoice_status_for(payment_status: PaymentStatus) -> InvoiceStatus:
    """Invoice status that mirrors a booking's payment status."""
    if payment_status in (PaymentStatus.COMPLETED, PaymentStatus.REFERRED_BY_OWNER):
        return InvoiceStatus.PAID
    if payment_status == PaymentStatus.PARTIAL:
        return InvoiceStatus.PARTIAL
    return InvoiceStatus.PENDING


def stored_ledger(booking: Booking) -> LedgerSnapshot:
    return LedgerSnapshot(
        paid_amount=quantize_money(booking.paid_amount),
        remaining_amount=quantize_money(booking.remaining_amount),
        payment_status=booking.payment_status,
    )


class LedgerService:
    """The single place where booking ledger values are computed and written."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_booking(self, booking_id: UUID) -> Booking:
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        booking = result.scalar_one_or_none()

        if not booking:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))

        return booking

    async def source_totals(self, booking_id: UUID) -> dict[PaymentSource, Decimal]:
        """Completed payment total per source. Every source is summed; none is skipped."""
        totals: dict[PaymentSource, Decimal] = {}
        for source, model in PAYMENT_SOURCES.items():
            stmt = select(func.coalesce(func.sum(model.amount), 0)).where(
                model.booking_id == booking_id,
                model.status == PaymentRecordStatus.COMPLETED.value,
            )
            result = await self.db.execute(stmt)
            totals[source] = quantize_money(result.scalar_one())
        return totals

    async def reconcile(self, booking_id: UUID, trigger: str = "manual") -> LedgerSnapshot:
        """
        Recompute and store a booking's ledger inside the caller's transaction.

        The stored triple is compared with the recomputed one and written only
        when they differ, so repeating the call without new payments is a
        no-op. The write is a single UPDATE whose row count is verified.

        Args:
            booking_id: Booking to reconcile
            trigger: What caused the reconciliation, recorded in the sync log

        Returns:
            The ledger as now stored

        Raises:
            NotFoundError: If the booking does not exist
            PersistenceFailureError: If the UPDATE did not hit exactly one row
        """
        # Pending inserts (e.g. the payment that triggered this) must be visible to the sums
        await self.db.flush()

        booking = await self._get_booking(booking_id)
        totals = await self.source_totals(booking_id)
        paid = sum(totals.values(), ZERO)

        current = stored_ledger(booking)
        computed = derive_ledger(booking.total_amount, paid, booking.owner_reference)

        if computed.payment_status != PaymentStatus.REFERRED_BY_OWNER and computed.remaining_amount < 0:
            logger.warning(
                "Booking is overpaid",
                extra={
                    "booking_id": str(booking_id),
                    "total_amount": str(booking.total_amount),
                    "paid_amount": str(computed.paid_amount),
                }
            )

        if computed == current:
            metrics_collector.record_reconciliation(changed=False)
            logger.debug(
                "Ledger already reconciled",
                extra={"booking_id": str(booking_id), "trigger": trigger}
            )
            return current

        stmt = (
            update(Booking)
            .where(Booking.id == booking_id)
            .values(
                paid_amount=computed.paid_amount,
                remaining_amount=computed.remaining_amount,
                payment_status=computed.payment_status.value,
                updated_at=utcnow(),
            )
        )
        result = await self.db.execute(stmt)

        if result.rowcount != 1:
            logger.error(
                "Ledger update did not match exactly one booking",
                extra={"booking_id": str(booking_id), "rowcount": result.rowcount, "trigger": trigger}
            )
            raise PersistenceFailureError(
                detail=f"Ledger update for booking {booking_id} affected {result.rowcount} rows",
                operation="reconcile",
            )

        await self.db.execute(
            update(Invoice)
            .where(Invoice.booking_id == booking_id)
            .values(status=invoice_status_for(computed.payment_status).value, updated_at=utcnow())
        )

        self.db.add(LedgerSyncLog(
            booking_id=booking_id,
            old_paid_amount=current.paid_amount,
            new_paid_amount=computed.paid_amount,
            old_remaining_amount=current.remaining_amount,
            new_remaining_amount=computed.remaining_amount,
            old_payment_status=current.payment_status.value,
            new_payment_status=computed.payment_status.value,
            trigger=trigger,
        ))
        await self.db.flush()

        metrics_collector.record_reconciliation(changed=True)
        metrics_collector.record_drift_corrected(computed.paid_amount - current.paid_amount)
        logger.info(
            "Ledger reconciled",
            extra={
                "booking_id": str(booking_id),
                "trigger": trigger,
                "paid_amount": str(computed.paid_amount),
                "remaining_amount": str(computed.remaining_amount),
                "payment_status": computed.payment_status.value,
                "previous_status": current.payment_status.value,
            }
        )

        return computed

    async def reconcile_booking(self, booking_id: UUID, trigger: str = "manual") -> LedgerSnapshot:
        """
        Reconcile one booking in its own transaction under the booking lock.

        Raises:
            NotFoundError: If the booking does not exist
            ConcurrencyConflictError: If the booking lock cannot be taken in time
        """
        key = booking_lock_key(str(booking_id))
        async with lock_registry.hold(key):
            async with transactional(self.db, "reconcile"):
                await acquire_advisory_lock(self.db, key)
                return await self.reconcile(booking_id, trigger=trigger)

    async def ledger_summary(self, booking_id: UUID) -> LedgerSummary:
        """
        Compare the stored ledger with a fresh recomputation without writing anything.

        Raises:
            NotFoundError: If the booking does not exist
        """
        booking = await self._get_booking(booking_id)
        totals = await self.source_totals(booking_id)

        stored = stored_ledger(booking)
        computed = derive_ledger(booking.total_amount, sum(totals.values(), ZERO), booking.owner_reference)

        return LedgerSummary(
            booking_id=booking_id,
            total_amount=quantize_money(booking.total_amount),
            stored=stored,
            computed=computed,
            source_totals={source.value: amount for source, amount in totals.items()},
            is_synced=stored == computed,
            drift=computed.paid_amount - stored.paid_amount,
        )

    async def reconcile_all(self) -> ReconcileAllResult:
        """
        Sweep every booking, reconciling each in its own transaction.

        A failure on one booking is logged and counted; the sweep continues.
        """
        result = await self.db.execute(select(Booking.id).order_by(Booking.created_at))
        booking_ids = list(result.scalars().all())
        await self.db.commit()

        corrected = 0
        failed_ids: list[UUID] = []

        for booking_id in booking_ids:
            try:
                before = await self.ledger_summary(booking_id)
                await self.reconcile_booking(booking_id, trigger="sweep")
            except ProblemDetailsException as e:
                failed_ids.append(booking_id)
                logger.error(
                    "Reconciliation sweep failed for booking",
                    extra={"booking_id": str(booking_id), "code": e.code, "error": e.detail}
                )
                continue

            if not before.is_synced:
                corrected += 1

        logger.info(
            "Reconciliation sweep finished",
            extra={"checked": len(booking_ids), "corrected": corrected, "failed": len(failed_ids)}
        )

        return ReconcileAllResult(
            checked=len(booking_ids),
            corrected=corrected,
            failed=len(failed_ids),
            failed_booking_ids=failed_ids,
        )
