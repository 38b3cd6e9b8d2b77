"""Payment service: accept payments and keep the ledger in step with them."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import transactional
from ..core.exceptions import (
    AmountMismatchError,
    ConflictError,
    NotFoundError,
    SignatureVerificationFailedError,
    ValidationError,
)
from ..core.locks import acquire_advisory_lock, booking_lock_key, lock_registry
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus
from ..models.payment import PAYMENT_SOURCES, PaymentRecordStatus
from ..schemas.payment import CreateOrderRequest, GatewayOrder, PaymentReceipt, RecordPaymentRequest
from .booking_service import generate_receipt_number
from .gateway import PaymentGateway
from .ledger_service import LedgerService, quantize_money

logger = logging.getLogger(__name__)


class DuplicatePaymentError(ConflictError):
    """Exception when an external transaction id was already recorded in the same source."""

    def __init__(self, transaction_id: str, source: str, existing_payment_id: str):
        super().__init__(
            detail=f"Transaction {transaction_id} was already recorded as a {source} payment",
            code="DUPLICATE_PAYMENT",
            conflicting_resource={
                "transaction_id": transaction_id,
                "source": source,
                "payment_id": existing_payment_id,
            },
        )


class PaymentService:
    """Service for payment-related operations."""

    def __init__(self, db: AsyncSession, gateway: PaymentGateway | None = None):
        self.db = db
        self.gateway = gateway
        self.ledger = LedgerService(db)

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

    def _verify_gateway_signature(self, request: RecordPaymentRequest) -> None:
        fields = (request.gateway_payment_id, request.gateway_order_id, request.gateway_signature)
        verified = (
            all(fields)
            and self.gateway is not None
            and self.gateway.verify_signature(*fields)
        )
        if not verified:
            metrics_collector.record_payment_rejected("signature")
            logger.warning(
                "Gateway signature verification failed",
                extra={
                    "booking_id": str(request.booking_id),
                    "gateway_payment_id": request.gateway_payment_id,
                    "gateway_order_id": request.gateway_order_id,
                    "fields_complete": all(fields),
                }
            )
            raise SignatureVerificationFailedError(request.gateway_payment_id, request.gateway_order_id)

    async def record_payment(self, request: RecordPaymentRequest) -> PaymentReceipt:
        """
        Record a payment and reconcile the booking's ledger in the same transaction.

        Either both the payment row and the ledger update are committed or
        neither is. A pending booking becomes confirmed once money is taken.

        Args:
            request: Payment recording request

        Returns:
            PaymentReceipt with the updated ledger

        Raises:
            NotFoundError: If the booking does not exist
            ValidationError: If the booking is cancelled
            AmountMismatchError: If the amount exceeds what is still owed
            SignatureVerificationFailedError: If gateway fields are incomplete or do not verify
            DuplicatePaymentError: If the transaction id was already recorded in this source
            ConcurrencyConflictError: If the booking lock could not be taken in time
        """
        key = booking_lock_key(str(request.booking_id))
        model = PAYMENT_SOURCES[request.source]
        amount = quantize_money(request.amount)

        async with lock_registry.hold(key):
            async with transactional(self.db, "record_payment"):
                await acquire_advisory_lock(self.db, key)
                booking = await self._get_booking(request.booking_id)

                if booking.status == BookingStatus.CANCELLED:
                    metrics_collector.record_payment_rejected("cancelled")
                    raise ValidationError(
                        detail=f"Booking {booking.booking_reference} is cancelled and cannot take payments",
                        errors={"booking_id": "booking is cancelled"},
                    )

                allowed = quantize_money(booking.remaining_amount)
                if amount > allowed + settings.ledger_epsilon:
                    metrics_collector.record_payment_rejected("amount_mismatch")
                    logger.warning(
                        "Payment exceeds remaining amount",
                        extra={
                            "booking_id": str(booking.id),
                            "amount": str(amount),
                            "remaining_amount": str(allowed),
                        }
                    )
                    raise AmountMismatchError(
                        requested_amount=str(amount),
                        allowed_amount=str(allowed),
                        booking_id=str(booking.id),
                    )

                if request.has_gateway_fields:
                    self._verify_gateway_signature(request)

                transaction_id = request.transaction_id or request.gateway_payment_id
                if transaction_id:
                    existing = (await self.db.execute(
                        select(model.id).where(model.transaction_id == transaction_id).limit(1)
                    )).scalar_one_or_none()
                    if existing:
                        metrics_collector.record_payment_rejected("duplicate")
                        raise DuplicatePaymentError(transaction_id, request.source.value, str(existing))

                payment = model(
                    booking_id=booking.id,
                    amount=amount,
                    method=request.method.value,
                    status=PaymentRecordStatus.COMPLETED.value,
                    transaction_id=transaction_id,
                    receipt_number=generate_receipt_number(),
                    recorded_by=request.recorded_by,
                    notes=request.notes,
                )
                self.db.add(payment)

                ledger = await self.ledger.reconcile(booking.id, trigger="payment_recorded")

                confirmed = booking.status == BookingStatus.PENDING and ledger.paid_amount > 0
                if confirmed:
                    booking.status = BookingStatus.CONFIRMED.value
                    await self.db.flush()

        metrics_collector.record_payment(request.source.value, request.method.value)
        if confirmed:
            metrics_collector.record_transition(BookingStatus.CONFIRMED.value)
        logger.info(
            "Payment recorded",
            extra={
                "booking_id": str(request.booking_id),
                "payment_id": str(payment.id),
                "receipt_number": payment.receipt_number,
                "source": request.source.value,
                "amount": str(amount),
                "payment_status": ledger.payment_status.value,
                "remaining_amount": str(ledger.remaining_amount),
                "booking_confirmed": confirmed,
            }
        )

        return PaymentReceipt(
            receipt_number=payment.receipt_number,
            payment_id=payment.id,
            booking_id=request.booking_id,
            source=request.source,
            amount=amount,
            method=request.method,
            ledger=ledger,
        )

    async def create_gateway_order(self, request: CreateOrderRequest) -> GatewayOrder:
        """
        Open a gateway order for up to the booking's remaining amount.

        Raises:
            NotFoundError: If the booking does not exist
            ValidationError: If the booking is cancelled, nothing is owed, or no gateway is configured
            AmountMismatchError: If the amount exceeds the remaining amount
        """
        if self.gateway is None:
            raise ValidationError(detail="No payment gateway is configured")

        booking = await self._get_booking(request.booking_id)
        if booking.status == BookingStatus.CANCELLED:
            raise ValidationError(
                detail=f"Booking {booking.booking_reference} is cancelled",
                errors={"booking_id": "booking is cancelled"},
            )

        remaining = quantize_money(booking.remaining_amount)
        if remaining <= 0:
            raise ValidationError(
                detail=f"Booking {booking.booking_reference} has nothing left to pay",
                errors={"amount": "nothing owed"},
            )

        amount = quantize_money(request.amount) if request.amount is not None else remaining
        if amount > remaining + settings.ledger_epsilon:
            raise AmountMismatchError(
                requested_amount=str(amount),
                allowed_amount=str(remaining),
                booking_id=str(booking.id),
            )

        order = await self.gateway.create_order(
            amount,
            settings.currency,
            metadata={"booking_id": str(booking.id), "booking_reference": booking.booking_reference},
        )

        return GatewayOrder(
            order_id=order.order_id,
            booking_id=booking.id,
            amount=order.amount,
            currency=order.currency,
            key_id=self.gateway.key_id,
        )
