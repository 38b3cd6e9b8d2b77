"""Booking service for booking creation and lifecycle transitions."""

import logging
import secrets
import string
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import transactional
from ..core.exceptions import (
    AmountMismatchError,
    ConflictError,
    NotFoundError,
    RoomUnavailableError,
    ValidationError,
)
from ..core.locks import acquire_advisory_lock, booking_lock_key, lock_registry, room_lock_key
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingExtraService, BookingStatus, PaymentStatus
from ..models.guest import Guest
from ..models.payment import Payment, PaymentRecordStatus
from ..models.room import RoomStatus
from ..schemas.booking import BookingCreated, CreateBookingRequest, GuestDetails
from .availability_service import AvailabilityService
from .invoice_service import InvoiceService
from .ledger_service import LedgerService, stored_ledger

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_code(length: int = 8) -> str:
    """Generate a random human-readable code."""
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_receipt_number() -> str:
    return f"RCPT-{generate_code(10)}"


class InvalidTransitionError(ConflictError):
    """Exception when a booking cannot move to the requested status."""

    def __init__(self, booking_id: str, current_status: str, target_status: str, reason: str | None = None):
        detail = f"Booking {booking_id} cannot move from {current_status} to {target_status}"
        if reason:
            detail += f": {reason}"
        super().__init__(
            detail=detail,
            code="INVALID_TRANSITION",
            conflicting_resource={
                "booking_id": booking_id,
                "current_status": current_status,
                "target_status": target_status,
            },
        )


class BookingService:
    """Service for booking-related operations."""

    def __init__(self, db: AsyncSession, today: date | None = None):
        self.db = db
        self.today = today or date.today()
        self.availability = AvailabilityService(db, today=self.today)
        self.invoices = InvoiceService(db)
        self.ledger = LedgerService(db)

    def _validate_request(self, request: CreateBookingRequest) -> None:
        errors = {}
        if (request.room_number is None) == (request.room_type_id is None):
            errors["room"] = "exactly one of room_number or room_type_id is required"
        if request.check_out_date <= request.check_in_date:
            errors["check_out_date"] = "check-out must be after check-in"
        if not request.guest.email and not request.guest.phone:
            errors["guest"] = "an email address or phone number is required"

        if errors:
            logger.warning("Booking request rejected", extra={"errors": errors})
            raise ValidationError(detail="Booking request is invalid", errors=errors)

    async def resolve_guest(self, details: GuestDetails) -> Guest:
        """
        Match a returning guest by email, then phone, or create a new one.

        Runs in its own short transaction, outside any room lock.
        """
        async with transactional(self.db, "resolve_guest"):
            guest = None
            for column, value in ((Guest.email, details.email), (Guest.phone, details.phone)):
                if not value:
                    continue
                result = await self.db.execute(
                    select(Guest).where(column == value).order_by(Guest.id).limit(1)
                )
                guest = result.scalar_one_or_none()
                if guest:
                    break

            if guest:
                logger.debug("Matched existing guest", extra={"guest_id": guest.id})
                return guest

            guest = Guest(
                first_name=details.first_name,
                last_name=details.last_name,
                email=details.email,
                phone=details.phone,
                address=details.address,
                id_proof_type=details.id_proof_type,
                id_proof_number=details.id_proof_number,
            )
            self.db.add(guest)
            await self.db.flush()

        logger.info("Created guest", extra={"guest_id": guest.id})
        return guest

    async def create_booking(self, request: CreateBookingRequest) -> BookingCreated:
        """
        Create a booking if the room is still free.

        The availability re-check and the insert run in one transaction under
        the room lock, so two requests for the same room and dates cannot both
        succeed.

        Args:
            request: Booking creation request

        Returns:
            BookingCreated with the reference, total and ledger

        Raises:
            ValidationError: If the request is incomplete or inconsistent
            NotFoundError: If the room or room type does not exist
            RoomUnavailableError: If the stay collides with existing bookings
            AmountMismatchError: If the initial payment exceeds the total
            ConcurrencyConflictError: If the room lock could not be taken in time
        """
        self._validate_request(request)
        # Read the id now: a rolled-back room attempt expires loaded instances
        guest_id = (await self.resolve_guest(request.guest)).id

        if request.room_number is not None:
            booking = await self._create_in_room(request.room_number, guest_id, request)
        else:
            booking = await self._create_in_room_type(request.room_type_id, guest_id, request)

        await self.db.refresh(booking)

        metrics_collector.record_booking_created(booking.payment_status)
        logger.info(
            "Booking created",
            extra={
                "booking_id": str(booking.id),
                "booking_reference": booking.booking_reference,
                "room_number": booking.room_number,
                "check_in_date": booking.check_in_date.isoformat(),
                "check_out_date": booking.check_out_date.isoformat(),
                "total_amount": str(booking.total_amount),
                "payment_status": booking.payment_status,
            }
        )

        ledger = stored_ledger(booking)
        return BookingCreated(
            booking_id=booking.id,
            booking_reference=booking.booking_reference,
            room_number=booking.room_number,
            status=booking.status,
            total_amount=booking.total_amount,
            payment_required=ledger.remaining_amount > 0,
            ledger=ledger,
        )

    async def _create_in_room_type(self, room_type_id: int, guest_id: int, request: CreateBookingRequest) -> Booking:
        """Book the first free room of the type, by room number."""
        candidates = await self.availability.resolve_room_type(
            room_type_id, request.check_in_date, request.check_out_date, request.check_out_time
        )

        conflicts = []
        for room in candidates.rooms:
            if not room.available:
                conflicts.extend(c.model_dump(mode="json") for c in room.conflicting_bookings)
                continue
            try:
                return await self._create_in_room(room.room_number, guest_id, request)
            except RoomUnavailableError as e:
                # Taken between the fast-path check and the lock; try the next room
                conflicts.extend(e.conflicts)

        metrics_collector.record_room_conflict()
        raise RoomUnavailableError(
            room_number=", ".join(r.room_number for r in candidates.rooms),
            check_in=request.check_in_date.isoformat(),
            check_out=request.check_out_date.isoformat(),
            conflicts=conflicts,
            detail=(
                f"No room of type {room_type_id} is available from "
                f"{request.check_in_date} to {request.check_out_date}"
            ),
        )

    async def _create_in_room(self, room_number: str, guest_id: int, request: CreateBookingRequest) -> Booking:
        key = room_lock_key(room_number)

        async with lock_registry.hold(key):
            async with transactional(self.db, "create_booking"):
                await acquire_advisory_lock(self.db, key)

                availability = await self.availability.resolve_room(
                    room_number,
                    request.check_in_date,
                    request.check_out_date,
                    request.check_out_time,
                )
                if not availability.available:
                    metrics_collector.record_room_conflict()
                    logger.warning(
                        "Booking rejected - room unavailable",
                        extra={
                            "room_number": room_number,
                            "check_in_date": request.check_in_date.isoformat(),
                            "check_out_date": request.check_out_date.isoformat(),
                            "conflicts": [c.booking_reference for c in availability.conflicting_bookings],
                        }
                    )
                    raise RoomUnavailableError(
                        room_number=room_number,
                        check_in=request.check_in_date.isoformat(),
                        check_out=request.check_out_date.isoformat(),
                        conflicts=[c.model_dump(mode="json") for c in availability.conflicting_bookings],
                    )

                room = await self.availability.get_room(room_number)
                nightly_rate = request.nightly_rate or room.effective_price()
                if nightly_rate <= 0:
                    raise ValidationError(
                        detail=f"Room {room_number} has no price and no rate was given",
                        errors={"nightly_rate": "must be greater than 0"},
                    )

                nights = (request.check_out_date - request.check_in_date).days
                totals = await self.invoices.compute_totals(
                    nights=nights,
                    nightly_rate=nightly_rate,
                    services=request.services,
                    guests=request.adults + request.children,
                    capacity=room.room_type.capacity,
                    discount=request.discount,
                )

                if request.initial_payment > totals.total:
                    raise AmountMismatchError(
                        requested_amount=str(request.initial_payment),
                        allowed_amount=str(totals.total),
                        detail=f"Initial payment {request.initial_payment} exceeds the total {totals.total}",
                    )

                confirmed = request.owner_reference or request.initial_payment > 0
                booking = Booking(
                    booking_reference=f"{settings.booking_reference_prefix}{generate_code()}",
                    room_number=room_number,
                    guest_id=guest_id,
                    check_in_date=request.check_in_date,
                    check_out_date=request.check_out_date,
                    check_in_time=request.check_in_time,
                    check_out_time=request.check_out_time,
                    adults=request.adults,
                    children=request.children,
                    nightly_rate=nightly_rate,
                    status=(BookingStatus.CONFIRMED if confirmed else BookingStatus.PENDING).value,
                    total_amount=totals.total,
                    paid_amount=Decimal("0.00"),
                    remaining_amount=totals.total,
                    payment_status=PaymentStatus.PENDING.value,
                    owner_reference=request.owner_reference,
                    booking_source=request.booking_source,
                    notes=request.notes,
                    services=[
                        BookingExtraService(
                            description=s.description,
                            quantity=s.quantity,
                            unit_price=s.unit_price,
                        )
                        for s in request.services
                    ],
                )
                self.db.add(booking)
                await self.db.flush()

                await self.invoices.create_for_booking(booking, totals=totals)

                if request.initial_payment > 0:
                    self.db.add(Payment(
                        booking_id=booking.id,
                        amount=request.initial_payment,
                        method=request.payment_method.value,
                        status=PaymentRecordStatus.COMPLETED.value,
                        transaction_id=request.transaction_id,
                        receipt_number=generate_receipt_number(),
                        notes="Initial payment at booking",
                    ))

                await self.ledger.reconcile(booking.id, trigger="booking_created")

        return booking

    async def get_booking(self, booking_id: UUID) -> Booking:
        """
        Get a booking by ID.

        Raises:
            NotFoundError: If the booking does not exist
        """
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

    async def _transition(
        self,
        booking_id: UUID,
        allowed_from: tuple[BookingStatus, ...],
        target: BookingStatus,
        room_status: RoomStatus | None = None,
    ) -> Booking:
        key = booking_lock_key(str(booking_id))

        async with lock_registry.hold(key):
            async with transactional(self.db, f"booking_{target.value}"):
                await acquire_advisory_lock(self.db, key)
                booking = await self.get_booking(booking_id)

                if booking.status == target and target == BookingStatus.CANCELLED:
                    return booking

                if booking.status not in allowed_from:
                    logger.warning(
                        "Booking transition rejected",
                        extra={
                            "booking_id": str(booking_id),
                            "current_status": booking.status,
                            "target_status": target.value,
                        }
                    )
                    raise InvalidTransitionError(str(booking_id), booking.status, target.value)

                if target == BookingStatus.CHECKED_IN and booking.check_in_date > self.today:
                    raise InvalidTransitionError(
                        str(booking_id),
                        booking.status,
                        target.value,
                        reason=f"check-in date {booking.check_in_date} is in the future",
                    )

                previous = booking.status
                booking.status = target.value
                if room_status is not None:
                    room = await self.availability.get_room(booking.room_number)
                    room.status = room_status.value
                await self.db.flush()

        await self.db.refresh(booking)

        metrics_collector.record_transition(target.value)
        logger.info(
            "Booking status changed",
            extra={
                "booking_id": str(booking_id),
                "from_status": previous,
                "to_status": target.value,
                "room_number": booking.room_number,
            }
        )

        return booking

    async def check_in(self, booking_id: UUID) -> Booking:
        """
        Check a confirmed booking in on or after its check-in date; the room becomes occupied.

        Raises:
            NotFoundError: If the booking does not exist
            InvalidTransitionError: If the booking is not confirmed or its check-in date is ahead
        """
        return await self._transition(
            booking_id,
            allowed_from=(BookingStatus.CONFIRMED,),
            target=BookingStatus.CHECKED_IN,
            room_status=RoomStatus.OCCUPIED,
        )

    async def check_out(self, booking_id: UUID) -> Booking:
        """
        Check a checked-in booking out; the room becomes available.

        Raises:
            NotFoundError: If the booking does not exist
            InvalidTransitionError: If the booking is not checked in
        """
        return await self._transition(
            booking_id,
            allowed_from=(BookingStatus.CHECKED_IN,),
            target=BookingStatus.CHECKED_OUT,
            room_status=RoomStatus.AVAILABLE,
        )

    async def cancel_booking(self, booking_id: UUID) -> Booking:
        """
        Cancel a pending or confirmed booking. Cancelling twice is a no-op.

        Raises:
            NotFoundError: If the booking does not exist
            InvalidTransitionError: If the guest has already checked in or out
        """
        return await self._transition(
            booking_id,
            allowed_from=(BookingStatus.PENDING, BookingStatus.CONFIRMED),
            target=BookingStatus.CANCELLED,
        )

    async def extend_stay(self, booking_id: UUID, new_check_out: date) -> Booking:
        """
        Move a booking's check-out date later if the room is free for the extra nights.

        The extra nights are checked against every other booking on the room
        under the room lock. The invoice is repriced and the ledger reconciled
        in the same transaction, so a fully paid booking owes the difference
        afterwards. Asking for the current check-out date changes nothing.

        Args:
            booking_id: Booking to extend
            new_check_out: New check-out date

        Returns:
            The updated booking

        Raises:
            NotFoundError: If the booking does not exist
            ValidationError: If the new date is earlier than the current check-out
            ConflictError: If the booking is cancelled or checked out
            RoomUnavailableError: If another booking holds the room for the extra nights
            ConcurrencyConflictError: If a lock could not be taken in time
        """
        booking = await self.get_booking(booking_id)
        room_key = room_lock_key(booking.room_number)
        booking_key = booking_lock_key(str(booking_id))

        async with lock_registry.hold(room_key), lock_registry.hold(booking_key):
            async with transactional(self.db, "extend_stay"):
                await acquire_advisory_lock(self.db, room_key)
                await acquire_advisory_lock(self.db, booking_key)
                booking = await self.get_booking(booking_id)

                if booking.status not in (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN):
                    raise ConflictError(
                        detail=f"Booking {booking_id} is {booking.status}; only active stays can be extended",
                        code="INVALID_TRANSITION",
                        conflicting_resource={"booking_id": str(booking_id), "current_status": booking.status},
                    )

                previous_check_out = booking.check_out_date
                if new_check_out == previous_check_out:
                    return booking
                if new_check_out < previous_check_out:
                    raise ValidationError(
                        detail=f"New check-out {new_check_out} is before the current check-out {previous_check_out}",
                        errors={"new_check_out_date": "must not be before the current check-out date"},
                    )

                availability = await self.availability.resolve_room(
                    booking.room_number,
                    previous_check_out,
                    new_check_out,
                    booking.check_out_time,
                    exclude_booking_id=booking.id,
                )
                if not availability.available:
                    metrics_collector.record_room_conflict()
                    logger.warning(
                        "Stay extension rejected - room unavailable",
                        extra={
                            "booking_id": str(booking_id),
                            "room_number": booking.room_number,
                            "check_out_date": previous_check_out.isoformat(),
                            "new_check_out_date": new_check_out.isoformat(),
                            "conflicts": [c.booking_reference for c in availability.conflicting_bookings],
                        }
                    )
                    raise RoomUnavailableError(
                        room_number=booking.room_number,
                        check_in=previous_check_out.isoformat(),
                        check_out=new_check_out.isoformat(),
                        conflicts=[c.model_dump(mode="json") for c in availability.conflicting_bookings],
                    )

                booking.check_out_date = new_check_out
                await self.db.flush()

                totals = await self.invoices.reprice_for_booking(booking)
                booking.total_amount = totals.total
                await self.db.flush()

                ledger = await self.ledger.reconcile(booking.id, trigger="stay_extended")

        await self.db.refresh(booking)

        logger.info(
            "Stay extended",
            extra={
                "booking_id": str(booking_id),
                "room_number": booking.room_number,
                "previous_check_out_date": previous_check_out.isoformat(),
                "check_out_date": new_check_out.isoformat(),
                "total_amount": str(booking.total_amount),
                "remaining_amount": str(ledger.remaining_amount),
            }
        )

        return booking
