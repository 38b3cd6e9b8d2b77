"""Availability service: which rooms are free for a requested stay."""

import logging
from collections import defaultdict
from datetime import date, time
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.exceptions import NotFoundError, ValidationError
from ..models.booking import BLOCKING_STATUSES, Booking, BookingStatus
from ..models.room import Room, RoomStatus, RoomType
from ..schemas.availability import (
    ConflictingBooking,
    EffectiveRoomStatus,
    RoomAvailability,
    RoomTypeAvailability,
)
from .overlap import StayRange, request_conflicts

logger = logging.getLogger(__name__)


def effective_room_status(room: Room, bookings: list[Booking], today: date) -> EffectiveRoomStatus:
    """
    Derive a room's status as of ``today`` from its stored status and blocking bookings.

    Housekeeping states win; otherwise a checked-in stay covering today makes
    the room occupied, any other stay covering today makes it booked, and a
    future stay makes it prebooked.
    """
    if room.status == RoomStatus.MAINTENANCE:
        return EffectiveRoomStatus.MAINTENANCE
    if room.status == RoomStatus.CLEANING:
        return EffectiveRoomStatus.CLEANING

    covering = [b for b in bookings if b.check_in_date <= today <= b.check_out_date]
    if any(b.status == BookingStatus.CHECKED_IN for b in covering):
        return EffectiveRoomStatus.OCCUPIED
    if covering:
        return EffectiveRoomStatus.BOOKED
    if any(b.check_in_date > today for b in bookings):
        return EffectiveRoomStatus.PREBOOKED
    if room.status == RoomStatus.OCCUPIED:
        return EffectiveRoomStatus.OCCUPIED
    return EffectiveRoomStatus.AVAILABLE


def effective_price(room: Room) -> Decimal:
    """Room override price when set, else the room type's base price."""
    return room.effective_price()


class AvailabilityService:
    """Read-only resolver of room availability. It reports; it does not reserve."""

    def __init__(self, db: AsyncSession, today: date | None = None):
        self.db = db
        self.today = today or date.today()
        self.cutoff = settings.checkout_cutoff
        self.past_dated_exempt = settings.past_dated_requests_exempt

    @staticmethod
    def _validate_range(check_in: date, check_out: date) -> None:
        if check_out < check_in:
            raise ValidationError(
                detail="check_out must not be before check_in",
                errors={"check_out": f"{check_out} is before {check_in}"},
            )

    async def get_room(self, room_number: str) -> Room:
        """
        Get a room with its room type loaded.

        Raises:
            NotFoundError: If the room does not exist
        """
        stmt = select(Room).options(selectinload(Room.room_type)).where(Room.room_number == room_number)
        result = await self.db.execute(stmt)
        room = result.scalar_one_or_none()

        if not room:
            raise NotFoundError(resource_type="room", resource_id=room_number)

        return room

    async def get_room_type(self, room_type_id: int) -> RoomType:
        """
        Get a room type with its rooms loaded.

        Raises:
            NotFoundError: If the room type does not exist
        """
        stmt = (
            select(RoomType)
            .options(selectinload(RoomType.rooms).selectinload(Room.room_type))
            .where(RoomType.id == room_type_id)
        )
        result = await self.db.execute(stmt)
        room_type = result.scalar_one_or_none()

        if not room_type:
            raise NotFoundError(resource_type="room_type", resource_id=str(room_type_id))

        return room_type

    async def _blocking_bookings(
        self,
        room_numbers: list[str],
        since: date,
    ) -> dict[str, list[Booking]]:
        """Blocking bookings per room that end on or after ``since``."""
        stmt = (
            select(Booking)
            .where(
                Booking.room_number.in_(room_numbers),
                Booking.status.in_([s.value for s in BLOCKING_STATUSES]),
                Booking.check_out_date >= since,
            )
            .order_by(Booking.check_in_date, Booking.booking_reference)
        )
        result = await self.db.execute(stmt)

        by_room: dict[str, list[Booking]] = defaultdict(list)
        for booking in result.scalars().all():
            by_room[booking.room_number].append(booking)
        return by_room

    def _classify(
        self,
        room: Room,
        bookings: list[Booking],
        requested: StayRange,
        exclude_booking_id: UUID | None,
    ) -> RoomAvailability:
        conflicts = [
            ConflictingBooking(
                booking_id=b.id,
                booking_reference=b.booking_reference,
                status=b.status,
                check_in_date=b.check_in_date,
                check_out_date=b.check_out_date,
                check_out_time=b.check_out_time,
            )
            for b in bookings
            if b.id != exclude_booking_id
            and request_conflicts(
                requested,
                StayRange(b.check_in_date, b.check_out_date, b.check_out_time),
                cutoff=self.cutoff,
                today=self.today,
                past_dated_exempt=self.past_dated_exempt,
            )
        ]

        return RoomAvailability(
            room_number=room.room_number,
            room_type_id=room.room_type_id,
            available=not conflicts,
            conflicting_bookings=conflicts,
            effective_status=effective_room_status(room, bookings, self.today),
            effective_price=effective_price(room),
        )

    async def resolve_room(
        self,
        room_number: str,
        check_in: date,
        check_out: date,
        check_out_time: time | None = None,
        exclude_booking_id: UUID | None = None,
    ) -> RoomAvailability:
        """
        Check one room for a requested stay.

        Args:
            room_number: Room to check
            check_in: Requested check-in date
            check_out: Requested check-out date
            check_out_time: Planned departure time on the check-out day
            exclude_booking_id: Booking to leave out of the comparison

        Returns:
            Availability with every conflicting blocking booking

        Raises:
            ValidationError: If check_out is before check_in
            NotFoundError: If the room does not exist
        """
        self._validate_range(check_in, check_out)
        room = await self.get_room(room_number)
        requested = StayRange(check_in, check_out, check_out_time)

        bookings = await self._blocking_bookings([room.room_number], min(check_in, self.today))
        availability = self._classify(room, bookings[room.room_number], requested, exclude_booking_id)

        logger.debug(
            "Resolved room availability",
            extra={
                "room_number": room_number,
                "check_in": check_in.isoformat(),
                "check_out": check_out.isoformat(),
                "available": availability.available,
                "conflicts": len(availability.conflicting_bookings),
            }
        )

        return availability

    async def resolve_room_type(
        self,
        room_type_id: int,
        check_in: date,
        check_out: date,
        check_out_time: time | None = None,
    ) -> RoomTypeAvailability:
        """
        Check every room of a type for a requested stay, ordered by room number.

        Raises:
            ValidationError: If check_out is before check_in
            NotFoundError: If the room type does not exist
        """
        self._validate_range(check_in, check_out)
        room_type = await self.get_room_type(room_type_id)
        rooms = sorted(room_type.rooms, key=lambda r: r.room_number)
        requested = StayRange(check_in, check_out, check_out_time)

        bookings = await self._blocking_bookings(
            [r.room_number for r in rooms], min(check_in, self.today)
        ) if rooms else {}

        results = [
            self._classify(room, bookings.get(room.room_number, []), requested, None)
            for room in rooms
        ]

        logger.debug(
            "Resolved room type availability",
            extra={
                "room_type_id": room_type_id,
                "rooms": len(results),
                "available": sum(1 for r in results if r.available),
            }
        )

        return RoomTypeAvailability(
            room_type_id=room_type_id,
            check_in=check_in,
            check_out=check_out,
            available_count=sum(1 for r in results if r.available),
            rooms=results,
        )
