"""Unit tests for availability service."""

from datetime import date, time
from decimal import Decimal

import pytest

from stayledger.core.exceptions import NotFoundError, ValidationError
from stayledger.models import Booking, BookingStatus, Room, RoomStatus
from stayledger.schemas.availability import EffectiveRoomStatus
from stayledger.schemas.booking import CreateBookingRequest, GuestDetails
from stayledger.services.availability_service import AvailabilityService, effective_room_status
from stayledger.services.booking_service import BookingService

TODAY = date(2024, 1, 1)


def booking_request(room_number="R101", check_in="2024-03-01", check_out="2024-03-03", **overrides):
    data = {
        "guest": GuestDetails(first_name="Asha", email="asha@example.com"),
        "room_number": room_number,
        "check_in_date": date.fromisoformat(check_in),
        "check_out_date": date.fromisoformat(check_out),
    }
    data.update(overrides)
    return CreateBookingRequest(**data)


def make_booking(check_in: date, check_out: date, status: BookingStatus) -> Booking:
    return Booking(check_in_date=check_in, check_out_date=check_out, status=status.value)


@pytest.mark.asyncio
async def test_empty_room_is_available(test_session, seeded):
    """Test an unbooked room reports available with no conflicts."""
    service = AvailabilityService(test_session, today=TODAY)

    result = await service.resolve_room("R101", date(2024, 3, 1), date(2024, 3, 3))

    assert result.available is True
    assert result.conflicting_bookings == []
    assert result.effective_status == EffectiveRoomStatus.AVAILABLE
    assert result.effective_price == Decimal("1000.00")


@pytest.mark.asyncio
async def test_overlapping_booking_is_reported(test_session, seeded):
    """Test a booking sharing days with the request shows up as a conflict."""
    created = await BookingService(test_session, today=TODAY).create_booking(booking_request())
    service = AvailabilityService(test_session, today=TODAY)

    result = await service.resolve_room("R101", date(2024, 3, 2), date(2024, 3, 4))

    assert result.available is False
    assert [c.booking_reference for c in result.conflicting_bookings] == [created.booking_reference]
    assert result.effective_status == EffectiveRoomStatus.PREBOOKED


@pytest.mark.asyncio
async def test_excluded_booking_is_ignored(test_session, seeded):
    """Test a booking can be checked against its own room without conflicting with itself."""
    created = await BookingService(test_session, today=TODAY).create_booking(booking_request())
    service = AvailabilityService(test_session, today=TODAY)

    result = await service.resolve_room(
        "R101", date(2024, 3, 1), date(2024, 3, 3), exclude_booking_id=created.booking_id
    )

    assert result.available is True


@pytest.mark.asyncio
async def test_cancelled_booking_does_not_block(test_session, seeded):
    """Test cancelled bookings free their dates."""
    booking_service = BookingService(test_session, today=TODAY)
    created = await booking_service.create_booking(booking_request())
    await booking_service.cancel_booking(created.booking_id)

    result = await AvailabilityService(test_session, today=TODAY).resolve_room(
        "R101", date(2024, 3, 1), date(2024, 3, 3)
    )

    assert result.available is True


@pytest.mark.asyncio
async def test_early_checkout_allows_same_day_turnover(test_session, seeded):
    """Test a guest leaving before the cutoff frees the room on the check-out day."""
    await BookingService(test_session, today=TODAY).create_booking(
        booking_request(check_out_time=time(10, 0))
    )
    service = AvailabilityService(test_session, today=TODAY)

    result = await service.resolve_room("R101", date(2024, 3, 3), date(2024, 3, 5))

    assert result.available is True


@pytest.mark.asyncio
async def test_late_checkout_blocks_same_day_turnover(test_session, seeded):
    """Test a guest leaving after the cutoff keeps the room blocked on the check-out day."""
    await BookingService(test_session, today=TODAY).create_booking(
        booking_request(check_out_time=time(12, 0))
    )
    service = AvailabilityService(test_session, today=TODAY)

    result = await service.resolve_room("R101", date(2024, 3, 3), date(2024, 3, 5))

    assert result.available is False


@pytest.mark.asyncio
async def test_past_dated_request_is_exempt(test_session, seeded):
    """Test a request checking in before today never conflicts."""
    await BookingService(test_session, today=date(2024, 2, 1)).create_booking(
        booking_request(check_in="2024-02-10", check_out="2024-02-15")
    )
    service = AvailabilityService(test_session, today=date(2024, 3, 1))

    result = await service.resolve_room("R101", date(2024, 2, 11), date(2024, 2, 13))

    assert result.available is True


@pytest.mark.asyncio
async def test_reversed_range_is_rejected(test_session, seeded):
    """Test check-out before check-in is a validation error."""
    service = AvailabilityService(test_session, today=TODAY)

    with pytest.raises(ValidationError):
        await service.resolve_room("R101", date(2024, 3, 5), date(2024, 3, 1))


@pytest.mark.asyncio
async def test_unknown_room_is_not_found(test_session, seeded):
    """Test resolving a room that does not exist."""
    service = AvailabilityService(test_session, today=TODAY)

    with pytest.raises(NotFoundError):
        await service.resolve_room("R999", date(2024, 3, 1), date(2024, 3, 3))


@pytest.mark.asyncio
async def test_room_type_availability(test_session, seeded):
    """Test every room of a type is checked, in room-number order, with its own price."""
    await BookingService(test_session, today=TODAY).create_booking(booking_request(room_number="R102"))
    service = AvailabilityService(test_session, today=TODAY)

    result = await service.resolve_room_type(seeded.id, date(2024, 3, 1), date(2024, 3, 3))

    assert [r.room_number for r in result.rooms] == ["R101", "R102", "R201"]
    assert [r.available for r in result.rooms] == [True, False, True]
    assert result.available_count == 2
    assert result.rooms[2].effective_price == Decimal("1500.00")


@pytest.mark.asyncio
async def test_unknown_room_type_is_not_found(test_session, seeded):
    """Test resolving a room type that does not exist."""
    service = AvailabilityService(test_session, today=TODAY)

    with pytest.raises(NotFoundError):
        await service.resolve_room_type(999, date(2024, 3, 1), date(2024, 3, 3))


def test_effective_status_housekeeping_wins():
    room = Room(room_number="R1", status=RoomStatus.MAINTENANCE.value)
    bookings = [make_booking(date(2024, 1, 1), date(2024, 1, 3), BookingStatus.CHECKED_IN)]

    assert effective_room_status(room, bookings, TODAY) == EffectiveRoomStatus.MAINTENANCE


def test_effective_status_checked_in_today_is_occupied():
    room = Room(room_number="R1", status=RoomStatus.AVAILABLE.value)
    bookings = [make_booking(date(2023, 12, 30), date(2024, 1, 1), BookingStatus.CHECKED_IN)]

    assert effective_room_status(room, bookings, TODAY) == EffectiveRoomStatus.OCCUPIED


def test_effective_status_confirmed_today_is_booked():
    room = Room(room_number="R1", status=RoomStatus.AVAILABLE.value)
    bookings = [make_booking(date(2024, 1, 1), date(2024, 1, 4), BookingStatus.CONFIRMED)]

    assert effective_room_status(room, bookings, TODAY) == EffectiveRoomStatus.BOOKED


def test_effective_status_future_booking_is_prebooked():
    room = Room(room_number="R1", status=RoomStatus.AVAILABLE.value)
    bookings = [make_booking(date(2024, 2, 1), date(2024, 2, 4), BookingStatus.PENDING)]

    assert effective_room_status(room, bookings, TODAY) == EffectiveRoomStatus.PREBOOKED


def test_effective_status_no_bookings_falls_back_to_stored():
    assert effective_room_status(Room(status=RoomStatus.AVAILABLE.value), [], TODAY) == EffectiveRoomStatus.AVAILABLE
    assert effective_room_status(Room(status=RoomStatus.OCCUPIED.value), [], TODAY) == EffectiveRoomStatus.OCCUPIED
