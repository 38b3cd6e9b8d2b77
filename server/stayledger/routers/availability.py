"""Availability router for room and room-type queries."""

from datetime import date

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_db, get_today
from ..schemas.availability import (
    RoomAvailability,
    RoomAvailabilityRequest,
    RoomTypeAvailability,
    RoomTypeAvailabilityRequest,
)
from ..services.availability_service import AvailabilityService

router = APIRouter(prefix="/v1/availability", tags=["availability"])

DB_DEPENDENCY = Depends(get_db)
TODAY_DEPENDENCY = Depends(get_today)


@router.post("/room", response_model=RoomAvailability)
async def room_availability(
    request: RoomAvailabilityRequest,
    db: AsyncSession = DB_DEPENDENCY,
    today: date = TODAY_DEPENDENCY
) -> JSONResponse:
    """
    Check whether one room is free for a stay.

    Conflicting bookings are listed with their references and statuses.
    """
    availability_service = AvailabilityService(db, today=today)
    result = await availability_service.resolve_room(
        room_number=request.room_number,
        check_in=request.check_in,
        check_out=request.check_out,
        check_out_time=request.check_out_time,
        exclude_booking_id=request.exclude_booking_id,
    )

    return JSONResponse(status_code=200, content=result.model_dump(mode="json"))


@router.post("/room-type", response_model=RoomTypeAvailability)
async def room_type_availability(
    request: RoomTypeAvailabilityRequest,
    db: AsyncSession = DB_DEPENDENCY,
    today: date = TODAY_DEPENDENCY
) -> JSONResponse:
    """Check every room of a type for a stay, with each room's effective price."""
    availability_service = AvailabilityService(db, today=today)
    result = await availability_service.resolve_room_type(
        room_type_id=request.room_type_id,
        check_in=request.check_in,
        check_out=request.check_out,
        check_out_time=request.check_out_time,
    )

    return JSONResponse(status_code=200, content=result.model_dump(mode="json"))
