"""Booking router for booking creation and lifecycle operations."""

import logging
from datetime import date
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_db, get_idempotency_key, get_today
from ..core.exceptions import ProblemDetailsException
from ..models.booking import Booking as BookingModel
from ..schemas.booking import (
    Booking,
    BookingCreated,
    BookingIdRequest,
    CreateBookingRequest,
    ExtendStayRequest,
)
from ..services.booking_service import BookingService
from ..services.idempotency_service import IdempotencyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)
TODAY_DEPENDENCY = Depends(get_today)
IDEMPOTENCY_KEY_DEPENDENCY = Depends(get_idempotency_key)


def _convert_booking_to_schema(booking_model: BookingModel) -> Booking:
    """Convert booking model to schema."""
    return Booking.model_validate(booking_model)


async def handle_idempotent_operation(
    method: str,
    idempotency_key: str,
    request_body: dict[str, Any],
    operation_func: Callable[[], Awaitable[dict[str, Any]]],
    db: AsyncSession,
    status_code: int = 200,
) -> JSONResponse:
    """
    Run an operation once per Idempotency-Key and replay its response afterwards.

    Final outcomes, successes and non-retryable problems alike, are cached.
    Retryable problems are not, so retrying with the same key runs again.
    """
    idempotency_service = IdempotencyService(db)

    cached_response = await idempotency_service.check_idempotency(
        idempotency_key=idempotency_key,
        method=method,
        request_body=request_body
    )

    if cached_response:
        cached_status, response_body = cached_response
        if cached_status >= 400:
            return JSONResponse(
                status_code=cached_status,
                content=response_body,
                media_type="application/problem+json",
            )
        return JSONResponse(status_code=cached_status, content=response_body)

    try:
        response_body = await operation_func()
    except ProblemDetailsException as e:
        if not e.retryable:
            await idempotency_service.store_response(
                idempotency_key=idempotency_key,
                method=method,
                request_body=request_body,
                status_code=e.status_code,
                response_body=e.problem_details
            )
        raise

    await idempotency_service.store_response(
        idempotency_key=idempotency_key,
        method=method,
        request_body=request_body,
        status_code=status_code,
        response_body=response_body
    )

    return JSONResponse(status_code=status_code, content=response_body)


@router.post("/create", response_model=BookingCreated, status_code=201)
async def create_booking(
    request: CreateBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    today: date = TODAY_DEPENDENCY,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY
) -> JSONResponse:
    """
    Create a booking in a specific room or the first free room of a type.

    This operation is idempotent based on the Idempotency-Key header.
    """
    booking_service = BookingService(db, today=today)

    async def operation():
        created = await booking_service.create_booking(request)
        return created.model_dump(mode="json")

    try:
        return await handle_idempotent_operation(
            method="booking/create",
            idempotency_key=idempotency_key,
            request_body=request.model_dump(mode="json"),
            operation_func=operation,
            db=db,
            status_code=201,
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking creation",
            extra={
                "room_number": request.room_number,
                "room_type_id": request.room_type_id,
                "check_in_date": request.check_in_date.isoformat(),
                "check_out_date": request.check_out_date.isoformat(),
                "idempotency_key": idempotency_key,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/get", response_model=Booking)
async def get_booking(
    request: BookingIdRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Get booking details, including the current ledger."""
    booking_service = BookingService(db)
    booking = await booking_service.get_booking(request.booking_id)

    return JSONResponse(
        status_code=200,
        content=_convert_booking_to_schema(booking).model_dump(mode="json")
    )


@router.post("/check-in", response_model=Booking)
async def check_in(
    request: BookingIdRequest,
    db: AsyncSession = DB_DEPENDENCY,
    today: date = TODAY_DEPENDENCY
) -> JSONResponse:
    """Check a confirmed booking in; the room becomes occupied."""
    booking_service = BookingService(db, today=today)
    booking = await booking_service.check_in(request.booking_id)

    return JSONResponse(
        status_code=200,
        content=_convert_booking_to_schema(booking).model_dump(mode="json")
    )


@router.post("/check-out", response_model=Booking)
async def check_out(
    request: BookingIdRequest,
    db: AsyncSession = DB_DEPENDENCY,
    today: date = TODAY_DEPENDENCY
) -> JSONResponse:
    """Check a checked-in booking out; the room becomes available."""
    booking_service = BookingService(db, today=today)
    booking = await booking_service.check_out(request.booking_id)

    return JSONResponse(
        status_code=200,
        content=_convert_booking_to_schema(booking).model_dump(mode="json")
    )


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: BookingIdRequest,
    db: AsyncSession = DB_DEPENDENCY,
    today: date = TODAY_DEPENDENCY
) -> JSONResponse:
    """Cancel a pending or confirmed booking; it stops blocking the room."""
    booking_service = BookingService(db, today=today)
    booking = await booking_service.cancel_booking(request.booking_id)

    logger.info(
        "Booking cancelled",
        extra={"booking_id": str(request.booking_id), "booking_reference": booking.booking_reference}
    )

    return JSONResponse(
        status_code=200,
        content=_convert_booking_to_schema(booking).model_dump(mode="json")
    )


@router.post("/extend", response_model=Booking)
async def extend_stay(
    request: ExtendStayRequest,
    db: AsyncSession = DB_DEPENDENCY,
    today: date = TODAY_DEPENDENCY
) -> JSONResponse:
    """
    Move the check-out date later if the room is free for the extra nights.

    The invoice is repriced and the ledger reconciled with the new total.
    Repeating the call with the same date is a no-op.
    """
    booking_service = BookingService(db, today=today)
    booking = await booking_service.extend_stay(request.booking_id, request.new_check_out_date)

    return JSONResponse(
        status_code=200,
        content=_convert_booking_to_schema(booking).model_dump(mode="json")
    )
