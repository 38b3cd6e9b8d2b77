"""Ledger router for reconciliation and drift inspection."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_db
from ..schemas.booking import BookingIdRequest
from ..schemas.common import LedgerSnapshot
from ..schemas.ledger import LedgerSummary, ReconcileAllResult
from ..services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/ledger", tags=["ledger"])

DB_DEPENDENCY = Depends(get_db)


@router.post("/reconcile", response_model=LedgerSnapshot)
async def reconcile(
    request: BookingIdRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Recompute a booking's ledger from every payment source. Safe to repeat."""
    ledger_service = LedgerService(db)
    snapshot = await ledger_service.reconcile_booking(request.booking_id)

    return JSONResponse(status_code=200, content=snapshot.model_dump(mode="json"))


@router.post("/summary", response_model=LedgerSummary)
async def summary(
    request: BookingIdRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Compare the stored ledger with a fresh recomputation without changing anything."""
    ledger_service = LedgerService(db)
    result = await ledger_service.ledger_summary(request.booking_id)

    return JSONResponse(status_code=200, content=result.model_dump(mode="json"))


@router.post("/reconcile-all", response_model=ReconcileAllResult)
async def reconcile_all(db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Reconcile every booking, each in its own transaction."""
    ledger_service = LedgerService(db)
    result = await ledger_service.reconcile_all()

    logger.info(
        "Manual reconciliation sweep requested",
        extra={"checked": result.checked, "corrected": result.corrected, "failed": result.failed}
    )

    return JSONResponse(status_code=200, content=result.model_dump(mode="json"))
