"""Invoice router."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_db
from ..schemas.booking import BookingIdRequest
from ..schemas.invoice import Invoice
from ..services.invoice_service import InvoiceService

router = APIRouter(prefix="/v1/invoice", tags=["invoice"])

DB_DEPENDENCY = Depends(get_db)


@router.post("/get", response_model=Invoice)
async def get_invoice(
    request: BookingIdRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Get the invoice issued for a booking, with its lines."""
    invoice_service = InvoiceService(db)
    invoice = await invoice_service.get_invoice(request.booking_id)

    return JSONResponse(
        status_code=200,
        content=Invoice.model_validate(invoice).model_dump(mode="json")
    )
