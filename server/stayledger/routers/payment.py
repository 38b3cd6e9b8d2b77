"""Payment router for recording payments and opening gateway orders."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_db, get_idempotency_key, get_payment_gateway
from ..core.exceptions import ProblemDetailsException
from ..schemas.payment import CreateOrderRequest, GatewayOrder, PaymentReceipt, RecordPaymentRequest
from ..services.gateway import PaymentGateway
from ..services.payment_service import PaymentService
from .booking import handle_idempotent_operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/payment", tags=["payment"])

DB_DEPENDENCY = Depends(get_db)
GATEWAY_DEPENDENCY = Depends(get_payment_gateway)
IDEMPOTENCY_KEY_DEPENDENCY = Depends(get_idempotency_key)


@router.post("/record", response_model=PaymentReceipt, status_code=201)
async def record_payment(
    request: RecordPaymentRequest,
    db: AsyncSession = DB_DEPENDENCY,
    gateway: PaymentGateway = GATEWAY_DEPENDENCY,
    idempotency_key: str = IDEMPOTENCY_KEY_DEPENDENCY
) -> JSONResponse:
    """
    Record a payment and return the updated ledger.

    This operation is idempotent based on the Idempotency-Key header.
    """
    payment_service = PaymentService(db, gateway=gateway)

    async def operation():
        receipt = await payment_service.record_payment(request)
        return receipt.model_dump(mode="json")

    try:
        return await handle_idempotent_operation(
            method="payment/record",
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
            "Unexpected error in payment recording",
            extra={
                "booking_id": str(request.booking_id),
                "amount": str(request.amount),
                "source": request.source.value,
                "idempotency_key": idempotency_key,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/order", response_model=GatewayOrder)
async def create_order(
    request: CreateOrderRequest,
    db: AsyncSession = DB_DEPENDENCY,
    gateway: PaymentGateway = GATEWAY_DEPENDENCY
) -> JSONResponse:
    """Open a gateway order for the booking's remaining amount or a part of it."""
    payment_service = PaymentService(db, gateway=gateway)
    order = await payment_service.create_gateway_order(request)

    logger.info(
        "Gateway order opened",
        extra={"booking_id": str(request.booking_id), "order_id": order.order_id, "amount": str(order.amount)}
    )

    return JSONResponse(status_code=200, content=order.model_dump(mode="json"))
