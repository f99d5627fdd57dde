"""
Payment Routes — Order creation, gateway callback and payment status.
"""
from typing import Optional

from fastapi import APIRouter, Depends

from casepay.config import get_settings
from casepay.dependencies import get_current_actor, get_payment_service
from casepay.models.enums import PaymentStatus
from casepay.schemas.schemas import (
    CreateOrderRequest, CreateOrderResponse, PaymentCallbackRequest, CallbackAck,
    PaymentStatusResponse,
)
from casepay.services.access import Actor
from casepay.services.payment_service import PaymentService, PAYER_FAILURE_MESSAGE
from casepay.utils.rate_limiter import rate_limit

settings = get_settings()

router = APIRouter(prefix="/api/payment", tags=["Payment"])


def to_status_response(payment) -> PaymentStatusResponse:
    message = PAYER_FAILURE_MESSAGE if payment.status == PaymentStatus.FAILED else ""
    return PaymentStatusResponse(
        payment_id=payment.id,
        case_id=payment.case_id,
        amount=payment.amount,
        currency=payment.currency,
        status=payment.status,
        transaction_id=payment.transaction_id,
        order_ref=payment.gateway_order_ref,
        payment_ref=payment.gateway_payment_ref,
        created_at=payment.created_at,
        confirmed_at=payment.confirmed_at,
        message=message,
    )


@router.post("/create-order", response_model=CreateOrderResponse, status_code=201)
def create_order(
    payload: CreateOrderRequest,
    actor: Actor = Depends(get_current_actor),
    service: PaymentService = Depends(get_payment_service),
    _throttle: bool = Depends(
        rate_limit(
            requests=settings.CREATE_ORDER_RATE_LIMIT,
            window=settings.CREATE_ORDER_RATE_WINDOW,
            scope="create-order",
        )
    ),
):
    """Create a gateway order for a case's filing fee."""
    payment = service.create_order(payload.case_id, actor, amount=payload.amount, currency=payload.currency)
    return CreateOrderResponse(
        payment_id=payment.id,
        order_ref=payment.gateway_order_ref,
        transaction_id=payment.transaction_id,
        amount=payment.amount,
        currency=payment.currency,
        key_id=service.settings.RAZORPAY_KEY_ID,
        status=payment.status,
    )


@router.post("/callback", response_model=CallbackAck)
def payment_callback(
    payload: PaymentCallbackRequest,
    service: PaymentService = Depends(get_payment_service),
):
    """Gateway / checkout callback.

    Always answers 200 with a bare accepted/rejected; the reason for a
    rejection is only logged.
    """
    error = None
    if payload.error_code or payload.error_description:
        error = {"code": payload.error_code, "description": payload.error_description}

    result = service.handle_callback(
        payload.order_ref,
        payload.payment_ref,
        payload.signature,
        amount=payload.amount,
        currency=payload.currency,
        event=payload.event,
        error=error,
    )
    if result.accepted:
        return CallbackAck(status="accepted", payment_id=result.payment.id)
    return CallbackAck(status="rejected")


@router.get("/history", response_model=list[PaymentStatusResponse])
def payment_history(
    case_id: Optional[str] = None,
    actor: Actor = Depends(get_current_actor),
    service: PaymentService = Depends(get_payment_service),
):
    """Payments visible to the caller, newest first."""
    return [to_status_response(p) for p in service.history(actor, case_id=case_id)]


@router.get("/{payment_id}", response_model=PaymentStatusResponse)
def get_payment(
    payment_id: str,
    actor: Actor = Depends(get_current_actor),
    service: PaymentService = Depends(get_payment_service),
):
    return to_status_response(service.get_payment(payment_id, actor))
