from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from core.response_envelope import document_response
from schemas.payment_schema import PaymentConfirmIn, PaymentCreateIn
from security.auth import verify_any_token
from security.principal import AuthPrincipal
from services.payment_service import (
    confirm_payment,
    create_payment_for_application,
    get_payment_for_principal,
    list_payments_for_principal,
)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("")
@document_response(
    message="Payment created",
    status_code=201,
    response_codes={
        401: "Unauthorized",
        403: "Access denied",
        404: "Application not found",
        502: "Payment provider error",
        503: "Payment provider unconfigured",
    },
)
async def create_payment(payload: PaymentCreateIn, principal: AuthPrincipal = Depends(verify_any_token)):
    """
    Open a payment for a visa application with the chosen provider.

    Stripe payments return `payment_intent_id` and `client_secret`; Razorpay
    payments return `razorpay_order_id` and the public `razorpay_key_id`.
    """
    created = await create_payment_for_application(principal=principal, payload=payload)
    return created.model_dump(mode="json", exclude_none=True)


@router.get("")
@document_response(message="Payments fetched", success_example=[], include_meta=True)
async def list_payments(
    start: int = Query(default=0, ge=0),
    stop: int = Query(default=100, gt=0, le=200),
    principal: AuthPrincipal = Depends(verify_any_token),
):
    """Applicants see their own payments; staff see every payment, newest first."""
    items = await list_payments_for_principal(principal=principal, start=start, stop=stop)
    return items, {"start": start, "stop": stop, "count": len(items)}


@router.get("/{payment_id}")
@document_response(message="Payment fetched", response_codes={403: "Access denied", 404: "Payment not found"})
async def fetch_payment(payment_id: int, principal: AuthPrincipal = Depends(verify_any_token)):
    return await get_payment_for_principal(principal=principal, payment_id=payment_id)


@router.post("/{payment_id}/confirm")
@document_response(
    message="Payment confirmed",
    response_codes={
        400: "Payment verification failed",
        403: "Access denied",
        404: "Payment not found",
        409: "Payment not confirmable",
    },
)
async def confirm(
    payment_id: int,
    payload: PaymentConfirmIn,
    principal: AuthPrincipal = Depends(verify_any_token),
):
    return await confirm_payment(principal=principal, payment_id=payment_id, payload=payload)
