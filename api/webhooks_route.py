from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from core.errors import webhook_body_too_large
from core.payments.types import PaymentMethod
from core.settings import get_settings
from services.payment_service import process_webhook

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


async def _read_capped_body(request: Request) -> bytes:
    limit = get_settings().webhook_max_body_bytes

    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise webhook_body_too_large(limit)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise webhook_body_too_large(limit)
    return bytes(body)


async def _handle(method: PaymentMethod, request: Request) -> JSONResponse:
    body = await _read_capped_body(request)
    headers = {key.lower(): value for key, value in request.headers.items()}
    result = await process_webhook(method=method, body=body, headers=headers)
    return JSONResponse(content=result)


@router.post("/stripe")
async def stripe_webhook(request: Request):
    """
    Receive Stripe events. The raw body is verified against the
    `Stripe-Signature` header before it is decoded.
    """
    return await _handle(PaymentMethod.STRIPE, request)


@router.post("/razorpay")
async def razorpay_webhook(request: Request):
    """
    Receive Razorpay events. `X-Razorpay-Signature` must be the hex
    HMAC-SHA256 of the raw body under the webhook secret.
    """
    return await _handle(PaymentMethod.RAZORPAY, request)
