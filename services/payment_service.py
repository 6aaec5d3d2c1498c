from __future__ import annotations

import time
from typing import Any

import structlog
from fastapi import status
from fastapi.concurrency import run_in_threadpool

from core.errors import (
    AppException,
    ErrorCode,
    access_denied,
    payment_not_confirmable,
    payment_not_found,
    payment_verification_failed,
    resource_not_found,
)
from core.payments import IntentRequest, PaymentManager, PaymentMethod, PaymentStatus, ProviderPaymentStatus
from core.payments.state_machine import apply_transition
from repositories.application_repo import get_application_by_id
from repositories.payment_repo import (
    create_payment,
    external_ref_field,
    get_payment_by_external_ref,
    get_payment_by_id,
    get_payments,
    next_payment_id,
)
from schemas.payment_schema import (
    PaymentConfirmIn,
    PaymentCreate,
    PaymentCreatedOut,
    PaymentCreateIn,
    PaymentOut,
)
from security.principal import AuthPrincipal
from services.payment_notifier import dispatch_payment_side_effects

logger = structlog.get_logger(__name__)

_PROVIDER_TO_PAYMENT_STATUS = {
    ProviderPaymentStatus.COMPLETED: PaymentStatus.COMPLETED,
    ProviderPaymentStatus.FAILED: PaymentStatus.FAILED,
}


def _epoch() -> int:
    return int(time.time())


def _get_payment_manager() -> PaymentManager:
    try:
        return PaymentManager.get_instance()
    except RuntimeError as err:
        raise AppException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code=ErrorCode.PAYMENT_PROVIDER_UNCONFIGURED,
            message="Payment providers are not configured",
            details=str(err),
        ) from err


async def _settle(payment: PaymentOut, target: PaymentStatus, fields: dict[str, Any]) -> PaymentOut:
    outcome = await apply_transition(payment=payment, target=target, fields=fields)
    if outcome.applied:
        dispatch_payment_side_effects(outcome.payment)
    return outcome.payment


async def get_payment_or_404(payment_id: int) -> PaymentOut:
    payment = await get_payment_by_id(payment_id)
    if payment is None:
        raise payment_not_found(payment_id)
    return payment


async def create_payment_for_application(*, principal: AuthPrincipal, payload: PaymentCreateIn) -> PaymentCreatedOut:
    application = await get_application_by_id(payload.application_id)
    if application is None:
        raise resource_not_found("Application", payload.application_id)
    if principal.is_applicant and application.user_id != principal.user_id:
        raise access_denied("POST:/v1/payments")

    manager = _get_payment_manager()
    provider = manager.get_provider(payload.method)

    now = _epoch()
    payment = await create_payment(
        PaymentCreate(
            id=await next_payment_id(),
            application_id=application.id,
            user_id=application.user_id,
            amount=payload.amount,
            currency=payload.currency,
            method=payload.method,
            status=PaymentStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
    )
    logger.info(
        "payment_created",
        payment_id=payment.id,
        application_id=payment.application_id,
        method=payment.method.value,
    )

    try:
        intent = await run_in_threadpool(
            provider.create_intent,
            IntentRequest(
                amount=payment.amount,
                currency=payment.currency,
                metadata={
                    "payment_id": str(payment.id),
                    "application_id": str(payment.application_id),
                    "user_id": str(payment.user_id),
                },
            ),
        )
    except AppException as err:
        # The pending row is kept; the caller may retry the whole creation.
        logger.warning("payment_provider_create_failed", payment_id=payment.id, code=err.code.value)
        raise

    outcome = await apply_transition(
        payment=payment,
        target=PaymentStatus.PROCESSING,
        fields={
            external_ref_field(payment.method): intent.external_ref,
            "metadata": {"source": "create", "provider": intent.provider_payload},
        },
    )
    payment = outcome.payment

    created = PaymentCreatedOut(
        payment_id=payment.id,
        amount=payment.amount,
        currency=payment.currency,
        status=payment.status,
    )
    if payment.method == PaymentMethod.STRIPE:
        created.payment_intent_id = payment.payment_intent_id
        created.client_secret = intent.client_secret
    else:
        created.razorpay_order_id = payment.razorpay_order_id
        created.razorpay_key_id = manager.razorpay.key_id
    return created


async def confirm_payment(*, principal: AuthPrincipal, payment_id: int, payload: PaymentConfirmIn) -> PaymentOut:
    payment = await get_payment_or_404(payment_id)
    if not principal.can_access_user_resource(payment.user_id):
        raise access_denied("POST:/v1/payments/{payment_id}/confirm")
    if payment.status == PaymentStatus.PENDING:
        raise payment_not_confirmable(payment.id, payment.status.value)

    missing = payload.missing_fields_for(payment.method)
    if missing:
        raise AppException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code=ErrorCode.VALIDATION_FAILED,
            message="Confirmation payload is incomplete",
            details={"method": payment.method.value, "missing": missing},
        )

    if payment.method == PaymentMethod.STRIPE:
        return await _confirm_stripe(payment, payload)
    return await _confirm_razorpay(payment, payload)


async def _confirm_stripe(payment: PaymentOut, payload: PaymentConfirmIn) -> PaymentOut:
    if payload.payment_intent_id != payment.payment_intent_id:
        raise payment_verification_failed(payment.id, "payment intent does not belong to this payment")

    provider = _get_payment_manager().stripe
    try:
        provider_status = await run_in_threadpool(provider.fetch_status, payment.payment_intent_id)
    except AppException as err:
        if err.code == ErrorCode.PAYMENT_PROVIDER_UNCONFIGURED:
            raise
        raise payment_verification_failed(payment.id, "provider status unavailable") from err

    target = _PROVIDER_TO_PAYMENT_STATUS.get(provider_status)
    if target is None:
        logger.info("payment_confirm_still_processing", payment_id=payment.id)
        return payment

    fields: dict[str, Any] = {"metadata": {"source": "confirm", "provider_status": provider_status.value}}
    if target == PaymentStatus.COMPLETED:
        fields["transaction_id"] = payment.payment_intent_id
    return await _settle(payment, target, fields)


async def _confirm_razorpay(payment: PaymentOut, payload: PaymentConfirmIn) -> PaymentOut:
    if payload.razorpay_order_id != payment.razorpay_order_id:
        raise payment_verification_failed(payment.id, "order does not belong to this payment")

    provider = _get_payment_manager().razorpay
    valid = provider.verify_payment_signature(
        order_id=payload.razorpay_order_id or "",
        payment_id=payload.razorpay_payment_id or "",
        signature=payload.razorpay_signature,
    )
    if not valid:
        await _settle(
            payment,
            PaymentStatus.FAILED,
            {"metadata": {"source": "confirm", "reason": "signature mismatch"}},
        )
        raise payment_verification_failed(payment.id, "signature mismatch")

    return await _settle(
        payment,
        PaymentStatus.COMPLETED,
        {
            "transaction_id": payload.razorpay_payment_id,
            "metadata": {"source": "confirm", "razorpay_payment_id": payload.razorpay_payment_id},
        },
    )


async def process_webhook(*, method: PaymentMethod, body: bytes, headers: dict[str, str]) -> dict[str, bool]:
    provider = _get_payment_manager().get_provider(method)
    event = provider.parse_webhook(body=body, headers=headers)
    if event is None:
        logger.info("payment_webhook_ignored", provider=method.value)
        return {"received": True}

    payment = await get_payment_by_external_ref(method, event.external_ref)
    if payment is None:
        logger.warning("payment_webhook_unknown_reference", provider=method.value, external_ref=event.external_ref)
        raise payment_not_found(event.external_ref)

    if payment.status == PaymentStatus.PENDING:
        logger.warning(
            "payment_webhook_for_pending_payment",
            provider=method.value,
            payment_id=payment.id,
            event_type=event.event_type,
        )
        return {"received": True}

    fields: dict[str, Any] = {
        "metadata": {"source": "webhook", "event_type": event.event_type, "event_id": event.event_id},
    }
    if event.target_status == PaymentStatus.COMPLETED:
        fields["transaction_id"] = event.transaction_ref
    await _settle(payment, event.target_status, fields)
    return {"received": True}


async def list_payments_for_principal(*, principal: AuthPrincipal, start: int = 0, stop: int = 100) -> list[PaymentOut]:
    filter_dict = {"user_id": principal.user_id} if principal.is_applicant else {}
    return await get_payments(filter_dict=filter_dict, start=start, stop=stop)


async def get_payment_for_principal(*, principal: AuthPrincipal, payment_id: int) -> PaymentOut:
    payment = await get_payment_or_404(payment_id)
    if not principal.can_access_user_resource(payment.user_id):
        raise access_denied("GET:/v1/payments/{payment_id}")
    return payment
