"""
Webhook and payment signature checks.

Every check here runs on raw bytes exactly as received; callers parse the
body only after verification succeeds.
"""
from __future__ import annotations

import hashlib
import hmac
from typing import Any

import stripe
import structlog

from core.errors import signature_invalid

logger = structlog.get_logger(__name__)


def compute_hmac_sha256(payload: bytes | str, secret: str) -> str:
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def signatures_match(expected: str, provided: str | None) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def verify_hmac_webhook(*, body: bytes, signature: str | None, secret: str | None) -> None:
    if not secret:
        logger.error("webhook_secret_missing", scheme="hmac_sha256")
        raise signature_invalid()
    if not signatures_match(compute_hmac_sha256(body, secret), signature):
        logger.warning("webhook_signature_mismatch", scheme="hmac_sha256")
        raise signature_invalid()


def verify_stripe_webhook(*, body: bytes, signature: str | None, secret: str | None) -> Any:
    if not signature or not secret:
        logger.warning("webhook_signature_missing", scheme="stripe", has_secret=bool(secret))
        raise signature_invalid()

    try:
        return stripe.Webhook.construct_event(payload=body, sig_header=signature, secret=secret)
    except Exception as err:
        logger.warning("webhook_signature_mismatch", scheme="stripe", error=str(err))
        raise signature_invalid() from err
