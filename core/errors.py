from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi import HTTPException, status


class ErrorCode(str, Enum):
    AUTH_INVALID_TOKEN = "AUTH_INVALID_TOKEN"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    PAYMENT_PROVIDER_UNCONFIGURED = "PAYMENT_PROVIDER_UNCONFIGURED"
    PAYMENT_PROVIDER_ERROR = "PAYMENT_PROVIDER_ERROR"
    PAYMENT_PROVIDER_RESPONSE_INVALID = "PAYMENT_PROVIDER_RESPONSE_INVALID"
    PAYMENT_WEBHOOK_INVALID = "PAYMENT_WEBHOOK_INVALID"
    PAYMENT_NOT_CONFIRMABLE = "PAYMENT_NOT_CONFIRMABLE"
    PAYMENT_VERIFICATION_FAILED = "PAYMENT_VERIFICATION_FAILED"
    WEBHOOK_INVALID_PAYLOAD = "WEBHOOK_INVALID_PAYLOAD"
    WEBHOOK_INVALID_EVENT_TYPE = "WEBHOOK_INVALID_EVENT_TYPE"
    WEBHOOK_BODY_TOO_LARGE = "WEBHOOK_BODY_TOO_LARGE"


class AppException(HTTPException):
    def __init__(
        self,
        *,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        detail = {
            "message": message,
            "code": code.value,
            "details": details,
        }
        self.code = code
        super().__init__(status_code=status_code, detail=detail, headers=headers)


def auth_invalid_token(details: Any | None = None) -> AppException:
    return AppException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        code=ErrorCode.AUTH_INVALID_TOKEN,
        message="Invalid token",
        details=details,
    )


def access_denied(permission_key: str) -> AppException:
    return AppException(
        status_code=status.HTTP_403_FORBIDDEN,
        code=ErrorCode.AUTH_PERMISSION_DENIED,
        message="Access denied",
        details={"permission_key": permission_key},
    )


def resource_not_found(resource: str, resource_id: str | int | None = None) -> AppException:
    details: dict[str, Any] = {"resource": resource}
    if resource_id is not None:
        details["resource_id"] = str(resource_id)
    return AppException(
        status_code=status.HTTP_404_NOT_FOUND,
        code=ErrorCode.RESOURCE_NOT_FOUND,
        message=f"{resource} not found",
        details=details,
    )


def payment_not_found(payment_ref: str | int) -> AppException:
    return resource_not_found("Payment", payment_ref)


def provider_unconfigured(provider: str) -> AppException:
    return AppException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        code=ErrorCode.PAYMENT_PROVIDER_UNCONFIGURED,
        message=f"{provider.capitalize()} is not configured",
        details={"provider": provider},
    )


def provider_request_failed(provider: str, details: Any | None = None) -> AppException:
    return AppException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        code=ErrorCode.PAYMENT_PROVIDER_ERROR,
        message=f"{provider.capitalize()} request failed",
        details=details,
    )


def provider_response_invalid(provider: str, details: Any | None = None) -> AppException:
    return AppException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        code=ErrorCode.PAYMENT_PROVIDER_RESPONSE_INVALID,
        message=f"{provider.capitalize()} returned an invalid response",
        details=details,
    )


def signature_invalid() -> AppException:
    # Webhook callers never see why verification failed.
    return AppException(
        status_code=status.HTTP_400_BAD_REQUEST,
        code=ErrorCode.PAYMENT_WEBHOOK_INVALID,
        message="Webhook signature verification failed",
    )


def payment_not_confirmable(payment_id: int, current_status: str) -> AppException:
    return AppException(
        status_code=status.HTTP_409_CONFLICT,
        code=ErrorCode.PAYMENT_NOT_CONFIRMABLE,
        message="Payment cannot be confirmed in its current state",
        details={"payment_id": payment_id, "status": current_status},
    )


def payment_verification_failed(payment_id: int, reason: str | None = None) -> AppException:
    return AppException(
        status_code=status.HTTP_400_BAD_REQUEST,
        code=ErrorCode.PAYMENT_VERIFICATION_FAILED,
        message="Payment verification failed",
        details={"payment_id": payment_id, "reason": reason},
    )


def webhook_invalid_payload() -> AppException:
    return AppException(
        status_code=status.HTTP_400_BAD_REQUEST,
        code=ErrorCode.WEBHOOK_INVALID_PAYLOAD,
        message="Invalid payload",
    )


def webhook_invalid_event_type() -> AppException:
    return AppException(
        status_code=status.HTTP_400_BAD_REQUEST,
        code=ErrorCode.WEBHOOK_INVALID_EVENT_TYPE,
        message="Invalid event type",
    )


def webhook_body_too_large(limit_bytes: int) -> AppException:
    return AppException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        code=ErrorCode.WEBHOOK_BODY_TOO_LARGE,
        message="Webhook body too large",
        details={"limit_bytes": limit_bytes},
    )
