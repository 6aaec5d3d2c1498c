"""
Uniform JSON envelopes.

Successful handlers return ``{"success": true, "message", "data"}`` (plus
``meta`` for paged lists); every error, whether an ``AppException`` or a
framework ``HTTPException``, is rendered as
``{"success": false, "message", "data": {"code", "details"}}``.
"""
from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.responses import Response

_ENVELOPE_ATTR = "__envelope_config__"
_GENERIC_CODE = "HTTP_EXCEPTION"


@dataclass(frozen=True)
class EnvelopeConfig:
    message: str
    status_code: int
    success_example: Any = None
    include_meta: bool = False
    response_codes: dict[int, str] = field(default_factory=dict)


def success_payload(
    data: Any,
    message: str = "Success",
    *,
    meta: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": True, "message": message, "data": data}
    if meta is not None:
        payload["meta"] = meta
    if request_id:
        payload["requestId"] = request_id
    return payload


def error_payload(message: str, data: Any = None, *, request_id: str | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": False, "message": message, "data": data}
    if request_id:
        payload["requestId"] = request_id
    return payload


def error_response(
    *,
    status_code: int,
    message: str,
    data: Any = None,
    headers: dict[str, str] | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content=jsonable_encoder(error_payload(message=message, data=data, request_id=request_id)),
    )


def _split_detail(detail: Any) -> tuple[str, dict[str, Any]]:
    if isinstance(detail, dict) and isinstance(detail.get("message"), str):
        return detail["message"], {"code": detail.get("code", _GENERIC_CODE), "details": detail.get("details")}
    if isinstance(detail, str) and detail.strip():
        return detail, {"code": _GENERIC_CODE, "details": None}
    if detail is None:
        return "Request failed", {"code": _GENERIC_CODE, "details": None}
    return "Request failed", {"code": _GENERIC_CODE, "details": detail}


def _request_id(request: Request | None) -> str | None:
    if request is None:
        return None
    return getattr(request.state, "request_id", None)


def http_exception_response(exc: HTTPException, request: Request | None = None) -> JSONResponse:
    message, data = _split_detail(exc.detail)
    return error_response(
        status_code=exc.status_code,
        message=message,
        data=data,
        headers=exc.headers,
        request_id=_request_id(request),
    )


def document_response(
    *,
    message: str = "Success",
    status_code: int = status.HTTP_200_OK,
    success_example: Any = None,
    include_meta: bool = False,
    response_codes: dict[int, str] | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Wrap a route handler's return value in the success envelope.

    With ``include_meta`` the handler returns ``(data, meta)``.
    Handlers that return a ``Response`` are passed through untouched.
    """
    config = EnvelopeConfig(
        message=message,
        status_code=status_code,
        success_example=success_example,
        include_meta=include_meta,
        response_codes=dict(response_codes or {}),
    )

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Response:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, Response):
                return result

            data, meta = result, None
            if config.include_meta and isinstance(result, tuple) and len(result) == 2:
                data, meta = result

            request = next((value for value in [*args, *kwargs.values()] if isinstance(value, Request)), None)
            return JSONResponse(
                status_code=config.status_code,
                content=jsonable_encoder(
                    success_payload(data=data, message=config.message, meta=meta, request_id=_request_id(request))
                ),
            )

        setattr(wrapper, _ENVELOPE_ATTR, config)
        return wrapper

    return decorator


def apply_response_documentation(app: FastAPI) -> None:
    """Copy each enveloped route's status code and example into the OpenAPI schema."""
    for route in app.routes:
        if not isinstance(route, APIRoute):
            continue
        config = getattr(route.endpoint, _ENVELOPE_ATTR, None)
        if not isinstance(config, EnvelopeConfig):
            continue

        route.status_code = config.status_code
        responses = dict(route.responses or {})
        example = success_payload(
            data=config.success_example,
            message=config.message,
            meta={"start": 0, "stop": 100, "count": 0} if config.include_meta else None,
        )
        responses[config.status_code] = {
            "description": "Successful response",
            "content": {"application/json": {"example": example}},
        }
        for code, description in config.response_codes.items():
            responses.setdefault(code, {"description": description})
        route.responses = responses

    app.openapi_schema = None
