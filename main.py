from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import redis
import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from core import task as _task_registration  # noqa: F401
from core.database import client as mongo_client
from core.logging_config import setup_logging
from core.payments.manager import PaymentManager
from core.queue.asyncio_provider import AsyncioQueueProvider
from core.queue.manager import QueueManager
from core.response_envelope import (
    apply_response_documentation,
    document_response,
    error_response,
    http_exception_response,
)
from core.settings import get_settings
from core.validation_errors import format_validation_error_details

settings = get_settings()
setup_logging(settings.log_level)
logger = structlog.get_logger(__name__)

redis_client = (
    redis.Redis.from_url(settings.redis_url, socket_connect_timeout=2, decode_responses=True)
    if settings.queue_backend == "celery"
    else None
)


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
        response.headers["X-Request-ID"] = request_id
        return response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start_time
        response.headers["X-Process-Time"] = f"{elapsed:.6f}"
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(elapsed * 1000, 2),
        )
        return response


def _configure_queue() -> QueueManager:
    if settings.queue_backend == "asyncio":
        return QueueManager.configure(AsyncioQueueProvider())

    from celery_worker import celery_app
    from core.queue.celery_provider import CeleryQueueProvider

    return QueueManager.configure(CeleryQueueProvider(celery_app=celery_app))


@asynccontextmanager
async def lifespan(app: FastAPI):
    queue = _configure_queue()
    PaymentManager.configure_from_settings()
    logger.info("application_started", queue_backend=settings.queue_backend, env=settings.env)

    try:
        yield
    finally:
        provider = queue.provider
        if isinstance(provider, AsyncioQueueProvider):
            await provider.drain()
        logger.info("application_stopped")


app = FastAPI(lifespan=lifespan, title="Visa Payments API")
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins) if settings.cors_origins else ["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request: Request, exc: HTTPException):
    return http_exception_response(exc=exc, request=request)


@app.exception_handler(RequestValidationError)
async def custom_validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(
        status_code=422,
        message="Validation error",
        data={"code": "VALIDATION_FAILED", "details": format_validation_error_details(exc.errors())},
        request_id=getattr(request.state, "request_id", None),
    )


@app.exception_handler(Exception)
async def custom_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled_exception", path=request.url.path)
    details = str(exc) if (settings.debug_include_error_details and not settings.is_production) else None
    return error_response(
        status_code=500,
        message="Internal Server Error",
        data={"code": "INTERNAL_ERROR", "details": details},
        request_id=getattr(request.state, "request_id", None),
    )


def _service_status(start: float, healthy: bool, message: str) -> dict[str, str | float]:
    return {
        "status": "healthy" if healthy else "unhealthy",
        "latency_ms": round((time.perf_counter() - start) * 1000, 2),
        "message": message,
    }


@app.get("/health", tags=["Health"])
@document_response(
    message="Health check completed",
    success_example={"status": "healthy", "services": {"mongo": {"status": "healthy"}}},
)
async def health_check():
    services: dict[str, dict[str, str | float]] = {}
    overall_status = "healthy"

    start = time.perf_counter()
    try:
        await mongo_client.admin.command("ping")
        services["mongo"] = _service_status(start, True, "MongoDB ping successful")
    except Exception as exc:
        overall_status = "degraded"
        services["mongo"] = _service_status(start, False, str(exc))

    if redis_client is not None:
        start = time.perf_counter()
        try:
            await run_in_threadpool(redis_client.ping)
            services["redis"] = _service_status(start, True, "Redis ping successful")
        except Exception as exc:
            overall_status = "degraded"
            services["redis"] = _service_status(start, False, str(exc))

    return {
        "status": overall_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": services,
    }


from api.v1.payments_route import router as v1_payments_route_router
from api.webhooks_route import router as webhooks_route_router

app.include_router(v1_payments_route_router, prefix="/v1")
app.include_router(webhooks_route_router)

apply_response_documentation(app)
