from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

SUPPORTED_QUEUE_BACKENDS = {"celery", "asyncio"}
SUPPORTED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
DEFAULT_WEBHOOK_MAX_BODY_BYTES = 65536


def _split_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return tuple()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env(name: str) -> str | None:
    raw_value = os.getenv(name)
    if raw_value is None:
        return None
    normalized = raw_value.strip()
    return normalized or None


def _is_positive_number(value: str, *, integer: bool) -> bool:
    try:
        parsed = int(value) if integer else float(value)
    except ValueError:
        return False
    return parsed > 0


def collect_missing_required_env_vars() -> list[str]:
    missing: list[str] = []

    for var_name in ("SECRET_KEY", "MONGO_URL", "DB_NAME"):
        if _env(var_name) is None:
            missing.append(var_name)

    queue_backend = (_env("QUEUE_BACKEND") or "celery").lower()
    if queue_backend == "celery":
        for var_name in ("CELERY_BROKER_URL", "CELERY_RESULT_BACKEND"):
            if _env(var_name) is None:
                missing.append(var_name)

    return sorted(set(missing))


def collect_invalid_env_values() -> list[str]:
    invalid_values: list[str] = []

    queue_backend = (_env("QUEUE_BACKEND") or "celery").lower()
    if queue_backend not in SUPPORTED_QUEUE_BACKENDS:
        invalid_values.append("QUEUE_BACKEND must be one of: asyncio, celery")

    timeout = _env("PAYMENT_PROVIDER_TIMEOUT_SECONDS")
    if timeout is not None and not _is_positive_number(timeout, integer=False):
        invalid_values.append("PAYMENT_PROVIDER_TIMEOUT_SECONDS must be a positive number")

    max_body = _env("WEBHOOK_MAX_BODY_BYTES")
    if max_body is not None and not _is_positive_number(max_body, integer=True):
        invalid_values.append("WEBHOOK_MAX_BODY_BYTES must be a positive integer")

    log_level = (_env("LOG_LEVEL") or "INFO").upper()
    if log_level not in SUPPORTED_LOG_LEVELS:
        invalid_values.append("LOG_LEVEL must be one of: CRITICAL, DEBUG, ERROR, INFO, WARNING")

    return invalid_values


def validate_required_environment() -> None:
    missing_vars = collect_missing_required_env_vars()
    invalid_values = collect_invalid_env_values()
    if not missing_vars and not invalid_values:
        return

    message_lines = ["Application startup blocked by invalid environment configuration."]
    if missing_vars:
        message_lines.append("")
        message_lines.append("Missing required environment variables:")
        message_lines.extend(f"- {name}" for name in missing_vars)
    if invalid_values:
        message_lines.append("")
        message_lines.append("Invalid environment values:")
        message_lines.extend(f"- {message}" for message in invalid_values)
    raise RuntimeError("\n".join(message_lines))


@dataclass(frozen=True)
class Settings:
    env: str
    secret_key: str
    cors_origins: tuple[str, ...]
    debug_include_error_details: bool
    log_level: str
    mongo_url: str
    db_name: str
    redis_url: str
    queue_backend: str
    payment_provider_timeout_seconds: float
    webhook_max_body_bytes: int
    stripe_secret_key: str | None
    stripe_webhook_secret: str | None
    razorpay_key_id: str | None
    razorpay_key_secret: str | None
    razorpay_webhook_secret: str | None

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    validate_required_environment()

    default_redis = (
        os.getenv("CELERY_BROKER_URL")
        or os.getenv("REDIS_URL")
        or f"redis://{os.getenv('REDIS_HOST', '127.0.0.1')}:{os.getenv('REDIS_PORT', '6379')}/0"
    )

    return Settings(
        env=os.getenv("ENV", "development"),
        secret_key=os.getenv("SECRET_KEY", ""),
        cors_origins=_split_csv(os.getenv("CORS_ORIGINS")),
        debug_include_error_details=os.getenv("DEBUG_INCLUDE_ERROR_DETAILS", "false").lower()
        in {"1", "true", "yes"},
        log_level=(_env("LOG_LEVEL") or "INFO").upper(),
        mongo_url=os.getenv("MONGO_URL", ""),
        db_name=os.getenv("DB_NAME", ""),
        redis_url=default_redis,
        queue_backend=(_env("QUEUE_BACKEND") or "celery").lower(),
        payment_provider_timeout_seconds=float(_env("PAYMENT_PROVIDER_TIMEOUT_SECONDS") or 15),
        webhook_max_body_bytes=int(_env("WEBHOOK_MAX_BODY_BYTES") or DEFAULT_WEBHOOK_MAX_BODY_BYTES),
        stripe_secret_key=_env("STRIPE_SECRET_KEY"),
        stripe_webhook_secret=_env("STRIPE_WEBHOOK_SECRET"),
        razorpay_key_id=_env("RAZORPAY_KEY_ID"),
        razorpay_key_secret=_env("RAZORPAY_KEY_SECRET"),
        razorpay_webhook_secret=_env("RAZORPAY_WEBHOOK_SECRET"),
    )
