from __future__ import annotations

import copy
import hashlib
import hmac
import itertools
import os
import time
from decimal import Decimal
from types import SimpleNamespace
from typing import Any

os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("DB_NAME", "visa_payments_test")
os.environ.setdefault("QUEUE_BACKEND", "asyncio")

import pytest
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from core.payments.manager import PaymentManager
from core.payments.razorpay_provider import RazorpayPaymentProvider
from core.payments import stripe_provider
from core.payments.stripe_provider import StripePaymentProvider
from core.payments.types import PaymentMethod
from core.queue.asyncio_provider import AsyncioQueueProvider
from core.queue.manager import QueueManager
from repositories import application_repo, audit_repo, notification_repo, payment_repo
from schemas.payment_schema import PaymentCreate
from security.principal import AuthPrincipal

STRIPE_WEBHOOK_SECRET = "whsec_test"
RAZORPAY_KEY_SECRET = "rzp_key_secret"
RAZORPAY_WEBHOOK_SECRET = "rzp_webhook_secret"


def _matches(row: dict[str, Any], query: dict[str, Any]) -> bool:
    return all(row.get(key) == value for key, value in query.items())


class FakeCursor:
    def __init__(self, rows: list[dict[str, Any]]) -> None:
        self._rows = rows

    def sort(self, key: str, direction: int = 1) -> "FakeCursor":
        self._rows = sorted(self._rows, key=lambda row: row.get(key), reverse=direction < 0)
        return self

    def skip(self, count: int) -> "FakeCursor":
        self._rows = self._rows[count:]
        return self

    def limit(self, count: int) -> "FakeCursor":
        if count:
            self._rows = self._rows[:count]
        return self

    def __aiter__(self):
        self._iter = iter(self._rows)
        return self

    async def __anext__(self) -> dict[str, Any]:
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    """Just enough of a motor collection for the repositories under test."""

    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = []
        self._ids = itertools.count(1)

    async def create_index(self, *args: Any, **kwargs: Any) -> str:
        return kwargs.get("name", "index")

    async def insert_one(self, document: dict[str, Any]) -> SimpleNamespace:
        row = copy.deepcopy(document)
        row.setdefault("_id", f"oid-{next(self._ids)}")
        if any(existing["_id"] == row["_id"] for existing in self.rows):
            raise DuplicateKeyError(f"duplicate _id {row['_id']}")
        self.rows.append(row)
        return SimpleNamespace(inserted_id=row["_id"])

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        for row in self.rows:
            if _matches(row, query):
                return copy.deepcopy(row)
        return None

    def find(self, query: dict[str, Any] | None = None) -> FakeCursor:
        return FakeCursor([copy.deepcopy(row) for row in self.rows if _matches(row, query or {})])

    async def find_one_and_update(
        self,
        query: dict[str, Any],
        update: dict[str, Any],
        upsert: bool = False,
        return_document: bool = ReturnDocument.BEFORE,
    ) -> dict[str, Any] | None:
        row = next((row for row in self.rows if _matches(row, query)), None)
        if row is None:
            if not upsert:
                return None
            row = dict(query)
            self.rows.append(row)
        before = copy.deepcopy(row)
        row.update(update.get("$set", {}))
        for key, amount in update.get("$inc", {}).items():
            row[key] = row.get(key, 0) + amount
        return copy.deepcopy(row) if return_document == ReturnDocument.AFTER else before


class FakeDatabase:
    def __init__(self) -> None:
        self._collections: dict[str, FakeCollection] = {}

    def __getattr__(self, name: str) -> FakeCollection:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._collections.setdefault(name, FakeCollection())


@pytest.fixture
def fake_db(monkeypatch: pytest.MonkeyPatch) -> FakeDatabase:
    database = FakeDatabase()
    for module in (payment_repo, application_repo, audit_repo, notification_repo):
        monkeypatch.setattr(module, "db", database)
    return database


@pytest.fixture
def queue_provider():
    provider = AsyncioQueueProvider()
    QueueManager.configure(provider)
    yield provider
    QueueManager.reset()


@pytest.fixture
def payment_manager():
    manager = PaymentManager.configure(
        {
            PaymentMethod.STRIPE: StripePaymentProvider(
                secret_key="sk_test_123",
                webhook_secret=STRIPE_WEBHOOK_SECRET,
            ),
            PaymentMethod.RAZORPAY: RazorpayPaymentProvider(
                key_id="rzp_test_key",
                key_secret=RAZORPAY_KEY_SECRET,
                webhook_secret=RAZORPAY_WEBHOOK_SECRET,
            ),
        }
    )
    yield manager
    PaymentManager.reset()


def make_principal(*, role: str = "applicant", user_id: int = 7) -> AuthPrincipal:
    return AuthPrincipal(user_id=user_id, role=role, jwt_token="jwt-1")  # type: ignore[arg-type]


def stub_stripe_client(monkeypatch: pytest.MonkeyPatch, *, create=None, retrieve=None) -> list[SimpleNamespace]:
    """Replace ``stripe.StripeClient``; returns every client the providers build."""
    clients: list[SimpleNamespace] = []

    def _unexpected(*args, **kwargs):
        raise AssertionError("unexpected Stripe call")

    def _build(api_key: str, **options: Any) -> SimpleNamespace:
        client = SimpleNamespace(
            api_key=api_key,
            options=options,
            payment_intents=SimpleNamespace(
                create=lambda params=None, options=None: (create or _unexpected)(**(params or {})),
                retrieve=lambda intent, params=None, options=None: (retrieve or _unexpected)(intent),
            ),
        )
        clients.append(client)
        return client

    monkeypatch.setattr(stripe_provider.stripe, "StripeClient", _build)
    return clients


def stripe_signature_header(body: bytes, secret: str = STRIPE_WEBHOOK_SECRET) -> str:
    timestamp = int(time.time())
    signed = f"{timestamp}.".encode("utf-8") + body
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def hmac_hex(body: bytes | str, secret: str) -> str:
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def seed_application(database: FakeDatabase, *, application_id: int = 42, user_id: int = 7) -> None:
    database.visa_applications.rows.append(
        {"_id": application_id, "user_id": user_id, "consultant_id": None, "status": "submitted"}
    )


def seed_payment(database: FakeDatabase, **overrides: Any) -> dict[str, Any]:
    values: dict[str, Any] = {
        "id": 1,
        "application_id": 42,
        "user_id": 7,
        "amount": Decimal("160.00"),
        "currency": "USD",
        "method": PaymentMethod.STRIPE,
        "status": "processing",
        "payment_intent_id": "pi_123",
        "created_at": 100,
        "updated_at": 100,
    }
    values.update(overrides)
    document = PaymentCreate(**values).to_document()
    database.payments.rows.append(document)
    return document
