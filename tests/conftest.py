"""Shared fixtures: a fresh SQLite database per test, fakes for the
payment gateway and notifier, and per-service HTTP clients."""

import hashlib
import hmac
import uuid
from contextlib import contextmanager
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.db.base import Base
from libs.db.session import get_async_db
from services.communications_service import models as _communications_models  # noqa: F401
from services.communications_service.services.notifier import get_notifier
from services.listings_service import models as _listings_models  # noqa: F401
from services.orders_service import models as _orders_models  # noqa: F401
from services.orders_service.paystack_client import (
    CollectionInit,
    CollectionResult,
    PaystackClient,
    PaystackError,
    get_payment_gateway,
)
from services.wallet_service import models as _wallet_models  # noqa: F401
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

get_settings.cache_clear()

WEBHOOK_SECRET = "sk_test_looper_webhook"


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------


def make_user(
    user_id: Optional[str] = None, role: str = "authenticated", email: str = None
) -> AuthUser:
    user_id = user_id or f"user-{uuid.uuid4().hex[:8]}"
    return AuthUser(
        user_id=user_id, email=email or f"{user_id}@test.looper.ng", role=role
    )


def make_admin_user(user_id: str = "admin-user") -> AuthUser:
    return make_user(user_id=user_id, role="admin")


@contextmanager
def override_auth(app, user: AuthUser):
    """Temporarily act as ``user`` against ``app``."""
    previous = app.dependency_overrides.get(get_current_user)
    app.dependency_overrides[get_current_user] = lambda: user
    try:
        yield user
    finally:
        if previous is None:
            app.dependency_overrides.pop(get_current_user, None)
        else:
            app.dependency_overrides[get_current_user] = previous


def sign_webhook(body: bytes) -> str:
    return hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha512).hexdigest()


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeGateway:
    """In-memory stand-in for Paystack."""

    def __init__(self):
        self.initialized: dict[str, dict] = {}
        self.refunds: list[tuple[str, Optional[Decimal]]] = []
        self.verify_results: dict[str, CollectionResult] = {}
        self.fail_initialize = False
        self._signer = PaystackClient(secret_key=WEBHOOK_SECRET)

    async def initialize_collection(
        self, *, reference, amount, payer_email, metadata, callback_url=None
    ) -> CollectionInit:
        if self.fail_initialize:
            raise PaystackError("Paystack unavailable", status_code=503)
        self.initialized[reference] = {
            "amount": Decimal(str(amount)),
            "payer_email": payer_email,
            "metadata": metadata,
        }
        return CollectionInit(
            reference=reference,
            authorization_url=f"https://checkout.paystack.test/{reference}",
            access_code=f"ac_{reference}",
        )

    async def verify_collection(self, reference: str) -> CollectionResult:
        if reference in self.verify_results:
            return self.verify_results[reference]
        init = self.initialized.get(reference)
        if init is None:
            raise PaystackError("Transaction reference not found", status_code=404)
        return CollectionResult(
            reference=reference,
            success=True,
            amount=init["amount"],
            status="success",
            metadata=init["metadata"],
        )

    async def create_refund(self, reference: str, amount=None) -> dict:
        self.refunds.append((reference, amount))
        return {"status": "pending"}

    def verify_signature(self, raw_body: bytes, signature) -> bool:
        return self._signer.verify_signature(raw_body, signature)


class RecordingNotifier:
    def __init__(self):
        self.sent: list[dict] = []

    async def notify(
        self,
        user_id,
        title,
        message,
        category,
        related_entity_id=None,
        related_entity_type=None,
    ) -> None:
        if not user_id:
            return
        self.sent.append(
            {
                "user_id": user_id,
                "title": title,
                "message": message,
                "category": category,
                "related_entity_id": related_entity_id,
            }
        )

    def titles_for(self, user_id: str) -> list[str]:
        return [n["title"] for n in self.sent if n["user_id"] == user_id]


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """A throwaway SQLite file per test; separate connections really contend."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'looper.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# ---------------------------------------------------------------------------
# HTTP clients
# ---------------------------------------------------------------------------


@pytest.fixture
def current_user() -> AuthUser:
    return make_user(user_id="consumer-1")


def _wire(app, db_session, gateway, notifier, user):
    async def _override_db():
        try:
            yield db_session
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_async_db] = _override_db
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier


@pytest_asyncio.fixture
async def listings_client(db_session, gateway, notifier, current_user):
    from services.listings_service.app.main import app

    _wire(app, db_session, gateway, notifier, current_user)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def orders_client(db_session, gateway, notifier, current_user):
    from services.orders_service.app.main import app

    _wire(app, db_session, gateway, notifier, current_user)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def wallet_client(db_session, gateway, notifier, current_user):
    from services.wallet_service.app.main import app

    _wire(app, db_session, gateway, notifier, current_user)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def notifications_client(db_session, gateway, notifier, current_user):
    from services.communications_service.app.main import app

    _wire(app, db_session, gateway, notifier, current_user)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
    app.dependency_overrides.clear()
