"""Root conftest — shared test configuration and fixtures.

Invariants:
    - Every test gets a fresh in-memory SQLite database. StaticPool hands
      every session the same connection, so sessions see each other's
      commits but one session's rollback also discards another's pending
      writes; interleavings are driven step by step, never gathered
    - file_session_factory gives each session its own connection to a
      temporary file database, for tests that run requests concurrently
    - Payment and mail collaborators are in-process fakes
    - The FastAPI app's dependencies are overridden, never patched in place
"""

import os

# Never reach a real processor, mail server or database from tests
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_fake_key")
os.environ.setdefault("PAYMENT_PROVIDER", "fake")
os.environ.setdefault("MAIL_PROVIDER", "log")
os.environ.setdefault("APP_SECRET", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession, async_sessionmaker, create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool  # noqa: E402

from storefront.api.dependencies import (  # noqa: E402
    get_credentials, get_mailer, get_payment_gateway,
)
from storefront.config import Settings, get_settings  # noqa: E402
from storefront.core.domain_types import ChargeReceipt, Permission  # noqa: E402
from storefront.db.base import Base  # noqa: E402
from storefront.infrastructure.credentials import BcryptJwtCredentialStore  # noqa: E402
from storefront.infrastructure.database import get_db  # noqa: E402
from storefront.infrastructure.mailer import LogMailer  # noqa: E402
from storefront.infrastructure.payment_gateway import FakePaymentGateway  # noqa: E402
from storefront.main import app  # noqa: E402
from storefront.models.item import Item  # noqa: E402
from storefront.models.user import User  # noqa: E402

TEST_PASSWORD = "correct horse"


class HookedGateway(FakePaymentGateway):
    """FakePaymentGateway that can run a hook while the charge is in flight.

    during_charge fires once, on the next charge() call; it is how tests
    interleave a second request with a checkout deterministically.
    """

    def __init__(self):
        super().__init__()
        self.during_charge = None
        self.amount_override: int | None = None

    async def charge(self, amount, currency, payment_token, idempotency_key):
        if self.during_charge is not None:
            hook, self.during_charge = self.during_charge, None
            await hook()
        receipt = await super().charge(amount, currency, payment_token, idempotency_key)
        if self.amount_override is not None:
            return ChargeReceipt(charge_id=receipt.charge_id, amount=self.amount_override)
        return receipt


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def file_session_factory(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'race.db'}",
        poolclass=NullPool, connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def settings():
    return Settings(
        app_secret="test-secret",
        bcrypt_rounds=4,
        payment_provider="fake",
        payment_currency="EUR",
        payment_timeout_seconds=1.0,
        checkout_claim_ttl_seconds=300,
        mail_provider="log",
        frontend_url="http://shop.test",
        reset_token_ttl_seconds=3600,
    )


@pytest.fixture
def credentials():
    return BcryptJwtCredentialStore("test-secret", rounds=4)


@pytest.fixture
def gateway():
    return HookedGateway()


@pytest.fixture
def mailer():
    return LogMailer()


@pytest.fixture
def make_user(test_db, credentials):
    """Async factory: await make_user("a@b.c", Permission.ADMIN)."""
    async def _make(email: str = "shopper@example.com", *permissions: Permission):
        user = User(
            email=email,
            name=email.split("@")[0],
            password=await credentials.hash(TEST_PASSWORD),
            permissions=[p.value for p in (permissions or (Permission.USER,))],
        )
        test_db.add(user)
        await test_db.commit()
        return user
    return _make


@pytest.fixture
def make_item(test_db):
    async def _make(owner: User | None = None, price: int = 1000, title: str = "Shirt"):
        item = Item(
            title=title,
            description=f"A fine {title.lower()}",
            price=price,
            image=f"{title.lower()}.jpg",
            user_id=owner.id if owner else None,
        )
        test_db.add(item)
        await test_db.commit()
        return item
    return _make


@pytest.fixture
async def client(test_session_factory, settings, credentials, gateway, mailer):
    """FastAPI test client with every external dependency overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_credentials] = lambda: credentials
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_mailer] = lambda: mailer

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
