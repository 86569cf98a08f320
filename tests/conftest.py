"""Pytest fixtures: test client, in-memory SQLite, fake Razorpay gateway."""
import os
import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

# In-memory SQLite and test credentials (must be set before the app is imported)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")
# Rate limits high enough for the whole suite
os.environ.setdefault("RATE_LIMIT_COUPON_PER_MINUTE", "1000")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")

from sqlmodel import Session  # noqa: E402

from playoga.api.deps import get_gateway  # noqa: E402
from playoga.core.database import engine, init_db  # noqa: E402
from playoga.core.security import create_access_token  # noqa: E402
from playoga.main import app  # noqa: E402
from playoga.models import Coupon  # noqa: E402
from playoga.services.razorpay import GatewayError, expected_signature  # noqa: E402


class FakeRazorpay:
    """In-process stand-in for the Razorpay orders API."""

    def __init__(self, key_id: str = "rzp_test_key", key_secret: str = "rzp_test_secret"):
        self.key_id = key_id
        self.key_secret = key_secret
        self.orders: dict[str, dict] = {}
        self.fail_create = False
        self.fail_fetch = False

    def create_order(self, amount: int, currency: str, receipt: str, notes: dict) -> dict:
        if self.fail_create:
            raise GatewayError("Razorpay returned 500")
        order_id = f"order_{uuid.uuid4().hex[:14]}"
        order = {
            "id": order_id,
            "entity": "order",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": dict(notes),
            "status": "created",
        }
        self.orders[order_id] = order
        return order

    def fetch_order(self, order_id: str) -> dict:
        if self.fail_fetch or order_id not in self.orders:
            raise GatewayError("Razorpay returned 404")
        return self.orders[order_id]

    def sign(self, order_id: str, payment_id: str) -> str:
        return expected_signature(order_id, payment_id, self.key_secret)


@pytest.fixture(scope="function")
def client():
    """TestClient; lifespan creates the tables in the in-memory DB."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def gateway():
    fake = FakeRazorpay()
    app.dependency_overrides[get_gateway] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_gateway, None)


@pytest.fixture
def db():
    init_db()
    with Session(engine) as session:
        yield session


@pytest.fixture
def user_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def auth_headers(user_id: str) -> dict:
    """Bearer token for a fresh user per test."""
    token = create_access_token(user_id, email=f"{user_id[:8]}@example.com")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_coupon(db: Session):
    def _make(**kwargs) -> Coupon:
        fields = {
            "code": f"YOGA{uuid.uuid4().hex[:8].upper()}",
            "discount_type": "percentage",
            "discount_value": Decimal("10"),
        }
        fields.update(kwargs)
        coupon = Coupon(**fields)
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon

    return _make
