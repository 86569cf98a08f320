"""Activation: invoice numbers, one-year window, renewal, atomicity, status endpoint."""
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from playoga.core.database import engine
from playoga.models import Payment, Subscription
from playoga.services import subscription as subscription_service
from playoga.services.checkout import OrderNotes
from playoga.services.subscription import (
    PaymentOwnershipError,
    activate_subscription,
    add_one_year,
    invoice_number,
    is_active,
)

NOW = datetime(2026, 10, 16, 9, 30, 0, tzinfo=timezone.utc)


def _notes(user_id: str, coupon_id: int | None = None, discount: str = "0") -> OrderNotes:
    d = Decimal(discount)
    gst = ((Decimal("999") - d) * Decimal("0.05")).quantize(Decimal("0.01"))
    return OrderNotes(user_id=user_id, coupon_id=coupon_id, base=Decimal("999"), discount=d, gst=gst)


def _activate(db: Session, user_id: str, notes: OrderNotes | None = None, now: datetime = NOW, payment_id: str | None = None):
    return activate_subscription(
        db,
        user_id=user_id,
        order_id=f"order_{uuid.uuid4().hex[:14]}",
        payment_id=payment_id or f"pay_{uuid.uuid4().hex[:14]}",
        signature="f" * 64,
        notes=notes or _notes(user_id),
        now=now,
    )


def test_invoice_number_format():
    assert invoice_number("pay_29QQoUBi66xm2f", NOW) == "PYG-20261016-29QQoUBi66xm2f"


def test_invoice_numbers_keep_payment_id_case():
    # Razorpay ids are case-sensitive; these two are different payments
    assert invoice_number("pay_AbCd1234", NOW) != invoice_number("pay_ABCD1234", NOW)


def test_invoice_date_is_utc():
    ist = timezone(timedelta(hours=5, minutes=30))
    assert invoice_number("pay_X1", datetime(2026, 10, 17, 2, 0, tzinfo=ist)) == "PYG-20261016-X1"


def test_add_one_year():
    assert add_one_year(NOW) == datetime(2027, 10, 16, 9, 30, 0, tzinfo=timezone.utc)
    assert add_one_year(datetime(2028, 2, 29, 8, 0, tzinfo=timezone.utc)) == datetime(2029, 3, 1, 8, 0, tzinfo=timezone.utc)


def test_activate_creates_payment_and_subscription(db: Session, user_id: str):
    payment, created = _activate(db, user_id)
    assert created is True
    assert payment.amount == Decimal("1048.95")
    assert payment.invoice_number.startswith("PYG-20261016-")
    sub = db.exec(select(Subscription).where(Subscription.user_id == user_id)).one()
    assert sub.starts_at == NOW
    assert sub.expires_at == datetime(2027, 10, 16, 9, 30, 0, tzinfo=timezone.utc)
    assert sub.razorpay_payment_id == payment.razorpay_payment_id
    assert is_active(sub, now=NOW + timedelta(days=364))
    assert not is_active(sub, now=datetime(2027, 10, 16, 9, 30, 1, tzinfo=timezone.utc))


def test_renewal_supersedes_subscription(db: Session, user_id: str):
    first, _ = _activate(db, user_id)
    later = NOW + timedelta(days=200)
    second, _ = _activate(db, user_id, now=later)
    subs = db.exec(select(Subscription).where(Subscription.user_id == user_id)).all()
    assert len(subs) == 1
    assert subs[0].payment_id == second.id
    assert subs[0].starts_at == later
    assert subs[0].expires_at == add_one_year(later)
    assert len(db.exec(select(Payment).where(Payment.user_id == user_id)).all()) == 2


def test_timestamps_are_stored_as_utc(db: Session, user_id: str):
    ist = timezone(timedelta(hours=5, minutes=30))
    payment, _ = _activate(db, user_id, now=datetime(2026, 10, 16, 15, 0, tzinfo=ist))
    payment_id = payment.id
    with Session(engine) as fresh:
        sub = fresh.exec(select(Subscription).where(Subscription.user_id == user_id)).one()
        stored = fresh.get(Payment, payment_id)
        assert sub.starts_at == NOW
        assert sub.starts_at.utcoffset() == timedelta(0)
        assert sub.expires_at == add_one_year(NOW)
        assert stored.created_at == NOW
        assert is_active(sub, now=NOW + timedelta(days=1))


def test_subscription_row_created_concurrently_is_updated(db: Session, user_id: str, monkeypatch):
    _activate(db, user_id)
    real_lookup = subscription_service.get_subscription
    lookups = []

    def stale_first_lookup(session, uid):
        lookups.append(uid)
        # The first read misses the row another request has just committed
        return None if len(lookups) == 1 else real_lookup(session, uid)

    monkeypatch.setattr(subscription_service, "get_subscription", stale_first_lookup)
    later = NOW + timedelta(days=1)
    second, created = _activate(db, user_id, now=later)

    assert created is True
    assert len(lookups) == 2
    subs = db.exec(select(Subscription).where(Subscription.user_id == user_id)).all()
    assert len(subs) == 1
    assert subs[0].payment_id == second.id
    assert subs[0].expires_at == add_one_year(later)
    assert len(db.exec(select(Payment).where(Payment.user_id == user_id)).all()) == 2


def test_same_payment_is_recorded_once(db: Session, user_id: str, make_coupon):
    c = make_coupon()
    notes = _notes(user_id, coupon_id=c.id, discount="100")
    first, created_first = _activate(db, user_id, notes=notes, payment_id="pay_SAME" + uuid.uuid4().hex[:8])
    again, created_again = _activate(db, user_id, notes=notes, payment_id=first.razorpay_payment_id)
    assert (created_first, created_again) == (True, False)
    assert again.id == first.id
    db.refresh(c)
    assert c.times_used == 1


def test_payment_of_other_user_is_rejected(db: Session, user_id: str):
    payment, _ = _activate(db, user_id)
    other = str(uuid.uuid4())
    with pytest.raises(PaymentOwnershipError):
        _activate(db, other, notes=_notes(other), payment_id=payment.razorpay_payment_id)
    assert db.exec(select(Subscription).where(Subscription.user_id == other)).first() is None


def test_failure_mid_activation_rolls_back_everything(db: Session, user_id: str, make_coupon, monkeypatch):
    c = make_coupon()

    def boom(db, coupon_id):
        raise RuntimeError("database went away")

    monkeypatch.setattr(subscription_service, "increment_coupon_usage", boom)
    with pytest.raises(RuntimeError):
        _activate(db, user_id, notes=_notes(user_id, coupon_id=c.id, discount="100"))

    assert db.exec(select(Payment).where(Payment.user_id == user_id)).first() is None
    assert db.exec(select(Subscription).where(Subscription.user_id == user_id)).first() is None
    db.refresh(c)
    assert c.times_used == 0


def test_status_without_subscription(client: TestClient, auth_headers):
    r = client.get("/subscription", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {"active": False, "planType": None, "status": None, "startsAt": None, "expiresAt": None}


def test_status_expired_subscription(client: TestClient, auth_headers, user_id, db: Session):
    _activate(db, user_id, now=datetime(2020, 1, 1, tzinfo=timezone.utc))
    j = client.get("/subscription", headers=auth_headers).json()
    assert j["active"] is False
    assert j["status"] == "active"
    assert j["expiresAt"].startswith("2021-01-01")


def test_payment_history(client: TestClient, auth_headers, user_id, db: Session):
    older, _ = _activate(db, user_id, now=datetime(2024, 1, 1, tzinfo=timezone.utc))
    newer, _ = _activate(db, user_id, now=datetime(2025, 1, 1, tzinfo=timezone.utc))
    r = client.get("/subscription/payments", headers=auth_headers)
    assert r.status_code == 200
    invoices = [p["invoiceNumber"] for p in r.json()]
    assert invoices == [newer.invoice_number, older.invoice_number]
    assert r.json()[0]["amount"] == 1048.95


def test_status_requires_auth(client: TestClient):
    assert client.get("/subscription").status_code == 401
