"""
Tests for Stripe webhook event processing.
"""
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from jobswipe.core import config
from jobswipe.db.base import Base
from jobswipe.db.models.account import Account
from jobswipe.db.models.checkout_session import CheckoutSession
from jobswipe.db.models.match import Match
from jobswipe.db.models.subscription import Subscription
from jobswipe.services import billing_service, stripe_service


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def price_ids(monkeypatch):
    monkeypatch.setattr(config, "STRIPE_PRICE_ID_STANDARD", "price_standard")
    monkeypatch.setattr(config, "STRIPE_PRICE_ID_PREMIUM", "price_premium")


def event(event_type, obj):
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


def subscribed_employer(db, make_employer, plan="standard"):
    employer = make_employer(plan=plan, stripe_subscription_id="sub_1", stripe_customer_id="cus_1")
    db.add(Subscription(
        account_id=employer.id,
        plan_type=plan,
        status="active",
        stripe_customer_id="cus_1",
        stripe_subscription_id="sub_1",
    ))
    db.commit()
    return employer


def test_plan_from_price_id(price_ids):
    assert billing_service.get_plan_from_price_id("price_standard") == "standard"
    assert billing_service.get_plan_from_price_id("price_premium") == "premium"
    assert billing_service.get_plan_from_price_id("price_other") is None
    assert billing_service.get_plan_from_price_id(None) is None


def test_unrecorded_subscription_checkout_uses_metadata(db, make_employer):
    employer = make_employer(plan="basic")

    handled = billing_service.process_event(event("checkout.session.completed", {
        "id": "cs_dashboard",
        "mode": "subscription",
        "customer": "cus_1",
        "subscription": "sub_1",
        "metadata": {"account_id": str(employer.id), "plan": "standard"},
    }), db)

    assert handled is True
    account = db.get(Account, employer.id)
    assert account.subscription_plan == "standard"
    assert account.stripe_subscription_id == "sub_1"


def test_recorded_unlock_checkout_is_settled(db, make_employer, make_seeker, make_match, monkeypatch):
    employer = make_employer(plan="standard")
    match = make_match(employer, make_seeker())
    db.add(CheckoutSession(
        stripe_session_id="cs_unlock",
        account_id=employer.id,
        match_id=match.id,
        purpose="match_unlock",
        plan="standard",
        amount=Decimal("9.99"),
        currency="eur",
        state="open",
    ))
    db.commit()
    monkeypatch.setattr(stripe_service, "retrieve_checkout_session", lambda session_id: {
        "id": session_id, "status": "complete", "payment_status": "paid",
        "amount_total": 999, "payment_intent": "pi_1",
    })

    billing_service.process_event(event("checkout.session.completed", {"id": "cs_unlock", "mode": "payment"}), db)
    # Redelivery of the same event
    billing_service.process_event(event("checkout.session.completed", {"id": "cs_unlock", "mode": "payment"}), db)

    stored = db.get(Match, match.id)
    assert stored.employer_unlocked is True
    assert stored.employer_payment_status == "paid"


def test_unknown_payment_session_is_ignored(db):
    result = billing_service.handle_checkout_session_completed({"object": {"id": "cs_x", "mode": "payment"}}, db)
    assert result == {"status": "ignored"}


def test_subscription_updated_syncs_plan(db, make_employer, price_ids):
    employer = subscribed_employer(db, make_employer, plan="standard")

    billing_service.process_event(event("customer.subscription.updated", {
        "id": "sub_1",
        "status": "active",
        "current_period_end": 1798761600,
        "cancel_at_period_end": True,
        "items": {"data": [{"price": {"id": "price_premium"}}]},
    }), db)

    account = db.get(Account, employer.id)
    assert account.subscription_plan == "premium"
    subscription = db.query(Subscription).filter(Subscription.account_id == employer.id).one()
    assert subscription.stripe_price_id == "price_premium"
    assert subscription.cancel_at_period_end is True
    assert subscription.current_period_end is not None


def test_unpaid_subscription_falls_back_to_basic(db, make_employer, price_ids):
    employer = subscribed_employer(db, make_employer, plan="premium")

    billing_service.process_event(event("customer.subscription.updated", {
        "id": "sub_1",
        "status": "unpaid",
        "items": {"data": [{"price": {"id": "price_premium"}}]},
    }), db)

    assert db.get(Account, employer.id).subscription_plan == "basic"


def test_subscription_deleted_downgrades_to_basic(db, make_employer):
    employer = subscribed_employer(db, make_employer, plan="premium")

    billing_service.process_event(event("customer.subscription.deleted", {"id": "sub_1"}), db)
    # Redelivery is harmless
    billing_service.process_event(event("customer.subscription.deleted", {"id": "sub_1"}), db)

    account = db.get(Account, employer.id)
    assert account.subscription_plan == "basic"
    assert account.plan_status == "canceled"
    assert account.stripe_subscription_id is None


def test_unhandled_event_type(db):
    assert billing_service.process_event(event("invoice.paid", {"id": "in_1"}), db) is False
