"""
Unit tests for the match entitlement engine.
Tests pricing decisions, the monthly counter and unlock idempotence.
"""
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from jobswipe.core.config import BASIC_MATCH_PRICE
from jobswipe.core.errors import (
    MatchAccessDeniedError,
    NotFoundError,
    PlanNotEligibleError,
    UnlockCounterUnavailableError,
)
from jobswipe.db.base import Base
from jobswipe.db.models.match import Match, MatchPayment
from jobswipe.services import entitlement_service
from jobswipe.services.entitlement_service import (
    UnlockOutcome,
    UnlockReason,
    apply_paid_unlock,
    compute_unlock_decision,
    count_monthly_unlocks,
    decide_entitlement,
    get_plan_for_account,
    get_unlock_summary,
    month_start,
    resolve_unlock,
)


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
def unlock_history(make_seeker, make_match):
    """Give an employer `count` matches unlocked at `when`."""
    def _make(employer, count, when):
        for _ in range(count):
            make_match(employer, make_seeker(), unlocked_at=when)
    return _make


def payments_for(db, match):
    return db.query(MatchPayment).filter(MatchPayment.match_id == match.id).all()


def locked_match(**fields):
    defaults = dict(
        initiated_by_employee=False,
        employer_unlocked=False,
        employer_payment_status="pending",
        employer_price_charged=None,
        is_flex=False,
    )
    defaults.update(fields)
    return SimpleNamespace(**defaults)


class BrokenSession:
    """Session whose every query fails like a lost connection."""

    def __init__(self):
        self.rolled_back = False

    def query(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    def rollback(self):
        self.rolled_back = True


# ---------------------------------------------------------------------------
# Pure decision rules
# ---------------------------------------------------------------------------

def test_premium_is_always_included():
    for used in (0, 10, 500):
        decision = compute_unlock_decision(locked_match(), "premium", used)
        assert decision.outcome == UnlockOutcome.FREE
        assert decision.reason == UnlockReason.PREMIUM_INCLUDED
        assert decision.price == Decimal("0.00")
        assert decision.payment_status == "included"


def test_premium_flex_job_is_included():
    decision = compute_unlock_decision(locked_match(is_flex=True), "premium")
    assert decision.outcome == UnlockOutcome.FREE


@pytest.mark.parametrize("used,outcome,price", [
    (0, UnlockOutcome.FREE, Decimal("0.00")),
    (9, UnlockOutcome.FREE, Decimal("0.00")),
    (10, UnlockOutcome.PAYMENT_REQUIRED, Decimal("9.99")),
    (25, UnlockOutcome.PAYMENT_REQUIRED, Decimal("9.99")),
])
def test_standard_allowance_boundary(used, outcome, price):
    decision = compute_unlock_decision(locked_match(), "standard", used)
    assert decision.outcome == outcome
    assert decision.price == price


def test_standard_free_unlock_is_recorded_as_free():
    decision = compute_unlock_decision(locked_match(), "standard", 3)
    assert decision.payment_status == "free"
    assert decision.reason == UnlockReason.STANDARD_ALLOWANCE


def test_standard_flex_job_always_costs_flex_price():
    decision = compute_unlock_decision(locked_match(is_flex=True), "standard", 0)
    assert decision.outcome == UnlockOutcome.PAYMENT_REQUIRED
    assert decision.reason == UnlockReason.STANDARD_FLEX_JOB
    assert decision.price == Decimal("1.99")


def test_standard_without_counter_is_refused():
    with pytest.raises(ValueError):
        compute_unlock_decision(locked_match(), "standard")


def test_basic_always_pays_basic_price():
    for used in (0, 10):
        decision = compute_unlock_decision(locked_match(), "basic", used)
        assert decision.outcome == UnlockOutcome.PAYMENT_REQUIRED
        assert decision.reason == UnlockReason.BASIC_MATCH
        assert decision.price == BASIC_MATCH_PRICE


def test_basic_flex_job_is_not_eligible():
    with pytest.raises(PlanNotEligibleError) as exc_info:
        compute_unlock_decision(locked_match(is_flex=True), "basic")
    assert exc_info.value.plan == "basic"


@pytest.mark.parametrize("plan", [None, "", "gold"])
def test_unknown_plan_is_treated_as_basic(plan):
    decision = compute_unlock_decision(locked_match(), plan, 0)
    assert decision.plan == "basic"
    assert decision.price == BASIC_MATCH_PRICE


def test_already_unlocked_reports_previous_charge():
    match = locked_match(employer_unlocked=True, employer_payment_status="paid", employer_price_charged=Decimal("9.99"))
    decision = compute_unlock_decision(match, "basic")
    assert decision.outcome == UnlockOutcome.ALREADY_UNLOCKED
    assert decision.reason == UnlockReason.ALREADY_UNLOCKED
    assert decision.price == Decimal("9.99")
    assert decision.payment_status == "paid"


def test_resolved_at_swipe_wins_over_plan_rules():
    match = locked_match(initiated_by_employee=True, employer_unlocked=True, employer_payment_status="free", is_flex=True)
    decision = compute_unlock_decision(match, "basic")
    assert decision.outcome == UnlockOutcome.ALREADY_UNLOCKED
    assert decision.reason == UnlockReason.PAID_AT_SWIPE
    assert decision.price == Decimal("0.00")


def test_employee_initiated_but_locked_is_still_priced():
    decision = compute_unlock_decision(locked_match(initiated_by_employee=True), "basic")
    assert decision.outcome == UnlockOutcome.PAYMENT_REQUIRED


# ---------------------------------------------------------------------------
# Plan lookup and monthly counter
# ---------------------------------------------------------------------------

def test_plan_lookup(db, make_employer):
    assert get_plan_for_account(db, make_employer(plan="standard").id) == "standard"
    assert get_plan_for_account(db, make_employer(plan=None).id) == "basic"
    assert get_plan_for_account(db, 9999) == "basic"


def test_plan_lookup_failure_falls_back_to_basic():
    broken = BrokenSession()
    assert get_plan_for_account(broken, 1) == "basic"
    assert broken.rolled_back is True


def test_counter_failure_is_reported():
    with pytest.raises(UnlockCounterUnavailableError):
        count_monthly_unlocks(BrokenSession(), 1)


def test_counter_uses_unlock_time_not_match_time(db, make_employer, make_seeker, make_match, now):
    employer = make_employer(plan="standard")
    last_month = month_start(now) - timedelta(days=2)

    # Created last month, unlocked this month: counts
    make_match(employer, make_seeker(), unlocked_at=now, created_at=last_month)
    # Created this month, unlocked last month: does not count
    make_match(employer, make_seeker(), unlocked_at=last_month)
    # Never unlocked: does not count
    make_match(employer, make_seeker())

    assert count_monthly_unlocks(db, employer.id) == 1


def test_counter_is_per_employer(db, make_employer, unlock_history, now):
    employer = make_employer(plan="standard")
    other = make_employer(plan="standard")
    unlock_history(other, 4, now)

    assert count_monthly_unlocks(db, employer.id) == 0
    assert count_monthly_unlocks(db, other.id) == 4


# ---------------------------------------------------------------------------
# Resolve / unlock
# ---------------------------------------------------------------------------

def test_standard_ninth_unlock_free_tenth_paid(db, make_employer, make_seeker, make_match, unlock_history, now):
    employer = make_employer(plan="standard")
    unlock_history(employer, 9, now)

    tenth = make_match(employer, make_seeker())
    result = resolve_unlock(db, employer.id, tenth.id)
    assert result.unlocked_now is True
    assert result.decision.monthly_unlocks_used == 9
    assert tenth.employer_payment_status == "free"

    eleventh = make_match(employer, make_seeker())
    result = resolve_unlock(db, employer.id, eleventh.id)
    assert result.unlocked_now is False
    assert result.decision.outcome == UnlockOutcome.PAYMENT_REQUIRED
    assert result.decision.price == Decimal("9.99")
    assert result.decision.monthly_unlocks_used == 10
    assert db.get(Match, eleventh.id).employer_unlocked is False


def test_last_month_unlocks_do_not_use_allowance(db, make_employer, make_seeker, make_match, unlock_history, now):
    employer = make_employer(plan="standard")
    unlock_history(employer, 12, month_start(now) - timedelta(days=1))

    match = make_match(employer, make_seeker())
    assert resolve_unlock(db, employer.id, match.id).unlocked_now is True


def test_premium_unlock_writes_included_payment(db, make_employer, make_seeker, make_match):
    employer = make_employer(plan="premium")
    match = make_match(employer, make_seeker())

    result = resolve_unlock(db, employer.id, match.id)

    assert result.unlocked is True
    assert match.employer_payment_status == "included"
    assert match.employer_price_charged == Decimal("0.00")
    payments = payments_for(db, match)
    assert len(payments) == 1
    assert payments[0].status == "included"
    assert payments[0].amount == Decimal("0.00")


def test_free_unlock_is_idempotent(db, make_employer, make_seeker, make_match):
    employer = make_employer(plan="premium")
    match = make_match(employer, make_seeker())

    first = resolve_unlock(db, employer.id, match.id)
    unlocked_at = first.match.employer_unlocked_at
    second = resolve_unlock(db, employer.id, match.id)

    assert second.unlocked_now is False
    assert second.decision.outcome == UnlockOutcome.ALREADY_UNLOCKED
    assert db.get(Match, match.id).employer_unlocked_at == unlocked_at
    assert len(payments_for(db, match)) == 1


def test_basic_resolve_does_not_change_anything(db, make_employer, make_seeker, make_match):
    employer = make_employer(plan="basic")
    match = make_match(employer, make_seeker())

    result = resolve_unlock(db, employer.id, match.id)

    assert result.decision.requires_payment is True
    assert result.decision.price == BASIC_MATCH_PRICE
    assert db.get(Match, match.id).employer_unlocked is False
    assert payments_for(db, match) == []


def test_basic_flex_resolve_is_not_eligible(db, make_employer, make_seeker, make_job, make_match):
    employer = make_employer(plan="basic")
    match = make_match(employer, make_seeker(), job=make_job(employer, is_flex=True))

    with pytest.raises(PlanNotEligibleError):
        resolve_unlock(db, employer.id, match.id)
    assert db.get(Match, match.id).employer_unlocked is False


def test_other_employer_is_denied(db, make_employer, make_seeker, make_match):
    owner = make_employer(plan="premium")
    intruder = make_employer(plan="premium")
    match = make_match(owner, make_seeker())

    with pytest.raises(MatchAccessDeniedError):
        resolve_unlock(db, intruder.id, match.id)
    with pytest.raises(MatchAccessDeniedError):
        decide_entitlement(db, intruder.id, match.id)
    assert db.get(Match, match.id).employer_unlocked is False


def test_job_seeker_can_never_unlock(db, make_employer, make_seeker, make_match):
    seeker = make_seeker()
    match = make_match(make_employer(plan="premium"), seeker)

    with pytest.raises(MatchAccessDeniedError):
        resolve_unlock(db, seeker.id, match.id)
    assert payments_for(db, match) == []


def test_unknown_match(db, make_employer):
    with pytest.raises(NotFoundError):
        resolve_unlock(db, make_employer(plan="premium").id, 12345)


def test_counter_unavailable_blocks_free_path(db, make_employer, make_seeker, make_match, monkeypatch):
    employer = make_employer(plan="standard")
    match = make_match(employer, make_seeker())

    def failing_counter(*args, **kwargs):
        raise UnlockCounterUnavailableError("Could not read monthly unlocks, please retry")

    monkeypatch.setattr(entitlement_service, "count_monthly_unlocks", failing_counter)

    with pytest.raises(UnlockCounterUnavailableError) as exc_info:
        resolve_unlock(db, employer.id, match.id)
    assert exc_info.value.retryable is True
    assert db.get(Match, match.id).employer_unlocked is False


def test_counter_not_queried_when_not_needed(db, make_employer, make_seeker, make_match, monkeypatch):
    employer = make_employer(plan="premium")
    match = make_match(employer, make_seeker())

    def failing_counter(*args, **kwargs):
        raise AssertionError("counter should not be read for premium")

    monkeypatch.setattr(entitlement_service, "count_monthly_unlocks", failing_counter)
    assert resolve_unlock(db, employer.id, match.id).unlocked_now is True


def test_employer_lock_is_select_for_update(db):
    query = entitlement_service.employer_lock_query(db, 1)
    sql = str(query.statement.compile(dialect=postgresql.dialect()))

    assert "FROM accounts" in sql
    assert sql.rstrip().endswith("FOR UPDATE")


def test_counter_is_read_under_the_employer_lock(db, make_employer, make_seeker, make_match, monkeypatch):
    employer = make_employer(plan="standard")
    match = make_match(employer, make_seeker())
    calls = []
    real_lock = entitlement_service.lock_employer
    real_count = entitlement_service.count_monthly_unlocks

    def lock(db, employer_id):
        calls.append("lock")
        return real_lock(db, employer_id)

    def count(db, employer_id, now=None):
        calls.append("count")
        return real_count(db, employer_id, now)

    monkeypatch.setattr(entitlement_service, "lock_employer", lock)
    monkeypatch.setattr(entitlement_service, "count_monthly_unlocks", count)

    resolve_unlock(db, employer.id, match.id)
    assert calls == ["lock", "count"]


def test_unlock_rechecks_allowance_after_competing_unlock(db, make_employer, make_seeker, make_match, unlock_history, now):
    employer = make_employer(plan="standard")
    unlock_history(employer, 9, now)
    first = make_match(employer, make_seeker())
    second = make_match(employer, make_seeker())

    # Both see the last free unlock...
    assert decide_entitlement(db, employer.id, first.id).outcome == UnlockOutcome.FREE
    assert decide_entitlement(db, employer.id, second.id).outcome == UnlockOutcome.FREE

    # ...but the first commits before the second writes
    assert resolve_unlock(db, employer.id, first.id).unlocked_now is True
    result = resolve_unlock(db, employer.id, second.id)

    assert result.unlocked_now is False
    assert result.decision.outcome == UnlockOutcome.PAYMENT_REQUIRED
    assert result.decision.monthly_unlocks_used == 10
    assert count_monthly_unlocks(db, employer.id) == 10
    assert db.get(Match, second.id).employer_unlocked is False
    assert payments_for(db, second) == []


# ---------------------------------------------------------------------------
# Paid unlock
# ---------------------------------------------------------------------------

def test_paid_round_trip(db, make_employer, make_seeker, make_match):
    employer = make_employer(plan="standard")
    match = make_match(employer, make_seeker())

    result = apply_paid_unlock(db, employer.id, match.id, Decimal("9.99"), gateway_reference="pi_123")

    assert result.unlocked_now is True
    stored = db.get(Match, match.id)
    assert stored.employer_unlocked is True
    assert stored.employer_payment_status == "paid"
    assert stored.employer_price_charged == Decimal("9.99")
    assert stored.employer_unlocked_at is not None

    payments = payments_for(db, match)
    assert len(payments) == 1
    assert payments[0].amount == Decimal("9.99")
    assert payments[0].gateway_reference == "pi_123"

    decision = decide_entitlement(db, employer.id, match.id)
    assert decision.outcome == UnlockOutcome.ALREADY_UNLOCKED
    assert decision.price == Decimal("9.99")


def test_paid_unlock_twice_keeps_single_payment(db, make_employer, make_seeker, make_match):
    employer = make_employer(plan="basic")
    match = make_match(employer, make_seeker())

    apply_paid_unlock(db, employer.id, match.id, BASIC_MATCH_PRICE, gateway_reference="pi_1")
    again = apply_paid_unlock(db, employer.id, match.id, BASIC_MATCH_PRICE, gateway_reference="pi_1")

    assert again.unlocked_now is False
    assert len(payments_for(db, match)) == 1


def test_paid_unlocks_count_towards_allowance(db, make_employer, make_seeker, make_match):
    employer = make_employer(plan="standard")
    match = make_match(employer, make_seeker())
    apply_paid_unlock(db, employer.id, match.id, Decimal("9.99"))

    assert count_monthly_unlocks(db, employer.id) == 1


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def test_unlock_summary_standard(db, make_employer, unlock_history, now):
    employer = make_employer(plan="standard")
    unlock_history(employer, 4, now)

    summary = get_unlock_summary(db, employer.id)

    assert summary["plan"] == "standard"
    assert summary["limit"] == 10
    assert summary["used"] == 4
    assert summary["remaining"] == 6
    assert summary["unlimited"] is False
    assert summary["next_match_price"] == "0.00"
    assert summary["flex_price"] == "1.99"


def test_unlock_summary_standard_exhausted(db, make_employer, unlock_history, now):
    employer = make_employer(plan="standard")
    unlock_history(employer, 10, now)

    summary = get_unlock_summary(db, employer.id)
    assert summary["remaining"] == 0
    assert summary["next_match_price"] == "9.99"


def test_unlock_summary_premium_and_basic(db, make_employer):
    premium = get_unlock_summary(db, make_employer(plan="premium").id)
    assert premium["unlimited"] is True
    assert premium["remaining"] is None

    basic = get_unlock_summary(db, make_employer(plan="basic").id)
    assert basic["next_match_price"] == str(BASIC_MATCH_PRICE)
    assert basic["flex_allowed"] is False
    assert basic["flex_price"] is None
