"""
Tests for swipe recording, match creation and the swipe deck.
"""
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from jobswipe.core.errors import InvalidSwipeError, NotFoundError, UnlockStorageError
from jobswipe.db.base import Base
from jobswipe.db.models.match import Match, MatchPayment
from jobswipe.db.models.swipe import Swipe
from jobswipe.services import entitlement_service
from jobswipe.services.entitlement_service import UnlockOutcome, UnlockReason, decide_entitlement
from jobswipe.services.swipe_service import list_candidates, record_swipe


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


def test_standard_employer_completing_match_unlocks_for_free(db, make_employer, make_seeker, make_job):
    employer = make_employer(plan="standard")
    seeker = make_seeker()
    job = make_job(employer)

    first = record_swipe(db, seeker, "job", job.id, "like")
    assert first["match"] is None

    second = record_swipe(db, employer, "profile", seeker.id, "like")

    match = second["match"]
    assert second["match_created"] is True
    assert match.initiator == seeker.id
    assert match.job_id == job.id
    assert match.status == "confirmed"
    assert match.employer_unlocked is True
    assert match.employer_payment_status == "free"

    payments = db.query(MatchPayment).filter(MatchPayment.match_id == match.id).all()
    assert len(payments) == 1
    assert payments[0].amount == Decimal("0.00")
    assert payments[0].status == "free"

    decision = decide_entitlement(db, employer.id, match.id)
    assert decision.outcome == UnlockOutcome.ALREADY_UNLOCKED
    assert decision.reason == UnlockReason.PAID_AT_SWIPE


def test_basic_employer_completing_match_gets_price(db, make_employer, make_seeker, make_job):
    employer = make_employer(plan="basic")
    seeker = make_seeker()
    job = make_job(employer)

    record_swipe(db, seeker, "job", job.id, "like")
    result = record_swipe(db, employer, "profile", seeker.id, "like")

    assert result["match"] is not None
    assert result["unlock"].decision.requires_payment is True
    assert result["match"].employer_unlocked is False
    assert db.query(MatchPayment).count() == 0


def test_seeker_completing_match_does_not_unlock(db, make_employer, make_seeker, make_job):
    employer = make_employer(plan="premium")
    seeker = make_seeker()
    job = make_job(employer)

    record_swipe(db, employer, "profile", seeker.id, "like")
    result = record_swipe(db, seeker, "job", job.id, "like")

    match = result["match"]
    assert match.initiator == employer.id
    assert match.employer_unlocked is False
    assert match.employer_payment_status == "pending"
    assert result["unlock"] is None


def test_one_match_per_pair(db, make_employer, make_seeker, make_job):
    employer = make_employer(plan="basic")
    seeker = make_seeker()
    first_job = make_job(employer)
    second_job = make_job(employer, title="Driver")

    record_swipe(db, employer, "profile", seeker.id, "like")
    record_swipe(db, seeker, "job", first_job.id, "like")
    again = record_swipe(db, seeker, "job", second_job.id, "like")

    assert again["match_created"] is False
    assert db.query(Match).count() == 1


def test_skip_never_matches(db, make_employer, make_seeker, make_job):
    employer = make_employer(plan="premium")
    seeker = make_seeker()
    job = make_job(employer)

    record_swipe(db, seeker, "job", job.id, "like")
    result = record_swipe(db, employer, "profile", seeker.id, "skip")

    assert result["match"] is None
    assert db.query(Match).count() == 0


def test_reswipe_updates_direction(db, make_employer, make_seeker, make_job):
    employer = make_employer()
    job = make_job(employer)
    seeker = make_seeker()

    record_swipe(db, seeker, "job", job.id, "skip")
    record_swipe(db, seeker, "job", job.id, "like")

    swipes = db.query(Swipe).filter(Swipe.swiper_id == seeker.id).all()
    assert len(swipes) == 1
    assert swipes[0].direction == "like"


def test_role_and_target_must_fit(db, make_employer, make_seeker, make_job):
    employer = make_employer()
    seeker = make_seeker()
    job = make_job(employer)

    with pytest.raises(InvalidSwipeError):
        record_swipe(db, employer, "job", job.id, "like")
    with pytest.raises(InvalidSwipeError):
        record_swipe(db, seeker, "profile", employer.id, "like")
    with pytest.raises(InvalidSwipeError):
        record_swipe(db, seeker, "job", job.id, "superlike")
    with pytest.raises(NotFoundError):
        record_swipe(db, seeker, "job", 999, "like")
    # Employers cannot swipe other employers
    with pytest.raises(NotFoundError):
        record_swipe(db, employer, "profile", make_employer().id, "like")
    assert db.query(Swipe).count() == 0


def test_unlock_failure_keeps_swipe_and_match(db, make_employer, make_seeker, make_job, monkeypatch):
    employer = make_employer(plan="standard")
    seeker = make_seeker()
    job = make_job(employer)
    record_swipe(db, seeker, "job", job.id, "like")

    def failing_resolve(*args, **kwargs):
        raise UnlockStorageError("Unlock could not be saved, please retry")

    monkeypatch.setattr(entitlement_service, "resolve_unlock", failing_resolve)
    result = record_swipe(db, employer, "profile", seeker.id, "like")

    assert result["unlock_error"] == "unlock_storage_error"
    assert result["match"] is not None
    assert db.query(Swipe).filter(Swipe.swiper_id == employer.id).count() == 1
    assert db.query(Match).count() == 1


def test_deck_for_seeker_skips_swiped_jobs_and_ranks(db, make_employer, make_seeker, make_job):
    employer = make_employer()
    seeker = make_seeker(latitude=52.52, longitude=13.405, skills=["forklift"])
    matching = make_job(employer, title="Forklift driver", skills=["forklift"], latitude=52.50, longitude=13.40)
    other = make_job(employer, title="Cook", skills=["cooking"], latitude=52.53, longitude=13.41)
    swiped = make_job(employer, title="Cashier", latitude=52.52, longitude=13.40)
    far = make_job(employer, title="Harbour worker", latitude=53.55, longitude=9.99)
    record_swipe(db, seeker, "job", swiped.id, "skip")

    deck = list_candidates(db, seeker, {"radius_km": 25})

    assert [item["candidate"].id for item in deck] == [matching.id, other.id]
    assert far.id not in [item["candidate"].id for item in deck]


def test_deck_for_employer_shows_visible_seekers(db, make_employer, make_seeker):
    employer = make_employer()
    visible = make_seeker()
    make_seeker(visible_to_employers=False)
    make_employer()

    deck = list_candidates(db, employer, {})

    assert [item["candidate"].id for item in deck] == [visible.id]
