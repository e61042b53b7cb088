"""
Shared factories for building accounts, postings and matches in tests.

Each test module owns its in-memory database; these fixtures only need the
module's `db` fixture.
"""
from datetime import datetime, timezone

import pytest

from jobswipe.core.security import hash_password
from jobswipe.db.models.account import Account, EMPLOYER, JOB_SEEKER
from jobswipe.db.models.job_posting import JobPosting
from jobswipe.db.models.match import Match, EmployerPaymentStatus

# Hashing is slow; every test account shares one password
PASSWORD = "testpass123"
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
def make_employer(db):
    counter = {"n": 0}

    def _make(plan="basic", **fields):
        counter["n"] += 1
        account = Account(
            full_name=f"Employer {counter['n']}",
            email=f"employer{counter['n']}@example.com",
            password_hash=PASSWORD_HASH,
            role=EMPLOYER,
            subscription_plan=plan,
            **fields,
        )
        db.add(account)
        db.commit()
        db.refresh(account)
        return account

    return _make


@pytest.fixture
def make_seeker(db):
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        account = Account(
            full_name=f"Seeker {counter['n']}",
            email=f"seeker{counter['n']}@example.com",
            password_hash=PASSWORD_HASH,
            role=JOB_SEEKER,
            subscription_plan=None,
            **fields,
        )
        db.add(account)
        db.commit()
        db.refresh(account)
        return account

    return _make


@pytest.fixture
def make_job(db):
    def _make(employer, is_flex=False, **fields):
        job = JobPosting(
            employer_id=employer.id,
            title=fields.pop("title", "Flex shift" if is_flex else "Warehouse assistant"),
            is_flex=is_flex,
            **fields,
        )
        db.add(job)
        db.commit()
        db.refresh(job)
        return job

    return _make


@pytest.fixture
def make_match(db):
    def _make(employer, seeker, job=None, initiator=None, unlocked_at=None, **fields):
        match = Match(
            employer_id=employer.id,
            employee_id=seeker.id,
            job_id=job.id if job is not None else None,
            initiator=initiator if initiator is not None else employer.id,
            employer_unlocked=unlocked_at is not None,
            employer_unlocked_at=unlocked_at,
            employer_payment_status=fields.pop(
                "employer_payment_status",
                EmployerPaymentStatus.FREE.value if unlocked_at is not None else EmployerPaymentStatus.PENDING.value,
            ),
            **fields,
        )
        db.add(match)
        db.commit()
        db.refresh(match)
        return match

    return _make


@pytest.fixture
def now():
    return datetime.now(timezone.utc)
