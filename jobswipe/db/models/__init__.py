"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from jobswipe.db.models.account import Account
from jobswipe.db.models.subscription import Subscription
from jobswipe.db.models.job_posting import JobPosting
from jobswipe.db.models.swipe import Swipe
from jobswipe.db.models.match import Match, MatchPayment, MatchStatus, EmployerPaymentStatus
from jobswipe.db.models.checkout_session import CheckoutSession, CheckoutPurpose, CheckoutState

__all__ = [
    "Account",
    "Subscription",
    "JobPosting",
    "Swipe",
    "Match",
    "MatchPayment",
    "MatchStatus",
    "EmployerPaymentStatus",
    "CheckoutSession",
    "CheckoutPurpose",
    "CheckoutState",
]
