from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey
from sqlalchemy.sql import func
import enum
from jobswipe.db.base import Base


class CheckoutPurpose(str, enum.Enum):
    MATCH_UNLOCK = "match_unlock"    # one-time payment for a match
    CARD_SETUP = "card_setup"        # save a card, then charge it for a match
    SUBSCRIPTION = "subscription"    # standard / premium plan


class CheckoutState(str, enum.Enum):
    OPEN = "open"
    COMPLETED = "completed"
    CANCELED = "canceled"
    REFUNDED = "refunded"          # paid after the match was already unlocked


class CheckoutSession(Base):
    """
    Local record of a hosted checkout we started.

    A success callback is only honoured for a session id recorded here, owned
    by the caller and still open. At most one unlock checkout per match is
    open at a time; a repeated unlock request hands back the same URL.
    """
    __tablename__ = "checkout_sessions"

    id = Column(Integer, primary_key=True, index=True)
    stripe_session_id = Column(String, unique=True, index=True, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=True, index=True)
    purpose = Column(String(20), nullable=False)
    plan = Column(String(20), nullable=True)  # target plan for subscriptions, payer's plan otherwise
    amount = Column(Numeric(10, 2), nullable=True)
    checkout_url = Column(String, nullable=True)
    currency = Column(String(3), nullable=False, default="eur")
    state = Column(String(20), nullable=False, default=CheckoutState.OPEN.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
