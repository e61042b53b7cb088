"""
Match and MatchPayment models.

A Match is the mutual like between one employer and one job seeker. The
employer has to unlock it (free, included or paid) before contact details
and chat open up. MatchPayment is the append-only audit log of unlocks.
"""
from sqlalchemy import (
    Column, Integer, String, Boolean, Numeric, DateTime, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from jobswipe.db.base import Base


class MatchStatus(str, enum.Enum):
    CONFIRMED = "confirmed"


class EmployerPaymentStatus(str, enum.Enum):
    """Unlock payment state of a match from the employer's side."""
    PENDING = "pending"
    FREE = "free"
    PAID = "paid"
    INCLUDED = "included"


class Match(Base):
    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, index=True)
    employer_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("job_postings.id"), nullable=True, index=True)

    # Account id of the first liker; the other party completed the match
    initiator = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=MatchStatus.CONFIRMED.value)

    # Unlock state (locked -> unlocked, once)
    employer_unlocked = Column(Boolean, nullable=False, default=False)
    employer_payment_status = Column(String(20), nullable=False, default=EmployerPaymentStatus.PENDING.value)
    employer_unlocked_at = Column(DateTime(timezone=True), nullable=True)
    employer_price_charged = Column(Numeric(10, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    employer = relationship("Account", foreign_keys=[employer_id])
    employee = relationship("Account", foreign_keys=[employee_id])
    job = relationship("JobPosting")

    __table_args__ = (
        UniqueConstraint('employer_id', 'employee_id', name='uq_match_pair'),
        # Monthly unlock counter
        Index('idx_match_employer_unlocked_at', 'employer_id', 'employer_unlocked', 'employer_unlocked_at'),
    )

    @property
    def initiated_by_employee(self) -> bool:
        """True when the employer was the second swiper."""
        return self.initiator == self.employee_id

    @property
    def is_flex(self) -> bool:
        return bool(self.job is not None and self.job.is_flex)

    def __repr__(self):
        return (
            f"<Match(id={self.id}, employer_id={self.employer_id}, employee_id={self.employee_id}, "
            f"unlocked={self.employer_unlocked}, payment_status='{self.employer_payment_status}')>"
        )


class MatchPayment(Base):
    """Append-only record of one executed unlock (zero amount for free ones)."""
    __tablename__ = "match_payments"

    id = Column(Integer, primary_key=True, index=True)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False, index=True)
    employer_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False)  # free | included | paid
    gateway_reference = Column(String, nullable=True)  # checkout session / payment intent id
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
