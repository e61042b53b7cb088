from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.sql import func
from jobswipe.db.base import Base

LIKE = "like"
SKIP = "skip"
DIRECTIONS = (LIKE, SKIP)

TARGET_JOB = "job"          # job seeker swiping a posting
TARGET_PROFILE = "profile"  # employer swiping a job seeker


class Swipe(Base):
    """
    One directional decision by a swiper on a target.

    One row per (swiper, target); swiping again overwrites the direction.
    """
    __tablename__ = "swipes"

    id = Column(Integer, primary_key=True, index=True)
    swiper_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    target_id = Column(Integer, nullable=False)
    target_type = Column(String(10), nullable=False)  # job | profile
    direction = Column(String(10), nullable=False)  # like | skip
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('swiper_id', 'target_type', 'target_id', name='uq_swipe_swiper_target'),
        # Reciprocal-like lookups: "did X like any of these targets?"
        Index('idx_swipe_target_direction', 'target_type', 'target_id', 'direction'),
    )
