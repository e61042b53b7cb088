"""
JobPosting model for employer-owned postings shown in the job seekers' deck.
"""
from sqlalchemy import Column, Integer, String, Text, Float, Boolean, DateTime, ForeignKey, Index, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from jobswipe.db.base import Base


class JobPosting(Base):
    """
    JobPosting owned by one employer.

    Flex jobs (`is_flex`) are short-notice, short-duration postings with their
    own unlock pricing.
    """
    __tablename__ = "job_postings"

    id = Column(Integer, primary_key=True, index=True)
    employer_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    employment_type = Column(String, nullable=True)  # full_time, part_time, mini_job, ...
    industry = Column(String, nullable=True)
    skills = Column(JSON, nullable=True)
    languages = Column(JSON, nullable=True)
    salary_min = Column(Integer, nullable=True)
    salary_max = Column(Integer, nullable=True)
    available_now = Column(Boolean, default=False, nullable=False)

    # Location
    city = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Flex jobs
    is_flex = Column(Boolean, default=False, nullable=False, index=True)
    starts_at = Column(DateTime(timezone=True), nullable=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    employer = relationship("Account", backref="job_postings")

    __table_args__ = (
        Index('idx_job_employer_created', 'employer_id', 'created_at'),
    )

    def __repr__(self):
        return f"<JobPosting(id={self.id}, employer_id={self.employer_id}, title='{self.title}', flex={self.is_flex})>"
