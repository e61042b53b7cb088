from sqlalchemy import Column, Integer, String, Boolean, Float, DateTime, JSON
from sqlalchemy.sql import func
from jobswipe.db.base import Base

EMPLOYER = "employer"
JOB_SEEKER = "job_seeker"


class Account(Base):
    """
    A party on the marketplace. The role is fixed at signup; the subscription
    plan only means something for employers.
    """
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String(20), nullable=False, index=True)  # employer | job_seeker

    # Billing (employers)
    subscription_plan = Column(String(20), nullable=True)  # basic | standard | premium; NULL for job seekers
    plan_status = Column(String, nullable=True)
    stripe_customer_id = Column(String, nullable=True, index=True)
    stripe_payment_method_id = Column(String, nullable=True)
    stripe_subscription_id = Column(String, nullable=True)

    # Profile fields used by candidate scoring
    city = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    industry = Column(String, nullable=True)
    skills = Column(JSON, nullable=True)
    languages = Column(JSON, nullable=True)
    employment_types = Column(JSON, nullable=True)
    desired_salary = Column(Integer, nullable=True)
    available_now = Column(Boolean, default=False, nullable=False)
    visible_to_employers = Column(Boolean, default=True, nullable=False)
    bio = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_employer(self) -> bool:
        return self.role == EMPLOYER

    def __repr__(self):
        return f"<Account(id={self.id}, role='{self.role}', plan='{self.subscription_plan}')>"
