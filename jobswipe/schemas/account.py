"""
Pydantic schemas for account and profile endpoints.
"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


class ProfileUpdate(BaseModel):
    """Profile and search fields; only the fields sent are changed."""
    full_name: Optional[str] = Field(None, min_length=1, max_length=200)
    city: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    industry: Optional[str] = None
    skills: Optional[List[str]] = None
    languages: Optional[List[str]] = None
    employment_types: Optional[List[str]] = None
    desired_salary: Optional[int] = Field(None, ge=0)
    available_now: Optional[bool] = None
    visible_to_employers: Optional[bool] = None
    bio: Optional[str] = Field(None, max_length=2000)


class AccountResponse(BaseModel):
    """Schema for the current account."""
    id: int
    full_name: str
    email: str
    role: str
    subscription_plan: Optional[str] = None
    plan_status: Optional[str] = None
    has_saved_card: bool = False
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    industry: Optional[str] = None
    skills: Optional[List[str]] = None
    languages: Optional[List[str]] = None
    employment_types: Optional[List[str]] = None
    desired_salary: Optional[int] = None
    available_now: bool = False
    visible_to_employers: bool = True
    bio: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UnlockSummaryResponse(BaseModel):
    """Response schema for GET /me/unlocks."""
    plan: str = Field(..., description="Current plan (basic, standard, premium)")
    month_key: str = Field(..., description="Current month in YYYY-MM format")
    limit: Optional[int] = Field(None, description="Free unlocks per month (None for unlimited)")
    used: int = Field(..., description="Unlocks consumed this month")
    remaining: Optional[int] = Field(None, description="Free unlocks left (None for unlimited)")
    unlimited: bool = Field(..., description="Whether unlocks are unlimited")
    next_match_price: str = Field(..., description="Price of the next regular match unlock")
    flex_price: Optional[str] = Field(None, description="Price of a flex job unlock (None if not available)")
    flex_allowed: bool = Field(..., description="Whether flex jobs can be unlocked on this plan")

    class Config:
        json_schema_extra = {
            "example": {
                "plan": "standard",
                "month_key": "2026-10",
                "limit": 10,
                "used": 4,
                "remaining": 6,
                "unlimited": False,
                "next_match_price": "0.00",
                "flex_price": "1.99",
                "flex_allowed": True
            }
        }
