"""
Pydantic schemas for match and unlock endpoints.
"""
from typing import Optional, Dict, Any
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field


class MatchResponse(BaseModel):
    """A match as seen by one of its parties."""
    id: int
    employer_id: int
    employee_id: int
    job_id: Optional[int] = None
    initiator: int
    status: str
    employer_unlocked: bool
    employer_payment_status: str
    employer_unlocked_at: Optional[datetime] = None
    employer_price_charged: Optional[Decimal] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UnlockDecisionResponse(BaseModel):
    """Outcome of the pricing rules for one match."""
    outcome: str = Field(..., description="already_unlocked, free or payment_required")
    reason: str
    plan: str
    price: str = Field(..., description="Amount due (or charged, once unlocked)")
    payment_status: Optional[str] = None
    is_flex: bool = False
    monthly_unlocks_used: Optional[int] = None

    class Config:
        json_schema_extra = {
            "example": {
                "outcome": "payment_required",
                "reason": "standard_extra_match",
                "plan": "standard",
                "price": "9.99",
                "payment_status": "paid",
                "is_flex": False,
                "monthly_unlocks_used": 10
            }
        }


class UnlockResponse(BaseModel):
    """
    Response schema for POST /matches/{id}/unlock and checkout callbacks.

    status is 'unlocked' or 'checkout_required'; the client opens
    checkout_url in a browser for the latter.
    """
    status: str
    match_id: Optional[int] = None
    unlocked_now: Optional[bool] = None
    payment_status: Optional[str] = None
    price_charged: Optional[str] = None
    session_id: Optional[str] = None
    checkout_url: Optional[str] = None
    purpose: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None
    decision: Optional[Dict[str, Any]] = None
    refunded: Optional[str] = Field(None, description="Amount returned for a payment made after the match was already unlocked")


class MatchListItem(MatchResponse):
    """Match plus the other party; contact details only once unlocked."""
    counterpart_id: int
    counterpart_name: str
    counterpart_email: Optional[str] = Field(None, description="Hidden until the employer unlocks the match")
    job_title: Optional[str] = None
    is_flex: bool = False
