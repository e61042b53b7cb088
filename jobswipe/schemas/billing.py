"""
Pydantic schemas for billing endpoints.
"""
from typing import Optional
from pydantic import BaseModel, Field


class SubscribeRequest(BaseModel):
    """Request schema for choosing a plan."""
    plan: str = Field(..., description="Plan type: 'basic', 'standard' or 'premium'", pattern="^(basic|standard|premium)$")

    class Config:
        json_schema_extra = {
            "example": {
                "plan": "standard"
            }
        }


class SubscribeResponse(BaseModel):
    """
    Response schema for plan selection.

    Paid plans return a checkout_url; basic takes effect immediately.
    """
    status: str = Field(..., description="'checkout_required' or 'subscribed'")
    plan: Optional[str] = None
    checkout_url: Optional[str] = Field(None, description="Stripe checkout session URL")
    session_id: Optional[str] = Field(None, description="Stripe checkout session ID")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "checkout_required",
                "plan": "premium",
                "checkout_url": "https://checkout.stripe.com/c/pay/cs_test_...",
                "session_id": "cs_test_..."
            }
        }


class CheckoutCancelResponse(BaseModel):
    status: str
    session_id: str
    match_id: Optional[int] = None
