"""
Pydantic schemas for swipe endpoints.
"""
from typing import Optional, List, Any, Dict
from pydantic import BaseModel, Field

from jobswipe.schemas.match import MatchResponse


class SwipeRequest(BaseModel):
    """Request schema for recording a swipe."""
    target_type: str = Field(..., description="'job' for job seekers, 'profile' for employers", pattern="^(job|profile)$")
    target_id: int = Field(..., gt=0)
    direction: str = Field(..., pattern="^(like|skip)$")

    class Config:
        json_schema_extra = {
            "example": {
                "target_type": "profile",
                "target_id": 42,
                "direction": "like"
            }
        }


class SwipeResponse(BaseModel):
    """Response schema for a recorded swipe."""
    swipe_id: int
    direction: str
    matched: bool = Field(..., description="Whether a mutual like exists for this pair")
    match_created: bool = False
    match: Optional[MatchResponse] = None
    unlock: Optional[Dict[str, Any]] = Field(None, description="Unlock decision when the employer completed the match")
    unlock_error: Optional[str] = Field(None, description="Error code if the unlock could not be resolved")


class CandidateResponse(BaseModel):
    """One card of the swipe deck."""
    target_type: str
    target_id: int
    title: str
    city: Optional[str] = None
    distance_km: Optional[float] = None
    score: int
    is_flex: bool = False
    details: Dict[str, Any] = Field(default_factory=dict)


class CandidateListResponse(BaseModel):
    candidates: List[CandidateResponse]
    total: int
