"""
Swipe deck and swipe recording endpoints.
"""
import logging
from typing import Optional, List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from jobswipe.core.auth_dependency import get_db, get_current_account
from jobswipe.core.errors import JobSwipeError
from jobswipe.core.http_errors import to_http_exception
from jobswipe.db.models.account import Account
from jobswipe.db.models.job_posting import JobPosting
from jobswipe.schemas.match import MatchResponse
from jobswipe.schemas.swipe import SwipeRequest, SwipeResponse, CandidateResponse, CandidateListResponse
from jobswipe.services import swipe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/swipes", tags=["Swipes"])


def _candidate_card(item: dict) -> CandidateResponse:
    candidate = item["candidate"]
    if isinstance(candidate, JobPosting):
        return CandidateResponse(
            target_type="job",
            target_id=candidate.id,
            title=candidate.title,
            city=candidate.city,
            distance_km=item["distance_km"],
            score=item["score"],
            is_flex=bool(candidate.is_flex),
            details={
                "employment_type": candidate.employment_type,
                "industry": candidate.industry,
                "salary_min": candidate.salary_min,
                "salary_max": candidate.salary_max,
                "skills": candidate.skills or [],
                "starts_at": candidate.starts_at.isoformat() if candidate.starts_at else None,
            },
        )
    return CandidateResponse(
        target_type="profile",
        target_id=candidate.id,
        title=candidate.full_name,
        city=candidate.city,
        distance_km=item["distance_km"],
        score=item["score"],
        details={
            "industry": candidate.industry,
            "skills": candidate.skills or [],
            "languages": candidate.languages or [],
            "available_now": candidate.available_now,
            "bio": candidate.bio,
        },
    )


@router.get("/candidates", response_model=CandidateListResponse)
def get_candidates(
    radius_km: Optional[float] = Query(None, gt=0),
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    employment_types: Optional[List[str]] = Query(None),
    language: Optional[str] = None,
    industry: Optional[str] = None,
    available_now: Optional[bool] = None,
    limit: int = Query(50, ge=1, le=200),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """
    Swipe deck for the authenticated account, best match first.

    Job seekers get job postings, employers get job seeker profiles. Targets
    already swiped are left out.
    """
    filters = {
        "radius_km": radius_km,
        "latitude": latitude,
        "longitude": longitude,
        "employment_types": employment_types,
        "language": language,
        "industry": industry,
        "available_now": available_now,
    }
    ranked = swipe_service.list_candidates(db, account, filters)
    cards = [_candidate_card(item) for item in ranked[:limit]]
    return {"candidates": cards, "total": len(ranked)}


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SwipeResponse)
def create_swipe(
    payload: SwipeRequest,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """
    Record a like or skip.

    A mutual like creates the match. If the employer completed it, the
    response carries the unlock decision: free and included unlocks are
    already applied, paid ones go through POST /matches/{id}/unlock.
    """
    try:
        result = swipe_service.record_swipe(
            db, account, payload.target_type, payload.target_id, payload.direction
        )
    except JobSwipeError as e:
        raise to_http_exception(e)

    match = result["match"]
    unlock = result["unlock"]
    return SwipeResponse(
        swipe_id=result["swipe"].id,
        direction=result["swipe"].direction,
        matched=match is not None,
        match_created=result["match_created"],
        match=MatchResponse.model_validate(match) if match is not None else None,
        unlock=unlock.decision.to_dict() if unlock is not None else None,
        unlock_error=result["unlock_error"],
    )
