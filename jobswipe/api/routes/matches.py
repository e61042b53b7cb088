"""
Match listing and unlock endpoints.
"""
import logging
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session

from jobswipe.core.auth_dependency import get_db, get_current_account, get_current_employer
from jobswipe.core.errors import JobSwipeError
from jobswipe.core.http_errors import to_http_exception
from jobswipe.db.models.account import Account
from jobswipe.db.models.match import Match
from jobswipe.schemas.match import MatchListItem, MatchResponse, UnlockDecisionResponse, UnlockResponse
from jobswipe.services import checkout_service, entitlement_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/matches", tags=["Matches"])


def _list_item(match: Match, viewer: Account) -> MatchListItem:
    if viewer.id == match.employer_id:
        counterpart = match.employee
        # Seeker contact stays hidden until the employer unlocks
        email = counterpart.email if match.employer_unlocked else None
    else:
        counterpart = match.employer
        email = counterpart.email

    data = MatchResponse.model_validate(match).model_dump()
    return MatchListItem(
        **data,
        counterpart_id=counterpart.id,
        counterpart_name=counterpart.full_name,
        counterpart_email=email,
        job_title=match.job.title if match.job is not None else None,
        is_flex=match.is_flex,
    )


@router.get("", response_model=List[MatchListItem])
def list_matches(
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    matches = db.query(Match).filter(
        or_(Match.employer_id == account.id, Match.employee_id == account.id)
    ).order_by(Match.created_at.desc(), Match.id.desc()).all()
    return [_list_item(match, account) for match in matches]


@router.get("/{match_id}/entitlement", response_model=UnlockDecisionResponse)
def get_entitlement(
    match_id: int,
    employer: Account = Depends(get_current_employer),
    db: Session = Depends(get_db)
):
    """What unlocking this match would cost the employer right now. Read-only."""
    try:
        decision = entitlement_service.decide_entitlement(db, employer.id, match_id)
    except JobSwipeError as e:
        raise to_http_exception(e)
    return decision.to_dict()


@router.post("/{match_id}/unlock", response_model=UnlockResponse)
def unlock_match(
    match_id: int,
    employer: Account = Depends(get_current_employer),
    db: Session = Depends(get_db)
):
    """
    Unlock a match for the authenticated employer.

    Free, included and already unlocked matches return status 'unlocked'.
    Paid unlocks are charged to a saved card (basic plan) or return
    status 'checkout_required' with the hosted checkout URL.
    """
    try:
        return checkout_service.start_unlock_payment(db, employer, match_id)
    except JobSwipeError as e:
        raise to_http_exception(e)
