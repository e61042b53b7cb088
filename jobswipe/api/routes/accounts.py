"""
Current account endpoints: profile and unlock usage.
"""
import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from jobswipe.core.auth_dependency import get_db, get_current_account, get_current_employer
from jobswipe.core.errors import JobSwipeError
from jobswipe.core.http_errors import to_http_exception
from jobswipe.db.models.account import Account
from jobswipe.schemas.account import AccountResponse, ProfileUpdate, UnlockSummaryResponse
from jobswipe.services.entitlement_service import get_unlock_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/me", tags=["Account"])


def _account_response(account: Account) -> AccountResponse:
    response = AccountResponse.model_validate(account)
    response.has_saved_card = bool(account.stripe_payment_method_id)
    return response


@router.get("", response_model=AccountResponse)
def get_me(account: Account = Depends(get_current_account)):
    return _account_response(account)


@router.patch("/profile", response_model=AccountResponse)
def update_profile(
    payload: ProfileUpdate,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """Update profile and search fields. Fields left out are not touched."""
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(account, field, value)
    db.commit()
    db.refresh(account)

    logger.info(f"Profile updated: account_id={account.id}, fields={sorted(changes)}")
    return _account_response(account)


@router.get("/unlocks", status_code=status.HTTP_200_OK, response_model=UnlockSummaryResponse)
def get_unlocks(
    employer: Account = Depends(get_current_employer),
    db: Session = Depends(get_db)
):
    """
    Current month unlock usage for the authenticated employer.

    Returns:
    - plan: basic, standard or premium
    - month_key: current month in YYYY-MM format
    - limit / used / remaining / unlimited: free unlock allowance
    - next_match_price, flex_price, flex_allowed: what the next unlock costs
    """
    try:
        summary = get_unlock_summary(db, employer.id)
    except JobSwipeError as e:
        raise to_http_exception(e)

    logger.debug(f"Unlock summary requested: account_id={employer.id}, plan={summary['plan']}")
    return summary
