"""
Hosted checkout callbacks.

The client calls these when the checkout browser lands on the success or
cancel URL, passing the session id from the URL.
"""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from jobswipe.core.auth_dependency import get_db, get_current_account
from jobswipe.core.errors import JobSwipeError
from jobswipe.core.http_errors import to_http_exception
from jobswipe.db.models.account import Account
from jobswipe.schemas.billing import CheckoutCancelResponse
from jobswipe.services import checkout_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/checkout/{session_id}/complete")
def complete_checkout(
    session_id: str,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """
    Settle a checkout the gateway reports as complete.

    Returns the unlocked match state (status 'unlocked') or the new plan
    (status 'subscribed'). Repeating the call is harmless.
    """
    try:
        return checkout_service.complete_checkout(db, account, session_id)
    except JobSwipeError as e:
        raise to_http_exception(e)


@router.post("/checkout/{session_id}/cancel", response_model=CheckoutCancelResponse)
def cancel_checkout(
    session_id: str,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    try:
        return checkout_service.cancel_checkout(db, account, session_id)
    except JobSwipeError as e:
        raise to_http_exception(e)
