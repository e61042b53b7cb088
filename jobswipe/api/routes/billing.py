"""
Plan subscription and Stripe webhook endpoints.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, Header, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from jobswipe.core import plan_limits
from jobswipe.core.auth_dependency import get_db, get_current_employer
from jobswipe.core.errors import JobSwipeError
from jobswipe.core.http_errors import to_http_exception
from jobswipe.db.models.account import Account
from jobswipe.schemas.billing import SubscribeRequest, SubscribeResponse
from jobswipe.services import billing_service, checkout_service, stripe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


@router.post("/subscribe", response_model=SubscribeResponse)
def subscribe(
    request: SubscribeRequest,
    employer: Account = Depends(get_current_employer),
    db: Session = Depends(get_db)
):
    """
    Choose a plan.

    Standard and premium return a hosted checkout URL; the plan changes when
    the checkout completes. Basic applies immediately and cancels any paid
    subscription.
    """
    try:
        if request.plan == plan_limits.BASIC:
            return checkout_service.downgrade_to_basic(db, employer)
        return checkout_service.create_subscription_checkout(db, employer, request.plan)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_plan", "message": str(e)}
        )
    except JobSwipeError as e:
        raise to_http_exception(e)


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    db: Session = Depends(get_db)
):
    """
    Stripe webhook receiver.

    Rejects unsigned or tampered payloads with 400. Handler failures return
    500 so Stripe retries the event. Handlers run in the threadpool: they
    use the sync session and may call Stripe.
    """
    payload = await request.body()

    try:
        event = stripe_service.verify_webhook(payload, stripe_signature)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Webhook verification failed: {e}")

    try:
        handled = await run_in_threadpool(billing_service.process_event, event, db)
    except (JobSwipeError, ValueError) as e:
        logger.error(f"Webhook handling failed: type={event.get('type')}, id={event.get('id')}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Webhook handling failed")

    return {"status": "success", "handled": handled}
