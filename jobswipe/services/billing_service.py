"""
Billing webhook processing.

Keeps plans and unlocks in sync with Stripe when the browser never comes
back to the success URL. Every handler is safe to run more than once for the
same event.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from jobswipe.core import config, plan_limits
from jobswipe.db.models.account import Account
from jobswipe.db.models.checkout_session import CheckoutSession
from jobswipe.db.models.subscription import Subscription
from jobswipe.services import checkout_service

logger = logging.getLogger(__name__)


def get_plan_from_price_id(price_id: Optional[str]) -> Optional[str]:
    """Get plan type from Stripe price ID."""
    if not price_id:
        return None
    price_to_plan = {}
    if config.STRIPE_PRICE_ID_STANDARD:
        price_to_plan[config.STRIPE_PRICE_ID_STANDARD] = plan_limits.STANDARD
    if config.STRIPE_PRICE_ID_PREMIUM:
        price_to_plan[config.STRIPE_PRICE_ID_PREMIUM] = plan_limits.PREMIUM
    return price_to_plan.get(price_id)


def _first_price_id(subscription_data: Dict[str, Any]) -> Optional[str]:
    items = (subscription_data.get("items") or {}).get("data") or [{}]
    return (items[0].get("price") or {}).get("id")


def _period_end(subscription_data: Dict[str, Any]) -> Optional[datetime]:
    timestamp = subscription_data.get("current_period_end")
    if not timestamp:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def handle_checkout_session_completed(event_data: Dict, db: Session) -> Dict[str, Any]:
    """
    Handle checkout.session.completed webhook event.

    Sessions we recorded are settled exactly like the success-URL callback.
    Subscription sessions we have no record of (e.g. created from the Stripe
    dashboard) are matched by metadata.
    """
    session_data = event_data.get("object", {})
    session_id = session_data.get("id")

    checkout = db.query(CheckoutSession).filter(
        CheckoutSession.stripe_session_id == session_id
    ).first()
    if checkout:
        try:
            checkout_service.lock_account(db, checkout.account_id)
            checkout = db.query(CheckoutSession).filter(
                CheckoutSession.id == checkout.id
            ).with_for_update().populate_existing().first()
            result = checkout_service.finish_checkout(db, checkout)
        except Exception:
            db.rollback()
            raise
        logger.info(f"Checkout settled from webhook: session_id={session_id}, result={result.get('status')}")
        return result

    if session_data.get("mode") != "subscription":
        logger.warning(f"Webhook for unknown checkout session ignored: session_id={session_id}")
        return {"status": "ignored"}

    metadata = session_data.get("metadata") or {}
    account = None
    if metadata.get("account_id"):
        account = db.query(Account).filter(Account.id == int(metadata["account_id"])).first()
    elif session_data.get("customer_email"):
        account = db.query(Account).filter(Account.email == session_data["customer_email"]).first()
    if not account:
        raise ValueError(f"Account not found for checkout session {session_id}")

    plan = metadata.get("plan")
    if plan not in checkout_service.SUBSCRIBABLE_PLANS:
        raise ValueError(f"Cannot determine plan for checkout session {session_id}")

    checkout_service.activate_subscription(
        db, account, plan, session_data.get("customer"), session_data.get("subscription")
    )
    db.commit()
    logger.info(f"Subscription activated from webhook: account_id={account.id}, plan={plan}")
    return {"status": "subscribed", "plan": account.subscription_plan}


def handle_subscription_updated(event_data: Dict, db: Session) -> Subscription:
    """
    Handle customer.subscription.updated webhook event.

    Args:
        event_data: Stripe event data object
        db: Database session

    Returns:
        Updated subscription object
    """
    subscription_data = event_data.get("object", {})
    subscription_id = subscription_data.get("id")
    status = subscription_data.get("status")

    subscription = db.query(Subscription).filter(
        Subscription.stripe_subscription_id == subscription_id
    ).first()
    if not subscription:
        raise ValueError(f"Subscription not found for subscription_id={subscription_id}")

    subscription.status = status
    subscription.current_period_end = _period_end(subscription_data)
    subscription.cancel_at_period_end = bool(subscription_data.get("cancel_at_period_end"))

    price_id = _first_price_id(subscription_data)
    if price_id:
        subscription.stripe_price_id = price_id
        plan = get_plan_from_price_id(price_id)
        if plan:
            subscription.plan_type = plan

    account = db.query(Account).filter(Account.id == subscription.account_id).first()
    if account:
        account.plan_status = status
        if status in ("active", "trialing"):
            account.subscription_plan = plan_limits.normalize_plan(subscription.plan_type)
        elif status in ("canceled", "unpaid", "incomplete_expired"):
            account.subscription_plan = plan_limits.BASIC

    db.commit()
    db.refresh(subscription)

    logger.info(
        f"Subscription updated: account_id={subscription.account_id}, status={status}, "
        f"plan={subscription.plan_type}, subscription_id={subscription_id}"
    )
    return subscription


def handle_subscription_deleted(event_data: Dict, db: Session) -> Optional[Subscription]:
    """
    Handle customer.subscription.deleted webhook event.
    Moves the employer back to the basic plan.
    """
    subscription_data = event_data.get("object", {})
    subscription_id = subscription_data.get("id")

    subscription = db.query(Subscription).filter(
        Subscription.stripe_subscription_id == subscription_id
    ).first()
    if not subscription:
        # Already handled (e.g. the employer chose basic through the API)
        logger.info(f"Subscription deletion for unknown subscription_id={subscription_id}, nothing to do")
        return None

    subscription.plan_type = plan_limits.BASIC
    subscription.status = "canceled"
    subscription.stripe_subscription_id = None  # Keep customer ID for reactivation

    account = db.query(Account).filter(Account.id == subscription.account_id).first()
    if account:
        account.subscription_plan = plan_limits.BASIC
        account.plan_status = "canceled"
        account.stripe_subscription_id = None

    db.commit()
    db.refresh(subscription)

    logger.info(f"Subscription deleted: account_id={subscription.account_id}, downgraded to basic, subscription_id={subscription_id}")
    return subscription


EVENT_HANDLERS = {
    "checkout.session.completed": handle_checkout_session_completed,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
}


def process_event(event: Dict[str, Any], db: Session) -> bool:
    """
    Dispatch a verified webhook event.

    Returns:
        True if a handler ran, False for event types we do not act on
    """
    event_type = event.get("type")
    handler = EVENT_HANDLERS.get(event_type)
    if not handler:
        logger.info(f"Unhandled webhook event type: {event_type}")
        return False

    handler(event.get("data", {}), db)
    return True
