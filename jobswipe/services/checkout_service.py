"""
Payment checkout orchestration.

Drives the paid unlock path (hosted checkout, card setup + saved-card
charge, direct saved-card charge) and plan subscriptions. Unlock state only
changes after the gateway reports success; an abandoned checkout leaves
everything as it was. A match has at most one open unlock checkout, and a
payment that lands after the match was already unlocked is refunded.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, Optional

from sqlalchemy.orm import Session

from jobswipe.core import config, plan_limits
from jobswipe.core.errors import (
    CheckoutNotCompletedError,
    CheckoutSessionMismatchError,
    PaymentDeclinedError,
    PaymentGatewayUnavailableError,
)
from jobswipe.db.models.account import Account
from jobswipe.db.models.checkout_session import CheckoutSession, CheckoutPurpose, CheckoutState
from jobswipe.db.models.subscription import Subscription
from jobswipe.services import entitlement_service, stripe_service
from jobswipe.services.entitlement_service import UnlockDecision, UnlockResult

logger = logging.getLogger(__name__)

SUBSCRIBABLE_PLANS = (plan_limits.STANDARD, plan_limits.PREMIUM)


def get_price_id_for_plan(plan: str) -> Optional[str]:
    """Stripe price ID of a subscription plan, None when not configured."""
    price_id = {
        plan_limits.STANDARD: config.STRIPE_PRICE_ID_STANDARD,
        plan_limits.PREMIUM: config.STRIPE_PRICE_ID_PREMIUM,
    }.get(plan)
    if not price_id or price_id.startswith("price_your_"):
        # Placeholder values from .env.example
        return None
    return price_id


def _unlocked_response(result: UnlockResult) -> Dict[str, Any]:
    match = result.match
    return {
        "status": "unlocked",
        "match_id": match.id,
        "unlocked_now": result.unlocked_now,
        "payment_status": match.employer_payment_status,
        "price_charged": str(match.employer_price_charged) if match.employer_price_charged is not None else None,
        "decision": result.decision.to_dict(),
    }


def _checkout_response(checkout: CheckoutSession, url: str, decision_dict: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "status": "checkout_required",
        "match_id": checkout.match_id,
        "session_id": checkout.stripe_session_id,
        "checkout_url": url,
        "purpose": checkout.purpose,
        "amount": str(checkout.amount) if checkout.amount is not None else None,
        "currency": checkout.currency,
        "decision": decision_dict,
    }


def _record_checkout(
    db: Session,
    session: Dict[str, str],
    account: Account,
    purpose: CheckoutPurpose,
    match_id: Optional[int] = None,
    amount: Optional[Decimal] = None,
    plan: Optional[str] = None,
) -> CheckoutSession:
    checkout = CheckoutSession(
        stripe_session_id=session["id"],
        account_id=account.id,
        match_id=match_id,
        purpose=purpose.value,
        plan=plan,
        amount=amount,
        checkout_url=session.get("url"),
        currency=config.CURRENCY,
        state=CheckoutState.OPEN.value,
    )
    db.add(checkout)
    db.commit()
    db.refresh(checkout)
    return checkout


# ---------------------------------------------------------------------------
# Match unlock payments
# ---------------------------------------------------------------------------

def lock_account(db: Session, account_id: int) -> None:
    """
    Lock the paying account's row.

    Lock order on every checkout path: account row, then checkout row, then
    the match (through the entitlement engine).
    """
    entitlement_service.employer_lock_query(db, account_id).first()


def _open_unlock_checkout(db: Session, employer: Account, match_id: int) -> Optional[CheckoutSession]:
    """
    The employer's open unlock checkout for this match, if any.

    Takes the account lock first so two unlock requests for the same match
    cannot both start a checkout.
    """
    lock_account(db, employer.id)
    return db.query(CheckoutSession).filter(
        CheckoutSession.account_id == employer.id,
        CheckoutSession.match_id == match_id,
        CheckoutSession.purpose.in_((CheckoutPurpose.MATCH_UNLOCK.value, CheckoutPurpose.CARD_SETUP.value)),
        CheckoutSession.state == CheckoutState.OPEN.value,
    ).order_by(CheckoutSession.id.desc()).with_for_update().first()


def _reuse_open_checkout(
    db: Session,
    checkout: CheckoutSession,
    purpose: CheckoutPurpose,
    decision: UnlockDecision,
) -> Optional[Dict[str, Any]]:
    """
    Hand back an earlier checkout for the same match instead of opening a second one.

    A checkout the customer already paid is settled; one that is still open
    for the same purpose and amount is returned as is. Anything else is
    closed (expired at Stripe when still payable) and None is returned so a
    fresh checkout can be started.
    """
    remote = stripe_service.retrieve_checkout_session(checkout.stripe_session_id)
    remote_status = remote.get("status")

    if remote_status == "complete":
        logger.info(f"Unlock checkout already paid, settling: session_id={checkout.stripe_session_id}")
        return finish_checkout(db, checkout)

    if (
        remote_status == "open"
        and checkout.purpose == purpose.value
        and Decimal(checkout.amount) == decision.price
        and checkout.checkout_url
    ):
        response = _checkout_response(checkout, checkout.checkout_url, decision.to_dict())
        db.rollback()
        logger.info(f"Reusing open unlock checkout: match_id={checkout.match_id}, session_id={response['session_id']}")
        return response

    if remote_status == "open":
        stripe_service.expire_checkout_session(checkout.stripe_session_id)
    checkout.state = CheckoutState.CANCELED.value
    logger.info(
        f"Replacing unlock checkout: match_id={checkout.match_id}, session_id={checkout.stripe_session_id}, "
        f"remote_status={remote_status}"
    )
    return None


def _start_unlock_checkout(db: Session, employer: Account, match_id: int, decision: UnlockDecision) -> Dict[str, Any]:
    metadata = {
        "account_id": employer.id,
        "match_id": match_id,
        "plan": decision.plan,
        "reason": decision.reason.value,
    }
    purpose = CheckoutPurpose.CARD_SETUP if decision.plan == plan_limits.BASIC else CheckoutPurpose.MATCH_UNLOCK

    existing = _open_unlock_checkout(db, employer, match_id)
    if existing:
        reused = _reuse_open_checkout(db, existing, purpose, decision)
        if reused is not None:
            return reused

    if purpose == CheckoutPurpose.CARD_SETUP:
        session = stripe_service.create_setup_checkout_session(
            metadata={**metadata, "type": "save_card_for_basic"},
            customer_email=employer.email,
        )
        checkout = _record_checkout(
            db, session, employer, purpose,
            match_id=match_id, amount=decision.price, plan=decision.plan,
        )
        logger.info(f"Card setup checkout started: match_id={match_id}, employer_id={employer.id}, session_id={session['id']}")
        return _checkout_response(checkout, session["url"], decision.to_dict())

    description = "Flex job unlock" if decision.is_flex else "Match unlock"
    session = stripe_service.create_payment_checkout_session(
        amount=decision.price,
        description=description,
        metadata={**metadata, "type": "match_unlock"},
        customer_id=employer.stripe_customer_id,
        customer_email=employer.email,
    )
    checkout = _record_checkout(
        db, session, employer, purpose,
        match_id=match_id, amount=decision.price, plan=decision.plan,
    )
    logger.info(
        f"Unlock checkout started: match_id={match_id}, employer_id={employer.id}, "
        f"amount={decision.price}, session_id={session['id']}"
    )
    return _checkout_response(checkout, session["url"], decision.to_dict())


def start_unlock_payment(db: Session, employer: Account, match_id: int) -> Dict[str, Any]:
    """
    Unlock a match, paying first when the plan requires it.

    - free / already unlocked: handled by the entitlement engine
    - basic plan with a saved card: charge it now, then unlock
    - basic plan without a card: hosted checkout in setup mode to save one
    - standard plan (extra match or flex job): hosted checkout for the price

    A match has at most one open unlock checkout: asking again returns the
    same one, or settles it when the customer has already paid.

    Returns:
        Dictionary with status 'unlocked' or 'checkout_required'
    """
    result = entitlement_service.resolve_unlock(db, employer.id, match_id)
    decision = result.decision
    if not decision.requires_payment:
        return _unlocked_response(result)

    if decision.plan == plan_limits.BASIC and employer.stripe_customer_id and employer.stripe_payment_method_id:
        charge = stripe_service.charge_saved_payment_method(
            customer_id=employer.stripe_customer_id,
            payment_method_id=employer.stripe_payment_method_id,
            amount=decision.price,
            metadata={
                "account_id": employer.id,
                "match_id": match_id,
                "plan": decision.plan,
                "reason": decision.reason.value,
                "type": "basic_match",
            },
            idempotency_key=f"unlock-{match_id}-{employer.stripe_payment_method_id}",
        )
        paid = entitlement_service.apply_paid_unlock(
            db, employer.id, match_id, decision.price, gateway_reference=charge["id"]
        )
        return _unlocked_response(paid)

    try:
        return _start_unlock_checkout(db, employer, match_id, decision)
    except Exception:
        db.rollback()
        raise


def _get_open_checkout(db: Session, account: Account, session_id: str) -> CheckoutSession:
    checkout = db.query(CheckoutSession).filter(
        CheckoutSession.stripe_session_id == session_id
    ).with_for_update().first()
    if not checkout or checkout.account_id != account.id:
        logger.warning(f"Checkout callback for unknown session: session_id={session_id}, account_id={account.id}")
        raise CheckoutSessionMismatchError("Unknown checkout session")
    return checkout


def _locked_match_is_unlocked(db: Session, checkout: CheckoutSession) -> bool:
    """Take the employer lock and report whether the match is already open."""
    entitlement_service.lock_employer(db, checkout.account_id)
    match = entitlement_service.get_match_for_employer(db, checkout.match_id, checkout.account_id)
    db.refresh(match)
    return bool(match.employer_unlocked)


def _refund_duplicate_payment(db: Session, checkout: CheckoutSession, remote: Dict[str, Any], charged: Decimal) -> Dict[str, Any]:
    """Return the money for a checkout paid after its match was already unlocked."""
    payment_intent = remote.get("payment_intent")
    if not payment_intent:
        raise PaymentGatewayUnavailableError("Paid checkout has no payment to refund")

    refund = stripe_service.refund_payment(
        payment_intent,
        charged,
        metadata={"account_id": checkout.account_id, "match_id": checkout.match_id, "type": "duplicate_unlock"},
        idempotency_key=f"refund-{checkout.stripe_session_id}",
    )
    checkout.state = CheckoutState.REFUNDED.value
    checkout.completed_at = datetime.now(timezone.utc)
    db.commit()
    logger.warning(
        f"Refunded payment for already unlocked match: match_id={checkout.match_id}, "
        f"session_id={checkout.stripe_session_id}, amount={charged}, refund_id={refund['id']}"
    )
    response = _unlocked_response(_current_unlock_state(db, checkout))
    response["refunded"] = str(charged)
    return response


def _finish_match_unlock(db: Session, checkout: CheckoutSession, remote: Dict[str, Any]) -> Dict[str, Any]:
    if remote.get("payment_status") != "paid":
        raise CheckoutNotCompletedError("Payment has not been completed")

    expected = Decimal(checkout.amount)
    charged = expected
    if remote.get("amount_total") is not None:
        charged = plan_limits.from_cents(remote["amount_total"])
        if charged != expected:
            # Record what the customer actually paid
            logger.warning(
                f"Checkout amount differs from decision: session_id={checkout.stripe_session_id}, "
                f"expected={expected}, charged={charged}"
            )

    # The employer lock is held from this check until apply_paid_unlock commits
    if _locked_match_is_unlocked(db, checkout):
        return _refund_duplicate_payment(db, checkout, remote, charged)

    checkout.state = CheckoutState.COMPLETED.value
    checkout.completed_at = datetime.now(timezone.utc)
    return _unlocked_response(entitlement_service.apply_paid_unlock(
        db, checkout.account_id, checkout.match_id, charged,
        gateway_reference=remote.get("payment_intent") or checkout.stripe_session_id,
    ))


def _finish_card_setup(db: Session, checkout: CheckoutSession, remote: Dict[str, Any]) -> Dict[str, Any]:
    if not remote.get("setup_intent"):
        raise CheckoutNotCompletedError("Card setup has not been completed")

    saved = stripe_service.retrieve_setup_payment_method(remote["setup_intent"])
    customer_id = saved.get("customer_id") or remote.get("customer")
    payment_method_id = saved.get("payment_method_id")
    if not customer_id or not payment_method_id:
        raise PaymentDeclinedError("Card could not be saved")

    account = db.query(Account).filter(Account.id == checkout.account_id).first()
    account.stripe_customer_id = customer_id
    account.stripe_payment_method_id = payment_method_id
    db.commit()
    logger.info(f"Saved card for account_id={account.id}, customer_id={customer_id}")

    # Re-lock; the commit above released both locks
    lock_account(db, checkout.account_id)
    checkout = db.query(CheckoutSession).filter(CheckoutSession.id == checkout.id).with_for_update().first()
    if checkout.state != CheckoutState.OPEN.value:
        return _unlocked_response(_current_unlock_state(db, checkout))

    if _locked_match_is_unlocked(db, checkout):
        # Unlocked some other way meanwhile; keep the card, charge nothing
        checkout.state = CheckoutState.COMPLETED.value
        checkout.completed_at = datetime.now(timezone.utc)
        db.commit()
        logger.info(f"Card saved without charge, match already unlocked: match_id={checkout.match_id}")
        return _unlocked_response(_current_unlock_state(db, checkout))

    charge = stripe_service.charge_saved_payment_method(
        customer_id=customer_id,
        payment_method_id=payment_method_id,
        amount=Decimal(checkout.amount),
        metadata={"account_id": account.id, "match_id": checkout.match_id, "type": "basic_match_after_setup"},
        idempotency_key=f"checkout-{checkout.stripe_session_id}",
    )
    checkout.state = CheckoutState.COMPLETED.value
    checkout.completed_at = datetime.now(timezone.utc)
    return _unlocked_response(entitlement_service.apply_paid_unlock(
        db, checkout.account_id, checkout.match_id, Decimal(checkout.amount),
        gateway_reference=charge["id"],
    ))


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------

def create_subscription_checkout(db: Session, account: Account, plan: str) -> Dict[str, Any]:
    """Start a hosted subscription checkout for the standard or premium plan."""
    plan = (plan or "").lower()
    if plan not in SUBSCRIBABLE_PLANS:
        raise ValueError(f"Invalid plan type: {plan}. Must be 'standard' or 'premium'")

    price_id = get_price_id_for_plan(plan)
    if not price_id:
        raise PaymentGatewayUnavailableError(f"No Stripe price configured for plan '{plan}'")

    session = stripe_service.create_subscription_checkout_session(
        price_id=price_id,
        metadata={"account_id": account.id, "plan": plan},
        customer_id=account.stripe_customer_id,
        customer_email=account.email,
    )
    checkout = _record_checkout(db, session, account, CheckoutPurpose.SUBSCRIPTION, plan=plan)
    logger.info(f"Subscription checkout started: account_id={account.id}, plan={plan}, session_id={session['id']}")
    response = _checkout_response(checkout, session["url"])
    response["plan"] = plan
    return response


def activate_subscription(
    db: Session,
    account: Account,
    plan: str,
    customer_id: Optional[str],
    subscription_id: Optional[str],
) -> Subscription:
    """Set the account's plan and mirror the Stripe subscription. Does not commit."""
    plan = plan_limits.normalize_plan(plan)
    subscription = db.query(Subscription).filter(Subscription.account_id == account.id).first()
    if not subscription:
        subscription = Subscription(account_id=account.id)
        db.add(subscription)

    subscription.plan_type = plan
    subscription.status = "active"
    subscription.stripe_customer_id = customer_id or subscription.stripe_customer_id
    subscription.stripe_subscription_id = subscription_id or subscription.stripe_subscription_id

    account.subscription_plan = plan
    account.plan_status = "active"
    account.stripe_customer_id = customer_id or account.stripe_customer_id
    account.stripe_subscription_id = subscription_id or account.stripe_subscription_id
    return subscription


def _finish_subscription(db: Session, checkout: CheckoutSession, remote: Dict[str, Any]) -> Dict[str, Any]:
    account = db.query(Account).filter(Account.id == checkout.account_id).first()
    activate_subscription(db, account, checkout.plan, remote.get("customer"), remote.get("subscription"))
    checkout.state = CheckoutState.COMPLETED.value
    checkout.completed_at = datetime.now(timezone.utc)
    db.commit()
    logger.info(f"Subscription activated: account_id={account.id}, plan={account.subscription_plan}")
    return {"status": "subscribed", "plan": account.subscription_plan}


def downgrade_to_basic(db: Session, account: Account) -> Dict[str, Any]:
    """Move back to the basic plan, canceling any paid subscription."""
    if account.stripe_subscription_id:
        stripe_service.cancel_subscription(account.stripe_subscription_id)

    subscription = db.query(Subscription).filter(Subscription.account_id == account.id).first()
    if subscription:
        subscription.plan_type = plan_limits.BASIC
        subscription.status = "canceled"
        subscription.stripe_subscription_id = None

    account.subscription_plan = plan_limits.BASIC
    account.plan_status = "active"
    account.stripe_subscription_id = None
    db.commit()
    logger.info(f"Account moved to basic plan: account_id={account.id}")
    return {"status": "subscribed", "plan": plan_limits.BASIC}


# ---------------------------------------------------------------------------
# Callbacks
# ---------------------------------------------------------------------------

def finish_checkout(db: Session, checkout: CheckoutSession) -> Dict[str, Any]:
    """
    Settle an open checkout after the gateway reports it complete.

    Shared by the success-URL callback and the webhook.
    """
    if checkout.state in (CheckoutState.COMPLETED.value, CheckoutState.REFUNDED.value):
        return _already_finished(db, checkout)
    if checkout.state == CheckoutState.CANCELED.value:
        raise CheckoutSessionMismatchError("Checkout session was canceled")

    remote = stripe_service.retrieve_checkout_session(checkout.stripe_session_id)
    if remote.get("status") != "complete":
        raise CheckoutNotCompletedError("Checkout has not been completed")

    if checkout.purpose == CheckoutPurpose.SUBSCRIPTION.value:
        return _finish_subscription(db, checkout, remote)
    if checkout.purpose == CheckoutPurpose.CARD_SETUP.value:
        return _finish_card_setup(db, checkout, remote)
    return _finish_match_unlock(db, checkout, remote)


def _already_finished(db: Session, checkout: CheckoutSession) -> Dict[str, Any]:
    db.rollback()
    if checkout.purpose == CheckoutPurpose.SUBSCRIPTION.value:
        account = db.query(Account).filter(Account.id == checkout.account_id).first()
        return {"status": "subscribed", "plan": plan_limits.normalize_plan(account.subscription_plan)}
    response = _unlocked_response(_current_unlock_state(db, checkout))
    if checkout.state == CheckoutState.REFUNDED.value:
        response["refunded"] = str(checkout.amount)
    return response


def _current_unlock_state(db: Session, checkout: CheckoutSession) -> UnlockResult:
    match = entitlement_service.get_match_for_employer(db, checkout.match_id, checkout.account_id)
    decision = entitlement_service.decide_entitlement(db, checkout.account_id, checkout.match_id)
    return UnlockResult(decision=decision, match=match, unlocked_now=False)


def complete_checkout(db: Session, account: Account, session_id: str) -> Dict[str, Any]:
    """
    Success-URL callback: settle the caller's checkout with this session id.

    Raises:
        CheckoutSessionMismatchError: unknown, foreign or canceled session
        CheckoutNotCompletedError: gateway has not settled the session
    """
    try:
        lock_account(db, account.id)
        checkout = _get_open_checkout(db, account, session_id)
        return finish_checkout(db, checkout)
    except Exception:
        db.rollback()
        raise


def cancel_checkout(db: Session, account: Account, session_id: str) -> Dict[str, Any]:
    """
    Cancel-URL callback: close the checkout without touching the match.

    The Stripe session is expired too, so the abandoned page cannot be paid
    later.
    """
    checkout = _get_open_checkout(db, account, session_id)
    if checkout.state != CheckoutState.OPEN.value:
        db.rollback()
        return {"status": checkout.state, "session_id": session_id, "match_id": checkout.match_id}

    try:
        stripe_service.expire_checkout_session(session_id)
        checkout.state = CheckoutState.CANCELED.value
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Checkout canceled: session_id={session_id}, account_id={account.id}, match_id={checkout.match_id}")
    return {"status": checkout.state, "session_id": session_id, "match_id": checkout.match_id}
