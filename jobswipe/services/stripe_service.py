"""
Stripe service for hosted checkout, saved-card charges and webhook handling.

Thin wrapper around the Stripe SDK: it turns Stripe errors into domain
payment errors and never touches the database.
"""
import json
import logging
from decimal import Decimal
from typing import Optional, Dict, Any
import stripe
from jobswipe.core import config
from jobswipe.core.errors import PaymentDeclinedError, PaymentGatewayUnavailableError
from jobswipe.core.logging_config import sanitize_log_data
from jobswipe.core.plan_limits import to_cents

logger = logging.getLogger(__name__)

# Initialize Stripe client
if config.STRIPE_SECRET_KEY:
    stripe.api_key = config.STRIPE_SECRET_KEY
else:
    logger.warning("STRIPE_SECRET_KEY not configured - Stripe features disabled")


def _require_stripe():
    if not config.STRIPE_SECRET_KEY:
        raise PaymentGatewayUnavailableError("Stripe not configured - STRIPE_SECRET_KEY required")


def _metadata(metadata: Optional[Dict[str, Any]]) -> Dict[str, str]:
    # Stripe metadata values must be strings
    return {key: str(value) for key, value in (metadata or {}).items() if value is not None}


def create_payment_checkout_session(
    amount: Decimal,
    description: str,
    metadata: Optional[Dict[str, Any]] = None,
    customer_id: Optional[str] = None,
    customer_email: Optional[str] = None,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> Dict[str, str]:
    """
    Create a one-time payment checkout for an exact amount.

    Returns:
        Dictionary with 'id' and 'url' of the checkout session
    """
    _require_stripe()
    params = {
        "mode": "payment",
        "payment_method_types": ["card"],
        "line_items": [{
            "price_data": {
                "currency": config.CURRENCY,
                "unit_amount": to_cents(amount),
                "product_data": {"name": description},
            },
            "quantity": 1,
        }],
        "success_url": success_url or config.CHECKOUT_SUCCESS_URL,
        "cancel_url": cancel_url or config.CHECKOUT_CANCEL_URL,
        "metadata": _metadata(metadata),
    }
    if customer_id:
        params["customer"] = customer_id
    elif customer_email:
        params["customer_email"] = customer_email

    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating payment checkout: {e}")
        raise PaymentGatewayUnavailableError(f"Failed to create checkout session: {e.user_message or e}")

    logger.info(f"Created payment checkout: session_id={session.id}, amount={amount}, metadata={sanitize_log_data(metadata)}")
    return {"id": session.id, "url": session.url}


def create_setup_checkout_session(
    metadata: Optional[Dict[str, Any]] = None,
    customer_id: Optional[str] = None,
    customer_email: Optional[str] = None,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> Dict[str, str]:
    """
    Create a setup-mode checkout that saves a card for later off-session charges.

    Returns:
        Dictionary with 'id' and 'url' of the checkout session
    """
    _require_stripe()
    params = {
        "mode": "setup",
        "payment_method_types": ["card"],
        "currency": config.CURRENCY,
        "success_url": success_url or config.CHECKOUT_SUCCESS_URL,
        "cancel_url": cancel_url or config.CHECKOUT_CANCEL_URL,
        "metadata": _metadata(metadata),
    }
    if customer_id:
        params["customer"] = customer_id
    else:
        # Setup mode needs a customer to attach the card to
        params["customer_creation"] = "always"
        if customer_email:
            params["customer_email"] = customer_email

    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating setup checkout: {e}")
        raise PaymentGatewayUnavailableError(f"Failed to create setup session: {e.user_message or e}")

    logger.info(f"Created setup checkout: session_id={session.id}, metadata={sanitize_log_data(metadata)}")
    return {"id": session.id, "url": session.url}


def create_subscription_checkout_session(
    price_id: str,
    metadata: Optional[Dict[str, Any]] = None,
    customer_id: Optional[str] = None,
    customer_email: Optional[str] = None,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> Dict[str, str]:
    """
    Create Stripe Checkout session for a plan subscription.

    Returns:
        Dictionary with 'id' and 'url' of the checkout session
    """
    _require_stripe()
    params = {
        "mode": "subscription",
        "payment_method_types": ["card"],
        "line_items": [{"price": price_id, "quantity": 1}],
        "success_url": success_url or config.CHECKOUT_SUCCESS_URL,
        "cancel_url": cancel_url or config.CHECKOUT_CANCEL_URL,
        "metadata": _metadata(metadata),
        "subscription_data": {"metadata": _metadata(metadata)},
    }
    if customer_id:
        params["customer"] = customer_id
    elif customer_email:
        params["customer_email"] = customer_email

    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating subscription checkout: {e}")
        raise PaymentGatewayUnavailableError(f"Failed to create checkout session: {e.user_message or e}")

    logger.info(f"Created subscription checkout: session_id={session.id}, price_id={price_id}")
    return {"id": session.id, "url": session.url}


def retrieve_checkout_session(session_id: str) -> Dict[str, Any]:
    """
    Fetch a checkout session and flatten the fields the orchestration needs.

    Returns:
        Dictionary with id, mode, status, payment_status, amount_total,
        customer, payment_intent, setup_intent and subscription
    """
    _require_stripe()
    try:
        session = stripe.checkout.Session.retrieve(session_id)
    except stripe.StripeError as e:
        logger.error(f"Stripe error retrieving checkout session {session_id}: {e}")
        raise PaymentGatewayUnavailableError(f"Failed to retrieve checkout session: {e.user_message or e}")

    return {
        "id": session.id,
        "mode": getattr(session, "mode", None),
        "status": getattr(session, "status", None),
        "payment_status": getattr(session, "payment_status", None),
        "amount_total": getattr(session, "amount_total", None),
        "customer": getattr(session, "customer", None),
        "payment_intent": getattr(session, "payment_intent", None),
        "setup_intent": getattr(session, "setup_intent", None),
        "subscription": getattr(session, "subscription", None),
    }


def retrieve_setup_payment_method(setup_intent_id: str) -> Dict[str, Optional[str]]:
    """Return customer and payment method saved by a completed setup intent."""
    _require_stripe()
    try:
        intent = stripe.SetupIntent.retrieve(setup_intent_id)
    except stripe.StripeError as e:
        logger.error(f"Stripe error retrieving setup intent {setup_intent_id}: {e}")
        raise PaymentGatewayUnavailableError(f"Failed to retrieve saved card: {e.user_message or e}")

    return {
        "customer_id": getattr(intent, "customer", None),
        "payment_method_id": getattr(intent, "payment_method", None),
    }


def charge_saved_payment_method(
    customer_id: str,
    payment_method_id: str,
    amount: Decimal,
    metadata: Optional[Dict[str, Any]] = None,
    idempotency_key: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Charge a saved card off-session, without any checkout UI.

    The idempotency key makes Stripe replay the first result instead of
    charging twice for the same unlock.

    Returns:
        Dictionary with 'id' and 'status' of the payment intent

    Raises:
        PaymentDeclinedError: card declined or authentication required
        PaymentGatewayUnavailableError: any other Stripe failure
    """
    _require_stripe()
    try:
        intent = stripe.PaymentIntent.create(
            amount=to_cents(amount),
            currency=config.CURRENCY,
            customer=customer_id,
            payment_method=payment_method_id,
            off_session=True,
            confirm=True,
            metadata=_metadata(metadata),
            idempotency_key=idempotency_key,
        )
    except stripe.CardError as e:
        logger.warning(f"Saved card declined: customer_id={customer_id}, code={e.code}")
        raise PaymentDeclinedError(e.user_message or "Your card was declined", decline_code=getattr(e, "code", None))
    except stripe.StripeError as e:
        logger.error(f"Stripe error charging saved card: {e}")
        raise PaymentGatewayUnavailableError(f"Charge failed: {e.user_message or e}")

    if intent.status != "succeeded":
        # e.g. requires_action for SCA; nothing was captured
        logger.warning(f"Saved card charge not completed: payment_intent={intent.id}, status={intent.status}")
        raise PaymentDeclinedError(f"Payment not completed (status: {intent.status})", decline_code=intent.status)

    logger.info(f"Charged saved card: payment_intent={intent.id}, amount={amount}, metadata={sanitize_log_data(metadata)}")
    return {"id": intent.id, "status": intent.status}


def expire_checkout_session(session_id: str) -> None:
    """Expire an open checkout so the customer can no longer pay it."""
    _require_stripe()
    try:
        stripe.checkout.Session.expire(session_id)
    except stripe.StripeError as e:
        logger.error(f"Stripe error expiring checkout session {session_id}: {e}")
        raise PaymentGatewayUnavailableError(f"Failed to close checkout session: {e.user_message or e}")

    logger.info(f"Expired checkout session: session_id={session_id}")


def refund_payment(
    payment_intent_id: str,
    amount: Decimal,
    metadata: Optional[Dict[str, Any]] = None,
    idempotency_key: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Refund (part of) a captured payment.

    Returns:
        Dictionary with 'id' and 'status' of the refund
    """
    _require_stripe()
    try:
        refund = stripe.Refund.create(
            payment_intent=payment_intent_id,
            amount=to_cents(amount),
            metadata=_metadata(metadata),
            idempotency_key=idempotency_key,
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe error refunding payment_intent={payment_intent_id}: {e}")
        raise PaymentGatewayUnavailableError(f"Refund failed: {e.user_message or e}")

    logger.info(f"Refunded payment: payment_intent={payment_intent_id}, amount={amount}, refund_id={refund.id}")
    return {"id": refund.id, "status": refund.status}


def verify_webhook(request_body: bytes, signature: str) -> dict:
    """
    Verify and parse Stripe webhook event.

    Uses verify_header plus json.loads rather than Webhook.construct_event so
    handlers get plain dicts and can be fed literal events in tests.

    Args:
        request_body: Raw request body bytes
        signature: Stripe-Signature header value

    Returns:
        Parsed event dictionary

    Raises:
        ValueError: If webhook verification fails
    """
    if not config.STRIPE_WEBHOOK_SECRET:
        raise ValueError("STRIPE_WEBHOOK_SECRET not configured")

    payload = request_body.decode("utf-8") if isinstance(request_body, bytes) else request_body
    try:
        stripe.WebhookSignature.verify_header(payload, signature or "", config.STRIPE_WEBHOOK_SECRET)
        event = json.loads(payload)
    except stripe.SignatureVerificationError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise ValueError(f"Invalid signature: {e}")
    except json.JSONDecodeError as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise ValueError(f"Invalid webhook payload: {e}")

    logger.info(f"Verified webhook event: {event.get('type')}, id={event.get('id')}")
    return event


def cancel_subscription(subscription_id: str) -> None:
    """Cancel a plan subscription immediately."""
    _require_stripe()
    try:
        stripe.Subscription.cancel(subscription_id)
    except stripe.StripeError as e:
        logger.error(f"Stripe error canceling subscription {subscription_id}: {e}")
        raise PaymentGatewayUnavailableError(f"Failed to cancel subscription: {e.user_message or e}")

    logger.info(f"Canceled subscription: subscription_id={subscription_id}")
