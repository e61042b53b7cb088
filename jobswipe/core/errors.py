"""
Domain errors raised by the entitlement engine, swipe flow and payment
orchestration.

Services raise these; routes translate them into HTTP responses. Nothing
here knows about HTTP.
"""
from typing import Optional


class JobSwipeError(Exception):
    """Base class for all domain errors."""
    code = "error"
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(JobSwipeError):
    code = "not_found"


class InvalidSwipeError(JobSwipeError):
    """Swipe target does not fit the swiper's role."""
    code = "invalid_swipe"


# --- Entitlement ---

class EntitlementError(JobSwipeError):
    code = "entitlement_error"


class MatchAccessDeniedError(EntitlementError):
    """Caller is not the employer that owns the match."""
    code = "forbidden"


class PlanNotEligibleError(EntitlementError):
    """The employer's plan does not include this kind of unlock at any price."""
    code = "plan_not_eligible"

    def __init__(self, message: str, plan: str):
        super().__init__(message)
        self.plan = plan


class UnlockCounterUnavailableError(EntitlementError):
    """Monthly unlock counter could not be read; the free path must not run."""
    code = "unlock_counter_unavailable"
    retryable = True


class UnlockStorageError(EntitlementError):
    """Unlock mutation failed and was rolled back."""
    code = "unlock_storage_error"
    retryable = True


# --- Payments ---

class PaymentError(JobSwipeError):
    code = "payment_error"


class PaymentGatewayUnavailableError(PaymentError):
    """Gateway not configured or unreachable."""
    code = "payment_gateway_unavailable"
    retryable = True


class PaymentDeclinedError(PaymentError):
    """Gateway rejected the charge; carries the gateway's message."""
    code = "payment_declined"

    def __init__(self, message: str, decline_code: Optional[str] = None):
        super().__init__(message)
        self.decline_code = decline_code


class CheckoutNotCompletedError(PaymentError):
    """Success callback arrived for a session the gateway has not settled."""
    code = "checkout_not_completed"


class CheckoutSessionMismatchError(PaymentError):
    """Callback session id does not belong to an open checkout of the caller."""
    code = "checkout_session_mismatch"

