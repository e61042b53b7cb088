"""
Translate domain errors into HTTPException with a structured detail.

detail always carries error (machine code), message and retryable, plus
error-specific fields (plan, decline_code).
"""
import logging
from fastapi import HTTPException, status

from jobswipe.core.errors import (
    JobSwipeError,
    NotFoundError,
    InvalidSwipeError,
    MatchAccessDeniedError,
    PlanNotEligibleError,
    UnlockCounterUnavailableError,
    UnlockStorageError,
    PaymentGatewayUnavailableError,
    PaymentDeclinedError,
    CheckoutNotCompletedError,
    CheckoutSessionMismatchError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidSwipeError, status.HTTP_400_BAD_REQUEST),
    (MatchAccessDeniedError, status.HTTP_403_FORBIDDEN),
    (PlanNotEligibleError, status.HTTP_402_PAYMENT_REQUIRED),
    (UnlockCounterUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (UnlockStorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (PaymentGatewayUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (PaymentDeclinedError, status.HTTP_402_PAYMENT_REQUIRED),
    (CheckoutNotCompletedError, status.HTTP_409_CONFLICT),
    (CheckoutSessionMismatchError, status.HTTP_404_NOT_FOUND),
)


def to_http_exception(error: JobSwipeError) -> HTTPException:
    """Map a domain error to the HTTPException a route should raise."""
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            status_code = code
            break

    detail = {
        "error": error.code,
        "message": error.message,
        "retryable": error.retryable,
    }
    if isinstance(error, PlanNotEligibleError):
        detail["plan"] = error.plan
    if isinstance(error, PaymentDeclinedError) and error.decline_code:
        detail["decline_code"] = error.decline_code

    if status_code >= 500:
        logger.error(f"Request failed: {detail}")
    else:
        logger.info(f"Request rejected: status={status_code}, error={error.code}")
    return HTTPException(status_code=status_code, detail=detail)
