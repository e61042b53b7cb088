"""
Plan-based unlock pricing configuration.

Single source of truth for monthly free unlocks and per-match prices.
None means unlimited free unlocks for that plan.
"""
from decimal import Decimal
from typing import Dict, Optional, List

from jobswipe.core.config import BASIC_MATCH_PRICE

BASIC = "basic"
STANDARD = "standard"
PREMIUM = "premium"

# Ordered cheapest to most expensive subscription
SUPPORTED_PLANS: List[str] = [BASIC, STANDARD, PREMIUM]
DEFAULT_PLAN = BASIC

# Unlock rules (per calendar month, UTC)
PLAN_LIMITS: Dict[str, Dict[str, Optional[object]]] = {
    BASIC: {
        "free_unlocks_per_month": 0,
        "match_price": BASIC_MATCH_PRICE,
        "flex_price": None,  # Flex jobs not available
        "flex_allowed": False,
        "unlock_status": None,
    },
    STANDARD: {
        "free_unlocks_per_month": 10,
        "match_price": Decimal("9.99"),
        "flex_price": Decimal("1.99"),
        "flex_allowed": True,
        "unlock_status": "free",
    },
    PREMIUM: {
        "free_unlocks_per_month": None,  # Unlimited
        "match_price": Decimal("0.00"),
        "flex_price": Decimal("0.00"),
        "flex_allowed": True,
        "unlock_status": "included",
    },
}


def normalize_plan(plan_type: Optional[str]) -> str:
    """
    Map a stored plan value to a supported plan.

    Anything unknown or missing becomes basic, the most expensive tier, so a
    bad value can never grant free unlocks.
    """
    plan_type = plan_type.strip().lower() if plan_type else DEFAULT_PLAN
    return plan_type if plan_type in PLAN_LIMITS else DEFAULT_PLAN


def get_free_unlock_limit(plan_type: str) -> Optional[int]:
    """Monthly free unlocks for a plan, None for unlimited."""
    return PLAN_LIMITS[normalize_plan(plan_type)]["free_unlocks_per_month"]


def has_unlimited_unlocks(plan_type: str) -> bool:
    return get_free_unlock_limit(plan_type) is None


def get_match_price(plan_type: str) -> Decimal:
    """Price of one unlock once the free allowance is used up."""
    return PLAN_LIMITS[normalize_plan(plan_type)]["match_price"]


def get_flex_price(plan_type: str) -> Optional[Decimal]:
    """Price of one flex-job unlock, None when the plan excludes flex jobs."""
    return PLAN_LIMITS[normalize_plan(plan_type)]["flex_price"]


def allows_flex_jobs(plan_type: str) -> bool:
    return bool(PLAN_LIMITS[normalize_plan(plan_type)]["flex_allowed"])


def get_free_unlock_status(plan_type: str) -> str:
    """Payment status written for a free unlock: 'included' or 'free'."""
    return PLAN_LIMITS[normalize_plan(plan_type)]["unlock_status"] or "free"


def to_cents(amount: Decimal) -> int:
    """Convert a currency amount to the gateway's minor units."""
    return int((Decimal(amount) * 100).quantize(Decimal("1")))


def from_cents(cents: int) -> Decimal:
    return (Decimal(int(cents)) / 100).quantize(Decimal("0.01"))
