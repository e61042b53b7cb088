"""
Match entitlement and unlock pricing.

Decides whether an employer may open a match for free, has already unlocked
it, or has to pay (and how much), and performs the unlock mutation.

Unlock decisions that can grant a free unlock run with the employer's
account row locked, so concurrent unlocks by the same employer are
serialised and the monthly counter cannot be over-spent. The match update is
conditional on the match still being locked, which makes every unlock path
idempotent.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Dict, Any

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from jobswipe.core import plan_limits
from jobswipe.core.errors import (
    NotFoundError,
    MatchAccessDeniedError,
    PlanNotEligibleError,
    UnlockCounterUnavailableError,
    UnlockStorageError,
)
from jobswipe.db.models.account import Account, EMPLOYER
from jobswipe.db.models.match import Match, MatchPayment, EmployerPaymentStatus

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


class UnlockOutcome(str, enum.Enum):
    ALREADY_UNLOCKED = "already_unlocked"
    FREE = "free"
    PAYMENT_REQUIRED = "payment_required"


class UnlockReason(str, enum.Enum):
    PAID_AT_SWIPE = "paid_at_swipe"
    ALREADY_UNLOCKED = "already_unlocked"
    PREMIUM_INCLUDED = "premium_included"
    STANDARD_ALLOWANCE = "standard_allowance"
    STANDARD_EXTRA_MATCH = "standard_extra_match"
    STANDARD_FLEX_JOB = "standard_flex_job"
    BASIC_MATCH = "basic_match"


@dataclass(frozen=True)
class UnlockDecision:
    """
    Result of the pricing rules for one match.

    `price` is the amount due for a payment_required decision, zero for a free
    one, and the previously charged amount for an unlocked match.
    """
    outcome: UnlockOutcome
    reason: UnlockReason
    plan: str
    price: Decimal
    payment_status: Optional[str]
    is_flex: bool = False
    monthly_unlocks_used: Optional[int] = None

    @property
    def requires_payment(self) -> bool:
        return self.outcome == UnlockOutcome.PAYMENT_REQUIRED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "reason": self.reason.value,
            "plan": self.plan,
            "price": str(self.price),
            "payment_status": self.payment_status,
            "is_flex": self.is_flex,
            "monthly_unlocks_used": self.monthly_unlocks_used,
        }


@dataclass(frozen=True)
class UnlockResult:
    """Decision plus the match state after an unlock attempt."""
    decision: UnlockDecision
    match: Match
    unlocked_now: bool

    @property
    def unlocked(self) -> bool:
        return bool(self.match.employer_unlocked)


# ---------------------------------------------------------------------------
# Plan / quota lookup
# ---------------------------------------------------------------------------

def get_plan_for_account(db: Session, account_id: int) -> str:
    """
    Get the employer's plan, defaulting to basic.

    A failed lookup also yields basic: never guess a cheaper tier.
    """
    try:
        plan = db.query(Account.subscription_plan).filter(Account.id == account_id).scalar()
    except SQLAlchemyError as e:
        logger.warning(f"Plan lookup failed for account_id={account_id}, using basic: {e}")
        db.rollback()
        return plan_limits.DEFAULT_PLAN
    return plan_limits.normalize_plan(plan)


def month_start(now: Optional[datetime] = None) -> datetime:
    """First instant of the current calendar month in UTC."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def get_month_key(now: Optional[datetime] = None) -> str:
    """Month key in YYYY-MM format."""
    return month_start(now).strftime("%Y-%m")


def count_monthly_unlocks(db: Session, employer_id: int, now: Optional[datetime] = None) -> int:
    """
    Unlocks the employer has consumed this calendar month.

    Counted by employer_unlocked_at (when the unlock happened), not by when
    the match was created.

    Raises:
        UnlockCounterUnavailableError: the count could not be read
    """
    boundary = month_start(now)
    try:
        count = db.query(func.count(Match.id)).filter(
            Match.employer_id == employer_id,
            Match.employer_unlocked.is_(True),
            Match.employer_unlocked_at >= boundary,
        ).scalar()
    except SQLAlchemyError as e:
        logger.error(f"Monthly unlock count failed for employer_id={employer_id}: {e}")
        raise UnlockCounterUnavailableError("Could not read monthly unlocks, please retry") from e
    return int(count or 0)


def get_match_for_employer(db: Session, match_id: int, employer_id: int) -> Match:
    """Load a match and make sure the caller is its employer."""
    match = db.query(Match).filter(Match.id == match_id).first()
    if not match:
        raise NotFoundError(f"Match {match_id} not found")
    if match.employer_id != employer_id:
        logger.warning(f"Unlock access denied: match_id={match_id}, caller={employer_id}, owner={match.employer_id}")
        raise MatchAccessDeniedError("Match does not belong to this employer")
    return match


# ---------------------------------------------------------------------------
# Decision
# ---------------------------------------------------------------------------

def _needs_monthly_counter(match: Match, plan: str, is_flex: bool) -> bool:
    return (
        not match.employer_unlocked
        and plan == plan_limits.STANDARD
        and not is_flex
    )


def compute_unlock_decision(
    match: Match,
    plan: str,
    monthly_unlocks_used: Optional[int] = None,
    is_flex: Optional[bool] = None,
) -> UnlockDecision:
    """
    Apply the pricing rules to one match. Pure function.

    Args:
        match: Target match
        plan: Employer plan (normalized to basic when unknown)
        monthly_unlocks_used: Unlocks already consumed this month, before this
            one; required for standard-plan, non-flex matches
        is_flex: Flex-job context; defaults to the match's job posting

    Raises:
        PlanNotEligibleError: flex job on the basic plan
    """
    plan = plan_limits.normalize_plan(plan)
    if is_flex is None:
        is_flex = match.is_flex

    # 1. Employer swiped second and the match was resolved at that moment
    if match.initiated_by_employee and match.employer_unlocked:
        return UnlockDecision(
            outcome=UnlockOutcome.ALREADY_UNLOCKED,
            reason=UnlockReason.PAID_AT_SWIPE,
            plan=plan,
            price=ZERO,
            payment_status=match.employer_payment_status,
            is_flex=is_flex,
        )

    # 2. Unlocked earlier: report what was charged, never charge again
    if match.employer_unlocked:
        charged = match.employer_price_charged
        return UnlockDecision(
            outcome=UnlockOutcome.ALREADY_UNLOCKED,
            reason=UnlockReason.ALREADY_UNLOCKED,
            plan=plan,
            price=Decimal(charged) if charged is not None else ZERO,
            payment_status=match.employer_payment_status,
            is_flex=is_flex,
        )

    # 3. Premium: everything included
    if plan == plan_limits.PREMIUM:
        return UnlockDecision(
            outcome=UnlockOutcome.FREE,
            reason=UnlockReason.PREMIUM_INCLUDED,
            plan=plan,
            price=ZERO,
            payment_status=plan_limits.get_free_unlock_status(plan),
            is_flex=is_flex,
            monthly_unlocks_used=monthly_unlocks_used,
        )

    # 4. Standard: flex jobs always cost, matches are free up to the allowance
    if plan == plan_limits.STANDARD:
        if is_flex:
            return UnlockDecision(
                outcome=UnlockOutcome.PAYMENT_REQUIRED,
                reason=UnlockReason.STANDARD_FLEX_JOB,
                plan=plan,
                price=plan_limits.get_flex_price(plan),
                payment_status=EmployerPaymentStatus.PAID.value,
                is_flex=True,
                monthly_unlocks_used=monthly_unlocks_used,
            )
        if monthly_unlocks_used is None:
            raise ValueError("monthly_unlocks_used is required for standard-plan matches")
        if monthly_unlocks_used < plan_limits.get_free_unlock_limit(plan):
            return UnlockDecision(
                outcome=UnlockOutcome.FREE,
                reason=UnlockReason.STANDARD_ALLOWANCE,
                plan=plan,
                price=ZERO,
                payment_status=plan_limits.get_free_unlock_status(plan),
                is_flex=False,
                monthly_unlocks_used=monthly_unlocks_used,
            )
        return UnlockDecision(
            outcome=UnlockOutcome.PAYMENT_REQUIRED,
            reason=UnlockReason.STANDARD_EXTRA_MATCH,
            plan=plan,
            price=plan_limits.get_match_price(plan),
            payment_status=EmployerPaymentStatus.PAID.value,
            is_flex=False,
            monthly_unlocks_used=monthly_unlocks_used,
        )

    # 5. Basic: no flex jobs, every match costs the basic price
    if is_flex and not plan_limits.allows_flex_jobs(plan):
        raise PlanNotEligibleError("Flex jobs are not available on your plan", plan=plan)
    return UnlockDecision(
        outcome=UnlockOutcome.PAYMENT_REQUIRED,
        reason=UnlockReason.BASIC_MATCH,
        plan=plan,
        price=plan_limits.get_match_price(plan),
        payment_status=EmployerPaymentStatus.PAID.value,
        is_flex=is_flex,
        monthly_unlocks_used=monthly_unlocks_used,
    )


def _decide_for_match(db: Session, match: Match) -> UnlockDecision:
    plan = get_plan_for_account(db, match.employer_id)
    is_flex = match.is_flex
    used = None
    if _needs_monthly_counter(match, plan, is_flex):
        used = count_monthly_unlocks(db, match.employer_id)
    return compute_unlock_decision(match, plan, used, is_flex)


def decide_entitlement(db: Session, employer_id: int, match_id: int) -> UnlockDecision:
    """Read-only entitlement check for the calling employer."""
    match = get_match_for_employer(db, match_id, employer_id)
    return _decide_for_match(db, match)


# ---------------------------------------------------------------------------
# Mutation
# ---------------------------------------------------------------------------

def employer_lock_query(db: Session, employer_id: int):
    """SELECT ... FOR UPDATE on the employer row. SQLite serialises writers anyway."""
    return db.query(Account).filter(Account.id == employer_id).with_for_update()


def lock_employer(db: Session, employer_id: int) -> Account:
    """
    Lock the employer row for the rest of the transaction.

    Every unlock and every settlement of an unlock payment takes this lock
    before reading the match or the monthly counter.
    """
    account = employer_lock_query(db, employer_id).first()
    if not account:
        raise NotFoundError(f"Account {employer_id} not found")
    if account.role != EMPLOYER:
        raise MatchAccessDeniedError("Only employers can unlock matches")
    return account


def _unlock_match(
    db: Session,
    match: Match,
    payment_status: str,
    amount: Decimal,
    gateway_reference: Optional[str] = None,
) -> bool:
    """
    Flip a locked match to unlocked and append its payment record.

    Returns False (and writes nothing) when the match was already unlocked.
    Does not commit.
    """
    now = datetime.now(timezone.utc)
    updated = db.query(Match).filter(
        Match.id == match.id,
        Match.employer_id == match.employer_id,
        Match.employer_unlocked.is_(False),
    ).update(
        {
            Match.employer_unlocked: True,
            Match.employer_unlocked_at: now,
            Match.employer_payment_status: payment_status,
            Match.employer_price_charged: amount,
        },
        synchronize_session=False,
    )
    if updated == 0:
        return False

    db.add(MatchPayment(
        match_id=match.id,
        employer_id=match.employer_id,
        amount=amount,
        status=payment_status,
        gateway_reference=gateway_reference,
    ))
    return True


def resolve_unlock(db: Session, employer_id: int, match_id: int) -> UnlockResult:
    """
    Decide and, when the decision is free, unlock in one transaction.

    Paid decisions are returned untouched; the checkout flow unlocks them after
    the gateway confirms payment.

    Raises:
        NotFoundError, MatchAccessDeniedError, PlanNotEligibleError,
        UnlockCounterUnavailableError, UnlockStorageError
    """
    try:
        lock_employer(db, employer_id)
        match = get_match_for_employer(db, match_id, employer_id)
        decision = _decide_for_match(db, match)

        if decision.outcome != UnlockOutcome.FREE:
            # Release the lock; nothing to write
            db.rollback()
            return UnlockResult(decision=decision, match=match, unlocked_now=False)

        unlocked_now = _unlock_match(db, match, decision.payment_status, ZERO)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Free unlock failed: employer_id={employer_id}, match_id={match_id}: {e}", exc_info=True)
        raise UnlockStorageError("Unlock could not be saved, please retry") from e
    except Exception:
        db.rollback()
        raise

    db.refresh(match)
    if unlocked_now:
        logger.info(
            f"Match unlocked: match_id={match_id}, employer_id={employer_id}, plan={decision.plan}, "
            f"status={decision.payment_status}, reason={decision.reason.value}, "
            f"used_before={decision.monthly_unlocks_used}"
        )
    else:
        logger.info(f"Unlock skipped, already unlocked: match_id={match_id}, employer_id={employer_id}")
    return UnlockResult(decision=decision, match=match, unlocked_now=unlocked_now)


def apply_paid_unlock(
    db: Session,
    employer_id: int,
    match_id: int,
    amount: Decimal,
    gateway_reference: Optional[str] = None,
) -> UnlockResult:
    """
    Unlock a match after the gateway confirmed the charge.

    Only call this once money has moved. Idempotent: an already unlocked
    match is left as is and no second payment record is written.
    """
    amount = Decimal(amount).quantize(Decimal("0.01"))
    try:
        account = lock_employer(db, employer_id)
        match = get_match_for_employer(db, match_id, employer_id)
        unlocked_now = _unlock_match(db, match, EmployerPaymentStatus.PAID.value, amount, gateway_reference)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Paid unlock failed after payment: employer_id={employer_id}, match_id={match_id}, "
            f"amount={amount}, reference={gateway_reference}: {e}",
            exc_info=True,
        )
        raise UnlockStorageError("Payment received but unlock could not be saved, please retry") from e
    except Exception:
        db.rollback()
        raise

    db.refresh(match)
    plan = plan_limits.normalize_plan(account.subscription_plan)
    if unlocked_now:
        logger.info(
            f"Match unlocked (paid): match_id={match_id}, employer_id={employer_id}, "
            f"amount={amount}, reference={gateway_reference}"
        )
        decision = UnlockDecision(
            outcome=UnlockOutcome.ALREADY_UNLOCKED,
            reason=UnlockReason.ALREADY_UNLOCKED,
            plan=plan,
            price=amount,
            payment_status=EmployerPaymentStatus.PAID.value,
            is_flex=match.is_flex,
        )
    else:
        logger.warning(
            f"Payment for already unlocked match: match_id={match_id}, employer_id={employer_id}, "
            f"amount={amount}, reference={gateway_reference}"
        )
        decision = compute_unlock_decision(match, plan)
    return UnlockResult(decision=decision, match=match, unlocked_now=unlocked_now)


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def get_unlock_summary(db: Session, employer_id: int) -> Dict[str, Any]:
    """
    Plan and this month's unlock usage for the pricing banner.

    Returns:
        Dictionary with plan, month_key, limit, used, remaining, unlimited,
        next_match_price, flex_price and flex_allowed
    """
    plan = get_plan_for_account(db, employer_id)
    used = count_monthly_unlocks(db, employer_id)
    limit = plan_limits.get_free_unlock_limit(plan)

    if limit is None:
        remaining = None
        next_price = ZERO
    else:
        remaining = max(0, limit - used)
        next_price = ZERO if remaining > 0 else plan_limits.get_match_price(plan)

    flex_price = plan_limits.get_flex_price(plan)
    return {
        "plan": plan,
        "month_key": get_month_key(),
        "limit": limit,
        "used": used,
        "remaining": remaining,
        "unlimited": plan_limits.has_unlimited_unlocks(plan),
        "next_match_price": str(next_price),
        "flex_price": str(flex_price) if flex_price is not None else None,
        "flex_allowed": plan_limits.allows_flex_jobs(plan),
    }
