"""
Swipe recording, match creation and the swipe deck.

The swipe itself is the only hard write: once it is committed, the
reciprocal lookup, match creation and the employer's unlock are
best-effort and never undo it.
"""
import logging
from typing import Optional, Dict, Any, List

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from jobswipe.core.errors import InvalidSwipeError, NotFoundError, JobSwipeError
from jobswipe.db.models.account import Account, EMPLOYER, JOB_SEEKER
from jobswipe.db.models.job_posting import JobPosting
from jobswipe.db.models.match import Match, MatchStatus, EmployerPaymentStatus
from jobswipe.db.models.swipe import Swipe, LIKE, DIRECTIONS, TARGET_JOB, TARGET_PROFILE
from jobswipe.services import entitlement_service
from jobswipe.services.matching import rank_candidates

logger = logging.getLogger(__name__)

# Which target type each role swipes on
ROLE_TARGET = {
    EMPLOYER: TARGET_PROFILE,
    JOB_SEEKER: TARGET_JOB,
}


def _validate_target(db: Session, swiper: Account, target_type: str, target_id: int):
    expected = ROLE_TARGET.get(swiper.role)
    if expected is None:
        raise InvalidSwipeError(f"Accounts with role '{swiper.role}' cannot swipe")
    if target_type != expected:
        raise InvalidSwipeError(f"A {swiper.role} swipes on '{expected}' targets, not '{target_type}'")

    if target_type == TARGET_JOB:
        target = db.query(JobPosting).filter(JobPosting.id == target_id).first()
    else:
        target = db.query(Account).filter(
            Account.id == target_id,
            Account.role == JOB_SEEKER,
        ).first()
    if not target:
        raise NotFoundError(f"{target_type.capitalize()} {target_id} not found")
    return target


def _save_swipe(db: Session, swiper: Account, target_type: str, target_id: int, direction: str) -> Swipe:
    """Insert or overwrite the swiper's decision on this target, and commit."""
    swipe = db.query(Swipe).filter(
        Swipe.swiper_id == swiper.id,
        Swipe.target_type == target_type,
        Swipe.target_id == target_id,
    ).first()
    try:
        if swipe:
            swipe.direction = direction
        else:
            swipe = Swipe(swiper_id=swiper.id, target_type=target_type, target_id=target_id, direction=direction)
            db.add(swipe)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(f"Failed to save swipe: swiper_id={swiper.id}, {target_type}={target_id}", exc_info=True)
        raise
    db.refresh(swipe)
    return swipe


def _find_reciprocal_like(db: Session, swiper: Account, target) -> Optional[Dict[str, Any]]:
    """
    Look for the other party's like.

    Returns employer_id, employee_id, job_id and initiator of the would-be
    match, or None.
    """
    if swiper.role == EMPLOYER:
        # Did this seeker like any of the employer's jobs?
        job_ids = [row.id for row in db.query(JobPosting.id).filter(JobPosting.employer_id == swiper.id)]
        if not job_ids:
            return None
        like = db.query(Swipe).filter(
            Swipe.swiper_id == target.id,
            Swipe.target_type == TARGET_JOB,
            Swipe.target_id.in_(job_ids),
            Swipe.direction == LIKE,
        ).order_by(Swipe.updated_at.desc(), Swipe.id.desc()).first()
        if not like:
            return None
        return {
            "employer_id": swiper.id,
            "employee_id": target.id,
            "job_id": like.target_id,
            "initiator": target.id,
        }

    # Seeker liked a job: did its employer like the seeker's profile?
    like = db.query(Swipe).filter(
        Swipe.swiper_id == target.employer_id,
        Swipe.target_type == TARGET_PROFILE,
        Swipe.target_id == swiper.id,
        Swipe.direction == LIKE,
    ).first()
    if not like:
        return None
    return {
        "employer_id": target.employer_id,
        "employee_id": swiper.id,
        "job_id": target.id,
        "initiator": target.employer_id,
    }


def _get_pair_match(db: Session, employer_id: int, employee_id: int) -> Optional[Match]:
    return db.query(Match).filter(
        Match.employer_id == employer_id,
        Match.employee_id == employee_id,
    ).first()


def get_or_create_match(
    db: Session,
    employer_id: int,
    employee_id: int,
    job_id: Optional[int],
    initiator: int,
) -> Dict[str, Any]:
    """
    Exactly one match per employer/seeker pair.

    Returns:
        Dictionary with 'match' and 'created'
    """
    existing = _get_pair_match(db, employer_id, employee_id)
    if existing:
        return {"match": existing, "created": False}

    match = Match(
        employer_id=employer_id,
        employee_id=employee_id,
        job_id=job_id,
        initiator=initiator,
        status=MatchStatus.CONFIRMED.value,
        employer_unlocked=False,
        employer_payment_status=EmployerPaymentStatus.PENDING.value,
    )
    db.add(match)
    try:
        db.commit()
    except IntegrityError:
        # The other side's swipe created it first
        db.rollback()
        existing = _get_pair_match(db, employer_id, employee_id)
        if existing is None:
            raise
        logger.info(f"Match already created concurrently: employer_id={employer_id}, employee_id={employee_id}")
        return {"match": existing, "created": False}

    db.refresh(match)
    logger.info(
        f"Match created: match_id={match.id}, employer_id={employer_id}, employee_id={employee_id}, "
        f"job_id={job_id}, initiator={initiator}"
    )
    return {"match": match, "created": True}


def record_swipe(
    db: Session,
    swiper: Account,
    target_type: str,
    target_id: int,
    direction: str,
) -> Dict[str, Any]:
    """
    Record a swipe and, on a mutual like, create the match.

    When the employer completes the match the unlock is resolved right away:
    a free or included unlock is applied, a paid one is reported with its
    price.

    Returns:
        Dictionary with swipe, match (or None), match_created and unlock
        (UnlockResult or None); unlock_error holds the error code when the
        post-swipe steps failed.

    Raises:
        InvalidSwipeError: role/target mismatch or bad direction
        NotFoundError: target does not exist
    """
    if direction not in DIRECTIONS:
        raise InvalidSwipeError(f"Direction must be one of {', '.join(DIRECTIONS)}")
    target = _validate_target(db, swiper, target_type, target_id)
    swipe = _save_swipe(db, swiper, target_type, target_id, direction)

    result = {"swipe": swipe, "match": None, "match_created": False, "unlock": None, "unlock_error": None}
    if direction != LIKE:
        return result

    try:
        pair = _find_reciprocal_like(db, swiper, target)
        if not pair:
            return result

        created = get_or_create_match(db, **pair)
        result["match"] = created["match"]
        result["match_created"] = created["created"]

        if swiper.role == EMPLOYER:
            result["unlock"] = entitlement_service.resolve_unlock(db, swiper.id, created["match"].id)
    except (JobSwipeError, SQLAlchemyError) as e:
        db.rollback()
        code = getattr(e, "code", "storage_error")
        logger.error(
            f"Post-swipe processing failed, swipe kept: swipe_id={swipe.id}, swiper_id={swiper.id}, "
            f"{target_type}={target_id}, code={code}",
            exc_info=True,
        )
        result["unlock_error"] = code

    return result


def list_candidates(db: Session, account: Account, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """
    The swipe deck: targets the account has not swiped yet, best first.

    Job seekers see job postings; employers see visible job seeker profiles.
    The account's own coordinates are the origin unless the filters give one.
    """
    filters = dict(filters or {})
    if filters.get("latitude") is None or filters.get("longitude") is None:
        filters["latitude"] = account.latitude
        filters["longitude"] = account.longitude

    target_type = ROLE_TARGET.get(account.role)
    if target_type is None:
        return []

    swiped_ids = [
        row.target_id
        for row in db.query(Swipe.target_id).filter(
            Swipe.swiper_id == account.id,
            Swipe.target_type == target_type,
        )
    ]

    if target_type == TARGET_JOB:
        query = db.query(JobPosting)
        if swiped_ids:
            query = query.filter(~JobPosting.id.in_(swiped_ids))
        candidates = query.order_by(JobPosting.created_at.desc(), JobPosting.id.desc()).all()
    else:
        query = db.query(Account).filter(
            Account.role == JOB_SEEKER,
            Account.visible_to_employers.is_(True),
        )
        if swiped_ids:
            query = query.filter(~Account.id.in_(swiped_ids))
        candidates = query.order_by(Account.id).all()

    ranked = rank_candidates(account, candidates, filters)
    logger.debug(f"Swipe deck built: account_id={account.id}, candidates={len(ranked)}")
    return ranked
