"""
Script to put an employer account on a plan without going through Stripe
(support cases, demo accounts).
Run: python -m scripts.set_employer_plan employer@example.com premium
"""
import sys
import logging
import argparse

from jobswipe.core import plan_limits
from jobswipe.db.session import SessionLocal
from jobswipe.db.models.account import Account, EMPLOYER
from jobswipe.db.models.subscription import Subscription

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def set_employer_plan(email: str, plan: str) -> bool:
    """Set the employer's plan and mirror it on the subscription record."""
    if plan not in plan_limits.SUPPORTED_PLANS:
        logger.error(f"Unknown plan '{plan}'. Use one of: {', '.join(plan_limits.SUPPORTED_PLANS)}")
        return False

    db = SessionLocal()
    try:
        account = db.query(Account).filter(Account.email == email.lower()).first()
        if not account:
            logger.error(f"Account {email} not found")
            return False
        if account.role != EMPLOYER:
            logger.error(f"Account {email} is a {account.role}; only employers have plans")
            return False

        logger.info(f"Found account: {email} (ID: {account.id}, plan: {account.subscription_plan})")

        subscription = db.query(Subscription).filter(Subscription.account_id == account.id).first()
        if not subscription:
            subscription = Subscription(account_id=account.id)
            db.add(subscription)
        subscription.plan_type = plan
        subscription.status = "active"

        account.subscription_plan = plan
        account.plan_status = "active"
        db.commit()

        logger.info(f"Account {email} is now on the {plan} plan")
        return True
    except Exception:
        db.rollback()
        logger.error(f"Error updating account {email}", exc_info=True)
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Set an employer's subscription plan")
    parser.add_argument("email")
    parser.add_argument("plan", choices=plan_limits.SUPPORTED_PLANS)
    args = parser.parse_args()

    if set_employer_plan(args.email, args.plan):
        print(f"\n[SUCCESS] {args.email} is now on the {args.plan} plan")
    else:
        print(f"\n[ERROR] Failed to update {args.email}")
        sys.exit(1)
