"""initial_schema

Revision ID: 5c1e9a7d3b20
Revises:
Create Date: 2026-10-12 09:14:27.418032

Accounts, job postings, swipes, matches with unlock state, the unlock
payment log, checkout sessions and subscriptions.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '5c1e9a7d3b20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    """Create every table that does not exist yet."""
    if not table_exists('accounts'):
        op.create_table('accounts',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('password_hash', sa.String(), nullable=False),
            sa.Column('role', sa.String(length=20), nullable=False),
            sa.Column('subscription_plan', sa.String(length=20), nullable=True),
            sa.Column('plan_status', sa.String(), nullable=True),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('stripe_payment_method_id', sa.String(), nullable=True),
            sa.Column('stripe_subscription_id', sa.String(), nullable=True),
            sa.Column('city', sa.String(), nullable=True),
            sa.Column('latitude', sa.Float(), nullable=True),
            sa.Column('longitude', sa.Float(), nullable=True),
            sa.Column('industry', sa.String(), nullable=True),
            sa.Column('skills', sa.JSON(), nullable=True),
            sa.Column('languages', sa.JSON(), nullable=True),
            sa.Column('employment_types', sa.JSON(), nullable=True),
            sa.Column('desired_salary', sa.Integer(), nullable=True),
            sa.Column('available_now', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('visible_to_employers', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('bio', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_accounts_id'), 'accounts', ['id'], unique=False)
        op.create_index(op.f('ix_accounts_email'), 'accounts', ['email'], unique=True)
        op.create_index(op.f('ix_accounts_role'), 'accounts', ['role'], unique=False)
        op.create_index(op.f('ix_accounts_stripe_customer_id'), 'accounts', ['stripe_customer_id'], unique=False)

    if not table_exists('job_postings'):
        op.create_table('job_postings',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('employer_id', sa.Integer(), nullable=False),
            sa.Column('title', sa.String(), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('employment_type', sa.String(), nullable=True),
            sa.Column('industry', sa.String(), nullable=True),
            sa.Column('skills', sa.JSON(), nullable=True),
            sa.Column('languages', sa.JSON(), nullable=True),
            sa.Column('salary_min', sa.Integer(), nullable=True),
            sa.Column('salary_max', sa.Integer(), nullable=True),
            sa.Column('available_now', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('city', sa.String(), nullable=True),
            sa.Column('latitude', sa.Float(), nullable=True),
            sa.Column('longitude', sa.Float(), nullable=True),
            sa.Column('is_flex', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('starts_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('ends_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.ForeignKeyConstraint(['employer_id'], ['accounts.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('idx_job_employer_created', 'job_postings', ['employer_id', 'created_at'], unique=False)
        op.create_index(op.f('ix_job_postings_id'), 'job_postings', ['id'], unique=False)
        op.create_index(op.f('ix_job_postings_employer_id'), 'job_postings', ['employer_id'], unique=False)
        op.create_index(op.f('ix_job_postings_is_flex'), 'job_postings', ['is_flex'], unique=False)
        op.create_index(op.f('ix_job_postings_created_at'), 'job_postings', ['created_at'], unique=False)

    if not table_exists('swipes'):
        op.create_table('swipes',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('swiper_id', sa.Integer(), nullable=False),
            sa.Column('target_id', sa.Integer(), nullable=False),
            sa.Column('target_type', sa.String(length=10), nullable=False),
            sa.Column('direction', sa.String(length=10), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.ForeignKeyConstraint(['swiper_id'], ['accounts.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('swiper_id', 'target_type', 'target_id', name='uq_swipe_swiper_target')
        )
        op.create_index('idx_swipe_target_direction', 'swipes', ['target_type', 'target_id', 'direction'], unique=False)
        op.create_index(op.f('ix_swipes_id'), 'swipes', ['id'], unique=False)
        op.create_index(op.f('ix_swipes_swiper_id'), 'swipes', ['swiper_id'], unique=False)

    if not table_exists('matches'):
        op.create_table('matches',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('employer_id', sa.Integer(), nullable=False),
            sa.Column('employee_id', sa.Integer(), nullable=False),
            sa.Column('job_id', sa.Integer(), nullable=True),
            sa.Column('initiator', sa.Integer(), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='confirmed'),
            sa.Column('employer_unlocked', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('employer_payment_status', sa.String(length=20), nullable=False, server_default='pending'),
            sa.Column('employer_unlocked_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('employer_price_charged', sa.Numeric(precision=10, scale=2), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.ForeignKeyConstraint(['employer_id'], ['accounts.id'], ),
            sa.ForeignKeyConstraint(['employee_id'], ['accounts.id'], ),
            sa.ForeignKeyConstraint(['job_id'], ['job_postings.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('employer_id', 'employee_id', name='uq_match_pair')
        )
        op.create_index('idx_match_employer_unlocked_at', 'matches', ['employer_id', 'employer_unlocked', 'employer_unlocked_at'], unique=False)
        op.create_index(op.f('ix_matches_id'), 'matches', ['id'], unique=False)
        op.create_index(op.f('ix_matches_employer_id'), 'matches', ['employer_id'], unique=False)
        op.create_index(op.f('ix_matches_employee_id'), 'matches', ['employee_id'], unique=False)
        op.create_index(op.f('ix_matches_job_id'), 'matches', ['job_id'], unique=False)

    if not table_exists('match_payments'):
        op.create_table('match_payments',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('match_id', sa.Integer(), nullable=False),
            sa.Column('employer_id', sa.Integer(), nullable=False),
            sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('gateway_reference', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.ForeignKeyConstraint(['match_id'], ['matches.id'], ),
            sa.ForeignKeyConstraint(['employer_id'], ['accounts.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_match_payments_id'), 'match_payments', ['id'], unique=False)
        op.create_index(op.f('ix_match_payments_match_id'), 'match_payments', ['match_id'], unique=False)
        op.create_index(op.f('ix_match_payments_employer_id'), 'match_payments', ['employer_id'], unique=False)

    if not table_exists('checkout_sessions'):
        op.create_table('checkout_sessions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('stripe_session_id', sa.String(), nullable=False),
            sa.Column('account_id', sa.Integer(), nullable=False),
            sa.Column('match_id', sa.Integer(), nullable=True),
            sa.Column('purpose', sa.String(length=20), nullable=False),
            sa.Column('plan', sa.String(length=20), nullable=True),
            sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=True),
            sa.Column('checkout_url', sa.String(), nullable=True),
            sa.Column('currency', sa.String(length=3), nullable=False, server_default='eur'),
            sa.Column('state', sa.String(length=20), nullable=False, server_default='open'),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
            sa.ForeignKeyConstraint(['match_id'], ['matches.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_checkout_sessions_id'), 'checkout_sessions', ['id'], unique=False)
        op.create_index(op.f('ix_checkout_sessions_stripe_session_id'), 'checkout_sessions', ['stripe_session_id'], unique=True)
        op.create_index(op.f('ix_checkout_sessions_account_id'), 'checkout_sessions', ['account_id'], unique=False)
        op.create_index(op.f('ix_checkout_sessions_match_id'), 'checkout_sessions', ['match_id'], unique=False)

    if not table_exists('subscriptions'):
        op.create_table('subscriptions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('account_id', sa.Integer(), nullable=False),
            sa.Column('plan_type', sa.String(), nullable=True),
            sa.Column('status', sa.String(), nullable=True),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('stripe_subscription_id', sa.String(), nullable=True),
            sa.Column('stripe_price_id', sa.String(), nullable=True),
            sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
            sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
            sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('account_id')
        )
        op.create_index(op.f('ix_subscriptions_id'), 'subscriptions', ['id'], unique=False)
        op.create_index(op.f('ix_subscriptions_stripe_subscription_id'), 'subscriptions', ['stripe_subscription_id'], unique=False)


def downgrade() -> None:
    op.drop_table('subscriptions')
    op.drop_table('checkout_sessions')
    op.drop_table('match_payments')
    op.drop_table('matches')
    op.drop_table('swipes')
    op.drop_table('job_postings')
    op.drop_table('accounts')
