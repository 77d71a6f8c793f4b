"""create subscriptions and billing_events tables

Revision ID: a7c2e9f41b30
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


revision = 'a7c2e9f41b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('plan_name', sa.String(255), nullable=False, server_default=''),
        sa.Column('category', sa.String(128), nullable=False, server_default=''),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='ACTIVE'),
        sa.Column('first_billing_date', sa.Date(), nullable=False),
        sa.Column('cancellation_date', sa.Date(), nullable=True),
        sa.Column('billing_cycle', sa.String(32), nullable=False, server_default='MONTHLY'),
        sa.Column('billing_interval', sa.SmallInteger(), nullable=False, server_default='1'),
        sa.Column('custom_days_interval', sa.Integer(), nullable=True),
        sa.Column('selected_months', sa.String(64), nullable=False, server_default=''),
        sa.Column('selected_year_months', sa.Text(), nullable=False, server_default=''),
        sa.Column('historical_billed_year_months', sa.Text(), nullable=False, server_default=''),
        sa.Column('memo', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_subscriptions_account_id', 'subscriptions', ['account_id'])

    op.create_table(
        'billing_events',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'subscription_id', sa.Uuid(),
            sa.ForeignKey('subscriptions.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('billed_at', sa.Date(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('event_type', sa.String(16), nullable=False, server_default='PROJECTED'),
        sa.Column('is_amount_overridden', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('memo', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_billing_events_account_id', 'billing_events', ['account_id'])
    op.create_index('ix_billing_events_sub_type', 'billing_events', ['subscription_id', 'event_type'])
    op.create_index('ix_billing_events_account_billed', 'billing_events', ['account_id', 'billed_at'])


def downgrade():
    op.drop_table('billing_events')
    op.drop_table('subscriptions')
