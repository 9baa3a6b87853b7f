"""initial schema

Revision ID: 2026_10_18_0000
Revises:
Create Date: 2026-10-18 08:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID


# revision identifiers, used by Alembic.
revision: str = '2026_10_18_0000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create plans, customers, recharges and service job tables."""

    # ========================================================================
    # Create plans table
    # ========================================================================
    op.create_table(
        'plans',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('plan_id', sa.String(64), nullable=False),
        sa.Column('plan_name', sa.String(255), nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('daily_liter_allowance', sa.Float(), nullable=False, server_default='0'),
        sa.Column('cycle_hour_allowance', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint('duration_days >= 0', name='ck_plan_duration_non_negative'),
        sa.CheckConstraint('price >= 0', name='ck_plan_price_non_negative'),
        sa.CheckConstraint('daily_liter_allowance >= 0', name='ck_plan_daily_liters_non_negative'),
        sa.UniqueConstraint('plan_id', name='uq_plans_plan_id'),
    )
    op.create_index('idx_plans_active', 'plans', ['is_active'])

    # ========================================================================
    # Create customers table
    # ========================================================================
    op.create_table(
        'customers',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('generated_customer_id', sa.String(32), nullable=False),

        # Profile
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('customer_phone', sa.String(10), nullable=False),
        sa.Column('alt_mobile_no', sa.String(10), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('customer_address', sa.Text(), nullable=True),
        sa.Column('landmark', sa.String(255), nullable=True),
        sa.Column('pincode', sa.String(6), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state_name', sa.String(100), nullable=True),
        sa.Column('confirmed_map_link', sa.Text(), nullable=True),
        sa.Column('model_installed', sa.String(100), nullable=True),
        sa.Column('serial_number', sa.String(100), nullable=True),
        sa.Column('installation_date', sa.DateTime(timezone=True), nullable=True),

        # Current cycle
        sa.Column('current_plan_id', sa.String(64), nullable=True),
        sa.Column('current_plan_name', sa.String(255), nullable=True),
        sa.Column('price_paid', sa.Numeric(10, 2), nullable=True),
        sa.Column('cycle_start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cycle_end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('daily_liter_allowance', sa.Float(), nullable=False, server_default='0'),
        sa.Column('cycle_hour_allowance', sa.Float(), nullable=False, server_default='0'),
        sa.Column('cycle_duration_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cycle_total_hours_used', sa.Float(), nullable=False, server_default='0'),
        sa.Column('cycle_total_liters_used', sa.Float(), nullable=False, server_default='0'),
        sa.Column('last_usage', JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('recharge_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_recharge_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_contact_at', sa.DateTime(timezone=True), nullable=True),

        sa.Column('registered_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint('cycle_total_hours_used >= 0', name='ck_customer_hours_non_negative'),
        sa.CheckConstraint('cycle_total_liters_used >= 0', name='ck_customer_liters_non_negative'),
        sa.CheckConstraint('recharge_count >= 0', name='ck_customer_recharge_count_non_negative'),
        sa.UniqueConstraint('generated_customer_id', name='uq_customers_generated_customer_id'),
    )
    op.create_index('idx_customers_registered_at', 'customers', ['registered_at'])
    op.create_index('idx_customers_phone', 'customers', ['customer_phone'])
    op.create_index('idx_customers_cycle_end_date', 'customers', ['cycle_end_date'])

    # ========================================================================
    # Create recharges table (append-only audit log)
    # ========================================================================
    op.create_table(
        'recharges',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('customer_id', UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('generated_customer_id', sa.String(32), nullable=False),
        sa.Column('previous_plan_id', sa.String(64), nullable=True),
        sa.Column('plan_id', sa.String(64), nullable=False),
        sa.Column('plan_name', sa.String(255), nullable=False),
        sa.Column('plan_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('plan_duration_days', sa.Integer(), nullable=False),
        sa.Column('mode', sa.String(10), nullable=False),
        sa.Column('payment_method', sa.String(50), nullable=False),
        sa.Column('cycle_start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('cycle_end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('recharged_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint('cycle_end_date >= cycle_start_date', name='ck_recharge_cycle_order'),
        sa.CheckConstraint("mode IN ('replace', 'add')", name='ck_recharge_mode'),
    )
    op.create_index('idx_recharges_customer_recharged_at', 'recharges', ['customer_id', 'recharged_at'])

    # ========================================================================
    # Create service_jobs table
    # ========================================================================
    op.create_table(
        'service_jobs',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('customer_id', UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('generated_customer_id', sa.String(32), nullable=False),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('customer_phone', sa.String(10), nullable=False),
        sa.Column('customer_address', sa.Text(), nullable=True),
        sa.Column('confirmed_map_link', sa.Text(), nullable=True),
        sa.Column('problem_description', sa.Text(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='Open'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint("status IN ('Open', 'Resolved')", name='ck_service_job_status'),
    )
    op.create_index('idx_service_jobs_status_created_at', 'service_jobs', ['status', 'created_at'])
    op.create_index('idx_service_jobs_customer_id', 'service_jobs', ['customer_id'])

    # ========================================================================
    # Create service_job_logs table
    # ========================================================================
    op.create_table(
        'service_job_logs',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('job_id', UUID(as_uuid=True), sa.ForeignKey('service_jobs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('details', JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('idx_service_job_logs_job_id', 'service_job_logs', ['job_id'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('service_job_logs')
    op.drop_table('service_jobs')
    op.drop_table('recharges')
    op.drop_table('customers')
    op.drop_table('plans')
