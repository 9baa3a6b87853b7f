"""add device readings and uninstallations

Revision ID: 2026_10_18_0001
Revises: 2026_10_18_0000
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID


# revision identifiers, used by Alembic.
revision: str = '2026_10_18_0001'
down_revision: Union[str, None] = '2026_10_18_0000'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create device_readings, uninstallations and uninstallation_logs tables."""

    # ========================================================================
    # Create device_readings table
    # ========================================================================
    op.create_table(
        'device_readings',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('customer_id', UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('generated_customer_id', sa.String(32), nullable=False),
        sa.Column('source', sa.String(20), nullable=False),
        sa.Column('payload', JSONB(), nullable=False),
        sa.Column('device_timestamp', sa.DateTime(timezone=True), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint("source IN ('direct', 'calculated')", name='ck_device_reading_source'),
    )
    op.create_index(
        'idx_device_readings_customer_received_at',
        'device_readings',
        ['generated_customer_id', 'received_at'],
    )

    # ========================================================================
    # Create uninstallations table
    # ========================================================================
    op.create_table(
        'uninstallations',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('customer_id', UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('generated_customer_id', sa.String(32), nullable=False),
        sa.Column('scheduled_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('equipment_condition', sa.Text(), nullable=False),
        sa.Column('equipment_photos', JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('deduction_details', sa.Text(), nullable=True),
        sa.Column('deductions', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('refund_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('refund_method', sa.String(20), nullable=False),
        sa.Column('bank_name', sa.String(255), nullable=True),
        sa.Column('bank_account_number', sa.String(34), nullable=True),
        sa.Column('bank_ifsc_code', sa.String(11), nullable=True),
        sa.Column('internal_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint('deductions >= 0', name='ck_uninstallation_deductions_non_negative'),
        sa.CheckConstraint('refund_amount >= 0', name='ck_uninstallation_refund_non_negative'),
        sa.CheckConstraint(
            "refund_method IN ('Bank Transfer', 'Cash', 'Other')",
            name='ck_uninstallation_refund_method',
        ),
    )
    op.create_index('idx_uninstallations_customer_id', 'uninstallations', ['customer_id'])
    op.create_index('idx_uninstallations_created_at', 'uninstallations', ['created_at'])

    # ========================================================================
    # Create uninstallation_logs table
    # ========================================================================
    op.create_table(
        'uninstallation_logs',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('uninstallation_id', UUID(as_uuid=True), sa.ForeignKey('uninstallations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('generated_customer_id', sa.String(32), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('details', JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index(
        'idx_uninstallation_logs_uninstallation_id',
        'uninstallation_logs',
        ['uninstallation_id'],
    )


def downgrade() -> None:
    """Drop device reading and uninstallation tables."""
    op.drop_table('uninstallation_logs')
    op.drop_table('uninstallations')
    op.drop_table('device_readings')
