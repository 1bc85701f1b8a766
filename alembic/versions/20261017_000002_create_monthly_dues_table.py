"""Create monthly_dues table

Revision ID: 20261017_000002
Revises: 20261017_000001
Create Date: 2026-10-17

Rent obligations per flat. Building-generated dues are unique per
(flat_id, due_date) through a filtered index.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '20261017_000002'
down_revision: Union[str, None] = '20261017_000001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DUE_STATUSES = ('UNPAID', 'PARTIALLY_PAID', 'PAID', 'OVERDUE', 'CANCELLED')
DUE_SOURCES = ('CONTRACT', 'BUILDING', 'AD_HOC')
BUILDING_ONLY = sa.text("source = 'BUILDING'")


def upgrade() -> None:
    """Create the monthly_dues table."""
    op.create_table(
        'monthly_dues',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('flat_id', sa.Integer(), nullable=False),
        sa.Column('contract_id', sa.Integer(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('due_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('base_rent', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('additional_charges', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('additional_charges_description', sa.String(length=500), nullable=True),
        sa.Column('paid_amount', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column(
            'status',
            sa.Enum(*DUE_STATUSES, name='due_status', create_constraint=True),
            nullable=False,
            server_default='UNPAID'
        ),
        sa.Column(
            'source',
            sa.Enum(*DUE_SOURCES, name='due_source', create_constraint=True),
            nullable=False,
            server_default='CONTRACT'
        ),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['flat_id'],
            ['flats.id'],
            name='fk_monthly_dues_flat_id',
            ondelete='NO ACTION'
        ),
        sa.ForeignKeyConstraint(
            ['contract_id'],
            ['contracts.id'],
            name='fk_monthly_dues_contract_id',
            ondelete='NO ACTION'
        ),
        sa.CheckConstraint(
            'paid_amount >= 0 AND paid_amount <= due_amount',
            name='ck_monthly_dues_paid_amount'
        ),
    )

    op.create_index('ix_monthly_dues_flat_id', 'monthly_dues', ['flat_id'])
    op.create_index('ix_monthly_dues_contract_id', 'monthly_dues', ['contract_id'])
    op.create_index('ix_monthly_dues_due_date', 'monthly_dues', ['due_date'])
    op.create_index('ix_monthly_dues_status', 'monthly_dues', ['status'])
    op.create_index(
        'ux_monthly_dues_building_flat_date',
        'monthly_dues',
        ['flat_id', 'due_date'],
        unique=True,
        mssql_where=BUILDING_ONLY,
        postgresql_where=BUILDING_ONLY,
        sqlite_where=BUILDING_ONLY,
    )


def downgrade() -> None:
    """Drop the monthly_dues table."""
    op.drop_index('ux_monthly_dues_building_flat_date', table_name='monthly_dues')
    op.drop_index('ix_monthly_dues_status', table_name='monthly_dues')
    op.drop_index('ix_monthly_dues_due_date', table_name='monthly_dues')
    op.drop_index('ix_monthly_dues_contract_id', table_name='monthly_dues')
    op.drop_index('ix_monthly_dues_flat_id', table_name='monthly_dues')
    op.drop_table('monthly_dues')
