"""Create payments and payment_allocations tables

Revision ID: 20261017_000003
Revises: 20261017_000002
Create Date: 2026-10-17

Payments per flat, and the share of each payment applied to each due.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '20261017_000003'
down_revision: Union[str, None] = '20261017_000002'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PAYMENT_METHODS = (
    "CASH", "BANK_TRANSFER", "CREDIT_CARD", "DEBIT_CARD", "CHECK", "ONLINE_PAYMENT", "OTHER",
)


def upgrade() -> None:
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("flat_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("payment_date", sa.DateTime(), nullable=False),
        sa.Column(
            "payment_method",
            sa.Enum(*PAYMENT_METHODS, name="payment_method", create_constraint=True),
            nullable=False,
            server_default="CASH",
        ),
        sa.Column("reference_number", sa.String(100), nullable=True),
        sa.Column("receipt_number", sa.String(100), nullable=True),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("recorded_by_id", sa.Integer(), nullable=True),
        sa.Column("recorded_by", sa.String(100), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["flat_id"],
            ["flats.id"],
            name="fk_payments_flat_id",
            ondelete="NO ACTION",
        ),
        sa.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
    )
    op.create_index("ix_payments_flat_id", "payments", ["flat_id"])
    op.create_index("ix_payments_payment_date", "payments", ["payment_date"])

    op.create_table(
        "payment_allocations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("payment_id", sa.Integer(), nullable=False),
        sa.Column("due_id", sa.Integer(), nullable=False),
        sa.Column("amount_applied", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["payment_id"],
            ["payments.id"],
            name="fk_payment_allocations_payment_id",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["due_id"],
            ["monthly_dues.id"],
            name="fk_payment_allocations_due_id",
            ondelete="NO ACTION",
        ),
        sa.CheckConstraint("amount_applied > 0", name="ck_payment_allocations_amount_positive"),
    )
    op.create_index("ix_payment_allocations_payment_id", "payment_allocations", ["payment_id"])
    op.create_index("ix_payment_allocations_due_id", "payment_allocations", ["due_id"])


def downgrade() -> None:
    op.drop_index("ix_payment_allocations_due_id", table_name="payment_allocations")
    op.drop_index("ix_payment_allocations_payment_id", table_name="payment_allocations")
    op.drop_table("payment_allocations")
    op.drop_index("ix_payments_payment_date", table_name="payments")
    op.drop_index("ix_payments_flat_id", table_name="payments")
    op.drop_table("payments")
