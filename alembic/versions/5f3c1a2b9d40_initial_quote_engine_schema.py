"""initial quote engine schema

Revision ID: 5f3c1a2b9d40
Revises:
Create Date: 2026-10-19 09:12:41.503118

Operators, customers, referral partners, store settings, proposal drafts,
contracts and contract installments. Idempotent: tables already created by
Base.metadata.create_all() are skipped.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '5f3c1a2b9d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PAYMENT_METHODS = ("CREDIT_CARD", "BANK_SLIP", "PIX", "CASH", "CHEQUE", "FINANCING")
DRAFT_STATUSES = ("DRAFT", "FINALIZED")


def _table_exists(table_name):
    """Check if a table exists."""
    bind = op.get_bind()
    insp = inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    if not _table_exists("operators"):
        op.create_table(
            "operators",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("name", sa.String(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )

    if not _table_exists("customers"):
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("phone", sa.String(), nullable=True),
            sa.Column("email", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists("partners"):
        op.create_table(
            "partners",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("default_commission_pct", sa.Float(), nullable=True),
            sa.Column("pix_key", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists("store_settings"):
        op.create_table(
            "store_settings",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("markup_percent", sa.Float(), nullable=True),
            sa.Column("interest_rate_monthly", sa.Float(), nullable=True),
            sa.Column("max_discount_percent", sa.Float(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists("contracts"):
        op.create_table(
            "contracts",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("contract_number", sa.String(), nullable=False),
            sa.Column("client_id", sa.Integer(), nullable=False),
            sa.Column("operator_id", sa.Integer(), nullable=True),
            sa.Column("status", sa.String(), nullable=True),
            sa.Column("environments_json", sa.JSON(), nullable=False),
            sa.Column("proposal_total", sa.Float(), nullable=True),
            sa.Column("discount_value", sa.Float(), nullable=True),
            sa.Column("final_value", sa.Float(), nullable=True),
            sa.Column("referral_party_id", sa.Integer(), nullable=True),
            sa.Column("referral_percent", sa.Float(), nullable=True),
            sa.Column("referral_payout", sa.Float(), nullable=True),
            sa.Column("financing_cost", sa.Float(), nullable=True),
            sa.Column("net_commission_base", sa.Float(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["client_id"], ["customers.id"]),
            sa.ForeignKeyConstraint(["operator_id"], ["operators.id"]),
            sa.ForeignKeyConstraint(["referral_party_id"], ["partners.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("contract_number"),
        )

    if not _table_exists("contract_installments"):
        op.create_table(
            "contract_installments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("contract_id", sa.Integer(), nullable=False),
            sa.Column("sequence", sa.Integer(), nullable=True),
            sa.Column("label", sa.String(), nullable=True),
            sa.Column("method", sa.Enum(*PAYMENT_METHODS, name="paymentmethod"), nullable=False),
            sa.Column("due_date", sa.Date(), nullable=False),
            sa.Column("amount", sa.Float(), nullable=False),
            sa.Column("status", sa.String(), nullable=True),
            sa.ForeignKeyConstraint(["contract_id"], ["contracts.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    if not _table_exists("proposal_drafts"):
        op.create_table(
            "proposal_drafts",
            sa.Column("id", sa.String(), nullable=False),
            sa.Column("operator_id", sa.Integer(), nullable=True),
            sa.Column("status", sa.Enum(*DRAFT_STATUSES, name="draftstatus"), nullable=True),
            sa.Column("draft_json", sa.JSON(), nullable=True),
            sa.Column("contract_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["operator_id"], ["operators.id"]),
            sa.ForeignKeyConstraint(["contract_id"], ["contracts.id"]),
            sa.PrimaryKeyConstraint("id"),
        )


def downgrade() -> None:
    for table_name in ["proposal_drafts", "contract_installments", "contracts",
                       "store_settings", "partners", "customers", "operators"]:
        if _table_exists(table_name):
            op.drop_table(table_name)
