"""household records ledger

Revision ID: 202410190900
Revises:
Create Date: 2024-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202410190900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "household_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("record_date", sa.Date(), nullable=False),
        sa.Column("income_expense", sa.Text(), nullable=False, server_default=""),
        sa.Column("payment_method", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("person", sa.Text(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("location", sa.Text(), nullable=False, server_default=""),
        sa.Column("memo", sa.Text(), nullable=False, server_default=""),
        sa.Column("year_month", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_household_records_amount_positive"),
    )
    op.create_index(
        "ix_household_records_year_month", "household_records", ["year_month"]
    )
    op.create_index(
        "ix_household_records_year_month_flow",
        "household_records",
        ["year_month", "income_expense"],
    )


def downgrade():
    op.drop_index("ix_household_records_year_month_flow", table_name="household_records")
    op.drop_index("ix_household_records_year_month", table_name="household_records")
    op.drop_table("household_records")
