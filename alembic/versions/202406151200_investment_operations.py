"""investment buy/sell operations

Revision ID: 202406151200
Revises: 202406011200
Create Date: 2024-06-15 12:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202406151200"
down_revision = "202406011200"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "investment_operations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "investment_id",
            sa.Integer(),
            sa.ForeignKey("investments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.Enum("buy", "sell", name="operationtype"), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("fees_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("price_cents > 0", name="ck_operation_price_positive"),
        sa.CheckConstraint("quantity > 0", name="ck_operation_quantity_positive"),
    )
    op.create_index(
        "ix_investment_operations_investment_date",
        "investment_operations",
        ["investment_id", "date"],
    )


def downgrade():
    op.drop_index(
        "ix_investment_operations_investment_date", table_name="investment_operations"
    )
    op.drop_table("investment_operations")
