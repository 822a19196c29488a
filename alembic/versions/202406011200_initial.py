"""initial schema

Revision ID: 202406011200
Revises:
Create Date: 2024-06-01 12:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202406011200"
down_revision = None
branch_labels = None
depends_on = None


TRANSACTION_TYPE = sa.Enum("income", "expense", name="transactiontype")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("name", sa.String(length=120)),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "password_reset_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("token", sa.String(length=128), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("used_at", sa.DateTime()),
        *_timestamps(),
    )
    op.create_index(
        "ix_reset_tokens_user_used", "password_reset_tokens", ["user_id", "used_at"]
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer()),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", TRANSACTION_TYPE, nullable=False),
        sa.Column("icon", sa.String(length=50), nullable=False),
        sa.Column("color", sa.String(length=9), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "type", "name", name="uq_category_user_type_name"),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column("type", TRANSACTION_TYPE, nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text()),
        *_timestamps(),
        sa.CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    op.create_index(
        "ix_transactions_user_type_date", "transactions", ["user_id", "type", "date"]
    )

    op.create_table(
        "recurring_expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=200), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("due_day", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_launched_at", sa.DateTime()),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
        sa.CheckConstraint("due_day BETWEEN 1 AND 31", name="ck_recurring_due_day"),
        sa.CheckConstraint("amount_cents > 0", name="ck_recurring_amount_positive"),
    )
    op.create_index(
        "ix_recurring_user_active", "recurring_expenses", ["user_id", "active"]
    )

    op.create_table(
        "financial_goals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column(
            "category",
            sa.Enum(
                "emergency",
                "travel",
                "car",
                "house",
                "education",
                "retirement",
                "other",
                name="goalcategory",
            ),
            nullable=False,
        ),
        sa.Column("target_cents", sa.Integer(), nullable=False),
        sa.Column("current_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("target_date", sa.Date()),
        sa.Column("icon", sa.String(length=50)),
        sa.Column("color", sa.String(length=9), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime()),
        *_timestamps(),
        sa.CheckConstraint("target_cents > 0", name="ck_goal_target_positive"),
        sa.CheckConstraint("current_cents >= 0", name="ck_goal_current_non_negative"),
    )

    op.create_table(
        "goal_contributions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "goal_id",
            sa.Integer(),
            sa.ForeignKey("financial_goals.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
        sa.CheckConstraint("amount_cents > 0", name="ck_contribution_amount_positive"),
    )

    op.create_table(
        "credit_cards",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("last_digits", sa.String(length=4)),
        sa.Column("limit_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("closing_day", sa.Integer(), nullable=False),
        sa.Column("due_day", sa.Integer(), nullable=False),
        sa.Column("color", sa.String(length=9), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "card_id",
            sa.Integer(),
            sa.ForeignKey("credit_cards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("closing_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("open", "closed", "paid", "overdue", name="invoicestatus"),
            nullable=False,
        ),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("paid_cents", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("card_id", "month", "year", name="uq_invoice_card_period"),
    )

    op.create_table(
        "purchases",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "invoice_id",
            sa.Integer(),
            sa.ForeignKey("invoices.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("description", sa.String(length=200), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("installments", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "current_installment", sa.Integer(), nullable=False, server_default="1"
        ),
        sa.Column("parent_purchase_id", sa.String(length=64)),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
    )
    op.create_index("ix_purchases_parent", "purchases", ["parent_purchase_id"])
    op.create_index("ix_purchases_invoice_date", "purchases", ["invoice_id", "date"])

    op.create_table(
        "transaction_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("type", TRANSACTION_TYPE, nullable=False),
        sa.Column("amount_cents", sa.Integer()),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )

    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("limit_cents", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("year", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("limit_cents >= 0", name="ck_budget_limit_positive"),
        sa.UniqueConstraint(
            "user_id", "category", "month", "year", name="uq_budget_user_category_period"
        ),
    )

    op.create_table(
        "feedbacks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "type",
            sa.Enum("bug", "suggestion", "improvement", "other", name="feedbacktype"),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("attachments", sa.JSON(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "pending", "in_review", "resolved", "closed", name="feedbackstatus"
            ),
            nullable=False,
        ),
        *_timestamps(),
    )
    op.create_index("ix_feedbacks_status_type", "feedbacks", ["status", "type"])

    op.create_table(
        "investments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "type",
            sa.Enum(
                "stock",
                "fii",
                "etf",
                "crypto",
                "cdb",
                "treasury",
                "lci_lca",
                "savings",
                "other",
                name="investmenttype",
            ),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("ticker", sa.String(length=20)),
        sa.Column("institution", sa.String(length=120)),
        sa.Column("notes", sa.Text()),
        sa.Column("quantity", sa.Float(), nullable=False, server_default="0"),
        sa.Column("average_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_invested_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_value_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("profit_loss_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("profit_loss_percent", sa.Float(), nullable=False, server_default="0"),
        sa.Column("quote_updated_at", sa.DateTime()),
        *_timestamps(),
    )


def downgrade():
    op.drop_table("investments")
    op.drop_index("ix_feedbacks_status_type", table_name="feedbacks")
    op.drop_table("feedbacks")
    op.drop_table("budgets")
    op.drop_table("transaction_templates")
    op.drop_index("ix_purchases_invoice_date", table_name="purchases")
    op.drop_index("ix_purchases_parent", table_name="purchases")
    op.drop_table("purchases")
    op.drop_table("invoices")
    op.drop_table("credit_cards")
    op.drop_table("goal_contributions")
    op.drop_table("financial_goals")
    op.drop_index("ix_recurring_user_active", table_name="recurring_expenses")
    op.drop_table("recurring_expenses")
    op.drop_index("ix_transactions_user_type_date", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("categories")
    op.drop_index("ix_reset_tokens_user_used", table_name="password_reset_tokens")
    op.drop_table("password_reset_tokens")
    op.drop_table("users")
