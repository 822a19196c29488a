from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class InvoiceStatus(str, Enum):
    open = "open"
    closed = "closed"
    paid = "paid"
    overdue = "overdue"


class GoalCategory(str, Enum):
    emergency = "emergency"
    travel = "travel"
    car = "car"
    house = "house"
    education = "education"
    retirement = "retirement"
    other = "other"


class FeedbackType(str, Enum):
    bug = "bug"
    suggestion = "suggestion"
    improvement = "improvement"
    other = "other"


class FeedbackStatus(str, Enum):
    pending = "pending"
    in_review = "in_review"
    resolved = "resolved"
    closed = "closed"


class InvestmentType(str, Enum):
    stock = "stock"
    fii = "fii"
    etf = "etf"
    crypto = "crypto"
    cdb = "cdb"
    treasury = "treasury"
    lci_lca = "lci_lca"
    savings = "savings"
    other = "other"


class OperationType(str, Enum):
    buy = "buy"
    sell = "sell"


QUOTABLE_INVESTMENT_TYPES = (
    InvestmentType.stock,
    InvestmentType.fii,
    InvestmentType.etf,
    InvestmentType.crypto,
)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[Optional[str]] = mapped_column(String(120))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    reset_tokens: Mapped[list["PasswordResetToken"]] = relationship(
        "PasswordResetToken", back_populates="user", cascade="all, delete-orphan"
    )


class PasswordResetToken(Base, TimestampMixin):
    __tablename__ = "password_reset_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    user: Mapped["User"] = relationship("User", back_populates="reset_tokens")

    __table_args__ = (Index("ix_reset_tokens_user_used", "user_id", "used_at"),)


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # NULL marks a system default shared by every user.
    user_id: Mapped[Optional[int]] = mapped_column(Integer)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    icon: Mapped[str] = mapped_column(String(50), nullable=False, default="Tag")
    color: Mapped[str] = mapped_column(String(9), nullable=False, default="#64748B")
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "type", "name", name="uq_category_user_type_name"),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_type_date", "user_id", "type", "date"),
        CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )


class RecurringExpense(Base, TimestampMixin):
    __tablename__ = "recurring_expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    due_day: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_launched_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("due_day BETWEEN 1 AND 31", name="ck_recurring_due_day"),
        CheckConstraint("amount_cents > 0", name="ck_recurring_amount_positive"),
        Index("ix_recurring_user_active", "user_id", "active"),
    )


class FinancialGoal(Base, TimestampMixin):
    __tablename__ = "financial_goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[GoalCategory] = mapped_column(SAEnum(GoalCategory), nullable=False)
    target_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    current_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    target_date: Mapped[Optional[date]] = mapped_column(Date)
    icon: Mapped[Optional[str]] = mapped_column(String(50))
    color: Mapped[str] = mapped_column(String(9), nullable=False, default="#8B5CF6")
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    contributions: Mapped[list["GoalContribution"]] = relationship(
        "GoalContribution",
        back_populates="goal",
        cascade="all, delete-orphan",
        order_by="desc(GoalContribution.date)",
    )

    __table_args__ = (
        CheckConstraint("target_cents > 0", name="ck_goal_target_positive"),
        CheckConstraint("current_cents >= 0", name="ck_goal_current_non_negative"),
    )


class GoalContribution(Base, TimestampMixin):
    __tablename__ = "goal_contributions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    goal_id: Mapped[int] = mapped_column(
        ForeignKey("financial_goals.id", ondelete="CASCADE"), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    goal: Mapped["FinancialGoal"] = relationship(
        "FinancialGoal", back_populates="contributions"
    )

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_contribution_amount_positive"),
    )


class CreditCard(Base, TimestampMixin):
    __tablename__ = "credit_cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_digits: Mapped[Optional[str]] = mapped_column(String(4))
    limit_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    closing_day: Mapped[int] = mapped_column(Integer, nullable=False)
    due_day: Mapped[int] = mapped_column(Integer, nullable=False)
    color: Mapped[str] = mapped_column(String(9), nullable=False, default="#8B5CF6")
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    invoices: Mapped[list["Invoice"]] = relationship(
        "Invoice",
        back_populates="card",
        cascade="all, delete-orphan",
        order_by="[desc(Invoice.year), desc(Invoice.month)]",
    )


class Invoice(Base, TimestampMixin):
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    card_id: Mapped[int] = mapped_column(
        ForeignKey("credit_cards.id", ondelete="CASCADE"), nullable=False
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    closing_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        SAEnum(InvoiceStatus), nullable=False, default=InvoiceStatus.open
    )
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    paid_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    card: Mapped["CreditCard"] = relationship("CreditCard", back_populates="invoices")
    purchases: Mapped[list["Purchase"]] = relationship(
        "Purchase",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="desc(Purchase.date)",
    )

    __table_args__ = (
        UniqueConstraint("card_id", "month", "year", name="uq_invoice_card_period"),
    )


class Purchase(Base, TimestampMixin):
    __tablename__ = "purchases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_id: Mapped[int] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    installments: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_installment: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    parent_purchase_id: Mapped[Optional[str]] = mapped_column(String(64))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="purchases")

    __table_args__ = (
        Index("ix_purchases_parent", "parent_purchase_id"),
        Index("ix_purchases_invoice_date", "invoice_id", "date"),
    )


class TransactionTemplate(Base, TimestampMixin):
    __tablename__ = "transaction_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[Optional[int]] = mapped_column(Integer)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    limit_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    # month=0 and year=0 mark a fixed budget that applies to every month.
    month: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    year: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("limit_cents >= 0", name="ck_budget_limit_positive"),
        UniqueConstraint(
            "user_id", "category", "month", "year", name="uq_budget_user_category_period"
        ),
    )


class Feedback(Base, TimestampMixin):
    __tablename__ = "feedbacks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    type: Mapped[FeedbackType] = mapped_column(SAEnum(FeedbackType), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    attachments: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[FeedbackStatus] = mapped_column(
        SAEnum(FeedbackStatus), nullable=False, default=FeedbackStatus.pending
    )

    user: Mapped["User"] = relationship("User")

    __table_args__ = (Index("ix_feedbacks_status_type", "status", "type"),)


class Investment(Base, TimestampMixin):
    __tablename__ = "investments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[InvestmentType] = mapped_column(SAEnum(InvestmentType), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    ticker: Mapped[Optional[str]] = mapped_column(String(20))
    institution: Mapped[Optional[str]] = mapped_column(String(120))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    average_price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_invested_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_value_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    profit_loss_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    profit_loss_percent: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    quote_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    operations: Mapped[list["InvestmentOperation"]] = relationship(
        "InvestmentOperation",
        back_populates="investment",
        cascade="all, delete-orphan",
        order_by="[desc(InvestmentOperation.date), desc(InvestmentOperation.id)]",
    )


class InvestmentOperation(Base, TimestampMixin):
    __tablename__ = "investment_operations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    investment_id: Mapped[int] = mapped_column(
        ForeignKey("investments.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[OperationType] = mapped_column(SAEnum(OperationType), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    fees_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    investment: Mapped["Investment"] = relationship(
        "Investment", back_populates="operations"
    )

    __table_args__ = (
        Index("ix_investment_operations_investment_date", "investment_id", "date"),
        CheckConstraint("price_cents > 0", name="ck_operation_price_positive"),
        CheckConstraint("quantity > 0", name="ck_operation_quantity_positive"),
    )
