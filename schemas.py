import datetime as dt
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import (
    FeedbackStatus,
    FeedbackType,
    GoalCategory,
    InvestmentType,
    InvoiceStatus,
    OperationType,
    TransactionType,
)

HEX_COLOR = r"^#[0-9A-Fa-f]{6}([0-9A-Fa-f]{2})?$"


class RegisterIn(BaseModel):
    email: str = Field(..., pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$", max_length=255)
    password: str = Field(..., min_length=1, max_length=200)
    name: Optional[str] = Field(default=None, max_length=120)


class LoginIn(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=200)


class ForgotPasswordIn(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)


class ResetPasswordIn(BaseModel):
    token: str = Field(..., min_length=1, max_length=128)
    password: str = Field(..., min_length=1, max_length=200)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: Optional[str]


class TransactionIn(BaseModel):
    type: TransactionType
    amount_cents: int = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    date: date


class TransactionUpdate(BaseModel):
    type: Optional[TransactionType] = None
    amount_cents: Optional[int] = Field(default=None, gt=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    date: Optional[dt.date] = None


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: TransactionType
    amount_cents: int
    category: str
    description: Optional[str]
    date: date
    created_at: datetime
    updated_at: datetime


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    icon: str = Field(..., min_length=1, max_length=50)
    color: str = Field(..., pattern=HEX_COLOR)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    icon: Optional[str] = Field(default=None, min_length=1, max_length=50)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type: TransactionType
    icon: str
    color: str
    is_default: bool


class BudgetIn(BaseModel):
    category: str = Field(..., min_length=1, max_length=100)
    limit_cents: int = Field(..., ge=0)
    month: Optional[int] = Field(default=None, ge=1, le=12)
    year: Optional[int] = Field(default=None, ge=1970, le=3000)
    is_fixed: bool = False


class BudgetUpdate(BaseModel):
    limit_cents: int = Field(..., ge=0)


class BudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: str
    limit_cents: int
    month: int
    year: int


class CardIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    last_digits: Optional[str] = Field(default=None, pattern=r"^\d{4}$")
    limit_cents: int = Field(default=0, ge=0)
    closing_day: int = Field(..., ge=1, le=31)
    due_day: int = Field(..., ge=1, le=31)
    color: str = Field(default="#8B5CF6", pattern=HEX_COLOR)


class CardUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_digits: Optional[str] = Field(default=None, pattern=r"^\d{4}$")
    limit_cents: Optional[int] = Field(default=None, ge=0)
    closing_day: Optional[int] = Field(default=None, ge=1, le=31)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    active: Optional[bool] = None


class PurchaseIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=180)
    amount_cents: int = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=100)
    date: date
    installments: int = Field(default=1, ge=1, le=48)
    notes: Optional[str] = Field(default=None, max_length=500)


class InvoiceUpdate(BaseModel):
    status: Optional[InvoiceStatus] = None
    paid_amount_cents: Optional[int] = Field(default=None, ge=0)


class PurchaseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    description: str
    amount_cents: int
    total_amount_cents: int
    category: str
    date: date
    installments: int
    current_installment: int
    parent_purchase_id: Optional[str]
    notes: Optional[str]


class InvoiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    card_id: int
    month: int
    year: int
    closing_date: date
    due_date: date
    status: InvoiceStatus
    total_cents: int
    paid_cents: int
    purchases: list[PurchaseOut] = Field(default_factory=list)


class CardOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    last_digits: Optional[str]
    limit_cents: int
    closing_day: int
    due_day: int
    color: str
    active: bool
    created_at: datetime
    invoices: list[InvoiceOut] = Field(default_factory=list)


class GoalIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = Field(default=None, max_length=500)
    category: GoalCategory
    target_cents: int = Field(..., gt=0)
    current_cents: int = Field(default=0, ge=0)
    target_date: Optional[date] = None
    icon: Optional[str] = Field(default=None, max_length=50)
    color: str = Field(default="#8B5CF6", pattern=HEX_COLOR)


class GoalUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[GoalCategory] = None
    target_cents: Optional[int] = Field(default=None, gt=0)
    target_date: Optional[date] = None
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)


class ContributionIn(BaseModel):
    amount_cents: int
    date: Optional[dt.date] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class ContributionRemoveIn(BaseModel):
    contribution_id: int


class ContributionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    goal_id: int
    amount_cents: int
    date: date
    notes: Optional[str]


class GoalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    category: GoalCategory
    target_cents: int
    current_cents: int
    target_date: Optional[date]
    icon: Optional[str]
    color: str
    completed: bool
    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    contributions: list[ContributionOut] = Field(default_factory=list)


class RecurringExpenseIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    amount_cents: int = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=100)
    due_day: int = Field(default=1, ge=1, le=31)
    notes: Optional[str] = Field(default=None, max_length=500)


class RecurringExpenseUpdate(BaseModel):
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount_cents: Optional[int] = Field(default=None, gt=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    active: Optional[bool] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class RecurringExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    amount_cents: int
    category: str
    due_day: int
    active: bool
    last_launched_at: Optional[datetime]
    notes: Optional[str]


class RecurringExpenseStatusOut(RecurringExpenseOut):
    launched_this_month: bool
    due_date: date
    past_due: bool


class LaunchIn(BaseModel):
    expense_ids: list[int] = Field(default_factory=list)


class TemplateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    category: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    amount_cents: Optional[int] = Field(default=None, ge=0)


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[TransactionType] = None
    amount_cents: Optional[int] = Field(default=None, ge=0)


class TemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    category: str
    type: TransactionType
    amount_cents: Optional[int]
    usage_count: int
    created_at: datetime
    updated_at: datetime


class FeedbackIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: FeedbackType
    description: str = Field(..., min_length=10, max_length=5000)
    attachments: list[str] = Field(default_factory=list, max_length=5)


class FeedbackStatusIn(BaseModel):
    status: FeedbackStatus


class FeedbackUserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: Optional[str]
    email: str


class FeedbackOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: FeedbackType
    description: str
    attachments: list[str]
    status: FeedbackStatus
    created_at: datetime
    updated_at: datetime


class AdminFeedbackOut(FeedbackOut):
    user: FeedbackUserOut


class InvestmentIn(BaseModel):
    type: InvestmentType
    name: str = Field(..., min_length=1, max_length=120)
    ticker: Optional[str] = Field(default=None, max_length=20)
    institution: Optional[str] = Field(default=None, max_length=120)
    notes: Optional[str] = Field(default=None, max_length=500)
    quantity: float = Field(default=0, ge=0)
    average_price_cents: int = Field(default=0, ge=0)
    initial_deposit_cents: Optional[int] = Field(default=None, ge=100)


class InvestmentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    ticker: Optional[str] = Field(default=None, max_length=20)
    institution: Optional[str] = Field(default=None, max_length=120)
    notes: Optional[str] = Field(default=None, max_length=500)
    current_price_cents: Optional[int] = Field(default=None, ge=0)


class InvestmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: InvestmentType
    name: str
    ticker: Optional[str]
    institution: Optional[str]
    notes: Optional[str]
    quantity: float
    average_price_cents: int
    current_price_cents: int
    total_invested_cents: int
    current_value_cents: int
    profit_loss_cents: int
    profit_loss_percent: float
    quote_updated_at: Optional[datetime]


class OperationIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: OperationType
    # Fixed income operations move a single lot; price_cents is the amount.
    quantity: float = Field(default=1, gt=0)
    price_cents: int = Field(..., gt=0)
    fees_cents: int = Field(default=0, ge=0)
    date: date
    notes: Optional[str] = Field(default=None, max_length=500)
    skip_balance_check: bool = False


class OperationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    investment_id: int
    type: OperationType
    quantity: float
    price_cents: int
    fees_cents: int
    total_cents: int
    date: dt.date
    notes: Optional[str]
