from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from errors import NotFoundError, PermissionDenied, ValidationError
from models import (
    Budget,
    Category,
    CreditCard,
    Feedback,
    FeedbackStatus,
    FeedbackType,
    FinancialGoal,
    GoalCategory,
    GoalContribution,
    Investment,
    InvestmentOperation,
    InvestmentType,
    Invoice,
    InvoiceStatus,
    OperationType,
    Purchase,
    QUOTABLE_INVESTMENT_TYPES,
    RecurringExpense,
    Transaction,
    TransactionTemplate,
    TransactionType,
)
from periods import Period, days_in_month, local_now, local_today, month_end, shift_month
from quotes import Quote, QuoteService
from recurrence import RecurringLauncher, effective_due_date, launched_in_month
from schemas import (
    BudgetIn,
    BudgetUpdate,
    CardIn,
    CardUpdate,
    CategoryIn,
    CategoryUpdate,
    ContributionIn,
    FeedbackIn,
    GoalIn,
    GoalUpdate,
    InvestmentIn,
    InvestmentUpdate,
    InvoiceUpdate,
    OperationIn,
    PurchaseIn,
    RecurringExpenseIn,
    RecurringExpenseUpdate,
    TemplateIn,
    TemplateUpdate,
    TransactionIn,
    TransactionUpdate,
)

logger = logging.getLogger(__name__)

INVOICE_PAYMENT_CATEGORY = "Fatura Cartão"
INVESTMENT_CATEGORY = "Investimento"

PT_MONTH_NAMES = (
    "janeiro",
    "fevereiro",
    "março",
    "abril",
    "maio",
    "junho",
    "julho",
    "agosto",
    "setembro",
    "outubro",
    "novembro",
    "dezembro",
)

DEFAULT_CATEGORIES: dict[TransactionType, list[tuple[str, str, str]]] = {
    TransactionType.expense: [
        ("Aluguel", "Home", "#8B5CF6"),
        ("Supermercado", "ShoppingCart", "#F59E0B"),
        ("Restaurante", "UtensilsCrossed", "#EC4899"),
        ("Delivery", "Bike", "#EF4444"),
        ("Transporte", "Car", "#3B82F6"),
        ("Luz", "Lightbulb", "#10B981"),
        ("Água", "Droplets", "#06B6D4"),
        ("Internet", "Wifi", "#6366F1"),
        ("Streaming", "Play", "#A855F7"),
        ("Lazer", "Gamepad2", "#F97316"),
        ("Saúde", "Heart", "#14B8A6"),
        ("Educação", "GraduationCap", "#8B5CF6"),
        ("Roupas", "Shirt", "#E879F9"),
        ("Pix", "ArrowLeftRight", "#32BCAD"),
        (INVOICE_PAYMENT_CATEGORY, "CreditCard", "#7C3AED"),
        ("Outros", "MoreHorizontal", "#64748B"),
    ],
    TransactionType.income: [
        ("Salário", "Wallet", "#22C55E"),
        ("Freelance", "Laptop", "#84CC16"),
        ("Investimentos", "TrendingUp", "#0EA5E9"),
        ("Dividendos", "CircleDollarSign", "#10B981"),
        ("Pix", "ArrowLeftRight", "#32BCAD"),
        ("Outros", "MoreHorizontal", "#64748B"),
    ],
}

FIXED_INCOME_TYPES = (
    InvestmentType.cdb,
    InvestmentType.treasury,
    InvestmentType.lci_lca,
    InvestmentType.savings,
    InvestmentType.other,
)

EMERGENCY_WINDOW_MONTHS = 6
EMERGENCY_RESERVE_MONTHS = 6


def month_label_pt(year: int, month: int) -> str:
    return f"{PT_MONTH_NAMES[month - 1]} de {year}"


def round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent(part: int, whole: int) -> float:
    return (part / whole * 100) if whole > 0 else 0.0


def check_owner(obj, user_id: int, label: str):
    """Missing rows are 404, rows owned by someone else are 403."""
    if obj is None:
        raise NotFoundError(f"{label} not found")
    if obj.user_id != user_id:
        raise PermissionDenied(f"{label} belongs to another user")
    return obj


@dataclass
class Page:
    items: list
    page: int
    page_size: int
    total: int


def paginate(session: Session, stmt, page: int, page_size: int) -> Page:
    total = session.scalar(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    )
    items = session.scalars(
        stmt.offset((page - 1) * page_size).limit(page_size)
    ).all()
    return Page(items=list(items), page=page, page_size=page_size, total=total or 0)


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    category: Optional[str] = None


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _stmt(self, filters: TransactionFilters, period: Period):
        stmt = (
            select(Transaction)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.date.between(period.start, period.end),
            )
            .order_by(
                Transaction.date.desc(),
                Transaction.occurred_at.desc(),
                Transaction.id.desc(),
            )
        )
        if filters.type:
            stmt = stmt.where(Transaction.type == filters.type)
        if filters.category:
            stmt = stmt.where(Transaction.category == filters.category)
        return stmt

    def list(
        self, filters: TransactionFilters, period: Period
    ) -> list[Transaction]:
        return self.session.scalars(self._stmt(filters, period)).all()

    def page(
        self, filters: TransactionFilters, period: Period, page: int, page_size: int
    ) -> Page:
        return paginate(self.session, self._stmt(filters, period), page, page_size)

    def create(self, data: TransactionIn) -> Transaction:
        txn = Transaction(
            user_id=self.user_id,
            date=data.date,
            occurred_at=datetime.combine(data.date, local_now().time()),
            type=data.type,
            amount_cents=data.amount_cents,
            category=data.category.strip(),
            description=data.description,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        return check_owner(txn, self.user_id, "Transaction")

    def update(self, transaction_id: int, data: TransactionUpdate) -> Transaction:
        txn = self.get(transaction_id)
        changes = data.model_dump(exclude_unset=True)
        for field in ("type", "amount_cents", "category", "date"):
            if field in changes and changes[field] is None:
                raise ValidationError(f"{field} cannot be null")
        for field, value in changes.items():
            setattr(txn, field, value)
        if "date" in changes:
            txn.occurred_at = datetime.combine(txn.date, txn.occurred_at.time())
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()


class CategoryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def ensure_defaults(self) -> None:
        existing = {
            (c.type, c.name)
            for c in self.session.scalars(
                select(Category).where(Category.user_id.is_(None))
            )
        }
        added = 0
        for cat_type, entries in DEFAULT_CATEGORIES.items():
            for name, icon, color in entries:
                if (cat_type, name) in existing:
                    continue
                self.session.add(
                    Category(
                        user_id=None,
                        name=name,
                        type=cat_type,
                        icon=icon,
                        color=color,
                        is_default=True,
                    )
                )
                added += 1
        if added:
            self.session.commit()
            logger.info(f"default_categories_seeded: count={added}")

    def list_all(self, type: Optional[TransactionType] = None) -> list[Category]:
        self.ensure_defaults()
        stmt = (
            select(Category)
            .where(or_(Category.user_id.is_(None), Category.user_id == self.user_id))
            .order_by(Category.is_default.desc(), Category.type, Category.name)
        )
        if type:
            stmt = stmt.where(Category.type == type)
        return self.session.scalars(stmt).all()

    def _name_taken(
        self, name: str, cat_type: TransactionType, exclude_id: Optional[int] = None
    ) -> Optional[str]:
        if any(n == name for n, _i, _c in DEFAULT_CATEGORIES[cat_type]):
            return "A default category with this name already exists"
        stmt = select(Category).where(
            Category.user_id == self.user_id,
            Category.type == cat_type,
            Category.name == name,
        )
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        if self.session.scalar(stmt):
            return "A category with this name already exists"
        return None

    def create(self, data: CategoryIn) -> Category:
        name = data.name.strip()
        conflict = self._name_taken(name, data.type)
        if conflict:
            raise ValidationError(conflict)
        category = Category(
            user_id=self.user_id,
            name=name,
            type=data.type,
            icon=data.icon,
            color=data.color,
            is_default=False,
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def _editable(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category not found")
        if category.is_default or category.user_id is None:
            raise ValidationError("Default categories cannot be changed")
        return check_owner(category, self.user_id, "Category")

    def update(self, category_id: int, data: CategoryUpdate) -> Category:
        category = self._editable(category_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("name") is not None:
            name = changes["name"].strip()
            conflict = self._name_taken(name, category.type, exclude_id=category.id)
            if conflict:
                raise ValidationError(conflict)
            changes["name"] = name
        for field, value in changes.items():
            if value is not None:
                setattr(category, field, value)
        self.session.commit()
        self.session.refresh(category)
        return category

    def delete(self, category_id: int) -> None:
        category = self._editable(category_id)
        in_use = self.session.scalar(
            select(func.count(Transaction.id)).where(
                Transaction.user_id == self.user_id,
                Transaction.type == category.type,
                Transaction.category == category.name,
            )
        )
        if in_use:
            raise ValidationError(
                f"Category is used by {in_use} transaction(s) and cannot be deleted"
            )
        self.session.delete(category)
        self.session.commit()


class BudgetService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def spent_by_category(self, year: int, month: int) -> dict[str, int]:
        start = date(year, month, 1)
        end = month_end(year, month)
        spent: dict[str, int] = {}

        txn_rows = self.session.execute(
            select(Transaction.category, func.sum(Transaction.amount_cents))
            .where(
                Transaction.user_id == self.user_id,
                Transaction.type == TransactionType.expense,
                # Card spending is counted from purchases, not the invoice payment.
                Transaction.category != INVOICE_PAYMENT_CATEGORY,
                Transaction.date.between(start, end),
            )
            .group_by(Transaction.category)
        ).all()
        purchase_rows = self.session.execute(
            select(Purchase.category, func.sum(Purchase.amount_cents))
            .join(Invoice, Purchase.invoice_id == Invoice.id)
            .join(CreditCard, Invoice.card_id == CreditCard.id)
            .where(
                CreditCard.user_id == self.user_id,
                Purchase.date.between(start, end),
            )
            .group_by(Purchase.category)
        ).all()
        for category, total in [*txn_rows, *purchase_rows]:
            spent[category] = spent.get(category, 0) + int(total or 0)
        return spent

    def list_for_month(self, year: int, month: int) -> dict[str, object]:
        budgets = self.session.scalars(
            select(Budget)
            .where(
                Budget.user_id == self.user_id,
                or_(
                    (Budget.month == 0) & (Budget.year == 0),
                    (Budget.month == month) & (Budget.year == year),
                ),
            )
            .order_by(Budget.category, Budget.year)
        ).all()
        spent_by_category = self.spent_by_category(year, month)

        rows = []
        for budget in budgets:
            spent = spent_by_category.get(budget.category, 0)
            rows.append(
                {
                    "id": budget.id,
                    "category": budget.category,
                    "limit_cents": budget.limit_cents,
                    "month": budget.month,
                    "year": budget.year,
                    "is_fixed": budget.month == 0 and budget.year == 0,
                    "spent_cents": spent,
                    "percentage": percent(spent, budget.limit_cents),
                    "remaining_cents": budget.limit_cents - spent,
                }
            )

        total_limit = sum(r["limit_cents"] for r in rows)
        total_spent = sum(r["spent_cents"] for r in rows)
        return {
            "budgets": rows,
            "summary": {
                "total_limit_cents": total_limit,
                "total_spent_cents": total_spent,
                "total_remaining_cents": total_limit - total_spent,
                "total_percentage": percent(total_spent, total_limit),
            },
            "month": month,
            "year": year,
        }

    def upsert(self, data: BudgetIn, today: Optional[date] = None) -> Budget:
        today = today or local_now().date()
        if data.is_fixed:
            month, year = 0, 0
        else:
            month = data.month or today.month
            year = data.year or today.year
        category = data.category.strip()

        budget = self.session.scalar(
            select(Budget).where(
                Budget.user_id == self.user_id,
                Budget.category == category,
                Budget.month == month,
                Budget.year == year,
            )
        )
        if budget:
            budget.limit_cents = data.limit_cents
        else:
            budget = Budget(
                user_id=self.user_id,
                category=category,
                limit_cents=data.limit_cents,
                month=month,
                year=year,
            )
            self.session.add(budget)
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def get(self, budget_id: int) -> Budget:
        return check_owner(self.session.get(Budget, budget_id), self.user_id, "Budget")

    def update(self, budget_id: int, data: BudgetUpdate) -> Budget:
        budget = self.get(budget_id)
        budget.limit_cents = data.limit_cents
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def delete(self, budget_id: int) -> None:
        budget = self.get(budget_id)
        self.session.delete(budget)
        self.session.commit()


def invoice_period(purchase_date: date, closing_day: int, due_day: int) -> tuple[int, int]:
    """(year, month) of the invoice due date a purchase on this day lands in."""
    year, month = purchase_date.year, purchase_date.month
    if purchase_date.day > closing_day:
        year, month = shift_month(year, month, 1)
    if due_day <= closing_day:
        year, month = shift_month(year, month, 1)
    return year, month


def invoice_dates(
    year: int, month: int, closing_day: int, due_day: int
) -> tuple[date, date]:
    due = date(year, month, min(due_day, days_in_month(year, month)))
    closing_year, closing_month = year, month
    if due_day <= closing_day:
        closing_year, closing_month = shift_month(year, month, -1)
    closing = date(
        closing_year,
        closing_month,
        min(closing_day, days_in_month(closing_year, closing_month)),
    )
    return closing, due


def add_months(d: date, count: int) -> date:
    year, month = shift_month(d.year, d.month, count)
    return date(year, month, min(d.day, days_in_month(year, month)))


def split_cents(amount_cents: int, parts: int) -> list[int]:
    base, remainder = divmod(amount_cents, parts)
    return [base + (1 if i < remainder else 0) for i in range(parts)]


def recompute_invoice_total(invoice: Invoice) -> int:
    invoice.total_cents = sum(p.amount_cents for p in invoice.purchases)
    return invoice.total_cents


class CardService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_active(self) -> list[CreditCard]:
        stmt = (
            select(CreditCard)
            .options(selectinload(CreditCard.invoices).selectinload(Invoice.purchases))
            .where(CreditCard.user_id == self.user_id, CreditCard.active.is_(True))
            .order_by(CreditCard.created_at.desc(), CreditCard.id.desc())
        )
        return self.session.scalars(stmt).all()

    def get(self, card_id: int) -> CreditCard:
        card = self.session.get(CreditCard, card_id)
        return check_owner(card, self.user_id, "Card")

    def create(self, data: CardIn) -> CreditCard:
        card = CreditCard(user_id=self.user_id, **data.model_dump())
        self.session.add(card)
        self.session.commit()
        self.session.refresh(card)
        return card

    def update(self, card_id: int, data: CardUpdate) -> CreditCard:
        card = self.get(card_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field not in ("last_digits",):
                continue
            setattr(card, field, value)
        self.session.commit()
        self.session.refresh(card)
        return card

    def delete(self, card_id: int) -> None:
        card = self.get(card_id)
        self.session.delete(card)
        self.session.commit()
        logger.info(f"card_deleted: user_id={self.user_id} card_id={card_id}")

    def used_limit(self, card: CreditCard) -> int:
        return sum(
            inv.total_cents - inv.paid_cents
            for inv in card.invoices
            if inv.status in (InvoiceStatus.open, InvoiceStatus.closed)
        )

    def _get_or_create_invoice(self, card: CreditCard, year: int, month: int) -> Invoice:
        for invoice in card.invoices:
            if invoice.year == year and invoice.month == month:
                return invoice
        closing, due = invoice_dates(year, month, card.closing_day, card.due_day)
        invoice = Invoice(
            month=month,
            year=year,
            closing_date=closing,
            due_date=due,
            status=InvoiceStatus.open,
            total_cents=0,
            paid_cents=0,
        )
        card.invoices.append(invoice)
        return invoice

    def add_purchase(self, card_id: int, data: PurchaseIn) -> list[Purchase]:
        card = self.get(card_id)
        available = card.limit_cents - self.used_limit(card)
        if data.amount_cents > available:
            raise ValidationError(
                "Purchase exceeds the available limit",
                details=[
                    {
                        "field": "amount_cents",
                        "available_limit_cents": available,
                        "requested_cents": data.amount_cents,
                    }
                ],
            )

        count = data.installments
        parent_id = uuid.uuid4().hex if count > 1 else None
        created: list[Purchase] = []
        touched: dict[int, Invoice] = {}
        for index, amount in enumerate(split_cents(data.amount_cents, count)):
            installment_date = add_months(data.date, index)
            year, month = invoice_period(
                installment_date, card.closing_day, card.due_day
            )
            invoice = self._get_or_create_invoice(card, year, month)
            description = data.description.strip()
            if count > 1:
                description = f"{description} ({index + 1}/{count})"
            purchase = Purchase(
                description=description,
                amount_cents=amount,
                total_amount_cents=data.amount_cents,
                category=data.category.strip(),
                date=data.date,
                installments=count,
                current_installment=index + 1,
                parent_purchase_id=parent_id,
                notes=data.notes,
            )
            invoice.purchases.append(purchase)
            touched[id(invoice)] = invoice
            created.append(purchase)

        for invoice in touched.values():
            recompute_invoice_total(invoice)
        self.session.commit()
        for purchase in created:
            self.session.refresh(purchase)
        logger.info(
            f"purchase_added: user_id={self.user_id} card_id={card.id} "
            f"installments={count} amount_cents={data.amount_cents}"
        )
        return created

    def delete_purchase(self, purchase_id: int) -> int:
        purchase = self.session.get(Purchase, purchase_id)
        if purchase is None:
            raise NotFoundError("Purchase not found")
        if purchase.invoice.card.user_id != self.user_id:
            raise PermissionDenied("Purchase belongs to another user")

        if purchase.parent_purchase_id:
            group = self.session.scalars(
                select(Purchase).where(
                    Purchase.parent_purchase_id == purchase.parent_purchase_id
                )
            ).all()
        else:
            group = [purchase]

        invoices: dict[int, Invoice] = {}
        for member in group:
            invoice = member.invoice
            invoice.purchases.remove(member)
            invoices[invoice.id] = invoice
        for invoice in invoices.values():
            recompute_invoice_total(invoice)
        self.session.commit()
        logger.info(
            f"purchase_deleted: user_id={self.user_id} purchase_id={purchase_id} "
            f"removed={len(group)}"
        )
        return len(group)

    def update_invoice(
        self, card_id: int, invoice_id: int, data: InvoiceUpdate
    ) -> tuple[Invoice, Optional[Transaction]]:
        card = self.get(card_id)
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None or invoice.card_id != card.id:
            raise NotFoundError("Invoice not found")

        supplied = data.paid_amount_cents
        if supplied is not None and supplied > invoice.total_cents:
            raise ValidationError(
                "Paid amount cannot exceed the invoice total",
                details=[{"field": "paid_amount_cents", "total_cents": invoice.total_cents}],
            )

        payment = 0
        if data.status == InvoiceStatus.paid:
            payment = invoice.total_cents - invoice.paid_cents
            invoice.paid_cents = invoice.total_cents
        elif supplied is not None and supplied > invoice.paid_cents:
            payment = supplied - invoice.paid_cents
            invoice.paid_cents = supplied
        if data.status is not None:
            invoice.status = data.status

        txn = None
        if payment > 0:
            now = local_now()
            txn = Transaction(
                user_id=self.user_id,
                date=now.date(),
                occurred_at=now,
                type=TransactionType.expense,
                amount_cents=payment,
                category=INVOICE_PAYMENT_CATEGORY,
                description=(
                    f"Fatura {card.name} - {month_label_pt(invoice.year, invoice.month)}"
                ),
            )
            self.session.add(txn)

        self.session.commit()
        self.session.refresh(invoice)
        if txn is not None:
            self.session.refresh(txn)
        logger.info(
            f"invoice_updated: user_id={self.user_id} invoice_id={invoice.id} "
            f"status={invoice.status.value} payment_cents={payment}"
        )
        return invoice, txn


def recompute_goal(goal: FinancialGoal, now: datetime) -> None:
    goal.current_cents = max(sum(c.amount_cents for c in goal.contributions), 0)
    was_completed = goal.completed
    goal.completed = goal.current_cents >= goal.target_cents
    if goal.completed and not was_completed:
        goal.completed_at = now


class GoalService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[FinancialGoal]:
        stmt = (
            select(FinancialGoal)
            .where(FinancialGoal.user_id == self.user_id)
            .order_by(
                FinancialGoal.completed.asc(),
                FinancialGoal.target_date.is_(None),
                FinancialGoal.target_date,
                FinancialGoal.id,
            )
        )
        return self.session.scalars(stmt).all()

    def get(self, goal_id: int) -> FinancialGoal:
        goal = self.session.get(FinancialGoal, goal_id)
        return check_owner(goal, self.user_id, "Goal")

    def create(self, data: GoalIn, now: Optional[datetime] = None) -> FinancialGoal:
        now = now or local_now()
        fields = data.model_dump(exclude={"current_cents"})
        goal = FinancialGoal(user_id=self.user_id, current_cents=0, **fields)
        # A starting balance is kept as a contribution so the total stays derivable.
        if data.current_cents > 0:
            goal.contributions.append(
                GoalContribution(
                    amount_cents=data.current_cents,
                    date=now.date(),
                    notes="Initial amount",
                )
            )
        recompute_goal(goal, now)
        self.session.add(goal)
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def update(
        self, goal_id: int, data: GoalUpdate, now: Optional[datetime] = None
    ) -> FinancialGoal:
        goal = self.get(goal_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field in ("name", "category", "target_cents", "color"):
                continue
            setattr(goal, field, value)
        recompute_goal(goal, now or local_now())
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def delete(self, goal_id: int) -> None:
        goal = self.get(goal_id)
        self.session.delete(goal)
        self.session.commit()

    def add_contribution(
        self, goal_id: int, data: ContributionIn, now: Optional[datetime] = None
    ) -> tuple[GoalContribution, FinancialGoal]:
        if data.amount_cents <= 0:
            raise ValidationError(
                "Contribution amount must be greater than zero",
                details=[{"field": "amount_cents", "code": "not_positive"}],
            )
        now = now or local_now()
        goal = self.get(goal_id)
        contribution = GoalContribution(
            amount_cents=data.amount_cents,
            date=data.date or now.date(),
            notes=data.notes,
        )
        goal.contributions.append(contribution)
        recompute_goal(goal, now)
        self.session.commit()
        self.session.refresh(contribution)
        logger.info(
            f"goal_contribution_added: goal_id={goal.id} "
            f"amount_cents={data.amount_cents} current_cents={goal.current_cents}"
        )
        return contribution, goal

    def remove_contribution(
        self, goal_id: int, contribution_id: int, now: Optional[datetime] = None
    ) -> FinancialGoal:
        goal = self.get(goal_id)
        contribution = self.session.get(GoalContribution, contribution_id)
        if contribution is None or contribution.goal_id != goal.id:
            raise NotFoundError("Contribution not found")
        goal.contributions.remove(contribution)
        recompute_goal(goal, now or local_now())
        self.session.commit()
        logger.info(
            f"goal_contribution_removed: goal_id={goal.id} "
            f"contribution_id={contribution_id} current_cents={goal.current_cents}"
        )
        return goal

    def emergency_suggestion(self, now: Optional[datetime] = None) -> dict[str, object]:
        now = now or local_now()
        start_year, start_month = shift_month(now.year, now.month, -EMERGENCY_WINDOW_MONTHS)
        window_start = date(start_year, start_month, 1)

        txn_total = int(
            self.session.scalar(
                select(func.coalesce(func.sum(Transaction.amount_cents), 0)).where(
                    Transaction.user_id == self.user_id,
                    Transaction.type == TransactionType.expense,
                    Transaction.date >= window_start,
                )
            )
            or 0
        )
        purchase_total = int(
            self.session.scalar(
                select(func.coalesce(func.sum(Purchase.amount_cents), 0))
                .join(Invoice, Purchase.invoice_id == Invoice.id)
                .join(CreditCard, Invoice.card_id == CreditCard.id)
                .where(
                    CreditCard.user_id == self.user_id,
                    Purchase.date >= window_start,
                )
            )
            or 0
        )
        recurring_total = int(
            self.session.scalar(
                select(func.coalesce(func.sum(RecurringExpense.amount_cents), 0)).where(
                    RecurringExpense.user_id == self.user_id,
                    RecurringExpense.active.is_(True),
                )
            )
            or 0
        )

        months = (now.year - window_start.year) * 12 + (now.month - window_start.month) + 1
        months = max(1, min(months, EMERGENCY_WINDOW_MONTHS))
        average = round_cents(Decimal(txn_total + purchase_total) / Decimal(months))
        estimated = max(average, recurring_total)

        existing = self.session.scalar(
            select(FinancialGoal)
            .where(
                FinancialGoal.user_id == self.user_id,
                FinancialGoal.category == GoalCategory.emergency,
            )
            .order_by(FinancialGoal.id)
        )
        return {
            "average_monthly_expenses_cents": average,
            "recurring_expenses_cents": recurring_total,
            "estimated_monthly_expenses_cents": estimated,
            "suggested_target_cents": estimated * EMERGENCY_RESERVE_MONTHS,
            "months_analyzed": months,
            "existing_goal": (
                {
                    "id": existing.id,
                    "current_cents": existing.current_cents,
                    "target_cents": existing.target_cents,
                }
                if existing
                else None
            ),
            "breakdown": {
                "transaction_expenses_cents": txn_total,
                "card_purchases_cents": purchase_total,
                "recurring_monthly_cents": recurring_total,
            },
        }


class RecurringExpenseService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_with_status(self, now: Optional[datetime] = None) -> dict[str, object]:
        now = now or local_now()
        expenses = self.session.scalars(
            select(RecurringExpense)
            .where(RecurringExpense.user_id == self.user_id)
            .order_by(
                RecurringExpense.active.desc(),
                RecurringExpense.due_day,
                RecurringExpense.id,
            )
        ).all()

        items = []
        for expense in expenses:
            launched = launched_in_month(expense, now)
            items.append(
                {
                    "expense": expense,
                    "launched_this_month": launched,
                    "due_date": effective_due_date(expense.due_day, now.year, now.month),
                    "past_due": now.day > expense.due_day and not launched,
                }
            )

        active = [i for i in items if i["expense"].active]
        launched_items = [i for i in active if i["launched_this_month"]]
        pending_items = [i for i in active if not i["launched_this_month"]]
        return {
            "items": items,
            "summary": {
                "total_monthly_cents": sum(i["expense"].amount_cents for i in active),
                "total_launched_cents": sum(
                    i["expense"].amount_cents for i in launched_items
                ),
                "total_pending_cents": sum(
                    i["expense"].amount_cents for i in pending_items
                ),
                "launched_count": len(launched_items),
                "pending_count": len(pending_items),
                "total_count": len(active),
            },
            "current_month": now.month,
            "current_year": now.year,
        }

    def get(self, expense_id: int) -> RecurringExpense:
        expense = self.session.get(RecurringExpense, expense_id)
        return check_owner(expense, self.user_id, "Recurring expense")

    def create(self, data: RecurringExpenseIn) -> RecurringExpense:
        expense = RecurringExpense(
            user_id=self.user_id,
            description=data.description.strip(),
            amount_cents=data.amount_cents,
            category=data.category.strip(),
            due_day=data.due_day,
            notes=data.notes,
            active=True,
        )
        self.session.add(expense)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def update(self, expense_id: int, data: RecurringExpenseUpdate) -> RecurringExpense:
        expense = self.get(expense_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field != "notes":
                continue
            setattr(expense, field, value)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def delete(self, expense_id: int) -> None:
        expense = self.get(expense_id)
        self.session.delete(expense)
        self.session.commit()

    def launch(
        self, expense_ids: Optional[Iterable[int]] = None, now: Optional[datetime] = None
    ) -> dict[str, object]:
        launcher = RecurringLauncher(self.session, self.user_id)
        created = launcher.launch(expense_ids, now)
        if created:
            message = f"{len(created)} expense(s) launched"
        else:
            message = "No pending expenses to launch this month"
        return {"launched": len(created), "transactions": created, "message": message}


class TemplateService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[TransactionTemplate]:
        stmt = (
            select(TransactionTemplate)
            .where(TransactionTemplate.user_id == self.user_id)
            .order_by(
                TransactionTemplate.usage_count.desc(),
                TransactionTemplate.updated_at.desc(),
                TransactionTemplate.id.desc(),
            )
        )
        return self.session.scalars(stmt).all()

    def get(self, template_id: int) -> TransactionTemplate:
        tmpl = self.session.get(TransactionTemplate, template_id)
        return check_owner(tmpl, self.user_id, "Template")

    def create(self, data: TemplateIn) -> TransactionTemplate:
        tmpl = TransactionTemplate(
            user_id=self.user_id,
            name=data.name.strip(),
            description=data.description,
            category=data.category.strip(),
            type=data.type,
            amount_cents=data.amount_cents,
            usage_count=0,
        )
        self.session.add(tmpl)
        self.session.commit()
        self.session.refresh(tmpl)
        return tmpl

    def update(self, template_id: int, data: TemplateUpdate) -> TransactionTemplate:
        tmpl = self.get(template_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field in ("name", "category", "type"):
                continue
            setattr(tmpl, field, value)
        self.session.commit()
        self.session.refresh(tmpl)
        return tmpl

    def delete(self, template_id: int) -> None:
        tmpl = self.get(template_id)
        self.session.delete(tmpl)
        self.session.commit()

    def use(self, template_id: int) -> TransactionTemplate:
        tmpl = self.get(template_id)
        tmpl.usage_count = TransactionTemplate.usage_count + 1
        tmpl.updated_at = datetime.utcnow()
        self.session.commit()
        self.session.refresh(tmpl)
        return tmpl


class FeedbackService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _stmt(self):
        return (
            select(Feedback)
            .where(Feedback.user_id == self.user_id)
            .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        )

    def list_all(self) -> list[Feedback]:
        return self.session.scalars(self._stmt()).all()

    def page(self, page: int, page_size: int) -> Page:
        return paginate(self.session, self._stmt(), page, page_size)

    def create(self, data: FeedbackIn) -> Feedback:
        feedback = Feedback(
            user_id=self.user_id,
            type=data.type,
            description=data.description.strip(),
            attachments=list(data.attachments),
            status=FeedbackStatus.pending,
        )
        self.session.add(feedback)
        self.session.commit()
        self.session.refresh(feedback)
        logger.info(
            f"feedback_created: user_id={self.user_id} feedback_id={feedback.id} "
            f"type={feedback.type.value}"
        )
        return feedback


class AdminFeedbackService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def page(
        self,
        page: int,
        page_size: int,
        status: Optional[FeedbackStatus] = None,
        type: Optional[FeedbackType] = None,
    ) -> Page:
        stmt = (
            select(Feedback)
            .options(selectinload(Feedback.user))
            .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        )
        if status:
            stmt = stmt.where(Feedback.status == status)
        if type:
            stmt = stmt.where(Feedback.type == type)
        return paginate(self.session, stmt, page, page_size)

    def get(self, feedback_id: int) -> Feedback:
        feedback = self.session.get(Feedback, feedback_id)
        if feedback is None:
            raise NotFoundError("Feedback not found")
        return feedback

    def update_status(self, feedback_id: int, status: FeedbackStatus) -> Feedback:
        feedback = self.get(feedback_id)
        feedback.status = status
        self.session.commit()
        self.session.refresh(feedback)
        logger.info(f"feedback_status: feedback_id={feedback_id} status={status.value}")
        return feedback

    def delete(self, feedback_id: int) -> None:
        feedback = self.get(feedback_id)
        self.session.delete(feedback)
        self.session.commit()


def revalue_investment(investment: Investment, price_cents: int) -> None:
    investment.current_price_cents = price_cents
    investment.current_value_cents = round_cents(
        Decimal(str(investment.quantity)) * Decimal(price_cents)
    )
    investment.profit_loss_cents = (
        investment.current_value_cents - investment.total_invested_cents
    )
    investment.profit_loss_percent = percent(
        investment.profit_loss_cents, investment.total_invested_cents
    )


def account_balance(session: Session, user_id: int) -> int:
    """All-time income minus expenses."""
    rows = session.execute(
        select(Transaction.type, func.sum(Transaction.amount_cents))
        .where(Transaction.user_id == user_id)
        .group_by(Transaction.type)
    )
    totals = {t: int(v or 0) for t, v in rows}
    return totals.get(TransactionType.income, 0) - totals.get(TransactionType.expense, 0)


def apply_fixed_income_operation(
    investment: Investment, op_type: OperationType, total: int
) -> None:
    # Fixed income is tracked as one lot whose price is the whole balance.
    invested = investment.total_invested_cents
    value = investment.current_value_cents
    if op_type == OperationType.buy:
        invested += total
        value += total
    else:
        if value > 0:
            redeemed = round_cents(Decimal(invested) * Decimal(total) / Decimal(value))
            invested = max(0, invested - redeemed)
        value = max(0, value - total)
    investment.quantity = 1
    investment.total_invested_cents = invested
    investment.average_price_cents = invested
    revalue_investment(investment, value)


def apply_variable_income_operation(
    investment: Investment,
    op_type: OperationType,
    quantity: float,
    total: int,
    price_cents: int,
) -> None:
    if op_type == OperationType.buy:
        new_quantity = investment.quantity + quantity
        invested = investment.total_invested_cents + total
    else:
        # Selling keeps the average price; invested shrinks by the sold cost basis.
        new_quantity = max(0.0, investment.quantity - quantity)
        sold_cost = round_cents(
            Decimal(str(quantity)) * Decimal(investment.average_price_cents)
        )
        invested = max(0, investment.total_invested_cents - sold_cost)
    investment.quantity = new_quantity
    investment.total_invested_cents = invested
    investment.average_price_cents = (
        round_cents(Decimal(invested) / Decimal(str(new_quantity))) if new_quantity > 0 else 0
    )
    revalue_investment(investment, investment.current_price_cents or price_cents)


class InvestmentService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[Investment]:
        stmt = (
            select(Investment)
            .where(Investment.user_id == self.user_id)
            .order_by(Investment.type, Investment.name)
        )
        return self.session.scalars(stmt).all()

    def get(self, investment_id: int) -> Investment:
        investment = self.session.get(Investment, investment_id)
        return check_owner(investment, self.user_id, "Investment")

    def create(self, data: InvestmentIn) -> Investment:
        ticker = data.ticker.strip().upper() if data.ticker else None
        investment = Investment(
            user_id=self.user_id,
            type=data.type,
            name=data.name.strip(),
            ticker=ticker or None,
            institution=data.institution,
            notes=data.notes,
        )
        if data.type in FIXED_INCOME_TYPES:
            if data.initial_deposit_cents is None:
                raise ValidationError(
                    "Initial deposit of at least 1.00 is required",
                    details=[{"field": "initial_deposit_cents", "code": "required"}],
                )
            deposit = data.initial_deposit_cents
            investment.quantity = 1
            investment.average_price_cents = deposit
            investment.total_invested_cents = deposit
        else:
            investment.quantity = data.quantity
            investment.average_price_cents = data.average_price_cents
            investment.total_invested_cents = round_cents(
                Decimal(str(data.quantity)) * Decimal(data.average_price_cents)
            )
        revalue_investment(investment, investment.average_price_cents)
        self.session.add(investment)
        self.session.commit()
        self.session.refresh(investment)
        return investment

    def update(self, investment_id: int, data: InvestmentUpdate) -> Investment:
        investment = self.get(investment_id)
        changes = data.model_dump(exclude_unset=True)
        price = changes.pop("current_price_cents", None)
        if "ticker" in changes and changes["ticker"]:
            changes["ticker"] = changes["ticker"].strip().upper()
        for field, value in changes.items():
            if value is None and field == "name":
                continue
            setattr(investment, field, value)
        if price is not None:
            revalue_investment(investment, price)
        self.session.commit()
        self.session.refresh(investment)
        return investment

    def delete(self, investment_id: int) -> None:
        investment = self.get(investment_id)
        self.session.delete(investment)
        self.session.commit()

    def list_operations(self, investment_id: int) -> list[InvestmentOperation]:
        return list(self.get(investment_id).operations)

    def add_operation(
        self, investment_id: int, data: OperationIn, today: Optional[date] = None
    ) -> tuple[InvestmentOperation, Investment]:
        investment = self.get(investment_id)
        today = today or local_today()
        if data.date > today:
            raise ValidationError(
                "Operation date cannot be in the future",
                details=[{"field": "date", "code": "future"}],
            )
        last_date = max((op.date for op in investment.operations), default=None)
        if last_date is not None and data.date < last_date:
            raise ValidationError(
                f"Operation date cannot be before {last_date.isoformat()} (last operation)",
                details=[{"field": "date", "code": "before_last_operation"}],
            )

        fixed = investment.type in FIXED_INCOME_TYPES
        quantity = 1 if fixed else data.quantity
        gross = round_cents(Decimal(str(quantity)) * Decimal(data.price_cents))
        total = gross + data.fees_cents

        if data.type == OperationType.sell:
            if fixed and data.price_cents > investment.current_value_cents:
                raise ValidationError(
                    "Withdrawal exceeds the current balance",
                    details=[
                        {
                            "field": "price_cents",
                            "code": "exceeds_balance",
                            "available_cents": investment.current_value_cents,
                        }
                    ],
                )
            if not fixed and quantity > investment.quantity:
                raise ValidationError(
                    f"Quantity ({quantity:g}) exceeds the available {investment.quantity:g}",
                    details=[
                        {
                            "field": "quantity",
                            "code": "exceeds_quantity",
                            "available": investment.quantity,
                        }
                    ],
                )
        elif not data.skip_balance_check:
            available = account_balance(self.session, self.user_id)
            if available < total:
                raise ValidationError(
                    "Insufficient balance",
                    details=[
                        {
                            "field": "price_cents",
                            "code": "INSUFFICIENT_BALANCE",
                            "available_balance_cents": available,
                            "required_cents": total,
                        }
                    ],
                )

        operation = InvestmentOperation(
            investment=investment,
            type=data.type,
            quantity=quantity,
            price_cents=data.price_cents,
            fees_cents=data.fees_cents,
            total_cents=total,
            date=data.date,
            notes=data.notes,
        )
        self.session.add(operation)
        self._record_cash_movement(investment, data, total, gross, fixed)

        if fixed:
            apply_fixed_income_operation(investment, data.type, total)
        else:
            apply_variable_income_operation(
                investment, data.type, quantity, total, data.price_cents
            )
        self.session.commit()
        self.session.refresh(operation)
        self.session.refresh(investment)
        logger.info(
            f"investment_operation: investment_id={investment.id} type={data.type.value} "
            f"total_cents={total}"
        )
        return operation, investment

    def _record_cash_movement(
        self, investment: Investment, data: OperationIn, total: int, gross: int, fixed: bool
    ) -> None:
        if data.type == OperationType.buy:
            if data.skip_balance_check:
                return
            txn_type, amount = TransactionType.expense, total
            label = "Depósito" if fixed else "Compra"
        else:
            txn_type, amount = TransactionType.income, gross
            label = "Resgate" if fixed else "Venda"
        self.session.add(
            Transaction(
                user_id=self.user_id,
                date=data.date,
                occurred_at=datetime.combine(data.date, time(12, 0)),
                type=txn_type,
                amount_cents=amount,
                category=INVESTMENT_CATEGORY,
                description=f"{label}: {investment.name}",
            )
        )


class QuoteRefreshService:
    """Refreshes prices of every quotable investment that carries a ticker."""

    def __init__(self, session: Session, quotes: Optional[QuoteService] = None) -> None:
        self.session = session
        self.quotes = quotes or QuoteService()

    def _quotable(self) -> list[Investment]:
        stmt = (
            select(Investment)
            .where(
                Investment.ticker.is_not(None),
                Investment.type.in_(QUOTABLE_INVESTMENT_TYPES),
            )
            .order_by(Investment.id)
        )
        return self.session.scalars(stmt).all()

    def _fetch(self, investments: list[Investment]) -> dict[str, Quote]:
        return self.quotes.fetch((inv.ticker, inv.type.value) for inv in investments)

    def refresh(self) -> dict[str, object]:
        investments = self._quotable()
        if not investments:
            return {
                "message": "No investments to update",
                "updated": 0,
                "updated_tickers": [],
                "errors": [],
            }

        quotes = self._fetch(investments)
        now = datetime.utcnow()
        updated: list[str] = []
        errors: list[dict[str, str]] = []
        for investment in investments:
            quote = quotes.get(investment.ticker.upper())
            if quote is None or not quote.ok:
                errors.append(
                    {
                        "ticker": investment.ticker,
                        "error": quote.error if quote else "Quote not found",
                    }
                )
                continue
            revalue_investment(investment, quote.price_cents)
            investment.quote_updated_at = now
            updated.append(investment.ticker)
        self.session.commit()
        logger.info(f"quotes_refresh: updated={len(updated)} errors={len(errors)}")
        return {
            "message": f"{len(updated)} quote(s) updated",
            "updated": len(updated),
            "updated_tickers": updated,
            "errors": errors,
        }

    def preview(self) -> list[dict[str, object]]:
        investments = self._quotable()
        if not investments:
            return []
        quotes = self._fetch(investments)
        rows = []
        for investment in investments:
            quote = quotes.get(investment.ticker.upper())
            rows.append(
                {
                    "id": investment.id,
                    "ticker": investment.ticker,
                    "name": investment.name,
                    "old_price_cents": investment.current_price_cents,
                    "new_price_cents": quote.price_cents if quote and quote.ok else None,
                    "change_percent": quote.change_percent if quote else None,
                    "error": None if quote and quote.ok else (
                        quote.error if quote else "Quote not found"
                    ),
                }
            )
        return rows


class BillsCalendarService:
    """Recurring expenses and card invoices due this month, plus a short cash flow outlook."""

    PROJECTION_MONTHS = 3

    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _bills(self, recurring, cards, now: datetime) -> list[dict[str, object]]:
        today = now.date()
        bills = []
        for expense in recurring:
            launched = launched_in_month(expense, now)
            due = effective_due_date(expense.due_day, today.year, today.month)
            bills.append(
                {
                    "id": expense.id,
                    "type": "recurring",
                    "description": expense.description,
                    "amount_cents": expense.amount_cents,
                    "category": expense.category,
                    "due_date": due,
                    "day": due.day,
                    "is_paid": launched,
                    "is_past_due": today > due and not launched,
                }
            )
        for card in cards:
            invoice = next(
                (i for i in card.invoices if (i.year, i.month) == (today.year, today.month)),
                None,
            )
            if invoice is None or invoice.total_cents <= 0:
                continue
            paid = (
                invoice.status == InvoiceStatus.paid
                or invoice.paid_cents >= invoice.total_cents
            )
            bills.append(
                {
                    "id": invoice.id,
                    "type": "invoice",
                    "description": f"Fatura {card.name}",
                    "amount_cents": invoice.total_cents - invoice.paid_cents,
                    "category": INVOICE_PAYMENT_CATEGORY,
                    "due_date": invoice.due_date,
                    "day": invoice.due_date.day,
                    "is_paid": paid,
                    "is_past_due": today > invoice.due_date and not paid,
                    "card_name": card.name,
                    "card_color": card.color,
                }
            )
        return bills

    def _monthly_average(self, type: TransactionType, start: date, end: date) -> int:
        stmt = select(func.sum(Transaction.amount_cents)).where(
            Transaction.user_id == self.user_id,
            Transaction.type == type,
            Transaction.date.between(start, end),
        )
        if type == TransactionType.expense:
            stmt = stmt.where(Transaction.category != INVOICE_PAYMENT_CATEGORY)
        total = self.session.scalar(stmt) or 0
        return round_cents(Decimal(int(total)) / Decimal(self.PROJECTION_MONTHS))

    def calendar(self, now: Optional[datetime] = None) -> dict[str, object]:
        now = now or local_now()
        today = now.date()
        recurring = self.session.scalars(
            select(RecurringExpense).where(
                RecurringExpense.user_id == self.user_id,
                RecurringExpense.active.is_(True),
            )
        ).all()
        cards = CardService(self.session, self.user_id).list_active()
        bills = self._bills(recurring, cards, now)

        calendar = []
        for day in range(1, days_in_month(today.year, today.month) + 1):
            day_bills = [b for b in bills if b["day"] == day]
            calendar.append(
                {
                    "day": day,
                    "date": today.replace(day=day),
                    "bills": day_bills,
                    "total_cents": sum(b["amount_cents"] for b in day_bills),
                    "is_today": day == today.day,
                    "is_past": day < today.day,
                }
            )

        start_year, start_month = shift_month(today.year, today.month, -self.PROJECTION_MONTHS)
        window_start = date(
            start_year,
            start_month,
            min(today.day, days_in_month(start_year, start_month)),
        )
        avg_income = self._monthly_average(TransactionType.income, window_start, today)
        avg_expenses = self._monthly_average(TransactionType.expense, window_start, today)
        total_recurring = sum(e.amount_cents for e in recurring)

        projection = []
        for offset in range(self.PROJECTION_MONTHS):
            year, month = shift_month(today.year, today.month, offset)
            card_total = sum(
                i.total_cents - i.paid_cents
                for card in cards
                for i in card.invoices
                if (i.year, i.month) == (year, month) and i.status != InvoiceStatus.paid
            )
            expected_expenses = avg_expenses + total_recurring + card_total
            projection.append(
                {
                    "month": f"{year:04d}-{month:02d}",
                    "month_label": month_label_pt(year, month),
                    "expected_income_cents": avg_income,
                    "expected_expenses_cents": expected_expenses,
                    "recurring_expenses_cents": total_recurring,
                    "card_invoices_cents": card_total,
                    "net_flow_cents": avg_income - expected_expenses,
                }
            )

        pending = [b for b in bills if not b["is_paid"]]
        overdue = [b for b in bills if b["is_past_due"]]
        upcoming = sorted(
            (b for b in pending if not b["is_past_due"] and b["day"] >= today.day),
            key=lambda b: b["day"],
        )
        return {
            "calendar": calendar,
            "bills": bills,
            "cash_flow_projection": projection,
            "summary": {
                "total_bills": len(bills),
                "total_cents": sum(b["amount_cents"] for b in bills),
                "total_pending_cents": sum(b["amount_cents"] for b in pending),
                "total_paid_cents": sum(b["amount_cents"] for b in bills if b["is_paid"]),
                "overdue_count": len(overdue),
                "overdue_cents": sum(b["amount_cents"] for b in overdue),
                "upcoming_count": len(upcoming),
                "upcoming_cents": sum(b["amount_cents"] for b in upcoming),
                "next_due": upcoming[0] if upcoming else None,
            },
            "current_month": today.month,
            "current_year": today.year,
        }


class DashboardService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _income_expense(self, start: Optional[date] = None, end: Optional[date] = None):
        stmt = select(Transaction.type, func.sum(Transaction.amount_cents)).where(
            Transaction.user_id == self.user_id
        )
        if start and end:
            stmt = stmt.where(Transaction.date.between(start, end))
        totals = {t: int(v or 0) for t, v in self.session.execute(stmt.group_by(Transaction.type))}
        return (
            totals.get(TransactionType.income, 0),
            totals.get(TransactionType.expense, 0),
        )

    def summary(self, now: Optional[datetime] = None) -> dict[str, object]:
        now = now or local_now()
        today = now.date()
        income_all, expense_all = self._income_expense()
        balance = income_all - expense_all
        monthly_income, monthly_expenses = self._income_expense(
            today.replace(day=1), month_end(today.year, today.month)
        )

        investments = InvestmentService(self.session, self.user_id).list_all()
        total_invested = sum(i.total_invested_cents for i in investments)
        investments_value = sum(i.current_value_cents for i in investments)
        investments_pl = sum(i.profit_loss_cents for i in investments)

        cards = CardService(self.session, self.user_id).list_active()
        total_limit = sum(c.limit_cents for c in cards)
        used_limit = 0
        overdue_debts = 0
        next_invoice = None
        for card in cards:
            for inv in card.invoices:
                if inv.status == InvoiceStatus.paid:
                    continue
                pending = inv.total_cents - inv.paid_cents
                used_limit += pending
                if pending <= 0:
                    continue
                is_past = (inv.year, inv.month) < (today.year, today.month)
                is_due = (inv.year, inv.month) == (today.year, today.month) and (
                    inv.due_date < today
                )
                if inv.status == InvoiceStatus.overdue or is_past or is_due:
                    overdue_debts += pending
                if next_invoice is None or inv.due_date < next_invoice["due_date"]:
                    next_invoice = {
                        "card_id": card.id,
                        "card_name": card.name,
                        "pending_cents": pending,
                        "due_date": inv.due_date,
                    }

        goals = GoalService(self.session, self.user_id).list_all()
        goals_target = sum(g.target_cents for g in goals)
        goals_current = sum(g.current_cents for g in goals)

        return {
            "balance": {
                "current_cents": balance,
                "monthly_income_cents": monthly_income,
                "monthly_expenses_cents": monthly_expenses,
                "monthly_balance_cents": monthly_income - monthly_expenses,
            },
            "investments": {
                "total_invested_cents": total_invested,
                "current_value_cents": investments_value,
                "profit_loss_cents": investments_pl,
                "profit_loss_percent": percent(investments_pl, total_invested),
                "count": len(investments),
            },
            "cards": {
                "total_limit_cents": total_limit,
                "used_limit_cents": used_limit,
                "available_limit_cents": total_limit - used_limit,
                "usage_percent": percent(used_limit, total_limit),
                "count": len(cards),
                "next_invoice": next_invoice,
            },
            "goals": {
                "total": len(goals),
                "completed": sum(1 for g in goals if g.completed),
                "target_cents": goals_target,
                "current_cents": goals_current,
                "progress": percent(goals_current, goals_target),
            },
            "wealth": {
                "total_cents": balance + investments_value + goals_current - overdue_debts,
                "breakdown": {
                    "balance_cents": balance,
                    "investments_cents": investments_value,
                    "goals_cents": goals_current,
                    "debts_cents": -overdue_debts,
                },
            },
        }
