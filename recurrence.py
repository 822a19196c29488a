import logging
from datetime import date, datetime, time
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import RecurringExpense, Transaction, TransactionType
from periods import days_in_month, local_now

logger = logging.getLogger(__name__)

# Launched transactions land at midday so timezone shifts never move the date.
LAUNCH_TIME = time(12, 0)


def launched_in_month(expense: RecurringExpense, now: datetime) -> bool:
    last = expense.last_launched_at
    if last is None:
        return False
    return (last.month, last.year) == (now.month, now.year)


def effective_due_date(due_day: int, year: int, month: int) -> date:
    return date(year, month, min(due_day, days_in_month(year, month)))


class RecurringLauncher:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def pending(
        self, expense_ids: Optional[Iterable[int]] = None, now: Optional[datetime] = None
    ) -> list[RecurringExpense]:
        now = now or local_now()
        stmt = (
            select(RecurringExpense)
            .where(
                RecurringExpense.user_id == self.user_id,
                RecurringExpense.active.is_(True),
            )
            .order_by(RecurringExpense.due_day, RecurringExpense.id)
        )
        ids = list(expense_ids or [])
        if ids:
            stmt = stmt.where(RecurringExpense.id.in_(ids))
        expenses = self.session.scalars(stmt).all()
        return [e for e in expenses if not launched_in_month(e, now)]

    def launch(
        self, expense_ids: Optional[Iterable[int]] = None, now: Optional[datetime] = None
    ) -> list[Transaction]:
        now = now or local_now()
        created: list[Transaction] = []
        for expense in self.pending(expense_ids, now):
            created.append(self._launch_one(expense, now))
        self.session.commit()
        for txn in created:
            self.session.refresh(txn)
        logger.info(
            f"recurring_launch: user_id={self.user_id} launched={len(created)}"
        )
        return created

    def _launch_one(self, expense: RecurringExpense, now: datetime) -> Transaction:
        txn_date = effective_due_date(expense.due_day, now.year, now.month)
        txn = Transaction(
            user_id=self.user_id,
            date=txn_date,
            occurred_at=datetime.combine(txn_date, LAUNCH_TIME),
            type=TransactionType.expense,
            amount_cents=expense.amount_cents,
            category=expense.category,
            description=expense.description,
        )
        self.session.add(txn)
        expense.last_launched_at = now
        self.session.flush()
        return txn
