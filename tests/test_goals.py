from datetime import date, datetime

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from database import Base
from errors import NotFoundError, PermissionDenied, ValidationError
from models import GoalCategory, GoalContribution, RecurringExpense, Transaction, TransactionType
from schemas import CardIn, ContributionIn, GoalIn, GoalUpdate, PurchaseIn
from services import CardService, GoalService


def _goal_in(**kwargs) -> GoalIn:
    values = dict(name="Trip", category=GoalCategory.travel, target_cents=1_000)
    values.update(kwargs)
    return GoalIn(**values)


def test_contributions_drive_current_value_and_completion() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        goals = GoalService(session, user_id=1)
        goal = goals.create(_goal_in())
        assert goal.current_cents == 0
        assert goal.completed is False

        first, goal = goals.add_contribution(
            goal.id, ContributionIn(amount_cents=600), now=datetime(2024, 3, 1, 10)
        )
        assert goal.current_cents == 600
        assert goal.completed is False
        assert goal.completed_at is None

        second, goal = goals.add_contribution(
            goal.id, ContributionIn(amount_cents=400), now=datetime(2024, 3, 5, 10)
        )
        assert goal.current_cents == 1_000
        assert goal.completed is True
        assert goal.completed_at == datetime(2024, 3, 5, 10)
        assert second.date == date(2024, 3, 5)

        goal = goals.remove_contribution(
            goal.id, second.id, now=datetime(2024, 3, 6, 10)
        )
        assert goal.current_cents == 600
        assert goal.completed is False
        # Completion time is history, removing money does not erase it.
        assert goal.completed_at == datetime(2024, 3, 5, 10)
        remaining = session.scalars(select(GoalContribution)).all()
        assert [c.id for c in remaining] == [first.id]


def test_initial_amount_is_recorded_as_contribution() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        goals = GoalService(session, user_id=1)
        goal = goals.create(
            _goal_in(current_cents=1_200), now=datetime(2024, 1, 10, 9)
        )
        assert goal.current_cents == 1_200
        assert goal.completed is True
        assert goal.completed_at == datetime(2024, 1, 10, 9)
        assert len(goal.contributions) == 1
        assert goal.contributions[0].notes == "Initial amount"
        assert goal.contributions[0].amount_cents == 1_200


def test_update_target_recomputes_completion() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        goals = GoalService(session, user_id=1)
        goal = goals.create(_goal_in(current_cents=500))
        assert goal.completed is False

        goal = goals.update(
            goal.id, GoalUpdate(target_cents=500), now=datetime(2024, 2, 1)
        )
        assert goal.completed is True
        assert goal.completed_at == datetime(2024, 2, 1)

        goal = goals.update(goal.id, GoalUpdate(name=None, description="Lisbon"))
        assert goal.name == "Trip"
        assert goal.description == "Lisbon"


def test_contribution_amount_must_be_positive() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        goals = GoalService(session, user_id=1)
        goal = goals.create(_goal_in())
        for amount in (0, -50):
            with pytest.raises(ValidationError):
                goals.add_contribution(goal.id, ContributionIn(amount_cents=amount))
        assert goals.get(goal.id).current_cents == 0


def test_goal_ownership_errors() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        goal = GoalService(session, user_id=1).create(_goal_in())
        intruder = GoalService(session, user_id=2)

        with pytest.raises(PermissionDenied):
            intruder.get(goal.id)
        with pytest.raises(PermissionDenied):
            intruder.add_contribution(goal.id, ContributionIn(amount_cents=100))
        with pytest.raises(NotFoundError):
            intruder.get(9_999)

        owner = GoalService(session, user_id=1)
        other = owner.create(_goal_in(name="Car", category=GoalCategory.car))
        contribution, _goal = owner.add_contribution(
            other.id, ContributionIn(amount_cents=100)
        )
        # A contribution can only be removed through the goal it belongs to.
        with pytest.raises(NotFoundError):
            owner.remove_contribution(goal.id, contribution.id)


def test_delete_goal_removes_contributions() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        goals = GoalService(session, user_id=1)
        goal = goals.create(_goal_in())
        goals.add_contribution(goal.id, ContributionIn(amount_cents=100))
        goals.delete(goal.id)
        assert session.scalars(select(GoalContribution)).all() == []


def test_goals_listed_incomplete_first() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        goals = GoalService(session, user_id=1)
        goals.create(_goal_in(name="Done", current_cents=1_000))
        goals.create(_goal_in(name="Later"))
        goals.create(_goal_in(name="Soon", target_date=date(2025, 1, 1)))
        GoalService(session, user_id=2).create(_goal_in(name="Foreign"))

        assert [g.name for g in goals.list_all()] == ["Soon", "Later", "Done"]


def test_emergency_suggestion_uses_six_month_window() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        for day, amount in ((date(2024, 1, 1), 60_000), (date(2024, 6, 30), 30_000)):
            session.add(
                Transaction(
                    user_id=1,
                    date=day,
                    occurred_at=datetime.combine(day, datetime.min.time()),
                    type=TransactionType.expense,
                    amount_cents=amount,
                    category="Supermercado",
                )
            )
        # Outside the window, and income, are ignored.
        session.add(
            Transaction(
                user_id=1,
                date=date(2023, 12, 31),
                occurred_at=datetime(2023, 12, 31, 12),
                type=TransactionType.expense,
                amount_cents=999_999,
                category="Outros",
            )
        )
        session.add(
            Transaction(
                user_id=1,
                date=date(2024, 5, 5),
                occurred_at=datetime(2024, 5, 5, 12),
                type=TransactionType.income,
                amount_cents=500_000,
                category="Salário",
            )
        )
        session.add(
            RecurringExpense(
                user_id=1,
                description="Rent",
                amount_cents=10_000,
                category="Aluguel",
                due_day=5,
                active=True,
            )
        )
        session.commit()

        card = CardService(session, 1).create(
            CardIn(name="Nubank", limit_cents=100_000, closing_day=10, due_day=20)
        )
        CardService(session, 1).add_purchase(
            card.id,
            PurchaseIn(
                description="Groceries",
                amount_cents=30_000,
                category="Supermercado",
                date=date(2024, 3, 2),
            ),
        )

        goals = GoalService(session, user_id=1)
        result = goals.emergency_suggestion(now=datetime(2024, 7, 15, 12))
        assert result["months_analyzed"] == 6
        assert result["breakdown"] == {
            "transaction_expenses_cents": 90_000,
            "card_purchases_cents": 30_000,
            "recurring_monthly_cents": 10_000,
        }
        assert result["average_monthly_expenses_cents"] == 20_000
        assert result["estimated_monthly_expenses_cents"] == 20_000
        assert result["suggested_target_cents"] == 120_000
        assert result["existing_goal"] is None

        reserve = goals.create(
            _goal_in(
                name="Reserve",
                category=GoalCategory.emergency,
                target_cents=120_000,
                current_cents=5_000,
            )
        )
        result = goals.emergency_suggestion(now=datetime(2024, 7, 15, 12))
        assert result["existing_goal"] == {
            "id": reserve.id,
            "current_cents": 5_000,
            "target_cents": 120_000,
        }


def test_emergency_suggestion_prefers_recurring_when_higher() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        session.add(
            RecurringExpense(
                user_id=1,
                description="Rent",
                amount_cents=250_000,
                category="Aluguel",
                due_day=5,
                active=True,
            )
        )
        session.add(
            RecurringExpense(
                user_id=1,
                description="Old gym",
                amount_cents=9_000,
                category="Saúde",
                due_day=5,
                active=False,
            )
        )
        session.commit()

        result = GoalService(session, 1).emergency_suggestion(now=datetime(2024, 7, 1))
        assert result["average_monthly_expenses_cents"] == 0
        assert result["recurring_expenses_cents"] == 250_000
        assert result["estimated_monthly_expenses_cents"] == 250_000
        assert result["suggested_target_cents"] == 1_500_000
