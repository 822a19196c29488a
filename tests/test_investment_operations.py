from datetime import date, datetime

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from database import Base
from errors import PermissionDenied, ValidationError
from models import InvestmentOperation, InvestmentType, OperationType, Transaction, TransactionType
from schemas import InvestmentIn, InvestmentUpdate, OperationIn
from services import INVESTMENT_CATEGORY, InvestmentService

TODAY = date(2024, 3, 1)


def _income(session: Session, amount: int, user_id: int = 1) -> None:
    session.add(
        Transaction(
            user_id=user_id,
            date=date(2024, 1, 2),
            occurred_at=datetime(2024, 1, 2, 9, 0),
            type=TransactionType.income,
            amount_cents=amount,
            category="Salário",
        )
    )
    session.commit()


def _movements(session: Session) -> list[tuple[TransactionType, int, str]]:
    rows = session.scalars(
        select(Transaction)
        .where(Transaction.category == INVESTMENT_CATEGORY)
        .order_by(Transaction.id)
    ).all()
    return [(t.type, t.amount_cents, t.description) for t in rows]


def test_buy_reaverages_and_sell_keeps_average_price() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        _income(session, 100_000)
        service = InvestmentService(session, user_id=1)
        inv = service.create(
            InvestmentIn(
                type=InvestmentType.stock,
                name="Petrobras",
                ticker="PETR4",
                quantity=10,
                average_price_cents=3_000,
            )
        )

        op, inv = service.add_operation(
            inv.id,
            OperationIn(type=OperationType.buy, quantity=10, price_cents=4_000, fees_cents=500, date=date(2024, 2, 1)),
            today=TODAY,
        )
        assert op.total_cents == 40_500
        assert inv.quantity == 20
        assert inv.total_invested_cents == 70_500
        assert inv.average_price_cents == 3_525
        # The quoted price is kept; the operation price only seeds an unpriced asset.
        assert inv.current_price_cents == 3_000
        assert inv.current_value_cents == 60_000
        assert inv.profit_loss_cents == -10_500

        _op, inv = service.add_operation(
            inv.id,
            OperationIn(type=OperationType.sell, quantity=5, price_cents=4_200, date=date(2024, 2, 1)),
            today=TODAY,
        )
        assert inv.quantity == 15
        assert inv.average_price_cents == 3_525
        assert inv.total_invested_cents == 52_875

        _op, inv = service.add_operation(
            inv.id,
            OperationIn(type=OperationType.sell, quantity=15, price_cents=4_200, date=date(2024, 2, 2)),
            today=TODAY,
        )
        assert inv.quantity == 0
        assert inv.total_invested_cents == 0
        assert inv.average_price_cents == 0

        assert _movements(session) == [
            (TransactionType.expense, 40_500, "Compra: Petrobras"),
            (TransactionType.income, 21_000, "Venda: Petrobras"),
            (TransactionType.income, 63_000, "Venda: Petrobras"),
        ]
        assert [o.type for o in service.list_operations(inv.id)] == [
            OperationType.sell,
            OperationType.sell,
            OperationType.buy,
        ]


def test_operation_validation() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        _income(session, 5_000)
        service = InvestmentService(session, user_id=1)
        inv = service.create(
            InvestmentIn(type=InvestmentType.crypto, name="Bitcoin", ticker="BTC", quantity=0.5, average_price_cents=2_000)
        )

        with pytest.raises(ValidationError) as oversell:
            service.add_operation(
                inv.id,
                OperationIn(type=OperationType.sell, quantity=0.6, price_cents=2_000, date=TODAY),
                today=TODAY,
            )
        assert oversell.value.details[0]["code"] == "exceeds_quantity"

        with pytest.raises(ValidationError) as broke:
            service.add_operation(
                inv.id,
                OperationIn(type=OperationType.buy, quantity=3, price_cents=2_000, date=TODAY),
                today=TODAY,
            )
        assert broke.value.details[0] == {
            "field": "price_cents",
            "code": "INSUFFICIENT_BALANCE",
            "available_balance_cents": 5_000,
            "required_cents": 6_000,
        }

        with pytest.raises(ValidationError):
            service.add_operation(
                inv.id,
                OperationIn(type=OperationType.buy, quantity=1, price_cents=100, date=date(2024, 3, 2)),
                today=TODAY,
            )

        service.add_operation(
            inv.id,
            OperationIn(type=OperationType.buy, quantity=1, price_cents=100, date=date(2024, 2, 20)),
            today=TODAY,
        )
        with pytest.raises(ValidationError) as backdated:
            service.add_operation(
                inv.id,
                OperationIn(type=OperationType.buy, quantity=1, price_cents=100, date=date(2024, 2, 19)),
                today=TODAY,
            )
        assert backdated.value.details[0]["code"] == "before_last_operation"

        with pytest.raises(PermissionDenied):
            InvestmentService(session, user_id=2).add_operation(
                inv.id,
                OperationIn(type=OperationType.buy, price_cents=100, date=TODAY, skip_balance_check=True),
                today=TODAY,
            )
        assert session.scalar(select(InvestmentOperation).where(InvestmentOperation.date == TODAY)) is None


def test_fixed_income_deposit_and_proportional_withdrawal() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        _income(session, 50_000)
        service = InvestmentService(session, user_id=1)
        cdb = service.create(
            InvestmentIn(type=InvestmentType.cdb, name="CDB", initial_deposit_cents=100_000)
        )

        _op, cdb = service.add_operation(
            cdb.id,
            OperationIn(type=OperationType.buy, quantity=7, price_cents=20_000, date=date(2024, 2, 1)),
            today=TODAY,
        )
        assert cdb.quantity == 1
        assert cdb.total_invested_cents == 120_000
        assert cdb.current_value_cents == 120_000

        cdb = service.update(cdb.id, InvestmentUpdate(current_price_cents=132_000))
        with pytest.raises(ValidationError):
            service.add_operation(
                cdb.id,
                OperationIn(type=OperationType.sell, price_cents=132_001, date=date(2024, 2, 10)),
                today=TODAY,
            )

        _op, cdb = service.add_operation(
            cdb.id,
            OperationIn(type=OperationType.sell, price_cents=33_000, date=date(2024, 2, 10)),
            today=TODAY,
        )
        assert cdb.total_invested_cents == 90_000
        assert cdb.average_price_cents == 90_000
        assert cdb.current_value_cents == 99_000
        assert cdb.current_price_cents == 99_000
        assert cdb.profit_loss_cents == 9_000
        assert _movements(session) == [
            (TransactionType.expense, 20_000, "Depósito: CDB"),
            (TransactionType.income, 33_000, "Resgate: CDB"),
        ]


def test_deleting_investment_removes_operations() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        service = InvestmentService(session, user_id=1)
        inv = service.create(InvestmentIn(type=InvestmentType.fii, name="HGLG11", ticker="HGLG11"))
        service.add_operation(
            inv.id,
            OperationIn(type=OperationType.buy, quantity=2, price_cents=16_000, date=TODAY, skip_balance_check=True),
            today=TODAY,
        )
        assert _movements(session) == []

        service.delete(inv.id)
        assert session.scalars(select(InvestmentOperation)).all() == []
