from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from errors import NotFoundError, PermissionDenied, ValidationError
from models import Transaction, TransactionType
from schemas import CategoryIn, CategoryUpdate
from services import DEFAULT_CATEGORIES, CategoryService


def _category(name: str, type: TransactionType = TransactionType.expense) -> CategoryIn:
    return CategoryIn(name=name, type=type, icon="Dumbbell", color="#123456")


def test_defaults_are_seeded_once_and_shared() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        first = CategoryService(session, user_id=1).list_all()
        again = CategoryService(session, user_id=2).list_all()
        expected = sum(len(v) for v in DEFAULT_CATEGORIES.values())
        assert len(first) == expected
        assert len(again) == expected
        assert all(c.is_default for c in first)

        expenses = CategoryService(session, 1).list_all(type=TransactionType.expense)
        assert len(expenses) == len(DEFAULT_CATEGORIES[TransactionType.expense])
        assert "Fatura Cartão" in {c.name for c in expenses}


def test_user_categories_are_private() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        mine = CategoryService(session, user_id=1)
        gym = mine.create(_category("  Academia "))
        assert gym.name == "Academia"
        assert gym.is_default is False

        names_1 = {c.name for c in mine.list_all()}
        names_2 = {c.name for c in CategoryService(session, 2).list_all()}
        assert "Academia" in names_1
        assert "Academia" not in names_2

        # Another user may reuse the name.
        CategoryService(session, 2).create(_category("Academia"))


def test_category_name_conflicts() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        service = CategoryService(session, user_id=1)
        with pytest.raises(ValidationError):
            service.create(_category("Aluguel"))
        # Defaults are per type, an income "Aluguel" is free.
        service.create(_category("Aluguel", TransactionType.income))

        pets = service.create(_category("Pets"))
        with pytest.raises(ValidationError):
            service.create(_category("Pets"))

        vet = service.create(_category("Vet"))
        with pytest.raises(ValidationError):
            service.update(vet.id, CategoryUpdate(name="Pets"))
        renamed = service.update(pets.id, CategoryUpdate(name="Pets", color="#ABCDEF"))
        assert renamed.color == "#ABCDEF"


def test_defaults_and_foreign_categories_are_read_only() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        service = CategoryService(session, user_id=1)
        default = service.list_all()[0]
        with pytest.raises(ValidationError):
            service.update(default.id, CategoryUpdate(icon="Star"))
        with pytest.raises(ValidationError):
            service.delete(default.id)

        foreign = CategoryService(session, 2).create(_category("Hobby"))
        with pytest.raises(PermissionDenied):
            service.update(foreign.id, CategoryUpdate(icon="Star"))
        with pytest.raises(NotFoundError):
            service.delete(9_999)


def test_category_in_use_cannot_be_deleted() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        service = CategoryService(session, user_id=1)
        pets = service.create(_category("Pets"))
        session.add(
            Transaction(
                user_id=1,
                date=date(2024, 5, 1),
                occurred_at=datetime(2024, 5, 1, 12),
                type=TransactionType.expense,
                amount_cents=4_500,
                category="Pets",
            )
        )
        session.commit()

        with pytest.raises(ValidationError):
            service.delete(pets.id)

        unused = service.create(_category("Unused"))
        service.delete(unused.id)
        assert "Unused" not in {c.name for c in service.list_all()}
