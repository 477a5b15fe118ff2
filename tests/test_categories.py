import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

from database import Base
from models import Category, TransactionType, User
from schemas import CategoryIn, CategoryUpdate, RegisterIn, TransactionIn
from services import (
    DEFAULT_CATEGORIES,
    CategoryService,
    Conflict,
    InvalidOperation,
    NotFound,
    TransactionService,
    UserService,
)


def _register(session: Session, email: str = "ana@example.com") -> User:
    return UserService(session).register(
        RegisterIn(name="Ana", email=email, password="secret1")
    )


def _session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def test_registration_seeds_default_catalog_once() -> None:
    with _session() as session:
        user = _register(session)
        service = CategoryService(session, user.id)

        categories = service.list_all()
        assert len(categories) == len(DEFAULT_CATEGORIES) == 14
        assert all(c.is_default for c in categories)
        assert service.ensure_defaults() == 0
        assert len(service.list_all()) == 14


def test_list_seeds_defaults_for_user_without_categories() -> None:
    with _session() as session:
        user = User(email="old@example.com", name="Old", password_hash="x")
        session.add(user)
        session.commit()

        categories = CategoryService(session, user.id).list_all()
        assert len(categories) == 14


def test_list_filters_by_type_and_puts_defaults_first() -> None:
    with _session() as session:
        user = _register(session)
        service = CategoryService(session, user.id)
        service.create(CategoryIn(name="Aardvark Care", type=TransactionType.expense))

        expenses = service.list_all(TransactionType.expense)
        assert len(expenses) == 10
        assert {c.type for c in expenses} == {TransactionType.expense}
        assert expenses[-1].name == "Aardvark Care"
        assert [c.name for c in service.list_all(TransactionType.income)] == [
            "Freelance",
            "Gift",
            "Investment",
            "Other Income",
            "Salary",
        ]


def test_create_applies_defaults_and_rejects_duplicates() -> None:
    with _session() as session:
        user = _register(session)
        service = CategoryService(session, user.id)

        pets = service.create(CategoryIn(name="  Pets  ", type=TransactionType.expense))
        assert pets.name == "Pets"
        assert pets.color == "#BDC3C7"
        assert pets.icon == "📦"
        assert pets.is_default is False

        with pytest.raises(Conflict, match="Category already exists"):
            service.create(CategoryIn(name="Pets", type=TransactionType.expense))

        # same name, other type is a different category
        service.create(CategoryIn(name="Pets", type=TransactionType.income))


def test_default_categories_cannot_be_renamed_or_deleted() -> None:
    with _session() as session:
        user = _register(session)
        service = CategoryService(session, user.id)
        food = next(c for c in service.list_all() if c.name == "Food & Dining")

        with pytest.raises(InvalidOperation, match="Cannot change name"):
            service.update(food.id, CategoryUpdate(name="Groceries"))
        with pytest.raises(InvalidOperation, match="Cannot delete default"):
            service.delete(food.id)

        recolored = service.update(food.id, CategoryUpdate(color="#000000"))
        assert recolored.color == "#000000"
        assert recolored.name == "Food & Dining"


def test_rename_to_existing_name_conflicts() -> None:
    with _session() as session:
        user = _register(session)
        service = CategoryService(session, user.id)
        service.create(CategoryIn(name="Pets", type=TransactionType.expense))
        hobby = service.create(CategoryIn(name="Hobby", type=TransactionType.expense))

        with pytest.raises(Conflict):
            service.update(hobby.id, CategoryUpdate(name="Pets"))

        renamed = service.update(hobby.id, CategoryUpdate(name="Hobbies"))
        assert renamed.name == "Hobbies"


def test_delete_in_use_category_reports_count() -> None:
    with _session() as session:
        user = _register(session)
        service = CategoryService(session, user.id)
        pets = service.create(CategoryIn(name="Pets", type=TransactionType.expense))
        for name in ("Food", "Vet"):
            TransactionService(session, user.id).create(
                TransactionIn(
                    name=name,
                    amount="12.50",
                    category="Pets",
                    type=TransactionType.expense,
                )
            )

        with pytest.raises(Conflict) as excinfo:
            service.delete(pets.id)
        assert excinfo.value.count == 2
        assert str(excinfo.value) == (
            "Cannot delete category. It is used in 2 transaction(s)"
        )


def test_delete_unused_category() -> None:
    with _session() as session:
        user = _register(session)
        service = CategoryService(session, user.id)
        pets = service.create(CategoryIn(name="Pets", type=TransactionType.expense))

        service.delete(pets.id)

        assert session.get(Category, pets.id) is None


def test_categories_are_scoped_to_owner() -> None:
    with _session() as session:
        ana = _register(session)
        ben = _register(session, "ben@example.com")
        pets = CategoryService(session, ana.id).create(
            CategoryIn(name="Pets", type=TransactionType.expense)
        )

        with pytest.raises(NotFound):
            CategoryService(session, ben.id).delete(pets.id)
        assert "Pets" not in {c.name for c in CategoryService(session, ben.id).list_all()}


def test_register_race_on_email_is_a_conflict(monkeypatch) -> None:
    with _session() as session:
        _register(session)
        # the uniqueness pre-check passes, as it would for a concurrent request
        monkeypatch.setattr(UserService, "_email_taken", lambda self, email: False)

        with pytest.raises(Conflict, match="User already exists"):
            _register(session)

        assert session.scalar(select(func.count(User.id))) == 1


def test_list_tolerates_defaults_seeded_concurrently(monkeypatch) -> None:
    with _session() as session:
        user = _register(session)
        # both requests saw zero categories before either inserted the catalog
        monkeypatch.setattr(CategoryService, "_count", lambda self: 0)
        monkeypatch.setattr(CategoryService, "_existing_keys", lambda self: set())

        categories = CategoryService(session, user.id).list_all()

        assert len(categories) == 14
