from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from models import TransactionType
from schemas import MAX_AMOUNT, CredentialsIn, TransactionIn
from services import LedgerService, TransactionService, UserService


def _session_with_user(engine) -> Session:
    session = Session(engine)
    UserService(session).register(CredentialsIn(username="alice", password="pw1"))
    return session


@pytest.mark.parametrize("amount", ["abc", "", "0", "-5", 0, -12.5, "NaN"])
def test_transaction_rejects_non_positive_or_non_numeric_amount(amount) -> None:
    with pytest.raises(ValidationError):
        TransactionIn(
            description="Lunch",
            amount=amount,
            type=TransactionType.expense,
            category="food",
        )


def test_transaction_amount_is_bounded() -> None:
    accepted = TransactionIn(
        description="House", amount=MAX_AMOUNT, type="expense", category="home"
    )
    assert accepted.amount == MAX_AMOUNT

    for amount in (MAX_AMOUNT + 1, Decimal("1e17"), "Infinity"):
        with pytest.raises(ValidationError):
            TransactionIn(
                description="House", amount=amount, type="expense", category="home"
            )


def test_transaction_rejects_unknown_type_and_blank_fields() -> None:
    with pytest.raises(ValidationError):
        TransactionIn(description="Lunch", amount=5, type="transfer", category="food")
    with pytest.raises(ValidationError):
        TransactionIn(description="   ", amount=5, type="expense", category="food")
    with pytest.raises(ValidationError):
        TransactionIn(description="Lunch", amount=5, type="expense", category="")


def test_transaction_rejects_unparseable_date() -> None:
    with pytest.raises(ValidationError):
        TransactionIn(
            description="Lunch",
            amount=5,
            type="expense",
            category="food",
            date="next tuesday",
        )


def test_amount_is_coerced_from_string() -> None:
    data = TransactionIn(
        description="Lunch", amount="12.345", type="expense", category="food"
    )
    assert data.amount == Decimal("12.345")

    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    with _session_with_user(engine) as session:
        txn = TransactionService(session, "alice").submit(data)
        assert txn.amount_cents == 1_235


def test_amount_rounding_to_zero_cents_is_rejected() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with _session_with_user(engine) as session:
        txns = TransactionService(session, "alice")
        with pytest.raises(ValueError, match="Amount must be positive"):
            txns.submit(
                TransactionIn(
                    description="Dust", amount="0.001", type="expense", category="misc"
                )
            )
        assert txns.list_for_user() == []
        assert LedgerService(session, "alice").get_budget() == {}


def test_missing_date_defaults_to_submission_time() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with _session_with_user(engine) as session:
        before = datetime.now(timezone.utc).replace(tzinfo=None)
        txn = TransactionService(session, "alice").submit(
            TransactionIn(description="Lunch", amount=9, type="expense", category="food")
        )
        after = datetime.now(timezone.utc).replace(tzinfo=None)

        assert before - timedelta(seconds=1) <= txn.date <= after + timedelta(seconds=1)
        assert txn.username == "alice"
        assert txn.type == TransactionType.expense


def test_aware_dates_are_stored_as_utc() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with _session_with_user(engine) as session:
        txn = TransactionService(session, "alice").submit(
            TransactionIn(
                description="Lunch",
                amount=9,
                type="expense",
                category="food",
                date="2025-03-01T14:30:00+02:00",
            )
        )
        assert txn.date == datetime(2025, 3, 1, 12, 30)


def test_list_for_user_is_sorted_by_date_descending() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with _session_with_user(engine) as session:
        UserService(session).register(CredentialsIn(username="bob", password="pw2"))
        txns = TransactionService(session, "alice")
        for day, note in [(3, "middle"), (1, "oldest"), (7, "newest"), (3, "tie")]:
            txns.submit(
                TransactionIn(
                    description=note,
                    amount=1,
                    type="income",
                    category="misc",
                    date=datetime(2025, 1, day, 12, 0),
                )
            )
        TransactionService(session, "bob").submit(
            TransactionIn(
                description="not alice",
                amount=1,
                type="income",
                category="misc",
                date=datetime(2025, 2, 1, 12, 0),
            )
        )

        items = txns.list_for_user()
        assert [t.description for t in items] == ["newest", "tie", "middle", "oldest"]
        dates = [t.date for t in items]
        assert dates == sorted(dates, reverse=True)


def test_submit_returns_stored_entry_with_id() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with _session_with_user(engine) as session:
        txns = TransactionService(session, "alice")
        first = txns.submit(
            TransactionIn(description="A", amount=1, type="expense", category="x")
        )
        second = txns.submit(
            TransactionIn(description="B", amount=2, type="income", category="x")
        )
        assert first.id is not None
        assert second.id is not None
        assert first.id != second.id
        assert LedgerService(session, "alice").get_budget() == {"x": 100}
