from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum as SAEnum,
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
    username: Mapped[str] = mapped_column(String(150), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    ledger: Mapped[Optional["AccountLedger"]] = relationship(
        "AccountLedger", back_populates="user", uselist=False
    )

    __table_args__ = (UniqueConstraint("username", name="uq_users_username"),)


class AccountLedger(Base, TimestampMixin):
    __tablename__ = "ledgers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(
        ForeignKey("users.username"), nullable=False
    )
    total_income_cents: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    total_expense_cents: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    user: Mapped["User"] = relationship("User", back_populates="ledger")
    categories: Mapped[list["LedgerCategory"]] = relationship(
        "LedgerCategory",
        back_populates="ledger",
        cascade="all, delete-orphan",
        order_by="LedgerCategory.id",
    )

    __table_args__ = (
        UniqueConstraint("username", name="uq_ledgers_username"),
        CheckConstraint("total_income_cents >= 0", name="ck_ledger_income_positive"),
        CheckConstraint("total_expense_cents >= 0", name="ck_ledger_expense_positive"),
    )

    def balance_for(self, category: str) -> Optional["LedgerCategory"]:
        for row in self.categories:
            if row.name == category:
                return row
        return None

    def balances_cents(self) -> dict[str, int]:
        return {row.name: row.balance_cents for row in self.categories}


class LedgerCategory(Base, TimestampMixin):
    """One entry of a ledger's category map.

    ``balance_cents`` is a budget limit until the first transaction touches the
    category and the running remainder (or accrued income) afterwards.
    """

    __tablename__ = "ledger_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ledger_id: Mapped[int] = mapped_column(ForeignKey("ledgers.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    balance_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    ledger: Mapped["AccountLedger"] = relationship(
        "AccountLedger", back_populates="categories"
    )

    __table_args__ = (
        UniqueConstraint("ledger_id", "name", name="uq_ledger_category_name"),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(
        ForeignKey("users.username"), nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_transactions_username_date", "username", "date"),
        CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )


class Profile(Base, TimestampMixin):
    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(
        ForeignKey("users.username"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(320), nullable=False, default="")
    profile_pic: Mapped[str] = mapped_column(Text, nullable=False, default="")
    bio: Mapped[str] = mapped_column(Text, nullable=False, default="")

    __table_args__ = (UniqueConstraint("username", name="uq_profiles_username"),)
