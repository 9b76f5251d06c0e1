from __future__ import annotations

import logging
import threading
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from models import (
    AccountLedger,
    LedgerCategory,
    Profile,
    Transaction,
    TransactionType,
    User,
)
from passwords import hash_password, verify_password
from schemas import (
    BudgetIn,
    CredentialsIn,
    ProfileIn,
    ProfilePictureIn,
    TransactionIn,
)
from tokens import issue_token


logger = logging.getLogger(__name__)

BCRYPT_MAX_PASSWORD_BYTES = 72
# Signed 64-bit column range.
LEDGER_MAX_CENTS = 2**63 - 1


class UserAlreadyExists(ValueError):
    pass


class InvalidCredentials(ValueError):
    pass


class BudgetExceeded(ValueError):
    def __init__(self, category: str, remaining_cents: int) -> None:
        self.category = category
        self.remaining_cents = remaining_cents
        super().__init__(
            f"Expense exceeds budget for {category}! "
            f"Remaining: {format_amount(remaining_cents)}"
        )

    @property
    def remaining(self) -> float:
        return cents_to_units(self.remaining_cents)


class LedgerOverflow(ValueError):
    pass


class LedgerNotFound(LookupError):
    pass


class ProfileNotFound(LookupError):
    pass


def to_cents(amount: Decimal, *, allow_negative: bool = False) -> int:
    cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if cents <= 0 and not allow_negative:
        raise ValueError("Amount must be positive")
    return cents


def cents_to_units(cents: int) -> float:
    return cents / 100


def format_amount(cents: int) -> str:
    return format(Decimal(cents) / 100, "f")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class LedgerLocks:
    """Per-user mutexes serializing ledger read-modify-write cycles.

    Locks are weakly held: an entry disappears once no caller references it,
    so the registry only grows with the users currently being served.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )

    def for_user(self, username: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(username)
            if lock is None:
                lock = threading.Lock()
                self._locks[username] = lock
            return lock


ledger_locks = LedgerLocks()


@dataclass(frozen=True)
class LedgerReport:
    total_income_cents: int
    total_expense_cents: int
    category_summary_cents: dict[str, int] = field(default_factory=dict)

    @property
    def net_balance_cents(self) -> int:
        return self.total_income_cents - self.total_expense_cents


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_username(self, username: str) -> Optional[User]:
        return self.session.scalar(select(User).where(User.username == username))

    def register(self, data: CredentialsIn) -> User:
        if len(data.password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            raise ValueError("Password is too long")
        if self.find_by_username(data.username):
            raise UserAlreadyExists("User already exists")

        user = User(username=data.username, password_hash=hash_password(data.password))
        user.ledger = AccountLedger(total_income_cents=0, total_expense_cents=0)
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise UserAlreadyExists("User already exists") from exc
        self.session.refresh(user)
        logger.info(f"user_registered: username={user.username}")
        return user

    def login(self, data: CredentialsIn) -> str:
        user = self.find_by_username(data.username)
        # Unknown user and wrong password share one error.
        if not user or not verify_password(data.password, user.password_hash):
            logger.warning(f"login_failed: username={data.username}")
            raise InvalidCredentials("Invalid username or password")
        return issue_token(user.username)


class LedgerService:
    def __init__(self, session: Session, username: str) -> None:
        self.session = session
        self.username = username

    def get(self, *, for_update: bool = False) -> AccountLedger:
        stmt = (
            select(AccountLedger)
            .options(selectinload(AccountLedger.categories))
            .where(AccountLedger.username == self.username)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        ledger = self.session.scalar(stmt)
        if not ledger:
            logger.error(f"ledger_missing: username={self.username}")
            raise LedgerNotFound("User data not found")
        return ledger

    def check_and_reserve(
        self,
        ledger: AccountLedger,
        category: str,
        txn_type: TransactionType,
        amount_cents: int,
    ) -> None:
        """Reject an expense that would drive a tracked category below zero.

        Categories absent from the ledger carry no budget, so any expense
        against them passes. Income is never gated.
        """
        if txn_type != TransactionType.expense:
            return
        entry = ledger.balance_for(category)
        if entry is None:
            return
        if entry.balance_cents - amount_cents < 0:
            logger.warning(
                f"budget_exceeded: username={self.username} category={category} "
                f"remaining_cents={entry.balance_cents} amount_cents={amount_cents}"
            )
            raise BudgetExceeded(category, entry.balance_cents)

    def apply(
        self,
        ledger: AccountLedger,
        category: str,
        txn_type: TransactionType,
        amount_cents: int,
    ) -> None:
        entry = ledger.balance_for(category)
        if entry is None:
            entry = LedgerCategory(name=category, balance_cents=0)
            ledger.categories.append(entry)

        if txn_type == TransactionType.income:
            total = ledger.total_income_cents + amount_cents
            balance = entry.balance_cents + amount_cents
        else:
            total = ledger.total_expense_cents + amount_cents
            balance = entry.balance_cents - amount_cents
        if total > LEDGER_MAX_CENTS or abs(balance) > LEDGER_MAX_CENTS:
            logger.error(
                f"ledger_overflow: username={self.username} category={category} "
                f"amount_cents={amount_cents}"
            )
            raise LedgerOverflow("Amount exceeds the ledger range")

        if txn_type == TransactionType.income:
            ledger.total_income_cents = total
        else:
            ledger.total_expense_cents = total
        entry.balance_cents = balance
        self.session.flush()

    def set_budget(self, data: BudgetIn) -> dict[str, int]:
        limit_cents = to_cents(data.limit, allow_negative=True)
        with ledger_locks.for_user(self.username):
            try:
                ledger = self.get(for_update=True)
                entry = ledger.balance_for(data.category)
                if entry is None:
                    ledger.categories.append(
                        LedgerCategory(name=data.category, balance_cents=limit_cents)
                    )
                else:
                    entry.balance_cents = limit_cents
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise
        logger.info(
            f"budget_set: username={self.username} category={data.category} "
            f"limit_cents={limit_cents}"
        )
        return ledger.balances_cents()

    def get_budget(self) -> dict[str, int]:
        return self.get().balances_cents()

    def snapshot_report(self) -> LedgerReport:
        ledger = self.get()
        return LedgerReport(
            total_income_cents=ledger.total_income_cents,
            total_expense_cents=ledger.total_expense_cents,
            category_summary_cents=ledger.balances_cents(),
        )


class TransactionService:
    def __init__(self, session: Session, username: str) -> None:
        self.session = session
        self.username = username

    def record(self, data: TransactionIn) -> Transaction:
        if not data.description.strip():
            raise ValueError("Description is required")
        if not data.category.strip():
            raise ValueError("Category is required")
        txn = Transaction(
            username=self.username,
            description=data.description,
            amount_cents=to_cents(data.amount),
            type=TransactionType(data.type),
            category=data.category,
            date=to_utc_naive(data.date) if data.date else utcnow(),
        )
        self.session.add(txn)
        self.session.flush()
        return txn

    def submit(self, data: TransactionIn) -> Transaction:
        """Check the budget, journal the entry and update the ledger.

        The journal insert and the ledger update commit together; a budget
        rejection leaves both untouched.
        """
        amount_cents = to_cents(data.amount)
        ledgers = LedgerService(self.session, self.username)
        with ledger_locks.for_user(self.username):
            try:
                self.session.expire_all()
                ledger = ledgers.get(for_update=True)
                ledgers.check_and_reserve(ledger, data.category, data.type, amount_cents)
                txn = self.record(data)
                ledgers.apply(ledger, data.category, data.type, amount_cents)
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise
        self.session.refresh(txn)
        logger.info(
            f"transaction_recorded: username={self.username} id={txn.id} "
            f"type={txn.type.value} category={txn.category} "
            f"amount_cents={txn.amount_cents}"
        )
        return txn

    def list_for_user(self) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.username == self.username)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        )
        return list(self.session.scalars(stmt).all())


class ProfileService:
    def __init__(self, session: Session, username: str) -> None:
        self.session = session
        self.username = username

    def _find(self) -> Optional[Profile]:
        return self.session.scalar(
            select(Profile).where(Profile.username == self.username)
        )

    def get(self) -> Profile:
        profile = self._find()
        if not profile:
            raise ProfileNotFound("Profile not found")
        return profile

    def upsert(self, data: ProfileIn) -> Profile:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        profile = self._find()
        if not profile:
            profile = Profile(
                username=self.username, name="", email="", profile_pic="", bio=""
            )
            self.session.add(profile)
        for key, value in changes.items():
            setattr(profile, key, value)
        self.session.commit()
        self.session.refresh(profile)
        logger.info(
            f"profile_updated: username={self.username} fields={sorted(changes)}"
        )
        return profile

    def set_picture(self, data: ProfilePictureIn) -> Profile:
        return self.upsert(ProfileIn(profile_pic=data.profile_pic))
