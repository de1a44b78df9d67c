from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, Budget, Transaction, User
from dispatcher import DispatchResult
from snapshot import BudgetSnapshot

TODAY = date(2026, 10, 19)
PERIOD = date(2026, 10, 1)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


class FakeMailer:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send_mail(self, to, subject, body):
        if self.fail:
            raise ConnectionRefusedError("mail server down")
        self.sent.append((to, subject, body))


class FakeReader:
    def __init__(self, snapshots):
        self.snapshots = list(snapshots)
        self.periods = []

    def list_all_budgets(self, period=None):
        self.periods.append(period)
        return list(self.snapshots)


class FakeDispatcher:
    def __init__(self, fail_for=(), undelivered=False):
        self.fail_for = set(fail_for)
        self.undelivered = undelivered
        self.calls = []

    def dispatch(self, user, category, spent, limit, exceeded):
        if user.id in self.fail_for:
            raise RuntimeError(f"dispatch blew up for user {user.id}")
        self.calls.append((user, category, spent, limit, exceeded))
        if self.undelivered:
            return DispatchResult(notified=False, emailed=False)
        return DispatchResult(notified=True, emailed=True)


@pytest.fixture
def mailer():
    return FakeMailer()


def snapshot(id, user_id=1, category="Food", limit="5000", spent="0", period=PERIOD, email=None):
    return BudgetSnapshot(
        id=id,
        user_id=user_id,
        user_email=email if email is not None else (f"user{user_id}@example.com" if user_id else None),
        category=category,
        period=period,
        limit_amount=limit,
        spent_amount=spent,
    )


def add_user(db, username, email=None):
    user = User(username=username, email=email or f"{username}@example.com", password_hash="x$y")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def add_budget(db, user, category, limit, month=PERIOD):
    budget = Budget(
        user_id=user.id if user is not None else None,
        category=category,
        month=month,
        limit_amount=Decimal(limit),
    )
    db.add(budget)
    db.commit()
    db.refresh(budget)
    return budget


def add_expense(db, user, category, amount, on=TODAY, kind="expense"):
    entry = Transaction(
        user_id=user.id, category=category, amount=Decimal(amount), kind=kind, date=on
    )
    db.add(entry)
    db.commit()
    return entry
