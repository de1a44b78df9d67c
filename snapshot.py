# snapshot.py
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, List, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import Budget, Transaction
from money import Money, to_money

logger = logging.getLogger(__name__)


def period_start(day: date) -> date:
    """First day of the month containing ``day``."""
    return day.replace(day=1)


@dataclass(frozen=True)
class BudgetSnapshot:
    """Read-only view of one budget as seen by the alert sweep.

    Money fields are left as stored; the scheduler coerces them so a bad
    value only costs that one budget.
    """

    id: int
    user_id: Optional[int]
    user_email: Optional[str]
    category: str
    period: Optional[date]
    limit_amount: Any
    spent_amount: Any


def spent_for(db: Session, user_id: int, category: Optional[str], period: date) -> Money:
    """Total expense spend for a user and category within the month starting at ``period``."""
    start = period_start(period)
    end = start + relativedelta(months=+1)
    query = db.query(func.sum(Transaction.amount)).filter(
        Transaction.user_id == user_id,
        Transaction.kind == "expense",
        Transaction.date >= start,
        Transaction.date < end,
    )
    if category:
        query = query.filter(func.lower(Transaction.category) == category.strip().lower())
    return to_money(query.scalar())


def refresh_spent(db: Session, budgets: List[Budget]) -> List[Budget]:
    """Recompute ``spent_amount`` on each budget from the ledger.

    A failed aggregation keeps whatever value was stored.
    """
    for budget in budgets:
        if budget.user_id is None:
            continue
        try:
            budget.spent_amount = spent_for(
                db, budget.user_id, budget.category, budget.month or period_start(date.today())
            )
        except Exception:
            logger.exception(
                "Error computing spent for user=%s category=%s", budget.user_id, budget.category
            )
    return budgets


class SqlBudgetReader:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def list_all_budgets(self, period: Optional[date] = None) -> List[BudgetSnapshot]:
        with self.session_factory() as db:
            query = db.query(Budget)
            if period is not None:
                query = query.filter(Budget.month == period)
            snapshots = []
            for budget in query.order_by(Budget.id).all():
                user = budget.user
                spent = budget.spent_amount
                if user is not None and budget.month is not None:
                    try:
                        spent = spent_for(db, user.id, budget.category, budget.month)
                    except Exception:
                        logger.exception(
                            "Falling back to stored spend for budget %s", budget.id
                        )
                snapshots.append(
                    BudgetSnapshot(
                        id=budget.id,
                        user_id=user.id if user is not None else None,
                        user_email=user.email if user is not None else None,
                        category=budget.category,
                        period=budget.month,
                        limit_amount=budget.limit_amount,
                        spent_amount=spent,
                    )
                )
            return snapshots
