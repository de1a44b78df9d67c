# alert_state.py
"""Remembers the last alert level per budget so a steady state is only announced once.

Without it a budget sitting at 95% would re-alert on every sweep. State is
keyed by (user, lower-cased category, period); a new period starts clean.
"""
import logging
import threading
from datetime import date
from typing import Callable, Dict, Protocol, Tuple

from sqlalchemy.orm import Session

from classifier import AlertLevel
from database import BudgetAlertState

logger = logging.getLogger(__name__)

ALERTING_LEVELS = (AlertLevel.NEAR, AlertLevel.EXCEEDED)


def category_key(category: str) -> str:
    return (category or "").strip().lower()


class AlertStateTracker(Protocol):
    def should_dispatch(self, user_id: int, category: str, period: date, level: AlertLevel) -> bool:
        ...

    def record(self, user_id: int, category: str, period: date, level: AlertLevel) -> None:
        ...


class NullAlertStateTracker:
    """Dispatches on every sweep, with no memory between ticks."""

    def should_dispatch(self, user_id: int, category: str, period: date, level: AlertLevel) -> bool:
        return level in ALERTING_LEVELS

    def record(self, user_id: int, category: str, period: date, level: AlertLevel) -> None:
        pass


class MemoryAlertStateTracker:
    def __init__(self):
        self._levels: Dict[Tuple[int, str, date], AlertLevel] = {}
        self._lock = threading.Lock()

    def should_dispatch(self, user_id, category, period, level) -> bool:
        if level not in ALERTING_LEVELS:
            return False
        with self._lock:
            return self._levels.get((user_id, category_key(category), period)) != level

    def record(self, user_id, category, period, level) -> None:
        with self._lock:
            for key in [k for k in self._levels if k[2] < period]:
                del self._levels[key]
            self._levels[(user_id, category_key(category), period)] = level


class SqlAlertStateTracker:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def _load(self, db: Session, user_id: int, category: str, period: date):
        return db.get(BudgetAlertState, (user_id, category_key(category), period))

    def should_dispatch(self, user_id, category, period, level) -> bool:
        if level not in ALERTING_LEVELS:
            return False
        with self.session_factory() as db:
            state = self._load(db, user_id, category, period)
            return state is None or state.level != level.value

    def record(self, user_id, category, period, level) -> None:
        with self.session_factory() as db:
            stale = (
                db.query(BudgetAlertState)
                .filter(BudgetAlertState.period < period)
                .delete(synchronize_session=False)
            )
            if stale:
                logger.info("Cleared %d alert state row(s) from earlier periods", stale)

            state = self._load(db, user_id, category, period)
            if state is None:
                if level is not AlertLevel.NONE:
                    db.add(
                        BudgetAlertState(
                            user_id=user_id, category=category_key(category), period=period, level=level.value
                        )
                    )
            elif state.level != level.value:
                state.level = level.value
            db.commit()
