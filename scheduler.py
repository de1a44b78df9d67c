# scheduler.py
import logging
import threading
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, Optional, Tuple

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

import config
from alert_state import AlertStateTracker, NullAlertStateTracker, category_key
from classifier import AlertEvent, AlertLevel, classify, ratio
from dispatcher import Recipient, alert_message
from exceptions import (
    ConfigurationError,
    MalformedAmountError,
    MissingUserError,
    NonPositiveLimitError,
    SkippableBudgetError,
)
from money import ZERO, Money, to_money
from snapshot import BudgetSnapshot, period_start

logger = logging.getLogger(__name__)

JOB_ID = "budget-alert-check"

LEVEL_RANK = {AlertLevel.NONE: 0, AlertLevel.NEAR: 1, AlertLevel.EXCEEDED: 2}


@dataclass(frozen=True)
class SweepSummary:
    evaluated: int = 0
    alerted: int = 0
    skipped: int = 0
    failed: int = 0


@dataclass(frozen=True)
class _Candidate:
    snapshot: BudgetSnapshot
    level: AlertLevel
    spent: Money
    limit: Money


class BudgetAlertScheduler:
    """Periodically checks every current-month budget and dispatches alerts.

    Constructed once at startup with its collaborators; ``start`` and
    ``stop`` control the background job. ``check_budgets`` can also be
    called directly, and never overlaps with itself: a call made while a
    sweep is in progress returns ``None`` immediately.
    """

    def __init__(
        self,
        budget_reader,
        dispatcher,
        tracker: Optional[AlertStateTracker] = None,
        near_threshold: Decimal = config.NEAR_THRESHOLD,
        over_threshold: Decimal = config.OVER_THRESHOLD,
        schedule: str = config.ALERT_SCHEDULE,
        today: Callable[[], date] = date.today,
    ):
        if near_threshold <= ZERO or over_threshold <= ZERO:
            raise ConfigurationError("alert thresholds must be positive")
        if near_threshold >= over_threshold:
            raise ConfigurationError(
                f"near threshold {near_threshold} must be below over threshold {over_threshold}"
            )
        self.budget_reader = budget_reader
        self.dispatcher = dispatcher
        self.tracker = tracker or NullAlertStateTracker()
        self.near_threshold = near_threshold
        self.over_threshold = over_threshold
        self.schedule = schedule
        self.today = today
        self._guard = threading.Lock()
        self._scheduler: Optional[BackgroundScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self.running:
            return
        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self.check_budgets,
            CronTrigger.from_crontab(self.schedule),
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info("Budget alert scheduler started (%s)", self.schedule)

    def stop(self, wait: bool = True) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        self._scheduler = None
        logger.info("Budget alert scheduler stopped")

    def check_budgets(self) -> Optional[SweepSummary]:
        if not self._guard.acquire(blocking=False):
            logger.warning("Budget alert check already running, skipping this tick")
            return None
        try:
            return self._sweep()
        finally:
            self._guard.release()

    def _sweep(self) -> SweepSummary:
        logger.info("Running budget alert check...")
        period = period_start(self.today())
        try:
            budgets = self.budget_reader.list_all_budgets(period=period)
        except Exception:
            logger.exception("Could not load budgets, giving up on this tick")
            return SweepSummary()

        evaluated = alerted = skipped = failed = 0
        # duplicate budgets share one alert state; keep the highest level per key
        candidates: Dict[Tuple[int, str, date], _Candidate] = {}
        for snapshot in budgets:
            if snapshot.period is None or period_start(snapshot.period) != period:
                continue
            evaluated += 1
            try:
                candidate = self._classify(snapshot)
            except SkippableBudgetError as e:
                skipped += 1
                level = logging.ERROR if isinstance(e, MissingUserError) else logging.WARNING
                logger.log(level, "Skipping budget %s: %s", snapshot.id, e.reason)
                continue
            except Exception as e:
                failed += 1
                logger.exception("Error processing budget %s: %s", snapshot.id, e)
                continue
            key = (snapshot.user_id, category_key(snapshot.category), period)
            current = candidates.get(key)
            if current is None or LEVEL_RANK[candidate.level] > LEVEL_RANK[current.level]:
                candidates[key] = candidate

        for candidate in candidates.values():
            try:
                if self._alert(candidate, period) is not None:
                    alerted += 1
            except Exception as e:
                failed += 1
                logger.exception("Error processing budget %s: %s", candidate.snapshot.id, e)

        summary = SweepSummary(evaluated, alerted, skipped, failed)
        logger.info(
            "Budget alert check completed: %d evaluated, %d alerted, %d skipped, %d failed",
            summary.evaluated,
            summary.alerted,
            summary.skipped,
            summary.failed,
        )
        return summary

    def evaluate(self, snapshot: BudgetSnapshot, period: date) -> Optional[AlertEvent]:
        """Classify one budget and dispatch an alert if it crossed a threshold."""
        return self._alert(self._classify(snapshot), period)

    def _classify(self, snapshot: BudgetSnapshot) -> _Candidate:
        if snapshot.user_id is None:
            raise MissingUserError(snapshot.id)

        limit = to_money(snapshot.limit_amount, snapshot.id)
        spent = to_money(snapshot.spent_amount, snapshot.id)
        if spent < ZERO:
            raise MalformedAmountError(snapshot.spent_amount, snapshot.id)
        if limit <= ZERO:
            raise NonPositiveLimitError(snapshot.id, limit)

        level = classify(spent, limit, self.near_threshold, self.over_threshold)
        return _Candidate(snapshot, level, spent, limit)

    def _alert(self, candidate: _Candidate, period: date) -> Optional[AlertEvent]:
        snapshot, level = candidate.snapshot, candidate.level
        if level is AlertLevel.NONE:
            self.tracker.record(snapshot.user_id, snapshot.category, period, level)
            return None
        if not self.tracker.should_dispatch(snapshot.user_id, snapshot.category, period, level):
            logger.debug("Budget %s still %s, already alerted", snapshot.id, level.value)
            return None

        event = AlertEvent(
            budget_id=snapshot.id,
            user_id=snapshot.user_id,
            user_email=snapshot.user_email,
            category=snapshot.category,
            period=period,
            ratio=ratio(candidate.spent, candidate.limit),
            level=level,
            spent=candidate.spent,
            limit=candidate.limit,
        )
        result = self.dispatcher.dispatch(
            Recipient(id=event.user_id, email=event.user_email),
            event.category,
            event.spent,
            event.limit,
            event.exceeded,
        )
        if not (result.notified or result.emailed):
            # leave the state alone so the next tick tries again
            logger.error(
                "%s alert for budget %s was not delivered on any channel", level.value, snapshot.id
            )
            return None
        self.tracker.record(snapshot.user_id, snapshot.category, period, level)

        _, body = alert_message(event.category, event.spent, event.limit, event.exceeded)
        logger.info("%s alert for user %s: %s", level.value, event.user_id, body)
        return event
