from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.budget import Budget, BudgetAlert
from app.services.budget_evaluator import BudgetStatus, Status, evaluate, maybe_emit_alert, severity
from app.services.periods import PERIODS, PeriodWindow, period_bounds
from app.services.spend_source import SpendSource

logger = logging.getLogger(__name__)


@dataclass
class TrackedBudget:
    budget: Budget
    window: PeriodWindow
    status: BudgetStatus
    alert: BudgetAlert | None = None


def _money(value: float) -> Decimal:
    return Decimal(str(round(value, 2)))


class BudgetTracker:
    """
    Evaluates stored budgets against current spend and records alerts.

    Previous status per budget is kept on the row (last_status/last_period_start)
    and only ever rises within a period; a new period starts again from ok.
    """

    def __init__(self, db: Session, source: SpendSource, *, today: date | None = None) -> None:
        self.db = db
        self.source = source
        self.today = today or date.today()

    def previous_status(self, budget: Budget, window: PeriodWindow) -> Status:
        if budget.last_period_start != window.start:
            return Status.OK
        try:
            return Status(budget.last_status or Status.OK.value)
        except ValueError:
            return Status.OK

    def _has_unread_alert(self, budget: Budget, alert_type: Status, period_start: date) -> bool:
        row = self.db.execute(
            select(BudgetAlert.id).where(
                BudgetAlert.budget_id == budget.id,
                BudgetAlert.alert_type == alert_type.value,
                BudgetAlert.period_start == period_start,
                BudgetAlert.is_read.is_(False),
            )
        ).first()
        return row is not None

    def _apply(self, budget: Budget, window: PeriodWindow, spent: float) -> TrackedBudget:
        current = evaluate(budget, spent)
        previous = self.previous_status(budget, window)
        tracked = TrackedBudget(budget=budget, window=window, status=current)
        draft = maybe_emit_alert(previous, current.status, budget, spent)
        if draft and not self._has_unread_alert(budget, draft.alert_type, window.start):
            alert = BudgetAlert(
                budget_id=budget.id,
                alert_type=draft.alert_type.value,
                message=draft.message,
                current_spent=_money(draft.current_spent),
                period_start=window.start,
                is_read=False,
            )
            self.db.add(alert)
            tracked.alert = alert
            logger.info(
                "budget_alert_created budget=%s type=%s spent=%.2f amount=%.2f",
                budget.id,
                draft.alert_type.value,
                current.spent,
                current.budget,
            )
        sticky = current.status if severity(current.status) > severity(previous) else previous
        budget.last_status = sticky.value
        budget.last_period_start = window.start
        return tracked

    async def _evaluate_many(self, budgets: list[Budget]) -> list[TrackedBudget]:
        windows = [period_bounds(b.period, self.today) for b in budgets]
        # Wait for every fetch before raising so none outlives the shared client.
        results = await asyncio.gather(
            *(self.source.total_spent(start=w.start, end=w.end, category=b.category) for b, w in zip(budgets, windows)),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        spent = list(results)
        tracked = [self._apply(b, w, s) for b, w, s in zip(budgets, windows, spent)]
        self.db.commit()
        return tracked

    async def evaluate_budget(self, budget: Budget) -> TrackedBudget:
        tracked = await self._evaluate_many([budget])
        return tracked[0]

    async def evaluate_all(self) -> list[TrackedBudget]:
        """Evaluate every active budget; inactive budgets are skipped."""
        budgets = list(
            self.db.execute(
                select(Budget).where(Budget.is_active.is_(True)).order_by(Budget.period, Budget.category)
            ).scalars().all()
        )
        return await self._evaluate_many(budgets)

    async def summary(self) -> dict[str, TrackedBudget | None]:
        """Status of the active all-spending budget of each period type."""
        budgets = self.db.execute(
            select(Budget).where(Budget.is_active.is_(True), Budget.category.is_(None))
        ).scalars().all()
        by_period: dict[str, Budget] = {}
        for b in budgets:
            by_period.setdefault(b.period, b)
        tracked = await self._evaluate_many([by_period[p] for p in PERIODS if p in by_period])
        out: dict[str, TrackedBudget | None] = {p: None for p in PERIODS}
        for t in tracked:
            out[t.budget.period] = t
        return out
