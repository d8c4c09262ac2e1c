"""
Budget status and alert rules shared by every budget view.

Everything here is pure: no I/O, no session, no clock. Callers aggregate
spend for the budget's current period and decide what to persist.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from app.services.periods import period_label


class Status(str, Enum):
    OK = "ok"
    WARNING = "warning"
    EXCEEDED = "exceeded"


_SEVERITY = {
    Status.OK: 0,
    Status.WARNING: 1,
    Status.EXCEEDED: 2,
}


class BudgetEvaluationError(ValueError):
    pass


class InvalidAggregateError(BudgetEvaluationError):
    """Negative spend or a negative/non-finite budget amount."""


class InvalidThresholdError(BudgetEvaluationError):
    """Alert threshold outside [1, 100]."""


class BudgetLike(Protocol):
    period: str
    amount: Any
    alert_threshold: int
    category: str | None


@dataclass(frozen=True)
class BudgetRule:
    """Plain value object satisfying BudgetLike, for callers without an ORM row."""

    period: str
    amount: float
    alert_threshold: int = 80
    category: str | None = None


@dataclass(frozen=True)
class BudgetStatus:
    budget: float
    spent: float
    remaining: float
    percentage: float
    alert_threshold: int
    status: Status

    @property
    def bar_percentage(self) -> float:
        """Progress bar width; the only place percentage is clamped."""
        return min(self.percentage, 100.0)


@dataclass(frozen=True)
class AlertDraft:
    alert_type: Status
    message: str
    current_spent: float
    is_read: bool = False


def severity(status: Status | str) -> int:
    return _SEVERITY[Status(status)]


def is_upward(previous: Status | str, new: Status | str) -> bool:
    return severity(new) > severity(previous)


def _check_threshold(alert_threshold: Any) -> int:
    if isinstance(alert_threshold, bool) or not isinstance(alert_threshold, (int, float)):
        raise InvalidThresholdError(f"alert_threshold must be a number, got {alert_threshold!r}")
    if isinstance(alert_threshold, float) and not alert_threshold.is_integer():
        raise InvalidThresholdError(f"alert_threshold must be a whole percent, got {alert_threshold}")
    if not 1 <= alert_threshold <= 100:
        raise InvalidThresholdError(f"alert_threshold must be between 1 and 100, got {alert_threshold}")
    return int(alert_threshold)


def _as_amount(value: Any, name: str) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidAggregateError(f"{name} must be numeric, got {value!r}") from e
    if not math.isfinite(out):
        raise InvalidAggregateError(f"{name} must be finite, got {value!r}")
    if out < 0:
        raise InvalidAggregateError(f"{name} must be >= 0, got {value!r}")
    return out


def classify(percentage: float, alert_threshold: int) -> Status:
    """Map a utilization percentage to a status tier; boundaries go to the higher tier."""
    threshold = _check_threshold(alert_threshold)
    if not math.isfinite(percentage):
        raise InvalidAggregateError(f"percentage must be finite, got {percentage}")
    if percentage < 0:
        raise InvalidAggregateError(f"percentage must be >= 0, got {percentage}")
    if percentage >= 100:
        return Status.EXCEEDED
    if percentage >= threshold:
        return Status.WARNING
    return Status.OK


def evaluate(budget: BudgetLike, spent: Any) -> BudgetStatus:
    amount = _as_amount(budget.amount, "amount")
    spent_value = _as_amount(spent, "spent")
    threshold = _check_threshold(budget.alert_threshold)
    if amount == 0:
        # Any spend against a zero budget is an overage.
        percentage = 100.0 if spent_value > 0 else 0.0
    else:
        percentage = spent_value * 100.0 / amount
    return BudgetStatus(
        budget=amount,
        spent=spent_value,
        remaining=amount - spent_value,
        percentage=percentage,
        alert_threshold=threshold,
        status=classify(percentage, threshold),
    )


def _scope_label(category: str | None) -> str:
    return f'"{category}"' if category else "all spending"


def maybe_emit_alert(
    previous_status: Status | str,
    new_status: Status | str,
    budget: BudgetLike,
    spent: Any,
) -> AlertDraft | None:
    """
    Build an alert for an upward status transition (ok->warning, ok->exceeded,
    warning->exceeded). Unchanged or downward transitions return None.
    """
    new = Status(new_status)
    if not is_upward(previous_status, new):
        return None
    current = evaluate(budget, spent)
    label = period_label(budget.period)
    scope = _scope_label(budget.category)
    figures = f"{current.spent:.2f} of {current.budget:.2f} spent"
    if new is Status.EXCEEDED:
        message = f"Budget exceeded: your {label} budget for {scope} is over its limit ({figures})."
    else:
        message = (
            f"Budget warning: your {label} budget for {scope} has reached "
            f"{current.percentage:.0f}% ({figures})."
        )
    return AlertDraft(alert_type=new, message=message, current_spent=current.spent)
