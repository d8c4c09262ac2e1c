from __future__ import annotations

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.config import settings

PeriodType = Literal["daily", "weekly", "monthly"]
StatusType = Literal["ok", "warning", "exceeded"]


class BudgetBase(BaseModel):
    period: PeriodType = "monthly"
    amount: float = Field(..., gt=0)
    category: str | None = Field(default=None, max_length=128, description="null = all spending")
    alert_threshold: int = Field(
        default_factory=lambda: settings.default_alert_threshold, ge=1, le=100, validate_default=True
    )
    is_active: bool = True


class BudgetCreate(BudgetBase):
    pass


class BudgetUpdate(BaseModel):
    amount: float | None = Field(default=None, gt=0)
    category: str | None = Field(default=None, max_length=128)
    alert_threshold: int | None = Field(default=None, ge=1, le=100)
    is_active: bool | None = None


class BudgetRead(BudgetBase):
    id: UUID
    current_spent: float | None = None
    remaining: float | None = None
    percentage: float | None = None
    status: StatusType | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PeriodSummary(BaseModel):
    budget_id: UUID
    budget: float
    spent: float
    remaining: float
    percentage: float
    bar_percentage: float
    alert_threshold: int
    status: StatusType
    period_start: date
    period_end: date


class BudgetSummaryResponse(BaseModel):
    budgets: dict[PeriodType, PeriodSummary | None]
    unread_alerts: int = 0


class BudgetAlertRead(BaseModel):
    id: UUID
    budget_id: UUID
    alert_type: Literal["warning", "exceeded"]
    message: str
    current_spent: float
    period_start: date
    is_read: bool
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class MarkAllReadResponse(BaseModel):
    updated: int


class BudgetCheckResponse(BaseModel):
    evaluated: int
    alerts: list[BudgetAlertRead]
    delivered: list[str]
