from __future__ import annotations

from collections.abc import AsyncIterator
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.models.budget import Budget, BudgetAlert
from app.schemas.budget import (
    BudgetAlertRead,
    BudgetCheckResponse,
    BudgetCreate,
    BudgetRead,
    BudgetSummaryResponse,
    BudgetUpdate,
    MarkAllReadResponse,
    PeriodSummary,
)
from app.services.alert_delivery import deliver_alerts
from app.services.budget_tracker import BudgetTracker, TrackedBudget
from app.services.spend_source import ReceiptsApiClient, SpendSource

router = APIRouter(prefix="/budgets", tags=["budgets"])


async def get_spend_source(request: Request) -> AsyncIterator[SpendSource]:
    authorization = request.headers.get("authorization")
    if not authorization and settings.receipts_api_token:
        authorization = f"Bearer {settings.receipts_api_token}"
    async with ReceiptsApiClient(
        settings.receipts_api_url,
        authorization=authorization,
        timeout=settings.receipts_api_timeout,
    ) as client:
        yield client


def _clean_category(value: str | None) -> str | None:
    return (value or "").strip() or None


def _find_budget(db: Session, period: str, category: str | None) -> Budget | None:
    q = select(Budget).where(Budget.period == period)
    if category is None:
        q = q.where(Budget.category.is_(None))
    else:
        # Plain case-insensitive equality; ilike would treat % and _ as wildcards.
        q = q.where(func.lower(Budget.category) == category.lower())
    return db.execute(q).scalars().first()


def _budget_read(row: Budget, tracked: TrackedBudget | None = None) -> BudgetRead:
    out = BudgetRead(
        id=row.id,
        period=row.period,
        amount=float(row.amount),
        category=row.category,
        alert_threshold=row.alert_threshold,
        is_active=row.is_active,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
    if tracked is not None:
        out.current_spent = tracked.status.spent
        out.remaining = round(tracked.status.remaining, 2)
        out.percentage = round(tracked.status.percentage, 2)
        out.status = tracked.status.status.value
    return out


def _period_summary(tracked: TrackedBudget) -> PeriodSummary:
    s = tracked.status
    return PeriodSummary(
        budget_id=tracked.budget.id,
        budget=s.budget,
        spent=s.spent,
        remaining=round(s.remaining, 2),
        percentage=round(s.percentage, 2),
        bar_percentage=round(s.bar_percentage, 2),
        alert_threshold=s.alert_threshold,
        status=s.status.value,
        period_start=tracked.window.start,
        period_end=tracked.window.end,
    )


def _unread_count(db: Session) -> int:
    return db.execute(select(func.count(BudgetAlert.id)).where(BudgetAlert.is_read.is_(False))).scalar() or 0


@router.get("", response_model=list[BudgetRead])
async def list_budgets(
    active_only: bool = False,
    db: Session = Depends(get_db),
    source: SpendSource = Depends(get_spend_source),
) -> list[BudgetRead]:
    rows = db.execute(select(Budget).order_by(Budget.period, Budget.category)).scalars().all()
    tracked = await BudgetTracker(db, source).evaluate_all()
    by_id = {t.budget.id: t for t in tracked}
    return [_budget_read(r, by_id.get(r.id)) for r in rows if r.is_active or not active_only]


@router.post("", response_model=BudgetRead, status_code=201)
def upsert_budget(payload: BudgetCreate, db: Session = Depends(get_db)) -> BudgetRead:
    category = _clean_category(payload.category)
    row = _find_budget(db, payload.period, category)
    if row:
        row.amount = payload.amount
        row.alert_threshold = payload.alert_threshold
        row.is_active = payload.is_active
        row.last_status = "ok"
    else:
        row = Budget(
            period=payload.period,
            amount=payload.amount,
            category=category,
            alert_threshold=payload.alert_threshold,
            is_active=payload.is_active,
            last_status="ok",
        )
        db.add(row)
    db.commit()
    db.refresh(row)
    return _budget_read(row)


@router.get("/summary", response_model=BudgetSummaryResponse)
async def budget_summary(
    db: Session = Depends(get_db),
    source: SpendSource = Depends(get_spend_source),
) -> BudgetSummaryResponse:
    tracked = await BudgetTracker(db, source).summary()
    return BudgetSummaryResponse(
        budgets={p: (_period_summary(t) if t else None) for p, t in tracked.items()},
        unread_alerts=_unread_count(db),
    )


@router.post("/check", response_model=BudgetCheckResponse)
async def check_budgets(
    deliver: bool = True,
    db: Session = Depends(get_db),
    source: SpendSource = Depends(get_spend_source),
) -> BudgetCheckResponse:
    tracked = await BudgetTracker(db, source).evaluate_all()
    alerts = [t.alert for t in tracked if t.alert is not None]
    delivered = await deliver_alerts(alerts) if deliver else []
    return BudgetCheckResponse(
        evaluated=len(tracked),
        alerts=[BudgetAlertRead.model_validate(a) for a in alerts],
        delivered=delivered,
    )


@router.get("/alerts", response_model=list[BudgetAlertRead])
def list_alerts(unread_only: bool = False, db: Session = Depends(get_db)) -> list[BudgetAlertRead]:
    q = select(BudgetAlert).order_by(BudgetAlert.created_at.desc())
    if unread_only:
        q = q.where(BudgetAlert.is_read.is_(False))
    rows = db.execute(q).scalars().all()
    return [BudgetAlertRead.model_validate(r) for r in rows]


@router.patch("/alerts/read-all", response_model=MarkAllReadResponse)
def mark_all_alerts_read(db: Session = Depends(get_db)) -> MarkAllReadResponse:
    result = db.execute(update(BudgetAlert).where(BudgetAlert.is_read.is_(False)).values(is_read=True))
    db.commit()
    return MarkAllReadResponse(updated=result.rowcount or 0)


@router.patch("/alerts/{alert_id}/read", response_model=BudgetAlertRead)
def mark_alert_read(alert_id: UUID, db: Session = Depends(get_db)) -> BudgetAlertRead:
    row = db.get(BudgetAlert, alert_id)
    if not row:
        raise HTTPException(status_code=404, detail="Alert not found")
    row.is_read = True
    db.commit()
    db.refresh(row)
    return BudgetAlertRead.model_validate(row)


@router.patch("/{budget_id}", response_model=BudgetRead)
def update_budget(budget_id: UUID, payload: BudgetUpdate, db: Session = Depends(get_db)) -> BudgetRead:
    row = db.get(Budget, budget_id)
    if not row:
        raise HTTPException(status_code=404, detail="Budget not found")
    changes = payload.model_dump(exclude_unset=True)
    if "category" in changes:
        category = _clean_category(changes.pop("category"))
        clash = _find_budget(db, row.period, category)
        if clash and clash.id != row.id:
            raise HTTPException(status_code=409, detail="A budget for this period and category already exists")
        row.category = category
    for field in ("amount", "alert_threshold", "is_active"):
        val = changes.get(field)
        if val is not None:
            setattr(row, field, val)
    if {"amount", "alert_threshold", "category"} & payload.model_fields_set:
        # Definition changed: the next evaluation starts from ok again.
        row.last_status = "ok"
    db.commit()
    db.refresh(row)
    return _budget_read(row)


@router.delete("/{budget_id}", status_code=204)
def delete_budget(budget_id: UUID, db: Session = Depends(get_db)) -> None:
    row = db.get(Budget, budget_id)
    if not row:
        raise HTTPException(status_code=404, detail="Budget not found")
    db.delete(row)
    db.commit()
