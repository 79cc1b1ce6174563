"""
Ledger read endpoints: dashboard, inventory, history, cost analytics
"""
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from smoketrackr.api.deps import get_current_user, get_db
from smoketrackr.application.ledger_reports import LedgerReportService
from smoketrackr.domain import ledger
from smoketrackr.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1", tags=["reports"])

_WINDOWS = "^(today|week|month|all)$"
_GRAINS = "^(daily|weekly)$"


# === Endpoints ===

@router.get("/dashboard/stats")
def dashboard_stats(
    date_range: str = Query(ledger.WINDOW_MONTH, pattern=_WINDOWS),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Бюджет месяца, потребление за период и разбивка по категориям"""
    return LedgerReportService(db).dashboard(user.id, window=date_range)


@router.get("/inventory")
def inventory(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Остатки и прогноз по всем продуктам"""
    return LedgerReportService(db).inventory(user.id)


@router.get("/history")
def history(
    period: str = Query(ledger.WINDOW_ALL, pattern=_WINDOWS),
    grain: str = Query(ledger.GRAIN_DAILY, pattern=_GRAINS),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return LedgerReportService(db).history(user.id, period=period, grain=grain)


@router.get("/history/heatmap")
def history_heatmap(
    year: int | None = Query(None, ge=1900, le=9999),
    month: int | None = Query(None, ge=1, le=12),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Календарь потребления за месяц (по умолчанию текущий)"""
    today = date.today()
    if (year is None) != (month is None):
        raise HTTPException(status_code=400, detail="Specify both year and month")
    return LedgerReportService(db).heatmap(user.id, year or today.year, month or today.month)


@router.get("/analytics/costs")
def cost_analytics(
    date_range: str = Query(ledger.WINDOW_ALL, pattern=_WINDOWS),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Расходы: по категориям, по месяцам, топ продуктов"""
    return LedgerReportService(db).cost_analytics(user.id, window=date_range)
