from datetime import date
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from models.fiscal_periods import FiscalPeriod
from utils.errors import PeriodLockedError


def find_blocking_period(db: Session, tenant_id: str, on_date: date) -> Optional[FiscalPeriod]:
    """The locked (or year-closed) period covering ``on_date``, if any."""
    return db.query(FiscalPeriod).filter(
        FiscalPeriod.tenant_id == tenant_id,
        FiscalPeriod.start_date <= on_date,
        FiscalPeriod.end_date >= on_date,
        or_(FiscalPeriod.is_locked.is_(True), FiscalPeriod.is_year_closed.is_(True)),
    ).first()


def ensure_period_open(db: Session, tenant_id: str, on_date: Optional[date]):
    if on_date is None:
        return
    period = find_blocking_period(db, tenant_id, on_date)
    if period is not None:
        label = period.name or f"{period.start_date} - {period.end_date}"
        reason = "year is closed" if period.is_year_closed else "period is locked"
        raise PeriodLockedError(
            f"Cannot post to {on_date}: fiscal {reason} ({label})",
            details={"date": on_date.isoformat(), "periodId": period.id},
        )
