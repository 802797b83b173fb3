# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta

from sqlalchemy import and_, func

from marketstall.extensions import db
from marketstall.models import SaleRecord, User
from marketstall.time_utils import today
from marketstall.validation import ValidationError, cents_to_amount


PERIODS = ("day", "week", "month")


def resolve_window(ref_date: date, period: str) -> tuple[date, date]:
    """
    Inclusive calendar window containing ref_date.

    day   -> ref_date itself
    week  -> Monday..Sunday (ISO week)
    month -> first..last day of the month
    """
    if period == "day":
        return ref_date, ref_date
    if period == "week":
        start = ref_date - timedelta(days=ref_date.weekday())
        return start, start + timedelta(days=6)
    if period == "month":
        last_day = calendar.monthrange(ref_date.year, ref_date.month)[1]
        return ref_date.replace(day=1), ref_date.replace(day=last_day)
    raise ValidationError(f"range must be one of: {', '.join(PERIODS)}")


def breakdown(ref_date: date | None = None, period: str = "day") -> dict:
    """
    Revenue per owner for the window around ref_date.

    Every active user appears (revenue 0 when nothing sold), ordered by name.
    Read-only: processed flags are ignored and untouched.
    """
    ref_date = ref_date or today()
    start, end = resolve_window(ref_date, period)

    # Half-open datetime interval, passed as bound parameters
    start_dt = datetime.combine(start, time.min)
    end_dt = datetime.combine(end + timedelta(days=1), time.min)

    revenue = func.coalesce(func.sum(SaleRecord.price_cents), 0)
    rows = (
        db.session.query(User.id, User.name, revenue.label("revenue_cents"))
        .outerjoin(
            SaleRecord,
            and_(
                SaleRecord.owner_user_id == User.id,
                SaleRecord.deleted.is_(False),
                SaleRecord.sold_at >= start_dt,
                SaleRecord.sold_at < end_dt,
            ),
        )
        .filter(User.is_active.is_(True))
        .group_by(User.id, User.name)
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )

    total_cents = 0
    out = []
    for row in rows:
        cents = int(row.revenue_cents or 0)
        total_cents += cents
        out.append(
            {
                "owner_id": row.id,
                "owner_name": row.name,
                "revenue": cents_to_amount(cents),
                "revenue_cents": cents,
            }
        )

    return {
        "date": ref_date.isoformat(),
        "range": period,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "rows": out,
        "total": cents_to_amount(total_cents),
        "total_cents": total_cents,
    }
