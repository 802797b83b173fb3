# Overview: Ledger store access; the only place that knows how "live" sale rows are selected.

"""
Ledger Store Invariants (authoritative)

- A row is live while deleted is False; every read path goes through live_sales().
- qr_id is unique among live rows (partial unique index + check in the write path).
- processed flips False -> True exactly once, inside a settlement transaction.
- Rows are never hard-deleted; soft_delete() keeps them for audit.
"""

from __future__ import annotations

from ..extensions import db
from ..models import SaleRecord, User
from .concurrency import lock_for_update
from marketstall.validation import NotFoundError, ValidationError


def live_sales():
    """Base query for non-deleted sale rows."""
    return db.session.query(SaleRecord).filter(SaleRecord.deleted.is_(False))


def get_live_sale(sale_id: int, *, for_update: bool = False) -> SaleRecord:
    """Fetch a live row by id or raise NotFoundError."""
    q = live_sales().filter(SaleRecord.id == sale_id)
    if for_update:
        q = lock_for_update(q)
    sale = q.first()
    if not sale:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def find_live_by_qr(qr_id: str, *, for_update: bool = False) -> SaleRecord | None:
    """The live row holding qr_id, or None."""
    q = live_sales().filter(SaleRecord.qr_id == qr_id)
    if for_update:
        q = lock_for_update(q)
    return q.first()


def unprocessed_sales(*, for_update: bool = False) -> list[SaleRecord]:
    """
    Settlement backlog: every live, unprocessed, completed sale, oldest id first.

    No date filter; settlement is global over the backlog.
    """
    q = live_sales().filter(
        SaleRecord.processed.is_(False),
        SaleRecord.sold_at.isnot(None),
    )
    if for_update:
        q = lock_for_update(q)
    return q.order_by(SaleRecord.id.asc()).all()


def require_active_user(user_id: int, field: str = "owner_user_id") -> User:
    user = db.session.query(User).filter_by(id=user_id, is_active=True).first()
    if not user:
        raise ValidationError(f"{field} does not reference an active user")
    return user


def soft_delete(sale: SaleRecord, *, deleted_at) -> None:
    sale.deleted = True
    sale.deleted_at = deleted_at
