"""
Sales register: day listing and soft deletion of sale rows.

A deleted row stays in the table with deleted=True and deleted_at set.
Its photo is removed from storage afterwards; a failed removal is logged
and leaves the delete in place.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from flask import current_app

from ..extensions import db
from ..models import SaleRecord
from marketstall.time_utils import utcnow
from marketstall.validation import parse_id
from . import storage_service
from .ledger_service import get_live_sale, live_sales, soft_delete
from .storage_service import StorageError


def list_sales(day: date) -> list[SaleRecord]:
    """Completed live sales sold on `day`, newest first."""
    start = datetime.combine(day, time.min)
    end = start + timedelta(days=1)
    return (
        live_sales()
        .filter(SaleRecord.sold_at >= start, SaleRecord.sold_at < end)
        .order_by(SaleRecord.sold_at.desc(), SaleRecord.id.desc())
        .all()
    )


def delete_sale(sale_id) -> tuple[SaleRecord, bool]:
    """
    Soft-delete a sale or purchase row.

    Returns (record, image_removed). Raises NotFoundError for unknown or
    already deleted ids.
    """
    sale_id = parse_id(sale_id, "id")
    try:
        sale = get_live_sale(sale_id)
        image_ref = sale.image_url
        soft_delete(sale, deleted_at=utcnow())
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    image_removed = False
    if image_ref:
        try:
            image_removed = storage_service.delete(image_ref)
        except StorageError:
            current_app.logger.warning("Could not remove image %s of deleted sale %s", image_ref, sale_id)
    return sale, image_removed
