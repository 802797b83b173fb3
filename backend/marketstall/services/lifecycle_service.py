# Overview: Service-layer operations for the item lifecycle; encapsulates business logic and database work.

"""
Item Lifecycle Service

================================================================================
PURPOSE: Purchase -> QR attach -> sale on ONE ledger row per physical item
================================================================================

STATE MACHINE (per SaleRecord):

    PURCHASE (purchased_at set, sold_at NULL, qr_id NULL)
        |  attach_qr()            one-shot, never overwrites
        v
    TAGGED PURCHASE (qr_id set)
        |  record_sale(qr_id=...) checkout scan, updates the same row
        v
    SALE (sold_at set)

    Ad hoc sales skip the purchase phase: record_sale() without a known
    qr_id inserts a completed row directly.

RULES:
1. qr_id is unique among live (non-deleted) rows
2. attach_qr() rejects rows that already carry a qr_id (ConflictError)
3. A checkout scan of a live qr_id updates that row; it never inserts a second row
4. A QR completes exactly one sale: scanning an already sold row is a ConflictError
5. An unknown qr_id at checkout inserts a new completed row holding that qr_id
6. Money is stored in cents; input amounts are rounded half-up

The insert-vs-update branch is an explicit lookup inside the write
transaction, not a database upsert, so callers can see which one happened.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import SaleRecord
from marketstall.time_utils import utcnow
from marketstall.validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    clean_text,
    parse_flag,
    parse_id,
    parse_money_cents,
    parse_timestamp,
)
from . import storage_service
from .concurrency import begin_write_transaction, run_with_retry
from .ledger_service import find_live_by_qr, get_live_sale, live_sales, require_active_user
from .storage_service import StorageError


QR_MAX_LENGTH = 128


def _clean_qr(qr_id, *, required: bool) -> str | None:
    return clean_text(qr_id, "qr_id", max_length=QR_MAX_LENGTH, required=required)


def _run_write(op, *, qr_id: str | None = None):
    """Run a write op with retry; roll back on any failure."""
    try:
        return run_with_retry(op)
    except IntegrityError:
        db.session.rollback()
        # Partial unique index on live qr_id lost a race with another request
        if qr_id and find_live_by_qr(qr_id) is not None:
            raise ConflictError(f"QR {qr_id} is already in use")
        raise
    except Exception:
        db.session.rollback()
        raise


def create_purchase(
    description,
    cost,
    owner_user_id,
    *,
    target_price=None,
    remarks=None,
    is_pin=None,
    qr_id=None,
    image_url=None,
    purchased_at: datetime | str | None = None,
) -> SaleRecord:
    """
    Register an acquired item: cost known, price unknown.

    Raises ValidationError on empty description, missing/non-numeric cost
    or missing owner; ConflictError if a supplied qr_id is already live.
    """
    description = clean_text(description, "description", max_length=255, required=True)
    cost_cents = parse_money_cents(cost, "cost")
    owner_id = parse_id(owner_user_id, "owner_user_id")
    target_cents = parse_money_cents(target_price, "target_price", required=False)
    remarks = clean_text(remarks, "remarks", max_length=500)
    purchase_is_pin = parse_flag(is_pin, "is_pin")
    qr = _clean_qr(qr_id, required=False)
    image = clean_text(image_url, "image_url", max_length=255)
    purchased_ts = parse_timestamp(purchased_at, "purchased_at") or utcnow()

    def _op():
        begin_write_transaction()
        require_active_user(owner_id)
        if qr and find_live_by_qr(qr) is not None:
            raise ConflictError(f"QR {qr} is already attached to another item")

        purchase = SaleRecord(
            description=description,
            cost_cents=cost_cents,
            target_price_cents=target_cents,
            owner_user_id=owner_id,
            purchase_is_pin=purchase_is_pin,
            purchase_remarks=remarks,
            qr_id=qr,
            image_url=image,
            purchased_at=purchased_ts,
            sold_at=None,
        )
        db.session.add(purchase)
        db.session.commit()
        return purchase

    return _run_write(_op, qr_id=qr)


def list_pending_purchases() -> list[SaleRecord]:
    """
    Live purchases not yet sold, newest first.

    Plain query per call; nothing is cached between requests.
    """
    return (
        live_sales()
        .filter(SaleRecord.purchased_at.isnot(None), SaleRecord.sold_at.is_(None))
        .order_by(SaleRecord.purchased_at.desc(), SaleRecord.id.desc())
        .all()
    )


def attach_qr(sale_id, qr_id) -> SaleRecord:
    """Bind a QR label to an existing row. One-shot: never overwrites."""
    sale_id = parse_id(sale_id, "id")
    qr = _clean_qr(qr_id, required=True)

    def _op():
        begin_write_transaction()
        sale = get_live_sale(sale_id, for_update=True)
        if sale.qr_id:
            raise ConflictError(f"Sale {sale_id} already has QR {sale.qr_id}")

        holder = find_live_by_qr(qr)
        if holder is not None:
            raise ConflictError(f"QR {qr} is already attached to sale {holder.id}")

        sale.qr_id = qr
        db.session.commit()
        return sale

    return _run_write(_op, qr_id=qr)


def resolve_by_qr(qr_id) -> SaleRecord:
    """Checkout prefill: the live row holding qr_id."""
    qr = _clean_qr(qr_id, required=True)
    sale = find_live_by_qr(qr)
    if sale is None:
        raise NotFoundError(f"No item found for QR {qr}")
    return sale


def record_sale(
    *,
    cashier_user_id,
    price,
    owner_user_id=None,
    description=None,
    cost=None,
    image_url=None,
    is_pin=None,
    qr_id=None,
    sold_at: datetime | str | None = None,
) -> tuple[SaleRecord, bool]:
    """
    Complete a sale. Returns (record, updated).

    - qr_id held by a live row: update that row in place (updated=True).
      Description, cost, owner and image are inherited unless supplied.
    - otherwise: insert a new completed row (updated=False); description
      and owner are then required.
    """
    qr = _clean_qr(qr_id, required=False)
    price_cents = parse_money_cents(price, "price")
    cost_cents = parse_money_cents(cost, "cost", required=False)
    description = clean_text(description, "description", max_length=255)
    owner_id = parse_id(owner_user_id, "owner_user_id", required=False)
    cashier_id = parse_id(cashier_user_id, "cashier_user_id")
    sale_is_pin = parse_flag(is_pin, "is_pin")
    image = clean_text(image_url, "image_url", max_length=255)
    sold_ts = parse_timestamp(sold_at, "sold_at") or utcnow()

    if qr is None and description is None:
        raise ValidationError("description is required")

    def _op():
        begin_write_transaction()
        require_active_user(cashier_id, "cashier_user_id")
        if owner_id is not None:
            require_active_user(owner_id)

        existing = find_live_by_qr(qr, for_update=True) if qr else None
        if existing is not None:
            sale = _complete_tagged_purchase(
                existing,
                price_cents=price_cents,
                cashier_id=cashier_id,
                is_pin=sale_is_pin,
                sold_ts=sold_ts,
                description=description,
                cost_cents=cost_cents,
                owner_id=owner_id,
                image=image,
            )
            db.session.commit()
            return sale, True

        if description is None:
            raise ValidationError("description is required")
        if owner_id is None:
            raise ValidationError("owner_user_id is required")

        sale = SaleRecord(
            description=description,
            price_cents=price_cents,
            cost_cents=cost_cents,
            owner_user_id=owner_id,
            cashier_user_id=cashier_id,
            image_url=image,
            is_pin=sale_is_pin,
            qr_id=qr,
            sold_at=sold_ts,
        )
        db.session.add(sale)
        db.session.commit()
        return sale, False

    sale, updated = _run_write(_op, qr_id=qr)
    current_app.logger.info(
        "Sale %s %s by cashier %s (qr=%s)",
        sale.id, "completed" if updated else "recorded", cashier_id, qr,
    )
    return sale, updated


def _complete_tagged_purchase(
    existing: SaleRecord,
    *,
    price_cents: int,
    cashier_id: int,
    is_pin: bool,
    sold_ts: datetime,
    description: str | None,
    cost_cents: int | None,
    owner_id: int | None,
    image: str | None,
) -> SaleRecord:
    if existing.sold_at is not None:
        raise ConflictError(f"Item with QR {existing.qr_id} was already sold (sale {existing.id})")

    values = {
        SaleRecord.price_cents: price_cents,
        SaleRecord.cashier_user_id: cashier_id,
        SaleRecord.is_pin: is_pin,
        SaleRecord.sold_at: sold_ts,
    }
    if description is not None:
        values[SaleRecord.description] = description
    if cost_cents is not None:
        values[SaleRecord.cost_cents] = cost_cents
    if owner_id is not None:
        values[SaleRecord.owner_user_id] = owner_id
    if image is not None:
        values[SaleRecord.image_url] = image

    affected = (
        live_sales()
        .filter(SaleRecord.id == existing.id)
        .update(values, synchronize_session=False)
    )
    if affected == 0:
        raise NotFoundError("No purchase found for this QR")

    db.session.refresh(existing)
    return existing


def set_purchase_image(sale_id, image_url) -> SaleRecord:
    """Attach or replace the photo of a pending purchase; the replaced file is removed."""
    sale_id = parse_id(sale_id, "id")
    image = clean_text(image_url, "image_url", max_length=255, required=True)

    def _op():
        begin_write_transaction()
        sale = get_live_sale(sale_id, for_update=True)
        if not sale.is_pending_purchase:
            raise ConflictError(f"Sale {sale_id} is not a pending purchase")
        previous = sale.image_url
        sale.image_url = image
        db.session.commit()
        return sale, previous

    sale, previous = _run_write(_op)

    if previous and previous != image:
        try:
            storage_service.delete(previous)
        except StorageError:
            current_app.logger.warning("Could not remove replaced image %s of purchase %s", previous, sale_id)
    return sale
