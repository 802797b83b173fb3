# Overview: Service-layer operations for settlement; encapsulates business logic and database work.

"""
Settlement Engine - nets the unprocessed sale backlog into cashier -> owner debts

ALGORITHM:
1. Select every live, unprocessed, completed sale (no date filter)
2. Skip self-trades (cashier == owner): nothing to net against oneself
3. Group by (cashier, owner); amount = sum of prices, sales_ids = member ids
4. Write one Settlement row per group and flip its sales to processed
5. Steps 1-4 run in ONE transaction: all entries and all flips, or nothing

Self-trade rows are left unprocessed on purpose; they are excluded from
every run, not settled.

CONCURRENCY: the backlog read holds the write lock (BEGIN IMMEDIATE on
SQLite, SELECT ... FOR UPDATE elsewhere) until commit, so two concurrent
runs cannot both consume the same sale. The processed flip is guarded on
processed = False and must hit every member id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import SaleRecord, Settlement
from marketstall.validation import PermissionDeniedError, cents_to_amount
from .concurrency import begin_write_transaction, run_with_retry
from .ledger_service import unprocessed_sales


class SettlementError(Exception):
    """Settlement run failed and was rolled back; no partial state is visible."""


@dataclass
class SettlementEntry:
    from_user_id: int
    to_user_id: int
    amount_cents: int = 0
    sales_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "from_user_id": self.from_user_id,
            "to_user_id": self.to_user_id,
            "amount": cents_to_amount(self.amount_cents),
            "amount_cents": self.amount_cents,
            "sales_ids": list(self.sales_ids),
        }


def net_sales(sales: Iterable[SaleRecord]) -> list[SettlementEntry]:
    """
    Pure netting step: one entry per (cashier, owner) pair, in order of
    first appearance. Self-trades are dropped.
    """
    entries: dict[tuple[int, int], SettlementEntry] = {}
    for sale in sales:
        if sale.is_self_trade:
            continue
        key = (sale.cashier_user_id, sale.owner_user_id)
        entry = entries.get(key)
        if entry is None:
            entry = entries[key] = SettlementEntry(from_user_id=key[0], to_user_id=key[1])
        entry.amount_cents += sale.price_cents or 0
        entry.sales_ids.append(sale.id)
    return list(entries.values())


def _mark_processed(sales_ids: list[int], settlement_id: int) -> None:
    affected = (
        db.session.query(SaleRecord)
        .filter(SaleRecord.id.in_(sales_ids), SaleRecord.processed.is_(False))
        .update(
            {SaleRecord.processed: True, SaleRecord.settlement_id: settlement_id},
            synchronize_session=False,
        )
    )
    if affected != len(sales_ids):
        raise SettlementError("Sales changed during settlement")


def process_settlement(*, actor_user_id: int, is_admin: bool) -> list[Settlement]:
    """
    Run one settlement over the whole unprocessed backlog.

    Raises PermissionDeniedError (before any transaction) for non-admins,
    SettlementError when the transaction fails. An empty backlog returns [].
    """
    if not is_admin:
        raise PermissionDeniedError("Only administrators can process a settlement")

    def _op():
        begin_write_transaction()
        backlog = unprocessed_sales(for_update=True)

        written: list[Settlement] = []
        for entry in net_sales(backlog):
            row = Settlement(
                from_user_id=entry.from_user_id,
                to_user_id=entry.to_user_id,
                amount_cents=entry.amount_cents,
                sales_ids=entry.sales_ids,
                settled_by_user_id=actor_user_id,
            )
            db.session.add(row)
            db.session.flush()  # row.id for the sale back-reference
            _mark_processed(entry.sales_ids, row.id)
            written.append(row)

        db.session.commit()
        return written

    try:
        written = run_with_retry(_op)
    except SettlementError:
        db.session.rollback()
        current_app.logger.exception("Settlement run by user %s rolled back", actor_user_id)
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Settlement run by user %s rolled back", actor_user_id)
        raise SettlementError("Settlement failed; nothing was processed") from exc

    current_app.logger.info(
        "Settlement run by user %s wrote %d entries", actor_user_id, len(written)
    )
    return written


def list_settlements(*, limit: int = 100) -> list[Settlement]:
    limit = max(1, min(limit, 500))
    return (
        db.session.query(Settlement)
        .order_by(Settlement.created_at.desc(), Settlement.id.desc())
        .limit(limit)
        .all()
    )
