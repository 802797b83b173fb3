"""
Settlement engine: netting the unprocessed backlog into cashier -> owner debts.
"""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from marketstall.models import SaleRecord, Settlement
from marketstall.services import lifecycle_service, reporting_service, settlement_service
from marketstall.services.settlement_service import SettlementError
from marketstall.validation import PermissionDeniedError

from conftest import make_user


def _run(admin):
    return settlement_service.process_settlement(actor_user_id=admin.id, is_admin=True)


def test_empty_backlog_yields_nothing(db_session, admin):
    assert _run(admin) == []
    assert db_session.query(Settlement).count() == 0


def test_groups_by_cashier_and_owner(db_session, admin, owner, cashier, make_sale):
    carla = make_user(db_session, "Carla")
    s1 = make_sale(owner, cashier, 1000)
    s2 = make_sale(owner, cashier, 250)
    s3 = make_sale(carla, cashier, 700)
    s4 = make_sale(owner, carla, 300)

    rows = _run(admin)

    entries = {(r.from_user_id, r.to_user_id): r for r in rows}
    assert set(entries) == {(cashier.id, owner.id), (cashier.id, carla.id), (carla.id, owner.id)}
    assert entries[(cashier.id, owner.id)].amount_cents == 1250
    assert entries[(cashier.id, owner.id)].sales_ids == [s1.id, s2.id]
    assert entries[(cashier.id, carla.id)].sales_ids == [s3.id]
    assert entries[(carla.id, owner.id)].sales_ids == [s4.id]
    assert all(r.settled_by_user_id == admin.id for r in rows)


def test_amounts_sum_to_settled_sales(db_session, admin, owner, cashier, make_sale):
    prices = [199, 1, 5000, 333]
    for price in prices:
        make_sale(owner, cashier, price)
        make_sale(cashier, owner, price * 2)

    rows = _run(admin)

    settled_ids = [sid for r in rows for sid in r.sales_ids]
    assert len(settled_ids) == len(set(settled_ids))
    sales = db_session.query(SaleRecord).filter(SaleRecord.id.in_(settled_ids)).all()
    assert sum(r.amount_cents for r in rows) == sum(s.price_cents for s in sales) == sum(prices) * 3


def test_settled_sales_are_marked_and_linked(db_session, admin, owner, cashier, make_sale):
    sale = make_sale(owner, cashier, 1500)

    [row] = _run(admin)

    db_session.refresh(sale)
    assert sale.processed is True
    assert sale.settlement_id == row.id


def test_second_run_is_a_no_op(db_session, admin, owner, cashier, make_sale):
    make_sale(owner, cashier, 1500)
    assert len(_run(admin)) == 1

    assert _run(admin) == []
    assert db_session.query(Settlement).count() == 1


def test_only_new_sales_are_settled_later(db_session, admin, owner, cashier, make_sale):
    make_sale(owner, cashier, 1500)
    _run(admin)
    late = make_sale(owner, cashier, 400)

    [row] = _run(admin)
    assert row.sales_ids == [late.id]
    assert row.amount_cents == 400


def test_self_trades_are_never_settled(db_session, admin, owner, cashier, make_sale):
    own = make_sale(owner, owner, 900)
    other = make_sale(owner, cashier, 100)

    for _ in range(2):
        for row in _run(admin):
            assert own.id not in row.sales_ids
            assert row.from_user_id != row.to_user_id

    db_session.refresh(own)
    db_session.refresh(other)
    assert own.processed is False
    assert other.processed is True


def test_deleted_and_pending_rows_are_skipped(db_session, admin, owner, cashier, make_sale):
    make_sale(owner, cashier, 900, deleted=True)
    pending = lifecycle_service.create_purchase("Rug", 7, owner.id)

    assert _run(admin) == []
    db_session.refresh(pending)
    assert pending.processed is False


def test_settlement_ignores_dates(db_session, admin, owner, cashier, make_sale):
    from datetime import datetime

    old = make_sale(owner, cashier, 100, sold_at=datetime(2019, 1, 1, 8, 0))
    new = make_sale(owner, cashier, 200, sold_at=datetime(2024, 6, 10, 8, 0))

    [row] = _run(admin)
    assert row.sales_ids == [old.id, new.id]


def test_non_admin_is_refused_before_any_write(db_session, owner, cashier, make_sale):
    sale = make_sale(owner, cashier, 1500)

    with pytest.raises(PermissionDeniedError):
        settlement_service.process_settlement(actor_user_id=cashier.id, is_admin=False)

    db_session.refresh(sale)
    assert sale.processed is False
    assert db_session.query(Settlement).count() == 0


def test_failure_rolls_back_every_entry(db_session, admin, owner, cashier, make_sale, monkeypatch):
    carla = make_user(db_session, "Carla")
    make_sale(owner, cashier, 100)
    make_sale(carla, cashier, 200)

    calls = []

    def flaky_mark(sales_ids, settlement_id):
        calls.append(settlement_id)
        if len(calls) == 2:
            raise SQLAlchemyError("disk full")
        return real_mark(sales_ids, settlement_id)

    real_mark = settlement_service._mark_processed
    monkeypatch.setattr(settlement_service, "_mark_processed", flaky_mark)

    with pytest.raises(SettlementError):
        _run(admin)

    assert db_session.query(Settlement).count() == 0
    assert db_session.query(SaleRecord).filter(SaleRecord.processed.is_(True)).count() == 0

    monkeypatch.undo()
    assert len(_run(admin)) == 2


def test_lamp_scenario_end_to_end(db_session, admin, owner, cashier):
    purchase = lifecycle_service.create_purchase("Lamp", 5, owner.id)
    lifecycle_service.attach_qr(purchase.id, "QR-1")
    sale, updated = lifecycle_service.record_sale(cashier_user_id=cashier.id, price=15, qr_id="QR-1")

    assert updated and sale.id == purchase.id
    assert sale.price_cents == 1500 and sale.sold_at is not None

    report = reporting_service.breakdown(sale.sold_at.date(), "day")
    revenue = {r["owner_id"]: r["revenue"] for r in report["rows"]}
    assert revenue[owner.id] == 15.0

    [row] = _run(admin)
    assert row.to_dict()["from_user_id"] == cashier.id
    assert row.to_dict()["to_user_id"] == owner.id
    assert row.to_dict()["amount"] == 15.0
    assert row.to_dict()["sales_ids"] == [purchase.id]


def test_net_sales_is_pure(owner, cashier, make_sale):
    sales = [make_sale(owner, cashier, 100), make_sale(owner, owner, 50), make_sale(owner, cashier, 25)]

    [entry] = settlement_service.net_sales(sales)
    assert entry.to_dict() == {
        "from_user_id": cashier.id,
        "to_user_id": owner.id,
        "amount": 1.25,
        "amount_cents": 125,
        "sales_ids": [sales[0].id, sales[2].id],
    }
    assert all(s.processed is False for s in sales)
