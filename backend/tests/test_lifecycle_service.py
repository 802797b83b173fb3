"""
Purchase -> QR attach -> sale lifecycle.

One physical item is one ledger row: the checkout scan of a tagged
purchase must update that row, never insert a second one.
"""

from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from marketstall.models import SaleRecord
from marketstall.services import lifecycle_service, sales_service
from marketstall.validation import ConflictError, NotFoundError, ValidationError


def test_create_purchase_stores_cost_without_price(db_session, owner):
    purchase = lifecycle_service.create_purchase("Lamp", "5", owner.id, remarks="flea market", is_pin="pin")

    assert purchase.id is not None
    assert purchase.cost_cents == 500
    assert purchase.price_cents is None
    assert purchase.sold_at is None
    assert purchase.purchased_at is not None
    assert purchase.purchase_is_pin is True
    assert purchase.purchase_remarks == "flea market"
    assert purchase.is_pending_purchase


@pytest.mark.parametrize("description, cost", [
    ("", "5"),
    ("   ", "5"),
    ("Lamp", None),
    ("Lamp", "abc"),
    ("Lamp", "-1"),
])
def test_create_purchase_rejects_bad_input(db_session, owner, description, cost):
    with pytest.raises(ValidationError):
        lifecycle_service.create_purchase(description, cost, owner.id)
    assert db_session.query(SaleRecord).count() == 0


def test_create_purchase_requires_active_owner(db_session):
    with pytest.raises(ValidationError):
        lifecycle_service.create_purchase("Lamp", 5, 999)


def test_pending_purchases_exclude_sold_and_deleted(db_session, owner, cashier):
    keep = lifecycle_service.create_purchase("Chair", 3, owner.id)
    sold = lifecycle_service.create_purchase("Vase", 2, owner.id, qr_id="QR-V")
    gone = lifecycle_service.create_purchase("Clock", 4, owner.id)

    lifecycle_service.record_sale(cashier_user_id=cashier.id, price=10, qr_id="QR-V")
    sales_service.delete_sale(gone.id)

    pending = lifecycle_service.list_pending_purchases()
    assert [p.id for p in pending] == [keep.id]
    assert sold.id not in [p.id for p in pending]


def test_attach_qr_is_one_shot(db_session, owner):
    purchase = lifecycle_service.create_purchase("Lamp", 5, owner.id)

    tagged = lifecycle_service.attach_qr(purchase.id, "QR-1")
    assert tagged.qr_id == "QR-1"

    with pytest.raises(ConflictError):
        lifecycle_service.attach_qr(purchase.id, "QR-2")
    assert db_session.get(SaleRecord, purchase.id).qr_id == "QR-1"


def test_attach_qr_rejects_label_held_by_another_row(db_session, owner):
    first = lifecycle_service.create_purchase("Lamp", 5, owner.id)
    second = lifecycle_service.create_purchase("Rug", 7, owner.id)
    lifecycle_service.attach_qr(first.id, "QR-1")

    with pytest.raises(ConflictError):
        lifecycle_service.attach_qr(second.id, "QR-1")


def test_attach_qr_unknown_or_deleted_row(db_session, owner):
    with pytest.raises(NotFoundError):
        lifecycle_service.attach_qr(12345, "QR-1")

    purchase = lifecycle_service.create_purchase("Lamp", 5, owner.id)
    sales_service.delete_sale(purchase.id)
    with pytest.raises(NotFoundError):
        lifecycle_service.attach_qr(purchase.id, "QR-1")


def test_deleted_row_releases_its_qr(db_session, owner):
    old = lifecycle_service.create_purchase("Lamp", 5, owner.id, qr_id="QR-1")
    sales_service.delete_sale(old.id)

    new = lifecycle_service.create_purchase("Rug", 7, owner.id)
    lifecycle_service.attach_qr(new.id, "QR-1")

    assert lifecycle_service.resolve_by_qr("QR-1").id == new.id


def test_qr_checkout_updates_the_purchase_row(db_session, owner, cashier):
    purchase = lifecycle_service.create_purchase("Lamp", 5, owner.id)
    lifecycle_service.attach_qr(purchase.id, "QR-1")

    sale, updated = lifecycle_service.record_sale(cashier_user_id=cashier.id, price="15", qr_id="QR-1", is_pin=True)

    assert updated is True
    assert sale.id == purchase.id
    assert sale.price_cents == 1500
    assert sale.cashier_user_id == cashier.id
    assert sale.sold_at is not None
    assert sale.is_pin is True
    # Purchase fields are inherited
    assert sale.description == "Lamp"
    assert sale.cost_cents == 500
    assert sale.owner_user_id == owner.id
    assert db_session.query(SaleRecord).count() == 1


def test_sold_qr_cannot_be_sold_again(db_session, owner, cashier):
    lifecycle_service.create_purchase("Lamp", 5, owner.id, qr_id="QR-1")
    lifecycle_service.record_sale(cashier_user_id=cashier.id, price=15, qr_id="QR-1")

    with pytest.raises(ConflictError):
        lifecycle_service.record_sale(cashier_user_id=cashier.id, price=20, qr_id="QR-1")

    sale = lifecycle_service.resolve_by_qr("QR-1")
    assert sale.price_cents == 1500


def test_unknown_qr_inserts_a_new_sale(db_session, owner, cashier):
    sale, updated = lifecycle_service.record_sale(
        cashier_user_id=cashier.id,
        price=8,
        qr_id="QR-NEW",
        description="Mug",
        owner_user_id=owner.id,
    )

    assert updated is False
    assert sale.qr_id == "QR-NEW"
    assert sale.purchased_at is None
    assert lifecycle_service.resolve_by_qr("QR-NEW").id == sale.id


def test_unknown_qr_without_item_details_is_rejected(db_session, cashier):
    with pytest.raises(ValidationError):
        lifecycle_service.record_sale(cashier_user_id=cashier.id, price=8, qr_id="QR-NEW")
    assert db_session.query(SaleRecord).count() == 0


def test_ad_hoc_sale_requires_description_and_owner(db_session, owner, cashier):
    with pytest.raises(ValidationError):
        lifecycle_service.record_sale(cashier_user_id=cashier.id, price=8, owner_user_id=owner.id)
    with pytest.raises(ValidationError):
        lifecycle_service.record_sale(cashier_user_id=cashier.id, price=8, description="Mug")

    sale, updated = lifecycle_service.record_sale(
        cashier_user_id=cashier.id, price="8,5", description="Mug", owner_user_id=owner.id,
        sold_at="2024-06-10T09:30:00Z",
    )
    assert updated is False
    assert sale.price_cents == 850
    assert sale.sold_at == datetime(2024, 6, 10, 9, 30)


def test_record_sale_rejects_bad_price(db_session, owner, cashier):
    for price in (None, "", "abc", "-3", True):
        with pytest.raises(ValidationError):
            lifecycle_service.record_sale(
                cashier_user_id=cashier.id, price=price, description="Mug", owner_user_id=owner.id,
            )


def test_resolve_by_qr_ignores_deleted_rows(db_session, owner):
    purchase = lifecycle_service.create_purchase("Lamp", 5, owner.id, qr_id="QR-1")
    assert lifecycle_service.resolve_by_qr("QR-1").id == purchase.id

    sales_service.delete_sale(purchase.id)
    with pytest.raises(NotFoundError):
        lifecycle_service.resolve_by_qr("QR-1")


def test_set_purchase_image_only_while_pending(db_session, owner, cashier):
    purchase = lifecycle_service.create_purchase("Lamp", 5, owner.id, qr_id="QR-1")

    updated = lifecycle_service.set_purchase_image(purchase.id, "1718000000_abc.jpg")
    assert updated.image_url == "1718000000_abc.jpg"

    lifecycle_service.record_sale(cashier_user_id=cashier.id, price=15, qr_id="QR-1")
    with pytest.raises(ConflictError):
        lifecycle_service.set_purchase_image(purchase.id, "other.jpg")


def test_write_paths_take_the_write_lock(db_session, owner, cashier, sql_log):
    purchase = lifecycle_service.create_purchase("Lamp", 5, owner.id)
    lifecycle_service.attach_qr(purchase.id, "QR-1")
    lifecycle_service.set_purchase_image(purchase.id, "1718000000_abc.jpg")
    lifecycle_service.record_sale(cashier_user_id=cashier.id, price=15, qr_id="QR-1")

    assert sql_log.count("BEGIN IMMEDIATE") == 4


def test_lost_qr_race_is_reported_as_conflict(db_session, owner):
    lifecycle_service.create_purchase("Lamp", 5, owner.id, qr_id="QR-1")
    owner_id = owner.id

    def insert_duplicate():
        db_session.add(SaleRecord(description="Copy", owner_user_id=owner_id, qr_id="QR-1", purchased_at=datetime(2024, 6, 10)))
        db_session.commit()

    with pytest.raises(ConflictError):
        lifecycle_service._run_write(insert_duplicate, qr_id="QR-1")
    assert db_session.query(SaleRecord).count() == 1


def test_other_integrity_errors_propagate(db_session):
    def failing_write():
        raise IntegrityError("INSERT INTO sales ...", {}, Exception("FOREIGN KEY constraint failed"))

    with pytest.raises(IntegrityError):
        lifecycle_service._run_write(failing_write)
    with pytest.raises(IntegrityError):
        lifecycle_service._run_write(failing_write, qr_id="QR-FREE")
