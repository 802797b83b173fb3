"""Sales register: day listing and soft deletion (with photo cleanup)."""

import os
from datetime import date, datetime

import pytest

from marketstall.models import SaleRecord
from marketstall.services import sales_service, storage_service
from marketstall.services.storage_service import StorageError
from marketstall.validation import NotFoundError, ValidationError


def test_list_sales_for_one_day(db_session, owner, cashier, make_sale):
    early = make_sale(owner, cashier, 100, sold_at=datetime(2024, 6, 10, 8, 0))
    late = make_sale(owner, cashier, 200, sold_at=datetime(2024, 6, 10, 17, 0))
    make_sale(owner, cashier, 300, sold_at=datetime(2024, 6, 11, 8, 0))
    make_sale(owner, cashier, 400, sold_at=datetime(2024, 6, 10, 9, 0), deleted=True)

    sales = sales_service.list_sales(date(2024, 6, 10))
    assert [s.id for s in sales] == [late.id, early.id]


def test_delete_keeps_the_row(db_session, owner, cashier, make_sale):
    sale = make_sale(owner, cashier, 100)

    deleted, image_removed = sales_service.delete_sale(sale.id)

    assert deleted.id == sale.id
    assert image_removed is False
    row = db_session.get(SaleRecord, sale.id)
    assert row.deleted is True
    assert row.deleted_at is not None


def test_delete_twice_is_not_found(db_session, owner, cashier, make_sale):
    sale = make_sale(owner, cashier, 100)
    sales_service.delete_sale(sale.id)

    with pytest.raises(NotFoundError):
        sales_service.delete_sale(sale.id)
    with pytest.raises(NotFoundError):
        sales_service.delete_sale(987654)


def test_delete_removes_the_stored_photo(app, db_session, owner, cashier, make_sale):
    ref = storage_service.store(b"\x89PNG fake", "png")
    path = os.path.join(app.config["UPLOAD_FOLDER"], ref)
    assert os.path.isfile(path)

    sale = make_sale(owner, cashier, 100)
    sale.image_url = ref
    db_session.commit()

    _, image_removed = sales_service.delete_sale(sale.id)
    assert image_removed is True
    assert not os.path.exists(path)


def test_photo_removal_failure_does_not_undo_delete(db_session, owner, cashier, make_sale, monkeypatch):
    sale = make_sale(owner, cashier, 100)
    sale.image_url = "1718000000_abcdef0123.jpg"
    db_session.commit()

    def broken_delete(ref):
        raise StorageError("read-only filesystem")

    monkeypatch.setattr(storage_service, "delete", broken_delete)

    _, image_removed = sales_service.delete_sale(sale.id)
    assert image_removed is False
    assert db_session.get(SaleRecord, sale.id).deleted is True


def test_storage_rejects_other_file_types(db_session):
    with pytest.raises(ValidationError):
        storage_service.store(b"MZ", "exe")
    with pytest.raises(ValidationError):
        storage_service.store(b"", "jpg")


def test_storage_refs_cannot_escape_upload_folder(app, db_session):
    folder, name = storage_service.resolve("../../etc/passwd")
    assert folder == app.config["UPLOAD_FOLDER"]
    assert name == "passwd"
    assert storage_service.delete("../../etc/passwd") is False
