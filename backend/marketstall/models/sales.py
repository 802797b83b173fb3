from __future__ import annotations

from ..extensions import db
from marketstall.time_utils import to_utc_z
from marketstall.validation import cents_to_amount


class SaleRecord(db.Model):
    """
    One consigned item, from purchase through sale.

    The same row carries both phases:
    - pending purchase: purchased_at set, sold_at NULL (cost known, price unknown)
    - completed sale: sold_at set (with or without a purchase phase)

    qr_id binds the physical QR label to the row so that a checkout scan
    completes the sale on the same record instead of inserting a duplicate.
    Rows are never hard-deleted; deleted rows are invisible to breakdown,
    settlement, pending lists and QR resolution.
    """
    __tablename__ = "sales"
    __table_args__ = (
        # At most one live row per QR label
        db.Index(
            "uq_sales_live_qr_id",
            "qr_id",
            unique=True,
            sqlite_where=db.text("deleted = 0"),
            postgresql_where=db.text("deleted = false"),
        ),
        # Settlement backlog scan
        db.Index("ix_sales_processed_deleted", "processed", "deleted"),
        db.Index("ix_sales_owner_sold", "owner_user_id", "sold_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    description = db.Column(db.String(255), nullable=True)

    # Money in cents
    price_cents = db.Column(db.Integer, nullable=True)
    cost_cents = db.Column(db.Integer, nullable=True)
    target_price_cents = db.Column(db.Integer, nullable=True)

    owner_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    cashier_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    qr_id = db.Column(db.String(128), nullable=True)

    # Payment method: True = PIN (electronic), False = cash
    is_pin = db.Column(db.Boolean, nullable=False, default=False)
    purchase_is_pin = db.Column(db.Boolean, nullable=False, default=False)
    purchase_remarks = db.Column(db.String(500), nullable=True)

    # Blob storage reference (filename), not a URL
    image_url = db.Column(db.String(255), nullable=True)

    purchased_at = db.Column(db.DateTime(timezone=True), nullable=True)
    sold_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    processed = db.Column(db.Boolean, nullable=False, default=False)
    settlement_id = db.Column(db.Integer, db.ForeignKey("settlements.id"), nullable=True, index=True)

    deleted = db.Column(db.Boolean, nullable=False, default=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    owner = db.relationship("User", foreign_keys=[owner_user_id])
    cashier = db.relationship("User", foreign_keys=[cashier_user_id])

    @property
    def is_pending_purchase(self) -> bool:
        return self.purchased_at is not None and self.sold_at is None

    @property
    def is_self_trade(self) -> bool:
        return self.cashier_user_id is not None and self.cashier_user_id == self.owner_user_id

    def __repr__(self) -> str:
        return f"<SaleRecord id={self.id} qr_id={self.qr_id!r} sold={self.sold_at is not None}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "price": cents_to_amount(self.price_cents),
            "price_cents": self.price_cents,
            "cost": cents_to_amount(self.cost_cents),
            "cost_cents": self.cost_cents,
            "target_price": cents_to_amount(self.target_price_cents),
            "target_price_cents": self.target_price_cents,
            "owner_user_id": self.owner_user_id,
            "owner_name": self.owner.name if self.owner else None,
            "cashier_user_id": self.cashier_user_id,
            "cashier_name": self.cashier.name if self.cashier else None,
            "qr_id": self.qr_id,
            "is_pin": self.is_pin,
            "purchase_is_pin": self.purchase_is_pin,
            "purchase_remarks": self.purchase_remarks,
            "image_url": self.image_url,
            "purchased_at": to_utc_z(self.purchased_at),
            "sold_at": to_utc_z(self.sold_at),
            "processed": self.processed,
            "settlement_id": self.settlement_id,
            "deleted": self.deleted,
            "deleted_at": to_utc_z(self.deleted_at),
        }


class Settlement(db.Model):
    """
    One netted debt: cashier (from_user_id) owes owner (to_user_id) `amount_cents`
    for the sales listed in sales_ids. Written once per settlement run, never updated.
    """
    __tablename__ = "settlements"
    __table_args__ = (
        db.Index("ix_settlements_from_to", "from_user_id", "to_user_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    from_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    to_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    sales_ids = db.Column(db.JSON, nullable=False)

    settled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    from_user = db.relationship("User", foreign_keys=[from_user_id])
    to_user = db.relationship("User", foreign_keys=[to_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from_user_id": self.from_user_id,
            "from_user_name": self.from_user.name if self.from_user else None,
            "to_user_id": self.to_user_id,
            "to_user_name": self.to_user.name if self.to_user else None,
            "amount": cents_to_amount(self.amount_cents),
            "amount_cents": self.amount_cents,
            "sales_ids": list(self.sales_ids or []),
            "settled_by_user_id": self.settled_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
