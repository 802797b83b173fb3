from __future__ import annotations

from ..extensions import db
from marketstall.time_utils import to_utc_z


class PayeeMapping(db.Model):
    """
    Whose payment QR collects the settlement payouts of an owner.

    One row per owner at most. Owners without a row are paid through their
    own payment details.
    """
    __tablename__ = "payee_mappings"

    owner_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), primary_key=True)
    qr_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    owner = db.relationship("User", foreign_keys=[owner_user_id])
    payee = db.relationship("User", foreign_keys=[qr_user_id])

    def to_dict(self) -> dict:
        return {
            "owner_id": self.owner_user_id,
            "owner_name": self.owner.name if self.owner else None,
            "qr_user_id": self.qr_user_id,
            "qr_user_name": self.payee.name if self.payee else "",
            "qr_url": (self.payee.qr_url if self.payee else None) or "",
            "updated_at": to_utc_z(self.updated_at),
        }
