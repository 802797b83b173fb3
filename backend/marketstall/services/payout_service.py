# Overview: Service-layer operations for payout details; encapsulates business logic and database work.

"""
Payout details used when settling debts

- Payment profile per user: IBAN and a payment QR image (storage ref).
  A user edits their own profile; administrators may edit anyone's.
- Payee mappings: owner -> user whose payment QR collects that owner's
  settlement payouts (e.g. a household paid through one account).
  Administrators maintain them; one mapping per owner, re-mapping replaces it.

Replaced QR images are removed from storage after the commit, best effort.
"""

from __future__ import annotations

import re

from flask import current_app

from ..extensions import db
from ..models import PayeeMapping, User
from marketstall.time_utils import utcnow
from marketstall.validation import (
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    clean_text,
    parse_id,
)
from . import storage_service
from .ledger_service import require_active_user
from .storage_service import StorageError


PROFILE_FIELDS = ("iban", "qr_url")

_IBAN_RE = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z0-9]{11,30}$")


def normalize_iban(value) -> str | None:
    """
    Upper-case, space-free IBAN; blank clears it (None).

    Raises ValidationError on a malformed IBAN or a failed mod-97 check.
    """
    raw = clean_text(value, "iban", max_length=64)
    if raw is None:
        return None
    iban = raw.replace(" ", "").upper()
    if not _IBAN_RE.match(iban):
        raise ValidationError("iban is not a valid IBAN")

    rearranged = iban[4:] + iban[:4]
    digits = "".join(str(int(c, 36)) for c in rearranged)
    if int(digits) % 97 != 1:
        raise ValidationError("iban checksum is invalid")
    return iban


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def _check_can_edit(user_id: int, actor_user_id: int, is_admin: bool) -> None:
    if user_id != actor_user_id and not is_admin:
        raise PermissionDeniedError("You can only change your own payment details")


def _drop_replaced_qr(previous: str | None, current: str | None, user_id: int) -> None:
    if not previous or previous == current:
        return
    try:
        storage_service.delete(previous)
    except StorageError:
        current_app.logger.warning("Could not remove replaced payment QR %s of user %s", previous, user_id)


def update_profile(user_id, changes: dict, *, actor_user_id: int, is_admin: bool) -> User:
    """
    Set any of iban / qr_url on a user. Keys absent from `changes` are left
    alone; a blank value clears the field.

    Raises ValidationError when nothing is given, PermissionDeniedError when
    editing someone else without admin rights, NotFoundError for unknown users.
    """
    user_id = parse_id(user_id, "id")
    fields = {k: changes[k] for k in PROFILE_FIELDS if k in changes}
    if not fields:
        raise ValidationError("Nothing to update")
    _check_can_edit(user_id, actor_user_id, is_admin)

    values = {}
    if "iban" in fields:
        values["iban"] = normalize_iban(fields["iban"])
    if "qr_url" in fields:
        values["qr_url"] = clean_text(fields["qr_url"], "qr_url", max_length=255)

    try:
        user = _get_user(user_id)
        previous_qr = user.qr_url
        for key, value in values.items():
            setattr(user, key, value)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    if "qr_url" in values:
        _drop_replaced_qr(previous_qr, values["qr_url"], user_id)
    current_app.logger.info("Payment profile of user %s updated by %s (%s)", user_id, actor_user_id, ", ".join(values))
    return user


def set_payment_qr(user_id, data: bytes, extension: str, *, actor_user_id: int, is_admin: bool) -> User:
    """
    Store an uploaded payment QR image and make it the user's qr_url.

    The new file is removed again when the user update fails.
    """
    user_id = parse_id(user_id, "id")
    _check_can_edit(user_id, actor_user_id, is_admin)
    _get_user(user_id)

    ref = storage_service.store(data, extension)
    try:
        return update_profile(user_id, {"qr_url": ref}, actor_user_id=actor_user_id, is_admin=is_admin)
    except Exception:
        try:
            storage_service.delete(ref)
        except StorageError:
            current_app.logger.warning("Could not remove orphaned payment QR %s", ref)
        raise


def list_mappings() -> list[PayeeMapping]:
    """Every mapping, by owner name."""
    return (
        db.session.query(PayeeMapping)
        .join(User, User.id == PayeeMapping.owner_user_id)
        .order_by(User.name.asc(), PayeeMapping.owner_user_id.asc())
        .all()
    )


def update_mapping(owner_user_id, qr_user_id, *, actor_user_id: int, is_admin: bool) -> PayeeMapping:
    """Create or replace the mapping of an owner. Both users must be active."""
    if not is_admin:
        raise PermissionDeniedError("Only administrators can change payee mappings")
    owner_id = parse_id(owner_user_id, "owner_user_id")
    payee_id = parse_id(qr_user_id, "qr_user_id")

    try:
        require_active_user(owner_id)
        require_active_user(payee_id, "qr_user_id")

        mapping = db.session.get(PayeeMapping, owner_id)
        if mapping is None:
            mapping = PayeeMapping(owner_user_id=owner_id)
            db.session.add(mapping)
        mapping.qr_user_id = payee_id
        mapping.updated_at = utcnow()
        mapping.updated_by_user_id = actor_user_id
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return mapping


def delete_mapping(owner_user_id, *, is_admin: bool) -> bool:
    """Remove an owner's mapping. False when there was none."""
    if not is_admin:
        raise PermissionDeniedError("Only administrators can change payee mappings")
    owner_id = parse_id(owner_user_id, "owner_user_id")

    deleted = db.session.query(PayeeMapping).filter(PayeeMapping.owner_user_id == owner_id).delete()
    db.session.commit()
    return deleted > 0
