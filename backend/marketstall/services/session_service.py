# Overview: Bearer sessions that identify the cashier / owner / admin behind each request.

"""
Session tokens

A login hands the client a random 64-hex-char token; the database keeps
only its SHA-256 digest. A token stops working when:
- its absolute lifetime (SESSION_ABSOLUTE_TIMEOUT_MINUTES) has passed
- it sat unused longer than SESSION_IDLE_TIMEOUT_MINUTES (revoked on sight)
- its user was deactivated (revoked on sight)
- it was revoked at logout
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from marketstall.time_utils import utcnow


@dataclass
class SessionContext:
    """Put on flask.g by require_auth."""
    user: User
    session: SessionToken

    @property
    def is_admin(self) -> bool:
        return bool(self.user.is_admin)


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _minutes(key: str) -> timedelta:
    return timedelta(minutes=current_app.config[key])


def _find_open(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .first()
    )


def _revoke(record: SessionToken, reason: str) -> None:
    record.is_revoked = True
    record.revoked_at = utcnow()
    record.revoked_reason = reason
    db.session.commit()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Open a session for an active user.

    Returns (record, plaintext_token); the plaintext is never stored.
    Raises ValueError for unknown or deactivated users.
    """
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise ValueError("User not found or inactive")

    token = generate_token()
    opened_at = utcnow()
    record = SessionToken(
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=opened_at,
        last_used_at=opened_at,
        expires_at=opened_at + _minutes("SESSION_ABSOLUTE_TIMEOUT_MINUTES"),
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(record)
    db.session.commit()
    return record, token


def validate_session(token: str) -> SessionContext | None:
    """SessionContext for a usable token, else None. Touches last_used_at."""
    record = _find_open(token)
    if record is None:
        return None

    now = utcnow()
    if record.expires_at < now:
        return None
    if now - record.last_used_at > _minutes("SESSION_IDLE_TIMEOUT_MINUTES"):
        _revoke(record, "Idle timeout")
        return None
    if record.user is None or not record.user.is_active:
        _revoke(record, "User account deactivated")
        return None

    record.last_used_at = now
    db.session.commit()
    return SessionContext(user=record.user, session=record)


def revoke_session(token: str, reason: str = "Logout") -> bool:
    record = _find_open(token)
    if record is None:
        return False
    _revoke(record, reason)
    return True
