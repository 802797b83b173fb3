# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Users log in with e-mail + password. Passwords are bcrypt hashed; the
work factor comes from BCRYPT_ROUNDS so tests can run with a cheap one.

Sessions are managed separately (see session_service.py).
"""

import bcrypt
from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import User
from marketstall.time_utils import utcnow


MIN_PASSWORD_LENGTH = 8


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """Minimum length plus at least one letter and one digit."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not any(c.isalpha() for c in password):
        raise PasswordValidationError("Password must contain at least one letter")
    if not any(c.isdigit() for c in password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def create_user(
    name: str,
    email: str,
    password: str,
    *,
    is_admin: bool = False,
    iban: str | None = None,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises ValueError if name/email are missing or the e-mail is taken,
    PasswordValidationError if the password is too weak.
    """
    name = (name or "").strip()
    email = normalize_email(email)
    if not name or not email:
        raise ValueError("name and email are required")

    existing = db.session.query(User).filter(func.lower(User.email) == email).first()
    if existing:
        raise ValueError(f"User with email {email} already exists")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        is_admin=is_admin,
        iban=iban,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """Return the active user for these credentials, or None."""
    user = db.session.query(User).filter(
        func.lower(User.email) == normalize_email(email),
        User.is_active.is_(True),
    ).first()
    if not user or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def list_owners() -> list[User]:
    """Active non-admin users, by name (owner pickers)."""
    return (
        db.session.query(User)
        .filter(User.is_active.is_(True), User.is_admin.is_(False))
        .order_by(User.name.asc())
        .all()
    )
