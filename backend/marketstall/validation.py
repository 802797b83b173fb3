from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from marketstall.time_utils import parse_iso_datetime


# Maximum amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

_CENT = Decimal("0.01")
_TRUE_STRINGS = {"1", "true", "yes", "on", "pin"}
_FALSE_STRINGS = {"0", "false", "no", "off", "cash", ""}


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level: referenced sale id or qr_id does not exist (or is deleted)."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., QR already attached)."""


class PermissionDeniedError(PermissionError):
    """403-level: caller lacks the role required for the operation."""


def parse_money_cents(value: Any, field: str, *, required: bool = True) -> int | None:
    """
    Coerce a money amount to integer cents.

    Accepts ints, finite floats, Decimals and strings such as "12.50",
    "12,50" or "1 250,00". Rounds half-up to whole cents.
    Rejects booleans, scientific notation, negatives and amounts above
    MAX_PRICE_CENTS.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    if isinstance(value, (int, Decimal)):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        s = value.strip().replace(" ", "").replace(",", ".")
        # Reject scientific notation (e.g., "1e3")
        if "e" in s.lower():
            raise ValidationError(f"{field} must be a plain number")
        try:
            amount = Decimal(s)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")

    # Amounts wider than the decimal context cannot be quantized
    try:
        cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS / 100:,.2f}")
    if cents < 0:
        raise ValidationError(f"{field} must be >= 0")
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS / 100:,.2f}")
    return cents


def cents_to_amount(cents: int | None) -> float | None:
    """Currency display value (2 decimals) for JSON output."""
    if cents is None:
        return None
    return float((Decimal(cents) / 100).quantize(_CENT, rounding=ROUND_HALF_UP))


def parse_id(value: Any, field: str, *, required: bool = True) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None

    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        result = value
    elif isinstance(value, str) and value.strip().isdigit():
        result = int(value.strip())
    else:
        raise ValidationError(f"{field} must be an integer")

    if result <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return result


def parse_flag(value: Any, field: str, *, default: bool = False) -> bool:
    """Boolean-like payment flags arrive as bools, 0/1 ints or strings."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        s = value.strip().lower()
        if s in _TRUE_STRINGS:
            return True
        if s in _FALSE_STRINGS:
            return False
    raise ValidationError(f"{field} must be a boolean")


def clean_text(value: Any, field: str, *, max_length: int | None = None, required: bool = False) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    s = str(value).strip()
    if not s:
        if required:
            raise ValidationError(f"{field} cannot be blank")
        return None
    if max_length and len(s) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return s


def parse_timestamp(value: Any, field: str) -> datetime | None:
    """Explicit timestamp override (datetime or ISO-8601 string); None -> None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, str):
        try:
            return parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 datetime")
    raise ValidationError(f"{field} must be a datetime")
