"""
Storefront - Shared Helpers
============================
Pure utility functions with NO database or module dependencies.
"""

import secrets
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


def now_utc() -> datetime:
    """Returns current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (SQLite drops tzinfo) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def safe_int(value) -> Optional[int]:
    """Safely convert a value to int. Returns None on failure (and for bools/fractions)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except (ValueError, TypeError):
        return None


def round_half_up(value) -> int:
    """Round to the nearest whole currency unit, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ==========================================
# Order Code Generator
# ==========================================

_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"  # no O/0/I/1/L


def generate_code(length: int = 8) -> str:
    """Generate a short, human-readable code."""
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))
