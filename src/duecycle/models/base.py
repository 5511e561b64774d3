"""Shared helpers for the data model: identifiers and cent rounding."""

from __future__ import annotations

import uuid
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def generate_id(prefix: str) -> str:
    """Short prefixed identifier, e.g. ``obl_3f9a0c1b2d4e``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def to_cents(value: Decimal | int | float | str) -> Decimal:
    """Round a monetary value half-up to two decimal places."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
