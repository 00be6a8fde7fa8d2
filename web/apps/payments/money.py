"""Conversion of client-supplied prices into gateway minor units.

Amounts always arrive in major units (rupees) and leave in minor units
(paise). The magnitude of the input is never used to guess its unit.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any

from .errors import InvalidAmount

MINOR_UNITS_PER_MAJOR = 100
# Largest value the ledger amount column (a signed 64-bit integer) can hold.
MAX_MINOR_AMOUNT = 2**63 - 1


def normalize_amount(raw: Any) -> int:
    """Convert a major-unit amount into integer minor units.

    Args:
        raw: int, float, Decimal or numeric string, e.g. ``199`` or ``"199.50"``.

    Returns:
        int: ``raw * 100`` rounded half-up to the nearest integer.

    Raises:
        InvalidAmount: When ``raw`` is not a finite number, is not positive,
            rounds to zero minor units or exceeds ``MAX_MINOR_AMOUNT``.
    """
    if raw is None or isinstance(raw, bool):
        raise InvalidAmount()
    try:
        value = Decimal(raw.strip()) if isinstance(raw, str) else Decimal(str(raw))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmount()

    if not value.is_finite():
        raise InvalidAmount()
    if value <= 0:
        raise InvalidAmount("amount must be > 0")
    if value > Decimal(MAX_MINOR_AMOUNT) / MINOR_UNITS_PER_MAJOR:
        raise InvalidAmount("amount too large")

    try:
        with localcontext() as ctx:
            ctx.prec = 60
            minor = int((value * MINOR_UNITS_PER_MAJOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise InvalidAmount()
    if minor <= 0:
        raise InvalidAmount("amount must be > 0")
    if minor > MAX_MINOR_AMOUNT:
        raise InvalidAmount("amount too large")
    return minor
