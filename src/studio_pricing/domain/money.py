"""Numeric coercion for prices and quantities."""

import logging
from decimal import Decimal, InvalidOperation

from studio_pricing.domain.pricing import ZERO

_logger = logging.getLogger(__name__)


def to_money(value: object, *, label: str = "value") -> Decimal:
    """Coerce a price-like value to a finite non-negative Decimal.

    Unparseable, non-finite and negative inputs become 0 and are logged.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        _logger.warning("Numeric fault in %s: boolean %r treated as 0", label, value)
        return ZERO
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        _logger.warning("Numeric fault in %s: %r is not a number", label, value)
        return ZERO
    if not amount.is_finite():
        _logger.warning("Numeric fault in %s: %s clamped to 0", label, amount)
        return ZERO
    if amount < 0:
        _logger.warning("Numeric fault in %s: negative %s clamped to 0", label, amount)
        return ZERO
    return amount


def coerce_quantity(value: object) -> int:
    """Return a photo count, treating negative, NaN and garbage as 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return 0
    if not amount.is_finite() or amount <= 0:
        return 0
    return int(amount)
