"""Extra-photo price calculation."""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from studio_pricing.domain.money import coerce_quantity
from studio_pricing.domain.pricing import (
    ZERO,
    CalculationResult,
    LiveLookup,
    PricingMode,
    TieredTable,
)
from studio_pricing.domain.snapshots import FreezeSnapshot
from studio_pricing.services.configuration import PricingConfiguration
from studio_pricing.services.tables import resolve_unit_price

_logger = logging.getLogger(__name__)

PricingContext = FreezeSnapshot | LiveLookup


def calculate_with_rule(
    quantity: object,
    mode: PricingMode,
    rule: TieredTable | Decimal | None,
) -> CalculationResult:
    """Price a quantity with one resolved rule.

    Tables are tiered-flat: the unit price found for the quantity applies to
    every photo, not only to the photos inside each bracket.
    """
    count = coerce_quantity(quantity)
    if count <= 0:
        return CalculationResult(unit_price=ZERO, total_price=ZERO, mode=mode)

    if mode is PricingMode.FIXED:
        unit_price = rule if isinstance(rule, Decimal) else ZERO
    elif isinstance(rule, TieredTable):
        unit_price = resolve_unit_price(rule, count)
    else:
        _logger.warning("No table available for mode %s; pricing at 0", mode.value)
        unit_price = ZERO

    try:
        total_price = unit_price * count
    except (InvalidOperation, TypeError):
        _logger.warning("Numeric fault computing total for %s photos", count)
        total_price = ZERO
    return _clamp(CalculationResult(unit_price, total_price, mode))


def calculate_with_snapshot(
    quantity: object, snapshot: FreezeSnapshot
) -> CalculationResult:
    """Price a quantity using only the frozen rule."""
    if snapshot.mode is PricingMode.FIXED:
        return calculate_with_rule(quantity, snapshot.mode, snapshot.fixed_value)
    return calculate_with_rule(quantity, snapshot.mode, snapshot.table)


@dataclass
class CalculationEngine:
    """Computes unit and total prices against an explicit configuration."""

    configuration: PricingConfiguration

    def calculate_extra_photos_total(
        self, quantity: object, context: PricingContext
    ) -> CalculationResult:
        """Return {unit, total} for a frozen snapshot or a live lookup."""
        if isinstance(context, FreezeSnapshot):
            return calculate_with_snapshot(quantity, context)
        mode = self.configuration.get_mode()
        rule = self.configuration.get_table_for_mode(
            mode,
            category_id=context.category_id,
            package_id=context.package_id,
        )
        if rule is None and mode is PricingMode.PER_CATEGORY_TABLE:
            _logger.info(
                "No table for category %s; extra photos priced at 0",
                context.category_id,
            )
        return calculate_with_rule(quantity, mode, rule)


def _clamp(result: CalculationResult) -> CalculationResult:
    unit_price = result.unit_price
    total_price = result.total_price
    if not unit_price.is_finite() or unit_price < 0:
        _logger.warning("Numeric fault: unit price %s clamped to 0", unit_price)
        unit_price = ZERO
    if not total_price.is_finite() or total_price < 0:
        _logger.warning("Numeric fault: total price %s clamped to 0", total_price)
        total_price = ZERO
    return CalculationResult(
        unit_price=unit_price, total_price=total_price, mode=result.mode
    )
