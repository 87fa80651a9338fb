"""Tiered table resolution, editing and validation."""

import copy
import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal

from studio_pricing.domain.money import coerce_quantity
from studio_pricing.domain.pricing import ZERO, PriceRange, TieredTable

EXAMPLE_TABLE_NAME = "Default tiered table"
NEW_RANGE_UNIT_PRICE = Decimal("20")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a table or range set."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def sorted_ranges(table: TieredTable) -> list[PriceRange]:
    return sorted(table.ranges, key=lambda item: item.min)


def resolve_unit_price(table: TieredTable | None, quantity: object) -> Decimal:
    """Return the unit price for a quantity using sort-then-scan.

    A quantity that falls in a gap or below the first range takes the last
    range's price. An empty table prices at 0.
    """
    if table is None or not table.ranges:
        return ZERO
    count = coerce_quantity(quantity)
    ordered = sorted_ranges(table)
    for price_range in ordered:
        if count >= price_range.min and (
            price_range.max is None or count <= price_range.max
        ):
            return price_range.unit_price
    return ordered[-1].unit_price


def new_table_id() -> str:
    return f"table_{uuid.uuid4().hex[:12]}"


def create_example_table() -> TieredTable:
    """Build the starter table offered when no global table exists."""
    return TieredTable(
        id=new_table_id(),
        name=EXAMPLE_TABLE_NAME,
        ranges=[
            PriceRange(min=1, max=5, unit_price=Decimal("35")),
            PriceRange(min=6, max=10, unit_price=Decimal("30")),
            PriceRange(min=11, max=20, unit_price=Decimal("25")),
            PriceRange(min=21, max=None, unit_price=Decimal("20")),
        ],
    )


def clone_table(table: TieredTable) -> TieredTable:
    """Return a structural copy that shares nothing with the source."""
    return copy.deepcopy(table)


def recalculate_ranges(ranges: list[PriceRange]) -> list[PriceRange]:
    """Re-chain range minimums so the sequence stays contiguous."""
    chained: list[PriceRange] = []
    for index, price_range in enumerate(ranges):
        if index == 0:
            chained.append(replace(price_range, min=1))
            continue
        previous = chained[index - 1]
        start = (previous.max if previous.max is not None else previous.min) + 1
        chained.append(replace(price_range, min=start))
    return chained


def add_range(
    table: TieredTable, unit_price: Decimal = NEW_RANGE_UNIT_PRICE
) -> TieredTable:
    """Append an open-ended range after the last one."""
    if table.ranges:
        last = table.ranges[-1]
        start = (last.max if last.max is not None else last.min) + 1
    else:
        start = 1
    ranges = [*table.ranges, PriceRange(min=start, max=None, unit_price=unit_price)]
    return TieredTable(id=table.id, name=table.name, ranges=ranges)


def remove_range(table: TieredTable, index: int) -> TieredTable:
    """Drop the range at a position and re-chain the rest."""
    remaining = [
        item for position, item in enumerate(table.ranges) if position != index
    ]
    return TieredTable(
        id=table.id, name=table.name, ranges=recalculate_ranges(remaining)
    )


def update_range(
    table: TieredTable,
    index: int,
    *,
    min_value: int | None = None,
    max_value: int | None = None,
    clear_max: bool = False,
    unit_price: Decimal | None = None,
) -> TieredTable:
    """Edit one range.

    Only the first range's minimum is editable; changing a maximum re-chains
    every following range.
    """
    if not 0 <= index < len(table.ranges):
        return clone_table(table)
    current = table.ranges[index]
    updated = current
    if min_value is not None and index == 0:
        updated = replace(updated, min=min_value)
    max_changed = clear_max or max_value is not None
    if clear_max:
        updated = replace(updated, max=None)
    elif max_value is not None:
        updated = replace(updated, max=max_value)
    if unit_price is not None:
        updated = replace(updated, unit_price=unit_price)
    ranges = list(table.ranges)
    ranges[index] = updated
    if max_changed:
        ranges = recalculate_ranges(ranges)
    return TieredTable(id=table.id, name=table.name, ranges=ranges)


def validate_table(table: TieredTable) -> ValidationResult:
    """Validate a table's name, ranges, overlaps and gaps."""
    errors: list[str] = []
    warnings: list[str] = []

    if not table.name or not table.name.strip():
        errors.append("Table name is required")

    if not table.ranges:
        errors.append("At least one price range must be configured")
        return ValidationResult(valid=False, errors=errors, warnings=warnings)

    ordered = sorted_ranges(table)
    for position, price_range in enumerate(ordered):
        number = position + 1
        if price_range.min < 0:
            errors.append(f"Range {number}: minimum cannot be negative")
        if price_range.max is not None and price_range.max < price_range.min:
            errors.append(f"Range {number}: maximum must be at least the minimum")
        if price_range.unit_price < 0:
            errors.append(f"Range {number}: unit price cannot be negative")
        if price_range.unit_price == 0:
            warnings.append(f"Range {number}: unit price is zero")

        if position < len(ordered) - 1:
            following = ordered[position + 1]
            if price_range.max is not None and price_range.max >= following.min:
                errors.append(f"Ranges {number} and {number + 1} overlap")
            if price_range.max is not None and price_range.max + 1 < following.min:
                warnings.append(
                    f"Gap in coverage between ranges {number} and {number + 1}"
                )

    if ordered[0].min != 1:
        warnings.append("First range should start at 1")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def check_coverage(ranges: list[PriceRange]) -> ValidationResult:
    """Report gaps and open ends in a range sequence."""
    if not ranges:
        return ValidationResult(valid=False, errors=["No ranges configured"])

    warnings: list[str] = []
    ordered = sorted(ranges, key=lambda item: item.min)
    if ordered[0].min != 1:
        warnings.append("Coverage does not start at 1")
    for current, following in zip(ordered, ordered[1:]):
        if current.max is not None and current.max + 1 < following.min:
            warnings.append(
                f"Gap between ranges: {current.max + 1} to {following.min - 1}"
            )
    if ordered[-1].max is not None:
        warnings.append("Last range should be open-ended")
    return ValidationResult(valid=True, warnings=warnings)
