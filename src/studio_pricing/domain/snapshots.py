"""Frozen pricing rules captured on a session."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from studio_pricing.domain.pricing import PricingMode, TieredTable

MANUAL_HISTORICAL = "manual-historical"


@dataclass(frozen=True)
class FreezeSnapshot:
    """Immutable capture of the pricing rule in effect when a session was created.

    Tables held here are private deep copies; nothing else references them.
    """

    mode: PricingMode
    captured_at: datetime
    fixed_value: Decimal | None = None
    global_table: TieredTable | None = None
    category_table: TieredTable | None = None
    category_id: str | None = None
    source: str | None = None

    @property
    def table(self) -> TieredTable | None:
        """Return the embedded table matching the declared mode."""
        if self.mode is PricingMode.GLOBAL_TABLE:
            return self.global_table
        if self.mode is PricingMode.PER_CATEGORY_TABLE:
            return self.category_table
        return None

    @property
    def is_manual_historical(self) -> bool:
        return self.source == MANUAL_HISTORICAL

    def is_valid(self) -> bool:
        """Return True when the populated field matches the declared mode."""
        if self.mode is PricingMode.FIXED:
            return (
                self.fixed_value is not None
                and self.fixed_value.is_finite()
                and self.fixed_value >= 0
            )
        table = self.table
        return table is not None and len(table.ranges) > 0
