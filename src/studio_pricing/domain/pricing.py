"""Domain models for extra-photo pricing."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class PricingMode(str, Enum):
    """Calculation model selected for extra photos."""

    FIXED = "fixed"
    GLOBAL_TABLE = "global-table"
    PER_CATEGORY_TABLE = "per-category-table"


@dataclass(frozen=True)
class PriceRange:
    """One tier of a tiered table: a photo-count interval and its unit price."""

    min: int
    max: int | None
    unit_price: Decimal


@dataclass
class TieredTable:
    """Ordered set of price ranges implementing volume-based pricing."""

    id: str
    name: str
    ranges: list[PriceRange] = field(default_factory=list)


@dataclass(frozen=True)
class Category:
    """Service category (e.g. newborn, maternity) that may own a table."""

    id: str
    name: str


@dataclass(frozen=True)
class LiveLookup:
    """Hints used to price a session against the live configuration."""

    category_id: str | None = None
    package_id: str | None = None


@dataclass(frozen=True)
class CalculationResult:
    """Unit and total price for a quantity of extra photos."""

    unit_price: Decimal
    total_price: Decimal
    mode: PricingMode | None = None


ZERO = Decimal("0")
