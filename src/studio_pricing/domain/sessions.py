"""Domain models for workflow sessions."""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted workflow session as seen by the pricing core."""

    id: str
    extra_photo_quantity: int
    unit_price: Decimal
    total_price: Decimal
    category_id: str | None
    package_id: str | None
    frozen_rules: dict[str, object] | None
