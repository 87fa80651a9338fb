"""Persisted JSON shapes for tables and frozen pricing rules."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from studio_pricing.domain.money import to_money
from studio_pricing.domain.pricing import PriceRange, PricingMode, TieredTable
from studio_pricing.domain.snapshots import FreezeSnapshot


class PriceRangePayload(BaseModel):
    """Wire form of a single price range."""

    model_config = ConfigDict(populate_by_name=True)

    min: int = Field(ge=0)
    max: int | None = None
    unit_price: Decimal = Field(alias="unitPrice")

    @field_validator("unit_price", mode="before")
    @classmethod
    def _clamp_unit_price(cls, value: object) -> Decimal:
        return to_money(value, label="range unit price")

    @field_serializer("unit_price")
    def _serialize_unit_price(self, value: Decimal) -> float:
        return float(value)


class TieredTablePayload(BaseModel):
    """Wire form of a tiered table."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    name: str = ""
    ranges: list[PriceRangePayload] = Field(default_factory=list)

    def to_domain(self, fallback_id: str = "") -> TieredTable:
        return TieredTable(
            id=self.id or fallback_id,
            name=self.name,
            ranges=[
                PriceRange(min=item.min, max=item.max, unit_price=item.unit_price)
                for item in self.ranges
            ],
        )

    @classmethod
    def from_domain(cls, table: TieredTable) -> "TieredTablePayload":
        return cls(
            id=table.id or None,
            name=table.name,
            ranges=[
                PriceRangePayload(
                    min=item.min, max=item.max, unit_price=item.unit_price
                )
                for item in table.ranges
            ],
        )


class FreezeSnapshotPayload(BaseModel):
    """Canonical persisted shape of a freeze snapshot."""

    model_config = ConfigDict(populate_by_name=True)

    mode: PricingMode
    fixed_value: Decimal | None = Field(default=None, alias="fixedValue")
    global_table: TieredTablePayload | None = Field(default=None, alias="globalTable")
    category_table: TieredTablePayload | None = Field(
        default=None, alias="categoryTable"
    )
    category_id: str | None = Field(default=None, alias="categoryId")
    captured_at: datetime = Field(alias="capturedAt")
    source: str | None = None

    @field_serializer("fixed_value")
    def _serialize_fixed_value(self, value: Decimal | None) -> float | None:
        return float(value) if value is not None else None

    def to_domain(self) -> FreezeSnapshot:
        return FreezeSnapshot(
            mode=self.mode,
            captured_at=self.captured_at,
            fixed_value=self.fixed_value,
            global_table=self.global_table.to_domain() if self.global_table else None,
            category_table=(
                self.category_table.to_domain() if self.category_table else None
            ),
            category_id=self.category_id,
            source=self.source,
        )

    @classmethod
    def from_domain(cls, snapshot: FreezeSnapshot) -> "FreezeSnapshotPayload":
        return cls(
            mode=snapshot.mode,
            fixed_value=snapshot.fixed_value,
            global_table=(
                TieredTablePayload.from_domain(snapshot.global_table)
                if snapshot.global_table
                else None
            ),
            category_table=(
                TieredTablePayload.from_domain(snapshot.category_table)
                if snapshot.category_table
                else None
            ),
            category_id=snapshot.category_id,
            captured_at=snapshot.captured_at,
            source=snapshot.source,
        )


def snapshot_to_json(snapshot: FreezeSnapshot) -> dict[str, object]:
    """Serialize a snapshot to its canonical JSON-compatible dict."""
    return FreezeSnapshotPayload.from_domain(snapshot).model_dump(
        mode="json", by_alias=True
    )


def table_to_json(table: TieredTable) -> dict[str, object]:
    """Serialize a table to its canonical JSON-compatible dict."""
    return TieredTablePayload.from_domain(table).model_dump(
        mode="json", by_alias=True
    )
