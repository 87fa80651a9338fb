"""Request bodies and response shaping for the HTTP API."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from studio_pricing.domain.payloads import snapshot_to_json, table_to_json
from studio_pricing.domain.pricing import PriceRange, PricingMode, TieredTable
from studio_pricing.domain.snapshots import FreezeSnapshot
from studio_pricing.services.configuration import PricingConfiguration
from studio_pricing.services.freezing import IntegrityIssue, MigrationReport
from studio_pricing.services.recalculator import ValueUpdate
from studio_pricing.services.sessions import SessionPricing
from studio_pricing.services.tables import ValidationResult


class QuantityUpdate(BaseModel):
    quantity: int | float | None = None


class ManualPrices(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    unit_price: Decimal = Field(alias="unitPrice", ge=0)
    total_price: Decimal = Field(alias="totalPrice", ge=0)


class ModeUpdate(BaseModel):
    mode: PricingMode


class RangeInput(BaseModel):
    """A price range as typed by an admin; values are checked, not clamped."""

    model_config = ConfigDict(populate_by_name=True)

    min: int
    max: int | None = None
    unit_price: Decimal = Field(alias="unitPrice", allow_inf_nan=False)


class TableInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    name: str = ""
    ranges: list[RangeInput] = Field(default_factory=list)

    def to_domain(self) -> TieredTable:
        return TieredTable(
            id=self.id or "",
            name=self.name,
            ranges=[
                PriceRange(min=item.min, max=item.max, unit_price=item.unit_price)
                for item in self.ranges
            ],
        )


class RangeEdit(BaseModel):
    """Changes to one range; omitted fields are left as they are."""

    model_config = ConfigDict(populate_by_name=True)

    min: int | None = None
    max: int | None = None
    open_ended: bool = Field(default=False, alias="openEnded")
    unit_price: Decimal | None = Field(
        default=None, alias="unitPrice", ge=0, allow_inf_nan=False
    )


class RangeAddition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    unit_price: Decimal | None = Field(
        default=None, alias="unitPrice", ge=0, allow_inf_nan=False
    )


def pricing_json(pricing: SessionPricing) -> dict[str, object]:
    return {
        "sessionId": pricing.session_id,
        "quantity": pricing.quantity,
        "unitPrice": float(pricing.unit_price),
        "totalPrice": float(pricing.total_price),
        "mode": pricing.mode.value if pricing.mode else None,
        "frozen": pricing.frozen,
        "manualHistorical": pricing.manual_historical,
        "needsMigration": pricing.needs_migration,
    }


def update_json(update: ValueUpdate) -> dict[str, object]:
    return {
        "sessionId": update.session_id,
        "unitPrice": float(update.unit_price),
        "totalPrice": float(update.total_price),
        "silent": update.silent,
    }


def snapshot_json(snapshot: FreezeSnapshot | None) -> dict[str, object] | None:
    return snapshot_to_json(snapshot) if snapshot is not None else None


def configuration_json(configuration: PricingConfiguration) -> dict[str, object]:
    return {
        "mode": configuration.mode.value,
        "fixedValue": float(configuration.fixed_value),
        "globalTable": (
            table_to_json(configuration.global_table)
            if configuration.global_table
            else None
        ),
        "categoryTables": {
            category_id: table_to_json(table)
            for category_id, table in configuration.category_tables.items()
        },
        "categories": [
            {"id": category.id, "name": category.name}
            for category in configuration.categories
        ],
        "revision": configuration.revision,
    }


def validation_json(result: ValidationResult) -> dict[str, object]:
    return {
        "valid": result.valid,
        "errors": list(result.errors),
        "warnings": list(result.warnings),
    }


def migration_json(report: MigrationReport) -> dict[str, object]:
    return {
        "migrated": report.migrated,
        "skipped": report.skipped,
        "failed": report.failed,
        "sessionIds": sorted(report.snapshots),
    }


def integrity_json(issues: list[IntegrityIssue]) -> dict[str, object]:
    return {
        "issues": [
            {
                "sessionId": issue.session_id,
                "issue": issue.issue,
                "severity": issue.severity,
            }
            for issue in issues
        ]
    }
