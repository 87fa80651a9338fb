"""Live pricing configuration and its single writer surface."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Protocol

from studio_pricing.domain.payloads import table_to_json
from studio_pricing.domain.pricing import Category, PricingMode, TieredTable
from studio_pricing.exceptions import InvalidTableError
from studio_pricing.services import tables

_logger = logging.getLogger(__name__)

DEFAULT_FIXED_VALUE = Decimal("35")


class ConfigurationRepository(Protocol):
    """Persistence interface for pricing configuration."""

    def load_mode(self) -> PricingMode | None:
        """Return the stored pricing mode, if any."""

    def save_mode(self, mode: PricingMode) -> None:
        """Persist the pricing mode."""

    def load_global_table(self) -> TieredTable | None:
        """Return the global tiered table, if configured."""

    def save_global_table(self, table: TieredTable) -> None:
        """Persist the global tiered table."""

    def load_category_tables(self) -> dict[str, TieredTable]:
        """Return tables keyed by category id."""

    def save_category_table(self, category_id: str, table: TieredTable) -> None:
        """Persist a category's tiered table."""

    def list_categories(self) -> list[Category]:
        """Return categories in display order."""

    def load_package_extra_photo_values(self) -> dict[str, Decimal]:
        """Return each package's fixed extra-photo value keyed by package id."""


@dataclass
class PricingConfiguration:
    """In-memory pricing settings passed explicitly to calculations.

    Sessions only read this object; mutations go through
    PricingConfigurationService.
    """

    mode: PricingMode = PricingMode.FIXED
    global_table: TieredTable | None = None
    category_tables: dict[str, TieredTable] = field(default_factory=dict)
    categories: list[Category] = field(default_factory=list)
    package_extra_photo_values: dict[str, Decimal] = field(default_factory=dict)
    fixed_value: Decimal = DEFAULT_FIXED_VALUE
    revision: int = 0

    def get_mode(self) -> PricingMode:
        return self.mode

    def get_table_for_mode(
        self,
        mode: PricingMode,
        category_id: str | None = None,
        package_id: str | None = None,
    ) -> TieredTable | Decimal | None:
        """Return the table or fixed value that prices the given mode."""
        if mode is PricingMode.FIXED:
            return self.fixed_value_for_package(package_id)
        if mode is PricingMode.GLOBAL_TABLE:
            return self.global_table
        return self.resolve_category_table(category_id)

    def fixed_value_for_package(self, package_id: str | None) -> Decimal:
        if package_id is not None and package_id in self.package_extra_photo_values:
            return self.package_extra_photo_values[package_id]
        return self.fixed_value

    def resolve_category_table(self, category_hint: str | None) -> TieredTable | None:
        category_id = resolve_category_id(category_hint, self.categories)
        if category_id is None:
            return self.category_tables.get(category_hint) if category_hint else None
        return self.category_tables.get(category_id)


def resolve_category_id(
    category_hint: str | None, categories: list[Category]
) -> str | None:
    """Resolve a category reference to a category id.

    Tries the id, then an exact name match, then a 1-based position in the
    category list. The positional step is a legacy fallback kept for records
    that stored a row number instead of an id.
    """
    if not category_hint:
        return None
    hint = str(category_hint)
    for category in categories:
        if category.id == hint:
            return category.id
    for category in categories:
        if category.name == hint:
            return category.id
    if hint.strip().isdigit():
        index = int(hint) - 1
        if 0 <= index < len(categories):
            _logger.warning(
                "Category %s resolved by list position to %s",
                hint,
                categories[index].id,
            )
            return categories[index].id
    return None


@dataclass
class PricingConfigurationService:
    """Loads, mutates and persists the live pricing configuration."""

    repository: ConfigurationRepository
    configuration: PricingConfiguration = field(default_factory=PricingConfiguration)
    _listeners: list[Callable[[PricingMode], None]] = field(
        default_factory=list, init=False, repr=False
    )

    def load(self) -> PricingConfiguration:
        """Refresh the in-memory configuration from the repository."""
        mode = self.repository.load_mode() or PricingMode.FIXED
        config = self.configuration
        config.mode = mode
        config.global_table = self.repository.load_global_table()
        config.category_tables = self.repository.load_category_tables()
        config.categories = self.repository.list_categories()
        config.package_extra_photo_values = (
            self.repository.load_package_extra_photo_values()
        )
        config.revision += 1
        _logger.info(
            "Pricing configuration loaded: mode=%s categories=%s",
            mode.value,
            len(config.categories),
        )
        return config

    def subscribe(self, listener: Callable[[PricingMode], None]) -> None:
        """Register a callback run after each mode change."""
        self._listeners.append(listener)

    def set_mode(self, mode: PricingMode) -> PricingConfiguration:
        """Switch the pricing mode.

        Switching to the global table with no table configured creates and
        persists the example table. Memory changes only after the store
        accepted every write.
        """
        config = self.configuration
        example = None
        if mode is PricingMode.GLOBAL_TABLE and config.global_table is None:
            example = tables.create_example_table()
            self.repository.save_global_table(example)
        self.repository.save_mode(mode)

        if example is not None:
            config.global_table = example
            _logger.info("Created example global table %s", example.id)
        previous = config.mode
        config.mode = mode
        config.revision += 1
        if previous is not mode:
            for listener in list(self._listeners):
                listener(mode)
        return config

    def save_global_table(self, table: TieredTable) -> TieredTable:
        """Persist the global table, keeping the current row id when none is given."""
        current = self.configuration.global_table
        stored = _with_id(table, current.id if current else None)
        self.repository.save_global_table(stored)
        self.configuration.global_table = stored
        self.configuration.revision += 1
        return stored

    def save_category_table(self, category_id: str, table: TieredTable) -> TieredTable:
        current = self.configuration.category_tables.get(category_id)
        stored = _with_id(table, current.id if current else None)
        self.repository.save_category_table(category_id, stored)
        self.configuration.category_tables[category_id] = stored
        self.configuration.revision += 1
        return stored

    def add_global_range(self, unit_price: Decimal | None = None) -> TieredTable:
        current = self.configuration.global_table or tables.create_example_table()
        if unit_price is None:
            edited = tables.add_range(current)
        else:
            edited = tables.add_range(current, unit_price)
        return self.save_global_table(_checked(edited))

    def remove_global_range(self, index: int) -> TieredTable | None:
        current = self.configuration.global_table
        if not _has_range(current, index):
            return None
        return self.save_global_table(_checked(tables.remove_range(current, index)))

    def update_global_range(self, index: int, **changes: object) -> TieredTable | None:
        current = self.configuration.global_table
        if not _has_range(current, index):
            return None
        edited = tables.update_range(current, index, **changes)
        return self.save_global_table(_checked(edited))

    def update_category_range(
        self, category_id: str, index: int, **changes: object
    ) -> TieredTable | None:
        current = self.configuration.category_tables.get(category_id)
        if not _has_range(current, index):
            return None
        edited = tables.update_range(current, index, **changes)
        return self.save_category_table(category_id, _checked(edited))

    def export_backup(self) -> dict[str, object]:
        """Return a serializable copy of the whole configuration."""
        config = self.configuration
        return {
            "version": "1.0.0",
            "mode": config.mode.value,
            "globalTable": (
                table_to_json(config.global_table) if config.global_table else None
            ),
            "categoryTables": {
                category_id: table_to_json(table)
                for category_id, table in config.category_tables.items()
            },
            "exportedAt": datetime.now(tz=UTC).isoformat(),
        }


def _with_id(table: TieredTable, existing_id: str | None) -> TieredTable:
    stored = tables.clone_table(table)
    if not stored.id:
        stored.id = existing_id or tables.new_table_id()
    return stored


def _has_range(table: TieredTable | None, index: int) -> bool:
    return table is not None and 0 <= index < len(table.ranges)


def _checked(table: TieredTable) -> TieredTable:
    result = tables.validate_table(table)
    if not result.valid:
        raise InvalidTableError(result.errors)
    return table
