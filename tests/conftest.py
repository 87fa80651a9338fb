"""Shared test fixtures."""

import copy
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from studio_pricing.config import Settings
from studio_pricing.containers import AppContainer, wire_services
from studio_pricing.domain.pricing import Category, PriceRange, PricingMode, TieredTable
from studio_pricing.domain.sessions import SessionRecord
from studio_pricing.exceptions import PersistenceError
from studio_pricing.services.audit import AuditRepository
from studio_pricing.services.configuration import ConfigurationRepository
from studio_pricing.services.sessions import SessionRepository

FROZEN_AT = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def fixed_clock() -> datetime:
    return FROZEN_AT


def make_table(
    ranges: list[tuple[int, int | None, str]],
    table_id: str = "t1",
    name: str = "Studio table",
) -> TieredTable:
    return TieredTable(
        id=table_id,
        name=name,
        ranges=[
            PriceRange(min=low, max=high, unit_price=Decimal(price))
            for low, high, price in ranges
        ],
    )


def make_session(  # noqa: PLR0913
    session_id: str = "s1",
    quantity: int = 0,
    unit_price: str = "0",
    total_price: str = "0",
    category_id: str | None = None,
    package_id: str | None = None,
    frozen_rules: dict[str, object] | None = None,
) -> SessionRecord:
    return SessionRecord(
        id=session_id,
        extra_photo_quantity=quantity,
        unit_price=Decimal(unit_price),
        total_price=Decimal(total_price),
        category_id=category_id,
        package_id=package_id,
        frozen_rules=frozen_rules,
    )


@dataclass
class InMemoryConfigurationRepository(ConfigurationRepository):
    """In-memory configuration store that copies on read and write."""

    mode: PricingMode | None = None
    global_table: TieredTable | None = None
    category_tables: dict[str, TieredTable] = field(default_factory=dict)
    categories: list[Category] = field(default_factory=list)
    package_values: dict[str, Decimal] = field(default_factory=dict)
    saved_modes: list[PricingMode] = field(default_factory=list)
    fail_writes: bool = False

    def load_mode(self) -> PricingMode | None:
        return self.mode

    def save_mode(self, mode: PricingMode) -> None:
        if self.fail_writes:
            raise PersistenceError("Failed to save pricing mode")
        self.mode = mode
        self.saved_modes.append(mode)

    def load_global_table(self) -> TieredTable | None:
        return copy.deepcopy(self.global_table)

    def save_global_table(self, table: TieredTable) -> None:
        if self.fail_writes:
            raise PersistenceError(f"Failed to save pricing table {table.id}")
        self.global_table = copy.deepcopy(table)

    def load_category_tables(self) -> dict[str, TieredTable]:
        return copy.deepcopy(self.category_tables)

    def save_category_table(self, category_id: str, table: TieredTable) -> None:
        self.category_tables[category_id] = copy.deepcopy(table)

    def list_categories(self) -> list[Category]:
        return list(self.categories)

    def load_package_extra_photo_values(self) -> dict[str, Decimal]:
        return dict(self.package_values)


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session store that records the order of writes."""

    sessions: dict[str, SessionRecord] = field(default_factory=dict)
    writes: list[tuple[str, str]] = field(default_factory=list)
    failing_ids: set[str] = field(default_factory=set)

    def add(self, session: SessionRecord) -> SessionRecord:
        self.sessions[session.id] = session
        return session

    def get_session(self, session_id: str) -> SessionRecord | None:
        return self.sessions.get(session_id)

    def list_sessions(self) -> list[SessionRecord]:
        return list(self.sessions.values())

    def save_frozen_rules(self, session_id: str, rules: dict[str, object]) -> None:
        if session_id in self.failing_ids:
            raise PersistenceError(f"Failed to save frozen rules for {session_id}")
        self.sessions[session_id] = replace(
            self.sessions[session_id], frozen_rules=copy.deepcopy(rules)
        )
        self.writes.append(("rules", session_id))

    def update_prices(
        self,
        session_id: str,
        unit_price: Decimal,
        total_price: Decimal,
        quantity: int | None = None,
    ) -> None:
        if session_id in self.failing_ids:
            raise PersistenceError(f"Failed to update prices for {session_id}")
        current = self.sessions[session_id]
        self.sessions[session_id] = replace(
            current,
            unit_price=unit_price,
            total_price=total_price,
            extra_photo_quantity=(
                quantity if quantity is not None else current.extra_photo_quantity
            ),
        )
        self.writes.append(("prices", session_id))


@dataclass
class InMemoryAuditRepository(AuditRepository):
    """In-memory audit repository for tests."""

    events: list[dict[str, object]] = field(default_factory=list)

    def create_event(
        self,
        entity_type: str,
        entity_id: str,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        self.events.append(
            {
                "entity_type": entity_type,
                "entity_id": entity_id,
                "event_type": event_type,
                "before": before,
                "after": after,
            }
        )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        admin_token="admin-token",
        recalculation_settle_seconds=0.0,
    )


@pytest.fixture
def configuration_repository() -> InMemoryConfigurationRepository:
    return InMemoryConfigurationRepository(
        categories=[
            Category(id="cat-newborn", name="Newborn"),
            Category(id="cat-family", name="Family"),
        ]
    )


@pytest.fixture
def session_repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def audit_repository() -> InMemoryAuditRepository:
    return InMemoryAuditRepository()


@pytest.fixture
def container(
    settings: Settings,
    configuration_repository: InMemoryConfigurationRepository,
    session_repository: InMemorySessionRepository,
    audit_repository: InMemoryAuditRepository,
) -> AppContainer:
    container = wire_services(
        settings,
        configuration_repository=configuration_repository,
        session_repository=session_repository,
        audit_repository=audit_repository,
    )
    container.session_pricing_service.resolver.clock = fixed_clock
    return container
