"""Dependency container wiring for the application."""

from dataclasses import dataclass

from supabase import create_client

from studio_pricing.adapters.supabase_audit_repository import SupabaseAuditRepository
from studio_pricing.adapters.supabase_configuration_repository import (
    SupabaseConfigurationRepository,
)
from studio_pricing.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from studio_pricing.config import Settings
from studio_pricing.services.audit import AuditRepository, AuditService
from studio_pricing.services.calculation import CalculationEngine
from studio_pricing.services.configuration import (
    ConfigurationRepository,
    PricingConfiguration,
    PricingConfigurationService,
)
from studio_pricing.services.freezing import FreezeResolver
from studio_pricing.services.recalculator import QuantityDebouncer, ReactiveRecalculator
from studio_pricing.services.sessions import SessionPricingService, SessionRepository


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    configuration_service: PricingConfigurationService
    session_pricing_service: SessionPricingService
    recalculator: ReactiveRecalculator
    quantity_debouncer: QuantityDebouncer


def wire_services(
    settings: Settings,
    configuration_repository: ConfigurationRepository,
    session_repository: SessionRepository,
    audit_repository: AuditRepository,
) -> AppContainer:
    """Build services around one shared pricing configuration."""
    configuration = PricingConfiguration(
        fixed_value=settings.default_extra_photo_value
    )
    configuration_service = PricingConfigurationService(
        configuration_repository, configuration
    )
    engine = CalculationEngine(configuration)
    recalculator = ReactiveRecalculator(
        engine, tolerance=settings.recalculation_tolerance
    )
    session_pricing_service = SessionPricingService(
        session_repository=session_repository,
        resolver=FreezeResolver(configuration),
        engine=engine,
        recalculator=recalculator,
        audit_service=AuditService(audit_repository),
    )
    configuration_service.subscribe(
        session_pricing_service.handle_configuration_change
    )
    quantity_debouncer = QuantityDebouncer(
        session_pricing_service.update_quantity,
        settle_seconds=settings.recalculation_settle_seconds,
    )
    return AppContainer(
        settings=settings,
        configuration_service=configuration_service,
        session_pricing_service=session_pricing_service,
        recalculator=recalculator,
        quantity_debouncer=quantity_debouncer,
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    return wire_services(
        resolved_settings,
        configuration_repository=SupabaseConfigurationRepository(
            supabase_client, owner_id=resolved_settings.studio_owner_id
        ),
        session_repository=SupabaseSessionRepository(
            supabase_client, owner_id=resolved_settings.studio_owner_id
        ),
        audit_repository=SupabaseAuditRepository(supabase_client),
    )
