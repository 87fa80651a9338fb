"""Session pricing orchestration: quantity edits, price edits and freezing."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from studio_pricing.domain.money import coerce_quantity, to_money
from studio_pricing.domain.payloads import snapshot_to_json
from studio_pricing.domain.pricing import PricingMode
from studio_pricing.domain.sessions import SessionRecord
from studio_pricing.domain.snapshots import FreezeSnapshot
from studio_pricing.exceptions import SessionNotFoundError
from studio_pricing.services.audit import AuditService
from studio_pricing.services.calculation import CalculationEngine
from studio_pricing.services.freezing import (
    FreezeResolver,
    IntegrityIssue,
    MigrationReport,
)
from studio_pricing.services.recalculator import ReactiveRecalculator, ValueUpdate

_logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Persistence interface for workflow sessions."""

    def get_session(self, session_id: str) -> SessionRecord | None:
        """Return a session by id, if present."""

    def list_sessions(self) -> list[SessionRecord]:
        """Return every session."""

    def save_frozen_rules(self, session_id: str, rules: dict[str, object]) -> None:
        """Persist a session's frozen pricing rules."""

    def update_prices(
        self,
        session_id: str,
        unit_price: Decimal,
        total_price: Decimal,
        quantity: int | None = None,
    ) -> None:
        """Persist a session's extra-photo prices and optionally its quantity."""


@dataclass(frozen=True)
class SessionPricing:
    """Extra-photo pricing state of one session."""

    session_id: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    mode: PricingMode | None
    frozen: bool
    manual_historical: bool
    needs_migration: bool


@dataclass
class SessionPricingService:
    """Routes session edits through the resolver, engine and recalculator."""

    session_repository: SessionRepository
    resolver: FreezeResolver
    engine: CalculationEngine
    recalculator: ReactiveRecalculator
    audit_service: AuditService

    def get_pricing(self, session_id: str) -> SessionPricing:
        """Return current computed values and the session's freeze state."""
        session = self._require(session_id)
        resolved = self.resolver.resolve_context_for_session(session)
        manual = self.resolver.is_manual_historical(session)
        if manual:
            unit_price, total_price = session.unit_price, session.total_price
            mode = resolved.snapshot.mode if resolved.snapshot else None
        else:
            result = self.engine.calculate_extra_photos_total(
                session.extra_photo_quantity, resolved.context
            )
            unit_price, total_price, mode = (
                result.unit_price,
                result.total_price,
                result.mode,
            )
        return SessionPricing(
            session_id=session.id,
            quantity=session.extra_photo_quantity,
            unit_price=unit_price,
            total_price=total_price,
            mode=mode,
            frozen=resolved.snapshot is not None,
            manual_historical=manual,
            needs_migration=resolved.needs_migration,
        )

    def update_quantity(self, session_id: str, quantity: object) -> SessionPricing:
        """Apply a quantity edit and persist any silent price update.

        A legacy session is frozen on its first edit; the snapshot is stored
        before the prices computed from it.
        """
        session = self._require(session_id)
        count = coerce_quantity(quantity)

        if self.resolver.is_manual_historical(session):
            self.session_repository.update_prices(
                session.id, session.unit_price, session.total_price, quantity=count
            )
            return self.get_pricing(session.id)

        resolved = self.resolver.resolve_context_for_session(session)
        context = resolved.context
        if resolved.needs_migration:
            snapshot = self.resolver.migrate(session)
            if snapshot is not None:
                self.session_repository.save_frozen_rules(
                    session.id, snapshot_to_json(snapshot)
                )
                context = snapshot

        update = self.recalculator.on_quantity_change(
            session.id, count, context, session.unit_price, session.total_price
        )
        if update is not None:
            self.session_repository.update_prices(
                session.id, update.unit_price, update.total_price, quantity=count
            )
        elif count != session.extra_photo_quantity:
            self.session_repository.update_prices(
                session.id, session.unit_price, session.total_price, quantity=count
            )
        return self.get_pricing(session.id)

    def set_manual_prices(
        self, session_id: str, unit_price: object, total_price: object
    ) -> ValueUpdate:
        """Store prices typed in by a user and audit the change."""
        session = self._require(session_id)
        unit = to_money(unit_price, label="manual unit price")
        total = to_money(total_price, label="manual total price")
        self.session_repository.update_prices(session.id, unit, total)
        update = self.recalculator.emit_manual(session.id, unit, total)
        self.audit_service.record_price_edit(
            session.id,
            before=_prices_json(session.unit_price, session.total_price),
            after=_prices_json(unit, total),
        )
        return update

    def freeze_session(self, session_id: str) -> FreezeSnapshot | None:
        """Capture pricing rules for a new session; frozen sessions are kept."""
        session = self._require(session_id)
        resolved = self.resolver.resolve_context_for_session(session)
        if not resolved.needs_migration:
            return resolved.snapshot
        snapshot = self.resolver.capture(session)
        if snapshot is not None:
            self.session_repository.save_frozen_rules(
                session.id, snapshot_to_json(snapshot)
            )
        return snapshot

    def recalculate_session(self, session_id: str) -> ValueUpdate | None:
        session = self._require(session_id)
        resolved = self.resolver.resolve_context_for_session(session)
        update = self.recalculator.recalculate(
            session.id,
            session.extra_photo_quantity,
            resolved.context,
            session.unit_price,
            session.total_price,
            manual_historical=self.resolver.is_manual_historical(session),
        )
        if update is not None:
            self.session_repository.update_prices(
                session.id, update.unit_price, update.total_price
            )
        return update

    def handle_configuration_change(self, mode: PricingMode) -> int:
        """Reprice legacy sessions after the live configuration changed.

        Frozen and manual-historical sessions are left untouched.
        """
        self.recalculator.on_configuration_mode_change()
        updated = 0
        for session in self.session_repository.list_sessions():
            resolved = self.resolver.resolve_context_for_session(session)
            if not resolved.needs_migration:
                continue
            update = self.recalculator.recalculate(
                session.id,
                session.extra_photo_quantity,
                resolved.context,
                session.unit_price,
                session.total_price,
            )
            if update is not None:
                self.session_repository.update_prices(
                    session.id, update.unit_price, update.total_price
                )
                updated += 1
        _logger.info(
            "Pricing mode is now %s; repriced %s legacy sessions", mode.value, updated
        )
        return updated

    def migrate_all(self) -> MigrationReport:
        """Freeze every legacy session in the store."""
        return self.resolver.migrate_sessions(
            self.session_repository.list_sessions(), self._persist_snapshot
        )

    def check_integrity(self) -> list[IntegrityIssue]:
        return self.resolver.check_integrity(self.session_repository.list_sessions())

    def refreeze(self, session_id: str) -> SessionPricing | None:
        """Replace a session's frozen rules with the live ones on request."""
        session = self._require(session_id)
        snapshot = self.resolver.refreeze(session)
        if snapshot is None:
            return None
        after = snapshot_to_json(snapshot)
        self.session_repository.save_frozen_rules(session.id, after)
        self.audit_service.record_refreeze(
            session.id, before=session.frozen_rules, after=after
        )
        self.recalculator.forget(session.id)
        update = self.recalculator.recalculate(
            session.id,
            session.extra_photo_quantity,
            snapshot,
            session.unit_price,
            session.total_price,
        )
        if update is not None:
            self.session_repository.update_prices(
                session.id, update.unit_price, update.total_price
            )
        return self.get_pricing(session.id)

    def mark_manual_historical(self, session_id: str) -> FreezeSnapshot:
        """Exempt a session from every automatic price change."""
        session = self._require(session_id)
        snapshot = self.resolver.mark_manual_historical(session)
        self.session_repository.save_frozen_rules(
            session.id, snapshot_to_json(snapshot)
        )
        self.recalculator.forget(session.id)
        _logger.info("Session %s marked manual-historical", session.id)
        return snapshot

    def _persist_snapshot(
        self, session: SessionRecord, snapshot: FreezeSnapshot
    ) -> None:
        self.session_repository.save_frozen_rules(
            session.id, snapshot_to_json(snapshot)
        )

    def _require(self, session_id: str) -> SessionRecord:
        session = self.session_repository.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session


def _prices_json(unit_price: Decimal, total_price: Decimal) -> dict[str, object]:
    return {"unitPrice": float(unit_price), "totalPrice": float(total_price)}
