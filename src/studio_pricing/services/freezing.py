"""Freeze snapshot capture, normalization and migration."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from pydantic import ValidationError

from studio_pricing.domain.payloads import FreezeSnapshotPayload
from studio_pricing.domain.pricing import LiveLookup, PricingMode
from studio_pricing.domain.sessions import SessionRecord
from studio_pricing.domain.snapshots import MANUAL_HISTORICAL, FreezeSnapshot
from studio_pricing.services.calculation import PricingContext
from studio_pricing.services.configuration import PricingConfiguration
from studio_pricing.services.tables import clone_table

_logger = logging.getLogger(__name__)

_LEGACY_MODES = {
    "fixo": PricingMode.FIXED,
    "global": PricingMode.GLOBAL_TABLE,
    "categoria": PricingMode.PER_CATEGORY_TABLE,
}
_WRAPPER_KEYS = ("regrasDePrecoFotoExtraCongeladas", "regras_congeladas")


# capturedAt for legacy rules that never recorded one
LEGACY_CAPTURED_AT = datetime(1970, 1, 1, tzinfo=UTC)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class ResolvedContext:
    """Pricing context chosen for a session."""

    context: PricingContext
    needs_migration: bool
    snapshot: FreezeSnapshot | None = None


@dataclass(frozen=True)
class MigrationReport:
    migrated: int
    skipped: int
    failed: int
    snapshots: dict[str, FreezeSnapshot] = field(default_factory=dict)


@dataclass(frozen=True)
class IntegrityIssue:
    session_id: str
    issue: str
    severity: str


def normalize_snapshot(raw: object) -> FreezeSnapshot | None:
    """Turn any stored rules payload into the canonical snapshot.

    Returns None when nothing usable is stored. A returned snapshot may still
    be structurally invalid; callers check ``is_valid``.
    """
    if not isinstance(raw, dict) or not raw:
        return None
    for key in _WRAPPER_KEYS:
        inner = raw.get(key)
        if isinstance(inner, dict):
            return normalize_snapshot(inner)

    payload = raw if "mode" in raw else _canonical_from_legacy(raw)
    if payload is None:
        return None
    try:
        return FreezeSnapshotPayload.model_validate(payload).to_domain()
    except ValidationError as exc:
        _logger.warning("Discarding malformed frozen rules: %s", exc.error_count())
        return None


def is_legacy_shape(raw: object) -> bool:
    """Return True when stored rules are present but not in canonical form."""
    if not isinstance(raw, dict) or not raw:
        return False
    return "mode" not in raw


def _canonical_from_legacy(raw: dict[str, object]) -> dict[str, object] | None:
    rules = raw
    package_value = None
    captured_at = raw.get("dataCongelamento") or raw.get("timestampCongelamento")
    if raw.get("modelo") == "completo":
        nested = raw.get("precificacaoFotoExtra")
        rules = nested if isinstance(nested, dict) else {}
        package = raw.get("pacote")
        if isinstance(package, dict):
            package_value = package.get("valorFotoExtra")

    mode = _LEGACY_MODES.get(str(rules.get("modelo")))
    if mode is None:
        return None

    payload: dict[str, object] = {
        "mode": mode.value,
        "capturedAt": captured_at
        or rules.get("timestampCongelamento")
        or LEGACY_CAPTURED_AT.isoformat(),
        "categoryId": rules.get("categoriaId"),
        "source": raw.get("source"),
    }
    if mode is PricingMode.FIXED:
        fixed_value = rules.get("valorFixo")
        payload["fixedValue"] = (
            fixed_value if fixed_value is not None else package_value
        )
    elif mode is PricingMode.GLOBAL_TABLE:
        payload["globalTable"] = _legacy_table(rules.get("tabelaGlobal"))
    else:
        payload["categoryTable"] = _legacy_table(rules.get("tabelaCategoria"))
    return payload


def _legacy_table(raw: object) -> dict[str, object] | None:
    if not isinstance(raw, dict):
        return None
    ranges = raw.get("faixas") or raw.get("ranges") or []
    return {
        "id": raw.get("id"),
        "name": raw.get("nome") or raw.get("name") or "",
        "ranges": [
            {
                "min": item.get("min", 0),
                "max": item.get("max"),
                "unitPrice": item.get("valor", item.get("unitPrice")),
            }
            for item in ranges
            if isinstance(item, dict)
        ],
    }


def capture_snapshot(
    configuration: PricingConfiguration,
    lookup: LiveLookup,
    now: Callable[[], datetime] | None = None,
) -> FreezeSnapshot | None:
    """Deep-copy the rule currently in effect for a session.

    Returns None when the live configuration has nothing valid to freeze.
    """
    captured_at = (now or _utcnow)()
    mode = configuration.get_mode()
    rule = configuration.get_table_for_mode(
        mode, category_id=lookup.category_id, package_id=lookup.package_id
    )
    if mode is PricingMode.FIXED:
        snapshot = FreezeSnapshot(mode=mode, captured_at=captured_at, fixed_value=rule)
    elif mode is PricingMode.GLOBAL_TABLE:
        snapshot = FreezeSnapshot(
            mode=mode,
            captured_at=captured_at,
            global_table=clone_table(rule) if rule is not None else None,
        )
    else:
        snapshot = FreezeSnapshot(
            mode=mode,
            captured_at=captured_at,
            category_table=clone_table(rule) if rule is not None else None,
            category_id=lookup.category_id,
        )
    if not snapshot.is_valid():
        _logger.warning(
            "Cannot freeze %s rules for category=%s package=%s",
            mode.value,
            lookup.category_id,
            lookup.package_id,
        )
        return None
    return snapshot


@dataclass
class FreezeResolver:
    """Chooses between a session's snapshot and the live configuration."""

    configuration: PricingConfiguration
    clock: Callable[[], datetime] = _utcnow

    def snapshot_for(self, session: SessionRecord) -> FreezeSnapshot | None:
        return normalize_snapshot(session.frozen_rules)

    def is_manual_historical(self, session: SessionRecord) -> bool:
        snapshot = self.snapshot_for(session)
        if snapshot is not None:
            return snapshot.is_manual_historical
        rules = session.frozen_rules
        return isinstance(rules, dict) and rules.get("source") == MANUAL_HISTORICAL

    def resolve_context_for_session(self, session: SessionRecord) -> ResolvedContext:
        """Return the frozen snapshot, or the live lookup flagged for migration."""
        snapshot = self.snapshot_for(session)
        if snapshot is not None and snapshot.is_valid():
            return ResolvedContext(
                context=snapshot, needs_migration=False, snapshot=snapshot
            )
        if snapshot is not None:
            _logger.warning(
                "Session %s has invalid %s snapshot; using live configuration",
                session.id,
                snapshot.mode.value,
            )
        return ResolvedContext(
            context=_lookup_for(session),
            needs_migration=not self.is_manual_historical(session),
        )

    def capture(self, session: SessionRecord) -> FreezeSnapshot | None:
        return capture_snapshot(self.configuration, _lookup_for(session), self.clock)

    def migrate(self, session: SessionRecord) -> FreezeSnapshot | None:
        """Freeze a legacy session once; frozen sessions keep their snapshot."""
        resolved = self.resolve_context_for_session(session)
        if not resolved.needs_migration:
            return resolved.snapshot
        snapshot = self.capture(session)
        if snapshot is not None:
            _logger.info(
                "Session %s migrated to frozen %s rules",
                session.id,
                snapshot.mode.value,
            )
        return snapshot

    def refreeze(self, session: SessionRecord) -> FreezeSnapshot | None:
        """Re-capture pricing rules on explicit user request."""
        if self.is_manual_historical(session):
            _logger.info(
                "Refusing to refreeze manual-historical session %s", session.id
            )
            return None
        return self.capture(session)

    def mark_manual_historical(self, session: SessionRecord) -> FreezeSnapshot:
        """Return a snapshot that exempts the session from recalculation."""
        snapshot = self.snapshot_for(session)
        if snapshot is None:
            snapshot = FreezeSnapshot(
                mode=PricingMode.FIXED,
                captured_at=self.clock(),
                fixed_value=session.unit_price,
            )
        return replace(snapshot, source=MANUAL_HISTORICAL)

    def migrate_sessions(
        self,
        sessions: list[SessionRecord],
        persist: Callable[[SessionRecord, FreezeSnapshot], None],
    ) -> MigrationReport:
        """Migrate every legacy session, persisting each new snapshot."""
        migrated = skipped = failed = 0
        snapshots: dict[str, FreezeSnapshot] = {}
        for session in sessions:
            if not self.resolve_context_for_session(session).needs_migration:
                skipped += 1
                continue
            snapshot = self.capture(session)
            if snapshot is None:
                skipped += 1
                continue
            try:
                persist(session, snapshot)
            except Exception:
                _logger.exception("Failed to migrate session %s", session.id)
                failed += 1
                continue
            snapshots[session.id] = snapshot
            migrated += 1
        _logger.info(
            "Snapshot migration finished: migrated=%s skipped=%s failed=%s",
            migrated,
            skipped,
            failed,
        )
        return MigrationReport(
            migrated=migrated, skipped=skipped, failed=failed, snapshots=snapshots
        )

    def check_integrity(self, sessions: list[SessionRecord]) -> list[IntegrityIssue]:
        """List sessions whose frozen rules are missing, outdated or broken."""
        issues: list[IntegrityIssue] = []
        for session in sessions:
            snapshot = self.snapshot_for(session)
            if snapshot is None:
                issues.append(
                    IntegrityIssue(session.id, "No frozen pricing rules", "warning")
                )
                continue
            if not snapshot.is_valid():
                issues.append(
                    IntegrityIssue(
                        session.id, "Frozen pricing rules are incomplete", "warning"
                    )
                )
            elif is_legacy_shape(session.frozen_rules):
                issues.append(
                    IntegrityIssue(
                        session.id, "Frozen pricing rules use a legacy format", "info"
                    )
                )
        return issues


def _lookup_for(session: SessionRecord) -> LiveLookup:
    return LiveLookup(category_id=session.category_id, package_id=session.package_id)
