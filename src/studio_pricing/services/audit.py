"""Audit trail for user-entered price edits."""

from dataclasses import dataclass
from typing import Protocol


class AuditRepository(Protocol):
    """Persistence interface for audit events."""

    def create_event(
        self,
        entity_type: str,
        entity_id: str,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        """Create an audit event row."""


@dataclass
class AuditService:
    """Records changes that users made on purpose."""

    repository: AuditRepository

    def record_price_edit(
        self,
        session_id: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        self.repository.create_event(
            entity_type="session",
            entity_id=session_id,
            event_type="extra_photo_price_edited",
            before=before,
            after=after,
        )

    def record_refreeze(
        self,
        session_id: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        self.repository.create_event(
            entity_type="session",
            entity_id=session_id,
            event_type="pricing_rules_refrozen",
            before=before,
            after=after,
        )
