"""Supabase repository for audit events."""

from dataclasses import dataclass

from supabase import Client

from studio_pricing.services.audit import AuditRepository


@dataclass
class SupabaseAuditRepository(AuditRepository):
    """Supabase-backed audit repository."""

    client: Client

    def create_event(
        self,
        entity_type: str,
        entity_id: str,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        self.client.table("audit_events").insert(
            {
                "entity_type": entity_type,
                "entity_id": entity_id,
                "event_type": event_type,
                "before_json": before,
                "after_json": after,
            }
        ).execute()
