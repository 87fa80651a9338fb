"""Supabase-backed session repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from supabase import Client

from studio_pricing.domain.money import coerce_quantity, to_money
from studio_pricing.domain.sessions import SessionRecord
from studio_pricing.exceptions import PersistenceError
from studio_pricing.services.sessions import SessionRepository

_COLUMNS = (
    "id, categoria, pacote, qtd_fotos_extra, valor_foto_extra, "
    "valor_total_foto_extra, regras_congeladas"
)


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation over the clientes_sessoes table.

    When ``owner_id`` is set only that studio owner's sessions are read or
    written.
    """

    client: Client
    owner_id: str | None = None

    def get_session(self, session_id: str) -> SessionRecord | None:
        """Return a session by id, if present."""
        query = self.client.table("clientes_sessoes").select(_COLUMNS)
        response = self._scoped(query.eq("id", session_id)).limit(1).execute()
        if not response.data:
            return None
        return _session_from_row(response.data[0])

    def list_sessions(self) -> list[SessionRecord]:
        query = self.client.table("clientes_sessoes").select(_COLUMNS)
        response = self._scoped(query).order("created_at").execute()
        return [_session_from_row(row) for row in response.data or []]

    def save_frozen_rules(self, session_id: str, rules: dict[str, object]) -> None:
        payload = {
            "regras_congeladas": rules,
            "updated_at": datetime.now(tz=UTC).isoformat(),
        }
        if not self._update(session_id, payload):
            raise PersistenceError(f"Failed to save frozen rules for {session_id}")

    def update_prices(
        self,
        session_id: str,
        unit_price: Decimal,
        total_price: Decimal,
        quantity: int | None = None,
    ) -> None:
        payload: dict[str, object] = {
            "valor_foto_extra": float(unit_price),
            "valor_total_foto_extra": float(total_price),
            "updated_at": datetime.now(tz=UTC).isoformat(),
        }
        if quantity is not None:
            payload["qtd_fotos_extra"] = quantity
        if not self._update(session_id, payload):
            raise PersistenceError(f"Failed to update prices for {session_id}")

    def _update(self, session_id: str, payload: dict[str, object]) -> bool:
        query = self.client.table("clientes_sessoes").update(payload)
        response = self._scoped(query.eq("id", session_id)).execute()
        return bool(response.data)

    def _scoped(self, query):  # type: ignore[no-untyped-def]
        if self.owner_id is None:
            return query
        return query.eq("user_id", self.owner_id)


def _session_from_row(row: dict[str, object]) -> SessionRecord:
    rules = row.get("regras_congeladas")
    return SessionRecord(
        id=str(row["id"]),
        extra_photo_quantity=coerce_quantity(row.get("qtd_fotos_extra")),
        unit_price=to_money(row.get("valor_foto_extra"), label="session unit price"),
        total_price=to_money(
            row.get("valor_total_foto_extra"), label="session total price"
        ),
        category_id=str(row["categoria"]) if row.get("categoria") else None,
        package_id=str(row["pacote"]) if row.get("pacote") else None,
        frozen_rules=rules if isinstance(rules, dict) else None,
    )
