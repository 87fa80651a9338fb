"""Supabase repository for the studio's pricing configuration."""

from dataclasses import dataclass
from decimal import Decimal

from supabase import Client

from studio_pricing.domain.money import coerce_quantity, to_money
from studio_pricing.domain.pricing import Category, PriceRange, PricingMode, TieredTable
from studio_pricing.exceptions import PersistenceError
from studio_pricing.services.configuration import ConfigurationRepository

_MODE_TO_STORAGE = {
    PricingMode.FIXED: "fixo",
    PricingMode.GLOBAL_TABLE: "global",
    PricingMode.PER_CATEGORY_TABLE: "categoria",
}
_MODE_FROM_STORAGE = {value: key for key, value in _MODE_TO_STORAGE.items()}


@dataclass
class SupabaseConfigurationRepository(ConfigurationRepository):
    """Supabase implementation over modelo_de_preco, tabelas_precos and friends.

    When ``owner_id`` is set every read and write is scoped to that studio
    owner through the ``user_id`` column.
    """

    client: Client
    owner_id: str | None = None

    def load_mode(self) -> PricingMode | None:
        query = self.client.table("modelo_de_preco").select("modelo")
        response = self._scoped(query).limit(1).execute()
        if not response.data:
            return None
        return _MODE_FROM_STORAGE.get(str(response.data[0].get("modelo")))

    def save_mode(self, mode: PricingMode) -> None:
        response = (
            self.client.table("modelo_de_preco")
            .upsert(
                self._owned({"modelo": _MODE_TO_STORAGE[mode]}), on_conflict="user_id"
            )
            .execute()
        )
        if not response.data:
            raise PersistenceError("Failed to save pricing mode")

    def load_global_table(self) -> TieredTable | None:
        query = self.client.table("tabelas_precos").select("id, nome, faixas")
        response = self._scoped(query).eq("tipo", "global").limit(1).execute()
        if not response.data:
            return None
        return _table_from_row(response.data[0])

    def save_global_table(self, table: TieredTable) -> None:
        row = _row_from_table(table)
        row["tipo"] = "global"
        self._upsert_table(row)

    def load_category_tables(self) -> dict[str, TieredTable]:
        query = self.client.table("tabelas_precos").select(
            "id, nome, faixas, categoria_id"
        )
        response = self._scoped(query).eq("tipo", "categoria").execute()
        tables: dict[str, TieredTable] = {}
        for row in response.data or []:
            category_id = row.get("categoria_id")
            if category_id:
                tables[str(category_id)] = _table_from_row(row)
        return tables

    def save_category_table(self, category_id: str, table: TieredTable) -> None:
        row = _row_from_table(table)
        row["tipo"] = "categoria"
        row["categoria_id"] = category_id
        self._upsert_table(row)

    def list_categories(self) -> list[Category]:
        query = self.client.table("categorias").select("id, nome")
        response = self._scoped(query).order("created_at").execute()
        return [
            Category(id=str(row["id"]), name=str(row.get("nome") or ""))
            for row in response.data or []
        ]

    def load_package_extra_photo_values(self) -> dict[str, Decimal]:
        query = self.client.table("pacotes").select("id, valor_foto_extra")
        response = self._scoped(query).execute()
        return {
            str(row["id"]): to_money(
                row.get("valor_foto_extra"), label="package extra photo value"
            )
            for row in response.data or []
            if row.get("valor_foto_extra") is not None
        }

    def _upsert_table(self, row: dict[str, object]) -> None:
        response = (
            self.client.table("tabelas_precos")
            .upsert(self._owned(row), on_conflict="id")
            .execute()
        )
        if not response.data:
            raise PersistenceError(f"Failed to save pricing table {row['id']}")

    def _scoped(self, query):  # type: ignore[no-untyped-def]
        if self.owner_id is None:
            return query
        return query.eq("user_id", self.owner_id)

    def _owned(self, row: dict[str, object]) -> dict[str, object]:
        if self.owner_id is None:
            return row
        return {**row, "user_id": self.owner_id}


def _table_from_row(row: dict[str, object]) -> TieredTable:
    ranges = row.get("faixas") or []
    return TieredTable(
        id=str(row["id"]),
        name=str(row.get("nome") or ""),
        ranges=[
            PriceRange(
                min=coerce_quantity(item.get("min")),
                max=(
                    coerce_quantity(item["max"])
                    if item.get("max") is not None
                    else None
                ),
                unit_price=to_money(item.get("valor"), label="range unit price"),
            )
            for item in ranges
            if isinstance(item, dict)
        ],
    )


def _row_from_table(table: TieredTable) -> dict[str, object]:
    return {
        "id": table.id,
        "nome": table.name,
        "faixas": [
            {
                "min": item.min,
                "max": item.max,
                "valor": float(item.unit_price),
            }
            for item in table.ranges
        ],
    }
