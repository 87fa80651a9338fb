"""Admin API endpoints for pricing configuration, guarded by a shared token."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from studio_pricing.api.models import (
    ModeUpdate,
    RangeAddition,
    RangeEdit,
    TableInput,
    configuration_json,
    integrity_json,
    migration_json,
    pricing_json,
    snapshot_json,
    validation_json,
)
from studio_pricing.domain.payloads import table_to_json
from studio_pricing.services import tables

if TYPE_CHECKING:
    from studio_pricing.containers import AppContainer
    from studio_pricing.domain.pricing import TieredTable
    from studio_pricing.services.tables import ValidationResult

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/pricing/configuration", dependencies=[Depends(require_admin)])
async def get_configuration(request: Request) -> dict[str, object]:
    """Return the live pricing configuration."""
    container: AppContainer = request.app.state.container
    return configuration_json(container.configuration_service.configuration)


@router.put("/pricing/mode", dependencies=[Depends(require_admin)])
async def set_mode(body: ModeUpdate, request: Request) -> dict[str, object]:
    """Switch the pricing mode; legacy sessions are repriced."""
    container: AppContainer = request.app.state.container
    configuration = container.configuration_service.set_mode(body.mode)
    return configuration_json(configuration)


@router.put("/pricing/global-table", dependencies=[Depends(require_admin)])
async def save_global_table(
    body: TableInput, request: Request
) -> dict[str, object]:
    """Validate and store the global tiered table."""
    container: AppContainer = request.app.state.container
    table = body.to_domain()
    result = _require_valid(table)
    stored = container.configuration_service.save_global_table(table)
    return {"table": table_to_json(stored), "warnings": list(result.warnings)}


@router.put(
    "/pricing/categories/{category_id}/table", dependencies=[Depends(require_admin)]
)
async def save_category_table(
    category_id: str, body: TableInput, request: Request
) -> dict[str, object]:
    """Validate and store one category's tiered table."""
    container: AppContainer = request.app.state.container
    table = body.to_domain()
    result = _require_valid(table)
    stored = container.configuration_service.save_category_table(category_id, table)
    return {"table": table_to_json(stored), "warnings": list(result.warnings)}


@router.post("/pricing/global-table/ranges", dependencies=[Depends(require_admin)])
async def add_global_range(
    body: RangeAddition, request: Request
) -> dict[str, object]:
    """Append an open-ended range to the global table."""
    container: AppContainer = request.app.state.container
    stored = container.configuration_service.add_global_range(body.unit_price)
    return {"table": table_to_json(stored)}


@router.patch(
    "/pricing/global-table/ranges/{index}", dependencies=[Depends(require_admin)]
)
async def update_global_range(
    index: int, body: RangeEdit, request: Request
) -> dict[str, object]:
    container: AppContainer = request.app.state.container
    stored = container.configuration_service.update_global_range(
        index, **_range_changes(body)
    )
    return {"table": table_to_json(_require_range(stored))}


@router.delete(
    "/pricing/global-table/ranges/{index}", dependencies=[Depends(require_admin)]
)
async def remove_global_range(index: int, request: Request) -> dict[str, object]:
    """Drop a range and re-chain the ones after it."""
    container: AppContainer = request.app.state.container
    stored = container.configuration_service.remove_global_range(index)
    return {"table": table_to_json(_require_range(stored))}


@router.patch(
    "/pricing/categories/{category_id}/table/ranges/{index}",
    dependencies=[Depends(require_admin)],
)
async def update_category_range(
    category_id: str, index: int, body: RangeEdit, request: Request
) -> dict[str, object]:
    container: AppContainer = request.app.state.container
    stored = container.configuration_service.update_category_range(
        category_id, index, **_range_changes(body)
    )
    return {"table": table_to_json(_require_range(stored))}


@router.post("/pricing/validate", dependencies=[Depends(require_admin)])
async def validate_table(body: TableInput) -> dict[str, object]:
    """Check a table without saving it."""
    table = body.to_domain()
    payload = validation_json(tables.validate_table(table))
    payload["coverage"] = validation_json(tables.check_coverage(table.ranges))
    return payload


@router.get("/pricing/backup", dependencies=[Depends(require_admin)])
async def export_backup(request: Request) -> dict[str, object]:
    container: AppContainer = request.app.state.container
    return container.configuration_service.export_backup()


@router.post("/sessions/migrate", dependencies=[Depends(require_admin)])
async def migrate_sessions(request: Request) -> dict[str, object]:
    """Freeze pricing rules on every legacy session."""
    container: AppContainer = request.app.state.container
    return migration_json(container.session_pricing_service.migrate_all())


@router.get("/sessions/integrity", dependencies=[Depends(require_admin)])
async def check_integrity(request: Request) -> dict[str, object]:
    container: AppContainer = request.app.state.container
    return integrity_json(container.session_pricing_service.check_integrity())


@router.post("/sessions/{session_id}/refreeze", dependencies=[Depends(require_admin)])
async def refreeze_session(session_id: str, request: Request) -> dict[str, object]:
    """Re-capture a session's pricing rules from the live configuration."""
    container: AppContainer = request.app.state.container
    pricing = container.session_pricing_service.refreeze(session_id)
    if pricing is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Session pricing cannot be refrozen",
        )
    return pricing_json(pricing)


@router.post(
    "/sessions/{session_id}/manual-historical", dependencies=[Depends(require_admin)]
)
async def mark_manual_historical(
    session_id: str, request: Request
) -> dict[str, object]:
    container: AppContainer = request.app.state.container
    snapshot = container.session_pricing_service.mark_manual_historical(session_id)
    return {"snapshot": snapshot_json(snapshot)}


def _range_changes(body: RangeEdit) -> dict[str, object]:
    return {
        "min_value": body.min,
        "max_value": body.max,
        "clear_max": body.open_ended,
        "unit_price": body.unit_price,
    }


def _require_range(table: TieredTable | None) -> TieredTable:
    if table is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Price range not found"
        )
    return table


def _require_valid(table: TieredTable) -> ValidationResult:
    result = tables.validate_table(table)
    if not result.valid:
        raise HTTPException(
            status_code=422,
            detail=validation_json(result),
        )
    return result
