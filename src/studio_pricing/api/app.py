"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from studio_pricing.api.admin import router as admin_router
from studio_pricing.api.models import (
    ManualPrices,
    QuantityUpdate,
    pricing_json,
    snapshot_json,
    update_json,
)
from studio_pricing.app_logging import configure_logging
from studio_pricing.containers import AppContainer
from studio_pricing.exceptions import (
    InvalidTableError,
    PersistenceError,
    SessionNotFoundError,
)


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            app.state.container.configuration_service.load()
        except Exception:
            logger.exception("Failed to load pricing configuration")
        yield
        await app.state.container.quantity_debouncer.flush()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(SessionNotFoundError)
    async def session_not_found(
        _request: Request, exc: SessionNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)}
        )

    @app.exception_handler(InvalidTableError)
    async def invalid_table(_request: Request, exc: InvalidTableError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": {"valid": False, "errors": exc.errors, "warnings": []}},
        )

    @app.exception_handler(PersistenceError)
    async def persistence_failed(
        _request: Request, exc: PersistenceError
    ) -> JSONResponse:
        logger.error("Persistence failure: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)}
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/sessions/{session_id}/pricing")
    async def session_pricing(session_id: str, request: Request) -> dict[str, object]:
        """Return computed extra-photo prices and the freeze state."""
        state_container: AppContainer = request.app.state.container
        pricing = state_container.session_pricing_service.get_pricing(session_id)
        return pricing_json(pricing)

    @app.post("/sessions/{session_id}/quantity")
    async def update_quantity(
        session_id: str, body: QuantityUpdate, request: Request
    ) -> dict[str, object]:
        """Apply a quantity edit once edits settle; prices follow silently."""
        state_container: AppContainer = request.app.state.container
        settled = state_container.quantity_debouncer.push(session_id, body.quantity)
        pricing = await asyncio.shield(settled)
        return pricing_json(pricing)

    @app.put("/sessions/{session_id}/prices")
    async def set_prices(
        session_id: str, body: ManualPrices, request: Request
    ) -> dict[str, object]:
        """Store prices typed in by a user."""
        state_container: AppContainer = request.app.state.container
        update = state_container.session_pricing_service.set_manual_prices(
            session_id, body.unit_price, body.total_price
        )
        return update_json(update)

    @app.post("/sessions/{session_id}/recalculate")
    async def recalculate(session_id: str, request: Request) -> dict[str, object]:
        """Bring stored prices in line with the session's pricing rules."""
        state_container: AppContainer = request.app.state.container
        update = state_container.session_pricing_service.recalculate_session(
            session_id
        )
        return {"update": update_json(update) if update is not None else None}

    @app.post("/sessions/{session_id}/freeze")
    async def freeze_session(session_id: str, request: Request) -> dict[str, object]:
        """Freeze pricing rules for a new session."""
        state_container: AppContainer = request.app.state.container
        snapshot = state_container.session_pricing_service.freeze_session(session_id)
        return {"frozen": snapshot is not None, "snapshot": snapshot_json(snapshot)}

    return app
